"""
Retention scanner / purge.

Scans the log directory for archives that belong to the active backend
(see naming.parse_archive_name), finds the oldest one, and deletes oldest
archives until file count and total size are back under the configured
caps. 0 means "unlimited" for either cap.

Every deletion is followed by a fresh scan of the directory; rotations are
rare, so a full scan is cheap enough and never drifts from what is on disk.
"""

from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from rotation.naming import ArchiveName, parse_archive_name

log = logging.getLogger("Retention")


@dataclass(frozen=True)
class RetentionPolicy:
    max_files: int = 0
    max_space: int = 0

    @property
    def unlimited(self) -> bool:
        return self.max_files == 0 and self.max_space == 0

    def exceeded_by(self, count: int, total_bytes: int) -> bool:
        if self.max_files and count > self.max_files:
            return True
        if self.max_space and total_bytes > self.max_space:
            return True
        return False


@dataclass
class ScanResult:
    oldest: Optional[ArchiveName] = None
    count: int = 0
    total_bytes: int = 0


@dataclass
class PurgeReport:
    deleted: List[str] = field(default_factory=list)
    count: int = 0
    total_bytes: int = 0
    within_limits: bool = True

    def to_dict(self) -> dict:
        return {
            "deleted": list(self.deleted),
            "count": self.count,
            "total_bytes": self.total_bytes,
            "within_limits": self.within_limits,
        }


def scan_archives(directory: Path, extension: str, *, with_sizes: bool = True) -> ScanResult:
    """
    One pass over `directory`. Sizes are only stat'ed when `with_sizes` is set;
    a file that cannot be stat'ed still counts, with size 0.
    """
    res = ScanResult()
    with os.scandir(directory) as it:
        for entry in it:
            parsed = parse_archive_name(entry.name, extension)
            if parsed is None or entry.is_dir():
                continue
            res.count += 1
            if res.oldest is None or parsed < res.oldest:
                res.oldest = parsed
            if with_sizes:
                try:
                    res.total_bytes += entry.stat().st_size
                except OSError as e:
                    log.warning(f"Unable to stat [{entry.name}]: {e}")
    return res


def purge(directory: Path, extension: str, policy: RetentionPolicy) -> PurgeReport:
    """
    Delete oldest archives until `policy` is satisfied, no candidate is left,
    or a deletion fails (logged, then stop). A directory that cannot be
    scanned is logged and reported as not within limits.
    """
    report = PurgeReport()
    if policy.unlimited:
        return report

    with_sizes = policy.max_space > 0
    try:
        scan = scan_archives(directory, extension, with_sizes=with_sizes)
    except OSError as e:
        log.warning(f"Unable to scan [{directory}]: {e}")
        report.within_limits = False
        return report
    # each pass removes one file, so the initial count bounds the loop
    for _ in range(scan.count + 1):
        report.count = scan.count
        report.total_bytes = scan.total_bytes
        if not policy.exceeded_by(scan.count, scan.total_bytes):
            report.within_limits = True
            return report
        if scan.oldest is None:
            break
        victim = directory / scan.oldest.name
        try:
            victim.unlink()
        except OSError as e:
            log.warning(f"Unable to purge [{scan.oldest.name}]: {e}")
            break
        log.info(f"Purged archive {scan.oldest.name}")
        report.deleted.append(scan.oldest.name)
        try:
            scan = scan_archives(directory, extension, with_sizes=with_sizes)
        except OSError as e:
            log.warning(f"Unable to scan [{directory}]: {e}")
            report.within_limits = False
            return report

    report.count = scan.count
    report.total_bytes = scan.total_bytes
    report.within_limits = not policy.exceeded_by(scan.count, scan.total_bytes)
    return report
