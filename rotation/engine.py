"""
Rotation engine (one per writer process and log directory).

Holds the session state:
- backend: compression policy, fixed once a current file is open
- the open current file (through the backend)
- seq: archive names tried during the last rotation
- schedule: rotation interval, soft size limit, last rotation time
- retention: max archive count / total space

rotate():
  close current -> pick an unused archive name -> rename current to it
  (skipped if missing or empty) -> open a fresh current -> purge

Public methods take an internal lock, so threaded hosts are serialized.
Only one process may write to a directory; nothing here locks across
processes.
"""

from __future__ import annotations
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from rotation.backends import CompressionBackend, get_backend
from rotation.errors import (
    ArchiveNameError,
    CompressionLockedError,
    ConfigError,
    FatalLogError,
    RotationError,
)
from rotation.naming import MAX_SEQUENCE, build_archive_name
from rotation.retention import PurgeReport, RetentionPolicy, purge, scan_archives
from rotation.schedule import Countdown, RotationSchedule

log = logging.getLogger("Rotation")


@dataclass
class RotationResult:
    archived: Optional[str] = None
    purge: PurgeReport = field(default_factory=PurgeReport)

    def to_dict(self) -> Dict[str, Any]:
        return {"archived": self.archived, "purge": self.purge.to_dict()}


class RotationEngine:
    def __init__(
        self,
        directory: Path | str,
        *,
        schedule: Optional[RotationSchedule] = None,
        retention: Optional[RetentionPolicy] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.directory = Path(directory)
        if not self.directory.is_dir():
            raise ConfigError(f"Log directory does not exist: {self.directory}")
        self.backend: CompressionBackend = get_backend("none")
        self.schedule = schedule or RotationSchedule()
        self.retention = retention or RetentionPolicy()
        self.clock = clock
        self.seq = 0
        self._opened_once = False
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: Any, clock: Callable[[], float] = time.time) -> "RotationEngine":
        engine = cls(
            settings.LOG_DIR,
            schedule=RotationSchedule(
                rotate_after=settings.ROTATE_AFTER,
                soft_limit=settings.SOFT_LIMIT,
            ),
            retention=RetentionPolicy(
                max_files=settings.MAX_FILES,
                max_space=settings.MAX_SPACE,
            ),
            clock=clock,
        )
        engine.set_compression(settings.COMPRESSION)
        return engine

    # -------- configuration --------

    def set_compression(self, name: str) -> None:
        """
        Select the backend by name. Once a current file has been opened the
        backend is fixed: any other name raises CompressionLockedError. An
        unknown name raises UnsupportedCompressionError and changes nothing.
        """
        with self._lock:
            backend = get_backend(name)
            if self.backend.is_open or self._opened_once:
                if backend.name == self.backend.name:
                    return
                raise CompressionLockedError(
                    f"Cannot switch compression to {backend.name}: "
                    f"{self.backend.name} is already in use"
                )
            self.backend = backend

    # -------- paths --------

    @property
    def current_path(self) -> Path:
        return self.directory / self.backend.current_file_name

    @property
    def is_open(self) -> bool:
        return self.backend.is_open

    # -------- writer API --------

    def start(self) -> RotationResult:
        """Open the current file, archiving whatever a previous run left behind."""
        return self.rotate()

    def write(self, data: bytes) -> int:
        with self._lock:
            if not self.backend.is_open:
                raise RotationError("No current file is open; call start() first")
            return self.backend.write(data)

    def close(self) -> None:
        """Close the current file if one is open. Safe to call more than once."""
        with self._lock:
            if self.backend.is_open:
                self.backend.close()

    def tell(self) -> int:
        with self._lock:
            return self.backend.tell() if self.backend.is_open else 0

    # -------- rotation --------

    def rotate(self) -> RotationResult:
        with self._lock:
            try:
                self.close()
            except OSError as e:
                raise RotationError(f"Unable to close [{self.current_path}]: {e}") from e

            archive_name = self._next_archive_name()
            archived = self._archive_current(archive_name)

            try:
                self.backend.open(self.current_path)
            except OSError as e:
                log.critical(f"Unable to create [{self.current_path}]: {e}")
                raise FatalLogError(f"Unable to create [{self.current_path}]: {e}") from e
            self._opened_once = True

            self.schedule.mark_rotated(self.clock())
            if archived:
                log.info(f"Rotated {self.backend.current_file_name} -> {archived}")
            return RotationResult(archived=archived, purge=self._purge())

    def _next_archive_name(self) -> str:
        ext = self.backend.extension
        self.seq = 0
        while True:
            name = build_archive_name(self.clock(), self.seq, ext)
            if name is None:
                raise ArchiveNameError(f"Archive name for seq={self.seq} is too long")
            if not os.path.lexists(self.directory / name):
                return name
            if self.seq + 1 >= MAX_SEQUENCE:
                raise ArchiveNameError(f"No free archive name after {self.seq + 1} attempts")
            self.seq += 1

    def _archive_current(self, archive_name: str) -> Optional[str]:
        current = self.current_path
        try:
            size = current.stat().st_size
        except FileNotFoundError:
            return None
        except OSError as e:
            log.warning(f"Unable to stat [{current.name}]: {e}")
            return None
        if size == 0:
            return None
        try:
            os.rename(current, self.directory / archive_name)
        except FileNotFoundError:
            return None
        except OSError as e:
            log.warning(f"Unable to rename [{current.name}] to [{archive_name}]: {e}")
            return None
        return archive_name

    # -------- scheduling & retention --------

    def seconds_until_next_rotation(self) -> Countdown:
        with self._lock:
            return self.schedule.countdown(self.clock())

    def rotate_if_needed(self) -> Optional[RotationResult]:
        """
        Rotate when the interval elapsed (or the clock was reset) or the current
        file reached the soft limit. Otherwise only purge. Returns the rotation
        result, or None when no rotation happened.
        """
        with self._lock:
            countdown = self.schedule.countdown(self.clock())
            if countdown.due or self.schedule.size_exceeded(self.tell()):
                return self.rotate()
            self._purge()
            return None

    def purge(self) -> PurgeReport:
        with self._lock:
            return self._purge()

    def _purge(self) -> PurgeReport:
        report = purge(self.directory, self.backend.extension, self.retention)
        if not report.within_limits:
            log.warning(
                f"Retention limits still exceeded after purge: "
                f"{report.count} files, {report.total_bytes} bytes"
            )
        return report

    # -------- introspection --------

    def status(self) -> Dict[str, Any]:
        with self._lock:
            try:
                scan = scan_archives(self.directory, self.backend.extension)
                stored: Optional[Dict[str, int]] = {"count": scan.count, "total_bytes": scan.total_bytes}
            except OSError as e:
                log.warning(f"Unable to scan [{self.directory}]: {e}")
                stored = None
            return {
                "directory": str(self.directory),
                "compression": self.backend.name,
                "current_file": self.backend.current_file_name,
                "open": self.backend.is_open,
                "position": self.tell(),
                "soft_limit": self.schedule.soft_limit,
                "rotate_after": self.schedule.rotate_after,
                "last_rotation": self.schedule.last_rotation,
                "archives": stored,
                "retention": {
                    "max_files": self.retention.max_files,
                    "max_space": self.retention.max_space,
                },
            }
