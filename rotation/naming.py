"""
Archive file names.

    <epoch>.msgpack<ext>            first candidate of a rotation
    <epoch>.<seq:05d>.msgpack<ext>  every retry within the same rotation

The live file is never timestamped; see backends.CURRENT_FILE_BASE.
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Optional

MSGPACK_MARKER = ".msgpack"
MAX_ARCHIVE_NAME_LENGTH = 100
MAX_SEQUENCE = 0xFFFF

_ARCHIVE_RE = re.compile(r"(?P<ts>\d+)(?:\.(?P<seq>\d{5}))?\.msgpack(?P<ext>.*)")


@dataclass(frozen=True, order=True)
class ArchiveName:
    # field order is the retention order: oldest timestamp, then lowest seq
    timestamp: int
    seq: int
    name: str


def build_archive_name(now: float, seq: int, extension: str) -> Optional[str]:
    """
    Format the candidate for (now, seq). Returns None when the result would
    not fit in MAX_ARCHIVE_NAME_LENGTH.
    """
    epoch = int(now)
    if seq == 0:
        name = f"{epoch}{MSGPACK_MARKER}{extension}"
    else:
        name = f"{epoch}.{seq:05d}{MSGPACK_MARKER}{extension}"
    if len(name) >= MAX_ARCHIVE_NAME_LENGTH:
        return None
    return name


def parse_archive_name(name: str, extension: str) -> Optional[ArchiveName]:
    """Return the parsed archive name if `name` belongs to the backend with `extension`."""
    m = _ARCHIVE_RE.fullmatch(name)
    if not m or m.group("ext") != extension:
        return None
    seq = m.group("seq")
    return ArchiveName(int(m.group("ts")), int(seq) if seq else 0, name)
