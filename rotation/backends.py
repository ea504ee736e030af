"""
Compression backends for the current log file.

A backend owns at most one open file at a time and knows:
- the suffix it appends to every file it produces ("" or ".gz")
- the fixed name of the live file (".current" / ".current.gz")
- how to open (append), write, tell and close that file

Backends are plain instances picked from BACKENDS at configuration time.
Adding a method means adding a subclass and a registry entry; callers only
ever go through get_backend().
"""

from __future__ import annotations
import gzip
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Type

from rotation.errors import UnsupportedCompressionError

CURRENT_FILE_BASE = ".current"

# zlib takes an unsigned int length per call
GZIP_MAX_CHUNK = 0xFFFFFFFF


class CompressionBackend(ABC):
    name: str = ""
    extension: str = ""

    def __init__(self) -> None:
        self._fp: Optional[BinaryIO] = None

    @property
    def current_file_name(self) -> str:
        return CURRENT_FILE_BASE + self.extension

    @property
    def is_open(self) -> bool:
        return self._fp is not None

    def open(self, path: Path) -> None:
        """Open (or create) `path` for appending. Raises OSError on failure."""
        if self._fp is not None:
            raise RuntimeError(f"{self.name} backend already has an open file")
        self._fp = self._open(path)

    def close(self) -> None:
        """Flush and release the open file. The handle is dropped even if close fails."""
        fp = self._require_open()
        self._fp = None
        fp.close()

    def tell(self) -> int:
        return self._require_open().tell()

    def write(self, data: bytes) -> int:
        fp = self._require_open()
        return fp.write(data)

    def _require_open(self) -> BinaryIO:
        if self._fp is None:
            raise RuntimeError(f"{self.name} backend has no open file")
        return self._fp

    @abstractmethod
    def _open(self, path: Path) -> BinaryIO: ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} open={self.is_open}>"


class NoCompression(CompressionBackend):
    """Plain append. tell() is the file offset, i.e. the on-disk size."""

    name = "none"
    extension = ""

    def _open(self, path: Path) -> BinaryIO:
        return open(path, "ab")


class GzipCompression(CompressionBackend):
    """
    Appends a new gzip member to the file.

    The member is only started on the first non-empty write, so a file that
    was opened and closed without data stays empty on disk.

    tell() reports uncompressed bytes written since this process opened the
    file, not the compressed size on disk.
    """

    name = "gzip"
    extension = ".gz"

    def __init__(self) -> None:
        super().__init__()
        self._gz: Optional[gzip.GzipFile] = None

    def _open(self, path: Path) -> BinaryIO:
        return open(path, "ab")

    def write(self, data: bytes) -> int:
        if len(data) > GZIP_MAX_CHUNK:
            raise ValueError(
                f"gzip write of {len(data)} bytes exceeds the {GZIP_MAX_CHUNK} byte chunk limit"
            )
        fp = self._require_open()
        if not data:
            return 0
        if self._gz is None:
            self._gz = gzip.GzipFile(filename="", mode="ab", fileobj=fp)
        return self._gz.write(data)

    def tell(self) -> int:
        self._require_open()
        return self._gz.tell() if self._gz is not None else 0

    def close(self) -> None:
        gz, self._gz = self._gz, None
        try:
            if gz is not None:
                # writes the member trailer; the raw file stays open
                gz.close()
        finally:
            super().close()


BACKENDS: Dict[str, Type[CompressionBackend]] = {
    NoCompression.name: NoCompression,
    GzipCompression.name: GzipCompression,
}


def supported_methods() -> List[str]:
    return sorted(BACKENDS)


def get_backend(name: str) -> CompressionBackend:
    """Build a fresh backend for `name` (case-insensitive)."""
    cls = BACKENDS.get((name or "").strip().lower())
    if cls is None:
        raise UnsupportedCompressionError(name)
    return cls()
