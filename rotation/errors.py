"""
Error taxonomy for the rotation engine.

- ConfigError: bad settings, missing directory, unknown compression method
- RotationError: a rotation step failed and the caller must know
- FatalLogError: no current file could be opened; logging cannot continue

Recoverable I/O problems (rename, stat, unlink) are logged, never raised.
"""

from __future__ import annotations


class RotationError(Exception):
    """Base class for every error raised by the rotation package."""


class ConfigError(RotationError):
    pass


class UnsupportedCompressionError(ConfigError):
    def __init__(self, name: str):
        super().__init__(f"Unsupported compression method: [{name}]")
        self.name = name


class CompressionLockedError(RotationError):
    """The backend cannot change while a current file is open."""


class ArchiveNameError(RotationError):
    """No usable archive name (too long, or every sequence number taken)."""


class FatalLogError(RotationError):
    """Raised when a fresh current file cannot be created. Hosts should exit."""
