"""
Log rotation engine for an append-only record stream.

Exposes:
- RotationEngine: write / rotate / rotate_if_needed / purge / close
- backends: get_backend(), supported_methods()
- error types (rotation.errors)
"""

from __future__ import annotations

from rotation.backends import CompressionBackend, get_backend, supported_methods
from rotation.engine import RotationEngine, RotationResult
from rotation.errors import (
    ArchiveNameError,
    CompressionLockedError,
    ConfigError,
    FatalLogError,
    RotationError,
    UnsupportedCompressionError,
)
from rotation.retention import PurgeReport, RetentionPolicy
from rotation.schedule import Countdown, RotationSchedule

__version__ = "0.4.0"

__all__ = [
    "ArchiveNameError",
    "CompressionBackend",
    "CompressionLockedError",
    "ConfigError",
    "Countdown",
    "FatalLogError",
    "PurgeReport",
    "RetentionPolicy",
    "RotationEngine",
    "RotationError",
    "RotationResult",
    "RotationSchedule",
    "UnsupportedCompressionError",
    "get_backend",
    "supported_methods",
]
