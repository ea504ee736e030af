"""
Container: creates and holds the single rotation engine.

Provides:
- settings
- engine (RotationEngine bound to Settings.LOG_DIR, already started)
"""

from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from app.config import Settings
from rotation.engine import RotationEngine

log = logging.getLogger("Rotation")


@dataclass(eq=False)
class Container:
    settings: Settings
    clock: Callable[[], float] = field(default=time.time)
    engine: RotationEngine = field(init=False)

    def __post_init__(self):
        self.engine = RotationEngine.from_settings(self.settings, clock=self.clock)
        self.engine.start()
        log.info(
            f"Writing to {self.engine.current_path} "
            f"(compression={self.engine.backend.name})"
        )

    def shutdown(self) -> None:
        self.engine.close()
