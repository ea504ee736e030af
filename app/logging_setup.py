"""
Logging setup.

- Console handler for operators (stderr)
- Optional rotating file handler for the ops log (OPS_LOG_FILE)
- Request ID aware formatter for records emitted inside HTTP requests
"""

from __future__ import annotations
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import g, has_request_context

from app.config import Settings

_CONFIGURED_ATTR = "_autosplit_handler"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # Middleware stores request_id on flask.g; outside a request it is "-"
        if not hasattr(record, "request_id"):
            record.request_id = _current_request_id()
        return True


def _current_request_id() -> str:
    if not has_request_context():
        return "-"
    return g.get("request_id", "-")


def _mk_handler(path: Path, level: int) -> RotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
    handler.setLevel(level)
    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s %(request_id)s - %(message)s"
    )
    handler.setFormatter(fmt)
    handler.addFilter(RequestIdFilter())
    return handler


def configure_logging(settings: Settings) -> None:
    root = logging.getLogger()
    level = getattr(logging, settings.LOG_LEVEL, logging.INFO)
    root.setLevel(level)

    # Re-configuring (tests, serve after CLI setup) replaces our handlers only
    for h in list(root.handlers):
        if getattr(h, _CONFIGURED_ATTR, False):
            root.removeHandler(h)
            h.close()

    # Console
    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s - %(message)s"))
    setattr(console, _CONFIGURED_ATTR, True)
    root.addHandler(console)

    # Ops file
    if settings.OPS_LOG_FILE:
        ops = _mk_handler(Path(settings.OPS_LOG_FILE), level)
        setattr(ops, _CONFIGURED_ATTR, True)
        root.addHandler(ops)
