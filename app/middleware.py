"""
Middleware installers for Flask.

- Request ID injection
- Request body cap for record ingestion
- Timing → "Ingest" logger (debug level)
"""

from __future__ import annotations
import logging
import time
import uuid

from flask import Flask, g, request

log = logging.getLogger("Ingest")

MAX_RECORD_BYTES = 16 * 1024 * 1024


def install_request_id(app: Flask) -> None:
    @app.before_request
    def _req_id():
        g.request_id = request.headers.get("X-Request-ID") or f"req_{uuid.uuid4().hex[:12]}"

    @app.after_request
    def _stamp(response):
        response.headers["X-Request-ID"] = g.get("request_id", "-")
        return response


def install_body_limit(app: Flask, max_bytes: int = MAX_RECORD_BYTES) -> None:
    # Flask answers 413 on its own once the body is read
    app.config["MAX_CONTENT_LENGTH"] = max_bytes


def install_timing_metrics(app: Flask) -> None:
    @app.before_request
    def _start_timer():
        g._t0 = time.time()

    @app.after_request
    def _stop_timer(response):
        t0 = getattr(g, "_t0", None)
        if t0 is not None:
            dt = int((time.time() - t0) * 1000)
            log.debug(f"{request.method} {request.path} -> {response.status_code} in {dt}ms")
        return response
