"""
App factory: create_app()

- Loads config (env, overrides)
- Sets up logging
- Wires the container (one started RotationEngine)
- Registers middleware (request IDs, body cap, timing)
- Registers blueprints from routes/*
- Installs global error handlers

Serve with a single process: one writer per log directory.
"""

from __future__ import annotations
import atexit
import logging
import time
import weakref
from typing import Any, Callable, Dict

from flask import Flask, jsonify

from app.config import Settings, load_settings
from app.logging_setup import configure_logging
from app.container import Container
from app import middleware
from rotation.errors import RotationError

# containers built by create_app, closed once at interpreter exit
_live_containers: "weakref.WeakSet[Container]" = weakref.WeakSet()


@atexit.register
def _shutdown_containers() -> None:
    for container in list(_live_containers):
        container.shutdown()


def _register_blueprints(app: Flask) -> None:
    # Lazy imports to avoid circulars
    from routes.health_routes import bp as health_bp
    from routes.ingest_routes import bp as ingest_bp
    from routes.diag_routes import bp as diag_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(ingest_bp)
    app.register_blueprint(diag_bp)


def _install_error_handlers(app: Flask) -> None:
    @app.errorhandler(400)
    def bad_request(err):
        app.logger.warning(f"400: {err}")
        return jsonify({"error": "bad_request"}), 400

    @app.errorhandler(401)
    def unauthorized(err):
        return jsonify({"error": "unauthorized"}), 401

    @app.errorhandler(403)
    def forbidden(err):
        return jsonify({"error": "forbidden"}), 403

    @app.errorhandler(404)
    def not_found(err):
        return jsonify({"error": "not_found"}), 404

    @app.errorhandler(405)
    def not_allowed(err):
        return jsonify({"error": "method_not_allowed"}), 405

    @app.errorhandler(413)
    def too_large(err):
        return jsonify({"error": "payload_too_large"}), 413

    @app.errorhandler(RotationError)
    def rotation_failed(err):
        app.logger.error(f"Rotation failure: {err}")
        return jsonify({"error": "rotation_failed", "detail": str(err)}), 503

    @app.errorhandler(500)
    def server_error(err):
        app.logger.exception("Unhandled server error")
        return jsonify({"error": "server_error"}), 500


def create_app(
    config_override: Dict[str, Any] | None = None,
    clock: Callable[[], float] = time.time,
) -> Flask:
    # Settings & logging
    settings: Settings = load_settings(config_override)
    configure_logging(settings)

    app = Flask(__name__, static_folder=None)
    app.config["SECRET_KEY"] = settings.SECRET_KEY
    app.config["SETTINGS"] = settings

    # Container (engine is started here; failure to open .current is fatal)
    container = Container(settings, clock=clock)
    app.container = container  # type: ignore[attr-defined]
    _live_containers.add(container)

    # Middleware
    middleware.install_request_id(app)
    middleware.install_body_limit(app)
    middleware.install_timing_metrics(app)

    # Blueprints
    _register_blueprints(app)

    # Error handlers
    _install_error_handlers(app)

    logging.getLogger("Ingest").info(
        f"App started DIR={settings.LOG_DIR} COMPRESSION={container.engine.backend.name}"
    )

    # Simple root
    @app.get("/")
    def root():
        return {"ok": True, "dir": settings.LOG_DIR, "compression": container.engine.backend.name}

    return app
