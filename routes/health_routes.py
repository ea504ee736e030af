from __future__ import annotations
from flask import Blueprint, jsonify

from routes import get_container
from rotation import __version__

bp = Blueprint("health", __name__)

@bp.get("/health")
def health():
    # lightweight liveness
    return "ok", 200, {"Content-Type": "text/plain; charset=utf-8"}

@bp.get("/version")
def version():
    c = get_container()
    info = {
        "version": __version__,
        "compression": c.engine.backend.name,
    }
    return jsonify(info)

@bp.get("/ready")
def ready():
    # ready means a current file is open and accepting writes
    c = get_container()
    if c.engine.is_open:
        return jsonify({"ready": True}), 200
    return jsonify({"ready": False, "error": "no current file open"}), 503
