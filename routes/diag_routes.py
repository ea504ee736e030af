from __future__ import annotations
from flask import Blueprint, jsonify

from routes import get_container, require_token

bp = Blueprint("diag", __name__, url_prefix="/__diag")

@bp.get("/status")
@require_token
def status():
    c = get_container()
    return jsonify({"ok": True, "status": c.engine.status()})

@bp.post("/rotate")
@require_token
def rotate():
    """Force a rotation now, regardless of schedule and size."""
    c = get_container()
    result = c.engine.rotate()
    return jsonify({"ok": True, "rotation": result.to_dict()})

@bp.post("/purge")
@require_token
def purge():
    c = get_container()
    report = c.engine.purge()
    return jsonify({"ok": True, "purge": report.to_dict()})
