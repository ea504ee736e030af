"""
Record ingestion over HTTP.

POST /records with the raw record bytes as the body. Bytes are appended
as-is (no parsing), then the rotation schedule is checked.
"""

from __future__ import annotations
from flask import Blueprint, abort, jsonify, request

from routes import get_container

bp = Blueprint("ingest", __name__)

@bp.post("/records")
def append_record():
    data = request.get_data(cache=False)
    if not data:
        abort(400, description="empty body")
    c = get_container()
    written = c.engine.write(data)
    result = c.engine.rotate_if_needed()
    body = {"written": written, "rotated": result is not None}
    if result is not None:
        body["archived"] = result.archived
    return jsonify(body)
