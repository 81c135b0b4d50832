"""Success envelope helpers shared by the blueprints."""
from __future__ import annotations

from flask import g, jsonify

API_V1 = "v1"
API_LEGACY = "legacy"


def current_api_version() -> str:
    return g.get("api_version", API_V1)


def ok(data=None, message: str | None = None, status: int = 200, **extra):
    body: dict[str, object] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status
