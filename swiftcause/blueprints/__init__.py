"""HTTP blueprints plus the JSON helpers they share."""

from __future__ import annotations

from typing import Any, Dict, Optional, cast

from flask import g, jsonify, request


def request_payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return cast(Dict[str, Any], data)
    return {}


def json_response(payload: Dict[str, Any], status: int = 200):
    resp = jsonify(payload)
    resp.status_code = int(status)
    resp.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, max-age=0")
    return resp


def json_error(message: str, status: int, extra: Optional[Dict[str, Any]] = None):
    body: Dict[str, Any] = {"error": message, "requestId": getattr(g, "request_id", "-")}
    if extra:
        body.update(extra)
    return json_response(body, status)


def rpc_failure(message: str, status: int = 400):
    """Failure shape for the callable payment RPCs: {success: false, error}."""
    return json_response({"success": False, "error": message}, status)
