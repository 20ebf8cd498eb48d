"""The {success, message, data} response shape every endpoint returns."""

from __future__ import annotations

from typing import Any


def ok(data: Any = None, message: str = "OK") -> dict[str, Any]:
    return {"success": True, "message": message, "data": data}


def failure(message: str, data: Any = None) -> dict[str, Any]:
    return {"success": False, "message": message, "data": data}
