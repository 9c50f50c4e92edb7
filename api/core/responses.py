"""
Success envelope shared by all routers.
"""

from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder


def success(data: Any = None, message: str | None = None) -> dict:
    body: dict[str, Any] = {"status": "success"}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = jsonable_encoder(data, by_alias=True)
    return body
