from __future__ import annotations

import secrets
from typing import Any

from fastapi import Depends, Request

from divination.core.config import Settings, get_settings
from divination.core.errors import ServiceError, ValidationFailed


def require_upload_token(request: Request, settings: Settings = Depends(get_settings)) -> None:
    """Bearer token guard for write endpoints."""
    auth = request.headers.get("authorization") or ""
    token = auth[7:].strip() if auth.startswith("Bearer ") else None
    expected = settings.upload_token
    if not token or not expected or not secrets.compare_digest(token, expected):
        raise ServiceError("unauthorized", status_code=401, hint="Missing or invalid Bearer token")


def require_json_content_type(request: Request) -> None:
    ct = request.headers.get("content-type") or ""
    # "; charset=utf-8" is allowed
    if "application/json" not in ct.lower():
        raise ValidationFailed("content_type_must_be_application_json", got=ct)


async def read_json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as e:
        raise ValidationFailed("invalid_json", detail=str(e)) from e
