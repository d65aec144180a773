from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ServiceError(Exception):
    """Error surfaced to HTTP callers as ``{"ok": false, "error": code, ...}``."""

    status_code = 400

    def __init__(self, code: str, status_code: int | None = None, **extra: Any) -> None:
        super().__init__(code)
        self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "error": self.code, **self.extra}


class ValidationFailed(ServiceError):
    status_code = 400


class NotFound(ServiceError):
    status_code = 404


class StorageFailed(ServiceError):
    status_code = 500


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)
