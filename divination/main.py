import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from divination.core.config import settings
from divination.core.errors import ServiceError, service_error_handler

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.add_exception_handler(ServiceError, service_error_handler)


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = "not_found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse({"ok": False, "error": code}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def _request_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"ok": False, "error": "bad_request", "detail": str(exc)}, status_code=400)


@app.exception_handler(Exception)
async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"ok": False, "error": "unhandled_exception", "detail": str(exc)}, status_code=500)


@app.get("/healthz", tags=["system"])
async def healthz() -> JSONResponse:
    return JSONResponse({"ok": True})


# ---- Routers ----
from divination.api.decks import router as decks_router
from divination.api.quota import router as quota_router
from divination.api.upload import router as upload_router


app.include_router(decks_router)
app.include_router(quota_router)
app.include_router(upload_router)
