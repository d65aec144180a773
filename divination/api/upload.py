from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from divination.core.config import Settings, get_settings
from divination.core.errors import ServiceError, ValidationFailed
from divination.deps.auth import read_json_body, require_json_content_type, require_upload_token
from divination.deps.store import get_blob_store
from divination.services.blob_store import BlobStore
from divination.services.uploads import (
    decode_base64_flexible,
    estimate_decoded_size,
    normalize_key,
    sanitize_content_type,
    save_upload,
)


router = APIRouter(prefix="/upload", tags=["upload"])
logger = logging.getLogger(__name__)


@router.post("", dependencies=[Depends(require_upload_token), Depends(require_json_content_type)])
async def upload_base64(
    request: Request,
    store: BlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    body = await read_json_body(request)
    body = body if isinstance(body, dict) else {}
    file_b64 = body.get("fileBase64")
    key_raw = str(body.get("key") or "").strip()
    if not file_b64 or not key_raw:
        raise ValidationFailed("missing_fileBase64_or_key")

    key = normalize_key(key_raw)
    allow_overwrite = str(body.get("overwrite", "false")).lower() == "true"
    content_type = sanitize_content_type(body.get("contentType"))

    file_b64 = str(file_b64)
    if estimate_decoded_size(file_b64) > settings.max_upload_bytes:
        raise ServiceError("payload_too_large", status_code=413)
    try:
        data = decode_base64_flexible(file_b64)
    except ValueError as e:
        raise ValidationFailed("bad_base64", detail=str(e)) from e

    put = await run_in_threadpool(save_upload, store, key, data, content_type, allow_overwrite)

    logger.info("upload.saved key=%s size=%s overwrite=%s", key, len(data), allow_overwrite)
    return JSONResponse({"ok": True, "key": key, "size": len(data), "etag": put.etag})
