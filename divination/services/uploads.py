"""
Helpers for the JSON/base64 upload endpoint: key checks, lenient base64, and the write.
"""
from __future__ import annotations

import base64
import binascii
import re
import unicodedata
import urllib.parse

from divination.core.errors import ServiceError, StorageFailed, ValidationFailed
from divination.services.blob_store import BlobStore, BlobStoreError, PutResult

MAX_KEY_BYTES = 1024
UPLOAD_CACHE_CONTROL = "public, max-age=31536000, immutable"
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_MIME = re.compile(r"^[\w.+-]+/[\w.+-]+$")
_WHITESPACE = re.compile(r"\s+")


def normalize_key(raw: str) -> str:
    key = (raw or "").strip()
    try:
        key = urllib.parse.unquote(key, errors="strict")
    except UnicodeDecodeError:
        pass
    key = unicodedata.normalize("NFC", key)

    if not key or len(key.encode("utf-8")) > MAX_KEY_BYTES:
        raise ValidationFailed("bad_key_length")
    if key.startswith("/") or key.endswith("/") or ".." in key:
        raise ValidationFailed("bad_key_path", key=key)
    if _CONTROL_CHARS.search(key):
        raise ValidationFailed("bad_key_control_chars", key=key)
    return key


def sanitize_content_type(value) -> str:
    if isinstance(value, str) and _MIME.match(value):
        return value
    return "application/octet-stream"


def estimate_decoded_size(data: str) -> int:
    return (len(data) * 3) // 4


def decode_base64_flexible(data: str) -> bytes:
    """Decode base64 that may be a data: URL, URL-safe, wrapped, or unpadded."""
    s = str(data or "")
    comma = s.find(",")
    if s.startswith("data:") and comma != -1:
        s = s[comma + 1:]
    s = _WHITESPACE.sub("", s)
    s = s.replace("-", "+").replace("_", "/")
    pad = len(s) % 4
    if pad == 1:
        raise ValueError("invalid_base64_length")
    if pad:
        s += "=" * (4 - pad)
    try:
        return base64.b64decode(s, validate=True)
    except binascii.Error as e:
        raise ValueError(str(e)) from e


def save_upload(store: BlobStore, key: str, data: bytes, content_type: str, allow_overwrite: bool) -> PutResult:
    """Write an uploaded object. Without overwrite an existing key is a 409."""
    options = dict(content_type=content_type, cache_control=UPLOAD_CACHE_CONTROL, metadata={"via": "json-base64"})
    try:
        if allow_overwrite:
            return store.put(key, data, **options)
        if store.supports_conditional_put:
            put = store.put_if_absent(key, data, **options)
        else:
            # head/put pair, racy but the only option on this store
            put = None if store.head(key) else store.put(key, data, **options)
    except BlobStoreError as e:
        raise StorageFailed("store_put_error", detail=str(e)) from e
    if put is None:
        raise ServiceError("object_already_exists", status_code=409, key=key)
    return put
