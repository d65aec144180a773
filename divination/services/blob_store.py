"""
Key-addressed object store used for deck documents and quota records.

The contract is deliberately weak: unconditional ``put`` overwrites, no
transactions. Backends that can do an atomic create advertise it through
``supports_conditional_put`` and implement ``put_if_absent``.
"""
from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from divination.core.db import Base, make_session_factory
from divination.models.blob import BlobObject

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    """Any failure raised by a store backend."""


@dataclass
class PutResult:
    key: str
    etag: str
    size: int


@dataclass
class StoredObject:
    body: bytes
    content_type: str = "application/octet-stream"
    cache_control: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    etag: str = ""
    uploaded_at: datetime = field(default_factory=datetime.utcnow)


def compute_etag(body: bytes) -> str:
    return hashlib.md5(body).hexdigest()


class BlobStore:
    """Interface shared by all backends."""

    supports_conditional_put = False

    def head(self, key: str) -> bool:
        raise NotImplementedError

    def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    def put(
        self,
        key: str,
        body: bytes,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PutResult:
        raise NotImplementedError

    def put_if_absent(
        self,
        key: str,
        body: bytes,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Optional[PutResult]:
        """Create ``key`` only if missing. Returns None when it already existed."""
        raise NotImplementedError


class MemoryBlobStore(BlobStore):
    """Process-local store. Used by tests and for local development."""

    supports_conditional_put = True

    def __init__(self) -> None:
        self._objects: Dict[str, StoredObject] = {}
        self._lock = threading.Lock()

    def head(self, key: str) -> bool:
        return key in self._objects

    def get(self, key: str) -> Optional[bytes]:
        obj = self._objects.get(key)
        return obj.body if obj else None

    def stat(self, key: str) -> Optional[StoredObject]:
        return self._objects.get(key)

    def put(self, key, body, content_type="application/octet-stream", cache_control=None, metadata=None) -> PutResult:
        obj = StoredObject(
            body=bytes(body),
            content_type=content_type,
            cache_control=cache_control,
            metadata=dict(metadata or {}),
            etag=compute_etag(body),
        )
        with self._lock:
            self._objects[key] = obj
        return PutResult(key=key, etag=obj.etag, size=len(obj.body))

    def put_if_absent(self, key, body, content_type="application/octet-stream", cache_control=None, metadata=None) -> Optional[PutResult]:
        with self._lock:
            if key in self._objects:
                return None
            obj = StoredObject(
                body=bytes(body),
                content_type=content_type,
                cache_control=cache_control,
                metadata=dict(metadata or {}),
                etag=compute_etag(body),
            )
            self._objects[key] = obj
        return PutResult(key=key, etag=obj.etag, size=len(obj.body))

    def keys(self) -> list[str]:
        return sorted(self._objects)


class SqlBlobStore(BlobStore):
    """Blob store persisted in a single SQLAlchemy table.

    ``put`` is a plain upsert (last writer wins). ``put_if_absent`` relies on the
    primary key constraint, so concurrent creators of the same key get exactly
    one winner.
    """

    supports_conditional_put = True

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.SessionLocal = make_session_factory(engine)
        Base.metadata.create_all(bind=engine)

    def head(self, key: str) -> bool:
        try:
            with self.SessionLocal() as db:
                found = db.execute(select(BlobObject.key).where(BlobObject.key == key)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise BlobStoreError(f"head failed for {key}: {e}") from e
        return found is not None

    def get(self, key: str) -> Optional[bytes]:
        try:
            with self.SessionLocal() as db:
                rec = db.get(BlobObject, key)
                return bytes(rec.body) if rec else None
        except SQLAlchemyError as e:
            raise BlobStoreError(f"get failed for {key}: {e}") from e

    def put(self, key, body, content_type="application/octet-stream", cache_control=None, metadata=None) -> PutResult:
        etag = compute_etag(body)
        try:
            with self.SessionLocal() as db:
                rec = db.get(BlobObject, key)
                if rec is None:
                    rec = BlobObject(key=key)
                    db.add(rec)
                rec.body = bytes(body)
                rec.size = len(body)
                rec.etag = etag
                rec.content_type = content_type
                rec.cache_control = cache_control
                rec.custom_metadata = dict(metadata or {})
                rec.uploaded_at = datetime.utcnow()
                db.commit()
        except SQLAlchemyError as e:
            raise BlobStoreError(f"put failed for {key}: {e}") from e
        return PutResult(key=key, etag=etag, size=len(body))

    def put_if_absent(self, key, body, content_type="application/octet-stream", cache_control=None, metadata=None) -> Optional[PutResult]:
        etag = compute_etag(body)
        rec = BlobObject(
            key=key,
            body=bytes(body),
            size=len(body),
            etag=etag,
            content_type=content_type,
            cache_control=cache_control,
            custom_metadata=dict(metadata or {}),
            uploaded_at=datetime.utcnow(),
        )
        try:
            with self.SessionLocal() as db:
                db.add(rec)
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    logger.debug("blob.put_if_absent exists key=%s", key)
                    return None
        except SQLAlchemyError as e:
            raise BlobStoreError(f"put_if_absent failed for {key}: {e}") from e
        return PutResult(key=key, etag=etag, size=len(body))
