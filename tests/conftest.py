from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from divination.core.config import Settings, get_settings
from divination.deps.store import get_blob_store
from divination.main import app
from divination.services.blob_store import BlobStoreError, MemoryBlobStore

TOKEN = "test-token"


class RecordingStore(MemoryBlobStore):
    """Memory store that records every call and can be told to fail."""

    def __init__(self, supports_conditional_put: bool = True) -> None:
        super().__init__()
        self.supports_conditional_put = supports_conditional_put
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()

    def _record(self, op: str, key: str) -> None:
        self.calls.append((op, key))
        if op in self.fail_on:
            raise BlobStoreError(f"{op} boom")

    def head(self, key):
        self._record("head", key)
        return super().head(key)

    def get(self, key):
        self._record("get", key)
        return super().get(key)

    def put(self, key, body, **kwargs):
        self._record("put", key)
        return super().put(key, body, **kwargs)

    def put_if_absent(self, key, body, **kwargs):
        self._record("put_if_absent", key)
        return super().put_if_absent(key, body, **kwargs)


@pytest.fixture
def settings() -> Settings:
    return Settings(storage_backend="memory", upload_token=TOKEN, quota_timezone="Asia/Taipei")


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def fixed_clock():
    # 2024-03-01 17:30 UTC is already 2024-03-02 in Taipei
    return lambda: datetime(2024, 3, 1, 17, 30, tzinfo=timezone.utc)


@pytest.fixture
def client(settings, store):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_blob_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {TOKEN}", "Content-Type": "application/json"}


@pytest.fixture
def store_factory():
    return RecordingStore
