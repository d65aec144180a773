from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from divination.core.config import Settings, get_settings
from divination.core.db import get_engine
from divination.services.blob_store import BlobStore, MemoryBlobStore, SqlBlobStore
from divination.services.deck_cache import DeckCache
from divination.services.draw import DrawCoordinator
from divination.services.quota_ledger import QuotaLedger


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    settings = get_settings()
    if settings.storage_backend == "memory":
        return MemoryBlobStore()
    return SqlBlobStore(get_engine())


def get_deck_cache(
    store: BlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
) -> DeckCache:
    return DeckCache(store, settings)


def get_quota_ledger(
    store: BlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
) -> QuotaLedger:
    return QuotaLedger(store, settings)


def get_draw_coordinator(
    deck_cache: DeckCache = Depends(get_deck_cache),
    ledger: QuotaLedger = Depends(get_quota_ledger),
    settings: Settings = Depends(get_settings),
) -> DrawCoordinator:
    return DrawCoordinator(deck_cache, ledger, settings)
