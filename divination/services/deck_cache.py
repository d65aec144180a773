"""
Deck cache: one JSON document per deck holding its pool of card IDs.

Updates replace the whole document (last writer wins); there is no merge.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from divination.core.config import Settings, get_settings
from divination.core.errors import NotFound, StorageFailed, ValidationFailed
from divination.schemas.deck import (
    BatchUpdateResult,
    DeckFailure,
    DeckName,
    DeckPool,
    DeckPoolDocument,
    SavedDeck,
)
from divination.services.blob_store import BlobStore, BlobStoreError

logger = logging.getLogger(__name__)


def deck_key(deck: DeckName) -> str:
    return f"cache/card-ids-{deck.value}.json"


def utc_now_iso(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _id_text(v: Any) -> str:
    # falsy values (0, False, None, "") count as empty; bools and whole floats print like JSON
    if not v:
        return ""
    if isinstance(v, bool):
        return "true"
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def normalize_ids(raw_ids: Any) -> List[str]:
    """Coerce to str, trim, drop empties and duplicates (first occurrence kept)."""
    if not isinstance(raw_ids, list):
        return []
    cleaned = (_id_text(v).strip() for v in raw_ids)
    return list(dict.fromkeys(v for v in cleaned if v))


def estimate_payload_bytes(body: Any) -> int:
    # same approximation the upload path uses for base64: 3/4 of the serialized length
    return (len(json.dumps(body, ensure_ascii=False, separators=(",", ":"))) * 3) // 4


def _entries_of(body: Any) -> List[Any]:
    # accepts [{deck, ids}, ...] or a single {deck, ids}
    return list(body) if isinstance(body, list) else [body]


class DeckCache:
    def __init__(
        self,
        store: BlobStore,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def check_batch_limits(self, entries: List[Any], payload_bytes: int) -> None:
        """Batch-level ceilings, checked before any storage call."""
        if not entries or (len(entries) == 1 and not entries[0]):
            raise ValidationFailed("empty_payload")
        if payload_bytes > self.settings.max_payload_bytes:
            raise ValidationFailed("payload_too_large", status_code=413)
        if len(entries) > self.settings.max_decks_per_request:
            raise ValidationFailed("too_many_decks", limit=self.settings.max_decks_per_request)

    def update_batch(self, body: Any, payload_bytes: Optional[int] = None) -> BatchUpdateResult:
        entries = _entries_of(body)
        if payload_bytes is None:
            payload_bytes = estimate_payload_bytes(body)
        self.check_batch_limits(entries, payload_bytes)

        result = BatchUpdateResult()
        for index, raw in enumerate(entries):
            saved, failure = self._update_one(index, raw)
            if saved is not None:
                result.saved.append(saved)
            else:
                result.failures.append(failure)

        logger.info(
            "deck.batch saved=%s failed=%s",
            [s.deck for s in result.saved],
            [(f.deck, f.reason) for f in result.failures],
        )
        return result

    def _update_one(self, index: int, raw: Any) -> tuple[Optional[SavedDeck], Optional[DeckFailure]]:
        e = raw if isinstance(raw, dict) else {}
        deck_raw = str(e.get("deck") or e.get("deckName") or "").strip()

        deck = DeckName.parse(deck_raw)
        if deck is None:
            return None, DeckFailure(deck=deck_raw, reason="invalid_deck", index=index)

        ids = normalize_ids(e.get("ids"))
        if not ids:
            return None, DeckFailure(deck=deck_raw, reason="empty_ids_array", index=index)
        if len(ids) > self.settings.max_ids_per_deck:
            return None, DeckFailure(
                deck=deck_raw, reason="too_many_ids", index=index, limit=self.settings.max_ids_per_deck
            )

        doc = DeckPoolDocument(ids=ids, total=len(ids), updatedAt=utc_now_iso(self.clock()))
        payload = doc.model_dump_json().encode("utf-8")
        # a single deck can exceed the ceiling even when the batch estimate did not
        if len(payload) > self.settings.max_payload_bytes:
            return None, DeckFailure(deck=deck_raw, reason="deck_payload_too_large", index=index)

        key = deck_key(deck)
        try:
            self.store.put(
                key,
                payload,
                content_type="application/json",
                cache_control="no-store",
                metadata={"via": "batch-update"},
            )
        except BlobStoreError as err:
            logger.error("deck.put_failed deck=%s key=%s err=%s", deck.value, key, err)
            return None, DeckFailure(deck=deck_raw, reason="store_put_error", index=index, detail=str(err))
        return SavedDeck(deck=deck.value, count=len(ids), key=key), None

    def read_pool(self, deck: DeckName) -> DeckPool:
        key = deck_key(deck)
        try:
            raw = self.store.get(key)
        except BlobStoreError as err:
            raise StorageFailed("store_get_error", deck=deck.value, detail=str(err)) from err
        if raw is None:
            raise NotFound("cache_not_found", deck=deck.value)

        try:
            obj = json.loads(raw)
        except ValueError as err:
            raise StorageFailed("store_get_error", deck=deck.value, detail=str(err)) from err

        ids_raw = obj.get("ids") if isinstance(obj, dict) else None
        ids = [str(v) for v in ids_raw if v is not None and str(v)] if isinstance(ids_raw, list) else []
        if not ids:
            raise NotFound("cache_empty", deck=deck.value)
        return DeckPool(deck=deck, ids=ids, updated_at=obj.get("updatedAt"))
