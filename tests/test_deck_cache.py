import json
from datetime import datetime, timezone

import pytest

from divination.core.errors import NotFound, StorageFailed, ValidationFailed
from divination.schemas.deck import DeckName
from divination.services.deck_cache import DeckCache, deck_key, estimate_payload_bytes, normalize_ids


@pytest.fixture
def cache(store, settings):
    return DeckCache(store, settings, clock=lambda: datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc))


def test_normalize_ids():
    assert normalize_ids([" a", "a", "", None, 7, "b ", "  "]) == ["a", "7", "b"]
    assert normalize_ids("a,b") == []
    assert normalize_ids(None) == []
    # falsy values are empty, bools and whole floats print the JSON way
    assert normalize_ids([0, False, True, 1.0, 2.5, "a", 0.0]) == ["true", "1", "2.5", "a"]


def test_duplicates_are_counted_once(cache, store):
    result = cache.update_batch([{"deck": "love", "ids": ["a", "a", "b"]}])
    assert result.fully_ok
    assert [(s.deck, s.count) for s in result.saved] == [("love", 2)]

    doc = json.loads(store.get("cache/card-ids-love.json"))
    assert doc == {"ids": ["a", "b"], "total": 2, "updatedAt": "2024-05-06T07:08:09.000Z"}
    meta = store.stat("cache/card-ids-love.json")
    assert meta.content_type == "application/json"
    assert meta.cache_control == "no-store"


def test_single_object_body_is_accepted(cache):
    result = cache.update_batch({"deckName": "money", "ids": ["x"]})
    assert [s.deck for s in result.saved] == ["money"]


def test_every_entry_lands_in_exactly_one_list(cache, settings):
    entries = [
        {"deck": "love", "ids": ["1", "2"]},
        {"deck": "tarot", "ids": ["1"]},
        {"deck": "money", "ids": ["", "  "]},
        {"deck": "career", "ids": [str(i) for i in range(settings.max_ids_per_deck + 1)]},
        "not-an-object",
        {"deck": "daily", "ids": [1, 2, 3]},
    ]
    result = cache.update_batch(entries)
    assert not result.fully_ok
    assert [s.deck for s in result.saved] == ["love", "daily"]
    assert [(f.index, f.reason) for f in result.failures] == [
        (1, "invalid_deck"),
        (2, "empty_ids_array"),
        (3, "too_many_ids"),
        (4, "invalid_deck"),
    ]
    assert result.failures[2].limit == settings.max_ids_per_deck


def test_storage_failure_does_not_abort_other_entries(cache, store):
    original_put = store.put

    def flaky_put(key, body, **kwargs):
        if "money" in key:
            store.fail_on.add("put")
        try:
            return original_put(key, body, **kwargs)
        finally:
            store.fail_on.discard("put")

    store.put = flaky_put
    result = cache.update_batch([{"deck": "money", "ids": ["a"]}, {"deck": "love", "ids": ["b"]}])
    assert [s.deck for s in result.saved] == ["love"]
    assert result.failures[0].reason == "store_put_error"
    assert "boom" in result.failures[0].detail


def test_all_failed_batch_has_empty_saved(cache):
    result = cache.update_batch([{"deck": "nope", "ids": ["a"]}])
    assert result.saved == []
    assert not result.fully_ok


def test_batch_ceilings_are_checked_before_storage(store, settings):
    cache = DeckCache(store, settings.model_copy(update={"max_decks_per_request": 2}))
    with pytest.raises(ValidationFailed) as exc:
        cache.update_batch([{"deck": "love", "ids": ["a"]}] * 3)
    assert exc.value.code == "too_many_decks"

    with pytest.raises(ValidationFailed) as exc:
        cache.update_batch([])
    assert exc.value.code == "empty_payload"

    with pytest.raises(ValidationFailed) as exc:
        cache.update_batch({"deck": "love", "ids": ["a"]}, payload_bytes=settings.max_payload_bytes + 1)
    assert exc.value.code == "payload_too_large"
    assert exc.value.status_code == 413
    assert store.calls == []


def test_oversized_single_deck_is_rejected(store, settings):
    cache = DeckCache(store, settings.model_copy(update={"max_payload_bytes": 200}))
    ids = [f"card-{i:04d}" for i in range(30)]
    result = cache.update_batch([{"deck": "love", "ids": ids}], payload_bytes=10)
    assert result.failures[0].reason == "deck_payload_too_large"
    assert store.calls == []


def test_update_overwrites_whole_document(cache):
    cache.update_batch([{"deck": "career", "ids": ["a", "b", "c"]}])
    cache.update_batch([{"deck": "career", "ids": ["d"]}])
    assert cache.read_pool(DeckName.career).ids == ["d"]


def test_read_pool_is_stable_between_updates(cache):
    cache.update_batch([{"deck": "love", "ids": ["a", "b"]}])
    first = cache.read_pool(DeckName.love)
    second = cache.read_pool(DeckName.love)
    assert first.ids == second.ids == ["a", "b"]
    assert first.updated_at == second.updated_at == "2024-05-06T07:08:09.000Z"


def test_read_pool_signals(cache, store):
    with pytest.raises(NotFound) as exc:
        cache.read_pool(DeckName.daily)
    assert exc.value.code == "cache_not_found"

    store.put(deck_key(DeckName.daily), b'{"ids": [], "total": 0}')
    with pytest.raises(NotFound) as exc:
        cache.read_pool(DeckName.daily)
    assert exc.value.code == "cache_empty"

    store.put(deck_key(DeckName.daily), b"not json")
    with pytest.raises(StorageFailed):
        cache.read_pool(DeckName.daily)

    store.fail_on.add("get")
    with pytest.raises(StorageFailed) as exc:
        cache.read_pool(DeckName.daily)
    assert exc.value.code == "store_get_error"


def test_batch_estimate_uses_compact_json(cache, settings):
    # 4 full decks of 31-char ids sit just under 512KB once serialized without spaces
    body = [
        {"deck": deck, "ids": [f"{deck[:1]}{i:030d}" for i in range(settings.max_ids_per_deck)]}
        for deck in ("love", "money", "career", "daily")
    ]
    estimate = estimate_payload_bytes(body)
    assert settings.max_payload_bytes - 20000 < estimate <= settings.max_payload_bytes

    result = cache.update_batch(body)
    assert result.fully_ok
    assert [s.count for s in result.saved] == [settings.max_ids_per_deck] * 4
