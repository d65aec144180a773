from __future__ import annotations

import logging
import random
from typing import Any, Optional

from divination.core.config import Settings, get_settings
from divination.core.errors import ValidationFailed
from divination.schemas.deck import DailyDrawResult, DeckName, DrawResult
from divination.services.deck_cache import DeckCache
from divination.services.quota_ledger import QuotaLedger
from divination.services.sampling import sample

logger = logging.getLogger(__name__)


def parse_deck(raw: Optional[str]) -> DeckName:
    deck_raw = (raw or "").strip()
    if not deck_raw:
        raise ValidationFailed("missing_deck")
    # keep the value usable as a key segment
    deck_raw = deck_raw.replace("/", "-").replace("\\", "-")
    deck = DeckName.parse(deck_raw)
    if deck is None:
        raise ValidationFailed("invalid_deck", deck=deck_raw)
    return deck


def clamp_n(raw: Any, ceiling: int) -> int:
    """Clamp the requested count to [1, ceiling]; anything unparsable means 1."""
    try:
        n = int(str(raw).strip())
    except (TypeError, ValueError):
        return 1
    if n <= 0:
        return 1
    return min(n, ceiling)


class DrawCoordinator:
    def __init__(
        self,
        deck_cache: DeckCache,
        ledger: QuotaLedger,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.deck_cache = deck_cache
        self.ledger = ledger
        self.settings = settings or get_settings()
        self.rng = rng

    def _draw_from(self, deck: DeckName, n: int) -> DrawResult:
        pool = self.deck_cache.read_pool(deck)
        count = min(n, len(pool.ids))
        ids = sample(pool.ids, count, self.rng)
        return DrawResult(deck=deck, ids=ids, pool_size=len(pool.ids), updated_at=pool.updated_at)

    def draw(self, deck_raw: Optional[str], n_raw: Any = 1) -> DrawResult:
        deck = parse_deck(deck_raw)
        n = clamp_n(n_raw, self.settings.max_draw_n)
        return self._draw_from(deck, n)

    def daily_draw(self, user_id: Optional[str], deck_raw: Optional[str] = None, n_raw: Any = 1) -> DailyDrawResult:
        """Quota-gated draw. Marks the day and returns the card in one call.

        The deck is validated before the quota is touched. A missing or empty
        deck after a successful mark still consumes the day.
        """
        user_id = (user_id or "").strip()
        if not user_id:
            raise ValidationFailed("missing_user_id")
        deck = parse_deck(deck_raw or self.settings.daily_default_deck)
        n = clamp_n(n_raw, self.settings.max_daily_draw_n)

        check = self.ledger.check_and_mark(user_id)
        if check.used:
            return DailyDrawResult(used=True, date=check.date, deck=deck)

        drawn = self._draw_from(deck, n)
        logger.info("draw.daily user=%s deck=%s ids=%s", user_id, deck.value, drawn.ids)
        return DailyDrawResult(
            used=False,
            date=check.date,
            deck=deck,
            ids=drawn.ids,
            pool_size=drawn.pool_size,
            updated_at=drawn.updated_at,
        )
