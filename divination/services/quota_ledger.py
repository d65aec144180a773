"""
Once-per-day draw quota, kept as one marker object per (date, user).

check_and_mark is best-effort exactly-once. With a plain store it is two calls
(head, then put) and two concurrent requests for the same user can both pass.
When the store offers put_if_absent the mark is a single atomic create.
Every ambiguous outcome resolves to "already used".
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from divination.core.config import Settings, get_settings
from divination.schemas.deck import QuotaCheck
from divination.services.blob_store import BlobStore, BlobStoreError

logger = logging.getLogger(__name__)


def quota_key(date: str, user_id: str) -> str:
    return f"draw-{date}/{user_id}"


class QuotaLedger:
    def __init__(
        self,
        store: BlobStore,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.tz = ZoneInfo(self.settings.quota_timezone)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def conditional(self) -> bool:
        return self.settings.quota_conditional_put and self.store.supports_conditional_put

    def today(self) -> str:
        # the business day follows the configured zone, not UTC
        return self.clock().astimezone(self.tz).strftime("%Y%m%d")

    def peek(self, user_id: str) -> QuotaCheck:
        date = self.today()
        try:
            used = self.store.head(quota_key(date, user_id))
        except BlobStoreError as err:
            logger.warning("quota.peek_failed user=%s date=%s err=%s", user_id, date, err)
            used = True
        return QuotaCheck(used=used, date=date)

    def check_and_mark(self, user_id: str) -> QuotaCheck:
        date = self.today()
        key = quota_key(date, user_id)
        now = self.clock()
        body = json.dumps(
            {"userId": user_id, "date": date, "markedAt": now.astimezone(timezone.utc).isoformat()}
        ).encode("utf-8")

        if self.conditional:
            used = self._mark_conditional(key, body)
        else:
            used = self._mark_two_step(key, body)
        logger.info("quota.check user=%s date=%s used=%s", user_id, date, used)
        return QuotaCheck(used=used, date=date)

    def _mark_conditional(self, key: str, body: bytes) -> bool:
        try:
            created = self.store.put_if_absent(key, body, content_type="application/json", cache_control="no-store")
        except BlobStoreError as err:
            logger.warning("quota.mark_failed key=%s err=%s", key, err)
            return True
        return created is None

    def _mark_two_step(self, key: str, body: bytes) -> bool:
        try:
            if self.store.head(key):
                return True
        except BlobStoreError as err:
            logger.warning("quota.head_failed key=%s err=%s", key, err)
            return True
        # race window: another request may write between head and put
        try:
            self.store.put(key, body, content_type="application/json", cache_control="no-store")
        except BlobStoreError as err:
            logger.warning("quota.mark_failed key=%s err=%s", key, err)
            return True
        return False
