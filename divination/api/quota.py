from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from divination.core.errors import ValidationFailed
from divination.deps.store import get_draw_coordinator, get_quota_ledger
from divination.services.draw import DrawCoordinator
from divination.services.quota_ledger import QuotaLedger


router = APIRouter(tags=["quota"])


@router.get("/dailyDraw")
def daily_draw(
    userId: Optional[str] = Query(None, description="caller-supplied user id"),
    deck: Optional[str] = Query(None, description="defaults to the daily deck"),
    n: Optional[str] = Query("1"),
    coordinator: DrawCoordinator = Depends(get_draw_coordinator),
) -> JSONResponse:
    # check-and-mark and draw in one round trip
    result = coordinator.daily_draw(userId, deck, n)
    data = {
        "ok": True,
        "used": result.used,
        "date": result.date,
        "deck": result.deck.value,
        "ids": result.ids,
    }
    if not result.used:
        data["poolSize"] = result.pool_size
        data["updatedAt"] = result.updated_at
    return JSONResponse(data)


@router.get("/quota/today")
def quota_today(
    userId: Optional[str] = Query(None),
    ledger: QuotaLedger = Depends(get_quota_ledger),
) -> JSONResponse:
    user_id = (userId or "").strip()
    if not user_id:
        raise ValidationFailed("missing_user_id")
    check = ledger.peek(user_id)
    return JSONResponse({"ok": True, "userId": user_id, "used": check.used, "date": check.date})
