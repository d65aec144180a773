from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from divination.deps.auth import read_json_body, require_json_content_type, require_upload_token
from divination.deps.store import get_deck_cache, get_draw_coordinator
from divination.services.deck_cache import DeckCache
from divination.services.draw import DrawCoordinator


router = APIRouter(tags=["decks"])
logger = logging.getLogger(__name__)


@router.post(
    "/updateCacheCardId",
    dependencies=[Depends(require_upload_token), Depends(require_json_content_type)],
)
async def update_cache_card_id(request: Request, deck_cache: DeckCache = Depends(get_deck_cache)) -> JSONResponse:
    """Replace the cached pool of one or more decks.

    Body is ``[{deck, ids}, ...]`` or a single ``{deck, ids}``. Returns 200 when
    every entry was saved and 207 when at least one failed.
    """
    body = await read_json_body(request)
    result = await run_in_threadpool(deck_cache.update_batch, body)
    return JSONResponse(
        {
            "ok": result.fully_ok,
            "fullyOk": result.fully_ok,
            "saved": [s.model_dump() for s in result.saved],
            "failures": [f.model_dump(exclude_none=True) for f in result.failures],
        },
        status_code=200 if result.fully_ok else 207,
    )


@router.get("/getCardId")
def get_card_id(
    deck: Optional[str] = Query(None, description="love / money / career / daily"),
    n: Optional[str] = Query("1", description="number of cards, clamped to [1, 50]"),
    coordinator: DrawCoordinator = Depends(get_draw_coordinator),
) -> JSONResponse:
    drawn = coordinator.draw(deck, n)
    logger.info("deck.draw deck=%s n=%s pool=%s", drawn.deck.value, len(drawn.ids), drawn.pool_size)
    return JSONResponse({
        "ok": True,
        "deck": drawn.deck.value,
        "ids": drawn.ids,
        "poolSize": drawn.pool_size,
        "updatedAt": drawn.updated_at,
    })
