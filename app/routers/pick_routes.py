# app/routers/pick_routes.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Request

from app.core.errors import PickRejected, StoreUnavailable, UpstreamError
from app.core.responses import fail, ok
from app.models.types import PickRequest
from app.services.espn_common import normalize_date_param
from app.services.picks import leaderboard_entries, load_pick, save_pick
from app.services.scoring import final_results, rank_entries
from app.routers import deps

logger = logging.getLogger("app.pick_routes")
router = APIRouter(tags=["Picks"])


# -------------------------
# ✍️  Save / load a pick
# -------------------------
@router.post("/picks")
async def post_pick(request: Request, payload: PickRequest = Body(...)):
    """
    Upsert the caller's pick for a date. Newly selected players must not be
    locked; players already held keep their slot.
    """
    user_id = (payload.get("userId") or "").strip()
    if not user_id:
        return fail("userId is required", 400)
    try:
        slate = await deps.slate_for(request, payload.get("date"))
    except ValueError as e:
        return fail(str(e), 400)
    except UpstreamError as e:
        logger.error("pick save could not load slate: %s", e)
        return fail(str(e))

    try:
        record = await save_pick(
            deps.store(request),
            slate,
            user_id,
            (payload.get("userName") or "").strip(),
            payload.get("p1Id"),
            payload.get("p2Id"),
        )
    except PickRejected as e:
        return fail(str(e), 409)
    except StoreUnavailable as e:
        logger.error("pick save failed user=%s: %s", user_id, e)
        return fail(f"pick store unavailable: {e}")
    return ok(record)


@router.get("/picks/{userId}")
async def get_pick(request: Request, userId: str, date: Optional[str] = None):
    try:
        slate = await deps.slate_for(request, date)
        pick = await load_pick(deps.store(request), slate, userId)
    except ValueError as e:
        return fail(str(e), 400)
    except (UpstreamError, StoreUnavailable) as e:
        logger.error("pick load failed user=%s: %s", userId, e)
        return fail(str(e))
    return ok(pick)


# -------------------------
# 🏆  Standings
# -------------------------
@router.get("/leaderboard")
async def leaderboard(request: Request, date: Optional[str] = None):
    try:
        d = normalize_date_param(date)
        entries = await leaderboard_entries(deps.store(request), d, deps.registry(request).get(d))
    except ValueError as e:
        return fail(str(e), 400)
    except StoreUnavailable as e:
        logger.error("leaderboard failed date=%s: %s", date, e)
        return fail(str(e))
    return ok({"date": d, "standings": rank_entries(entries)})


@router.get("/results")
async def results(request: Request, date: Optional[str] = None):
    try:
        d = normalize_date_param(date)
        entries = await leaderboard_entries(deps.store(request), d, deps.registry(request).get(d))
    except ValueError as e:
        return fail(str(e), 400)
    except StoreUnavailable as e:
        logger.error("results failed date=%s: %s", date, e)
        return fail(str(e))
    return ok({"date": d, **final_results(entries)})
