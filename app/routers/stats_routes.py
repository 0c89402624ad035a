# app/routers/stats_routes.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Query, Request

from app.core import config
from app.core.errors import UpstreamError
from app.core.responses import fail, ok
from app.services.espn_cbb import extract_scoring_leaders, extract_team_averages
from app.routers import deps

logger = logging.getLogger("app.stats_routes")
router = APIRouter(tags=["Stats"])


# -------------------------
# 📈  Scoring leaders across all teams
# -------------------------
# Declared before /stats/{teamId} so "leaders" is not taken for a team id.
@router.get("/stats/leaders")
async def scoring_leaders(
    request: Request,
    limit: int = Query(config.ESPN_LEADERS_LIMIT, description="How many leaders to request"),
):
    if limit < 1:
        return fail("limit must be a positive integer", 400)
    try:
        data = await deps.feed(request).fetch_leaders(limit)
    except UpstreamError as e:
        logger.error("stats leaders failed limit=%s: %s", limit, e)
        return fail(str(e))

    players = extract_scoring_leaders(data)
    logger.info("stats leaders limit=%s -> %d players", limit, len(players))
    return ok({"players": players})


# -------------------------
# 📊  Season averages for one team
# -------------------------
@router.get("/stats/{teamId}")
async def team_stats(request: Request, teamId: str):
    try:
        data = await deps.feed(request).fetch_team_stats(teamId)
    except UpstreamError as e:
        logger.error("stats failed team=%s: %s", teamId, e)
        return fail(str(e))
    return ok({"teamId": teamId, "players": extract_team_averages(data)})
