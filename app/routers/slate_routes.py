# app/routers/slate_routes.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request

from app.core.errors import UpstreamError
from app.core.responses import fail, ok
from app.services.espn_cbb import extract_box_players, extract_game_score
from app.services.espn_common import normalize_date_param
from app.services.live import fetch_game_scores
from app.services.slate import SlateState
from app.routers import deps

logger = logging.getLogger("app.slate_routes")
router = APIRouter(tags=["Slate"])


def _scores_from_slate(slate: SlateState, game_ids: list) -> Dict[str, Any]:
    snap = slate.snapshot()
    players = snap["players"]
    out: Dict[str, Any] = {}
    for g in snap["games"]:
        if g["id"] not in game_ids:
            continue
        out[g["id"]] = {
            "gameId": g["id"],
            "status": g["status"],
            "statusDetail": g["statusDetail"],
            "clock": g["clockDisplay"],
            "period": g["period"],
            "teamScores": {t["id"]: t["liveScore"] for t in g["teams"]},
            "players": {
                p["athleteId"]: p["points"]
                for p in players
                if p["gameId"] == g["id"] and p["points"] is not None
            },
        }
    return out


# -------------------------
# 🏀  Raw scoreboard
# -------------------------
@router.get("/games")
async def games(request: Request, date: Optional[str] = None):
    try:
        d = normalize_date_param(date)
    except ValueError as e:
        return fail(str(e), 400)
    try:
        data = await deps.feed(request).fetch_scoreboard(d)
    except UpstreamError as e:
        logger.error("games failed date=%s: %s", d, e)
        return fail(str(e))
    return ok(data)


# -------------------------
# 🧮  Aggregated players for a date
# -------------------------
@router.get("/today-players")
async def today_players(request: Request, date: Optional[str] = None):
    """
    Schedule + rosters + season averages for every game of the date.
    Games already in progress are reconciled before responding.
    """
    try:
        normalize_date_param(date)
    except ValueError as e:
        return fail(str(e), 400)
    try:
        slate = await deps.refresh_slate(request, date)
    except UpstreamError as e:
        logger.error("today-players failed date=%s: %s", date, e)
        return fail(str(e))

    snap = slate.snapshot()
    team_count = len({t["id"] for g in snap["games"] for t in g["teams"]})
    return ok({
        "date": snap["date"],
        "games": snap["games"],
        "players": snap["players"],
        "teamCount": team_count,
        "liveCount": slate.live_game_count(),
        "message": snap["message"],
    })


# -------------------------
# 🔴  Live scores (one reconciliation cycle)
# -------------------------
@router.get("/live-scores")
async def live_scores(request: Request, games: str = Query("", description="Comma-separated game ids")):
    ids = [g for g in games.split(",") if g]
    slate = deps.registry(request).current

    if slate is not None and (not ids or set(ids) <= set(slate.game_ids)):
        ids = ids or slate.game_ids
        ran = await deps.poller(request).run_once(slate)
        return ok({
            "scores": _scores_from_slate(slate, ids),
            "liveCount": slate.live_game_count(),
            "reconciled": ran,
        })

    if not ids:
        return ok({"scores": {}, "liveCount": 0, "reconciled": False})

    scores = await fetch_game_scores(deps.feed(request), ids)
    live = sum(1 for s in scores.values() if s["status"] == "IN_PROGRESS")
    return ok({"scores": scores, "liveCount": live, "reconciled": False})


# -------------------------
# 📋  Single game box score
# -------------------------
@router.get("/boxscore/{gameId}")
async def boxscore(request: Request, gameId: str):
    try:
        data = await deps.feed(request).fetch_summary(gameId)
    except UpstreamError as e:
        logger.error("boxscore failed game=%s: %s", gameId, e)
        return fail(str(e))

    score = extract_game_score(gameId, data)
    return ok({
        "gameId": gameId,
        "status": score["status"],
        "clock": score["clock"],
        "period": score["period"],
        "players": extract_box_players(data),
    })
