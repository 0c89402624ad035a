# app/services/aggregator.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from app.core import config
from app.core.errors import UpstreamError
from app.models.types import Game, Player, TeamSummary
from app.services.espn_cbb import (
    extract_avg_points_map,
    extract_games,
    extract_roster,
    headshot_for,
    matchup_label,
    parse_timestamp,
)
from app.services.espn_common import EspnFeed, normalize_date_param
from app.services.slate import SlateState

logger = logging.getLogger("app.aggregator")


async def _team_roster(feed: EspnFeed, team_id: str) -> List[Dict[str, Any]]:
    try:
        return extract_roster(await feed.fetch_roster(team_id))
    except UpstreamError as e:
        logger.warning("AGG roster failed team=%s: %s", team_id, e)
        return []


async def _team_averages(feed: EspnFeed, team_id: str) -> Dict[str, Optional[float]]:
    try:
        return extract_avg_points_map(await feed.fetch_team_stats(team_id))
    except UpstreamError as e:
        logger.warning("AGG stats failed team=%s: %s", team_id, e)
        return {}


async def _fan_out(feed: EspnFeed, team_ids: List[str]) -> Tuple[Dict[str, list], Dict[str, dict]]:
    """
    Roster + season-average lookups for every team, all in flight together.
    Each call is isolated: a failure is an empty contribution for that team.
    """
    sem = asyncio.Semaphore(config.FEED_CONCURRENCY)

    async def guarded(coro):
        async with sem:
            return await coro

    roster_jobs = [guarded(_team_roster(feed, tid)) for tid in team_ids]
    stats_jobs = [guarded(_team_averages(feed, tid)) for tid in team_ids]
    results = await asyncio.gather(*roster_jobs, *stats_jobs, return_exceptions=True)

    rosters: Dict[str, list] = {}
    averages: Dict[str, dict] = {}
    n = len(team_ids)
    for i, tid in enumerate(team_ids):
        r, s = results[i], results[n + i]
        if isinstance(r, BaseException):
            logger.warning("AGG roster crashed team=%s: %r", tid, r)
            r = []
        if isinstance(s, BaseException):
            logger.warning("AGG stats crashed team=%s: %r", tid, s)
            s = {}
        rosters[tid] = r
        averages[tid] = s
    return rosters, averages


def _build_player(
    game: Game,
    team: Dict[str, Any],
    athlete: Dict[str, Any],
    averages: Dict[str, Optional[float]],
    now: datetime,
) -> Optional[Player]:
    aid = athlete.get("id")
    if aid is None or aid == "":
        return None
    aid = str(aid)

    start = parse_timestamp(game["scheduledStart"])
    status = game["status"]
    summary: TeamSummary = {
        "id": team["id"],
        "abbreviation": team.get("abbreviation") or "—",
        "displayName": team.get("displayName") or "—",
        "logoUrl": team.get("logoUrl"),
    }
    return {
        "id": f"{game['id']}_{aid}",
        "athleteId": aid,
        "displayName": athlete.get("displayName") or athlete.get("fullName"),
        "shortName": athlete.get("shortName"),
        "headshotUrl": headshot_for(athlete, aid),
        "position": (athlete.get("position") or {}).get("abbreviation") or "G",
        "jerseyNumber": athlete.get("jersey"),
        "team": summary,
        "matchupLabel": matchup_label(game),
        "gameId": game["id"],
        "gameStart": game["scheduledStart"],
        "isLocked": status != "SCHEDULED" or (start is not None and now >= start),
        "isLive": status == "IN_PROGRESS",
        "isOver": status == "FINAL",
        "points": None,  # filled by the live reconciler
        "avgPoints": averages.get(aid),
    }


async def build_slate(
    feed: EspnFeed,
    date: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SlateState:
    """
    Resolve the Game/Team/Player universe for one date.

    Only a failed scoreboard fetch escalates (as UpstreamError); everything
    downstream of it degrades per team.
    """
    d = normalize_date_param(date)
    now = now or datetime.now(timezone.utc)

    scoreboard = await feed.fetch_scoreboard(d)
    games = extract_games(scoreboard)
    if not games:
        logger.info("AGG date=%s -> no games", d)
        return SlateState(d, message="No games today")

    team_ids: List[str] = []
    for g in games:
        for t in g["teams"]:
            if t["id"] not in team_ids:
                team_ids.append(t["id"])

    logger.info("AGG date=%s games=%d teams=%d", d, len(games), len(team_ids))
    rosters, averages = await _fan_out(feed, team_ids)

    players: List[Player] = []
    seen = set()
    for g in games:
        for team in g["teams"]:
            for athlete in rosters.get(team["id"], []):
                p = _build_player(g, team, athlete, averages.get(team["id"], {}), now)
                if p is None or p["id"] in seen:
                    continue
                seen.add(p["id"])
                players.append(p)

    logger.info("AGG date=%s -> %d players", d, len(players))
    return SlateState(d, games=games, players=players)
