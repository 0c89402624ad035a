# app/services/espn_cbb.py
"""
Pure parsers for ESPN men's college basketball JSON.

Nothing in here does I/O. Every upstream field is treated as optional: a
missing or oddly-typed value degrades to None / empty, never to an exception.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from app.core import config
from app.models.types import Game, GameScore, GameStatus, Team

# ESPN box score stat order for basketball when a group ships no `keys` list:
# [MIN, FG, 3PT, FT, OREB, DREB, REB, AST, STL, BLK, TO, PF, +/-, PTS]
DEFAULT_POINTS_INDEX = 13
POINTS_KEY = "PTS"


# ---------- small coercion helpers ----------

def _str_id(v: Any) -> Optional[str]:
    if v is None or v == "":
        return None
    return str(v)


def _to_int(v: Any) -> Optional[int]:
    try:
        return int(str(v).strip())
    except (TypeError, ValueError):
        return None


def _to_float(v: Any) -> Optional[float]:
    if isinstance(v, bool):
        return None
    try:
        f = float(v) if isinstance(v, (int, float)) else float(str(v).strip())
    except (TypeError, ValueError):
        return None
    return None if math.isnan(f) or math.isinf(f) else f


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """ESPN dates look like '2025-03-20T16:15Z'."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ---------- status ----------

def map_status(status: Optional[Dict[str, Any]]) -> GameStatus:
    stype = (status or {}).get("type") or {}
    state = stype.get("state")
    if state == "pre":
        return "SCHEDULED"
    if state == "in":
        return "IN_PROGRESS"
    if state == "post":
        return "FINAL"

    name = stype.get("name") or ""
    if not name or name == "STATUS_SCHEDULED":
        return "SCHEDULED"
    if "FINAL" in name:
        return "FINAL"
    return "IN_PROGRESS"


# ---------- scoreboard ----------

def _extract_team(competitor: Dict[str, Any]) -> Optional[Team]:
    team = competitor.get("team") or {}
    tid = _str_id(team.get("id"))
    if not tid:
        return None
    return {
        "id": tid,
        "abbreviation": team.get("abbreviation"),
        "displayName": team.get("displayName") or team.get("name"),
        "logoUrl": team.get("logo") or ((team.get("logos") or [{}])[0]).get("href"),
        "liveScore": _to_int(competitor.get("score")),
    }


def extract_game(ev: Dict[str, Any]) -> Optional[Game]:
    """
    Flatten an ESPN scoreboard event into a Game.
    Teams keep the feed's competitor order; events without an id are skipped.
    """
    gid = _str_id(ev.get("id"))
    if not gid:
        return None
    comp = (ev.get("competitions") or [{}])[0] or {}
    status = comp.get("status") or ev.get("status") or {}

    teams: List[Team] = []
    for c in comp.get("competitors") or []:
        t = _extract_team(c or {})
        if t:
            teams.append(t)

    return {
        "id": gid,
        "name": ev.get("name"),
        "scheduledStart": ev.get("date") or comp.get("date"),
        "status": map_status(status),
        "statusDetail": (status.get("type") or {}).get("detail"),
        "clockDisplay": status.get("displayClock"),
        "period": _to_int(status.get("period")),
        "teams": teams,
    }


def extract_games(scoreboard: Dict[str, Any]) -> List[Game]:
    games: List[Game] = []
    for ev in scoreboard.get("events") or []:
        g = extract_game(ev or {})
        if g:
            games.append(g)
    return games


def matchup_label(game: Game) -> str:
    return " vs ".join(t.get("abbreviation") or t.get("displayName") or t["id"] for t in game["teams"])


# ---------- roster ----------

def extract_roster(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Roster athletes as a flat list. ESPN ships college rosters flat and some
    other rosters grouped by position ({"position": ..., "items": [...]}).
    """
    out: List[Dict[str, Any]] = []
    for entry in data.get("athletes") or []:
        if not isinstance(entry, dict):
            continue
        if isinstance(entry.get("items"), list):
            out.extend(a for a in entry["items"] if isinstance(a, dict))
        else:
            out.append(entry)
    return out


# ---------- season averages ----------

def _find_avg_points(categories: List[Dict[str, Any]]) -> Optional[float]:
    def _match(stat: Dict[str, Any]) -> bool:
        return (
            stat.get("name") == "avgPoints"
            or stat.get("abbreviation") == POINTS_KEY
            or stat.get("displayName") == "PPG"
        )

    # Scoring category first, then anything that carries a points average.
    ordered = sorted(
        (c for c in categories if isinstance(c, dict)),
        key=lambda c: 0 if (c.get("name") == "scoring" or c.get("displayName") == "Scoring") else 1,
    )
    for cat in ordered:
        for stat in cat.get("stats") or []:
            if not isinstance(stat, dict) or not _match(stat):
                continue
            value = _to_float(stat.get("displayValue"))
            if value is None:
                value = _to_float(stat.get("value"))
            return value
    return None


def _entry_avg_points(entry: Dict[str, Any]) -> Optional[float]:
    # team feed ships `statistics` as a list of splits, byathlete as one object
    stats = entry.get("statistics")
    if isinstance(stats, list):
        stats = stats[0] if stats else {}
    categories = ((stats or {}).get("splits") or {}).get("categories") or []
    return _find_avg_points(categories)


def extract_avg_points_map(data: Dict[str, Any]) -> Dict[str, Optional[float]]:
    """
    Map athlete id -> season points per game from the team statistics feed.
    A value that does not parse is None; 0.0 is a real average and kept.
    """
    out: Dict[str, Optional[float]] = {}
    for entry in data.get("athletes") or []:
        if not isinstance(entry, dict):
            continue
        aid = _str_id((entry.get("athlete") or {}).get("id"))
        if not aid:
            continue
        out[aid] = _entry_avg_points(entry)
    return out


def extract_team_averages(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Season points per game for one team's athletes, in feed order."""
    players: List[Dict[str, Any]] = []
    for entry in data.get("athletes") or []:
        if not isinstance(entry, dict):
            continue
        athlete = entry.get("athlete") or {}
        aid = _str_id(athlete.get("id"))
        if not aid:
            continue
        players.append({
            "id": aid,
            "name": athlete.get("displayName"),
            "avgPoints": _entry_avg_points(entry),
        })
    return players


def extract_scoring_leaders(data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Athlete id -> {name, team, avgPoints} from the byathlete statistics list.
    Dict order follows the feed, which is sorted by points per game.
    """
    out: Dict[str, Dict[str, Any]] = {}
    for entry in data.get("athletes") or []:
        if not isinstance(entry, dict):
            continue
        athlete = entry.get("athlete") or {}
        aid = _str_id(athlete.get("id"))
        if not aid:
            continue
        team = athlete.get("team") or {}
        out[aid] = {
            "name": athlete.get("displayName"),
            "team": team.get("abbreviation") or athlete.get("teamShortName"),
            "avgPoints": _entry_avg_points(entry),
        }
    return out


# ---------- box score ----------

def points_from_stats(stats: List[Any], keys: Optional[List[str]]) -> Optional[int]:
    """
    Points for one athlete row of a box score stat group.

    The column is located through the group's own `keys`. Only when the
    group has no `keys` list at all do we fall back to DEFAULT_POINTS_INDEX.
    A `keys` list without PTS yields None. A present but non-numeric cell
    ("--", DNP) counts as 0.
    """
    if keys is None:
        idx = DEFAULT_POINTS_INDEX
    else:
        try:
            idx = list(keys).index(POINTS_KEY)
        except ValueError:
            return None
    if idx >= len(stats):
        return 0
    value = _to_float(stats[idx])
    return int(value) if value is not None else 0


def _summary_status(data: Dict[str, Any]) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    comp = (((data.get("header") or {}).get("competitions")) or [{}])[0] or {}
    return comp.get("status") or {}, comp.get("competitors") or []


def extract_box_players(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Player rows of a summary box score, with points resolved by stat key."""
    rows: List[Dict[str, Any]] = []
    for team_data in ((data.get("boxscore") or {}).get("players")) or []:
        team_data = team_data or {}
        team = team_data.get("team") or {}
        for group in team_data.get("statistics") or []:
            group = group or {}
            keys = group.get("keys")
            if not isinstance(keys, list):
                keys = None
            for a in group.get("athletes") or []:
                athlete = (a or {}).get("athlete") or {}
                aid = _str_id(athlete.get("id"))
                if not aid:
                    continue
                stats = a.get("stats") or []
                rows.append({
                    "id": aid,
                    "name": athlete.get("displayName"),
                    "shortName": athlete.get("shortName"),
                    "headshot": (athlete.get("headshot") or {}).get("href"),
                    "position": (athlete.get("position") or {}).get("abbreviation") or "—",
                    "team": team.get("abbreviation"),
                    "teamFull": team.get("displayName"),
                    "points": points_from_stats(stats, keys),
                    "active": a.get("active") is not False,
                    "starter": bool(a.get("starter")),
                    "stats": stats,
                    "statKeys": keys or [],
                })
    return rows


def extract_game_score(game_id: str, data: Dict[str, Any]) -> GameScore:
    """Live state of one game from its summary document."""
    status, competitors = _summary_status(data)
    team_scores: Dict[str, Optional[int]] = {}
    for c in competitors:
        tid = _str_id(((c or {}).get("team") or {}).get("id")) or _str_id((c or {}).get("id"))
        if tid:
            team_scores[tid] = _to_int(c.get("score"))

    players: Dict[str, int] = {}
    for row in extract_box_players(data):
        if row["points"] is not None:
            players[row["id"]] = row["points"]

    return {
        "gameId": str(game_id),
        # no status block at all means "unknown", not "scheduled"
        "status": map_status(status) if status else None,
        "statusDetail": (status.get("type") or {}).get("detail"),
        "clock": status.get("displayClock"),
        "period": _to_int(status.get("period")),
        "teamScores": team_scores,
        "players": players,
    }


def headshot_for(athlete: Dict[str, Any], athlete_id: str) -> str:
    return (athlete.get("headshot") or {}).get("href") or config.HEADSHOT_URL.format(athlete_id=athlete_id)
