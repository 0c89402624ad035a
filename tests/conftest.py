import asyncio
import copy
from typing import Any, Dict, Optional

import pytest

from app.core.errors import UpstreamBadStatus, UpstreamTimeout
from app.core.store import MemoryPickStore

FUTURE = "2099-03-20T16:15Z"
PAST = "2025-03-20T16:15Z"


def make_event(gid, teams, date=FUTURE, state="pre", name="STATUS_SCHEDULED", clock="0:00", period=0):
    return {
        "id": gid,
        "date": date,
        "name": " at ".join(t[2] for t in teams),
        "competitions": [{
            "status": {
                "displayClock": clock,
                "period": period,
                "type": {"name": name, "state": state, "detail": name},
            },
            "competitors": [
                {
                    "homeAway": "home" if i == 0 else "away",
                    "score": "0",
                    "team": {"id": tid, "abbreviation": abbr, "displayName": full, "logo": f"https://logo/{tid}.png"},
                }
                for i, (tid, abbr, full) in enumerate(teams)
            ],
        }],
    }


def make_roster(*athletes):
    return {
        "athletes": [
            {"id": aid, "displayName": name, "shortName": name.split()[-1], "jersey": str(i), "position": {"abbreviation": "F"}}
            for i, (aid, name) in enumerate(athletes)
        ]
    }


def make_stats(**avgs):
    return {
        "athletes": [
            {
                "athlete": {"id": aid},
                "statistics": {"splits": {"categories": [
                    {"name": "scoring", "stats": [{"name": "avgPoints", "abbreviation": "PTS", "displayValue": val}]}
                ]}},
            }
            for aid, val in avgs.items()
        ]
    }


BOX_KEYS = ["MIN", "FG", "3PT", "FT", "OREB", "DREB", "REB", "AST", "STL", "BLK", "TO", "PF", "+/-", "PTS"]


def make_summary(state="in", name="STATUS_IN_PROGRESS", points=None, keys=BOX_KEYS, clock="12:34", period=2,
                 team_scores=None):
    """points: {athlete_id: pts}; rows are laid out by `keys`."""
    rows = []
    for aid, pts in (points or {}).items():
        stats = ["0"] * len(keys or BOX_KEYS)
        layout = keys or BOX_KEYS
        if "PTS" in layout:
            stats[layout.index("PTS")] = str(pts)
        rows.append({"athlete": {"id": aid, "displayName": f"Player {aid}"}, "stats": stats, "starter": True})
    group: Dict[str, Any] = {"athletes": rows}
    if keys is not None:
        group["keys"] = list(keys)
    return {
        "header": {"competitions": [{
            "status": {"displayClock": clock, "period": period, "type": {"name": name, "state": state, "detail": name}},
            "competitors": [{"id": tid, "team": {"id": tid}, "score": str(s)} for tid, s in (team_scores or {}).items()],
        }]},
        "boxscore": {"players": [{"team": {"abbreviation": "X", "displayName": "Team X"}, "statistics": [group]}]},
    }


class FakeFeed:
    """
    Stand-in for EspnFeed. Each endpoint maps an id to a payload or an
    exception instance to raise. `delay` makes summary calls slow.
    """

    def __init__(self, scoreboard=None, rosters=None, stats=None, summaries=None, leaders=None, delay: float = 0.0):
        self.scoreboard = scoreboard if scoreboard is not None else {"events": []}
        self.rosters = rosters or {}
        self.stats = stats or {}
        self.summaries = summaries or {}
        self.leaders = leaders if leaders is not None else {"athletes": []}
        self.leaders_limit: Optional[int] = None
        self.delay = delay
        self.calls: Dict[str, int] = {}

    def _count(self, what):
        self.calls[what] = self.calls.get(what, 0) + 1

    @staticmethod
    def _answer(table, key):
        value = table.get(key)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise UpstreamBadStatus("ESPN returned 404", 404)
        return copy.deepcopy(value)

    async def fetch_scoreboard(self, date_yyyymmdd: str):
        self._count("scoreboard")
        if isinstance(self.scoreboard, Exception):
            raise self.scoreboard
        return copy.deepcopy(self.scoreboard)

    async def fetch_roster(self, team_id: str):
        self._count("roster")
        return self._answer(self.rosters, team_id)

    async def fetch_team_stats(self, team_id: str):
        self._count("stats")
        return self._answer(self.stats, team_id)

    async def fetch_summary(self, game_id: str):
        self._count("summary")
        if self.delay:
            await asyncio.sleep(self.delay)
        return self._answer(self.summaries, game_id)

    async def fetch_leaders(self, limit: int = 500):
        self._count("leaders")
        self.leaders_limit = limit
        if isinstance(self.leaders, Exception):
            raise self.leaders
        return copy.deepcopy(self.leaders)


@pytest.fixture()
def two_game_feed():
    """Two future games, four teams, two players each."""
    return FakeFeed(
        scoreboard={"events": [
            make_event("401", [("1", "DUKE", "Duke Blue Devils"), ("2", "UNC", "North Carolina Tar Heels")]),
            make_event("402", [("3", "UK", "Kentucky Wildcats"), ("4", "KU", "Kansas Jayhawks")]),
        ]},
        rosters={
            "1": make_roster(("11", "Cooper Flagg"), ("12", "Kon Knueppel")),
            "2": make_roster(("21", "RJ Davis"), ("22", "Seth Trimble")),
            "3": make_roster(("31", "Otega Oweh"), ("32", "Lamont Butler")),
            "4": make_roster(("41", "Hunter Dickinson"), ("42", "Zeke Mayo")),
        },
        stats={
            "1": make_stats(**{"11": "19.2", "12": "14.0"}),
            "2": make_stats(**{"21": "17.1"}),
            "3": make_stats(**{"31": "16.2", "32": "--"}),
            "4": make_stats(**{"41": "17.4", "42": "0.0"}),
        },
    )


@pytest.fixture()
def timeout_error():
    return UpstreamTimeout("ESPN timed out after 8s")


@pytest.fixture()
def store():
    return MemoryPickStore()
