# app/services/slate.py
from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.models.types import Game, GameStatus, PickRecord, Player
from app.services.espn_cbb import parse_timestamp

logger = logging.getLogger("app.slate")


_STATUS_ORDER = {"SCHEDULED": 0, "IN_PROGRESS": 1, "FINAL": 2}


def advance_status(current: GameStatus, reported: Optional[GameStatus]) -> GameStatus:
    """
    Game status only moves forward: SCHEDULED -> IN_PROGRESS -> FINAL.
    An absent or earlier reported status leaves the current one in place.
    """
    if reported is None or _STATUS_ORDER[reported] < _STATUS_ORDER[current]:
        return current
    return reported


class SlateState:
    """
    The Game/Team/Player universe for one date, plus the picks that are
    actively tracked against it.

    The aggregator creates it; afterwards only the live reconciler mutates the
    volatile fields. Everyone else reads through snapshot().
    """

    def __init__(self, date: str, games: Optional[List[Game]] = None,
                 players: Optional[List[Player]] = None, message: Optional[str] = None):
        self.date = date
        self.games: Dict[str, Game] = {g["id"]: g for g in games or []}
        self.players: Dict[str, Player] = {p["id"]: p for p in players or []}
        self.picks: Dict[str, PickRecord] = {}
        self.message = message
        self.built_at = datetime.now(timezone.utc)
        # last reconciliation cycle applied per game id
        self.applied_seq: Dict[str, int] = {}

    @property
    def game_ids(self) -> List[str]:
        return list(self.games.keys())

    @property
    def is_empty(self) -> bool:
        return not self.games

    def players_for_game(self, game_id: str) -> List[Player]:
        return [p for p in self.players.values() if p["gameId"] == game_id]

    def live_game_count(self) -> int:
        return sum(1 for g in self.games.values() if g["status"] == "IN_PROGRESS")

    def has_live_games(self) -> bool:
        return self.live_game_count() > 0

    def all_final(self) -> bool:
        return bool(self.games) and all(g["status"] == "FINAL" for g in self.games.values())

    def apply_clock_locks(self, now: Optional[datetime] = None) -> int:
        """Lock every player whose game has reached its scheduled start."""
        now = now or datetime.now(timezone.utc)
        locked = 0
        for p in self.players.values():
            if p["isLocked"]:
                continue
            start = parse_timestamp(p["gameStart"])
            if start is not None and now >= start:
                p["isLocked"] = True
                locked += 1
        return locked

    def carry_over(self, previous: "SlateState") -> None:
        """
        Keep what an earlier build of the same date already knew: locks never
        revert, known points and game state survive a rebuild, and tracked
        picks stay tracked.
        """
        if previous.date != self.date:
            return
        carried = set()
        for gid, old_game in previous.games.items():
            g = self.games.get(gid)
            if g is not None and advance_status(g["status"], old_game["status"]) != g["status"]:
                g["status"] = old_game["status"]
                g["clockDisplay"] = old_game["clockDisplay"]
                g["period"] = old_game["period"]
                carried.add(gid)
        for pid, old in previous.players.items():
            p = self.players.get(pid)
            if p is None:
                continue
            p["isLocked"] = p["isLocked"] or old["isLocked"]
            if p["points"] is None:
                p["points"] = old["points"]
            if p["gameId"] in carried:
                p["isLive"] = old["isLive"]
                p["isOver"] = old["isOver"]
        self.picks.update(previous.picks)
        self.applied_seq.update(previous.applied_seq)

    def players_snapshot(self) -> Dict[str, Player]:
        """Deep copy of the players keyed by id; later cycles never touch it."""
        return copy.deepcopy(self.players)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "games": copy.deepcopy(list(self.games.values())),
            "players": copy.deepcopy(list(self.players.values())),
            "picks": copy.deepcopy(self.picks),
            "message": self.message,
        }


class SlateRegistry:
    """Slates by date; the most recently built one is the 'current' slate."""

    def __init__(self):
        self._slates: Dict[str, SlateState] = {}
        self._current: Optional[str] = None

    def get(self, date: str) -> Optional[SlateState]:
        return self._slates.get(date)

    def put(self, slate: SlateState) -> SlateState:
        previous = self._slates.get(slate.date)
        if previous is not None:
            slate.carry_over(previous)
            logger.info("SLATE rebuilt date=%s (carried over %d players)", slate.date, len(previous.players))
        self._slates[slate.date] = slate
        self._current = slate.date
        return slate

    @property
    def current(self) -> Optional[SlateState]:
        return self._slates.get(self._current) if self._current else None

    def active(self) -> List[SlateState]:
        """Slates that still have games worth polling."""
        return [s for s in self._slates.values() if s.games and not s.all_final()]

    def clear(self) -> None:
        self._slates.clear()
        self._current = None
