# app/services/live.py
from __future__ import annotations

import asyncio
import itertools
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

from app.core import config
from app.core.errors import UpstreamError
from app.models.types import GameScore
from app.services.espn_cbb import extract_game_score
from app.services.espn_common import EspnFeed
from app.services.slate import SlateRegistry, SlateState, advance_status

logger = logging.getLogger("app.live")

_cycle_counter = itertools.count(1)


async def fetch_game_scores(feed: EspnFeed, game_ids: List[str]) -> Dict[str, GameScore]:
    """
    Box scores for every game id, fetched concurrently.
    A game whose fetch fails is simply missing from the result.
    """
    async def one(gid: str) -> Optional[GameScore]:
        try:
            return extract_game_score(gid, await feed.fetch_summary(gid))
        except UpstreamError as e:
            logger.warning("LIVE summary failed game=%s: %s", gid, e)
            return None

    ids = [g for g in game_ids if g]
    results = await asyncio.gather(*(one(g) for g in ids), return_exceptions=True)
    scores: Dict[str, GameScore] = {}
    for gid, res in zip(ids, results):
        if isinstance(res, BaseException):
            logger.warning("LIVE summary crashed game=%s: %r", gid, res)
            continue
        if res is not None:
            scores[gid] = res
    return scores


def apply_scores(slate: SlateState, scores: Dict[str, GameScore], seq: int) -> int:
    """
    Merge box scores into the slate in place. Returns the number of players
    whose points or flags changed.

    A game's result is only applied when `seq` is newer than the last cycle
    applied to that game, so a late response can never overwrite a fresher one.
    """
    changed = 0
    for gid, score in scores.items():
        game = slate.games.get(gid)
        if game is None:
            continue
        if seq <= slate.applied_seq.get(gid, 0):
            logger.info("LIVE discarding stale result game=%s seq=%s", gid, seq)
            continue
        slate.applied_seq[gid] = seq

        status = advance_status(game["status"], score["status"])
        if score["status"] is not None and score["status"] == status:
            game["status"] = status
            game["statusDetail"] = score["statusDetail"] or game["statusDetail"]
            game["clockDisplay"] = score["clock"] if score["clock"] is not None else game["clockDisplay"]
            game["period"] = score["period"] if score["period"] is not None else game["period"]
        elif score["status"] is not None:
            logger.info("LIVE ignoring status %s for game=%s already %s", score["status"], gid, status)
        for team in game["teams"]:
            live = score["teamScores"].get(team["id"])
            if live is not None:
                team["liveScore"] = live

        is_live = status == "IN_PROGRESS"
        is_over = status == "FINAL"
        for p in slate.players_for_game(gid):
            before = (p["points"], p["isLive"], p["isOver"], p["isLocked"])
            p["isLive"] = is_live
            p["isOver"] = is_over
            p["isLocked"] = status != "SCHEDULED" or p["isLocked"]
            pts = score["players"].get(p["athleteId"])
            if pts is not None:
                p["points"] = pts
            if before != (p["points"], p["isLive"], p["isOver"], p["isLocked"]):
                changed += 1
    return changed


def refresh_pick_points(slate: SlateState) -> List[str]:
    """Copy current player points onto tracked picks; returns user ids that changed."""
    touched: List[str] = []
    for user_id, pick in slate.picks.items():
        dirty = False
        for slot in ("p1", "p2"):
            pid = pick.get(f"{slot}Id")
            player = slate.players.get(pid) if pid else None
            if player is None or player["points"] is None:
                continue
            if pick.get(f"{slot}Points") != player["points"]:
                pick[f"{slot}Points"] = player["points"]
                dirty = True
        if dirty:
            touched.append(user_id)
    return touched


async def reconcile(
    feed: EspnFeed,
    slate: SlateState,
    game_ids: Optional[List[str]] = None,
    now: Optional[datetime] = None,
    seq: Optional[int] = None,
) -> Dict[str, GameScore]:
    """
    One reconciliation cycle against `slate`.

    Fetches every known game's box score, merges points/status, applies
    clock locks and refreshes tracked pick slots. Never clears known points:
    a game that could not be fetched keeps whatever it had.
    """
    seq = seq if seq is not None else next(_cycle_counter)
    ids = game_ids if game_ids is not None else slate.game_ids
    scores = await fetch_game_scores(feed, ids)
    changed = apply_scores(slate, scores, seq)
    slate.apply_clock_locks(now)
    touched = refresh_pick_points(slate)
    logger.info(
        "LIVE cycle=%s date=%s games=%d fetched=%d players_changed=%d picks_refreshed=%d",
        seq, slate.date, len(ids), len(scores), changed, len(touched),
    )
    return scores


class LivePoller:
    """
    Single-flight periodic reconciler.

    At most one cycle runs at a time; a cycle requested while another is in
    flight is skipped. The interval loop itself is the retry mechanism for
    transient feed failures.
    """

    def __init__(
        self,
        feed: EspnFeed,
        registry: SlateRegistry,
        interval: float = config.LIVE_POLL_INTERVAL_SEC,
        on_cycle: Optional[Callable[[SlateState], Awaitable[None]]] = None,
    ):
        self.feed = feed
        self.registry = registry
        self.interval = interval
        self.on_cycle = on_cycle
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self.skipped = 0

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    async def run_once(self, slate: Optional[SlateState] = None) -> bool:
        """Run one cycle unless one is already running. Returns True if it ran."""
        if self._lock.locked():
            self.skipped += 1
            logger.info("LIVE cycle skipped: previous cycle still in flight")
            return False
        async with self._lock:
            slates = [slate] if slate is not None else self.registry.active()
            for s in slates:
                await reconcile(self.feed, s, now=datetime.now(timezone.utc))
                if self.on_cycle is not None:
                    try:
                        await self.on_cycle(s)
                    except Exception:
                        logger.exception("LIVE on_cycle hook failed date=%s", s.date)
        return True

    async def _loop(self) -> None:
        logger.info("LIVE poller started interval=%ss", self.interval)
        while True:
            await asyncio.sleep(self.interval)
            if not self.registry.active():
                continue
            try:
                await self.run_once()
            except Exception:
                logger.exception("LIVE cycle failed")

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
