# app/routers/deps.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request

from app.core.store import PickStore
from app.services.aggregator import build_slate
from app.services.espn_common import EspnFeed, normalize_date_param
from app.services.live import LivePoller
from app.services.slate import SlateRegistry, SlateState

logger = logging.getLogger("app.routers")


def feed(request: Request) -> EspnFeed:
    return request.app.state.feed


def registry(request: Request) -> SlateRegistry:
    return request.app.state.registry


def poller(request: Request) -> LivePoller:
    return request.app.state.poller


def store(request: Request) -> PickStore:
    return request.app.state.store


async def refresh_slate(request: Request, date: Optional[str]) -> SlateState:
    """Aggregate the date, register it, and catch up on games already under way."""
    slate = registry(request).put(await build_slate(feed(request), date))
    if slate.has_live_games():
        logger.info("SLATE date=%s has %d live games, reconciling now", slate.date, slate.live_game_count())
        await poller(request).run_once(slate)
    return slate


async def slate_for(request: Request, date: Optional[str]) -> SlateState:
    d = normalize_date_param(date)
    slate = registry(request).get(d)
    if slate is None:
        slate = await refresh_slate(request, d)
    return slate
