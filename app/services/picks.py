# app/services/picks.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from app.core.errors import PickRejected
from app.core.store import PickStore
from app.models.types import LeaderboardEntry, PickRecord, Player
from app.services.espn_cbb import parse_timestamp
from app.services.scoring import combined_total
from app.services.slate import SlateState

logger = logging.getLogger("app.picks")

SLOTS = ("p1", "p2")


def pick_key(date: str, user_id: str) -> str:
    return f"picks:{date}:{user_id}"


def date_prefix(date: str) -> str:
    return f"picks:{date}:"


def is_locked_now(player: Player, now: datetime) -> bool:
    if player["isLocked"]:
        return True
    start = parse_timestamp(player["gameStart"])
    return start is not None and now >= start


def _validate_slots(
    slate: SlateState,
    requested: Tuple[Optional[str], Optional[str]],
    existing: Optional[Dict[str, Any]],
    now: datetime,
) -> List[Optional[Player]]:
    ids = [pid or None for pid in requested]
    chosen = [pid for pid in ids if pid]
    if len(chosen) != len(set(chosen)):
        raise PickRejected("both slots hold the same player")

    held = {existing.get(f"{s}Id") for s in SLOTS} if existing else set()
    out: List[Optional[Player]] = []
    for pid in ids:
        if pid is None:
            out.append(None)
            continue
        player = slate.players.get(pid)
        if player is None:
            if pid in held:
                # kept from an earlier save; the player is just not in this build
                out.append(None)
                continue
            raise PickRejected(f"unknown player '{pid}'")
        # locking freezes new selections only; a slot already holding the player stays
        if pid not in held and is_locked_now(player, now):
            raise PickRejected(f"{player['displayName'] or pid} is locked, their game has started")
        out.append(player)
    return out


async def save_pick(
    store: PickStore,
    slate: SlateState,
    user_id: str,
    user_name: str,
    p1_id: Optional[str],
    p2_id: Optional[str],
    now: Optional[datetime] = None,
) -> PickRecord:
    """Upsert the one pick a user has for the slate's date."""
    if not user_id:
        raise PickRejected("userId is required")
    now = now or datetime.now(timezone.utc)
    key = pick_key(slate.date, user_id)
    existing = await store.get(key)

    players = _validate_slots(slate, (p1_id, p2_id), existing, now)
    record: Dict[str, Any] = {
        "userId": user_id,
        "userName": user_name or user_id,
        "date": slate.date,
        "updatedAt": now.isoformat(),
    }
    for slot, pid, player in zip(SLOTS, (p1_id, p2_id), players):
        if player is not None:
            record[f"{slot}Id"] = player["id"]
            record[f"{slot}Name"] = player["displayName"]
            record[f"{slot}Points"] = player["points"]
        elif pid and existing and existing.get(f"{slot}Id") == pid:
            record[f"{slot}Id"] = pid
            record[f"{slot}Name"] = existing.get(f"{slot}Name")
            record[f"{slot}Points"] = existing.get(f"{slot}Points")
        else:
            record[f"{slot}Id"] = None
            record[f"{slot}Name"] = None
            record[f"{slot}Points"] = None

    await store.set(key, record)
    slate.picks[user_id] = dict(record)  # type: ignore[assignment]
    logger.info("PICK saved date=%s user=%s p1=%s p2=%s", slate.date, user_id, record["p1Id"], record["p2Id"])
    return record  # type: ignore[return-value]


async def load_pick(store: PickStore, slate: SlateState, user_id: str) -> Optional[Dict[str, Any]]:
    """
    Stored pick for (user, date) with slots resolved back to players of the
    current slate. A slot whose player is not in the slate resolves to None.
    """
    record = await store.get(pick_key(slate.date, user_id))
    if record is None:
        return None
    slate.picks.setdefault(user_id, record)  # type: ignore[arg-type]
    players = slate.players_snapshot()
    return {
        "userId": record.get("userId"),
        "userName": record.get("userName"),
        "date": record.get("date", slate.date),
        "updatedAt": record.get("updatedAt"),
        "slot1": players.get(record.get("p1Id")) if record.get("p1Id") else None,
        "slot2": players.get(record.get("p2Id")) if record.get("p2Id") else None,
    }


async def load_records(store: PickStore, date: str) -> List[Dict[str, Any]]:
    records = []
    for key in await store.list(date_prefix(date)):
        rec = await store.get(key)
        if rec:
            records.append(rec)
    return records


def _slot_points(players: Optional[Dict[str, Player]], record: Dict[str, Any], slot: str) -> Optional[float]:
    pid = record.get(f"{slot}Id")
    player = players.get(pid) if (players is not None and pid) else None
    if player is not None and player["points"] is not None:
        return player["points"]
    return record.get(f"{slot}Points")


def build_entries(records: List[Dict[str, Any]], players: Optional[Dict[str, Player]]) -> List[LeaderboardEntry]:
    """
    Leaderboard rows: current player points first, stored points as fallback.
    `players` is a snapshot keyed by player id, or None when no slate is tracked.
    """
    entries: List[LeaderboardEntry] = []
    for rec in records:
        p1 = _slot_points(players, rec, "p1")
        p2 = _slot_points(players, rec, "p2")
        entries.append({
            "userId": rec.get("userId"),
            "userName": rec.get("userName"),
            "p1Name": rec.get("p1Name"),
            "p1Points": p1,
            "p2Name": rec.get("p2Name"),
            "p2Points": p2,
            "total": combined_total(p1, p2),
        })
    return entries


async def leaderboard_entries(store: PickStore, date: str, slate: Optional[SlateState]) -> List[LeaderboardEntry]:
    records = await load_records(store, date)
    return build_entries(records, slate.players_snapshot() if slate is not None else None)


async def sync_tracked_points(store: PickStore, slate: SlateState) -> int:
    """Write refreshed slot points of tracked picks back to the store."""
    written = 0
    for user_id, pick in list(slate.picks.items()):
        key = pick_key(slate.date, user_id)
        stored = await store.get(key)
        if stored is None:
            continue
        if all(stored.get(f"{s}Points") == pick.get(f"{s}Points") for s in SLOTS):
            continue
        for s in SLOTS:
            if stored.get(f"{s}Id") == pick.get(f"{s}Id"):
                stored[f"{s}Points"] = pick.get(f"{s}Points")
        await store.set(key, stored)
        written += 1
    return written
