# app/services/scoring.py
"""
Dirty Thirty scoring: two players' combined points against a target of 30.

Everything here is pure and total. Absent or non-numeric point values are
treated as "not known yet", never as an error.
"""
from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Optional

from app.core.config import TARGET_POINTS
from app.models.types import LeaderboardEntry, Outcome, RankedEntry


def _num(v: Any) -> Optional[float]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    if math.isnan(v) or math.isinf(v):
        return None
    return v


def combined_total(p1_points: Any, p2_points: Any) -> Optional[float]:
    a, b = _num(p1_points), _num(p2_points)
    if a is None or b is None:
        return None
    return a + b


def classify(total: Any, target: int = TARGET_POINTS) -> Outcome:
    t = _num(total)
    if t is None:
        return "PENDING"
    if t > target:
        return "BUST"
    return "VALID"


def distance(total: Any, target: int = TARGET_POINTS) -> Optional[float]:
    """Points short of the target; None unless the total is VALID."""
    t = _num(total)
    if t is None or t > target:
        return None
    return target - t


def rank_entries(entries: Iterable[LeaderboardEntry], target: int = TARGET_POINTS) -> List[RankedEntry]:
    """
    Order: VALID by distance to target (ties keep insertion order and share a
    rank), then BUST, then PENDING, both in insertion order.
    """
    valid: List[Dict[str, Any]] = []
    busts: List[Dict[str, Any]] = []
    pending: List[Dict[str, Any]] = []
    for e in entries:
        outcome = classify(e.get("total"), target)
        row = dict(e)
        row["outcome"] = outcome
        row["distance"] = distance(e.get("total"), target)
        row["perfect"] = outcome == "VALID" and row["distance"] == 0
        row["rank"] = None
        {"VALID": valid, "BUST": busts, "PENDING": pending}[outcome].append(row)

    # sorted() is stable, so equal distances keep insertion order
    valid = sorted(valid, key=lambda r: r["distance"])

    prev = None
    for i, row in enumerate(valid):
        if prev is not None and row["distance"] == prev["distance"]:
            row["rank"] = prev["rank"]
        else:
            row["rank"] = i + 1
        prev = row

    ordered = valid + busts + pending
    for i, row in enumerate(ordered):
        row["position"] = i + 1
    return ordered  # type: ignore[return-value]


def final_results(entries: Iterable[LeaderboardEntry], target: int = TARGET_POINTS) -> Dict[str, Any]:
    """
    Final-results view: entries without a total are dropped before ranking;
    the winner is the best-ranked VALID entry, if there is one.
    """
    finished = [e for e in entries if _num(e.get("total")) is not None]
    ranked = rank_entries(finished, target)
    winner = next((r for r in ranked if r["outcome"] == "VALID"), None)
    return {"winner": winner, "standings": ranked}
