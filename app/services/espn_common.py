# app/services/espn_common.py

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from zoneinfo import ZoneInfo

from app.core import config
from app.core.errors import (
    UpstreamBadStatus,
    UpstreamError,
    UpstreamMalformed,
    UpstreamTimeout,
)

logger = logging.getLogger("app.espn_common")

HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; DirtyThirty/1.0)",
    "Accept": "application/json",
}


# -----------------------------------------------------------
# Shared HTTP helper: time-bounded, errors normalized
# -----------------------------------------------------------
async def _get_json(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    max_tries: Optional[int] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """
    Fetch one ESPN JSON document.

    Every attempt is bounded by `timeout` seconds in total (connect + read).
    Whatever goes wrong surfaces as an UpstreamError subclass:
      - UpstreamTimeout     the call did not finish in time (it is cancelled)
      - UpstreamBadStatus   non-2xx response
      - UpstreamMalformed   body is not a JSON object
    """
    tries = max_tries if max_tries is not None else config.FEED_MAX_TRIES
    limit = timeout if timeout is not None else config.FEED_TIMEOUT_SEC
    last: Optional[UpstreamError] = None

    for attempt in range(1, max(1, tries) + 1):
        try:
            async with httpx.AsyncClient(
                timeout=limit, headers=HEADERS, transport=transport
            ) as client:
                r = await asyncio.wait_for(client.get(url, params=params), timeout=limit)
            r.raise_for_status()
            data = r.json()
            if not isinstance(data, dict):
                raise UpstreamMalformed(f"ESPN returned {type(data).__name__}, expected object", url=url)
            return data
        except (asyncio.TimeoutError, httpx.TimeoutException):
            last = UpstreamTimeout(f"ESPN timed out after {limit:g}s", url=url)
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            last = UpstreamBadStatus(f"ESPN returned {code}", code, url=url)
        except ValueError as e:
            # json decode errors are ValueErrors
            last = UpstreamMalformed(f"ESPN returned unparseable body: {e}", url=url)
        except UpstreamMalformed as e:
            last = e
        except httpx.HTTPError as e:
            last = UpstreamError(f"ESPN request failed: {e!r}", url=url)
        logger.warning("espn_common _get_json attempt %s failed: %s", attempt, last)

    logger.error("espn_common _get_json giving up after %s attempts: %s", tries, last)
    raise last or UpstreamError("unknown http error", url=url)


class EspnFeed:
    """
    Read-only client for the ESPN endpoints the service consumes: the site
    API (scoreboard, rosters, team stats, summaries) and the common v3 API
    (scoring leaders).

    `transport` is handed to every httpx.AsyncClient; tests pass an
    httpx.MockTransport.
    """

    def __init__(
        self,
        base: str = config.ESPN_BASE,
        stats_base: str = config.ESPN_STATS_BASE,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base = base.rstrip("/")
        self.stats_base = stats_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _get(
        self, path: str, params: Optional[Dict[str, Any]] = None, base: Optional[str] = None
    ) -> Dict[str, Any]:
        return await _get_json(
            f"{base or self.base}{path}",
            params=params,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def fetch_scoreboard(self, date_yyyymmdd: str) -> Dict[str, Any]:
        params = {"dates": date_yyyymmdd, "groups": config.ESPN_GROUPS, "limit": config.ESPN_LIMIT}
        return await self._get("/scoreboard", params)

    async def fetch_roster(self, team_id: str) -> Dict[str, Any]:
        return await self._get(f"/teams/{team_id}/roster")

    async def fetch_team_stats(self, team_id: str) -> Dict[str, Any]:
        return await self._get(f"/teams/{team_id}/athletes/statistics")

    async def fetch_summary(self, game_id: str) -> Dict[str, Any]:
        return await self._get("/summary", {"event": game_id})

    async def fetch_leaders(self, limit: int = config.ESPN_LEADERS_LIMIT) -> Dict[str, Any]:
        """Qualified players across all teams, highest points per game first."""
        params = {
            "isqualified": "true",
            "page": 1,
            "limit": limit,
            "sort": "offensive.avgPoints:desc",
        }
        return await self._get("/statistics/byathlete", params, base=self.stats_base)


# -----------------------------------------------------------
# Date normalization helper (NY-local “today” by default)
# -----------------------------------------------------------
def today_yyyymmdd() -> str:
    try:
        now = datetime.now(ZoneInfo("America/New_York"))
    except Exception:
        # Fallback to naive local time if zoneinfo fails for any reason
        now = datetime.now()
    return now.strftime("%Y%m%d")


def normalize_date_param(date: Optional[str]) -> str:
    """
    Normalize a date for ESPN's `dates` param.

    Accepts:
      - None / ''       -> today's date in America/New_York, YYYYMMDD
      - 'YYYYMMDD'      -> returned unchanged
      - 'YYYY-MM-DD'    -> dashes removed
    Anything else raises ValueError.
    """
    if not date or not date.strip():
        return today_yyyymmdd()

    s = date.strip()
    digits = re.sub(r"\D", "", s)
    if len(digits) == 8:
        try:
            datetime.strptime(digits, "%Y%m%d")
        except ValueError:
            raise ValueError(f"invalid date '{date}'")
        return digits
    raise ValueError(f"invalid date '{date}', expected YYYYMMDD or YYYY-MM-DD")
