# app/core/config.py
import os

# ESPN "site" API base for Men's college basketball
ESPN_BASE = os.getenv(
    "ESPN_BASE",
    "https://site.api.espn.com/apis/site/v2/sports/basketball/mens-college-basketball",
)
ESPN_GROUPS = int(os.getenv("ESPN_GROUPS", "100"))  # 100 = NCAA Tournament bracket
ESPN_LIMIT = int(os.getenv("ESPN_LIMIT", "50"))
# ESPN "common v3" API base, used for the cross-team scoring leaders list
ESPN_STATS_BASE = os.getenv(
    "ESPN_STATS_BASE",
    "https://site.web.api.espn.com/apis/common/v3/sports/basketball/mens-college-basketball",
)
ESPN_LEADERS_LIMIT = int(os.getenv("ESPN_LEADERS_LIMIT", "500"))
HEADSHOT_URL = "https://a.espncdn.com/i/headshots/mens-college-basketball/players/full/{athlete_id}.png"

FEED_TIMEOUT_SEC = float(os.getenv("FEED_TIMEOUT_SEC", "8"))
FEED_MAX_TRIES = int(os.getenv("FEED_MAX_TRIES", "1"))
FEED_CONCURRENCY = int(os.getenv("FEED_CONCURRENCY", "8"))

LIVE_POLL_INTERVAL_SEC = float(os.getenv("LIVE_POLL_INTERVAL_SEC", "60"))
LIVE_POLLER_ENABLED = os.getenv("LIVE_POLLER_ENABLED", "1") not in ("0", "false", "no")

TARGET_POINTS = 30

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_SSL = os.getenv("DATABASE_SSL", "require")  # asyncpg ssl mode; "disable" turns it off
