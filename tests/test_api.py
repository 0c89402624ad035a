import pytest
from fastapi.testclient import TestClient

from app.core.errors import StoreUnavailable, UpstreamTimeout
from app.main import create_app

from conftest import FakeFeed, make_event, make_roster, make_stats, make_summary


@pytest.fixture()
def client(two_game_feed, store):
    application = create_app(feed=two_game_feed, store=store, start_poller=False)
    with TestClient(application) as c:
        yield c


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_today_players(client):
    r = client.get("/api/today-players", params={"date": "2025-03-20"})
    body = r.json()
    assert r.status_code == 200
    assert body["success"] is True
    data = body["data"]
    assert data["date"] == "20250320"
    assert len(data["games"]) == 2
    assert len(data["players"]) == 8
    assert data["teamCount"] == 4
    assert data["liveCount"] == 0


def test_today_players_empty_day(store):
    application = create_app(feed=FakeFeed(), store=store, start_poller=False)
    with TestClient(application) as c:
        body = c.get("/api/today-players", params={"date": "20250320"}).json()
    assert body["success"] is True
    assert body["data"]["players"] == []
    assert body["data"]["message"] == "No games today"


def test_schedule_failure_is_a_server_error(store):
    application = create_app(feed=FakeFeed(scoreboard=UpstreamTimeout("ESPN timed out after 8s")), store=store, start_poller=False)
    with TestClient(application) as c:
        r = c.get("/api/today-players", params={"date": "20250320"})
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "ESPN timed out after 8s"}


def test_bad_date_is_rejected(client):
    r = client.get("/api/today-players", params={"date": "soon"})
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_live_in_progress_game_reconciled_on_load(store):
    feed = FakeFeed(
        scoreboard={"events": [make_event("7", [("1", "A", "Alpha")], state="in", name="STATUS_IN_PROGRESS")]},
        rosters={"1": make_roster(("5", "Al Pha"))},
        summaries={"7": make_summary(points={"5": 13})},
    )
    application = create_app(feed=feed, store=store, start_poller=False)
    with TestClient(application) as c:
        data = c.get("/api/today-players", params={"date": "20250320"}).json()["data"]
    assert data["liveCount"] == 1
    assert data["players"][0]["points"] == 13
    assert data["players"][0]["isLive"] is True


def test_live_scores_reconciles_current_slate(client, two_game_feed):
    client.get("/api/today-players", params={"date": "20250320"})
    two_game_feed.summaries = {"401": make_summary(points={"11": 17}), "402": make_summary(points={})}
    body = client.get("/api/live-scores", params={"games": "401,402"}).json()
    assert body["success"] is True
    assert body["data"]["reconciled"] is True
    assert body["data"]["scores"]["401"]["players"] == {"11": 17}
    assert body["data"]["liveCount"] == 2


def test_live_scores_without_slate_fetches_directly(client, two_game_feed):
    two_game_feed.summaries = {"401": make_summary(points={"11": 4})}
    body = client.get("/api/live-scores", params={"games": "401,999"}).json()
    assert body["data"]["reconciled"] is False
    assert list(body["data"]["scores"]) == ["401"]


def test_boxscore(client, two_game_feed):
    two_game_feed.summaries = {"401": make_summary(points={"11": 8})}
    data = client.get("/api/boxscore/401").json()["data"]
    assert data["status"] == "IN_PROGRESS"
    assert data["players"][0]["points"] == 8
    assert client.get("/api/boxscore/555").status_code == 500


def test_pick_flow_and_leaderboard(client, two_game_feed):
    client.get("/api/today-players", params={"date": "20250320"})
    r = client.post("/api/picks", json={"userId": "u1", "userName": "Ann", "date": "20250320", "p1Id": "401_11", "p2Id": "402_31"})
    assert r.status_code == 200
    r = client.post("/api/picks", json={"userId": "u2", "userName": "Bob", "date": "20250320", "p1Id": "401_12", "p2Id": "402_41"})
    assert r.status_code == 200

    two_game_feed.summaries = {
        "401": make_summary(points={"11": 20, "12": 15}),
        "402": make_summary(points={"31": 10, "41": 25}),
    }
    client.get("/api/live-scores")

    board = client.get("/api/leaderboard", params={"date": "20250320"}).json()["data"]["standings"]
    assert [(e["userId"], e["total"], e["outcome"]) for e in board] == [("u1", 30, "VALID"), ("u2", 40, "BUST")]
    assert board[0]["perfect"] is True

    results = client.get("/api/results", params={"date": "20250320"}).json()["data"]
    assert results["winner"]["userId"] == "u1"

    pick = client.get("/api/picks/u1", params={"date": "20250320"}).json()["data"]
    assert pick["slot1"]["id"] == "401_11"
    assert pick["slot1"]["points"] == 20


def test_pick_after_lock_is_conflict(client, two_game_feed):
    client.get("/api/today-players", params={"date": "20250320"})
    two_game_feed.summaries = {"401": make_summary(points={}), "402": make_summary(points={})}
    client.get("/api/live-scores")
    r = client.post("/api/picks", json={"userId": "u1", "userName": "Ann", "date": "20250320", "p1Id": "401_11"})
    assert r.status_code == 409
    assert r.json()["success"] is False


def test_pick_without_user_is_bad_request(client):
    r = client.post("/api/picks", json={"p1Id": "401_11", "date": "20250320"})
    assert r.status_code == 400


# ---------- season stats ----------

def test_team_stats(client):
    body = client.get("/api/stats/1").json()
    assert body["success"] is True
    assert body["data"]["teamId"] == "1"
    assert body["data"]["players"] == [
        {"id": "11", "name": None, "avgPoints": 19.2},
        {"id": "12", "name": None, "avgPoints": 14.0},
    ]


def test_team_stats_upstream_failure(client):
    r = client.get("/api/stats/999")
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "ESPN returned 404"}


def test_scoring_leaders_route_is_not_a_team_id(store):
    leaders = make_stats(**{"7": "24.1", "8": "22.0"})
    feed = FakeFeed(leaders=leaders)
    application = create_app(feed=feed, store=store, start_poller=False)
    with TestClient(application) as c:
        body = c.get("/api/stats/leaders", params={"limit": 2}).json()
    assert feed.calls.get("stats") is None
    assert feed.leaders_limit == 2
    assert body["success"] is True
    assert body["data"]["players"] == {
        "7": {"name": None, "team": None, "avgPoints": 24.1},
        "8": {"name": None, "team": None, "avgPoints": 22.0},
    }


def test_scoring_leaders_default_limit_and_failure(store, timeout_error):
    feed = FakeFeed(leaders=timeout_error)
    application = create_app(feed=feed, store=store, start_poller=False)
    with TestClient(application) as c:
        r = c.get("/api/stats/leaders")
        bad = c.get("/api/stats/leaders", params={"limit": 0})
    assert feed.leaders_limit == 500
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "ESPN timed out after 8s"}
    assert bad.status_code == 400


# ---------- pick store outage ----------

class FailingStore:
    """Pick store whose backend is down."""

    async def get(self, key):
        raise StoreUnavailable("connection refused")

    async def set(self, key, value):
        raise StoreUnavailable("connection refused")

    async def list(self, prefix):
        raise StoreUnavailable("connection refused")


@pytest.fixture()
def down_client(two_game_feed):
    application = create_app(feed=two_game_feed, store=FailingStore(), start_poller=False)
    with TestClient(application) as c:
        yield c


def test_pick_save_with_store_down_is_server_error(down_client):
    r = down_client.post("/api/picks", json={"userId": "u1", "userName": "Ann", "date": "20250320", "p1Id": "401_11"})
    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert "connection refused" in body["error"]


@pytest.mark.parametrize("path", ["/api/leaderboard", "/api/results", "/api/picks/u1"])
def test_reads_with_store_down_are_server_errors(down_client, path):
    r = down_client.get(path, params={"date": "20250320"})
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "connection refused"}
