import pytest
from fastapi.testclient import TestClient

from api.main import app, get_habit_store
from habithub.memory_store import MemoryStore

USER = {"user_id": "user-1"}


@pytest.fixture
def client():
    store = MemoryStore()
    app.dependency_overrides[get_habit_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def add_habit(client, name="Coding", target=60):
    resp = client.post("/habit/add", json={**USER, "name": name, "target_minutes": target})
    assert resp.status_code == 200
    return resp.json()["habit_id"]


def test_health(client):
    assert client.get("/").json()["status"] == "healthy"
    assert client.get("/health").status_code == 200


def test_log_then_daily_stats(client):
    coding = add_habit(client)
    reading = add_habit(client, "Reading", target=30)
    client.post("/habit/log", json={**USER, "habit_id": coding, "duration_minutes": 30, "notes": "a"})
    resp = client.post("/habit/log", json={**USER, "habit_id": coding, "duration_minutes": 45, "notes": "b"})
    assert resp.json()["log"]["duration_minutes"] == 75
    assert resp.json()["log"]["notes"] == "a; b"
    assert resp.json()["message"] == "Logged 45m"

    body = client.post("/stats/daily", json=USER).json()
    assert body["stats"]["total_time"] == 75
    assert body["stats"]["completed_habits"] == 1
    assert body["stats"]["progress"] == 50
    assert body["total_time_text"] == "1h 15m"
    by_name = {h["name"]: h for h in body["habits"]}
    assert by_name["Coding"]["progress"] == 125
    assert by_name["Coding"]["bar"] == 1.0
    assert by_name["Reading"]["time_spent"] == 0
    assert by_name["Reading"]["habit_id"] == reading
    assert set(body["quote"]) == {"text", "author"}


@pytest.mark.parametrize("minutes", [0, 481])
def test_log_duration_out_of_range(client, minutes):
    coding = add_habit(client)
    resp = client.post("/habit/log", json={**USER, "habit_id": coding, "duration_minutes": minutes})
    assert resp.status_code == 422


def test_missing_user_is_unauthorized(client):
    resp = client.post("/habit/list", json={})
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "User not authenticated"}


def test_unknown_habit_is_not_found(client):
    resp = client.post("/habit/log", json={**USER, "habit_id": "missing", "duration_minutes": 10})
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_bad_category_and_period_are_rejected(client):
    resp = client.post("/habit/add", json={**USER, "name": "Chess", "category": "games"})
    assert resp.status_code == 422
    resp = client.post("/stats/analytics", json={**USER, "period": "fortnight"})
    assert resp.status_code == 422


def test_session_start_and_stop(client):
    coding = add_habit(client)
    session = client.post("/session/start", json={**USER, "habit_id": coding}).json()["session"]
    active = client.post("/session/active", json=USER).json()["sessions"]
    assert [s["id"] for s in active] == [session["id"]]

    stopped = client.post("/session/stop", json={**USER, "session_id": session["id"]}).json()
    assert stopped["session"]["is_active"] is False
    assert stopped["session"]["duration_minutes"] == 0
    assert client.post("/session/active", json=USER).json()["sessions"] == []


def test_update_archive_and_remove(client):
    coding = add_habit(client)
    resp = client.post("/habit/update", json={**USER, "habit_id": coding, "target_minutes": 90})
    assert resp.json()["habit"]["target_duration_minutes"] == 90

    client.post("/habit/archive", json={**USER, "habit_id": coding})
    assert client.post("/habit/list", json=USER).json()["habits"] == []

    assert client.post("/habit/remove", json={**USER, "habit_id": coding}).json()["success"]
    assert client.post("/habit/remove", json={**USER, "habit_id": coding}).status_code == 404


def test_seed_weekly_and_analytics(client):
    assert client.post("/habit/seed", json=USER).json()["created"] == 6
    habits = client.post("/habit/list", json=USER).json()["habits"]
    client.post("/habit/log", json={**USER, "habit_id": habits[0]["id"], "duration_minutes": 60})

    days = client.post("/stats/weekly", json=USER).json()["days"]
    assert len(days) == 7
    assert sum(d["completed"] for d in days) == 1

    report = client.post("/stats/analytics", json={**USER, "period": "all-time"}).json()
    assert report["total_hours"] == 1.0
    assert report["active_habits"] == 6
    assert report["habits"][0]["hours"] == 1.0


def test_clear_today_and_all(client):
    coding = add_habit(client)
    client.post("/habit/log", json={**USER, "habit_id": coding, "duration_minutes": 20})
    client.post("/data/clear-today", json=USER)
    assert client.post("/stats/daily", json=USER).json()["stats"]["total_time"] == 0
    assert len(client.post("/habit/list", json=USER).json()["habits"]) == 1

    client.post("/data/clear-all", json=USER)
    assert client.post("/habit/list", json=USER).json()["habits"] == []


def test_day_activity(client):
    coding = add_habit(client)
    client.post("/habit/log", json={**USER, "habit_id": coding, "duration_minutes": 25, "notes": "kata"})
    client.post("/session/start", json={**USER, "habit_id": coding})

    body = client.post("/stats/activity", json=USER).json()
    assert body["success"] is True
    kinds = sorted(a["kind"] for a in body["activity"])
    assert kinds == ["log", "session"]
    log = next(a for a in body["activity"] if a["kind"] == "log")
    assert (log["habit"], log["minutes"], log["notes"]) == ("Coding", 25, "kata")

    empty = client.post("/stats/activity", json={**USER, "day": "2020-01-01"}).json()
    assert empty == {"success": True, "date": "2020-01-01", "activity": []}
