from datetime import datetime

from timetracker.core.authorization import Role

PASSWORD = "Str0ng!Pass"


def _login(client, user):
    r = client.post("/auth/login", json={"email": user.email, "password": PASSWORD, "location": "HQ"})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['data']['tokens']['accessToken']}"}


def _parse(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_today_before_and_after_login(client, user_factory, auth_headers):
    user = user_factory(password=PASSWORD)

    before = client.get("/daily-login/today", headers=auth_headers(user)).json()["data"]
    assert before == {"tracker": None, "hasStartedDay": False, "canEndDay": False, "user": None}

    headers = _login(client, user)
    after = client.get("/daily-login/today", headers=headers).json()["data"]
    assert after["hasStartedDay"] is True
    assert after["canEndDay"] is True
    assert after["tracker"]["location"] == "HQ"
    assert after["tracker"]["workingHours"] == "N/A"


def test_end_day_once(client, user_factory):
    user = user_factory(password=PASSWORD)
    headers = _login(client, user)

    r = client.post("/daily-login/end-day", headers=headers, json={"notes": "Wrapped up"})
    assert r.status_code == 200, r.text
    assert r.json()["data"]["tracker"]["notes"] == "Wrapped up"
    assert r.json()["data"]["tracker"]["dayEndTime"] is not None

    again = client.post("/daily-login/end-day", headers=headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Day has already been ended."
    ended_at = r.json()["data"]["tracker"]["dayEndTime"]
    reported = again.json()["data"]["endTime"]
    assert reported.endswith("Z")
    assert _parse(reported) == _parse(ended_at)

    today = client.get("/daily-login/today", headers=headers).json()["data"]
    assert today["canEndDay"] is False


def test_end_day_without_login(client, user_factory, auth_headers):
    r = client.post("/daily-login/end-day", headers=auth_headers(user_factory()))

    assert r.status_code == 400
    assert r.json()["message"] == "No login recorded for today. Cannot end day without starting it."


def test_history_and_tracker_update(client, user_factory):
    user = user_factory(password=PASSWORD)
    headers = _login(client, user)

    history = client.get("/daily-login/history", headers=headers).json()["data"]
    assert history["summary"] == {
        "totalDays": 1,
        "completedDays": 0,
        "totalWorkingHours": 0.0,
        "averageHoursPerDay": 0.0,
    }
    tracker_id = history["trackers"][0]["id"]

    r = client.put(f"/daily-login/tracker/{tracker_id}", headers=headers, json={"notes": "Remote"})
    assert r.status_code == 200, r.text
    assert r.json()["data"]["tracker"]["notes"] == "Remote"

    rejected = client.put(f"/daily-login/tracker/{tracker_id}", headers=headers, json={"loginDate": "2020-01-01"})
    assert rejected.status_code == 400


def test_manager_views(client, user_factory, auth_headers):
    manager = user_factory(role=Role.MANAGER, name="Manager", password=PASSWORD)
    worker = user_factory(name="Worker", password=PASSWORD)
    _login(client, worker)
    manager_headers = _login(client, manager)

    today = client.get(f"/daily-login/user/{worker.id}/today", headers=manager_headers)
    assert today.status_code == 200, today.text
    assert today.json()["data"]["hasStartedDay"] is True
    assert today.json()["data"]["user"]["id"] == worker.id

    history = client.get(f"/daily-login/users/{worker.id}/history", headers=manager_headers)
    assert history.json()["data"]["summary"]["totalDays"] == 1

    overview = client.get("/daily-login/team-overview", headers=manager_headers)
    assert overview.status_code == 200, overview.text
    data = overview.json()["data"]
    assert data["summary"] == {
        "totalUsers": 2,
        "usersStartedToday": 2,
        "usersEndedToday": 0,
        "usersCurrentlyActive": 2,
    }
    assert {m["user"]["name"] for m in data["teamOverview"]} == {"Manager", "Worker"}

    assert client.get("/daily-login/team-overview", headers=auth_headers(worker)).status_code == 403
    assert client.get(f"/daily-login/user/{manager.id}/today", headers=auth_headers(worker)).status_code == 403
    assert client.get("/daily-login/user/missing/today", headers=manager_headers).status_code == 404
