from timetracker.core.authorization import Role


def _entry(client, headers, payload, start, end, task_name="Manual"):
    r = client.post(
        "/timer/entries",
        headers=headers,
        json={**payload, "taskName": task_name, "startTime": start, "endTime": end},
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]["timeEntry"]


def test_timer_lifecycle(client, user_factory, target_factory, target_payload, auth_headers):
    user = user_factory()
    headers = auth_headers(user)
    payload = target_payload(target_factory(member=user))

    r = client.post("/timer/start", headers=headers, json={**payload, "taskName": "Write docs"})
    assert r.status_code == 201, r.text
    started = r.json()["data"]["timeEntry"]
    assert started["status"] == "open"
    assert started["endTime"] is None
    assert started["projectName"] == "Acme Corp"
    assert started["startTime"].endswith("Z")

    active = client.get("/timer/active", headers=headers).json()["data"]["activeTimer"]
    assert active["id"] == started["id"]

    conflict = client.post("/timer/start", headers=headers, json={**payload, "taskName": "Again"})
    assert conflict.status_code == 400
    assert conflict.json()["message"] == "You already have an active timer running for project: Acme Corp"
    assert conflict.json()["data"]["activeTimer"]["id"] == started["id"]

    stopped = client.put("/timer/stop", headers=headers, json={"description": "Finished"})
    assert stopped.status_code == 200, stopped.text
    body = stopped.json()["data"]["timeEntry"]
    assert body["status"] == "completed"
    assert body["description"] == "Finished"
    assert body["durationMinutes"] == 0

    assert client.get("/timer/active", headers=headers).json()["data"]["activeTimer"] is None
    assert client.put("/timer/stop", headers=headers).status_code == 400


def test_start_validates_payload(client, user_factory, auth_headers):
    headers = auth_headers(user_factory())

    r = client.post("/timer/start", headers=headers, json={"taskName": "x"})

    assert r.status_code == 400
    fields = {e["field"] for e in r.json()["errors"]}
    assert {"organizationId", "customerId", "processId", "activityId", "taskName"} <= fields


def test_manual_entry_and_edit(client, user_factory, target_factory, target_payload, auth_headers):
    user = user_factory()
    headers = auth_headers(user)
    payload = target_payload(target_factory(member=user))

    entry = _entry(client, headers, payload, "2026-03-02T09:00:00Z", "2026-03-02T10:30:00Z")
    assert entry["durationMinutes"] == 90
    assert entry["isManual"] is True

    r = client.put(f"/timer/entries/{entry['id']}", headers=headers, json={"endTime": "2026-03-02T10:00:00Z"})
    assert r.status_code == 200, r.text
    assert r.json()["data"]["timeEntry"]["durationMinutes"] == 60

    unknown = client.put(f"/timer/entries/{entry['id']}", headers=headers, json={"userId": "someone"})
    assert unknown.status_code == 400

    fetched = client.get(f"/timer/entries/{entry['id']}", headers=headers)
    assert fetched.json()["data"]["timeEntry"]["endTime"] == "2026-03-02T10:00:00Z"


def test_manual_entry_rejects_inverted_range(client, user_factory, target_factory, target_payload, auth_headers):
    user = user_factory()
    headers = auth_headers(user)
    payload = target_payload(target_factory(member=user))

    r = client.post(
        "/timer/entries",
        headers=headers,
        json={
            **payload,
            "taskName": "Backwards",
            "startTime": "2026-03-02T10:00:00Z",
            "endTime": "2026-03-02T09:00:00Z",
        },
    )

    assert r.status_code == 400
    assert r.json()["errors"] == [{"field": "endTime", "message": "End time must be after start time"}]


def test_delete_entry(client, user_factory, target_factory, target_payload, auth_headers):
    user = user_factory()
    headers = auth_headers(user)
    payload = target_payload(target_factory(member=user))
    entry = _entry(client, headers, payload, "2026-03-02T09:00:00Z", "2026-03-02T09:30:00Z")

    assert client.delete(f"/timer/entries/{entry['id']}", headers=headers).status_code == 200
    missing = client.get(f"/timer/entries/{entry['id']}", headers=headers)
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "message": "Time entry not found"}


def test_list_entries_paginates(client, user_factory, target_factory, target_payload, auth_headers):
    user = user_factory()
    headers = auth_headers(user)
    payload = target_payload(target_factory(member=user))
    for day in range(2, 7):
        _entry(client, headers, payload, f"2026-03-0{day}T09:00:00Z", f"2026-03-0{day}T10:00:00Z", f"Day {day}")

    r = client.get("/timer/entries", headers=headers, params={"limit": 2, "page": 2, "sortOrder": "asc"})

    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert [e["taskName"] for e in data["timeEntries"]] == ["Day 4", "Day 5"]
    assert data["pagination"] == {
        "currentPage": 2,
        "totalPages": 3,
        "totalItems": 5,
        "limit": 2,
        "hasNext": True,
        "hasPrev": True,
    }

    ranged = client.get(
        "/timer/entries",
        headers=headers,
        params={"startDate": "2026-03-03", "endDate": "2026-03-04"},
    )
    assert [e["taskName"] for e in ranged.json()["data"]["timeEntries"]] == ["Day 4", "Day 3"]

    bad_sort = client.get("/timer/entries", headers=headers, params={"sortBy": "password"})
    assert bad_sort.status_code == 400


def test_user_entries_require_manager(client, user_factory, target_factory, target_payload, auth_headers):
    user = user_factory()
    peer = user_factory()
    manager = user_factory(role=Role.MANAGER)
    payload = target_payload(target_factory(member=user))
    _entry(client, auth_headers(user), payload, "2026-03-02T09:00:00Z", "2026-03-02T10:00:00Z")

    forbidden = client.get(f"/timer/entries/user/{user.id}", headers=auth_headers(peer))
    allowed = client.get(f"/timer/entries/user/{user.id}", headers=auth_headers(manager))

    assert forbidden.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["data"]["pagination"]["totalItems"] == 1


def test_breaks_via_api(client, user_factory, target_factory, target_payload, auth_headers):
    user = user_factory()
    headers = auth_headers(user)
    payload = target_payload(target_factory(member=user))
    client.post("/timer/start", headers=headers, json={**payload, "taskName": "Focus"})

    started = client.post("/timer/breaks/start", headers=headers, json={"reason": "Coffee"})
    assert started.status_code == 200, started.text
    assert started.json()["data"]["timeEntry"]["breaks"][0]["reason"] == "Coffee"

    ended = client.put("/timer/breaks/end", headers=headers)
    assert ended.status_code == 200
    assert ended.json()["data"]["timeEntry"]["breaks"][0]["endTime"] is not None
