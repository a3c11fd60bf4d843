from timetracker.core.authorization import Role


def test_admin_manages_organizations_and_members(client, user_factory, auth_headers):
    admin = user_factory(role=Role.ADMIN)
    member = user_factory()
    admin_headers = auth_headers(admin)

    r = client.post("/organizations", headers=admin_headers, json={"name": "Initech", "workLocation": "Austin"})
    assert r.status_code == 201, r.text
    org_id = r.json()["data"]["organization"]["id"]

    added = client.post(f"/organizations/{org_id}/users", headers=admin_headers, json={"userId": member.id})
    assert added.status_code == 201
    duplicate = client.post(f"/organizations/{org_id}/users", headers=admin_headers, json={"userId": member.id})
    assert duplicate.status_code == 400

    mine = client.get("/organizations", headers=auth_headers(member)).json()["data"]
    assert [o["name"] for o in mine["organizations"]] == ["Initech"]

    detail = client.get(f"/organizations/{org_id}", headers=auth_headers(member)).json()["data"]
    assert [u["id"] for u in detail["users"]] == [member.id]

    removed = client.delete(f"/organizations/{org_id}/users/{member.id}", headers=admin_headers)
    assert removed.status_code == 200
    assert client.get(f"/organizations/{org_id}", headers=auth_headers(member)).status_code == 403
    assert client.get("/organizations", headers=auth_headers(member)).json()["data"]["organizations"] == []


def test_non_admin_cannot_create_organization(client, user_factory, auth_headers):
    r = client.post("/organizations", headers=auth_headers(user_factory(role=Role.MANAGER)), json={"name": "Nope"})

    assert r.status_code == 403
    assert r.json()["message"] == "You do not have permission to perform this action."


def test_customer_crud_and_delete_guard(
    client, user_factory, target_factory, target_payload, auth_headers, organization_factory
):
    admin = user_factory(role=Role.ADMIN)
    admin_headers = auth_headers(admin)
    organization = organization_factory()

    created = client.post(
        "/customers",
        headers=admin_headers,
        json={"organizationId": organization.id, "name": "Umbrella", "contactEmail": "Ops@Umbrella.com"},
    )
    assert created.status_code == 201, created.text
    customer = created.json()["data"]["customer"]
    assert customer["contactEmail"] == "ops@umbrella.com"

    updated = client.put(f"/customers/{customer['id']}", headers=admin_headers, json={"isActive": False})
    assert updated.json()["data"]["customer"]["isActive"] is False

    listed = client.get("/customers", headers=admin_headers, params={"isActive": "false"}).json()["data"]
    assert [c["name"] for c in listed["customers"]] == ["Umbrella"]

    assert client.delete(f"/customers/{customer['id']}", headers=admin_headers).status_code == 200

    target = target_factory(member=admin)
    client.post(
        "/timer/entries",
        headers=admin_headers,
        json={
            **target_payload(target),
            "taskName": "Billable",
            "startTime": "2026-03-02T09:00:00Z",
            "endTime": "2026-03-02T10:00:00Z",
        },
    )
    in_use = client.delete(f"/customers/{target.customer_id}", headers=admin_headers)
    assert in_use.status_code == 400


def test_processes_with_activities(client, user_factory, auth_headers):
    admin_headers = auth_headers(user_factory(role=Role.ADMIN))
    user_headers = auth_headers(user_factory())

    process = client.post(
        "/processes", headers=admin_headers, json={"name": "Support", "category": "Operations"}
    ).json()["data"]["process"]
    activity = client.post(
        f"/processes/{process['id']}/activities", headers=admin_headers, json={"name": "Ticket triage"}
    )
    assert activity.status_code == 201, activity.text
    activity_id = activity.json()["data"]["activity"]["id"]

    listed = client.get("/processes", headers=user_headers).json()["data"]["processes"]
    assert listed[0]["name"] == "Support"
    assert [a["name"] for a in listed[0]["activities"]] == ["Ticket triage"]

    client.put(f"/activities/{activity_id}", headers=admin_headers, json={"isActive": False})
    fetched = client.get(f"/processes/{process['id']}", headers=user_headers).json()["data"]["process"]
    assert fetched["activities"] == []

    assert client.post("/processes", headers=user_headers, json={"name": "Rogue"}).status_code == 403
    assert client.delete(f"/processes/{process['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/processes/{process['id']}", headers=user_headers).status_code == 404
