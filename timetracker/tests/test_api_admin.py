from timetracker.core.authorization import Role


def test_admin_user_management(client, user_factory, auth_headers):
    admin = user_factory(role=Role.ADMIN)
    headers = auth_headers(admin)

    created = client.post(
        "/admin/users",
        headers=headers,
        json={"name": "New Manager", "email": "boss@example.com", "password": "Str0ng!Pass", "role": "manager"},
    )
    assert created.status_code == 201, created.text
    user_id = created.json()["data"]["user"]["id"]
    assert created.json()["data"]["user"]["role"] == "manager"

    listed = client.get("/admin/users", headers=headers, params={"role": "manager"}).json()["data"]
    assert [u["email"] for u in listed["users"]] == ["boss@example.com"]
    assert listed["pagination"]["totalItems"] == 1

    updated = client.put(f"/admin/users/{user_id}", headers=headers, json={"isActive": False})
    assert updated.json()["data"]["user"]["isActive"] is False

    assert client.delete(f"/admin/users/{user_id}", headers=headers).status_code == 200
    assert client.get(f"/admin/users/{user_id}", headers=headers).status_code == 404


def test_admin_routes_reject_other_roles(client, user_factory, auth_headers):
    manager = user_factory(role=Role.MANAGER)

    r = client.get("/admin/users", headers=auth_headers(manager))

    assert r.status_code == 403
    assert r.json()["success"] is False


def test_admin_cannot_remove_self(client, user_factory, auth_headers):
    admin = user_factory(role=Role.ADMIN)
    headers = auth_headers(admin)

    deactivate = client.put(f"/admin/users/{admin.id}", headers=headers, json={"isActive": False})
    delete = client.delete(f"/admin/users/{admin.id}", headers=headers)

    assert deactivate.status_code == 400
    assert delete.status_code == 400
    assert delete.json()["message"] == "You cannot delete your own account"


def test_unknown_update_field_is_rejected(client, user_factory, auth_headers):
    admin = user_factory(role=Role.ADMIN)
    target = user_factory()

    r = client.put(f"/admin/users/{target.id}", headers=auth_headers(admin), json={"passwordHash": "x"})

    assert r.status_code == 400
    assert r.json()["message"] == "Validation failed"
