"""
Users API tests: FastAPI app wired to a temporary SQLite database.
"""


def _create(client, **overrides):
    body = {"email": "ada@example.com", "name": "Ada"}
    body.update(overrides)
    resp = client.post("/api/users", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def test_create_and_get_user(client):
    user_id = _create(client, email="Ada@Example.COM", metadata={"team": "core"})

    resp = client.get(f"/api/users/{user_id}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["email"] == "ada@example.com"
    assert data["name"] == "Ada"
    assert data["role"] == "user"
    assert data["metadata"] == {"team": "core"}
    assert "deleted_at" not in data


def test_create_validates_email_and_role(client):
    assert client.post("/api/users", json={"email": "not-an-email", "name": "x"}).status_code == 422
    assert client.post("/api/users", json={"email": "a@b.io"}).status_code == 422
    resp = client.post("/api/users", json={"email": "a@b.io", "name": "x", "role": "root"})
    assert resp.status_code == 422


def test_duplicate_email_conflicts(client):
    _create(client)
    resp = client.post("/api/users", json={"email": "ADA@example.com", "name": "Other"})
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Email is already registered."


def test_soft_deleted_user_keeps_email_reserved(client):
    user_id = _create(client)
    assert client.delete(f"/api/users/{user_id}").status_code == 200

    resp = client.post("/api/users", json={"email": "ada@example.com", "name": "Again"})
    assert resp.status_code == 409


def test_update_user(client):
    user_id = _create(client)

    resp = client.put(f"/api/users/{user_id}", json={"name": "Ada L.", "role": "admin"})
    assert resp.status_code == 200

    data = client.get(f"/api/users/{user_id}").json()
    assert data["name"] == "Ada L."
    assert data["role"] == "admin"
    assert data["email"] == "ada@example.com"


def test_update_to_own_email_is_allowed(client):
    user_id = _create(client)
    resp = client.put(f"/api/users/{user_id}", json={"email": "ADA@example.com"})
    assert resp.status_code == 200


def test_update_to_taken_email_conflicts(client):
    _create(client)
    other = _create(client, email="grace@example.com", name="Grace")

    resp = client.put(f"/api/users/{other}", json={"email": "ada@example.com"})
    assert resp.status_code == 409
    assert client.get(f"/api/users/{other}").json()["email"] == "grace@example.com"


def test_update_requires_a_field(client):
    user_id = _create(client)
    assert client.put(f"/api/users/{user_id}", json={}).status_code == 400
    assert client.put(f"/api/users/{user_id}", json={"name": None}).status_code == 400


def test_deleted_user_is_hidden(client):
    user_id = _create(client)
    assert client.delete(f"/api/users/{user_id}").status_code == 200

    assert client.get(f"/api/users/{user_id}").status_code == 404
    assert client.put(f"/api/users/{user_id}", json={"name": "x"}).status_code == 404
    assert client.delete(f"/api/users/{user_id}").status_code == 404
    assert client.get("/api/users").json()["total"] == 0


def test_list_users_paginates(client):
    for n in range(3):
        _create(client, email=f"user{n}@example.com", name=f"User {n}")

    data = client.get("/api/users", params={"page": 2, "page_size": 2}).json()
    assert data["total"] == 3
    assert data["total_pages"] == 2
    assert len(data["users"]) == 1
    assert data["has_prev"] is True
    assert data["has_next"] is False


def test_missing_user(client):
    assert client.get("/api/users/999").status_code == 404
