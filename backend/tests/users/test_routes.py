from datetime import datetime

import pytest

from conftest import user_payload


async def _create(client, suffix="", **overrides):
    resp = await client.post("/api/v1/users", json=user_payload(suffix, **overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_create_user(client):
    response = await client.post(
        "/api/v1/users",
        json={"email": "a@x.com", "username": "abc", "password": "longenough"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["id"] == 1
    assert data["email"] == "a@x.com"
    assert data["username"] == "abc"
    assert data["is_active"] is True
    assert data["first_name"] is None
    assert "password" not in data
    assert "password_hash" not in data


async def test_create_then_fetch(client):
    created = await _create(client)
    response = await client.get(f"/api/v1/users/{created['id']}")
    assert response.status_code == 200
    data = response.json()
    for key in ("email", "username", "first_name", "last_name"):
        assert data[key] == created[key]


async def test_create_invalid_json(client):
    response = await client.post(
        "/api/v1/users",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_JSON"


async def test_create_invalid_fields(client):
    response = await client.post(
        "/api/v1/users",
        json={"email": "not-an-email", "username": "ab", "password": "short"},
    )
    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    bad_fields = {e["loc"][-1] for e in data["details"]["errors"]}
    assert bad_fields == {"email", "username", "password"}


async def test_create_password_too_long_for_bcrypt(client):
    response = await client.post(
        "/api/v1/users", json=user_payload(password="x" * 73)
    )
    assert response.status_code == 400


async def test_create_duplicate_email(client):
    await _create(client)
    response = await client.post(
        "/api/v1/users", json=user_payload(username="bob")
    )
    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "USER_ALREADY_EXISTS"
    assert data["details"] == {"field": "email"}


async def test_get_user_not_found(client):
    response = await client.get("/api/v1/users/999")
    assert response.status_code == 404
    assert response.json()["code"] == "USER_NOT_FOUND"


async def test_get_user_invalid_id(client):
    response = await client.get("/api/v1/users/abc")
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_USER_ID"


@pytest.mark.parametrize("user_id", ["0", "2147483648", "10000000000000000000"])
async def test_user_id_out_of_column_range(client, user_id):
    for method in ("GET", "DELETE"):
        response = await client.request(method, f"/api/v1/users/{user_id}")
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_USER_ID"

    response = await client.put(f"/api/v1/users/{user_id}", json={"first_name": "X"})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_USER_ID"


async def test_list_users_pagination(client):
    for i in range(25):
        await _create(client, suffix=str(i))

    response = await client.get("/api/v1/users", params={"page": 3, "page_size": 10})
    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == 25
    assert data["total_pages"] == 3
    assert data["page"] == 3
    assert data["page_size"] == 10
    assert len(data["users"]) == 5
    assert all("password_hash" not in u for u in data["users"])

    response = await client.get("/api/v1/users", params={"page": 4, "page_size": 10})
    assert response.status_code == 200
    assert response.json()["users"] == []


async def test_list_users_defaults_and_clamping(client):
    response = await client.get("/api/v1/users")
    assert response.json()["page"] == 1
    assert response.json()["page_size"] == 10

    response = await client.get("/api/v1/users", params={"page": 0, "page_size": 500})
    data = response.json()
    assert data["page"] == 1
    assert data["page_size"] == 100

    response = await client.get("/api/v1/users", params={"page_size": 0})
    assert response.json()["page_size"] == 1


async def test_list_users_huge_page_is_empty(client):
    await _create(client)
    response = await client.get("/api/v1/users", params={"page": "10000000000000000000"})
    assert response.status_code == 200
    data = response.json()
    assert data["users"] == []
    assert data["total_count"] == 1
    assert data["page"] == 10**19


async def test_list_users_invalid_query(client):
    response = await client.get("/api/v1/users", params={"page": "two"})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_QUERY_PARAMS"


async def test_update_only_first_name(client):
    created = await _create(client)
    response = await client.put(
        f"/api/v1/users/{created['id']}", json={"first_name": "Alicia"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["first_name"] == "Alicia"
    assert data["last_name"] == "Smith"
    assert data["email"] == created["email"]
    assert data["username"] == created["username"]
    assert data["is_active"] is True
    assert datetime.fromisoformat(data["updated_at"]) > datetime.fromisoformat(
        created["updated_at"]
    )


async def test_update_clears_and_empties_names(client):
    created = await _create(client)
    response = await client.put(
        f"/api/v1/users/{created['id']}", json={"first_name": "", "last_name": None}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["first_name"] == ""
    assert data["last_name"] is None


async def test_update_rejects_null_email(client):
    created = await _create(client)
    response = await client.put(f"/api/v1/users/{created['id']}", json={"email": None})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


async def test_update_not_found(client):
    response = await client.put("/api/v1/users/999", json={"first_name": "Ghost"})
    assert response.status_code == 404
    assert response.json()["code"] == "USER_NOT_FOUND"


async def test_update_to_taken_username(client):
    await _create(client)
    bob = await _create(client, suffix="2")
    response = await client.put(f"/api/v1/users/{bob['id']}", json={"username": "alice"})
    assert response.status_code == 409


async def test_delete_user(client):
    created = await _create(client)
    response = await client.delete(f"/api/v1/users/{created['id']}")
    assert response.status_code == 204
    assert response.content == b""

    response = await client.get(f"/api/v1/users/{created['id']}")
    assert response.status_code == 404


async def test_delete_missing_user(client):
    response = await client.delete("/api/v1/users/999")
    assert response.status_code == 404


async def test_deactivate_user(client):
    created = await _create(client)
    response = await client.post(f"/api/v1/users/{created['id']}/deactivate")
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    response = await client.get(f"/api/v1/users/{created['id']}")
    assert response.json()["is_active"] is False


async def test_change_password(client):
    created = await _create(client)
    response = await client.put(
        f"/api/v1/users/{created['id']}/password", json={"password": "another-secret"}
    )
    assert response.status_code == 204

    response = await client.put("/api/v1/users/999/password", json={"password": "another-secret"})
    assert response.status_code == 404
