"""End-to-end tests of the REST namespace through the ASGI app."""

import json
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from ahoi import Ahoi
from ahoi.api import API_PREFIX, create_app

ORIGIN = "https://app.example.com"


@pytest.fixture
def client(ahoi: Ahoi) -> Generator[TestClient, None, None]:
    with TestClient(create_app(ahoi)) as test_client:
        yield test_client


def url(path: str) -> str:
    return f"{API_PREFIX}{path}"


def register_and_login(client: TestClient, username: str, **extra) -> dict[str, str]:
    """Self-register an account and return an Authorization header for it."""
    response = client.post(
        url("/register"),
        json={"username": username, "email": f"{username}@example.com", "password": "pw-123", **extra},
    )
    assert response.status_code == 201, response.text
    token = client.post(url("/token"), data={"username": username, "password": "pw-123"}).json()["token"]
    return {"Authorization": f"Bearer {token}"}


def staff_headers(ahoi: Ahoi, username: str, role: str) -> dict[str, str]:
    user = ahoi.identity.register(username, f"{username}@example.com", "pw-123", role=role, trusted=True)
    return {"Authorization": f"Bearer {ahoi.tokens.issue(user.ID, user.roles)}"}


class TestOwnershipScenario:
    """Two users share one structure; each sees only their own items."""

    def test_owner_isolation(self, client: TestClient, movies):
        u1 = register_and_login(client, "alice")
        u2 = register_and_login(client, "bob")

        created = client.post(url("/movies"), json={"title": "Alien", "year": 1979}, headers=u1)
        assert created.status_code == 201
        item = created.json()
        assert item["title"] == "Alien"
        assert item["year"] == 1979
        assert item["owner_id"] == 1

        assert client.get(url(f"/movies/{item['id']}"), headers=u1).json()["title"] == "Alien"
        assert client.get(url(f"/movies/{item['id']}"), headers=u2).status_code == 404
        assert client.get(url("/movies"), headers=u2).json() == []
        assert [m["id"] for m in client.get(url("/movies"), headers=u1).json()] == [item["id"]]

        assert client.patch(url(f"/movies/{item['id']}"), json={"year": 1980}, headers=u2).status_code == 404
        assert client.delete(url(f"/movies/{item['id']}"), headers=u2).status_code == 404

    def test_update_and_delete(self, client: TestClient, movies):
        headers = register_and_login(client, "alice")
        item = client.post(url("/movies"), json={"title": "Alien"}, headers=headers).json()

        updated = client.put(url(f"/movies/{item['id']}"), json={"year": 1979}, headers=headers)
        assert updated.status_code == 200
        assert updated.json()["year"] == 1979
        assert updated.json()["title"] == "Alien"

        deleted = client.delete(url(f"/movies/{item['id']}"), headers=headers)
        assert deleted.json() == {"success": True, "message": "Item deleted."}
        assert client.get(url(f"/movies/{item['id']}"), headers=headers).status_code == 404

    def test_list_query_parameters(self, client: TestClient, movies):
        headers = register_and_login(client, "alice")
        for title, year in [("Alien", 1979), ("Aliens", 1986), ("Heat", 1995)]:
            client.post(url("/movies"), json={"title": title, "year": year}, headers=headers)

        response = client.get(url("/movies"), params={"_sort": "year", "_order": "desc", "_limit": 2}, headers=headers)
        assert [m["title"] for m in response.json()] == ["Heat", "Aliens"]
        assert [m["title"] for m in client.get(url("/movies?year=1979"), headers=headers).json()] == ["Alien"]


class TestErrors:
    def test_missing_required_field(self, client: TestClient, movies):
        headers = register_and_login(client, "alice")
        response = client.post(url("/movies"), json={}, headers=headers)

        assert response.status_code == 400
        assert response.json()["code"] == "missing_required_field"
        assert response.json()["data"]["status"] == 400

    def test_invalid_values(self, client: TestClient, movies):
        headers = register_and_login(client, "alice")
        response = client.post(url("/movies"), json={"title": "Alien", "year": "soon"}, headers=headers)

        assert response.status_code == 400
        assert "year" in response.json()["data"]["field_errors"]

    def test_malformed_json(self, client: TestClient, movies):
        headers = {**register_and_login(client, "alice"), "Content-Type": "application/json"}
        response = client.post(url("/movies"), content=b"{not json", headers=headers)
        assert response.status_code == 400

    def test_unknown_structure(self, client: TestClient):
        headers = register_and_login(client, "alice")
        response = client.get(url("/films"), headers=headers)

        assert response.status_code == 404
        assert response.json()["code"] == "structure_not_found"

    def test_anonymous_request(self, client: TestClient, movies):
        response = client.get(url("/movies"))
        assert response.status_code == 401
        assert response.json()["code"] == "unauthenticated"

    def test_malformed_authorization_header(self, client: TestClient, movies):
        response = client.get(url("/movies"), headers={"Authorization": "Token abc"})
        assert response.status_code == 401

    def test_invalid_token(self, client: TestClient, movies):
        response = client.get(url("/movies"), headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_item_id_beyond_64_bits(self, client: TestClient, movies):
        headers = register_and_login(client, "alice")
        huge = 10**23

        for method in ("GET", "PATCH", "DELETE"):
            response = client.request(method, url(f"/movies/{huge}"), json={"title": "x"}, headers=headers)
            assert response.status_code == 404, method
            assert response.json()["code"] == "record_not_found"

    def test_page_beyond_64_bits(self, client: TestClient, movies):
        headers = register_and_login(client, "alice")
        client.post(url("/movies"), json={"title": "Alien"}, headers=headers)

        response = client.get(url("/movies"), params={"_page": str(10**23)}, headers=headers)
        assert response.status_code == 200
        assert response.json() == []

    def test_non_integer_item_id(self, client: TestClient, movies):
        headers = register_and_login(client, "alice")
        response = client.get(url("/movies/abc"), headers=headers)

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"


class TestTokenEndpoints:
    def test_issue_and_validate(self, client: TestClient):
        client.post(url("/register"), json={"username": "alice", "email": "alice@example.com", "password": "pw"})
        response = client.post(url("/token"), json={"username": "alice@example.com", "password": "pw"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"]["email"] == "alice@example.com"
        assert body["user"]["roles"] == ["subscriber"]

        validated = client.get(url("/token/validate"), headers={"Authorization": f"Bearer {body['token']}"})
        assert validated.json() == {"success": True, "message": "Token is valid.", "user_id": body["user"]["id"]}

    def test_missing_credentials(self, client: TestClient):
        assert client.post(url("/token"), json={"username": "alice"}).status_code == 400

    def test_bad_credentials(self, client: TestClient):
        client.post(url("/register"), json={"username": "alice", "email": "alice@example.com", "password": "pw"})
        response = client.post(url("/token"), json={"username": "alice", "password": "wrong"})

        assert response.status_code == 403
        assert response.json()["code"] == "invalid_credentials"

    def test_validate_requires_token(self, client: TestClient):
        assert client.get(url("/token/validate")).status_code == 401


class TestRegistration:
    def test_duplicate_username(self, client: TestClient):
        payload = {"username": "alice", "email": "alice@example.com", "password": "pw"}
        client.post(url("/register"), json=payload)
        response = client.post(url("/register"), json={**payload, "email": "other@example.com"})

        assert response.status_code == 409
        assert response.json()["code"] == "username_exists"

    def test_public_registration_cannot_pick_administrator(self, client: TestClient):
        client.post(
            url("/register"),
            json={"username": "mallory", "email": "m@example.com", "password": "pw", "role": "administrator"},
        )
        body = client.post(url("/token"), json={"username": "mallory", "password": "pw"}).json()
        assert body["user"]["roles"] == ["subscriber"]

    def test_registration_fires_webhook(self, client: TestClient, ahoi: Ahoi, webhook_recorder):
        ahoi.subscriptions.add("https://hooks.example.com/users", "user.created")
        client.post(url("/register"), json={"username": "alice", "email": "alice@example.com", "password": "pw"})
        ahoi.worker.drain()

        assert webhook_recorder.urls == ["https://hooks.example.com/users"]
        assert json.loads(webhook_recorder.requests[0].content)["event"] == "user.created"


class TestUserManagement:
    def test_requires_manage_users(self, client: TestClient):
        headers = register_and_login(client, "alice")
        response = client.get(url("/users"), headers=headers)

        assert response.status_code == 403
        assert response.json()["data"]["capability"] == "manage_api_users"

    def test_admin_lifecycle(self, client: TestClient, ahoi: Ahoi):
        admin = staff_headers(ahoi, "root", "administrator")

        created = client.post(
            url("/users"),
            json={"username": "ed", "email": "ed@example.com", "password": "pw", "role": "editor"},
            headers=admin,
        )
        assert created.status_code == 201
        user_id = created.json()["user_id"]

        user = client.get(url(f"/users/{user_id}"), headers=admin).json()
        assert user["roles"] == ["editor"]
        assert "capabilities" not in user

        updated = client.patch(url(f"/users/{user_id}"), json={"role": "author"}, headers=admin)
        assert updated.json()["success"] is True
        assert client.get(url(f"/users/{user_id}"), headers=admin).json()["roles"] == ["author"]

        assert client.delete(url(f"/users/{user_id}"), headers=admin).status_code == 200
        assert client.get(url(f"/users/{user_id}"), headers=admin).status_code == 404

    def test_user_id_beyond_64_bits(self, client: TestClient, ahoi: Ahoi):
        admin = staff_headers(ahoi, "root", "administrator")
        response = client.get(url(f"/users/{10**23}"), headers=admin)

        assert response.status_code == 404
        assert response.json()["code"] == "user_not_found"

    def test_cannot_delete_self(self, client: TestClient, ahoi: Ahoi):
        admin = staff_headers(ahoi, "root", "administrator")
        me = client.get(url("/token/validate"), headers=admin).json()["user_id"]

        response = client.delete(url(f"/users/{me}"), headers=admin)
        assert response.status_code == 403
        assert response.json()["code"] == "cannot_delete_self"

    def test_manager_cannot_assign_administrator(self, client: TestClient, ahoi: Ahoi):
        manager = staff_headers(ahoi, "boss", "manager")
        response = client.post(
            url("/users"),
            json={"username": "x", "email": "x@example.com", "password": "pw", "role": "administrator"},
            headers=manager,
        )
        assert response.status_code == 403

    def test_roles_hide_builtins_from_non_admins(self, client: TestClient, ahoi: Ahoi):
        admin_roles = client.get(url("/roles"), headers=staff_headers(ahoi, "root", "administrator")).json()
        manager_roles = client.get(url("/roles"), headers=staff_headers(ahoi, "boss", "manager")).json()

        assert "administrator" in json.dumps(admin_roles)
        assert "administrator" not in json.dumps(manager_roles)

    def test_profile(self, client: TestClient):
        headers = register_and_login(client, "alice")
        response = client.put(
            url("/users/me"), json={"first_name": "Alice", "is_admin": True}, headers=headers
        )

        assert response.json()["profile"] == {"first_name": "Alice"}
        assert client.get(url("/users/me"), headers=headers).json() == {"first_name": "Alice"}


class TestStorage:
    def test_upload_and_delete(self, client: TestClient, ahoi: Ahoi):
        editor = staff_headers(ahoi, "ed", "editor")
        response = client.post(
            url("/storage/upload"), files={"file": ("poster.png", b"\x89PNG", "image/png")}, headers=editor
        )

        assert response.status_code == 201
        media = response.json()
        assert media["mime_type"] == "image/png"
        assert (ahoi.media.root / media["file_name"]).exists()

        assert client.delete(url(f"/storage/{media['id']}"), headers=editor).json()["success"] is True
        assert client.delete(url(f"/storage/{media['id']}"), headers=editor).status_code == 404

    def test_anonymous_delete(self, client: TestClient, ahoi: Ahoi):
        media = ahoi.media.store(1, "a.txt", b"a")

        for media_id in (media.id, 12345):
            response = client.delete(url(f"/storage/{media_id}"))
            assert response.status_code == 401
            assert response.json()["code"] == "unauthenticated"
        assert ahoi.media.owner_of(media.id) == 1

    def test_media_id_beyond_64_bits(self, client: TestClient, ahoi: Ahoi):
        editor = staff_headers(ahoi, "ed", "editor")
        response = client.delete(url(f"/storage/{10**23}"), headers=editor)
        assert response.status_code == 404

    def test_subscribers_cannot_upload(self, client: TestClient):
        headers = register_and_login(client, "alice")
        response = client.post(url("/storage/upload"), files={"file": ("a.txt", b"a")}, headers=headers)
        assert response.status_code == 403

    def test_authors_cannot_delete_others_files(self, client: TestClient, ahoi: Ahoi):
        first = staff_headers(ahoi, "anne", "author")
        second = staff_headers(ahoi, "ben", "author")
        media = client.post(url("/storage/upload"), files={"file": ("a.txt", b"a")}, headers=first).json()

        assert client.delete(url(f"/storage/{media['id']}"), headers=second).status_code == 403
        assert client.delete(url(f"/storage/{media['id']}"), headers=first).status_code == 200


class TestNotifications:
    def test_requires_capability(self, client: TestClient):
        headers = register_and_login(client, "alice")
        payload = {"to": "x@example.com", "subject": "Hi", "body": "Hello"}
        assert client.post(url("/notifications/email"), json=payload, headers=headers).status_code == 403

    def test_unconfigured_smtp(self, client: TestClient, ahoi: Ahoi):
        admin = staff_headers(ahoi, "root", "administrator")
        payload = {"to": "x@example.com", "subject": "Hi", "body": "Hello"}
        response = client.post(url("/notifications/email"), json=payload, headers=admin)

        assert response.status_code == 500
        assert response.json()["code"] == "email_failed"

    def test_invalid_parameters(self, client: TestClient, ahoi: Ahoi):
        admin = staff_headers(ahoi, "root", "administrator")
        response = client.post(url("/notifications/email"), json={"to": "nobody"}, headers=admin)
        assert response.status_code == 400


class TestCORS:
    def test_allowed_origin(self, client: TestClient, movies):
        headers = {**register_and_login(client, "alice"), "Origin": ORIGIN}
        response = client.get(url("/movies"), headers=headers)

        assert response.headers["access-control-allow-origin"] == ORIGIN
        assert response.headers["access-control-allow-credentials"] == "true"
        assert "PATCH" in response.headers["access-control-allow-methods"]

    def test_preflight(self, client: TestClient):
        response = client.options(
            url("/movies"),
            headers={
                "Origin": ORIGIN,
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization, Content-Type",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == ORIGIN
        assert "POST" in response.headers["access-control-allow-methods"]

    def test_disallowed_origin(self, client: TestClient, movies):
        response = client.get(url("/movies"), headers={"Origin": "https://evil.example.com"})
        assert "access-control-allow-origin" not in response.headers


class TestWebhooksOverHttp:
    def test_item_created_delivery(self, client: TestClient, ahoi: Ahoi, movies, webhook_recorder):
        ahoi.subscriptions.add("https://hooks.example.com/movies", "item.created:movies")
        headers = register_and_login(client, "alice")
        client.post(url("/movies"), json={"title": "Alien"}, headers=headers)
        ahoi.worker.drain()

        body = json.loads(webhook_recorder.requests[0].content)
        assert body["structure"] == "movies"
        assert body["data"]["title"] == "Alien"

    def test_shutdown_delivers_queued_webhooks(self, ahoi: Ahoi, movies, webhook_recorder):
        ahoi.subscriptions.add("https://hooks.example.com/movies", "item.created")
        with TestClient(create_app(ahoi)) as test_client:
            headers = register_and_login(test_client, "alice")
            test_client.post(url("/movies"), json={"title": "Alien"}, headers=headers)

        assert webhook_recorder.urls == ["https://hooks.example.com/movies"]
