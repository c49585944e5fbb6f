import importlib

import httpx
import pytest
from fastapi.testclient import TestClient

from llm.image_client import ImageDescriptionClient
from storage.auth_client import AuthClient

AUTH = {"Authorization": "Bearer user-token"}


@pytest.fixture
def client(fake_auth, store_client, fake_provider_factory):
    main_mod = importlib.import_module("api.main")
    deps = importlib.import_module("api.dependencies")
    provider = fake_provider_factory("Buy milk, Walk dog. Call mom")

    app = main_mod.app
    app.dependency_overrides[deps.get_auth_client] = lambda: fake_auth
    app.dependency_overrides[deps.get_store_client] = lambda: store_client
    app.dependency_overrides[deps.get_image_client] = lambda: ImageDescriptionClient(provider=provider)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_gated_routes_redirect_without_session(client, fake_store):
    for method, path in [
        ("get", "/todos"),
        ("post", "/todos"),
        ("delete", "/todos/abc"),
        ("get", "/todos/connection"),
    ]:
        r = getattr(client, method)(path, follow_redirects=False)
        assert r.status_code == 303
        assert r.headers["location"] == "/login"
    assert fake_store.requests == []


def test_unknown_token_redirects(client):
    r = client.get("/todos", headers={"Authorization": "Bearer nope"}, follow_redirects=False)
    assert r.status_code == 303


def test_session_cookie_is_accepted(client):
    client.cookies.set("sb-access-token", "user-token")
    r = client.get("/todos")
    assert r.status_code == 200
    client.cookies.clear()


def test_create_list_toggle_delete(client):
    r = client.post("/todos", json={"title": "  Secure the perimeter ", "priority": "critical"}, headers=AUTH)
    assert r.status_code == 201
    created = r.json()["data"]
    assert created["title"] == "Secure the perimeter"
    assert created["completed"] is False
    assert r.json()["error"] is None

    r = client.get("/todos", headers=AUTH)
    body = r.json()["data"]
    assert [t["id"] for t in body["tasks"]] == [created["id"]]
    assert body["stats"]["critical_open"] == 1

    r = client.post(f"/todos/{created['id']}/toggle", json={"completed": True}, headers=AUTH)
    assert r.status_code == 200
    assert r.json()["data"]["completed"] is True

    r = client.patch(f"/todos/{created['id']}", json={"priority": "low"}, headers=AUTH)
    assert r.json()["data"]["priority"] == "low"

    r = client.delete(f"/todos/{created['id']}", headers=AUTH)
    assert r.status_code == 200
    assert r.json() == {"data": None, "error": None}

    r = client.delete(f"/todos/{created['id']}", headers=AUTH)
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "PGRST116"


def test_create_empty_title_is_validation_error(client, fake_store):
    r = client.post("/todos", json={"title": "   "}, headers=AUTH)
    assert r.status_code == 422
    assert r.json()["error"] == {"kind": "validation", "message": "Title is required", "code": None}
    assert fake_store.inserts == 0


def test_connection_check(client, fake_store):
    assert client.get("/todos/connection", headers=AUTH).json()["data"] == {"connected": True}
    fake_store.error_code = "PGRST205"
    r = client.get("/todos/connection", headers=AUTH)
    assert r.status_code == 502
    assert "does not exist" in r.json()["error"]["message"]


def test_import_from_image_url(client):
    r = client.post(
        "/todos/from-image",
        data={"image_url": "https://example.com/list.jpg", "priority": "high"},
        headers=AUTH,
    )
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["succeeded"] == 3
    assert data["message"] == "Created 3 missions from image analysis"
    assert [t["title"] for t in data["tasks"]] == ["Buy milk", "Walk dog", "Call mom"]
    assert all(t["priority"] == "high" for t in data["tasks"])


def test_import_from_upload(client):
    r = client.post(
        "/todos/from-image",
        files={"file": ("list.png", b"\x89PNG fake", "image/png")},
        headers=AUTH,
    )
    assert r.status_code == 201
    assert r.json()["data"]["tasks"][0]["description"] == "Created from image analysis: list.png"


def test_import_rejects_bad_input(client, fake_store):
    r = client.post("/todos/from-image", data={}, headers=AUTH)
    assert r.status_code == 422
    assert r.json()["error"]["message"] == "Please select an image file or enter an image URL"

    r = client.post(
        "/todos/from-image",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=AUTH,
    )
    assert r.status_code == 422
    assert r.json()["error"]["message"].startswith("Invalid file type")
    assert fake_store.inserts == 0


def test_import_with_every_insert_failing(client, fake_store):
    fake_store.fail_titles.update({"Buy milk", "Walk dog", "Call mom"})
    r = client.post("/todos/from-image", data={"image_url": "https://example.com/x.jpg"}, headers=AUTH)
    assert r.status_code == 502
    body = r.json()
    assert body["error"]["message"] == "Failed to create any missions from the image"
    assert body["data"]["failed"] == 3
    assert fake_store.inserts == 3


def test_auth_session_and_logout(client, fake_auth):
    assert client.get("/auth/session").json() == {"authenticated": False}
    r = client.get("/auth/session", headers=AUTH)
    assert r.json()["authenticated"] is True
    assert r.json()["user_id"] == "user-1"

    r = client.post("/auth/logout", headers=AUTH)
    assert r.json() == {"status": "signed_out"}
    assert client.get("/todos", headers=AUTH, follow_redirects=False).status_code == 303


def test_metrics_endpoint_exposes_prometheus_text(client):
    client.get("/todos", headers=AUTH)
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "text/plain" in r.headers.get("content-type", "")
    assert any(
        line.startswith('mission_requests_total{endpoint="/todos",status="ok"}')
        for line in r.text.splitlines()
    )
    assert "mission_image_candidates_total" in r.text


def test_health_without_store_is_degraded(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "degraded"


def _use_auth_service(handler):
    deps = importlib.import_module("api.dependencies")
    app = importlib.import_module("api.main").app
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    auth = AuthClient(base_url="http://auth.test", api_key="anon-key", http=http)
    app.dependency_overrides[deps.get_auth_client] = lambda: auth
    return auth


def test_invalid_body_uses_envelope(client, fake_store):
    r = client.post("/todos", json={"title": "X", "priority": "urgent"}, headers=AUTH)
    assert r.status_code == 422
    body = r.json()
    assert set(body) == {"data", "error"}
    assert body["data"] is None
    assert body["error"]["kind"] == "validation"
    assert body["error"]["message"].startswith("priority:")
    assert fake_store.inserts == 0

    r = client.post("/todos/abc/toggle", json={"completed": "maybe"}, headers=AUTH)
    assert r.status_code == 422
    assert r.json()["error"]["kind"] == "validation"

    r = client.post(
        "/todos/from-image",
        data={"image_url": "https://example.com/x.jpg", "due_date": "next tuesday"},
        headers=AUTH,
    )
    assert r.status_code == 422
    assert "due_date" in r.json()["error"]["message"]


def test_missing_store_client_uses_envelope(client):
    deps = importlib.import_module("api.dependencies")
    client.app.dependency_overrides.pop(deps.get_store_client)
    r = client.get("/todos", headers=AUTH)
    assert r.status_code == 503
    assert r.json() == {
        "data": None,
        "error": {"kind": "configuration", "message": "Store client not initialized", "code": None},
    }


def test_patch_blank_title_is_validation_error(client, fake_store):
    created = client.post("/todos", json={"title": "Hold"}, headers=AUTH).json()["data"]
    for title in ("   ", None):
        r = client.patch(f"/todos/{created['id']}", json={"title": title}, headers=AUTH)
        assert r.status_code == 422
        assert r.json()["error"]["message"] == "Title is required"
    assert not [req for req in fake_store.requests if req.method == "PATCH"]


def test_login_sets_session_cookie(client):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"access_token": "fresh-token", "user": {"id": "user-1"}})

    _use_auth_service(handler)
    r = client.post("/auth/login", json={"email": "pilot@example.com", "password": "hunter2"})
    assert r.status_code == 200
    assert r.json()["user_id"] == "user-1"
    assert "sb-access-token=fresh-token" in r.headers["set-cookie"]
    assert seen[0].url.params["grant_type"] == "password"
    client.cookies.clear()


def test_login_gateway_error_is_reported(client):
    _use_auth_service(lambda request: httpx.Response(502, text="Bad Gateway"))
    r = client.post("/auth/login", json={"email": "pilot@example.com", "password": "hunter2"})
    assert r.status_code == 502
    assert r.json()["error"]["message"] == "Bad Gateway"
    assert "set-cookie" not in r.headers


def test_login_wrong_password_is_unauthorized_credential(client):
    _use_auth_service(
        lambda request: httpx.Response(401, json={"error_description": "Invalid login credentials"})
    )
    r = client.post("/auth/login", json={"email": "pilot@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json()["error"] == {
        "kind": "unauthorized_credential",
        "message": "Invalid login credentials",
        "code": None,
    }


def test_session_status_with_html_reply(client):
    _use_auth_service(lambda request: httpx.Response(200, text="<html>gateway</html>"))
    r = client.get("/auth/session", headers=AUTH)
    assert r.status_code == 200
    assert r.json()["authenticated"] is False
    assert r.json()["error"].startswith("Invalid reply from auth service")


def test_import_rejects_empty_upload(client, fake_store):
    r = client.post(
        "/todos/from-image",
        files={"file": ("list.png", b"", "image/png")},
        headers=AUTH,
    )
    assert r.status_code == 422
    assert r.json()["error"]["message"] == "Uploaded image is empty"
    assert fake_store.inserts == 0


def test_import_rejects_oversize_upload(client, fake_store, monkeypatch):
    images = importlib.import_module("api.routers.images")
    monkeypatch.setattr(images, "MAX_IMAGE_BYTES", 4)
    r = client.post(
        "/todos/from-image",
        files={"file": ("list.png", b"\x89PNG too big", "image/png")},
        headers=AUTH,
    )
    assert r.status_code == 422
    assert r.json()["error"]["message"].startswith("File too large")
    assert fake_store.inserts == 0
