import uuid

from conftest import events_of, register


def test_register_login_and_me(client, db):
    email = f"{uuid.uuid4()}@example.com"
    resp = client.post(
        "/api/auth/register",
        json={"email": email.upper(), "password": "long-enough", "display_name": "Ada"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["user"]["email"] == email
    assert body["user"]["role"] == "designer"
    assert events_of(db, "designer_profile_created", object_id=body["user"]["id"])

    login = client.post("/api/auth/login", json={"email": email, "password": "long-enough"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["user"]["display_name"] == "Ada"


def test_duplicate_registration_rejected(client):
    _headers, _user_id, email = register(client)
    resp = client.post("/api/auth/register", json={"email": email, "password": "another-pass"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Email already registered"}


def test_supplier_registration_logs_no_designer_profile(client, db):
    _headers, user_id, _email = register(client, role="supplier")
    assert events_of(db, "designer_profile_created", object_id=user_id) == []


def test_bad_credentials_and_missing_token(client):
    _headers, _user_id, email = register(client)
    resp = client.post("/api/auth/login", json={"email": email, "password": "wrong-password"})
    assert resp.status_code == 401
    assert resp.json()["success"] is False

    assert client.get("/api/boards").status_code == 401
    bogus = client.get("/api/boards", headers={"Authorization": "Bearer not-a-token"})
    assert bogus.status_code == 401


def test_request_validation_uses_envelope(client):
    resp = client.post("/api/auth/register", json={"email": "not-an-email", "password": "x"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    fields = {error["field"] for error in body["details"]["errors"]}
    assert {"email", "password"} <= fields


def test_every_api_route_requires_a_principal():
    from fastapi.routing import APIRoute

    from atelier.auth import get_current_principal
    from atelier.main import app

    public = {"/api/auth/login", "/api/auth/register"}
    for route in app.routes:
        if isinstance(route, APIRoute) and route.path.startswith("/api") and route.path not in public:
            assert get_current_principal in [dep.call for dep in route.dependant.dependencies], route.path
