import os
import tempfile
import uuid
from pathlib import Path

_DB_DIR = tempfile.mkdtemp(prefix="atelier-tests-")
os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from atelier.main import app
from atelier.database import Base, enable_sqlite_foreign_keys, get_db
from atelier import models, notify
from atelier.auth import principal_for_user

SQLALCHEMY_DATABASE_URL = os.environ["DATABASE_URL"]
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
enable_sqlite_foreign_keys(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def clear_outbox():
    notify.NOTIFICATION_OUTBOX.clear()
    yield
    notify.NOTIFICATION_OUTBOX.clear()


def register(client, *, role: str = "designer", password: str = "secret-pass", display_name=None):
    """
    purpose: create a fresh account through the API and hand back its bearer headers
    inputs: fastapi TestClient, role code, password
    outputs: tuple(headers dict, user id int, email str)
    status: active
    """

    email = f"{role}-{uuid.uuid4()}@example.com"
    payload = {"email": email, "password": password, "role": role}
    if display_name:
        payload["display_name"] = display_name
    resp = client.post("/api/auth/register", json=payload)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    return {"Authorization": f"Bearer {data['access_token']}"}, data["user"]["id"], email


def promote_to_admin(user_id: int) -> None:
    session = TestingSessionLocal()
    try:
        user = session.get(models.User, user_id)
        user.is_admin = True
        session.commit()
    finally:
        session.close()


def principal(db, user_id: int):
    return principal_for_user(db.get(models.User, user_id))


@pytest.fixture
def designer(client):
    return register(client)


@pytest.fixture
def other_designer(client):
    return register(client)


@pytest.fixture
def operator(client):
    return register(client, role="operator")


@pytest.fixture
def supplier(client):
    return register(client, role="supplier")


@pytest.fixture
def admin(client):
    headers, user_id, email = register(client)
    promote_to_admin(user_id)
    return headers, user_id, email


def create_board(client, headers, name="Workspace", **extra):
    resp = client.post("/api/boards", json={"name": name, **extra}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["board_id"]


def create_item(client, headers, title="Walnut table", **fields):
    resp = client.post("/api/items", json={"title": title, **fields}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["item_id"]


def timeline_steps(client, headers, item_id):
    resp = client.get(f"/api/items/{item_id}/timeline", headers=headers)
    assert resp.status_code == 200, resp.text
    return {step["step_number"]: step for step in resp.json()["timeline"]["steps"]}


def events_of(db, event_type, **filters):
    query = db.query(models.Event).filter(models.Event.event_type == event_type)
    for column, value in filters.items():
        query = query.filter(getattr(models.Event, column) == value)
    return query.order_by(models.Event.id.asc()).all()
