import os
from functools import partial

os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from softzen.config import Settings
from softzen.db import Database
from softzen.main import create_app
from softzen.services.auth_service import hash_password
from softzen.services.user_service import create_user

PASSWORD = "Serene#Flow42"

POSTURES = [{"id": 1, "name": "Postura del Niño"}, {"id": 2, "name": "Gato-Vaca"}]


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, email, role="instructor", name="Ana Lopez", password=PASSWORD):
    resp = client.post(
        "/api/register", json={"email": email, "password": password, "name": name, "role": role}
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def create_patient(client, headers, email="lucia@example.com", name="Lucia Torres", age=42, condition="anxiety"):
    resp = client.post(
        "/api/patients",
        json={"name": name, "email": email, "age": age, "condition": condition},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def create_series(client, headers, name="Calma Profunda", total_sessions=2, postures=None, therapy_type="anxiety"):
    resp = client.post(
        "/api/therapy-series",
        json={
            "name": name,
            "therapyType": therapy_type,
            "postures": postures or POSTURES,
            "totalSessions": total_sessions,
        },
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        secret_key="test-secret",
        cors_origins=["http://testserver"],
        retry_attempts=1,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        cache_purge_interval=60.0,
        log_json=False,
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def instructor(client):
    data = register(client, "ana@example.com")
    return auth_header(data["token"])


@pytest.fixture
def other_instructor(client):
    data = register(client, "bruno@example.com", name="Bruno Diaz")
    return auth_header(data["token"])


@pytest.fixture
def patient_user(client):
    data = register(client, "lucia@example.com", role="patient", name="Lucia Torres")
    return auth_header(data["token"])


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'services.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def admin(client):
    # public registration refuses the admin role, so insert the row directly
    client.portal.call(partial(
        create_user,
        client.app.state.database,
        email="root@example.com",
        password_hash=hash_password(PASSWORD),
        name="Root Admin",
        role="admin",
    ))
    resp = client.post("/api/login", json={"email": "root@example.com", "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return auth_header(resp.json()["token"])
