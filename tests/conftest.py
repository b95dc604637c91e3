import os

# in-memory database before kasir.database builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from kasir import security
from kasir.database import get_session
from kasir.main import app
from kasir.routers import upload

OWNER_EMAIL = "owner@example.com"
OWNER_PASSWORD = "rahasia123"


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    yield eng
    SQLModel.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(autouse=True)
def allow_owner(monkeypatch):
    monkeypatch.setattr(security, "ALLOWED_EMAILS", [OWNER_EMAIL])


@pytest.fixture(autouse=True)
def upload_root(monkeypatch, tmp_path):
    root = tmp_path / "uploads"
    monkeypatch.setattr(upload, "UPLOAD_ROOT", str(root))
    return root


@pytest.fixture
def client(engine):
    def _session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    # no context manager: startup would create tables on the real engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email=OWNER_EMAIL, password=OWNER_PASSWORD, full_name="Pemilik Toko"):
    return client.post(
        "/auth/?action=register",
        json={"email": email, "password": password, "full_name": full_name},
    )


@pytest.fixture
def token(client):
    resp = register(client)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["token"]


@pytest.fixture
def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register_user(client):
    return lambda **kwargs: register(client, **kwargs)
