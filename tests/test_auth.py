from datetime import datetime, timedelta

from sqlmodel import select

from kasir import security
from kasir.models import User, UserToken
from kasir.routers import auth as auth_router
from kasir.security import extract_bearer, hash_token, issue_token

from conftest import OWNER_EMAIL, OWNER_PASSWORD


def _verify(client, token, header="Authorization"):
    return client.post("/auth/?action=verify", headers={header: f"Bearer {token}"})


def test_register_returns_token_that_verifies(client, register_user):
    resp = register_user()
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["email"] == OWNER_EMAIL
    assert data["full_name"] == "Pemilik Toko"
    assert len(data["token"]) == 64

    verified = _verify(client, data["token"])
    assert verified.status_code == 200
    assert verified.json()["data"]["email"] == OWNER_EMAIL


def test_register_outside_allow_list_is_forbidden(client, register_user, db):
    resp = register_user(email="stranger@example.com")
    assert resp.status_code == 403
    assert resp.json() == {
        "success": False,
        "error": "Email tidak diizinkan untuk mendaftar. Hanya email yang terdaftar yang dapat mengakses sistem ini.",
    }
    assert db.exec(select(User)).all() == []


def test_register_closed_when_allow_list_empty(client, register_user, monkeypatch):
    monkeypatch.setattr(security, "ALLOWED_EMAILS", [])
    assert register_user().status_code == 403


def test_register_email_is_case_insensitive_and_unique(client, register_user):
    assert register_user(email="Owner@Example.com").status_code == 200
    resp = register_user()
    assert resp.status_code == 409
    assert resp.json()["error"] == "Email sudah terdaftar"


def test_register_race_on_unique_email_is_conflict(client, register_user, db, monkeypatch):
    assert register_user().status_code == 200
    # the duplicate check misses, as when two requests pass it together
    monkeypatch.setattr(auth_router, "_find_user", lambda _db, _email: None)

    resp = register_user()
    assert resp.status_code == 409
    assert resp.json() == {"success": False, "error": "Email sudah terdaftar"}
    assert len(db.exec(select(User)).all()) == 1


def test_register_validation(client):
    resp = client.post("/auth/?action=register", json={"email": OWNER_EMAIL})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing required fields: email, password, full_name"

    resp = client.post(
        "/auth/?action=register",
        json={"email": OWNER_EMAIL, "password": "123", "full_name": "Pemilik"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Invalid value for password")


def test_login_replaces_previous_session(client, token):
    resp = client.post("/auth/?action=login", json={"email": OWNER_EMAIL, "password": OWNER_PASSWORD})
    assert resp.status_code == 200
    new_token = resp.json()["data"]["token"]
    assert new_token != token

    old = _verify(client, token)
    assert old.status_code == 401
    assert old.json()["error"] == security.MSG_TOKEN_INVALID
    assert _verify(client, new_token).status_code == 200


def test_login_wrong_password_and_unknown_email_share_message(client, token):
    wrong = client.post("/auth/?action=login", json={"email": OWNER_EMAIL, "password": "salah-total"})
    unknown = client.post("/auth/?action=login", json={"email": "nobody@example.com", "password": "x"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()["error"] == unknown.json()["error"] == "Email atau password salah"


def test_login_missing_fields(client):
    resp = client.post("/auth/?action=login", json={"email": OWNER_EMAIL})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing email or password"


def test_logout_is_idempotent(client, token):
    headers = {"Authorization": f"Bearer {token}"}
    first = client.post("/auth/?action=logout", headers=headers)
    second = client.post("/auth/?action=logout", headers=headers)
    assert first.status_code == second.status_code == 200
    assert first.json() == {"success": True, "message": "Logout successful"}
    assert client.post("/auth/?action=logout").status_code == 200
    assert _verify(client, token).status_code == 401


def test_unknown_action(client):
    resp = client.post("/auth/?action=reset")
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Invalid action")


def test_missing_header_on_protected_route(client):
    resp = client.get("/products/")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": security.MSG_TOKEN_MISSING}


def test_lowercase_header_name_is_accepted(client, token):
    resp = client.get("/products/", headers={"authorization": f"Bearer {token}"})
    assert resp.status_code == 200


def test_malformed_header(client, token):
    resp = client.get("/products/", headers={"Authorization": token})
    assert resp.status_code == 401
    assert resp.json()["error"] == security.MSG_TOKEN_MALFORMED


def test_expired_token_is_rejected(client, token, db):
    user = db.exec(select(User)).one()
    stale = issue_token(db, user, now=datetime.utcnow() - timedelta(days=security.TOKEN_TTL_DAYS + 1))
    db.commit()

    resp = client.get("/products/", headers={"Authorization": f"Bearer {stale}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == security.MSG_TOKEN_INVALID


def test_tokens_are_stored_hashed(client, token, db):
    row = db.exec(select(UserToken)).one()
    assert row.token == hash_token(token)
    assert row.token != token


def test_extract_bearer():
    assert extract_bearer("Bearer abc") == ("abc", None)
    assert extract_bearer("bearer abc") == ("abc", None)
    assert extract_bearer(None) == (None, security.MSG_TOKEN_MISSING)
    assert extract_bearer("   ") == (None, security.MSG_TOKEN_MISSING)
    assert extract_bearer("Token abc") == (None, security.MSG_TOKEN_MALFORMED)
    assert extract_bearer("Bearer") == (None, security.MSG_TOKEN_MALFORMED)


def test_is_email_allowed():
    assert security.is_email_allowed(" OWNER@example.com ")
    assert not security.is_email_allowed("other@example.com")
    assert security.is_email_allowed("a@b.c", allowed=["A@B.C"])
