from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from brokerage.app import app
from brokerage.auth.users import UserDirectory

client = TestClient(app)


def _login(c, username, password):
    c.post("/auth/login", json={"username": username, "password": password})


def _login_buyer(c):
    _login(c, "buyer", "buyer123")


def _login_owner(c):
    _login(c, "owner", "owner123")


# ── Login / Logout ───────────────────────────────────────────────────────


def test_login_success_buyer():
    resp = client.post("/auth/login", json={"username": "buyer", "password": "buyer123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["user"] == {"username": "buyer", "role": "buyer"}


def test_login_roles():
    for username, password, role in [
        ("owner", "owner123", "property_owner"),
        ("broker", "broker123", "broker"),
    ]:
        resp = client.post("/auth/login", json={"username": username, "password": password})
        assert resp.json()["user"]["role"] == role


def test_login_wrong_password():
    resp = client.post("/auth/login", json={"username": "buyer", "password": "wrong"})
    assert resp.status_code == 401


def test_login_unknown_user():
    resp = client.post("/auth/login", json={"username": "nobody", "password": "x"})
    assert resp.status_code == 401


def test_auth_me_when_logged_in():
    _login_buyer(client)
    resp = client.get("/auth/me")
    assert resp.status_code == 200
    assert resp.json()["username"] == "buyer"


def test_auth_me_not_logged_in():
    c = TestClient(app)  # fresh client, no session
    assert c.get("/auth/me").status_code == 401


def test_logout():
    _login_buyer(client)
    resp = client.post("/auth/logout")
    assert resp.json()["status"] == "logged_out"
    assert client.get("/auth/me").status_code == 401


def test_directory_rejects_unknown_role():
    with pytest.raises(ValueError):
        UserDirectory().add_user("x", "y", "admin")


# ── Route protection ─────────────────────────────────────────────────────


def test_favorites_require_login():
    c = TestClient(app)
    assert c.post("/favorites", json={"listing_id": "p-001"}).status_code == 401
    assert c.get("/favorites").status_code == 401


def test_favorites_require_buyer_role():
    c = TestClient(app)
    _login_owner(c)
    assert c.post("/favorites", json={"listing_id": "p-001"}).status_code == 403


def test_dashboard_requires_buyer_role():
    c = TestClient(app)
    _login_owner(c)
    assert c.get("/buyers/dashboard").status_code == 403


def test_create_listing_requires_property_owner():
    c = TestClient(app)
    _login_buyer(c)
    resp = c.post("/listings", json={
        "title": "Flat", "property_type": "apartment", "price": 100, "city": "Pune",
    })
    assert resp.status_code == 403


def test_recommendations_require_login():
    c = TestClient(app)
    assert c.get("/recommendations").status_code == 401


def test_rescore_requires_login():
    c = TestClient(app)
    assert c.post("/listings/p-001/scores").status_code == 401


# ── Public endpoints stay public ─────────────────────────────────────────


def test_health_is_public():
    c = TestClient(app)
    assert c.get("/health").status_code == 200


def test_metadata_is_public():
    c = TestClient(app)
    assert c.get("/metadata").status_code == 200


def test_listings_are_public():
    c = TestClient(app)
    assert c.get("/listings").status_code == 200
