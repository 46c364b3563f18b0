from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient

from api import main as api_main
from api.main import app
from core import data as data_module


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def test_meta(client, sales_source):
    assert client.get("/meta/item-types").json() == {"item_types": ["BEER", "LIQUOR", "WINE"]}
    assert client.get("/meta/years").json() == {"years": [2019, 2020]}


def test_monthly(client, sales_source):
    resp = client.post("/monthly", params={"metric": "retailTransfers"}, json={"item_type": "BEER", "year": "ALL"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["metric"] == "retail_transfers"
    assert [(m["year"], m["month"], m["retail_transfers"]) for m in body["months"]] == [(2019, 12, 2.0), (2020, 1, 1.0)]


def test_summary(client, sales_source):
    body = client.post("/summary", json={}).json()
    assert body["months"] == 3
    assert body["total_retail_sales"] == pytest.approx(15.82)
    assert body["total_transfers"] == pytest.approx(4.5)
    assert body["total_warehouse"] == pytest.approx(15.0)


def test_summary_unknown_filter_is_empty(client, sales_source):
    body = client.post("/summary", json={"item_type": "KEGS", "year": 1999}).json()
    assert body == {"months": 0, "total_retail_sales": 0.0, "total_transfers": 0.0, "total_warehouse": 0.0}


def test_dashboard(client, sales_source):
    resp = client.post("/dashboard", params={"metric": "retail_sales", "show_all": "false"}, json={"year": 2020})
    assert resp.status_code == 200
    body = resp.json()
    assert body["pill"] == "All item types • 2020"
    assert [m["label"] for m in body["months"]] == ["Jan 2020", "Feb 2020"]
    assert [s["key"] for s in body["series"]] == ["retail_sales"]
    assert body["charts"]["monthly_volume"]["mark"]["type"] == "area"


def test_data_quality(client, sales_source):
    body = client.get("/data-quality").json()
    assert body["row_counts"]["rows"] == 6
    assert body["row_counts"]["rows_excluded_invalid_period"] == 1


def test_export(client, sales_source):
    resp = client.post("/export", json={"item_type": "WINE"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    lines = resp.text.strip().splitlines()
    assert lines[0] == "year,month,label,retail_sales,retail_transfers,warehouse_sales"
    assert lines[1] == "2020,1,Jan 2020,0.82,0.0,6.0"
    assert len(lines) == 3


def test_export_unexpected_failure_is_500(client, sales_source, monkeypatch):
    def boom(buckets):
        raise RuntimeError("disk full")

    monkeypatch.setattr(api_main, "buckets_to_frame", boom)
    resp = client.post("/export", json={})
    assert resp.status_code == 500
    assert resp.json() == {"error": "disk full", "type": "RuntimeError"}


def test_missing_source_is_503(client, tmp_path, monkeypatch):
    monkeypatch.setenv(data_module.SOURCE_ENV, str(tmp_path / "missing.csv"))
    data_module.clear_cache()
    try:
        resp = client.get("/meta/years")
    finally:
        data_module.clear_cache()
    assert resp.status_code == 503
    assert resp.json()["type"] == "DataUnavailableError"


def _sign_up(client, email=None, password="secret1"):
    email = email or f"{uuid.uuid4().hex}@example.com"
    resp = client.post("/auth/sign-up", json={"email": email, "password": password})
    assert resp.status_code == 200
    body = resp.json()
    return body["user"], {"Authorization": f"Bearer {body['access_token']}"}


class TestAuthEndpoints:
    def test_sign_up_then_sign_in(self, client):
        email = f"{uuid.uuid4().hex}@example.com"
        user, _ = _sign_up(client, email)
        assert user["email"] == email

        resp = client.post("/auth/sign-in", json={"email": email, "password": "secret1"})
        assert resp.status_code == 200
        assert resp.json()["user"]["uid"] == user["uid"]
        assert resp.json()["token_type"] == "bearer"

    def test_wrong_password(self, client):
        email = f"{uuid.uuid4().hex}@example.com"
        _sign_up(client, email)
        resp = client.post("/auth/sign-in", json={"email": email, "password": "nope123"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Incorrect password. Try again."

    def test_duplicate_and_weak(self, client):
        email = f"{uuid.uuid4().hex}@example.com"
        _sign_up(client, email)
        assert client.post("/auth/sign-up", json={"email": email, "password": "secret1"}).status_code == 409
        weak = client.post("/auth/sign-up", json={"email": "x" + email, "password": "123"})
        assert weak.status_code == 422
        assert weak.json()["code"] == "auth/weak-password"


class TestVoteEndpoints:
    def test_votes_are_write_once(self, client):
        user, headers = _sign_up(client)
        assert client.get("/votes/me", headers=headers).json() == {"vote": None, "created": False}

        first = client.post("/votes", json={"vote": "yay"}, headers=headers).json()
        assert first["created"] is True
        assert first["vote"]["vote"] == "yay"
        assert first["vote"]["user_id"] == user["uid"]
        assert first["vote"]["email"] == user["email"]

        second = client.post("/votes", json={"vote": "nay"}, headers=headers).json()
        assert second["created"] is False
        assert second["vote"]["vote"] == "yay"

        assert client.get("/votes/me", headers=headers).json()["vote"]["vote"] == "yay"

    def test_anonymous_vote_is_rejected(self, client):
        resp = client.post("/votes", json={"vote": "nay"})
        assert resp.status_code == 401
        assert client.get("/votes/me").status_code == 401

    def test_bad_token_is_rejected(self, client):
        resp = client.post("/votes", json={"vote": "nay"}, headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_cannot_vote_for_someone_else(self, client):
        victim, victim_headers = _sign_up(client)
        _, attacker_headers = _sign_up(client)

        # a user_id in the body is ignored; the vote lands on the token's owner
        resp = client.post("/votes", json={"user_id": victim["uid"], "vote": "nay"}, headers=attacker_headers)
        assert resp.status_code == 200
        assert resp.json()["vote"]["user_id"] != victim["uid"]

        own = client.post("/votes", json={"vote": "yay"}, headers=victim_headers).json()
        assert own["created"] is True
        assert own["vote"]["vote"] == "yay"

    def test_invalid_vote_is_422(self, client):
        _, headers = _sign_up(client)
        resp = client.post("/votes", json={"vote": "maybe"}, headers=headers)
        assert resp.status_code == 422
        assert resp.json()["type"] == "VoteError"
