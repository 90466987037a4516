from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.services.token_store import NewTokenPair
from conftest import ADMIN_PASSWORD, CLEANUP_KEY, bearer, login


@pytest.fixture
def admin_token(client):
    return login(client, "admin", ADMIN_PASSWORD).json()["data"]["token"]


@pytest.fixture
def alice_id(client, application):
    with application.state.database.session() as db:
        return application.state.user_service.create_user(db, "alice", "Secret123!").id


@pytest.fixture
def alice_token(client, alice_id):
    return login(client, "alice", "Secret123!").json()["data"]["token"]


def _insert_expired_pairs(application, user_id, count):
    store = application.state.auth_service.token_store
    now = application.state.clock()
    with application.state.database.session() as db:
        for i in range(count):
            store.create(db, NewTokenPair(
                user_id=user_id,
                access_token=f"stale-access-{i}",
                refresh_token=f"stale-refresh-{i}",
                access_token_expires_at=now - timedelta(days=60),
                refresh_token_expires_at=now - timedelta(days=40),
            ))


def test_cleanup_with_cleanup_key(client, application, alice_id):
    _insert_expired_pairs(application, alice_id, 3)

    response = client.post("/api/v1/system/tokens/cleanup", headers={"X-Cleanup-Key": CLEANUP_KEY})
    assert response.status_code == 200
    assert response.json()["data"] == {"deletedCount": 3, "retentionDays": 30}

    stats = client.get("/api/v1/system/tokens/stats", headers={"X-Cleanup-Key": CLEANUP_KEY}).json()["data"]
    assert stats["expiredTokens"] == 0
    assert stats["lastCleanupTime"] is not None


def test_cleanup_failure_hides_database_details(client, application, monkeypatch):
    def broken_purge(db, retention_days=0):
        raise OperationalError("DELETE FROM sys_user_token", {}, Exception("password=hunter2 host=db.internal"))

    monkeypatch.setattr(application.state.cleanup_service.token_store, "purge_expired", broken_purge)

    response = client.post("/api/v1/system/tokens/cleanup", headers={"X-Cleanup-Key": CLEANUP_KEY})
    assert response.status_code == 500
    body = response.json()
    assert body["code"] == 25002
    assert body["message"] == "Token cleanup failed"
    assert "sub_message" not in body
    assert "hunter2" not in response.text
    assert "DELETE" not in response.text


def test_cleanup_with_wrong_key(client):
    response = client.post("/api/v1/system/tokens/cleanup", headers={"X-Cleanup-Key": "guess"})
    assert response.status_code == 401
    assert response.json()["code"] == 25001


def test_cleanup_requires_admin(client, alice_token, admin_token):
    forbidden = client.post("/api/v1/system/tokens/cleanup", headers=bearer(alice_token))
    assert forbidden.status_code == 403
    assert forbidden.json()["code"] == 25003

    allowed = client.post("/api/v1/system/tokens/cleanup", headers=bearer(admin_token))
    assert allowed.status_code == 200

    anonymous = client.post("/api/v1/system/tokens/cleanup")
    assert anonymous.status_code == 401
    assert anonymous.json()["code"] == 22001


def test_stats_scoped_to_user(client, alice_id, alice_token, admin_token):
    everyone = client.get("/api/v1/system/tokens/stats", headers=bearer(admin_token)).json()["data"]
    assert everyone["totalTokens"] == 2

    scoped = client.get(
        "/api/v1/system/tokens/stats",
        params={"userId": alice_id},
        headers=bearer(admin_token),
    ).json()["data"]
    assert scoped == {"totalTokens": 1, "expiredTokens": 0, "revokedTokens": 0, "lastCleanupTime": None}


def test_cleanup_health(client, admin_token):
    response = client.get("/api/v1/system/tokens/health", headers=bearer(admin_token))
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "healthy"


def test_login_logs_paginated(client, admin_token, alice_id):
    for _ in range(3):
        login(client, "alice", "wrong")
    login(client, "alice", "Secret123!")

    response = client.get(
        "/api/v1/system/login-logs",
        params={"page": 1, "pageSize": 2, "username": "alice"},
        headers=bearer(admin_token),
    )
    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 2
    assert body["pagination"] == {
        "total": 4,
        "page": 1,
        "pageSize": 2,
        "totalPages": 2,
        "hasNext": True,
        "hasPrev": False,
    }
    assert body["data"][0]["username"] == "alice"
    assert "ipAddress" in body["data"][0]

    failures = client.get(
        "/api/v1/system/login-logs",
        params={"status": 0, "username": "alice"},
        headers=bearer(admin_token),
    ).json()
    assert failures["pagination"]["total"] == 3


def test_login_logs_forbidden_for_users(client, alice_token):
    response = client.get("/api/v1/system/login-logs", headers=bearer(alice_token))
    assert response.status_code == 403
    assert response.json()["code"] == 22002


def test_disable_user_revokes_sessions(client, admin_token, alice_id, alice_token):
    response = client.put(
        f"/api/v1/system/users/{alice_id}/status",
        json={"status": 0},
        headers=bearer(admin_token),
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == 0

    assert client.get("/api/v1/getCurrentUser", headers=bearer(alice_token)).status_code == 401
    assert login(client, "alice", "Secret123!").json()["code"] == 30003


def test_status_of_missing_user(client, admin_token):
    response = client.put("/api/v1/system/users/9999/status", json={"status": 1}, headers=bearer(admin_token))
    assert response.json()["code"] == 30001
    assert response.json()["success"] is False
