from datetime import timedelta

from sqlalchemy.exc import OperationalError

from app.services.token_store import NewTokenPair


def _expired_pair(user, clock, suffix):
    now = clock()
    return NewTokenPair(
        user_id=user.id,
        access_token=f"access-{suffix}",
        refresh_token=f"refresh-{suffix}",
        access_token_expires_at=now - timedelta(days=2),
        refresh_token_expires_at=now - timedelta(days=1),
    )


def test_cleanup_purges_expired_pairs(services, db, alice, clock):
    for suffix in ("1", "2", "3"):
        services.token_store.create(db, _expired_pair(alice, clock, suffix))
    live = services.auth.login(db, "alice", "Secret123!")

    assert services.cleanup.last_cleanup_time is None
    assert services.cleanup.execute_cleanup() == 3

    stats = services.cleanup.get_stats()
    assert stats.total_tokens == 1
    assert stats.expired_tokens == 0
    assert stats.last_cleanup_time == clock()
    assert services.token_store.get(db, live.token_pair_id) is not None


def test_cleanup_twice_is_harmless(services, db, alice, clock):
    services.token_store.create(db, _expired_pair(alice, clock, "x"))
    assert services.cleanup.execute_cleanup() == 1
    assert services.cleanup.execute_cleanup() == 0


def test_stats_counts_expired_and_revoked(services, db, alice, clock):
    services.token_store.create(db, _expired_pair(alice, clock, "old"))
    issued = services.auth.login(db, "alice", "Secret123!")
    services.auth.logout(db, issued.access_token)

    stats = services.cleanup.get_stats()
    assert stats.to_dict() == {
        "totalTokens": 2,
        "expiredTokens": 1,
        "revokedTokens": 1,
        "lastCleanupTime": None,
    }
    assert services.cleanup.get_stats(user_id=alice.id + 100).total_tokens == 0


def test_health_check_reports_healthy(services):
    result = services.cleanup.health_check()
    assert result["status"] == "healthy"
    assert result["timestamp"].endswith("+00:00")


def test_health_check_never_raises(services, monkeypatch):
    def broken_count(db):
        raise OperationalError("SELECT count(*)", {}, Exception("database is gone"))

    monkeypatch.setattr(services.token_store, "count", broken_count)
    result = services.cleanup.health_check()
    assert result["status"] == "unhealthy"
    assert "database is gone" in result["message"]
