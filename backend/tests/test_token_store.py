from datetime import timedelta

import pytest

from app.core.exceptions import ConflictError, ValidationError
from app.models.token import UserToken
from app.services.token_store import NewTokenPair


def _pair(user, clock, suffix, access_in=timedelta(minutes=15), refresh_in=timedelta(days=7)):
    now = clock()
    return NewTokenPair(
        user_id=user.id,
        access_token=f"access-{suffix}",
        refresh_token=f"refresh-{suffix}",
        access_token_expires_at=now + access_in,
        refresh_token_expires_at=now + refresh_in,
        client_ip="10.0.0.1",
    )


def test_create_and_find_active(services, db, alice, clock):
    store = services.token_store
    record = store.create(db, _pair(alice, clock, "a"))

    assert record.id is not None
    assert record.token_type == "Bearer"
    assert record.is_revoked is False
    assert store.find_active_by_access_token(db, "access-a").id == record.id
    assert store.find_active_by_refresh_token(db, "refresh-a").id == record.id
    assert [t.id for t in store.list_active_for_user(db, alice.id)] == [record.id]


def test_access_must_expire_before_refresh(services, db, alice, clock):
    pair = _pair(alice, clock, "bad", access_in=timedelta(days=7), refresh_in=timedelta(days=7))
    with pytest.raises(ValidationError):
        services.token_store.create(db, pair)
    assert services.token_store.count(db) == 0


def test_duplicate_token_string_is_conflict(services, db, alice, clock):
    services.token_store.create(db, _pair(alice, clock, "dup"))
    with pytest.raises(ConflictError):
        services.token_store.create(db, _pair(alice, clock, "dup"))
    assert services.token_store.count(db) == 1


def test_revoke_is_idempotent(services, db, alice, clock):
    store = services.token_store
    record = store.create(db, _pair(alice, clock, "r"))
    first_revocation = clock()

    assert store.revoke(db, record.id) is True
    clock.advance(minutes=5)
    assert store.revoke(db, record.id) is True

    stored = store.get(db, record.id)
    assert stored.is_revoked is True
    assert stored.revoked_at == first_revocation
    assert store.find_active_by_access_token(db, "access-r") is None
    assert store.find_active_by_refresh_token(db, "refresh-r") is None


def test_revoke_missing_pair(services, db):
    assert services.token_store.revoke(db, 9999) is False


def test_expired_access_token_is_invisible_but_row_remains(services, db, alice, clock):
    store = services.token_store
    record = store.create(db, _pair(alice, clock, "e"))

    clock.advance(minutes=15)
    assert store.find_active_by_access_token(db, "access-e") is None
    assert store.find_active_by_refresh_token(db, "refresh-e").id == record.id
    assert store.get(db, record.id) is not None

    clock.advance(days=7)
    assert store.find_active_by_refresh_token(db, "refresh-e") is None
    assert store.find_by_refresh_token(db, "refresh-e").id == record.id


def test_revoke_all_for_user(services, db, alice, clock):
    store = services.token_store
    for suffix in ("1", "2", "3"):
        store.create(db, _pair(alice, clock, suffix))
    store.revoke(db, store.find_by_access_token(db, "access-1").id)

    assert store.revoke_all_for_user(db, alice.id) == 2
    assert store.revoke_all_for_user(db, alice.id) == 0
    assert store.list_active_for_user(db, alice.id) == []


def test_rotate_consumes_old_pair_once(services, db, alice, clock):
    store = services.token_store
    old = store.create(db, _pair(alice, clock, "old"))

    new = store.rotate(db, old.id, _pair(alice, clock, "new"))
    assert new is not None
    assert store.rotate(db, old.id, _pair(alice, clock, "newer")) is None

    consumed = store.get(db, old.id)
    assert consumed.is_revoked is True
    assert consumed.replaced_by_id == new.id
    assert store.find_by_access_token(db, "access-newer") is None
    assert store.count(db) == 2


def test_purge_expired_respects_retention(services, db, alice, clock):
    store = services.token_store
    store.create(db, _pair(alice, clock, "old", timedelta(minutes=15), timedelta(days=1)))
    store.create(db, _pair(alice, clock, "live", timedelta(minutes=15), timedelta(days=30)))

    clock.advance(days=2)
    assert store.purge_expired(db, retention_days=7) == 0

    clock.advance(days=7)
    assert store.purge_expired(db, retention_days=7) == 1
    assert store.find_by_access_token(db, "access-live") is not None


def test_stats_global_and_per_user(services, db, alice, clock):
    store = services.token_store
    bob = services.users.create_user(db, "bob", "Secret123!")
    store.create(db, _pair(alice, clock, "a1"))
    store.create(db, _pair(alice, clock, "a2", timedelta(minutes=1), timedelta(minutes=2)))
    revoked = store.create(db, _pair(alice, clock, "a3"))
    store.revoke(db, revoked.id)
    store.create(db, _pair(bob, clock, "b1"))

    clock.advance(minutes=5)
    stats = store.stats(db)
    assert (stats.total, stats.active, stats.expired, stats.revoked, stats.refresh_expired) == (4, 2, 1, 1, 1)

    clock.now -= timedelta(minutes=4, seconds=30)
    alice_stats = store.stats(db, user_id=alice.id)
    assert (alice_stats.total, alice_stats.active, alice_stats.expired, alice_stats.revoked) == (3, 2, 0, 1)
    assert db.query(UserToken).count() == 4


def test_revoke_by_access_token(services, db, alice, clock):
    store = services.token_store
    store.create(db, _pair(alice, clock, "logout"))

    assert store.revoke_by_access_token(db, "access-logout") is True
    assert store.revoke_by_access_token(db, "access-logout") is True
    assert store.revoke_by_access_token(db, "access-unknown") is False
    assert store.find_active_by_access_token(db, "access-logout") is None
