from datetime import datetime, timedelta

import pytest

from app.core.exceptions import (
    RefreshTokenExpiredError,
    RefreshTokenInvalidError,
    TokenExpiredError,
    TokenInvalidError,
)
from app.core.security import ACCESS, REFRESH, JWTManager, user_id_from_claims


class _Clock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def manager(clock):
    return JWTManager("unit-test-secret-key-0123456789abcdef", clock=clock)


def test_access_token_round_trip(manager):
    signed = manager.create_access_token(7, 900, username="alice", role="user")
    payload = manager.verify_access_token(signed.token)
    assert payload["sub"] == "7"
    assert payload["type"] == ACCESS
    assert payload["username"] == "alice"
    assert payload["jti"] == signed.jti
    assert signed.expires_at - signed.issued_at == timedelta(seconds=900)
    assert user_id_from_claims(payload) == 7


def test_access_token_rejects_refresh_type(manager):
    refresh = manager.create_refresh_token(1, 3600)
    with pytest.raises(TokenInvalidError):
        manager.verify_access_token(refresh.token)


def test_refresh_token_rejects_access_type(manager):
    access = manager.create_access_token(1, 900)
    with pytest.raises(RefreshTokenInvalidError):
        manager.verify_refresh_token(access.token)


def test_refresh_token_type(manager):
    signed = manager.create_refresh_token(9, 604800)
    payload = manager.verify_refresh_token(signed.token)
    assert payload["type"] == REFRESH
    assert payload["id"] == 9


def test_expiry_follows_injected_clock(manager, clock):
    access = manager.create_access_token(1, 900)
    refresh = manager.create_refresh_token(1, 1800)
    clock.now += timedelta(seconds=899)
    manager.verify_access_token(access.token)

    clock.now += timedelta(seconds=1)
    with pytest.raises(TokenExpiredError):
        manager.verify_access_token(access.token)
    manager.verify_refresh_token(refresh.token)

    clock.now += timedelta(seconds=900)
    with pytest.raises(RefreshTokenExpiredError):
        manager.verify_refresh_token(refresh.token)


def test_tokens_are_unique_within_one_second(manager):
    first = manager.create_access_token(1, 900)
    second = manager.create_access_token(1, 900)
    assert first.token != second.token


def test_wrong_key_and_garbage_are_invalid(manager, clock):
    other = JWTManager("another-secret-key-0123456789abcdefgh", clock=clock)
    foreign = other.create_access_token(1, 900)
    with pytest.raises(TokenInvalidError):
        manager.verify_access_token(foreign.token)
    assert manager.decode_token("not.a.jwt") is None
    assert manager.decode_token("") is None
