import bcrypt
import pytest

from app.core.passwords import BCRYPT, SCRYPT, PasswordHasher


@pytest.fixture
def hasher():
    return PasswordHasher(cost=1024, block_size=8, parallelization=1)


def test_hash_format(hasher):
    stored = hasher.hash("Secret123!")
    salt_hex, key_hex = stored.split(".")
    assert len(salt_hex) == 32
    assert len(key_hex) == 64
    assert stored == stored.lower()


def test_hash_and_verify(hasher):
    stored = hasher.hash("Secret123!")
    assert hasher.verify("Secret123!", stored)
    assert not hasher.verify("secret123!", stored)
    assert not hasher.verify("", stored)


def test_same_password_gets_fresh_salt(hasher):
    assert hasher.hash("Secret123!") != hasher.hash("Secret123!")


def test_unicode_password(hasher):
    stored = hasher.hash("pässwörd-密码")
    assert hasher.verify("pässwörd-密码", stored)


@pytest.mark.parametrize(
    "stored",
    [None, "", "abc", "zz.zz", "00.00", "a.b.c", ".", "deadbeef.", ".deadbeef", "$2b$nonsense"],
)
def test_malformed_hash_fails_without_raising(hasher, stored):
    assert hasher.verify("Secret123!", stored) is False


def test_hash_from_other_cost_does_not_verify(hasher):
    other = PasswordHasher(cost=2048, block_size=8, parallelization=1)
    assert not hasher.verify("Secret123!", other.hash("Secret123!"))


def test_legacy_bcrypt_hash_verifies_and_needs_rehash(hasher):
    legacy = bcrypt.hashpw(b"Secret123!", bcrypt.gensalt(rounds=4)).decode()
    assert hasher.verify("Secret123!", legacy)
    assert not hasher.verify("wrong", legacy)
    assert hasher.algorithm_of(legacy) == BCRYPT
    assert hasher.needs_rehash(legacy)


def test_scrypt_hash_does_not_need_rehash(hasher):
    stored = hasher.hash("Secret123!")
    assert hasher.algorithm_of(stored) == SCRYPT
    assert not hasher.needs_rehash(stored)


def test_dummy_verify_returns_nothing(hasher):
    assert hasher.dummy_verify("anything") is None
