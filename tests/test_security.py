import bcrypt
import pytest

from quicknote.core.security import BcryptHasher, HashingError, generate_token


def test_hash_and_verify_round_trip(hasher):
    digest = hasher.hash("s3cret!")
    assert digest != "s3cret!"
    assert hasher.verify("s3cret!", digest) is True
    assert hasher.verify("s3cret?", digest) is False


def test_same_password_gets_different_salts(hasher):
    assert hasher.hash("s3cret!") != hasher.hash("s3cret!")


def test_hash_uses_configured_cost():
    digest = BcryptHasher(rounds=5).hash("s3cret!")
    assert digest.startswith("$2b$05$")


def test_password_longer_than_72_bytes_is_truncated(hasher):
    long_password = "a" * 72
    digest = hasher.hash(long_password + "ignored")
    assert hasher.verify(long_password, digest) is True


def test_malformed_digest_is_a_mismatch(hasher, caplog):
    assert hasher.verify("s3cret!", "not-a-bcrypt-digest") is False
    assert "Could not verify password" in caplog.text


def test_empty_inputs_never_match(hasher):
    digest = hasher.hash("s3cret!")
    assert hasher.verify("", digest) is False
    assert hasher.verify("s3cret!", "") is False


def test_hash_failure_raises_hashing_error(monkeypatch, hasher):
    def broken_hashpw(password, salt):
        raise ValueError("boom")

    monkeypatch.setattr(bcrypt, "hashpw", broken_hashpw)
    with pytest.raises(HashingError):
        hasher.hash("s3cret!")


def test_generate_token_is_url_safe_and_random():
    values = {generate_token() for _ in range(50)}
    assert len(values) == 50
    for value in values:
        assert len(value) == 43
        assert "=" not in value
        assert all(c.isalnum() or c in "-_" for c in value)


def test_dummy_digest_is_a_reusable_bcrypt_digest(hasher):
    digest = hasher.dummy_digest

    assert digest.startswith("$2b$04$")
    assert hasher.dummy_digest is digest
    assert hasher.verify("secret1", digest) is False
