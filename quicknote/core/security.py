import logging
import secrets
from functools import cached_property
from typing import Protocol

import bcrypt

# Configure logging
logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a secret
BCRYPT_MAX_BYTES = 72
DEFAULT_BCRYPT_ROUNDS = 12

# 32 random bytes, 256 bits of entropy
TOKEN_BYTES = 32


class HashingError(Exception):
    """The hashing primitive failed to produce a digest"""


class PasswordHasher(Protocol):
    dummy_digest: str

    def hash(self, plain_password: str) -> str: ...

    def verify(self, plain_password: str, hashed_password: str) -> bool: ...


def _truncate_password_safely(password: str) -> bytes:
    """
    Truncate the password to bcrypt's 72-byte limit.
    Returns bytes directly to avoid encoding problems.
    """
    password_bytes = password.encode("utf-8")
    if len(password_bytes) <= BCRYPT_MAX_BYTES:
        return password_bytes
    return password_bytes[:BCRYPT_MAX_BYTES]


class BcryptHasher:
    """Salted, adaptive password hashing with bcrypt.

    Args:
        rounds: bcrypt work factor (log2 of the iterations). Defaults to the
            library's default; tests lower it to the minimum of 4.
    """

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS):
        self.rounds = rounds

    def hash(self, plain_password: str) -> str:
        """Hash a password, raising HashingError when bcrypt fails"""
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            hashed = bcrypt.hashpw(_truncate_password_safely(plain_password), salt)
        except (ValueError, TypeError) as e:
            raise HashingError(f"could not hash password: {e}") from e
        return hashed.decode("utf-8")

    @cached_property
    def dummy_digest(self) -> str:
        """Digest of a random secret at this work factor, for accounts that do not exist"""
        return self.hash(secrets.token_urlsafe(16))

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """Check a plaintext password against a bcrypt digest.

        A malformed digest is logged and reported as a mismatch.
        """
        if not plain_password or not hashed_password:
            return False
        try:
            return bcrypt.checkpw(
                _truncate_password_safely(plain_password),
                hashed_password.encode("utf-8"),
            )
        except (ValueError, TypeError) as e:
            logger.error("Could not verify password against stored digest: %s", e)
            return False


def generate_token() -> str:
    """Random URL-safe token value, base64 without padding"""
    return secrets.token_urlsafe(TOKEN_BYTES)
