"""
Errors raised by the persistence services
"""


class StoreError(Exception):
    """The storage backend failed; the caller never sees a partial write"""


class DuplicateEmailError(StoreError):
    """An account with this email already exists"""


class TokenCollisionError(StoreError):
    """A token with this value already exists"""
