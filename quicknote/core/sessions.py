"""
Server-side sessions.

The browser only holds an opaque identifier in a cookie; everything else,
including the signed-in account, lives in the ``web_sessions`` table. The
identifier is rotated whenever an account is bound to the session.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol

from sqlalchemy import Engine, delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from quicknote.core.security import generate_token
from quicknote.models.base import utcnow
from quicknote.models.session import WebSession
from quicknote.services.exceptions import StoreError

logger = logging.getLogger(__name__)

ACCOUNT_ID_KEY = "account_id"
FLASH_KEY = "flash"


@dataclass
class SessionRecord:
    token: str
    data: dict
    expires_at: datetime


class SessionStore(Protocol):
    def find(self, token: str) -> Optional[SessionRecord]: ...

    def create(self, token: str, data: dict, expires_at: datetime) -> None: ...

    def update(self, token: str, data: dict, expires_at: datetime) -> bool: ...

    def delete(self, token: str) -> None: ...

    def delete_for_account(self, account_id: int) -> int: ...


def _bound_account(data: dict) -> Optional[int]:
    account_id = data.get(ACCOUNT_ID_KEY)
    return account_id if isinstance(account_id, int) else None


class SqlSessionStore:
    """Session rows in the application database, one short transaction per call"""

    def __init__(self, engine: Engine):
        self.engine = engine

    def find(self, token: str) -> Optional[SessionRecord]:
        try:
            with Session(self.engine) as db:
                row = db.get(WebSession, token)
                if row is None:
                    return None
                return SessionRecord(token=row.token, data=json.loads(row.data or "{}"), expires_at=row.expires_at)
        except SQLAlchemyError as e:
            raise StoreError("could not load session") from e

    def create(self, token: str, data: dict, expires_at: datetime) -> None:
        row = WebSession(token=token, data=json.dumps(data), account_id=_bound_account(data), expires_at=expires_at)
        try:
            with Session(self.engine) as db:
                db.add(row)
                db.commit()
        except SQLAlchemyError as e:
            raise StoreError("could not create session") from e

    def update(self, token: str, data: dict, expires_at: datetime) -> bool:
        """Rewrite an existing row; False when it was deleted in the meantime"""
        try:
            with Session(self.engine) as db:
                result = db.exec(
                    update(WebSession)
                    .where(WebSession.token == token)
                    .values(data=json.dumps(data), account_id=_bound_account(data), expires_at=expires_at)
                )
                db.commit()
                return result.rowcount == 1
        except SQLAlchemyError as e:
            raise StoreError("could not save session") from e

    def delete(self, token: str) -> None:
        try:
            with Session(self.engine) as db:
                db.exec(delete(WebSession).where(WebSession.token == token))
                db.commit()
        except SQLAlchemyError as e:
            raise StoreError("could not delete session") from e

    def delete_for_account(self, account_id: int) -> int:
        try:
            with Session(self.engine) as db:
                result = db.exec(delete(WebSession).where(WebSession.account_id == account_id))
                db.commit()
                return result.rowcount
        except SQLAlchemyError as e:
            raise StoreError("could not revoke sessions") from e


class RequestSession:
    """Session values of the request being served"""

    def __init__(self, token: Optional[str] = None, data: Optional[dict] = None, expires_at: Optional[datetime] = None):
        self.token = token
        self.data: dict = dict(data or {})
        self.expires_at = expires_at
        self.modified = False
        self.rotated = False
        self.destroyed = False

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def put(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.modified = True

    def pop(self, key: str, default: Any = None) -> Any:
        if key not in self.data:
            return default
        self.modified = True
        return self.data.pop(key)

    @property
    def account_id(self) -> int:
        value = self.data.get(ACCOUNT_ID_KEY)
        return value if isinstance(value, int) else 0

    @property
    def is_authenticated(self) -> bool:
        return self.account_id > 0


class SessionGate:
    """
    Binds accounts to server-side sessions.

    Args:
        store: session persistence
        lifetime: how long an identifier stays valid after it is issued
        clock: source of "now", naive UTC
    """

    def __init__(self, store: SessionStore, lifetime: timedelta = timedelta(hours=1), clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.lifetime = lifetime
        self.clock = clock

    def load(self, token: Optional[str]) -> RequestSession:
        if not token:
            return RequestSession()
        record = self.store.find(token)
        if record is None:
            return RequestSession()
        if record.expires_at <= self.clock():
            self.store.delete(token)
            return RequestSession()
        return RequestSession(record.token, record.data, record.expires_at)

    def establish(self, session: RequestSession, account_id: int) -> None:
        """
        Bind an account to the session under a brand new identifier.

        The previous identifier is destroyed first, so a session planted
        before sign-in can never carry the authenticated account. The new
        binding is committed before this returns.
        """
        if session.token:
            self.store.delete(session.token)
        session.token = generate_token()
        session.expires_at = self.clock() + self.lifetime
        session.data[ACCOUNT_ID_KEY] = account_id
        self.store.create(session.token, session.data, session.expires_at)
        session.modified = False
        session.rotated = True
        session.destroyed = False
        logger.debug("Session established for account %s", account_id)

    def teardown(self, session: RequestSession) -> None:
        if session.token:
            self.store.delete(session.token)
        session.token = None
        session.data = {}
        session.expires_at = None
        session.modified = False
        session.destroyed = True

    def save(self, session: RequestSession) -> bool:
        """
        Persist values written during the request.

        Returns True when a new identifier was issued and the cookie must be set.

        Rows are only ever created under a freshly issued identifier. When
        the row behind the current identifier was deleted while the request
        was in flight (sign-out elsewhere, password reset), its account
        binding is dropped and the remaining values move to a new anonymous
        identifier.
        """
        if session.destroyed or not session.modified:
            return False
        if session.token is not None and self.store.update(session.token, session.data, session.expires_at):
            session.modified = False
            return False
        if session.token is not None:
            logger.debug("Session row vanished during the request, reissuing it unbound")
            session.data.pop(ACCOUNT_ID_KEY, None)
        session.token = generate_token()
        session.expires_at = self.clock() + self.lifetime
        self.store.create(session.token, session.data, session.expires_at)
        session.modified = False
        return True

    def revoke_account(self, account_id: int, current: Optional[RequestSession] = None) -> int:
        """
        Destroy every session bound to an account.

        When the request's own session is one of them it is unbound and will
        be saved under a new identifier, so values written later in the
        request (a flash message) do not resurrect the revoked row.
        """
        revoked = self.store.delete_for_account(account_id)
        if current is not None and current.account_id == account_id:
            current.token = None
            current.expires_at = None
            current.data.pop(ACCOUNT_ID_KEY, None)
            current.modified = True
        logger.info("Revoked %s session(s) of account %s", revoked, account_id)
        return revoked


def flash(session: RequestSession, kind: str, message: str) -> None:
    """Queue a message for the next rendered page"""
    session.put(FLASH_KEY, {"type": kind, "message": message})


def pop_flash(session: RequestSession) -> Optional[dict]:
    return session.pop(FLASH_KEY)
