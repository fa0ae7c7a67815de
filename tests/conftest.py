import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("SQL_ECHO", "false")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("EMAIL_BACKEND", "disabled")
os.environ.setdefault("APP_URL", "http://testserver")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import re
import sys
from datetime import datetime, timedelta
from pathlib import Path

project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import quicknote.core.database
import quicknote.models  # noqa: F401
from quicknote.core.csrf import CSRF_HEADER, SAFE_METHODS
from quicknote.core.rate_limit import limiter
from quicknote.core.security import BcryptHasher
from quicknote.core.sessions import SessionGate, SessionRecord, SqlSessionStore

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

limiter.enabled = False

LINK_RE = re.compile(r'href="(http://testserver/users/[^"]+)"')
CSRF_META_RE = re.compile(r'<meta name="csrf-token" content="([^"]*)"')


class RecordingMailer:
    """Keeps every message instead of delivering it"""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def send(self, recipients, subject, body, is_html=False):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append({"to": list(recipients), "subject": subject, "body": body, "is_html": is_html})

    def last_link(self) -> str:
        match = LINK_RE.search(self.sent[-1]["body"])
        assert match, "no link in the last message"
        return match.group(1)

    def last_token(self) -> str:
        return self.last_link().rsplit("/", 1)[1]


class FrozenClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FormClient(TestClient):
    """
    TestClient that sends the session's CSRF token with unsafe requests,
    the way the rendered pages do. Pass ``csrf=False`` to ``request`` to
    send a bare request.
    """

    def csrf_token(self) -> str:
        page = super().request("GET", "/users/signin")
        match = CSRF_META_RE.search(page.text)
        assert match, "no CSRF token on the page"
        return match.group(1)

    def request(self, method, url, *args, csrf=True, **kwargs):
        if csrf and method.upper() not in SAFE_METHODS:
            headers = dict(kwargs.pop("headers", None) or {})
            headers.setdefault(CSRF_HEADER, self.csrf_token())
            kwargs["headers"] = headers
        return super().request(method, url, *args, **kwargs)


@pytest.fixture()
def engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture()
def db_session(engine):
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture()
def hasher():
    return BcryptHasher(rounds=4)


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def client(engine, db_session, hasher, mailer):
    from quicknote.main import app
    from quicknote.core.database import get_session

    def get_session_override():
        with Session(engine) as session:
            yield session

    saved_state = (app.state.session_gate, app.state.mailer, app.state.hasher)
    app.state.session_gate = SessionGate(SqlSessionStore(engine))
    app.state.mailer = mailer
    app.state.hasher = hasher

    app.dependency_overrides[get_session] = get_session_override
    with FormClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    app.state.session_gate, app.state.mailer, app.state.hasher = saved_state


class InMemorySessionStore:
    def __init__(self):
        self.rows = {}

    def find(self, token):
        return self.rows.get(token)

    def create(self, token, data, expires_at):
        assert token not in self.rows
        self.rows[token] = SessionRecord(token=token, data=dict(data), expires_at=expires_at)

    def update(self, token, data, expires_at):
        if token not in self.rows:
            return False
        self.rows[token] = SessionRecord(token=token, data=dict(data), expires_at=expires_at)
        return True

    def delete(self, token):
        self.rows.pop(token, None)

    def delete_for_account(self, account_id):
        doomed = [t for t, r in self.rows.items() if r.data.get("account_id") == account_id]
        for token in doomed:
            del self.rows[token]
        return len(doomed)


@pytest.fixture()
def session_store():
    return InMemorySessionStore()


@pytest.fixture()
def gate(session_store, clock):
    return SessionGate(session_store, lifetime=timedelta(hours=1), clock=clock)
