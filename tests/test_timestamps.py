from datetime import timedelta

from sqlmodel import Session

from quicknote.core.sessions import SessionGate, SqlSessionStore
from quicknote.models import Account, UserToken, WebSession
from quicknote.models.base import utcnow
from quicknote.services.tokens import SqlTokenStore, TokenStatus


def test_utcnow_is_naive():
    assert utcnow().tzinfo is None


def test_token_timestamps_survive_a_round_trip(engine, db_session: Session, clock):
    account = Account(email="alice@example.com", password_hash="digest")
    db_session.add(account)
    db_session.commit()
    db_session.refresh(account)

    store = SqlTokenStore(db_session, timedelta(minutes=30), clock)
    store.create(account.id, "value-1")
    clock.advance(minutes=5)
    store.supersede(1, "value-2")

    with Session(engine) as fresh:
        row = fresh.get(UserToken, 1)
        assert row.created_at == clock()
        assert row.created_at.tzinfo is None
        assert SqlTokenStore(fresh, timedelta(minutes=30), clock).confirm("value-2") is TokenStatus.OK

    with Session(engine) as fresh:
        assert fresh.get(Account, account.id).updated_at == clock()


def test_session_expiry_survives_a_round_trip(engine, db_session: Session, clock):
    gate = SessionGate(SqlSessionStore(engine), lifetime=timedelta(hours=1), clock=clock)
    session = gate.load(None)
    gate.establish(session, 1)

    with Session(engine) as fresh:
        assert fresh.get(WebSession, session.token).expires_at == clock() + timedelta(hours=1)
    assert gate.load(session.token).account_id == 1
