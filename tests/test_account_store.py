import pytest
from sqlmodel import Session, select

from quicknote.models import Account
from quicknote.services.accounts import SqlAccountStore
from quicknote.services.exceptions import DuplicateEmailError


def test_create_stores_inactive_account_with_normalized_email(db_session: Session):
    store = SqlAccountStore(db_session)

    account = store.create("  Alice@Example.COM ", "digest")

    assert account.id is not None
    assert account.email == "alice@example.com"
    assert account.active is False
    assert store.find_by_email("ALICE@example.com").id == account.id


def test_duplicate_email_is_rejected_without_second_row(db_session: Session):
    store = SqlAccountStore(db_session)
    store.create("alice@example.com", "digest")

    with pytest.raises(DuplicateEmailError):
        store.create("Alice@example.com", "other-digest")

    rows = db_session.exec(select(Account)).all()
    assert len(rows) == 1
    assert rows[0].password_hash == "digest"


def test_find_by_email_unknown_returns_none(db_session: Session):
    assert SqlAccountStore(db_session).find_by_email("nobody@example.com") is None
