import logging
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from quicknote.models.account import Account
from quicknote.services.exceptions import DuplicateEmailError, StoreError

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class AccountStore(Protocol):
    def create(self, email: str, password_hash: str) -> Account: ...

    def find_by_email(self, email: str) -> Optional[Account]: ...


class SqlAccountStore:
    """Account persistence on the request's database session"""

    def __init__(self, session: Session):
        self.session = session

    def create(self, email: str, password_hash: str) -> Account:
        """
        Insert an inactive account.

        Raises:
            DuplicateEmailError: the unique index on email rejected the row
            StoreError: any other database failure
        """
        account = Account(email=normalize_email(email), password_hash=password_hash, active=False)
        try:
            self.session.add(account)
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.debug("Account not created, email already registered")
            raise DuplicateEmailError("email not available") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError("could not create account") from e
        self.session.refresh(account)
        return account

    def find_by_email(self, email: str) -> Optional[Account]:
        try:
            return self.session.exec(
                select(Account).where(Account.email == normalize_email(email))
            ).first()
        except SQLAlchemyError as e:
            raise StoreError("could not look up account") from e

