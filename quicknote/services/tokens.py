"""
Lifecycle of the single-use tokens behind account confirmation and password reset.

A token is pending until it is consumed; consumption is terminal. Expiry is
never stored: a token is expired when more than the TTL has elapsed since its
created_at, so a TTL change applies to every outstanding token.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional, Protocol

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from quicknote.models.account import Account
from quicknote.models.base import TokenPurpose, utcnow
from quicknote.models.token import UserToken
from quicknote.services.exceptions import StoreError, TokenCollisionError

logger = logging.getLogger(__name__)


class TokenStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_CONFIRMED = "already_confirmed"


@dataclass(frozen=True)
class ConsumeResult:
    status: TokenStatus
    email: Optional[str] = None
    account_id: Optional[int] = None


class TokenStore(Protocol):
    def create(self, owner_id: int, value: str, purpose: TokenPurpose = TokenPurpose.CONFIRMATION) -> UserToken: ...

    def find_pending(self, owner_id: int, purpose: TokenPurpose = TokenPurpose.CONFIRMATION) -> Optional[UserToken]: ...

    def check(self, value: str, purpose: TokenPurpose = TokenPurpose.CONFIRMATION) -> TokenStatus: ...

    def confirm(self, value: str) -> TokenStatus: ...

    def supersede(self, token_id: int, new_value: str) -> UserToken: ...

    def consume_for_password_reset(self, value: str, new_password_hash: str) -> ConsumeResult: ...


class SqlTokenStore:
    """
    Token persistence on the request's database session.

    Args:
        session: database session
        ttl: validity window measured from created_at
        clock: source of "now", naive UTC
    """

    def __init__(
        self,
        session: Session,
        ttl: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.ttl = ttl
        self.clock = clock

    def create(self, owner_id: int, value: str, purpose: TokenPurpose = TokenPurpose.CONFIRMATION) -> UserToken:
        now = self.clock()
        record = UserToken(user_id=owner_id, value=value, purpose=purpose, created_at=now, updated_at=now)
        try:
            self.session.add(record)
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise TokenCollisionError("token value already in use") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError("could not create token") from e
        self.session.refresh(record)
        return record

    def find_pending(self, owner_id: int, purpose: TokenPurpose = TokenPurpose.CONFIRMATION) -> Optional[UserToken]:
        try:
            return self.session.exec(
                select(UserToken)
                .where(
                    UserToken.user_id == owner_id,
                    UserToken.purpose == purpose,
                    UserToken.confirmed == False,  # noqa: E712
                )
                .order_by(UserToken.created_at.desc(), UserToken.id.desc())
            ).first()
        except SQLAlchemyError as e:
            raise StoreError("could not look up pending token") from e

    def check(self, value: str, purpose: TokenPurpose = TokenPurpose.CONFIRMATION) -> TokenStatus:
        try:
            record = self.session.exec(
                select(UserToken).where(UserToken.value == value, UserToken.purpose == purpose)
            ).first()
        except SQLAlchemyError as e:
            raise StoreError("could not check token") from e
        return self._status(record)

    def _status(self, record: Optional[UserToken]) -> TokenStatus:
        if record is None:
            return TokenStatus.NOT_FOUND
        if self.clock() - record.created_at > self.ttl:
            return TokenStatus.EXPIRED
        if record.confirmed:
            return TokenStatus.ALREADY_CONFIRMED
        return TokenStatus.OK

    def _claim(self, value: str, purpose: TokenPurpose, now: datetime) -> Optional[int]:
        """
        Flip a pending, unexpired token to confirmed with one conditional UPDATE.

        Returns the owner id, or None when no row qualified (the token is
        unknown, expired or was claimed by someone else first).
        """
        result = self.session.exec(
            update(UserToken)
            .where(
                UserToken.value == value,
                UserToken.purpose == purpose,
                UserToken.confirmed == False,  # noqa: E712
                UserToken.created_at >= now - self.ttl,
            )
            .values(confirmed=True, updated_at=now)
        )
        if result.rowcount != 1:
            return None
        return self.session.exec(select(UserToken.user_id).where(UserToken.value == value)).one()

    def _unclaimed_status(self, value: str, purpose: TokenPurpose) -> TokenStatus:
        status = self.check(value, purpose)
        # A token that reads as pending here lost a race against a supersede
        return TokenStatus.NOT_FOUND if status is TokenStatus.OK else status

    def confirm(self, value: str) -> TokenStatus:
        """
        Consume a confirmation token and activate its owner in one transaction.
        """
        now = self.clock()
        try:
            owner_id = self._claim(value, TokenPurpose.CONFIRMATION, now)
            if owner_id is None:
                self.session.rollback()
                return self._unclaimed_status(value, TokenPurpose.CONFIRMATION)

            self.session.exec(
                update(Account)
                .where(Account.id == owner_id, Account.active == False)  # noqa: E712
                .values(active=True, updated_at=now)
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError("could not confirm token") from e

        logger.debug("Confirmation token consumed for account %s", owner_id)
        return TokenStatus.OK

    def supersede(self, token_id: int, new_value: str) -> UserToken:
        """
        Replace the value of a pending token and restart its validity window.
        The previous value stops resolving immediately.
        """
        now = self.clock()
        try:
            result = self.session.exec(
                update(UserToken)
                .where(UserToken.id == token_id, UserToken.confirmed == False)  # noqa: E712
                .values(value=new_value, created_at=now, updated_at=now)
            )
            if result.rowcount != 1:
                self.session.rollback()
                raise StoreError(f"token {token_id} is no longer pending")
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise TokenCollisionError("token value already in use") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError("could not supersede token") from e

        record = self.session.get(UserToken, token_id)
        self.session.refresh(record)
        return record

    def consume_for_password_reset(self, value: str, new_password_hash: str) -> ConsumeResult:
        """
        Consume a reset token and replace its owner's credential in one transaction.
        """
        now = self.clock()
        try:
            owner_id = self._claim(value, TokenPurpose.PASSWORD_RESET, now)
            if owner_id is None:
                self.session.rollback()
                return ConsumeResult(self._unclaimed_status(value, TokenPurpose.PASSWORD_RESET))

            account = self.session.get(Account, owner_id)
            if account is None:
                self.session.rollback()
                raise StoreError(f"token owner {owner_id} does not exist")
            email = account.email
            account.password_hash = new_password_hash
            account.updated_at = now
            self.session.add(account)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError("could not reset password") from e

        return ConsumeResult(TokenStatus.OK, email=email, account_id=owner_id)
