"""
Account flows: sign up, confirmation, sign in and out, confirmation resend,
forgotten and reset password.

Every operation returns an Outcome instead of raising, so the HTTP layer can
branch on the kind and the user never sees a stack trace. Infrastructure
failures (storage, hashing, mail) are logged here with their cause and
reported as INTERNAL; nothing is retried.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from quicknote.core.security import HashingError, PasswordHasher, generate_token
from quicknote.core.sessions import RequestSession, SessionGate
from quicknote.models.base import TokenPurpose
from quicknote.models.token import UserToken
from quicknote.schemas.users import (
    EmailForm,
    ResetPasswordForm,
    SignInForm,
    SignUpForm,
    field_errors,
)
from quicknote.services.accounts import AccountStore
from quicknote.services.email_service import EmailService, MailDeliveryError
from quicknote.services.exceptions import DuplicateEmailError, StoreError, TokenCollisionError
from quicknote.services.tokens import TokenStatus, TokenStore

logger = logging.getLogger(__name__)

# A fresh value is drawn when the unique index rejects a generated one
MAX_TOKEN_ATTEMPTS = 3

FORGOT_PASSWORD_FORM_URL = "/users/email-form?sub=forgot-password"


class OutcomeKind(str, Enum):
    OK = "ok"
    VALIDATION = "validation"
    DUPLICATE_EMAIL = "duplicate_email"
    INVALID_CREDENTIALS = "invalid_credentials"
    NOT_CONFIRMED = "not_confirmed"
    TOKEN_NOT_FOUND = "token_not_found"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_ALREADY_CONFIRMED = "token_already_confirmed"
    INTERNAL = "internal"


@dataclass
class Outcome:
    kind: OutcomeKind
    message: str = ""
    field_errors: Dict[str, str] = field(default_factory=dict)
    data: Dict[str, Any] = field(default_factory=dict)
    cause: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.OK


def _validation(exc: ValidationError) -> Outcome:
    return Outcome(OutcomeKind.VALIDATION, message="invalid form", field_errors=field_errors(exc))


def _invalid_email() -> Outcome:
    return Outcome(OutcomeKind.VALIDATION, message="invalid email", field_errors={"email": "invalid email"})


class IdentityService:
    """
    Orchestrates the account flows over the account and token stores.

    Args:
        accounts: account persistence
        tokens: confirmation and reset token persistence
        hasher: password hashing
        emails: account email formatting and delivery
        gate: server-side session binding
        app_url: scheme, host and port the mailed links point at
    """

    def __init__(
        self,
        *,
        accounts: AccountStore,
        tokens: TokenStore,
        hasher: PasswordHasher,
        emails: EmailService,
        gate: SessionGate,
        app_url: str,
    ):
        self.accounts = accounts
        self.tokens = tokens
        self.hasher = hasher
        self.emails = emails
        self.gate = gate
        self.app_url = app_url.rstrip("/")

    def _internal(self, message: str, cause: BaseException) -> Outcome:
        logger.error("%s: %s", message, cause, exc_info=cause)
        return Outcome(OutcomeKind.INTERNAL, message=message, cause=cause)

    def _link(self, path: str, value: str) -> str:
        return f"{self.app_url}/users/{path}/{value}"

    def _with_fresh_value(self, write: Callable[[str], UserToken]) -> UserToken:
        for attempt in range(1, MAX_TOKEN_ATTEMPTS + 1):
            try:
                return write(generate_token())
            except TokenCollisionError:
                if attempt == MAX_TOKEN_ATTEMPTS:
                    raise
                logger.warning("Generated token value collided, drawing a new one (attempt %s)", attempt)
        raise AssertionError("unreachable")

    def _issue_token(self, owner_id: int, purpose: TokenPurpose) -> UserToken:
        return self._with_fresh_value(lambda value: self.tokens.create(owner_id, value, purpose))

    def _supersede_token(self, token_id: int) -> UserToken:
        return self._with_fresh_value(lambda value: self.tokens.supersede(token_id, value))

    def sign_up(self, email: str, password: str) -> Outcome:
        """
        Create an inactive account and mail its confirmation link.

        A registered email is reported as DUPLICATE_EMAIL ("email not
        available") and no second account is created.
        """
        try:
            form = SignUpForm(email=email, password=password)
        except ValidationError as e:
            return _validation(e)

        try:
            password_hash = self.hasher.hash(form.password)
        except HashingError as e:
            return self._internal("failed to hash password", e)

        try:
            account = self.accounts.create(form.email, password_hash)
        except DuplicateEmailError:
            logger.debug("Sign up rejected, email already registered")
            return Outcome(
                OutcomeKind.DUPLICATE_EMAIL,
                message="email not available",
                field_errors={"email": "email not available"},
            )
        except StoreError as e:
            return self._internal("failed to create user", e)

        try:
            token = self._issue_token(account.id, TokenPurpose.CONFIRMATION)
        except StoreError as e:
            return self._internal("failed to create user token", e)

        try:
            self.emails.send_confirmation(
                to_email=account.email,
                confirmation_link=self._link("confirm", token.value),
            )
        except MailDeliveryError as e:
            return self._internal("failed to send confirmation email", e)

        logger.debug("Account %s created, confirmation pending", account.id)
        return Outcome(
            OutcomeKind.OK,
            message="your account was created, check your email to confirm it",
            data={"account_id": account.id},
        )

    def confirm_sign_up(self, token_value: str) -> Outcome:
        """Consume a confirmation token and activate its account"""
        if not (token_value or "").strip():
            return Outcome(OutcomeKind.TOKEN_NOT_FOUND, message="invalid confirmation link")

        try:
            status = self.tokens.confirm(token_value)
        except StoreError as e:
            return self._internal("failed to confirm user", e)

        if status is TokenStatus.OK:
            return Outcome(OutcomeKind.OK, message="your registration was successfully confirmed")
        if status is TokenStatus.EXPIRED:
            return Outcome(
                OutcomeKind.TOKEN_EXPIRED,
                message="your confirmation link has expired, request a new one",
                data={"redirect_to": "/users/email-form?sub=resend-token"},
            )
        if status is TokenStatus.ALREADY_CONFIRMED:
            logger.debug("Confirmation token reused")
            return Outcome(OutcomeKind.TOKEN_ALREADY_CONFIRMED, message="your registration was already confirmed")
        return Outcome(OutcomeKind.TOKEN_NOT_FOUND, message="invalid confirmation link")

    def sign_in(self, email: str, password: str, session: RequestSession) -> Outcome:
        """
        Verify credentials and bind the account to a freshly rotated session.

        An unknown email and a wrong password give the same outcome. The
        active flag is only examined once the password matched.
        """
        try:
            form = SignInForm(email=email, password=password)
        except ValidationError as e:
            return _validation(e)

        try:
            account = self.accounts.find_by_email(form.email)
        except StoreError as e:
            return self._internal("failed to verify credentials", e)

        if account is None:
            # Unknown emails pay the same bcrypt cost as a wrong password
            self.hasher.verify(form.password, self.hasher.dummy_digest)
        if account is None or not self.hasher.verify(form.password, account.password_hash):
            return Outcome(
                OutcomeKind.INVALID_CREDENTIALS,
                message="invalid credentials",
                field_errors={"email": "invalid credentials"},
            )

        if not account.active:
            try:
                pending = self.tokens.find_pending(account.id, TokenPurpose.CONFIRMATION)
            except StoreError as e:
                return self._internal("failed to get user pending token", e)
            return Outcome(
                OutcomeKind.NOT_CONFIRMED,
                message="your account is not active",
                field_errors={"email": "your account is not active"},
                data={"email": account.email, "ask_resend_token": True, "has_pending_token": pending is not None},
            )

        try:
            self.gate.establish(session, account.id)
        except StoreError as e:
            return self._internal("failed to renew session token", e)

        return Outcome(OutcomeKind.OK, data={"account_id": account.id})

    def sign_out(self, session: RequestSession) -> Outcome:
        try:
            self.gate.teardown(session)
        except StoreError as e:
            return self._internal("failed to destroy session", e)
        return Outcome(OutcomeKind.OK)

    def resend_confirmation(self, email: str) -> Outcome:
        """
        Mail a new confirmation link.

        The pending token is superseded whether or not it expired, so the
        previous link stops working every time. An inactive account left
        without any pending token (its first one was never written) gets a
        new one.
        """
        try:
            form = EmailForm(email=email)
        except ValidationError as e:
            return _validation(e)

        try:
            account = self.accounts.find_by_email(form.email)
            pending = self.tokens.find_pending(account.id, TokenPurpose.CONFIRMATION) if account else None
        except StoreError as e:
            return self._internal("failed to get user pending token", e)

        if account is None or account.active:
            return _invalid_email()

        try:
            if pending is not None:
                token = self._supersede_token(pending.id)
            else:
                logger.info("Account %s had no pending confirmation token, issuing one", account.id)
                token = self._issue_token(account.id, TokenPurpose.CONFIRMATION)
        except StoreError as e:
            return self._internal("failed to update token", e)

        try:
            self.emails.send_confirmation(
                to_email=account.email,
                confirmation_link=self._link("confirm", token.value),
                resend=True,
            )
        except MailDeliveryError as e:
            return self._internal("failed to send confirmation email", e)

        return Outcome(OutcomeKind.OK, message="your token was successfully sent")

    def forgot_password(self, email: str) -> Outcome:
        """
        Mail a password reset link.

        An unknown email gets the same field error as a malformed one. A
        reset token still pending is superseded rather than joined by a
        second one.
        """
        try:
            form = EmailForm(email=email)
        except ValidationError as e:
            return _validation(e)

        try:
            account = self.accounts.find_by_email(form.email)
            pending = self.tokens.find_pending(account.id, TokenPurpose.PASSWORD_RESET) if account else None
        except StoreError as e:
            return self._internal("failed to find user", e)

        if account is None:
            logger.debug("Password reset requested for an unknown email")
            return _invalid_email()

        try:
            if pending is not None:
                token = self._supersede_token(pending.id)
            else:
                token = self._issue_token(account.id, TokenPurpose.PASSWORD_RESET)
        except StoreError as e:
            return self._internal("failed to create user token", e)

        try:
            self.emails.send_password_reset(
                to_email=account.email,
                reset_link=self._link("reset-password", token.value),
            )
        except MailDeliveryError as e:
            return self._internal("failed to send password reset email", e)

        return Outcome(OutcomeKind.OK, message="Almost there, check your email to reset your password")

    def _reset_token_outcome(self, status: TokenStatus) -> Outcome:
        if status is TokenStatus.EXPIRED:
            return Outcome(
                OutcomeKind.TOKEN_EXPIRED,
                message="your token has expired, please try again",
                data={"redirect_to": FORGOT_PASSWORD_FORM_URL},
            )
        # A consumed link reads exactly like an unknown one
        return Outcome(OutcomeKind.TOKEN_NOT_FOUND, message="invalid or already used link")

    def check_reset_token(self, token_value: str) -> Outcome:
        """Whether a reset link can still be used, without consuming it"""
        if not (token_value or "").strip():
            return Outcome(OutcomeKind.TOKEN_NOT_FOUND, message="invalid token")
        try:
            status = self.tokens.check(token_value, TokenPurpose.PASSWORD_RESET)
        except StoreError as e:
            return self._internal("failed to check token", e)
        if status is TokenStatus.OK:
            return Outcome(OutcomeKind.OK, data={"token": token_value})
        return self._reset_token_outcome(status)

    def reset_password(
        self,
        token_value: str,
        new_password: str,
        password_confirm: str,
        session: Optional[RequestSession] = None,
    ) -> Outcome:
        """
        Replace the password of the reset token's owner.

        The form is fully validated, including the confirmation match,
        before the token store is touched. On success every session of the
        account is revoked.
        """
        try:
            form = ResetPasswordForm(
                token=token_value,
                new_password=new_password,
                password_confirm=password_confirm,
            )
        except ValidationError as e:
            outcome = _validation(e)
            outcome.data["token"] = token_value
            return outcome

        try:
            password_hash = self.hasher.hash(form.new_password)
        except HashingError as e:
            return self._internal("failed to hash password", e)

        try:
            result = self.tokens.consume_for_password_reset(form.token, password_hash)
        except StoreError as e:
            return self._internal("failed to update password", e)

        if result.status is not TokenStatus.OK:
            return self._reset_token_outcome(result.status)

        try:
            self.gate.revoke_account(result.account_id, current=session)
        except StoreError as e:
            logger.error("Password changed but sessions of account %s were not revoked", result.account_id, exc_info=e)

        try:
            self.emails.send_password_changed(to_email=result.email)
        except MailDeliveryError as e:
            logger.error("Failed to send password changed notice: %s", e)

        return Outcome(OutcomeKind.OK, message="your password was successfully changed, you can now sign in")
