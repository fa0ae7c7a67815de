"""
Cross-site request forgery protection.

Each session keeps a random secret. Pages embed it signed with itsdangerous,
and every state-changing request has to send the signed value back, in the
``csrf_token`` form field or the ``X-CSRF-Token`` header.
"""
import hmac
import logging
import secrets
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from quicknote.core.auth import get_request_session
from quicknote.core.config import settings
from quicknote.core.sessions import RequestSession

logger = logging.getLogger(__name__)

CSRF_FIELD = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"
CSRF_SESSION_KEY = "csrf_secret"
CSRF_SALT = "quicknote.csrf.v1"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=settings.secret_key, salt=CSRF_SALT)


def csrf_token(session: RequestSession) -> str:
    """Signed token for the session's forms, creating its secret on first use"""
    secret = session.get(CSRF_SESSION_KEY)
    if not secret:
        secret = secrets.token_urlsafe(16)
        session.put(CSRF_SESSION_KEY, secret)
    return _serializer().dumps(secret)


def token_matches(session: RequestSession, token: Optional[str], max_age: int) -> bool:
    expected = session.get(CSRF_SESSION_KEY)
    if not expected or not token:
        return False
    try:
        secret = _serializer().loads(token, max_age=max_age)
    except (BadSignature, BadTimeSignature):
        return False
    return isinstance(secret, str) and hmac.compare_digest(secret, expected)


async def verify_csrf(
    request: Request,
    session: Annotated[RequestSession, Depends(get_request_session)],
) -> None:
    """
    Router dependency that rejects unsafe requests without a valid token.

    Raises:
        HTTPException: 403 when the token is missing, forged, expired or
            belongs to another session
    """
    if request.method in SAFE_METHODS:
        return
    token = request.headers.get(CSRF_HEADER)
    if not token:
        form = await request.form()
        value = form.get(CSRF_FIELD)
        token = value if isinstance(value, str) else None
    if not token_matches(session, token, max_age=settings.session_lifetime_minutes * 60):
        logger.warning("Rejected %s %s without a valid CSRF token", request.method, request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="your form has expired, please reload the page and try again",
        )
