"""
Session-based authorization dependencies
"""
import logging
from typing import Annotated

from fastapi import Depends, Request

from quicknote.core.sessions import RequestSession

logger = logging.getLogger(__name__)


class LoginRequired(Exception):
    """The route needs a signed-in account and the session has none"""


def get_request_session(request: Request) -> RequestSession:
    """Session loaded by SessionMiddleware for this request"""
    session = getattr(request.state, "session", None)
    if session is None:
        raise RuntimeError("SessionMiddleware is not installed")
    return session


def require_authenticated(
    request: Request,
    session: Annotated[RequestSession, Depends(get_request_session)],
) -> int:
    """
    Account id bound to the session.

    Raises:
        LoginRequired: no account, or a non-positive id, is bound; the
            handler answers with a redirect to the sign-in page and the
            endpoint never runs
    """
    account_id = session.account_id
    if account_id <= 0:
        logger.debug("Anonymous request to protected route %s", request.url.path)
        raise LoginRequired()
    return account_id


CurrentSession = Annotated[RequestSession, Depends(get_request_session)]
CurrentAccountId = Annotated[int, Depends(require_authenticated)]


__all__ = [
    "LoginRequired",
    "get_request_session",
    "require_authenticated",
    "CurrentSession",
    "CurrentAccountId",
]
