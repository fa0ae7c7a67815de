"""
Request scoped dependencies
"""
from datetime import timedelta
from typing import Annotated

from fastapi import Depends, Request
from sqlmodel import Session

from quicknote.core.config import settings
from quicknote.core.database import get_session
from quicknote.services.accounts import SqlAccountStore
from quicknote.services.email_service import EmailService
from quicknote.services.identity import IdentityService
from quicknote.services.tokens import SqlTokenStore

DbSession = Annotated[Session, Depends(get_session)]


def get_identity_service(request: Request, db: DbSession) -> IdentityService:
    """Identity service over the request's database session.

    The hasher, mail transport and session gate live on ``app.state``.
    """
    state = request.app.state
    return IdentityService(
        accounts=SqlAccountStore(db),
        tokens=SqlTokenStore(db, ttl=timedelta(minutes=settings.token_ttl_minutes)),
        hasher=state.hasher,
        emails=EmailService(state.mailer, settings.app_name),
        gate=state.session_gate,
        app_url=settings.app_url,
    )


Identity = Annotated[IdentityService, Depends(get_identity_service)]
