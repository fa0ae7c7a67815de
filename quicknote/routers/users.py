"""
Account pages: sign up, confirmation, sign in and out, password recovery
"""
import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from quicknote.core.auth import CurrentAccountId, CurrentSession
from quicknote.core.csrf import verify_csrf
from quicknote.core.deps import Identity
from quicknote.core.rate_limit import AUTH_RATE_LIMIT, PASSWORD_RATE_LIMIT, limiter
from quicknote.core.render import render_page
from quicknote.core.sessions import flash
from quicknote.services.identity import FORGOT_PASSWORD_FORM_URL, Outcome, OutcomeKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(verify_csrf)])

FORM_STATUS = {
    OutcomeKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    OutcomeKind.DUPLICATE_EMAIL: status.HTTP_409_CONFLICT,
    OutcomeKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    OutcomeKind.NOT_CONFIRMED: status.HTTP_403_FORBIDDEN,
}

TOKEN_STATUS = {
    OutcomeKind.TOKEN_NOT_FOUND: status.HTTP_400_BAD_REQUEST,
    OutcomeKind.TOKEN_EXPIRED: status.HTTP_410_GONE,
    OutcomeKind.TOKEN_ALREADY_CONFIRMED: status.HTTP_409_CONFLICT,
}

EMAIL_FORMS = {
    "forgot-password": {"title": "Forgot password", "action": "/users/forgot-password"},
    "resend-token": {"title": "Resend confirmation link", "action": "/users/resend-token"},
}


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def _raise_internal(outcome: Outcome) -> None:
    if outcome.kind is OutcomeKind.INTERNAL:
        raise HTTPException(status_code=500, detail=f"{outcome.message}, please try again later")


@router.get("/signup")
def signup_page(request: Request):
    return render_page(request, "user-signup.html")


@router.post("/signup")
@limiter.limit(AUTH_RATE_LIMIT)
def signup(
    request: Request,
    identity: Identity,
    email: str = Form(""),
    password: str = Form(""),
):
    outcome = identity.sign_up(email, password)
    _raise_internal(outcome)
    if not outcome.ok:
        return render_page(
            request,
            "user-signup.html",
            {"field_errors": outcome.field_errors, "form_data": {"email": email}},
            status_code=FORM_STATUS[outcome.kind],
        )
    return _redirect("/users/signup-success")


@router.get("/signup-success")
def signup_success(request: Request):
    return render_page(request, "user-signup-success.html")


@router.get("/confirm/{token}")
def confirm(request: Request, token: str, identity: Identity, session: CurrentSession):
    outcome = identity.confirm_sign_up(token)
    _raise_internal(outcome)
    if outcome.ok:
        flash(session, "success", outcome.message)
        return render_page(request, "generic-message.html")
    return render_page(
        request,
        "generic-message.html",
        {"message": outcome.message, "resend_link": outcome.data.get("redirect_to")},
        status_code=TOKEN_STATUS[outcome.kind],
    )


@router.get("/signin")
def signin_page(request: Request):
    return render_page(request, "user-signin.html")


@router.post("/signin")
@limiter.limit(AUTH_RATE_LIMIT)
def signin(
    request: Request,
    identity: Identity,
    session: CurrentSession,
    email: str = Form(""),
    password: str = Form(""),
):
    outcome = identity.sign_in(email, password, session)
    _raise_internal(outcome)
    if outcome.ok:
        return _redirect("/notes")
    return render_page(
        request,
        "user-signin.html",
        {
            "field_errors": outcome.field_errors,
            "form_data": {"email": email},
            "ask_resend_token": outcome.data.get("ask_resend_token", False),
            "has_pending_token": outcome.data.get("has_pending_token", False),
        },
        status_code=FORM_STATUS[outcome.kind],
    )


@router.get("/signout")
def signout(identity: Identity, session: CurrentSession, account_id: CurrentAccountId):
    outcome = identity.sign_out(session)
    _raise_internal(outcome)
    logger.debug("Account %s signed out", account_id)
    return _redirect("/users/signin")


@router.get("/email-form")
def email_form(request: Request, sub: str = ""):
    form = EMAIL_FORMS.get(sub)
    if form is None:
        raise HTTPException(status_code=400, detail="invalid form")
    return render_page(request, "user-email-form.html", form)


def _email_form_error(request: Request, sub: str, outcome: Outcome, email: str):
    data = dict(EMAIL_FORMS[sub])
    data.update({"field_errors": outcome.field_errors, "form_data": {"email": email}})
    return render_page(request, "user-email-form.html", data, status_code=FORM_STATUS[outcome.kind])


@router.post("/forgot-password")
@limiter.limit(PASSWORD_RATE_LIMIT)
def forgot_password(request: Request, identity: Identity, session: CurrentSession, email: str = Form("")):
    outcome = identity.forgot_password(email)
    _raise_internal(outcome)
    if not outcome.ok:
        return _email_form_error(request, "forgot-password", outcome, email)
    flash(session, "success", outcome.message)
    return _redirect("/users/signin")


@router.post("/resend-token")
@limiter.limit(PASSWORD_RATE_LIMIT)
def resend_token(request: Request, identity: Identity, session: CurrentSession, email: str = Form("")):
    outcome = identity.resend_confirmation(email)
    _raise_internal(outcome)
    if not outcome.ok:
        return _email_form_error(request, "resend-token", outcome, email)
    flash(session, "success", outcome.message)
    return _redirect("/users/signup-success")


@router.get("/reset-password/{token}")
def reset_password_page(request: Request, token: str, identity: Identity, session: CurrentSession):
    outcome = identity.check_reset_token(token)
    _raise_internal(outcome)
    if outcome.ok:
        return render_page(request, "user-reset-pw.html", {"token": token})
    if outcome.kind is OutcomeKind.TOKEN_EXPIRED:
        flash(session, "error", outcome.message)
        return _redirect(FORGOT_PASSWORD_FORM_URL)
    raise HTTPException(status_code=TOKEN_STATUS[outcome.kind], detail=outcome.message)


@router.post("/reset-password")
@limiter.limit(PASSWORD_RATE_LIMIT)
def reset_password(
    request: Request,
    identity: Identity,
    session: CurrentSession,
    token: str = Form(""),
    new_password: str = Form(""),
    password_confirm: str = Form(""),
):
    outcome = identity.reset_password(token, new_password, password_confirm, session=session)
    _raise_internal(outcome)
    if outcome.kind is OutcomeKind.VALIDATION:
        return render_page(
            request,
            "user-reset-pw.html",
            {"token": token, "field_errors": outcome.field_errors},
            status_code=FORM_STATUS[outcome.kind],
        )
    if outcome.kind is OutcomeKind.TOKEN_EXPIRED:
        flash(session, "error", outcome.message)
        return _redirect(FORGOT_PASSWORD_FORM_URL)
    if not outcome.ok:
        raise HTTPException(status_code=TOKEN_STATUS[outcome.kind], detail=outcome.message)
    flash(session, "success", outcome.message)
    return _redirect("/users/signin")
