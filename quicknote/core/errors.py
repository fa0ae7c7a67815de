import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import RedirectResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from quicknote.core.auth import LoginRequired
from quicknote.core.config import settings
from quicknote.core.render import render_page
from quicknote.core.request_id import current_request_id

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "something went wrong, please try again later"


def _message_page(request: Request, message: str, status_code: int, headers=None):
    response = render_page(
        request,
        "generic-message.html",
        {"message": message, "request_id": current_request_id(request)},
        status_code=status_code,
    )
    if headers:
        response.headers.update(headers)
    return response


def login_required_handler(request: Request, exc: LoginRequired) -> RedirectResponse:
    return RedirectResponse(settings.login_url, status_code=302)


def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error("HTTP %s on %s: %s", exc.status_code, request.url.path, exc.detail)
    return _message_page(request, str(exc.detail), exc.status_code, getattr(exc, "headers", None))


def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.debug("Malformed request to %s: %s", request.url.path, exc.errors())
    return _message_page(request, "invalid request", 400)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    retry_after = getattr(exc, "retry_after", None)
    return _message_page(
        request,
        "too many requests, please wait a moment and try again",
        429,
        {"Retry-After": str(retry_after)} if retry_after else None,
    )


def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"request_id": current_request_id(request)})
    return _message_page(request, GENERIC_ERROR_MESSAGE, 500)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LoginRequired, login_required_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
