from datetime import timedelta

from fastapi import FastAPI, Request

from quicknote.core.config import settings
from quicknote.core.database import create_db_and_tables, engine
from quicknote.core.errors import register_exception_handlers
from quicknote.core.logging import setup_logging
from quicknote.core.rate_limit import limiter
from quicknote.core.render import render_page
from quicknote.core.request_id import RequestIdMiddleware
from quicknote.core.security import BcryptHasher
from quicknote.core.session_middleware import SessionMiddleware
from quicknote.core.sessions import SessionGate, SqlSessionStore
from quicknote.routers import notes, users
from quicknote.services.email_service import get_mailer

setup_logging()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Quicknote - personal notes behind email confirmed accounts",
    docs_url="/docs" if settings.debug else None,
    redoc_url=None,
)

# Shared services, read per request so tests can swap them
app.state.limiter = limiter
app.state.hasher = BcryptHasher(rounds=settings.bcrypt_rounds)
app.state.mailer = get_mailer(settings)
app.state.session_gate = SessionGate(
    SqlSessionStore(engine),
    lifetime=timedelta(minutes=settings.session_lifetime_minutes),
)

# Middlewares: the last one added runs first
app.add_middleware(
    SessionMiddleware,
    cookie_name=settings.session_cookie_name,
    max_age=settings.session_lifetime_minutes * 60,
    secure=settings.session_cookie_secure,
)
app.add_middleware(RequestIdMiddleware)

register_exception_handlers(app)

app.include_router(users.router)
app.include_router(notes.router)


@app.on_event("startup")
def on_startup():
    if settings.auto_create_db:
        create_db_and_tables()
    # Computed once here instead of during the first sign-in
    app.state.hasher.dummy_digest


@app.get("/")
def home(request: Request):
    return render_page(request, "home.html")


@app.get("/health")
def health_check():
    return {"status": "healthy", "app": settings.app_name}
