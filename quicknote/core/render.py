"""
HTML page rendering with Jinja2
"""
from pathlib import Path
from typing import Any, Mapping, Optional

from fastapi import Request
from fastapi.templating import Jinja2Templates

from quicknote.core.config import settings
from quicknote.core.csrf import csrf_token
from quicknote.core.sessions import pop_flash

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.globals["app_name"] = settings.app_name


def render_page(
    request: Request,
    page: str,
    data: Optional[Mapping[str, Any]] = None,
    status_code: int = 200,
):
    """
    Render a page template.

    Every page receives the pending flash message, which is consumed by this
    render, whether the session is signed in and the token its forms post back.
    """
    session = getattr(request.state, "session", None)
    context = {
        "flash": pop_flash(session) if session is not None else None,
        "is_authenticated": bool(session is not None and session.is_authenticated),
        "csrf_token": csrf_token(session) if session is not None else "",
        "field_errors": {},
        "form_data": {},
    }
    context.update(data or {})
    return templates.TemplateResponse(request=request, name=page, context=context, status_code=status_code)
