from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from quicknote.core.sessions import SessionGate


class SessionMiddleware(BaseHTTPMiddleware):
    """Loads the server-side session before the request and saves it after.

    The gate is read from ``app.state.session_gate`` on every request so it
    can be swapped after the middleware stack is built.
    """

    def __init__(self, app: ASGIApp, *, cookie_name: str, max_age: int, secure: bool = False):
        super().__init__(app)
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = secure

    async def dispatch(self, request: Request, call_next) -> Response:
        gate: SessionGate = request.app.state.session_gate
        session = await run_in_threadpool(gate.load, request.cookies.get(self.cookie_name))
        request.state.session = session

        response: Response = await call_next(request)

        issued = await run_in_threadpool(gate.save, session)
        if session.destroyed:
            response.delete_cookie(self.cookie_name, path="/")
        elif session.rotated or issued:
            response.set_cookie(
                self.cookie_name,
                session.token,
                max_age=self.max_age,
                path="/",
                httponly=True,
                secure=self.secure,
                samesite="lax",
            )
        return response
