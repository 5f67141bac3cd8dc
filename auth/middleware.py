from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from auth.handshake import HandshakeController
from auth.session_store import CurrentSessionFn


class SessionMiddleware(BaseHTTPMiddleware):
    """Route each request to the app, the login callback, or a new login.

    A request with a current session passes through untouched, with the session
    on ``request.state.session``. Otherwise the callback path finishes a login
    and every other path starts one.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        controller: HandshakeController,
        current_session: CurrentSessionFn,
        exempt_paths: set[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.controller = controller
        self.current_session = current_session
        self.exempt_paths = set(exempt_paths or ())

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        session = await self.current_session(request)
        if session is not None:
            request.state.session = session
            return await call_next(request)

        if request.url.path == self.controller.callback_path:
            return await self.controller.end_login(request)
        return await self.controller.begin_login(request)
