from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from auth.session_store import SessionStore

from .constants import APP_NAME, APP_VERSION

HEALTH_PATH = "/health"


async def health_route(request: Request) -> Response:
    del request
    return JSONResponse({"status": "ok", "version": APP_VERSION, "app": APP_NAME})


def build_routes(session_store: SessionStore) -> list[Route]:
    async def profile_route(request: Request) -> Response:
        session = request.state.session
        user = await session_store.get_user(session.user_id)
        if user is None:
            return JSONResponse(
                {"error": "user_not_found", "error_description": "Session user no longer exists."},
                status_code=404,
            )
        return JSONResponse(
            {
                "id": user.id,
                "facebook_id": user.provider_id,
                "name": user.name,
                "email": user.email,
                "session_expires_at": session.expires_at,
            }
        )

    return [
        Route(HEALTH_PATH, health_route, methods=["GET"]),
        Route("/", profile_route, methods=["GET"]),
    ]
