from __future__ import annotations

import contextlib
import os

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware

from auth.config import HandshakeConfig
from auth.facebook import DEFAULT_TIMEOUT_SECONDS, FacebookClient
from auth.handshake import HandshakeController
from auth.middleware import SessionMiddleware
from auth.pending_store import (
    DEFAULT_PENDING_TTL_SECONDS,
    FilePendingRequestStore,
    MemoryPendingRequestStore,
    PendingRequestStore,
)
from auth.session_store import (
    CookieSessionLookup,
    FileSessionStore,
    MemorySessionStore,
    SessionStore,
)
from fblogin.app import HEALTH_PATH, build_routes
from fblogin.constants import APP_VERSION, LOGGER
from fblogin.env import (
    get_env_float,
    get_env_int,
    load_env,
    load_handshake_config,
    parse_csv_env,
    setup_logging,
    validate_env,
)
from fblogin.http import build_http_client


def build_pending_store() -> PendingRequestStore:
    ttl_seconds = get_env_int("FB_PENDING_TTL_SECONDS", DEFAULT_PENDING_TTL_SECONDS)
    path = os.getenv("FB_PENDING_STORE_PATH", "").strip()
    if path:
        return FilePendingRequestStore(path, ttl_seconds=ttl_seconds)
    return MemoryPendingRequestStore(ttl_seconds=ttl_seconds)


def build_session_store() -> SessionStore:
    path = os.getenv("FB_SESSION_STORE_PATH", "").strip()
    if path:
        return FileSessionStore(path)
    return MemorySessionStore()


def build_app(
    config: HandshakeConfig,
    *,
    pending_store: PendingRequestStore,
    session_store: SessionStore,
    provider: FacebookClient,
) -> Starlette:
    controller = HandshakeController(
        config,
        pending_store=pending_store,
        provider=provider,
        session_store=session_store,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        del app
        try:
            yield
        finally:
            await provider.aclose()

    return Starlette(
        routes=build_routes(session_store),
        middleware=[
            Middleware(
                SessionMiddleware,
                controller=controller,
                current_session=CookieSessionLookup(session_store),
                exempt_paths={HEALTH_PATH},
            )
        ],
        lifespan=lifespan,
    )


def create_app() -> Starlette:
    load_env()
    verbose = setup_logging()
    validate_env()

    config = load_handshake_config(verbose=verbose)
    http_client = build_http_client(
        timeout=get_env_float("FB_HTTP_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
        verbose=verbose,
    )
    provider = FacebookClient(
        client=http_client,
        profile_fields=parse_csv_env("FB_PROFILE_FIELDS") or None,
    )

    LOGGER.info(
        "Starting fblogin %s (callback path %s)", APP_VERSION, config.callback_path
    )
    return build_app(
        config,
        pending_store=build_pending_store(),
        session_store=build_session_store(),
        provider=provider,
    )


def main() -> None:
    host = os.getenv("APP_HOST", "127.0.0.1")
    port = int(os.getenv("APP_PORT", "8000"))
    app = create_app()
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
