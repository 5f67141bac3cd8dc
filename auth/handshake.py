from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from auth.config import HandshakeConfig
from auth.csrf import bind_request_id, clear_request_id, verify_state
from auth.errors import (
    HandshakeError,
    InvalidCallbackError,
    PendingRequestLookupError,
    PendingRequestStoreError,
    ProviderCommunicationError,
    ProviderDeniedError,
    SessionEstablishmentError,
)
from auth.expiration import format_expiration, utc_now
from auth.facebook import FACEBOOK_DIALOG_URL, FacebookClient, build_authorization_url
from auth.models import LoginResult, ProviderCredential, ProviderProfile, UserRecord
from auth.pending_store import PendingRequestStore
from auth.session_store import SESSION_COOKIE, SessionStore
from auth.urls import absolute_https_url, raw_request_path

LOGGER = logging.getLogger("fblogin.handshake")


@dataclass
class HandshakeContext:
    """Values carried from one EndLogin stage to the next for a single callback."""

    state: str
    code: str
    redirect_uri: str
    started_at: datetime
    credential: ProviderCredential | None = None
    profile: ProviderProfile | None = None
    login: LoginResult | None = None
    user: UserRecord | None = None
    original_url: str | None = None


class HandshakeController:
    """Runs both halves of the Facebook login redirect.

    ``begin_login`` anchors a pending request, binds its id to a cookie and
    sends the browser to the provider. ``end_login`` checks the returned
    ``state`` against that cookie before any outbound call, then walks the
    ordered stages in ``self.stages``. The first failing stage ends the
    callback with one JSON error response.
    """

    def __init__(
        self,
        config: HandshakeConfig,
        *,
        pending_store: PendingRequestStore,
        provider: FacebookClient,
        session_store: SessionStore,
        dialog_url: str = FACEBOOK_DIALOG_URL,
        clock=utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.pending_store = pending_store
        self.provider = provider
        self.session_store = session_store
        self.dialog_url = dialog_url
        self._clock = clock
        self._logger = logger or LOGGER

        self.stages = (
            ("exchange_code", self._exchange_code, ProviderCommunicationError),
            ("fetch_profile", self._fetch_profile, ProviderCommunicationError),
            ("log_in", self._log_in, SessionEstablishmentError),
            ("save_profile", self._save_profile, SessionEstablishmentError),
            ("consume_pending_request", self._consume_pending_request, PendingRequestLookupError),
        )

    @property
    def callback_path(self) -> str:
        return self.config.callback_path

    def callback_url(self, request: Request) -> str:
        return absolute_https_url(request, self.config.callback_path)

    # -- begin -----------------------------------------------------------------

    async def begin_login(self, request: Request) -> Response:
        self._maybe_log("Starting Facebook login...")
        original_url = absolute_https_url(request, raw_request_path(request))

        self._maybe_log("Creating pending request for %s...", original_url)
        try:
            pending = await asyncio.wait_for(
                self.pending_store.create(original_url),
                timeout=self.config.step_timeout_seconds,
            )
        except Exception as error:
            failure = PendingRequestStoreError(
                f"Could not create pending request: {error!r}",
                stage="create_pending_request",
            )
            self._log_failure(failure)
            return self._error_response(failure)

        self._maybe_log("Redirecting for Facebook OAuth.")
        authorize_url = build_authorization_url(
            client_id=self.config.client_id,
            redirect_uri=self.callback_url(request),
            state=pending.id,
            dialog_url=self.dialog_url,
        )
        response = RedirectResponse(url=authorize_url, status_code=302)
        bind_request_id(response, pending.id, max_age=self.pending_store.ttl_seconds)
        return response

    # -- end -------------------------------------------------------------------

    async def end_login(self, request: Request) -> Response:
        self._maybe_log("Handling request callback for Facebook login...")
        try:
            context = self._start_context(request)
            for stage, step, error_class in self.stages:
                await self._run_stage(stage, step, error_class, context)
        except HandshakeError as error:
            self._log_failure(error)
            return self._error_response(error)

        self._maybe_log("Success!")
        return self._success_response(context)

    def _start_context(self, request: Request) -> HandshakeContext:
        state = verify_state(request)

        if request.query_params.get("error"):
            reason = request.query_params.get("error_reason") or request.query_params["error"]
            raise ProviderDeniedError(
                f"Facebook authorization returned an error: {reason}",
                stage="verify_state",
            )

        code = request.query_params.get("code")
        if not code:
            raise InvalidCallbackError("Missing code.", stage="verify_state")

        return HandshakeContext(
            state=state,
            code=code,
            redirect_uri=self.callback_url(request),
            started_at=self._clock(),
        )

    async def _run_stage(self, stage, step, error_class, context: HandshakeContext) -> None:
        timeout = self.config.step_timeout_seconds
        try:
            await asyncio.wait_for(step(context), timeout=timeout)
        except HandshakeError as error:
            if error.stage is None:
                error.stage = stage
            raise
        except asyncio.TimeoutError as error:
            raise error_class(f"{stage} timed out after {timeout}s.", stage=stage) from error
        except Exception as error:
            raise error_class(f"{stage} failed: {error}", stage=stage) from error

    async def _exchange_code(self, context: HandshakeContext) -> None:
        self._maybe_log("Fetching access token...")
        context.credential = await self.provider.exchange_code(
            client_id=self.config.client_id,
            client_secret=self.config.app_secret,
            redirect_uri=context.redirect_uri,
            code=context.code,
        )

    async def _fetch_profile(self, context: HandshakeContext) -> None:
        self._maybe_log("Fetching user data from Facebook...")
        context.profile = await self.provider.fetch_profile(context.credential.access_token)

    async def _log_in(self, context: HandshakeContext) -> None:
        self._maybe_log("Logging in with Facebook identity %s...", context.profile.id)
        expiration = format_expiration(
            context.started_at, context.credential.expires_in_seconds
        )
        context.login = await self.session_store.log_in_with_provider_identity(
            external_id=context.profile.id,
            access_token=context.credential.access_token,
            expiration=expiration,
        )

    async def _save_profile(self, context: HandshakeContext) -> None:
        self._maybe_log("Saving Facebook data for user...")
        context.user = await self.session_store.save_user_fields(
            context.login.user,
            {"name": context.profile.name, "email": context.profile.email},
        )

    async def _consume_pending_request(self, context: HandshakeContext) -> None:
        self._maybe_log("Fetching pending request %s...", context.state)
        pending = await self.pending_store.fetch_privileged(context.state)
        if pending is None:
            raise PendingRequestLookupError(
                "Pending request not found; it expired or was already used.",
                stage="consume_pending_request",
            )

        self._maybe_log("Deleting used pending request...")
        context.original_url = pending.original_url
        await self.pending_store.delete(context.state)

    # -- responses -------------------------------------------------------------

    def _success_response(self, context: HandshakeContext) -> Response:
        response = RedirectResponse(url=context.original_url, status_code=302)
        response.set_cookie(
            SESSION_COOKIE,
            context.login.session_token,
            max_age=context.credential.expires_in_seconds,
            path="/",
            secure=True,
            httponly=True,
            samesite="lax",
        )
        clear_request_id(response)
        return response

    def _error_response(self, error: HandshakeError) -> Response:
        return JSONResponse(
            {
                "error": error.code,
                "error_description": str(error),
                "stage": error.stage,
            },
            status_code=error.status_code,
        )

    def _maybe_log(self, message: str, *args) -> None:
        if self.config.verbose:
            self._logger.info(message, *args)

    def _log_failure(self, error: HandshakeError) -> None:
        if self.config.verbose:
            self._logger.warning(
                "Failed! stage=%s error=%s description=%s", error.stage, error.code, error
            )
