import asyncio
import urllib.parse

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from auth.config import HandshakeConfig
from auth.errors import ProviderCommunicationError
from auth.expiration import utc_now
from auth.handshake import HandshakeController
from auth.middleware import SessionMiddleware
from auth.models import ProviderCredential, ProviderProfile
from auth.pending_store import MemoryPendingRequestStore
from auth.session_store import CookieSessionLookup, MemorySessionStore

BASE_URL = "https://app.example"


class FakeProvider:
    def __init__(
        self,
        *,
        credential: ProviderCredential | None = None,
        profile: ProviderProfile | None = None,
        exchange_error: Exception | None = None,
        profile_error: Exception | None = None,
        exchange_delay: float = 0,
    ) -> None:
        self.credential = credential or ProviderCredential(access_token="XYZ", expires_in_seconds=3600)
        self.profile = profile or ProviderProfile(id="42", name="Ann", email="ann@x.com")
        self.exchange_error = exchange_error
        self.profile_error = profile_error
        self.exchange_delay = exchange_delay
        self.calls: list[tuple[str, dict]] = []

    async def exchange_code(self, **kwargs) -> ProviderCredential:
        self.calls.append(("exchange_code", kwargs))
        if self.exchange_delay:
            await asyncio.sleep(self.exchange_delay)
        if self.exchange_error is not None:
            raise self.exchange_error
        return self.credential

    async def fetch_profile(self, access_token: str) -> ProviderProfile:
        self.calls.append(("fetch_profile", {"access_token": access_token}))
        if self.profile_error is not None:
            raise self.profile_error
        return self.profile

    async def aclose(self) -> None:
        return None


class RecordingSessionStore(MemorySessionStore):
    def __init__(self, *, fail_on: str | None = None) -> None:
        super().__init__()
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def log_in_with_provider_identity(self, external_id, access_token, expiration):
        self.calls.append("log_in_with_provider_identity")
        if self.fail_on == "log_in":
            raise RuntimeError("session backend unavailable")
        return await super().log_in_with_provider_identity(external_id, access_token, expiration)

    async def save_user_fields(self, user, fields):
        self.calls.append("save_user_fields")
        if self.fail_on == "save":
            raise RuntimeError("write rejected")
        return await super().save_user_fields(user, fields)


def provider_error(message: str = "boom") -> ProviderCommunicationError:
    return ProviderCommunicationError(message, provider_status=400, detail=message)


def build_handshake_app(
    *,
    provider=None,
    pending_store=None,
    session_store=None,
    callback_path: str = "/login",
    verbose: bool = False,
    step_timeout_seconds: float = 10.0,
    clock=utc_now,
    base_url: str = BASE_URL,
):
    provider = provider or FakeProvider()
    pending_store = pending_store or MemoryPendingRequestStore()
    session_store = session_store or RecordingSessionStore()
    config = HandshakeConfig(
        client_id="fb-client",
        app_secret="fb-secret",
        callback_path=callback_path,
        verbose=verbose,
        step_timeout_seconds=step_timeout_seconds,
    )
    controller = HandshakeController(
        config,
        pending_store=pending_store,
        provider=provider,
        session_store=session_store,
        clock=clock,
    )

    async def dashboard(request: Request) -> JSONResponse:
        return JSONResponse({"user_id": request.state.session.user_id})

    app = Starlette(
        routes=[Route("/dashboard", dashboard)],
        middleware=[
            Middleware(
                SessionMiddleware,
                controller=controller,
                current_session=CookieSessionLookup(session_store),
            )
        ],
    )
    return controller, TestClient(app, base_url=base_url), pending_store, session_store


def state_from_location(response) -> str:
    query = urllib.parse.parse_qs(urllib.parse.urlparse(response.headers["location"]).query)
    return query["state"][0]


def begin_login(test_client, path: str = "/dashboard") -> str:
    test_client.cookies.clear()
    response = test_client.get(path, follow_redirects=False)
    assert response.status_code == 302
    return state_from_location(response)


def finish_login(test_client, state: str, *, code: str = "ABC", cookie: str | None = None):
    cookie_value = state if cookie is None else cookie
    return test_client.get(
        "/login",
        params={"state": state, "code": code},
        headers={"cookie": f"requestId={cookie_value}"},
        follow_redirects=False,
    )
