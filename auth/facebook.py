from __future__ import annotations

import urllib.parse

import httpx

from auth.errors import ProviderCommunicationError
from auth.models import ProviderCredential, ProviderProfile

FACEBOOK_DIALOG_URL = "https://www.facebook.com/dialog/oauth"
GRAPH_TOKEN_URL = "https://graph.facebook.com/oauth/access_token"
GRAPH_PROFILE_URL = "https://graph.facebook.com/me"
DEFAULT_TIMEOUT_SECONDS = 10.0


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    state: str,
    *,
    dialog_url: str = FACEBOOK_DIALOG_URL,
) -> str:
    query = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "state": state,
    }
    return f"{dialog_url}?{urllib.parse.urlencode(query)}"


def parse_token_response(response: httpx.Response) -> ProviderCredential:
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        payload = response.json()
        if not isinstance(payload, dict):
            raise RuntimeError("Token response must be a JSON object.")
        access_token = payload.get("access_token")
        expires = payload.get("expires", payload.get("expires_in"))
    else:
        data = urllib.parse.parse_qs(response.text)
        access_token = data.get("access_token", [None])[0]
        expires = data.get("expires", [None])[0]

    if not isinstance(access_token, str) or not access_token:
        raise RuntimeError("Token response missing access_token.")
    try:
        expires_in_seconds = int(expires)
    except (TypeError, ValueError):
        raise RuntimeError("Token response missing expires.")

    return ProviderCredential(access_token=access_token, expires_in_seconds=expires_in_seconds)


class FacebookClient:
    """Token and profile calls against the Facebook Graph API."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        token_url: str = GRAPH_TOKEN_URL,
        profile_url: str = GRAPH_PROFILE_URL,
        profile_fields: list[str] | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self.token_url = token_url
        self.profile_url = profile_url
        self.profile_fields = profile_fields
        self.timeout = timeout

    async def exchange_code(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        code: str,
    ) -> ProviderCredential:
        response = await self._get(
            self.token_url,
            {
                "client_id": client_id,
                "redirect_uri": redirect_uri,
                "client_secret": client_secret,
                "code": code,
            },
            what="Token request",
        )
        try:
            return parse_token_response(response)
        except (RuntimeError, ValueError) as error:
            raise ProviderCommunicationError(
                f"Invalid token response: {error}",
                provider_status=response.status_code,
            ) from error

    async def fetch_profile(self, access_token: str) -> ProviderProfile:
        params = {"access_token": access_token}
        if self.profile_fields:
            params["fields"] = ",".join(self.profile_fields)

        response = await self._get(self.profile_url, params, what="Profile request")
        try:
            payload = response.json()
            if not isinstance(payload, dict):
                raise RuntimeError("Profile response must be a JSON object.")
            return ProviderProfile.from_payload(payload)
        except (RuntimeError, ValueError) as error:
            raise ProviderCommunicationError(
                f"Invalid profile response: {error}",
                provider_status=response.status_code,
            ) from error

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def _get(self, url: str, params: dict[str, str], *, what: str) -> httpx.Response:
        own_client = self._client is None
        http_client = self._client or httpx.AsyncClient(timeout=self.timeout)

        try:
            response = await http_client.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as error:
            detail = error.response.text
            raise ProviderCommunicationError(
                f"{what} failed with status {error.response.status_code}: {detail}",
                provider_status=error.response.status_code,
                detail=detail,
            ) from error
        except httpx.HTTPError as error:
            raise ProviderCommunicationError(f"{what} failed: {error!r}") from error
        finally:
            if own_client:
                await http_client.aclose()

        return response
