"""CSRF binding between the provider ``state`` parameter and the browser cookie."""

from __future__ import annotations

import hmac

from starlette.requests import Request
from starlette.responses import Response

from auth.errors import CsrfValidationError

REQUEST_ID_COOKIE = "requestId"


def bind_request_id(response: Response, request_id: str, *, max_age: int) -> None:
    # Lax, not Strict: the callback arrives as a cross-site top-level redirect.
    response.set_cookie(
        REQUEST_ID_COOKIE,
        request_id,
        max_age=max_age,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )


def clear_request_id(response: Response) -> None:
    response.delete_cookie(
        REQUEST_ID_COOKIE,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )


def tokens_match(state: str | None, cookie_value: str | None) -> bool:
    if not state or not cookie_value:
        return False
    return hmac.compare_digest(state.encode("utf-8"), cookie_value.encode("utf-8"))


def verify_state(request: Request) -> str:
    """Return the verified ``state`` value or raise ``CsrfValidationError``."""
    state = request.query_params.get("state")
    cookie_value = request.cookies.get(REQUEST_ID_COOKIE)
    if not tokens_match(state, cookie_value):
        raise CsrfValidationError("Request failed CSRF validation.", stage="verify_state")
    return state
