from __future__ import annotations

import urllib.parse

from starlette.requests import Request


def is_callback_path(path: str) -> bool:
    if not path.startswith("/") or path.startswith("//"):
        return False

    parsed = urllib.parse.urlsplit(path)
    if parsed.scheme or parsed.netloc:
        return False
    return not parsed.query and not parsed.fragment


def absolute_https_url(request: Request, path: str) -> str:
    return urllib.parse.urlunsplit(("https", request.url.netloc, path, "", ""))


def raw_request_path(request: Request) -> str:
    """Path as sent by the client, percent-encoding intact and query dropped."""
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return request.url.path
    return raw_path.decode("latin-1").split("?", 1)[0]
