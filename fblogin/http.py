from __future__ import annotations

import logging

import httpx

from .constants import LOGGER, REDACTED_QUERY_PARAMS


def redact_url(url: httpx.URL) -> str:
    params = [
        (key, "***" if key in REDACTED_QUERY_PARAMS else value)
        for key, value in url.params.multi_items()
    ]
    return str(url.copy_with(params=params)) if params else str(url)


def build_http_client(
    *,
    timeout: float,
    verbose: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
    logger: logging.Logger | None = None,
) -> httpx.AsyncClient:
    log = logger or LOGGER

    async def log_request(request: httpx.Request) -> None:
        if not verbose:
            return
        log.info("Facebook request %s %s", request.method, redact_url(request.url))

    async def log_response(response: httpx.Response) -> None:
        if not verbose:
            return
        log.info(
            "Facebook response %s %s -> %s",
            response.request.method,
            redact_url(response.request.url),
            response.status_code,
        )
        if response.status_code >= 400:
            body = await response.aread()
            text = body.decode("utf-8", errors="replace")
            if len(text) > 1000:
                text = text[:1000] + "...<truncated>"
            log.warning("Facebook error body: %s", text)

    return httpx.AsyncClient(
        timeout=timeout,
        transport=transport,
        event_hooks={"request": [log_request], "response": [log_response]},
    )
