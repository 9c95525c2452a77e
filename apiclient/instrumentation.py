"""
Request instrumentation via httpx event hooks.

Pass-through: hooks only log, they never change a request or response.
Query strings are left out of log lines so API keys never reach logs.
"""

import logging
import time

import httpx

_logger = logging.getLogger("apiclient.http")

_STARTED = "apiclient.started"


def _redacted(url: httpx.URL) -> str:
    return str(url).split("?", 1)[0]


async def log_request(request: httpx.Request) -> None:
    request.extensions[_STARTED] = time.monotonic()
    _logger.debug(f"{request.method} {_redacted(request.url)}")


async def log_response(response: httpx.Response) -> None:
    request = response.request
    started = request.extensions.get(_STARTED)
    elapsed_ms = (time.monotonic() - started) * 1000 if started is not None else 0.0
    _logger.debug(
        f"{request.method} {_redacted(request.url)} -> {response.status_code} ({elapsed_ms:.1f}ms)",
        extra={"status_code": response.status_code, "elapsed_ms": round(elapsed_ms, 1)},
    )


def is_instrumented(http: httpx.AsyncClient) -> bool:
    return log_request in http.event_hooks.get("request", [])


def instrument(http: httpx.AsyncClient) -> httpx.AsyncClient:
    """Attach logging hooks to a client unless they are already attached."""
    if is_instrumented(http):
        return http
    hooks = http.event_hooks
    http.event_hooks = {
        "request": [*hooks.get("request", []), log_request],
        "response": [*hooks.get("response", []), log_response],
    }
    return http
