"""
Client Options
--------------
Configuration functions applied in order while a Client is built.

Each option mutates the client under construction and may raise
ConstructionError, which aborts construction. Later options override
earlier ones.

Usage:
    client = new_client(
        with_api_key("key", os.environ["MAPS_API_KEY"]),
        with_rate_limit(50),
    )
"""

from typing import TYPE_CHECKING, Callable

import httpx

from .errors import ConstructionError
from .instrumentation import instrument

if TYPE_CHECKING:
    from .client import Client

ClientOption = Callable[["Client"], None]


def with_http_client(http: httpx.AsyncClient, owned: bool = False) -> ClientOption:
    """
    Make requests over the given httpx.AsyncClient.

    The client is instrumented with logging hooks. It stays open after
    Client.aclose() unless owned is True.
    """
    def apply(client: "Client") -> None:
        if not isinstance(http, httpx.AsyncClient):
            raise ConstructionError(
                f"http client must be an httpx.AsyncClient, got {type(http).__name__}"
            )
        client._install_http(instrument(http), owned=owned)
    return apply


def with_api_key(api_key_name: str, api_key_value: str) -> ClientOption:
    """Inject api_key_name=api_key_value into every request's query string."""
    def apply(client: "Client") -> None:
        if api_key_value and not api_key_name:
            raise ConstructionError("API key value given without a parameter name")
        client.api_key_name = api_key_name
        client.api_key_value = api_key_value
    return apply


def with_rate_limit(requests_per_second: int) -> ClientOption:
    """Limit request starts per second. Default is 10."""
    def apply(client: "Client") -> None:
        if isinstance(requests_per_second, bool) or not isinstance(requests_per_second, int):
            raise ConstructionError(
                f"rate limit must be an int, got {type(requests_per_second).__name__}"
            )
        if requests_per_second <= 0:
            raise ConstructionError(
                f"rate limit must be positive, got {requests_per_second}",
                details={"requests_per_second": requests_per_second},
            )
        client.requests_per_second = requests_per_second
    return apply


def with_base_url(base_url: str) -> ClientOption:
    """Send every request to base_url instead of APIConfig.host."""
    def apply(client: "Client") -> None:
        client.base_url = base_url
    return apply
