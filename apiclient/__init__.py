# apiclient - Rate-limited HTTP GET core for building API clients
# One Client per embedding client, explicit rate limit, key in the query string

import logging

from .client import (
    APIConfig, ApiRequest, BinaryResponse, Client, DEFAULT_REQUESTS_PER_SECOND,
    decode_json, new_client
)
from .config import ClientSettings, client_from_settings, load_settings
from .context import RequestContext, background, with_timeout
from .errors import (
    APIClientError, CancellationError, ClientClosedError, ConstructionError,
    DeadlineExceededError, DecodeError, ErrorCategory, TransportError, is_retryable
)
from .options import ClientOption, with_api_key, with_base_url, with_http_client, with_rate_limit
from .rate_limiter import RateLimiter

logging.getLogger("apiclient").addHandler(logging.NullHandler())

__all__ = [
    # Client
    "Client",
    "new_client",
    "APIConfig",
    "ApiRequest",
    "BinaryResponse",
    "DEFAULT_REQUESTS_PER_SECOND",
    "decode_json",
    # Options
    "ClientOption",
    "with_http_client",
    "with_api_key",
    "with_rate_limit",
    "with_base_url",
    # Rate limiting and cancellation
    "RateLimiter",
    "RequestContext",
    "background",
    "with_timeout",
    # Settings
    "ClientSettings",
    "load_settings",
    "client_from_settings",
    # Errors
    "APIClientError",
    "ErrorCategory",
    "ConstructionError",
    "CancellationError",
    "DeadlineExceededError",
    "TransportError",
    "DecodeError",
    "ClientClosedError",
    "is_retryable",
]
