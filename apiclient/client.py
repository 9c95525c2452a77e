"""
API Client Core
---------------
Rate-limited, cancellable GET dispatch for building specific API clients.

Embed a Client in your own client class and describe each endpoint with
an APIConfig plus a request object that produces query parameters.

Rules:
- Every request start is rate limited
- The API key travels in the query string, never in logs
- No retries; every error reaches the caller
"""

from dataclasses import dataclass, fields, is_dataclass
from typing import (
    Any, AsyncIterator, Iterable, List, Mapping, Optional, Protocol,
    Sequence, Tuple, Union, runtime_checkable
)
from urllib.parse import urlencode
import json

import httpx

from .context import RequestContext, background
from .errors import ClientClosedError, ConstructionError, DecodeError, TransportError
from .instrumentation import instrument
from .log import RequestIdScope, get_logger
from .options import ClientOption
from .rate_limiter import RateLimiter

DEFAULT_REQUESTS_PER_SECOND = 10

ParamValue = Union[str, int, float, Sequence[Union[str, int, float]]]
Params = Union[Mapping[str, ParamValue], Iterable[Tuple[str, Any]], httpx.QueryParams]


@dataclass(frozen=True)
class APIConfig:
    """Target endpoint of a call."""
    host: str
    path: str


@runtime_checkable
class ApiRequest(Protocol):
    """Anything that can produce query parameters."""

    def params(self) -> Params:
        ...


@dataclass
class BinaryResponse:
    """
    Raw response from get_binary.

    data is still open: the caller owns it and must close it, either by
    reading it fully with read() or with aclose() / async with.
    """
    status_code: int
    content_type: str
    data: httpx.Response

    async def read(self) -> bytes:
        """Read the whole body and close the stream."""
        try:
            return await self.data.aread()
        finally:
            await self.data.aclose()

    def iter_bytes(self, chunk_size: Optional[int] = None) -> AsyncIterator[bytes]:
        return self.data.aiter_bytes(chunk_size)

    async def aclose(self) -> None:
        await self.data.aclose()

    async def __aenter__(self) -> "BinaryResponse":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()


class Client:
    """
    Rate-limited HTTP GET core.

    Safe to share between any number of concurrent tasks. Only the start
    rate is limited, not the number of requests in flight.
    """

    def __init__(self, *options: ClientOption):
        self.requests_per_second = DEFAULT_REQUESTS_PER_SECOND
        self.base_url = ""
        self.api_key_name = ""
        self.api_key_value = ""
        self._http: Optional[httpx.AsyncClient] = None
        self._owns_http = False
        self._closed = False
        self._logger = get_logger("client")

        for option in options:
            try:
                option(self)
            except ConstructionError:
                raise
            except (TypeError, ValueError) as e:
                raise ConstructionError(f"invalid client option: {e}") from e

        try:
            self._rate_limiter = RateLimiter(self.requests_per_second)
        except ValueError as e:
            raise ConstructionError(str(e)) from e

        if self._http is None:
            self._install_http(instrument(httpx.AsyncClient()), owned=True)

        self._logger.info(
            f"Client created: {self.requests_per_second} requests/second",
            extra={"requests_per_second": self.requests_per_second},
        )

    def _install_http(self, http: httpx.AsyncClient, owned: bool) -> None:
        self._http = http
        self._owns_http = owned

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        """Stop the refill task and close the HTTP client if we created it."""
        if self._closed:
            return
        self._closed = True
        await self._rate_limiter.close()
        if self._owns_http:
            await self._http.aclose()
        self._logger.info("Client closed")

    async def __aenter__(self) -> "Client":
        self._rate_limiter.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    def generate_auth_query(self, params: Params) -> str:
        """
        Build the encoded query string, adding the API key if one is set.

        Keys are sorted (repeated keys keep their order) so the same
        params always encode the same way.
        """
        pairs = _param_pairs(params)
        if self.api_key_value:
            pairs = [(k, v) for k, v in pairs if k != self.api_key_name]
            pairs.append((self.api_key_name, self.api_key_value))
        pairs.sort(key=lambda kv: kv[0])
        return urlencode(pairs)

    def build_url(self, config: APIConfig, api_req: ApiRequest) -> httpx.URL:
        """
        Resolve host, path and query for a call.

        The generated query always replaces any query written into the path.
        """
        host = self.base_url or config.host
        try:
            url = httpx.URL((host + config.path).split("?", 1)[0])
        except httpx.InvalidURL as e:
            raise TransportError(
                f"invalid request URL: {e}", details={"url": host + config.path}
            ) from e
        query = self.generate_auth_query(api_req.params())
        if query:
            url = url.copy_with(query=query.encode("ascii"))
        return url

    async def _get(
        self,
        ctx: RequestContext,
        config: APIConfig,
        api_req: ApiRequest
    ) -> httpx.Response:
        """Wait for a token, then send the GET. Returns the open response."""
        if self._closed:
            raise ClientClosedError("client is closed")

        await self._rate_limiter.acquire(ctx)

        url = self.build_url(config, api_req)
        request = self._http.build_request("GET", url)
        try:
            return await ctx.run(self._http.send(request, stream=True))
        except httpx.RequestError as e:
            raise TransportError(
                f"GET {config.path} failed: {e}", details={"path": config.path}
            ) from e

    async def get_json(
        self,
        ctx: Optional[RequestContext],
        config: APIConfig,
        api_req: ApiRequest,
        target: Any = None
    ) -> Any:
        """
        Dispatch a GET and decode the JSON body into target.

        The response is closed on every path. See decode_json() for the
        accepted targets.
        """
        ctx = ctx or background()
        with RequestIdScope():
            response = await self._get(ctx, config, api_req)
            try:
                body = await ctx.run(response.aread())
            except httpx.RequestError as e:
                raise TransportError(
                    f"reading {config.path} failed: {e}", details={"path": config.path}
                ) from e
            finally:
                await response.aclose()
            return decode_json(body, target, status_code=response.status_code)

    async def get_binary(
        self,
        ctx: Optional[RequestContext],
        config: APIConfig,
        api_req: ApiRequest
    ) -> BinaryResponse:
        """Dispatch a GET and hand back the open body stream."""
        ctx = ctx or background()
        with RequestIdScope():
            response = await self._get(ctx, config, api_req)
            return BinaryResponse(
                status_code=response.status_code,
                content_type=response.headers.get("Content-Type", ""),
                data=response,
            )


def new_client(*options: ClientOption) -> Client:
    """Construct a Client. Raises ConstructionError if an option fails."""
    return Client(*options)


def _param_pairs(params: Optional[Params]) -> List[Tuple[str, str]]:
    """Flatten params into (key, value) string pairs."""
    if params is None:
        return []
    if isinstance(params, httpx.QueryParams):
        return [(k, v) for k, v in params.multi_items()]

    items = params.items() if isinstance(params, Mapping) else params
    pairs: List[Tuple[str, str]] = []
    for key, value in items:
        if isinstance(value, (list, tuple)):
            pairs.extend((key, str(v)) for v in value)
        else:
            pairs.append((key, str(value)))
    return pairs


def decode_json(body: bytes, target: Any = None, status_code: int = 0) -> Any:
    """
    Decode a JSON body into target.

    Targets:
    - None: return the decoded value
    - dict instance: updated in place, payload must be an object
    - list instance: extended in place, payload must be an array
    - dataclass type: built from the object's matching fields
    - other callable: called with the decoded value

    Raises DecodeError on invalid JSON, a shape mismatch or an unsupported target.
    """
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise DecodeError(f"invalid JSON body: {e}", status_code=status_code) from e

    if target is None:
        return payload

    if isinstance(target, dict):
        if not isinstance(payload, dict):
            raise _shape_error(payload, "object", status_code)
        target.update(payload)
        return target

    if isinstance(target, list):
        if not isinstance(payload, list):
            raise _shape_error(payload, "array", status_code)
        target.extend(payload)
        return target

    if isinstance(target, type) and is_dataclass(target):
        if not isinstance(payload, dict):
            raise _shape_error(payload, "object", status_code)
        # Unknown keys are ignored, like most JSON decoders
        names = {f.name for f in fields(target) if f.init}
        try:
            return target(**{k: v for k, v in payload.items() if k in names})
        except TypeError as e:
            raise DecodeError(
                f"body does not fit {target.__name__}: {e}", status_code=status_code
            ) from e

    if callable(target):
        try:
            return target(payload)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"body does not fit target: {e}", status_code=status_code) from e

    raise DecodeError(
        f"unsupported decode target: {type(target).__name__}",
        status_code=status_code,
        details={"target": type(target).__name__},
    )


def _shape_error(payload: Any, expected: str, status_code: int) -> DecodeError:
    return DecodeError(
        f"expected JSON {expected}, got {type(payload).__name__}",
        status_code=status_code,
        details={"expected": expected},
    )
