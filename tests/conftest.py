"""
apiclient Test Configuration
----------------------------
Shared fixtures and helpers for all tests.

Network access is blocked: every test talks to httpx.MockTransport.
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

import httpx
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Test Isolation: Block Side Effects
# =============================================================================

@pytest.fixture(autouse=True)
def block_network(monkeypatch):
    """
    Block real HTTP traffic during tests.

    If a test reaches the default httpx transport, it raises RuntimeError
    instead of opening a socket.
    """
    async def _blocked(*args, **kwargs):
        raise RuntimeError(
            "Real network access is forbidden during tests. "
            "Use httpx.MockTransport via with_http_client()."
        )

    monkeypatch.setattr(httpx.AsyncHTTPTransport, "handle_async_request", _blocked)


# =============================================================================
# Helpers
# =============================================================================

@dataclass
class ParamsRequest:
    """Minimal request type: produces fixed query parameters."""
    values: Dict[str, str] = field(default_factory=dict)

    def params(self):
        return dict(self.values)


@dataclass
class PairsRequest:
    """Request type producing (key, value) pairs with repeated keys."""
    pairs: List[Tuple[str, str]] = field(default_factory=list)

    def params(self):
        return list(self.pairs)


class TrackingStream(httpx.AsyncByteStream):
    """Response body that records whether it was closed."""

    def __init__(self, *chunks: bytes):
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


class Recorder:
    """MockTransport handler that records requests and returns a fixed response."""

    def __init__(self, status_code=200, json=None, content=None, headers=None, stream=None):
        self.status_code = status_code
        self.json = json
        self.content = content
        self.headers = headers
        self.stream = stream
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.stream is not None:
            return httpx.Response(self.status_code, headers=self.headers, stream=self.stream)
        if self.json is not None:
            return httpx.Response(self.status_code, headers=self.headers, json=self.json)
        return httpx.Response(self.status_code, headers=self.headers, content=self.content or b"")

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def mock_http(handler) -> httpx.AsyncClient:
    """An httpx.AsyncClient that routes every request to handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture(scope="session")
def project_root():
    """Return the project root path."""
    return PROJECT_ROOT


@pytest.fixture
def recorder():
    """Handler answering {"a": 1} to every request."""
    return Recorder(json={"a": 1})
