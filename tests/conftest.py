"""Root test configuration for the imgproxy gateway.

Provides:
  - gateway_env: a clean, valid set of gateway environment variables
  - gateway_config: the matching GatewayConfig, built without touching os.environ
  - MockImgproxy: an httpx.MockTransport-backed stand-in for imgproxy whose
    bodies arrive as unread streams (ChunkStream)
  - build_test_app: app factory wired to a MockImgproxy
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Optional

import httpx
import pytest

from imgproxy_gateway.config import GatewayConfig
from imgproxy_gateway.main import create_app

KEY_TEXT = "test-key"
SALT_TEXT = "test-salt"
KEY_HEX = KEY_TEXT.encode("utf-8").hex()
SALT_HEX = SALT_TEXT.encode("utf-8").hex()

OBJECT_STORE_PREFIX = "http://objects.test/neolace-objects"
IMGPROXY_URL = "http://imgproxy.test"

_GATEWAY_ENV_VARS = (
    "IMGPROXY_GATEWAY_PORT",
    "IMGPROXY_GATEWAY_HOST",
    "IMGPROXY_KEY",
    "IMGPROXY_SALT",
    "IMGPROXY_GATEWAY_ALLOWED_WIDTHS",
    "IMGPROXY_GATEWAY_OBJSTORE_PUBLIC_URL_PREFIX",
    "IMGPROXY_GATEWAY_IMGPROXY_URL",
    "IMGPROXY_GATEWAY_UPSTREAM_TIMEOUT",
)


@pytest.fixture
def gateway_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set a valid gateway environment (and nothing else) for one test."""
    for name in _GATEWAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    env = {
        "IMGPROXY_KEY": KEY_HEX,
        "IMGPROXY_SALT": SALT_HEX,
        "IMGPROXY_GATEWAY_ALLOWED_WIDTHS": "[256, 640, 1000]",
        "IMGPROXY_GATEWAY_OBJSTORE_PUBLIC_URL_PREFIX": OBJECT_STORE_PREFIX,
        "IMGPROXY_GATEWAY_IMGPROXY_URL": IMGPROXY_URL,
    }
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    return env


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(
        signing_key=KEY_TEXT,
        signing_salt=SALT_TEXT,
        allowed_widths=(256, 640, 1000),
        object_store_prefix=OBJECT_STORE_PREFIX,
        imgproxy_url=IMGPROXY_URL,
    )


class ChunkStream(httpx.AsyncByteStream):
    """Response body served in chunks and readable once, like a network stream."""

    def __init__(self, body: bytes, chunk_size: int = 4096) -> None:
        self._chunks = [body[i : i + chunk_size] for i in range(0, len(body), chunk_size)]

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self._chunks:
            yield chunk


class MockImgproxy:
    """In-process imgproxy stand-in.

    Records every request and answers with a configurable response, or raises
    ``raise_on_send`` to simulate a transport failure.
    """

    def __init__(
        self,
        *,
        status_code: int = 200,
        body: bytes = b"RIFF\x00\x00\x00\x00WEBPVP8 fake-image-bytes",
        headers: Optional[dict[str, str]] = None,
        raise_on_send: Optional[Exception] = None,
    ) -> None:
        self.received_requests: list[httpx.Request] = []
        self._status_code = status_code
        self._body = body
        self._headers = headers if headers is not None else {
            "content-type": "image/webp",
            "x-request-id": "imgproxy-req-1",
        }
        self._raise_on_send = raise_on_send

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.received_requests.append(request)
        if self._raise_on_send is not None:
            raise self._raise_on_send
        headers = {"content-length": str(len(self._body)), **self._headers}
        return httpx.Response(
            self._status_code,
            stream=ChunkStream(self._body),
            headers=headers,
        )

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    @property
    def request_count(self) -> int:
        return len(self.received_requests)


@pytest.fixture
def build_test_app(
    monkeypatch: pytest.MonkeyPatch,
    gateway_config: GatewayConfig,
) -> Callable[..., Any]:
    """Return a factory: ``build_test_app(mock, config=None)`` → FastAPI app.

    The lifespan's create_http_client is patched so the shared client talks to
    the given MockImgproxy.
    """

    def _build(mock: MockImgproxy, config: Optional[GatewayConfig] = None) -> Any:
        monkeypatch.setattr(
            "imgproxy_gateway.main.create_http_client",
            lambda _config: mock.client(),
        )
        return create_app(config if config is not None else gateway_config)

    return _build


@pytest.fixture
def make_imgproxy() -> type[MockImgproxy]:
    """Expose MockImgproxy to test modules without importing conftest."""
    return MockImgproxy
