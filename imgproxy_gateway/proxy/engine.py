"""Request handler for the imgproxy gateway.

Every request, whatever its path, lands on ``gateway_handler``:

  - Full image (no ``?width=``): 301 redirect to the object store. The gateway
    never proxies original files; that would only waste bandwidth.
  - Thumbnail (``?width=N``, N allow-listed): signed GET to imgproxy, whose
    response is streamed back to the client as-is.

Key design properties:
  - Config and the shared httpx.AsyncClient are injected through FastAPI
    dependencies; the handler holds no state of its own.
  - The imgproxy fetch returns a ThumbnailFetch value (response or error
    message) instead of raising, and the handler turns failures into 400s.
  - Thumbnails are streamed with ``aiter_raw()``: never buffered in memory,
    never decoded, upstream connection closed when the stream ends.
  - Signing happens outside the fetch failure path, so a signing fault
    surfaces as a 500 and is never reported as a client error.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

import httpx
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse

from imgproxy_gateway.config import GatewayConfig
from imgproxy_gateway.constants import FAVICON_PATH
from imgproxy_gateway.proxy.headers import build_client_response_headers
from imgproxy_gateway.responses import make_error_response, make_redirect_response
from imgproxy_gateway.signing import build_signed_url
from imgproxy_gateway.utils.logger import bind_request_id, get_logger

logger = get_logger(__name__)

# ─── Router ───────────────────────────────────────────────────────────────────

router = APIRouter(tags=["gateway"])

# ─── Constants ────────────────────────────────────────────────────────────────

READ_ONLY_METHODS: frozenset[str] = frozenset({"GET", "HEAD"})

# Non read-only methods are routed too; the handler answers them with 405.
ROUTED_METHODS: list[str] = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]

POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 100
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds

# Width sentinel for values that do not start with an integer; never allow-listed.
INVALID_WIDTH: int = -1

_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")

# ─── httpx.AsyncClient factory ────────────────────────────────────────────────


def create_http_client(config: GatewayConfig) -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient used for all imgproxy requests.

    Created once at lifespan startup and stored in app.state.http_client;
    never instantiated per-request.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(config.upstream_timeout_s),
        follow_redirects=False,
    )


# ─── Dependencies ─────────────────────────────────────────────────────────────


def get_config(request: Request) -> GatewayConfig:
    return request.app.state.config


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


# ─── Request parsing ──────────────────────────────────────────────────────────


def parse_width(raw: str) -> int:
    """Parse the leading integer of a ``width`` query value.

    Leading whitespace and a sign are accepted and trailing characters are
    ignored (``"640px"`` → 640). Anything else yields INVALID_WIDTH.
    """
    match = _LEADING_INT.match(raw)
    if match is None:
        return INVALID_WIDTH
    return int(match.group(1))


def is_allowed_width(width: int, allowed_widths: tuple) -> bool:
    # JSON true/false entries compare equal to 1/0 but are never widths
    return any(
        allowed == width and not isinstance(allowed, bool) for allowed in allowed_widths
    )


def request_path(request: Request) -> str:
    """Return the request path as sent by the client (still percent-encoded).

    Falls back to the decoded ASGI path when the server does not supply
    ``raw_path``.
    """
    raw_path: Optional[bytes] = request.scope.get("raw_path")
    if raw_path:
        return raw_path.split(b"?", 1)[0].decode("latin-1")
    return request.url.path


# ─── imgproxy fetch ───────────────────────────────────────────────────────────


@dataclass
class ThumbnailFetch:
    """Outcome of one imgproxy request.

    Exactly one of ``response`` (open, streaming, status 200) or ``error``
    (message for the client) is set.
    """

    response: Optional[httpx.Response] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.response is not None


async def fetch_thumbnail(http_client: httpx.AsyncClient, url: str) -> ThumbnailFetch:
    """GET a signed imgproxy URL without reading the body.

    Non-200 responses are read fully (imgproxy error bodies are short text),
    closed, and reported as an error carrying that text.
    """
    try:
        upstream_request = http_client.build_request("GET", url)
        upstream_response = await http_client.send(upstream_request, stream=True)
    except httpx.InvalidURL as exc:
        logger.error("invalid_upstream_url", upstream_url=url, error=str(exc))
        return ThumbnailFetch(error=str(exc))
    except httpx.HTTPError as exc:
        logger.warning(
            "upstream_fetch_failed",
            upstream_url=url,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return ThumbnailFetch(error=str(exc) or type(exc).__name__)

    if upstream_response.status_code == 200:
        return ThumbnailFetch(response=upstream_response)

    try:
        await upstream_response.aread()
        message = upstream_response.text
    except httpx.HTTPError as exc:
        message = str(exc) or type(exc).__name__
    finally:
        await upstream_response.aclose()

    logger.warning(
        "upstream_error_status",
        upstream_url=url,
        status_code=upstream_response.status_code,
        error=message,
    )
    return ThumbnailFetch(error=message)


async def _stream_upstream(upstream_response: httpx.Response) -> AsyncGenerator[bytes, None]:
    """Yield the raw imgproxy body chunk by chunk, then release the connection."""
    try:
        async for chunk in upstream_response.aiter_raw():
            yield chunk
    finally:
        await upstream_response.aclose()


# ─── Entry logging ────────────────────────────────────────────────────────────


def log_request_received(request: Request) -> str:
    """Bind a fresh request ID and log the request line. Returns the path."""
    bind_request_id()
    path = request_path(request)
    query = request.url.query
    logger.info(
        "request_received",
        method=request.method,
        path=path,
        query=f"?{query}" if query else "",
    )
    return path


# ─── Handler ──────────────────────────────────────────────────────────────────


@router.api_route("/{path:path}", methods=ROUTED_METHODS)
async def gateway_handler(
    request: Request,
    config: GatewayConfig = Depends(get_config),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> Response:
    """Redirect to the full image, or stream a signed imgproxy thumbnail.

    Returns:
        405 for non read-only methods, 404 for the favicon, 400 for a
        disallowed width or a failed imgproxy request, the imgproxy response
        for a thumbnail, and a 301 to the object store otherwise.
    """
    path = log_request_received(request)

    if request.method not in READ_ONLY_METHODS:
        return make_error_response(f"Invalid request method {request.method}", 405)

    if path == FAVICON_PATH:
        return make_error_response("There is no favicon for this application", 404)

    widths = request.query_params.getlist("width")
    if not widths:
        location = f"{config.object_store_prefix}{path}"
        logger.info("redirect", location=location)
        return make_redirect_response(location)

    # Only the first width parameter counts.
    raw_width = widths[0]
    width = parse_width(raw_width)
    if not is_allowed_width(width, config.allowed_widths):
        return make_error_response(f"Invalid width requested: {raw_width}")

    signed_url = build_signed_url(config, path, width)
    fetched = await fetch_thumbnail(http_client, signed_url)
    if not fetched.ok:
        return make_error_response(
            f"Streaming {path} from imgproxy failed: {fetched.error}"
        )

    upstream_response = fetched.response
    logger.info(
        "thumbnail_streaming",
        path=path,
        width=width,
        imgproxy_request_id=upstream_response.headers.get("x-request-id"),
    )
    return StreamingResponse(
        content=_stream_upstream(upstream_response),
        status_code=upstream_response.status_code,
        headers=build_client_response_headers(upstream_response.headers),
    )
