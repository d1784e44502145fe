"""Header processing for thumbnails streamed back from imgproxy.

The thumbnail body is forwarded byte-for-byte (``aiter_raw()``), so entity
headers such as content-type, content-length, content-encoding, etag and
cache-control describe exactly what the client receives and are passed through
unchanged. Only connection-level headers are dropped.

RFC 7230 §6.1: hop-by-hop headers MUST NOT be forwarded by intermediaries.
"""

from __future__ import annotations

import httpx

# ─── Constants ────────────────────────────────────────────────────────────────

HOP_BY_HOP_HEADERS: frozenset[str] = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

# ─── Public API ───────────────────────────────────────────────────────────────


def build_client_response_headers(upstream_headers: httpx.Headers) -> dict[str, str]:
    """Build the header dict to return to the client from an imgproxy response.

    Args:
        upstream_headers: Response headers from imgproxy (``httpx.Response.headers``).

    Returns:
        ``dict[str, str]``: all upstream headers except hop-by-hop ones.
    """
    headers: dict[str, str] = {}
    for name, value in upstream_headers.items():
        if name.lower() in HOP_BY_HOP_HEADERS:
            continue
        headers[name] = value
    return headers
