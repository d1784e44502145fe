"""Unit tests for imgproxy → client response header processing."""

from __future__ import annotations

import httpx
import pytest

from imgproxy_gateway.proxy.headers import HOP_BY_HOP_HEADERS, build_client_response_headers


def _headers(**kwargs: str) -> httpx.Headers:
    """Build httpx.Headers from keyword args (underscores become dashes)."""
    return httpx.Headers([(k.replace("_", "-"), v) for k, v in kwargs.items()])


class TestBuildClientResponseHeaders:
    def test_entity_headers_pass_through(self) -> None:
        result = build_client_response_headers(
            _headers(
                content_type="image/webp",
                content_length="1234",
                etag='"abc"',
                cache_control="max-age=31536000",
            )
        )
        assert result["content-type"] == "image/webp"
        assert result["content-length"] == "1234"
        assert result["etag"] == '"abc"'
        assert result["cache-control"] == "max-age=31536000"

    def test_request_id_passes_through(self) -> None:
        result = build_client_response_headers(_headers(x_request_id="req-42"))
        assert result["x-request-id"] == "req-42"

    def test_content_encoding_passes_through(self) -> None:
        result = build_client_response_headers(_headers(content_encoding="gzip"))
        assert result["content-encoding"] == "gzip"

    @pytest.mark.parametrize("name", sorted(HOP_BY_HOP_HEADERS))
    def test_hop_by_hop_stripped(self, name: str) -> None:
        upstream = httpx.Headers([(name, "x"), ("content-type", "image/webp")])
        result = build_client_response_headers(upstream)
        assert name not in {k.lower() for k in result}
        assert result["content-type"] == "image/webp"

    def test_hop_by_hop_match_is_case_insensitive(self) -> None:
        upstream = httpx.Headers([("Transfer-Encoding", "chunked")])
        assert build_client_response_headers(upstream) == {}
