"""imgproxy URL signing.

imgproxy verifies each request path with an HMAC-SHA256 computed over
``salt + path`` using the shared key, encoded as URL-safe base64 without
padding. Only the key and salt holder can produce valid thumbnail URLs, so
clients cannot ask imgproxy for arbitrary transformations.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Union

from imgproxy_gateway.config import GatewayConfig

BytesOrText = Union[bytes, str]


def _to_bytes(value: BytesOrText) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def sha256_hmac(secret_key: BytesOrText, data: BytesOrText) -> bytes:
    """Return the raw HMAC-SHA256 digest of ``data`` under ``secret_key``.

    The key is used as raw key material; text is UTF-8 encoded first.
    """
    return hmac.new(_to_bytes(secret_key), _to_bytes(data), hashlib.sha256).digest()


def encode_signature(digest: bytes) -> str:
    """URL-safe base64 without ``=`` padding."""
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def build_thumbnail_path(
    width: int,
    source_url: str,
    quality: int,
    output_format: str,
) -> str:
    """Build the unsigned imgproxy processing path for a fit-mode resize.

    Example::

        build_thumbnail_path(640, "http://s3/bucket/abc.jpg", 87, "webp")
        # "/rs:fit:640/q:87/plain/http://s3/bucket/abc.jpg@webp"
    """
    return f"/rs:fit:{width}/q:{quality}/plain/{source_url}@{output_format}"


def sign_path(key: BytesOrText, salt: BytesOrText, path: str) -> str:
    """Return the encoded signature for an imgproxy path."""
    return encode_signature(sha256_hmac(key, _to_bytes(salt) + _to_bytes(path)))


def build_signed_url(config: GatewayConfig, path: str, width: int) -> str:
    """Return the full signed imgproxy URL for a thumbnail of ``path``.

    Args:
        config: Gateway configuration (key, salt, prefixes, format, quality).
        path:   Request path of the source image, with leading slash.
        width:  Allow-listed thumbnail width in pixels.
    """
    thumbnail_path = build_thumbnail_path(
        width,
        f"{config.object_store_prefix}{path}",
        config.quality,
        config.output_format,
    )
    signature = sign_path(config.signing_key, config.signing_salt, thumbnail_path)
    return f"{config.imgproxy_url}/{signature}{thumbnail_path}"
