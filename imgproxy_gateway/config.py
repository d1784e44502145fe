"""Config loading for the imgproxy gateway.

All settings come from the process environment and are read exactly once, at
startup, before the server binds its socket. Missing or malformed required
values write a ``CONFIG ERROR`` line to stderr and raise SystemExit(1): the
gateway refuses to serve with a config that would make every signed URL wrong.

Environment variables:
  IMGPROXY_GATEWAY_PORT                         listen port (default 5558)
  IMGPROXY_GATEWAY_HOST                         bind address (default 0.0.0.0)
  IMGPROXY_KEY                                  hex-encoded imgproxy key (required)
  IMGPROXY_SALT                                 hex-encoded imgproxy salt (required)
  IMGPROXY_GATEWAY_ALLOWED_WIDTHS               JSON array of thumbnail widths
  IMGPROXY_GATEWAY_OBJSTORE_PUBLIC_URL_PREFIX   object store URL prefix
  IMGPROXY_GATEWAY_IMGPROXY_URL                 imgproxy base URL, no trailing slash
  IMGPROXY_GATEWAY_UPSTREAM_TIMEOUT             imgproxy request timeout in seconds
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from typing import Mapping, NoReturn, Optional

from imgproxy_gateway.constants import (
    DEFAULT_ALLOWED_WIDTHS_JSON,
    DEFAULT_HOST,
    DEFAULT_IMGPROXY_URL,
    DEFAULT_OBJECT_STORE_PREFIX,
    DEFAULT_PORT,
    DEFAULT_UPSTREAM_TIMEOUT_S,
    THUMBNAIL_FORMAT,
    THUMBNAIL_QUALITY,
)
from imgproxy_gateway.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Environment variable names ──────────────────────────────────────────────

ENV_PORT = "IMGPROXY_GATEWAY_PORT"
ENV_HOST = "IMGPROXY_GATEWAY_HOST"
ENV_KEY = "IMGPROXY_KEY"
ENV_SALT = "IMGPROXY_SALT"
ENV_ALLOWED_WIDTHS = "IMGPROXY_GATEWAY_ALLOWED_WIDTHS"
ENV_OBJECT_STORE_PREFIX = "IMGPROXY_GATEWAY_OBJSTORE_PUBLIC_URL_PREFIX"
ENV_IMGPROXY_URL = "IMGPROXY_GATEWAY_IMGPROXY_URL"
ENV_UPSTREAM_TIMEOUT = "IMGPROXY_GATEWAY_UPSTREAM_TIMEOUT"


# ─── Dataclass ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class GatewayConfig:
    """Immutable gateway configuration.

    signing_key / signing_salt hold the *decoded* text of the hex values from
    the environment; imgproxy requires them to be valid UTF-8, not arbitrary
    binary data.
    """

    signing_key: str
    signing_salt: str
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    allowed_widths: tuple = tuple(json.loads(DEFAULT_ALLOWED_WIDTHS_JSON))
    object_store_prefix: str = DEFAULT_OBJECT_STORE_PREFIX
    imgproxy_url: str = DEFAULT_IMGPROXY_URL
    upstream_timeout_s: float = DEFAULT_UPSTREAM_TIMEOUT_S
    output_format: str = THUMBNAIL_FORMAT
    quality: int = THUMBNAIL_QUALITY


# ─── Helpers ─────────────────────────────────────────────────────────────────


def _fail(msg: str) -> NoReturn:
    print(f"CONFIG ERROR: {msg}", file=sys.stderr)
    raise SystemExit(1)


def hex_to_text(value: str) -> str:
    """Decode a hex string into the UTF-8 text it encodes.

    Raises:
        ValueError: If ``value`` is not valid hex or does not decode to UTF-8.
    """
    raw = bytes.fromhex(value)
    return raw.decode("utf-8")


def _is_number(value: object) -> bool:
    # JSON true/false decode to bool, which is an int subclass
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _read_secret(env: Mapping[str, str], name: str) -> str:
    hex_value = env.get(name)
    if not hex_value:
        _fail(f"{name} is required.")
    try:
        return hex_to_text(hex_value)
    except ValueError as exc:
        _fail(
            f"{name} must be a hex-encoded UTF-8 string: {exc}"
        )


def _read_port(env: Mapping[str, str]) -> int:
    raw = env.get(ENV_PORT)
    if raw is None:
        return DEFAULT_PORT
    try:
        port = int(raw)
    except ValueError:
        _fail(f"{ENV_PORT} environment variable is not a valid integer: '{raw}'")
    if port <= 0:
        _fail(f"{ENV_PORT} must be a positive integer, got {port}")
    return port


def _read_allowed_widths(env: Mapping[str, str]) -> tuple:
    raw = env.get(ENV_ALLOWED_WIDTHS, DEFAULT_ALLOWED_WIDTHS_JSON)
    invalid = (
        f"{ENV_ALLOWED_WIDTHS} is invalid. "
        "Expected a JSON-encoded array of numbers (pixel widths)."
    )
    try:
        widths = json.loads(raw)
    except json.JSONDecodeError:
        _fail(invalid)
    # Only the first element is checked. Later entries are kept as given.
    if not isinstance(widths, list) or not widths or not _is_number(widths[0]):
        _fail(invalid)
    return tuple(widths)


def _read_timeout(env: Mapping[str, str]) -> float:
    raw = env.get(ENV_UPSTREAM_TIMEOUT)
    if raw is None:
        return DEFAULT_UPSTREAM_TIMEOUT_S
    try:
        timeout = float(raw)
    except ValueError:
        _fail(f"{ENV_UPSTREAM_TIMEOUT} is not a valid number: '{raw}'")
    if timeout <= 0:
        _fail(f"{ENV_UPSTREAM_TIMEOUT} must be positive, got {timeout}")
    return timeout


# ─── Config loading ──────────────────────────────────────────────────────────


def load_config(environ: Optional[Mapping[str, str]] = None) -> GatewayConfig:
    """Load and validate the gateway configuration.

    Args:
        environ: Mapping to read settings from. Defaults to ``os.environ``.

    Returns:
        A fully populated, immutable GatewayConfig.

    Raises:
        SystemExit(1): On a missing key/salt, undecodable hex, invalid port or
                       timeout, or an allowed-widths value that is not a JSON
                       array starting with a number.
    """
    env = os.environ if environ is None else environ

    config = GatewayConfig(
        signing_key=_read_secret(env, ENV_KEY),
        signing_salt=_read_secret(env, ENV_SALT),
        port=_read_port(env),
        host=env.get(ENV_HOST, DEFAULT_HOST),
        allowed_widths=_read_allowed_widths(env),
        object_store_prefix=env.get(ENV_OBJECT_STORE_PREFIX, DEFAULT_OBJECT_STORE_PREFIX),
        imgproxy_url=env.get(ENV_IMGPROXY_URL, DEFAULT_IMGPROXY_URL),
        upstream_timeout_s=_read_timeout(env),
    )

    logger.info(
        "config_loaded",
        host=config.host,
        port=config.port,
        allowed_widths=list(config.allowed_widths),
        object_store_prefix=config.object_store_prefix,
        imgproxy_url=config.imgproxy_url,
        upstream_timeout_s=config.upstream_timeout_s,
    )
    return config
