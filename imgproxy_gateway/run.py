"""Programmatic uvicorn entry point for the imgproxy gateway.

Loads the configuration first, so a missing or malformed setting exits the
process before any socket is bound, then starts uvicorn on an app built from
that one config object with hardened defaults:

  --limit-concurrency 100  Max 100 concurrent connections; HTTP 503 when exceeded
  --backlog 50             OS connection queue depth
  --timeout-keep-alive 5   Short keep-alive window for idle clients

Usage:
    python -m imgproxy_gateway.run
    imgproxy-gateway                 # via pyproject.toml [project.scripts]

Logging is controlled by LOG_LEVEL, DEBUG and JSON_LOGS.
"""

from __future__ import annotations

import os

import uvicorn

from imgproxy_gateway.config import load_config
from imgproxy_gateway.main import create_app
from imgproxy_gateway.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

# Must match the httpx pool size (POOL_MAX_CONNECTIONS in proxy/engine.py).
UVICORN_LIMIT_CONCURRENCY: int = 100
UVICORN_BACKLOG: int = 50
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the gateway.

    Raises:
        SystemExit: Propagated from load_config() on configuration errors.
    """
    debug = os.getenv("DEBUG", "false").lower() == "true"
    log_level = os.getenv("LOG_LEVEL", "DEBUG" if debug else "INFO")
    json_logs = os.getenv("JSON_LOGS", "true").lower() == "true"
    configure_logging(log_level=log_level, json_output=json_logs)

    config = load_config()
    logger.info("gateway_starting", host=config.host, port=config.port)

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=log_level.lower(),
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
