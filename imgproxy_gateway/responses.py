"""Error and redirect response builders.

  make_error_response():
      JSON error with ``{"error": message}`` body. Used for every client-facing
      failure: bad method (405), favicon (404), disallowed width (400) and
      imgproxy failures (400).

  make_redirect_response():
      301 to the object store for full-size images. Cacheable for seven days,
      no body.
"""

from __future__ import annotations

from fastapi import Response
from fastapi.responses import JSONResponse

from imgproxy_gateway.constants import REDIRECT_CACHE_CONTROL
from imgproxy_gateway.utils.logger import get_logger

logger = get_logger(__name__)

JSON_MEDIA_TYPE: str = "application/json; charset=utf-8"


def make_error_response(message: str, status_code: int = 400) -> JSONResponse:
    """Build a JSON error response and log it.

    Args:
        message:     Human-readable error message, returned as ``error``.
        status_code: HTTP status code (default 400).

    Returns:
        JSONResponse with body ``{"error": message}`` and a UTF-8 JSON content type.
    """
    logger.warning("error_response", status_code=status_code, message=message)
    return JSONResponse(
        status_code=status_code,
        content={"error": message},
        media_type=JSON_MEDIA_TYPE,
    )


def make_redirect_response(location: str) -> Response:
    """Build the permanent redirect to a full-size object."""
    return Response(
        content=b"",
        status_code=301,
        headers={
            "Location": location,
            "Cache-Control": REDIRECT_CACHE_CONTROL,
        },
    )
