"""Shared constants for the imgproxy gateway.

Defaults for every environment-driven setting and the fixed thumbnail
parameters live here. Other modules import these rather than repeating the values.
"""

# ─── Server ──────────────────────────────────────────────────────────────────

DEFAULT_PORT: int = 5558

# Listen on all interfaces by default.
DEFAULT_HOST: str = "0.0.0.0"

# ─── Upstreams ───────────────────────────────────────────────────────────────

# Full URL prefix of the object store, used for full-size redirects and as the
# source URL handed to imgproxy.
DEFAULT_OBJECT_STORE_PREFIX: str = "http://localhost:9000/neolace-objects"

# imgproxy base URL. No trailing slash.
DEFAULT_IMGPROXY_URL: str = "http://localhost:5557"

# JSON-encoded list of thumbnail widths (pixels) clients may request.
DEFAULT_ALLOWED_WIDTHS_JSON: str = "[256, 640, 1000, 2000, 4000]"

# Total timeout for one imgproxy request (seconds).
DEFAULT_UPSTREAM_TIMEOUT_S: float = 30.0

# ─── Thumbnails ──────────────────────────────────────────────────────────────

# Thumbnails are always webp, regardless of the source image type.
THUMBNAIL_FORMAT: str = "webp"
THUMBNAIL_QUALITY: int = 87

# ─── Redirects ───────────────────────────────────────────────────────────────

# Full-size redirects may be cached for seven days.
REDIRECT_MAX_AGE_S: int = 604_800
REDIRECT_CACHE_CONTROL: str = (
    f"public, max-age={REDIRECT_MAX_AGE_S}, immutable, "
    f"stale-while-revalidate={REDIRECT_MAX_AGE_S}"
)

# ─── Reserved paths ──────────────────────────────────────────────────────────

FAVICON_PATH: str = "/favicon.ico"
