"""imgproxy gateway: object-store redirects and signed imgproxy thumbnails."""

__version__ = "1.0.0"
