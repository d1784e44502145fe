"""Request ID generation for the imgproxy gateway.

Every inbound request gets a ULID (26 chars, Crockford Base32, sortable by
creation time). It is bound to the structlog context so that the entry log,
the error log and the streaming log of one request can be correlated.

Uses the ``python-ulid`` library.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Example::

        request_id = generate_ulid()
        # "01KJ0JRVHYA7KX32VPN5ZSCTMV"
        assert len(request_id) == 26
    """
    return str(ULID())
