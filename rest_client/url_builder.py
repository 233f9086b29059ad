"""URL Builder - Assembles absolute request URLs from their components.

The scheme comes from the client's test-mode flag, never from the request.
Paths arrive already percent-encoded and are not encoded again; query
parameters are encoded one key/value pair at a time.
"""

from __future__ import annotations

import re
from typing import Mapping

import httpx

# Characters that cannot appear in a URL host.
_INVALID_HOST_CHARS = re.compile(r"[\s/?#@\\]")


class UrlSyntaxError(ValueError):
    """Raised when the components cannot form a valid URL.

    The offending input is kept on ``input`` so callers can report it.
    """

    def __init__(self, message: str, offending: str) -> None:
        super().__init__(f"{message}: {offending!r}")
        self.input = offending


def scheme_for(test_mode: bool) -> str:
    """Return the URL scheme for the given test-mode flag."""
    return "http" if test_mode else "https"


def build_url(
    base_address: str,
    path: str,
    query_params: Mapping[str, str] | None,
    *,
    test_mode: bool,
) -> httpx.URL:
    """Build an absolute URL.

    Args:
        base_address: Host without scheme (e.g. "api.example.com"), used verbatim.
        path: Already percent-encoded path (e.g. "/v3/templates").
        query_params: Parameters appended in iteration order. None or an
            empty mapping produces no query string.
        test_mode: Selects "http" when True, "https" when False.

    Returns:
        The assembled httpx.URL.

    Raises:
        UrlSyntaxError: If the base address or path cannot form a valid URL.
    """
    if not base_address or _INVALID_HOST_CHARS.search(base_address):
        raise UrlSyntaxError("Invalid base address", base_address)
    if path and not path.startswith("/"):
        raise UrlSyntaxError("Path must begin with '/'", path)

    try:
        # httpx leaves existing %XX escapes in the path untouched.
        return httpx.URL(
            scheme=scheme_for(test_mode),
            host=base_address,
            path=path,
            params=dict(query_params) if query_params else None,
        )
    except httpx.InvalidURL as e:
        raise UrlSyntaxError(f"Invalid URL ({e})", f"{base_address}{path}") from e
