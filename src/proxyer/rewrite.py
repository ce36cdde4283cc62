"""Request rewriting: point an inbound request at the upstream host.

Two things happen to every forwarded request:
1. Transport and encoding-negotiation headers are dropped. Their values
   describe the caller's connection, not the one we open upstream.
2. The target URI is rebuilt on the fixed upstream host.

Requests with a query string go to the www. host, requests without one go to
the bare host. A bare trailing "?" counts as a (blank) query string. That asymmetry is long-standing behavior and is kept as is.
"""

import httpx
import logfire
from multidict import CIMultiDict

from .errors import RewriteError
from .request import ProxyRequest

UPSTREAM_HOST = "httpbin.org"

# Removed from the inbound request before forwarding (all occurrences, any case)
STRIPPED_HEADERS = (
    "content-length",
    "transfer-encoding",
    "accept-encoding",
    "content-encoding",
)


def strip_headers(headers: CIMultiDict) -> None:
    """Remove every STRIPPED_HEADERS entry from headers, in place."""
    for name in STRIPPED_HEADERS:
        headers.popall(name, None)


def build_target_url(path: str, query: str | None, upstream_host: str = UPSTREAM_HOST) -> httpx.URL:
    """Build the upstream URL for a raw path and query string.

    Raises:
        RewriteError: if the result does not parse, or parses to anything
            other than an https URL on the expected host.
    """
    if query is not None:
        expected_host = f"www.{upstream_host}"
        target = f"https://{expected_host}{path}?{query}"
    else:
        expected_host = upstream_host
        target = f"https://{expected_host}{path}"

    try:
        url = httpx.URL(target)
    except httpx.InvalidURL as e:
        raise RewriteError(f"Parsing URI {target!r}: {e}") from e

    # A path like "@other.host/x" parses fine but moves the authority
    if url.scheme != "https" or url.host != expected_host:
        raise RewriteError(f"Parsing URI {target!r}: resolves to host {url.host!r}")

    return url


def rewrite_request(request: ProxyRequest, upstream_host: str = UPSTREAM_HOST) -> ProxyRequest:
    """Strip headers and set request.url. Mutates and returns request."""
    strip_headers(request.headers)
    request.url = build_target_url(request.path, request.query, upstream_host)
    logfire.debug(
        "Rewrote {method} {path} -> {url}",
        method=request.method,
        path=request.path,
        url=str(request.url),
    )
    return request
