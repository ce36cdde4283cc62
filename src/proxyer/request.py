"""The per-request value passed from the listener through the rewriter to upstream."""

from dataclasses import dataclass, field

import httpx
from aiohttp import web
from multidict import CIMultiDict


@dataclass
class ProxyRequest:
    """An inbound request, detached from the aiohttp connection.

    path and query are kept raw (still percent-encoded) so the upstream sees
    exactly what the caller sent. query is None when the target had no "?" at
    all and "" for a bare trailing "?". url stays None until the rewriter sets it.
    """

    method: str
    path: str
    query: str | None = None
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    body: bytes = b""
    url: httpx.URL | None = None

    @classmethod
    async def from_web_request(cls, request: web.Request) -> "ProxyRequest":
        """Read the full body and copy the parts the proxy needs."""
        return cls(
            method=request.method,
            path=request.rel_url.raw_path,
            query=_raw_query(request),
            headers=CIMultiDict(request.headers),
            body=await request.read(),
        )


def _raw_query(request: web.Request) -> str | None:
    # yarl reports "" both for "/foo" and "/foo?"
    query = request.rel_url.raw_query_string
    if query or "?" in request.raw_path:
        return query
    return None
