"""Upstream HTTPS client and response relay."""

import ssl

import httpx
import logfire
from aiohttp import web

from .errors import UpstreamError
from .request import ProxyRequest

# Inbound headers not copied onto the upstream request
# (httpx sets Host from the target URL)
SKIP_REQUEST_HEADERS = {
    "host",
}

# Headers to skip when relaying the response (hop-by-hop, or invalid once
# httpx has decoded the body)
SKIP_RESPONSE_HEADERS = {
    "content-encoding",
    "content-length",
    "transfer-encoding",
    "connection",
    "keep-alive",
}


def native_trust_context() -> ssl.SSLContext:
    """TLS context backed by the host system's root certificates."""
    return ssl.create_default_context()


class UpstreamClient:
    """Shared HTTPS client used by every request handler.

    One httpx.AsyncClient is created lazily and reused so connections to the
    upstream host are pooled. No timeout and no retries: a hung upstream call
    holds its handler until the transport gives up on its own.

    Usage:
        upstream = UpstreamClient()
        response = await upstream.send(rewritten_request)
        ...
        await upstream.aclose()
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        """Initialize the client.

        Args:
            http_client: Pre-built client to use instead of the default one
                (tests pass one backed by httpx.MockTransport).
        """
        self._http_client = http_client

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                verify=native_trust_context(),
                http1=True,
                http2=False,
                timeout=None,
            )
        return self._http_client

    async def aclose(self) -> None:
        """Close pooled connections."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def send(self, request: ProxyRequest) -> httpx.Response:
        """Send a rewritten request upstream.

        The response is returned unread (streaming); the caller must close it,
        normally through relay_response().

        Raises:
            UpstreamError: if the request was never rewritten, targets a
                non-https URL, or the transport fails.
        """
        if request.url is None:
            raise UpstreamError("Request has no upstream URL")
        if request.url.scheme != "https":
            raise UpstreamError(f"Refusing non-https upstream URL {request.url}")

        # aiohttp decodes header bytes as utf-8 with surrogateescape; undo that so
        # non-ASCII values go out byte for byte
        headers = [
            (key, value.encode("utf-8", "surrogateescape"))
            for key, value in request.headers.items()
            if key.lower() not in SKIP_REQUEST_HEADERS
        ]

        client = self._client()
        outbound = client.build_request(
            request.method,
            request.url,
            headers=headers,
            content=request.body or None,
        )
        # httpx adds its own Accept-Encoding by default; the upstream gets none
        outbound.headers.pop("accept-encoding", None)
        try:
            return await client.send(outbound, stream=True)
        except httpx.HTTPError as e:
            raise UpstreamError(f"proxy request: {e!r}") from e


async def relay_response(
    upstream_response: httpx.Response,
    request: web.Request,
) -> web.StreamResponse:
    """Stream an upstream response back to the caller, then close it."""
    resp = web.StreamResponse(
        status=upstream_response.status_code,
        reason=upstream_response.reason_phrase or None,
    )

    for key, value in upstream_response.headers.multi_items():
        if key.lower() not in SKIP_RESPONSE_HEADERS:
            resp.headers.add(key, value)

    try:
        await resp.prepare(request)
        async for chunk in upstream_response.aiter_bytes():
            await resp.write(chunk)
    except httpx.HTTPError as e:
        # Headers are already on the wire; all we can do is drop the connection
        logfire.error("Upstream failed mid-response: {error}", error=repr(e))
        raise UpstreamError(f"relay response: {e!r}") from e
    finally:
        await upstream_response.aclose()

    await resp.write_eof()
    return resp
