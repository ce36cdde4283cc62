"""Async forwarding proxy server.

Runs an aiohttp server that handles every request in its own task:
1. /status answers directly with a snapshot of the counters
2. Anything else is counted, rewritten onto the upstream host
3. Forwarded over the shared HTTPS client
4. The upstream response is streamed back verbatim

Rewrite and transport failures become a 502 for that one caller; they never
affect other requests or the counter.
"""

import logfire
from aiohttp import web

from .errors import BindError, RewriteError, UpstreamError
from .lifecycle import InFlightTracker, ServerState
from .request import ProxyRequest
from .rewrite import UPSTREAM_HOST, rewrite_request
from .stats import StatsCounter
from .upstream import UpstreamClient, relay_response

STATUS_PATH = "/status"


class ProxyServer:
    """Forwarding proxy bound to one address and port.

    Usage:
        server = ProxyServer("127.0.0.1", 3000)
        await server.start()

        # ... serve until told to stop ...

        await server.stop()  # drains in-flight requests first
    """

    def __init__(
        self,
        address: str,
        port: int,
        *,
        stats: StatsCounter | None = None,
        upstream: UpstreamClient | None = None,
        upstream_host: str = UPSTREAM_HOST,
    ):
        """Initialize the server.

        Args:
            address: Bind address.
            port: Bind port.
            stats: Counter shared by all handlers (a fresh one if omitted).
            upstream: Shared upstream client (a default HTTPS client if omitted).
            upstream_host: Host every non-status request is forwarded to.
        """
        self.address = address
        self.port = port
        self.stats = stats or StatsCounter()
        self.upstream = upstream or UpstreamClient()
        self.upstream_host = upstream_host

        self._state = ServerState.STARTING
        self._in_flight = InFlightTracker()
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def in_flight(self) -> int:
        """Number of request handlers currently running."""
        return self._in_flight.count

    @property
    def base_url(self) -> str:
        """Get the base URL for this proxy."""
        host = f"[{self.address}]" if ":" in self.address else self.address
        return f"http://{host}:{self.port}"

    async def start(self) -> None:
        """Bind the listener and start serving.

        Raises:
            BindError: if the address/port cannot be bound.
        """
        # Default client_max_size is 1 MB; bodies are forwarded whatever their size
        self._app = web.Application(client_max_size=0)
        self._app.router.add_route("*", "/{path:.*}", self._handle_request)

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.address, self.port)
        try:
            await self._site.start()
        except OSError as e:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            self._app = None
            raise BindError(f"cannot bind {self.address}:{self.port}: {e}") from e

        self._state = ServerState.SERVING
        logfire.info(f"listening on {self.base_url}")

    async def stop(self) -> None:
        """Stop accepting connections, wait for in-flight requests, shut down.

        There is no deadline on the drain; handlers are never cancelled.
        """
        if self._state in (ServerState.DRAINING, ServerState.STOPPED):
            return

        self._state = ServerState.DRAINING
        if self._runner:
            for site in list(self._runner.sites):
                await site.stop()

            if self._in_flight.count:
                logfire.info(f"Draining {self._in_flight.count} in-flight request(s)")
            await self._in_flight.wait_drained()

            await self._runner.cleanup()
            self._runner = None

        await self.upstream.aclose()
        self._site = None
        self._app = None
        self._state = ServerState.STOPPED
        logfire.info("Proxy stopped")

    async def _handle_request(self, request: web.Request) -> web.StreamResponse:
        """Route one inbound request."""
        async with self._in_flight.track():
            if request.rel_url.raw_path == STATUS_PATH:
                return await self._status_response()
            return await self._proxy(request)

    async def _status_response(self) -> web.Response:
        stats = await self.stats.snapshot()
        return web.Response(text=repr(stats))

    async def _proxy(self, request: web.Request) -> web.StreamResponse:
        """Count, rewrite and forward a request to the upstream host."""
        path = request.rel_url.raw_path
        logfire.info("Proxied: {path}", path=path)
        # Counted before rewrite/dispatch, so failed attempts are counted too
        await self.stats.increment_proxied()

        with logfire.span("proxy.forward", path=path, method=request.method) as span:
            try:
                proxy_request = await ProxyRequest.from_web_request(request)
                rewrite_request(proxy_request, self.upstream_host)
                span.set_attribute("upstream_url", str(proxy_request.url))
                upstream_response = await self.upstream.send(proxy_request)
            except RewriteError as e:
                logfire.warn("Rewrite failed: {error}", error=str(e))
                span.set_attribute("error", str(e))
                return web.Response(status=502, text=str(e))
            except UpstreamError as e:
                logfire.error("Upstream error: {error}", error=str(e))
                span.set_attribute("error", str(e))
                return web.Response(status=502, text=str(e))

            span.set_attribute("status_code", upstream_response.status_code)
            return await relay_response(upstream_response, request)
