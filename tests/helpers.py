"""Shared test helpers: free ports, a mock upstream, a running proxy."""

import asyncio
import socket
from contextlib import asynccontextmanager

import httpx

from proxyer import ProxyServer, UpstreamClient


def find_free_port() -> int:
    """Find an available port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        return s.getsockname()[1]


class MockUpstream:
    """Stands in for the upstream host via httpx.MockTransport.

    Records every request it receives. When hold() has been called, each
    request waits until release() before being answered.
    """

    def __init__(self, status_code: int = 200, body: bytes = b"upstream says hi", headers=None):
        self.received: list[httpx.Request] = []
        self.status_code = status_code
        self.body = body
        self.headers = headers or {"content-type": "text/plain"}
        self.error: Exception | None = None
        self._gate: asyncio.Event | None = None

    def hold(self) -> None:
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.received.append(request)
        if self.error is not None:
            raise self.error
        if self._gate is not None:
            await self._gate.wait()
        return httpx.Response(self.status_code, content=self.body, headers=self.headers)

    def client(self) -> UpstreamClient:
        return UpstreamClient(httpx.AsyncClient(transport=httpx.MockTransport(self.handler)))


@asynccontextmanager
async def running_proxy(upstream: MockUpstream, **kwargs):
    """Start a ProxyServer on a free port wired to upstream; stop it afterwards."""
    server = ProxyServer("127.0.0.1", find_free_port(), upstream=upstream.client(), **kwargs)
    await server.start()
    try:
        yield server
    finally:
        await server.stop()


async def raw_request(server: ProxyServer, data: bytes) -> bytes:
    """Write raw bytes to the proxy and read until it closes the connection.

    Callers send "Connection: close" so the read terminates.
    """
    reader, writer = await asyncio.open_connection("127.0.0.1", server.port)
    try:
        writer.write(data)
        await writer.drain()
        return await reader.read()
    finally:
        writer.close()
        await writer.wait_closed()
