"""Command-line entry point: parse flags, serve until interrupted."""

import argparse
import asyncio

import logfire

from .config import DEFAULT_ADDRESS, DEFAULT_LOG_LEVEL, DEFAULT_PORT, LOG_LEVELS, ProxyConfig
from .errors import ProxyerError
from .lifecycle import ShutdownSignal
from .observability import configure
from .proxy import ProxyServer


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}")
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {port}")
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="proxyer", description="A http proxyer server")
    parser.add_argument(
        "-l", "--log",
        dest="log_level",
        default=DEFAULT_LOG_LEVEL,
        type=str.lower,
        choices=LOG_LEVELS,
        help=f"Log level (default: {DEFAULT_LOG_LEVEL})",
    )
    parser.add_argument(
        "-a", "--addr",
        dest="address",
        default=DEFAULT_ADDRESS,
        help=f"Bind address (default: {DEFAULT_ADDRESS})",
    )
    parser.add_argument(
        "-p", "--port",
        default=DEFAULT_PORT,
        type=_port,
        help=f"Bind port (default: {DEFAULT_PORT})",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> ProxyConfig:
    args = build_parser().parse_args(argv)
    return ProxyConfig(log_level=args.log_level, address=args.address, port=args.port)


async def serve(config: ProxyConfig, shutdown: ShutdownSignal | None = None) -> None:
    """Serve until a shutdown signal arrives, then drain and stop.

    Raises:
        SignalHandlerError: if the signal handler cannot be installed.
        BindError: if the listener cannot bind.
    """
    shutdown = shutdown or ShutdownSignal()
    shutdown.install()
    try:
        server = ProxyServer(config.address, config.port)
        await server.start()
        try:
            await shutdown.wait()
        finally:
            await server.stop()
    finally:
        shutdown.uninstall()


def main(argv: list[str] | None = None) -> int:
    config = parse_args(argv)
    configure(log_level=config.resolve_log_level())

    try:
        asyncio.run(serve(config))
    except ProxyerError as e:
        logfire.error("Server error: {error}", error=str(e))
        return 1
    return 0

