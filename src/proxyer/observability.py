"""Observability setup - Logfire configuration.

We use logfire.info/warn/error/debug directly instead of Python's logging
module, so log lines nest under the request spans. Records that libraries
(aiohttp's access and server loggers) emit through logging are routed into
logfire as well.
"""

import logging

import logfire


def configure(service_name: str = "proxyer", log_level: str = "debug") -> None:
    """Configure Logfire for observability.

    Args:
        service_name: Name to identify this service in traces.
        log_level: Lowest level printed to the console.
    """
    logfire.configure(
        service_name=service_name,
        scrubbing=False,  # Paths and query strings are the whole point of the logs
        send_to_logfire="if-token-present",
        console=logfire.ConsoleOptions(min_log_level=log_level),
    )

    # Instrument httpx so upstream calls get their own spans
    logfire.instrument_httpx()

    # Library loggers stay at info, whatever our own level is
    logging.basicConfig(handlers=[logfire.LogfireLoggingHandler()], level=logging.INFO, force=True)
