"""Error taxonomy for proxyer.

Startup errors (BindError, SignalHandlerError) are fatal: the CLI logs them
and exits non-zero. Per-request errors (RewriteError, UpstreamError) only
end the request that raised them and become a 502 for that caller.
"""


class ProxyerError(Exception):
    """Base class for everything proxyer raises on purpose."""


class BindError(ProxyerError):
    """The listener could not acquire the address/port."""


class RewriteError(ProxyerError):
    """The upstream target URI could not be built from the inbound request."""


class UpstreamError(ProxyerError):
    """Transport-level failure talking to the upstream host."""


class SignalHandlerError(ProxyerError):
    """The shutdown signal handler could not be installed."""
