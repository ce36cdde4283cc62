"""proxyer - a minimal forwarding proxy onto one fixed HTTPS upstream."""

from .errors import BindError, ProxyerError, RewriteError, SignalHandlerError, UpstreamError
from .lifecycle import InFlightTracker, ServerState, ShutdownSignal
from .observability import configure as configure_observability
from .proxy import ProxyServer
from .request import ProxyRequest
from .rewrite import UPSTREAM_HOST, build_target_url, rewrite_request, strip_headers
from .stats import Stats, StatsCounter
from .upstream import UpstreamClient, relay_response

__all__ = [
    # Server
    "ProxyServer",
    "ServerState",
    "ShutdownSignal",
    "InFlightTracker",
    # Pipeline pieces
    "ProxyRequest",
    "UPSTREAM_HOST",
    "build_target_url",
    "rewrite_request",
    "strip_headers",
    "UpstreamClient",
    "relay_response",
    "Stats",
    "StatsCounter",
    # Errors
    "ProxyerError",
    "BindError",
    "RewriteError",
    "UpstreamError",
    "SignalHandlerError",
    # Observability
    "configure_observability",
]
__version__ = "0.1.0"
