"""
Outray tunnel client.

Exposes local services to the public internet through a single WebSocket
connection to the Outray relay, multiplexing HTTP requests, TCP
connections and UDP datagrams.
"""

from outray.client import CallbackHandler, Client, ClientConfig, TunnelHandler
from outray.exceptions import (
    ChannelClosedError,
    ConfigError,
    LocalConnectionError,
    OutrayError,
    ProtocolError,
    TunnelConnectionError,
    TunnelServerError,
)
from outray.models import (
    ConnectionState,
    IncomingRequest,
    IncomingResponse,
    LogLevel,
    TunnelProtocol,
)
from outray.tunnel import MessageType

__version__ = "0.1.0"

__all__ = [
    # Client
    "Client",
    "ClientConfig",
    "TunnelHandler",
    "CallbackHandler",
    # Models
    "ConnectionState",
    "IncomingRequest",
    "IncomingResponse",
    "LogLevel",
    "TunnelProtocol",
    "MessageType",
    # Exceptions
    "OutrayError",
    "ConfigError",
    "ProtocolError",
    "TunnelConnectionError",
    "ChannelClosedError",
    "TunnelServerError",
    "LocalConnectionError",
]
