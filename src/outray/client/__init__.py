"""
Tunnel client.

Provides the connection supervisor (Client), the per-channel Session and
the stream, datagram and HTTP bridges it dispatches to.
"""

from outray.client.backoff import Backoff
from outray.client.client import Client
from outray.client.config import DEFAULT_SERVER_URL, ClientConfig
from outray.client.datagram_bridge import DatagramBridge
from outray.client.handlers import CallbackHandler, TunnelHandler
from outray.client.http_bridge import HttpBridge
from outray.client.session import Session
from outray.client.stream_bridge import StreamBridge

__all__ = [
    "Client",
    "ClientConfig",
    "DEFAULT_SERVER_URL",
    "Session",
    "Backoff",
    "TunnelHandler",
    "CallbackHandler",
    "StreamBridge",
    "DatagramBridge",
    "HttpBridge",
]
