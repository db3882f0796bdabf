"""
Data models for the tunnel client.

Model Categories:
    - Enums: protocol mode, supervisor state, log level
    - Messages: proxied HTTP request and response
"""

from outray.models.enums import ConnectionState, LogLevel, TunnelProtocol
from outray.models.messages import IncomingRequest, IncomingResponse

__all__ = [
    "ConnectionState",
    "LogLevel",
    "TunnelProtocol",
    "IncomingRequest",
    "IncomingResponse",
]
