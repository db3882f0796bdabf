"""
Enumeration types for the tunnel client.

This module defines the enumeration types shared by the client, session,
bridges and CLI.
"""

from enum import Enum


# =============================================================================
# Tunnel Enums
# =============================================================================


class TunnelProtocol(str, Enum):
    """
    Kind of traffic a tunnel carries.

    - HTTP: request/response pairs proxied to a local HTTP service
    - TCP: multiplexed byte-stream connections
    - UDP: one-shot datagram exchanges
    """

    HTTP = "http"
    TCP = "tcp"
    UDP = "udp"


class ConnectionState(str, Enum):
    """
    Connection supervisor state.

    State transitions:
        IDLE -> CONNECTING -> OPEN -> CONNECTING (clean close)
        CONNECTING/OPEN -> BACKOFF (error) -> CONNECTING (timer)
        Any -> CLOSED (explicit close only)
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    BACKOFF = "backoff"
    CLOSED = "closed"


# =============================================================================
# Logging Enums
# =============================================================================


class LogLevel(str, Enum):
    """
    Logging verbosity levels.

    Levels (from most to least verbose):
        - FULL: Complete trace with detailed stack information
        - DEBUG: Debug messages and above
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
