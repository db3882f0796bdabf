"""
Control channel protocol.

This module provides the frame models and codec used to multiplex HTTP,
TCP and UDP traffic over a single WebSocket connection to the relay.
"""

from outray.tunnel.protocol import (
    INBOUND_FRAMES,
    ErrorFrame,
    Frame,
    MessageType,
    OpenTunnel,
    RequestFrame,
    ResponseFrame,
    TCPConnection,
    TCPData,
    TunnelOpened,
    UDPData,
    UDPResponse,
    build_message,
    decode_payload,
    encode_payload,
    parse_message,
)

__all__ = [
    "INBOUND_FRAMES",
    "MessageType",
    "Frame",
    "OpenTunnel",
    "TunnelOpened",
    "ErrorFrame",
    "RequestFrame",
    "ResponseFrame",
    "TCPConnection",
    "TCPData",
    "UDPData",
    "UDPResponse",
    "build_message",
    "parse_message",
    "encode_payload",
    "decode_payload",
]
