"""
Tunnel protocol definitions and utilities.

Wire format: every frame is one WebSocket text message holding a JSON
object with a `type` discriminator. Field names are camelCase on the wire
and snake_case in Python; binary payloads are base64 strings.

    Client → Relay: open_tunnel, response, tcp_data, udp_response
    Relay → Client: tunnel_opened, error, request, tcp_connection,
                    tcp_data, udp_data
"""

import base64
import binascii
import json
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from outray.exceptions import ProtocolError

# =============================================================================
# Message Types
# =============================================================================


class MessageType:
    """Frame `type` discriminator values."""

    OPEN_TUNNEL = "open_tunnel"  # Client → Relay: handshake
    TUNNEL_OPENED = "tunnel_opened"  # Relay → Client: public URL assigned
    REQUEST = "request"  # Relay → Client: proxied HTTP request
    RESPONSE = "response"  # Client → Relay: HTTP response
    ERROR = "error"  # Relay → Client: error report
    TCP_CONNECTION = "tcp_connection"  # Relay → Client: new stream sub-channel
    TCP_DATA = "tcp_data"  # Bidirectional: stream data
    UDP_DATA = "udp_data"  # Relay → Client: inbound datagram
    UDP_RESPONSE = "udp_response"  # Client → Relay: datagram reply


# =============================================================================
# Frame Models
# =============================================================================


class Frame(BaseModel):
    """Base class for all control channel frames."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    TYPE: ClassVar[str] = ""


class OpenTunnel(Frame):
    """Handshake sent immediately after the channel opens."""

    TYPE: ClassVar[str] = MessageType.OPEN_TUNNEL

    api_key: str
    protocol: str
    remote_port: int = 0


class TunnelOpened(Frame):
    TYPE: ClassVar[str] = MessageType.TUNNEL_OPENED

    url: str


class ErrorFrame(Frame):
    TYPE: ClassVar[str] = MessageType.ERROR

    message: str = "Unknown server error"


class RequestFrame(Frame):
    """Proxied HTTP request. Headers may be omitted or null on the wire."""

    TYPE: ClassVar[str] = MessageType.REQUEST

    request_id: str
    method: str
    path: str
    headers: dict[str, str] = {}
    body: str | None = None

    @field_validator("headers", mode="before")
    @classmethod
    def _null_headers(cls, value):
        return {} if value is None else value


class ResponseFrame(Frame):
    TYPE: ClassVar[str] = MessageType.RESPONSE

    request_id: str
    status_code: int
    headers: dict[str, str] = {}
    body: str = ""


class TCPConnection(Frame):
    TYPE: ClassVar[str] = MessageType.TCP_CONNECTION

    connection_id: str


class TCPData(Frame):
    TYPE: ClassVar[str] = MessageType.TCP_DATA

    connection_id: str
    data: str  # Base64 encoded


class UDPData(Frame):
    TYPE: ClassVar[str] = MessageType.UDP_DATA

    packet_id: str
    data: str  # Base64 encoded
    source_address: str = ""
    source_port: int = 0


class UDPResponse(Frame):
    TYPE: ClassVar[str] = MessageType.UDP_RESPONSE

    packet_id: str
    data: str  # Base64 encoded


INBOUND_FRAMES: dict[str, type[Frame]] = {
    MessageType.TUNNEL_OPENED: TunnelOpened,
    MessageType.ERROR: ErrorFrame,
    MessageType.REQUEST: RequestFrame,
    MessageType.TCP_CONNECTION: TCPConnection,
    MessageType.TCP_DATA: TCPData,
    MessageType.UDP_DATA: UDPData,
}


# =============================================================================
# Encoding
# =============================================================================


def build_message(frame: Frame) -> str:
    """
    Serialize a frame for the control channel.

    Args:
        frame: Any Frame subclass instance

    Returns:
        JSON text with the `type` discriminator and camelCase fields
    """
    payload = {"type": frame.TYPE}
    payload.update(frame.model_dump(by_alias=True))
    return json.dumps(payload)


def parse_message(raw: str | bytes) -> Frame:
    """
    Parse one inbound control channel frame.

    Args:
        raw: Text (or UTF-8 bytes) of a single WebSocket message

    Returns:
        The validated inbound frame

    Raises:
        ProtocolError: Invalid JSON, non-object payload, missing or unknown
            `type`, or fields that fail validation
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Invalid JSON frame: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolError(f"Frame must be a JSON object, got {type(data).__name__}")

    msg_type = data.get("type")
    model = INBOUND_FRAMES.get(msg_type) if isinstance(msg_type, str) else None
    if model is None:
        raise ProtocolError(f"Unknown message type: {msg_type!r}")

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(
            f"Invalid {msg_type} frame: {e.error_count()} validation error(s)"
        ) from e


def encode_payload(data: bytes) -> str:
    """Base64-encode binary payload for a frame."""
    return base64.b64encode(data).decode("ascii")


def decode_payload(data: str) -> bytes:
    """
    Decode a frame's base64 payload.

    Raises:
        ProtocolError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ProtocolError(f"Invalid base64 payload: {e}") from e
