"""Tunnel client exception classes."""


class OutrayError(Exception):
    """Base exception for tunnel client operations."""

    pass


class ConfigError(OutrayError):
    """Invalid client configuration."""

    pass


class ProtocolError(OutrayError, ValueError):
    """Malformed or unrecognized control channel frame."""

    pass


class TunnelConnectionError(OutrayError):
    """Control channel could not be opened or closed abnormally."""

    pass


class ChannelClosedError(OutrayError):
    """Attempted to send while no control channel is open."""

    def __init__(self, message: str = "Client is closed"):
        super().__init__(message)


class TunnelServerError(OutrayError):
    """Error reported by the relay in an `error` frame."""

    def __init__(self, message: str):
        self.server_message = message
        super().__init__(message)


class LocalConnectionError(OutrayError):
    """Local socket failure while bridging a sub-channel or datagram."""

    def __init__(self, message: str, channel_id: str):
        self.channel_id = channel_id
        super().__init__(f"[{channel_id}] {message}")
