"""
Tunnel client configuration.

A ClientConfig is immutable for the lifetime of a client; reconnects reuse
the same instance.
"""

import os
from dataclasses import dataclass, fields

from outray.exceptions import ConfigError
from outray.models.enums import TunnelProtocol

DEFAULT_SERVER_URL = "wss://api.outray.dev"

# Environment variables read by ClientConfig.from_env()
ENV_PREFIX = "OUTRAY_"
_ENV_FIELDS = {
    "server_url": str,
    "api_key": str,
    "protocol": str,
    "port": int,
    "remote_port": int,
}


@dataclass(frozen=True)
class ClientConfig:
    """Tunnel client configuration."""

    api_key: str
    port: int
    protocol: TunnelProtocol = TunnelProtocol.HTTP
    server_url: str = DEFAULT_SERVER_URL
    # 0 lets the relay assign one (TCP/UDP); unused for HTTP tunnels
    remote_port: int = 0
    local_host: str = "localhost"
    # Largest inbound control frame in bytes; None disables the limit
    max_message_size: int | None = 100 * 1024 * 1024

    # Timing Configuration (seconds)
    ping_interval: float = 9.0
    ping_timeout: float = 20.0
    open_timeout: float = 10.0
    proxy_timeout: float = 30.0
    udp_timeout: float = 5.0

    # Reconnect Configuration (seconds)
    backoff_initial: float = 1.0
    backoff_max: float = 30.0

    def __post_init__(self):
        try:
            object.__setattr__(self, "protocol", TunnelProtocol(self.protocol))
        except ValueError:
            raise ConfigError(
                f"Invalid protocol: {self.protocol!r}. Use 'http', 'tcp' or 'udp'."
            ) from None

        if not self.api_key:
            raise ConfigError("API key is required")
        if not self.server_url.startswith(("ws://", "wss://")):
            raise ConfigError(
                f"Server URL must start with ws:// or wss://: {self.server_url}"
            )
        for name in ("port", "remote_port"):
            value = getattr(self, name)
            if not 0 <= value <= 65535:
                raise ConfigError(f"{name} out of range: {value}")
        for name in (
            "ping_interval",
            "ping_timeout",
            "open_timeout",
            "proxy_timeout",
            "udp_timeout",
            "backoff_initial",
        ):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.backoff_max < self.backoff_initial:
            raise ConfigError("backoff_max must be >= backoff_initial")

    @property
    def proxies_http(self) -> bool:
        """Whether requests without a handler go to the local HTTP service."""
        return self.port > 0 and self.protocol == TunnelProtocol.HTTP

    def get_local_url(self, path: str) -> str:
        """Get the local service URL for a proxied request path."""
        if not path.startswith("/"):
            path = "/" + path
        return f"http://{self.local_host}:{self.port}{path}"

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        """
        Build a config from OUTRAY_* environment variables.

        Args:
            **overrides: Field values that take precedence over the
                environment. None values are ignored.

        Raises:
            ConfigError: Missing or invalid values
        """
        values = {}
        for name, cast in _ENV_FIELDS.items():
            raw = os.environ.get(ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                continue
            try:
                values[name] = cast(raw)
            except ValueError:
                raise ConfigError(
                    f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}"
                ) from None

        known = {f.name for f in fields(cls)}
        for name, value in overrides.items():
            if name not in known:
                raise ConfigError(f"Unknown config field: {name}")
            if value is not None:
                values[name] = value

        for required in ("api_key", "port"):
            if required not in values:
                raise ConfigError(
                    f"Missing {required} (set {ENV_PREFIX}{required.upper()})"
                )
        return cls(**values)
