"""
Tunnel client with automatic reconnection.

The Client supervises Sessions: it runs one at a time, reconnects
immediately after a clean close, and backs off exponentially after
failures. Nothing but close() stops the loop, and no transport failure is
raised to the caller of connect(); failures go to the handler's on_error.

Example:
    client = Client.create(
        api_key="...",
        port=3000,
        on_open=lambda url: print(f"Tunnel is live: {url}"),
    )
    await client.connect()
"""

import asyncio

from outray.client.backoff import Backoff
from outray.client.config import ClientConfig
from outray.client.handlers import (
    CallbackHandler,
    ErrorCallback,
    OpenCallback,
    RequestCallback,
    SafeHandler,
    TunnelHandler,
)
from outray.client.session import Session
from outray.models.enums import ConnectionState
from outray.utils.logger import get_logger

logger = get_logger(__name__)


class Client:
    """Tunnel client connecting to the relay and forwarding to local services."""

    def __init__(self, config: ClientConfig, handler: TunnelHandler | None = None):
        """
        Initialize client.

        Args:
            config: Client configuration
            handler: Event handler; the default logs events and proxies
                HTTP requests to the local port
        """
        self.config = config
        self.handler = SafeHandler(handler or TunnelHandler())
        self.backoff = Backoff(config.backoff_initial, config.backoff_max)

        self._last_url: str | None = None
        self._state = ConnectionState.IDLE
        self._closed = False
        self._session: Session | None = None
        self._wakeup: asyncio.Event | None = None

    @classmethod
    def create(
        cls,
        api_key: str,
        port: int,
        *,
        on_open: OpenCallback | None = None,
        on_request: RequestCallback | None = None,
        on_error: ErrorCallback | None = None,
        **options,
    ) -> "Client":
        """
        Build a client from callbacks and config fields.

        Args:
            api_key: Relay credential
            port: Local port to tunnel to
            on_open: Called with the public URL once the tunnel is open
            on_request: Answers HTTP requests instead of the local proxy
            on_error: Called for every recoverable failure
            **options: Any other ClientConfig field
        """
        config = ClientConfig(api_key=api_key, port=port, **options)
        handler = CallbackHandler(on_open=on_open, on_request=on_request, on_error=on_error)
        return cls(config, handler)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def url(self) -> str | None:
        """Public URL of the live tunnel, or the last one assigned."""
        if self._session is not None and self._session.url:
            return self._session.url
        return self._last_url

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def session(self) -> Session | None:
        """The live session, if any."""
        return self._session

    def _set_state(self, state: ConnectionState) -> None:
        if self._state != state:
            logger.debug(f"[Client] State {self._state.value} -> {state.value}")
            self._state = state

    # =========================================================================
    # Supervisor Loop
    # =========================================================================

    async def connect(self) -> None:
        """
        Connect to the relay and keep reconnecting until close() is called.

        Returns once the client is closed.
        """
        while not self._closed:
            self._set_state(ConnectionState.CONNECTING)
            session = Session(self.config, self.handler, on_connected=self._on_connected)
            self._session = session

            try:
                await session.run()
            except Exception as e:
                if self._closed:
                    break
                delay = self.backoff.next_delay()
                logger.warning(f"Connection error: {e}. Retrying in {delay:.1f}s...")
                self.handler.on_error(e)
                self._set_state(ConnectionState.BACKOFF)
                await self._sleep(delay)
            else:
                self.backoff.reset()
                if not self._closed:
                    logger.info("[Client] Channel closed, reconnecting")
            finally:
                if session.url:
                    self._last_url = session.url
                self._session = None

        self._set_state(ConnectionState.CLOSED)

    def _on_connected(self) -> None:
        self.backoff.reset()
        self._set_state(ConnectionState.OPEN)

    async def _sleep(self, delay: float) -> None:
        """Wait out a backoff delay; close() cuts it short."""
        self._wakeup = asyncio.Event()
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
        finally:
            self._wakeup = None

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def close(self) -> None:
        """
        Close the client.

        Stops reconnecting, closes the current channel and force-closes all
        local sockets. Does not wait for in-flight local calls.
        """
        if self._closed:
            return
        self._closed = True
        self._set_state(ConnectionState.CLOSED)
        logger.info("[Client] Closing")

        if self._session is not None:
            self._session.close()
        if self._wakeup is not None:
            self._wakeup.set()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
