"""
Tunnel session over a single control channel.

A Session owns one WebSocket connection to the relay for its whole life:
it sends the `open_tunnel` handshake as soon as the channel opens, then
dispatches every inbound frame to the stream, datagram or HTTP bridge.
Frames are consumed strictly in arrival order; any I/O a frame triggers
runs in its own task so the receive loop never blocks on local services.

A new Session (and a new channel) is created for every reconnect.
"""

import asyncio
from typing import Callable

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    ConnectionClosedOK,
    WebSocketException,
)

from outray.client.config import ClientConfig
from outray.client.datagram_bridge import DatagramBridge
from outray.client.http_bridge import HttpBridge
from outray.client.stream_bridge import StreamBridge
from outray.exceptions import (
    ChannelClosedError,
    ProtocolError,
    TunnelConnectionError,
    TunnelServerError,
)
from outray.models.messages import IncomingRequest
from outray.tunnel.protocol import (
    ErrorFrame,
    Frame,
    OpenTunnel,
    RequestFrame,
    TCPConnection,
    TCPData,
    TunnelOpened,
    UDPData,
    build_message,
    decode_payload,
    parse_message,
)
from outray.utils.logger import get_logger

logger = get_logger(__name__)


class Session:
    """
    One control channel and the bridge state bound to it.

    Handles multiplexing of HTTP requests, TCP sub-channels and UDP
    exchanges over one WebSocket.
    """

    def __init__(
        self,
        config: ClientConfig,
        handler,
        on_connected: Callable[[], None] | None = None,
    ):
        """
        Initialize session.

        Args:
            config: Client configuration
            handler: Tunnel handler whose on_open/on_error never raise
            on_connected: Called once the channel is open and the handshake sent
        """
        self.config = config
        self.handler = handler
        self._on_connected = on_connected

        self.ws = None
        self.url: str | None = None
        self.opened = False
        self._closed = False
        self._close_task: asyncio.Task | None = None

        host, port = config.local_host, config.port
        self.streams = StreamBridge(host, port, self.send, handler.on_error)
        self.datagrams = DatagramBridge(
            host, port, self.send, handler.on_error, timeout=config.udp_timeout
        )
        self.http = HttpBridge(config, handler, self.send, handler.on_error)

    @property
    def is_closed(self) -> bool:
        return self._closed

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run(self) -> None:
        """
        Open the channel, handshake, and process frames until it closes.

        Returns normally when the channel closes cleanly (including after
        close()).

        Raises:
            TunnelConnectionError: The channel could not be opened or
                closed abnormally
        """
        if self._closed:
            return

        url = self.config.server_url
        logger.debug(f"[Session] Connecting to {url}")
        try:
            ws = await websockets.connect(
                url,
                compression=None,
                ping_interval=self.config.ping_interval,
                ping_timeout=self.config.ping_timeout,
                open_timeout=self.config.open_timeout,
                max_size=self.config.max_message_size,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TunnelConnectionError(f"Failed to connect to {url}: {e}") from e

        self.ws = ws
        try:
            if self._closed:
                return
            await self._handshake(ws)
            logger.info(
                f"[Session] Connected to {url} "
                f"(protocol={self.config.protocol.value}, port={self.config.port})"
            )
            if self._on_connected is not None:
                self._on_connected()

            async for message in ws:
                self._dispatch(message)

            logger.info(f"[Session] Channel closed ({ws.close_code})")
        except ConnectionClosedOK:
            logger.info("[Session] Channel closed during handshake")
        except ConnectionClosedError as e:
            raise TunnelConnectionError(f"Connection lost: {e}") from e
        finally:
            self.ws = None
            await self._teardown(ws)

    def close(self) -> None:
        """
        Stop accepting work and release every resource handle.

        In-flight local calls are abandoned, not awaited. The channel's
        close handshake runs in the background; run() returns once it
        completes.
        """
        if self._closed:
            return
        self._closed = True
        self._close_bridges()

        ws = self.ws
        if ws is not None:
            self._close_task = asyncio.get_running_loop().create_task(ws.close())

    async def _teardown(self, ws) -> None:
        self._close_bridges()
        await self.http.aclose()
        await ws.close()

    def _close_bridges(self) -> None:
        self.streams.close_all()
        self.datagrams.close_all()
        self.http.close_all()

    # =========================================================================
    # Outbound
    # =========================================================================

    async def _handshake(self, ws) -> None:
        handshake = OpenTunnel(
            api_key=self.config.api_key,
            protocol=self.config.protocol.value,
            remote_port=self.config.remote_port,
        )
        await ws.send(build_message(handshake))

    async def send(self, frame: Frame) -> None:
        """
        Send a frame on the current channel.

        Raises:
            ChannelClosedError: No open channel, or the session was closed
        """
        ws = self.ws
        if ws is None or self._closed:
            raise ChannelClosedError()
        try:
            await ws.send(build_message(frame))
        except ConnectionClosed as e:
            raise ChannelClosedError(f"Channel closed: {e}") from e

    # =========================================================================
    # Inbound
    # =========================================================================

    def _dispatch(self, message: str | bytes) -> None:
        """Route one inbound frame. Malformed frames are logged and dropped."""
        if self._closed:
            return

        try:
            frame = parse_message(message)
            if isinstance(frame, TunnelOpened):
                self._on_tunnel_opened(frame)
            elif isinstance(frame, ErrorFrame):
                logger.error(f"[Session] Relay error: {frame.message}")
                self.handler.on_error(TunnelServerError(frame.message))
            elif isinstance(frame, TCPConnection):
                self.streams.open(frame.connection_id)
            elif isinstance(frame, TCPData):
                self.streams.write(frame.connection_id, decode_payload(frame.data))
            elif isinstance(frame, UDPData):
                self.datagrams.handle(frame.packet_id, decode_payload(frame.data))
            elif isinstance(frame, RequestFrame):
                self.http.handle(
                    IncomingRequest(
                        id=frame.request_id,
                        method=frame.method,
                        path=frame.path,
                        headers=frame.headers,
                        body=frame.body.encode("utf-8") if frame.body else None,
                    )
                )
        except ProtocolError as e:
            logger.warning(f"[Session] Dropping malformed frame: {e}")

    def _on_tunnel_opened(self, frame: TunnelOpened) -> None:
        self.url = frame.url
        self.opened = True
        logger.info(f"[Session] Tunnel opened: {frame.url}")
        self.handler.on_open(frame.url)
