"""
Stream bridge: one local TCP connection per relay sub-channel.

The relay announces a sub-channel with `tcp_connection`, then relays its
bytes in `tcp_data` frames. Each sub-channel is mapped to its own local
connection to the target port; bytes read locally go back upstream as
`tcp_data` frames carrying the same connection id.
"""

import asyncio
from typing import Awaitable, Callable

from outray.exceptions import ChannelClosedError, LocalConnectionError
from outray.tunnel.protocol import Frame, TCPData, encode_payload
from outray.utils.logger import get_logger

logger = get_logger(__name__)

READ_CHUNK_SIZE = 65536

SendFrame = Callable[[Frame], Awaitable[None]]
ReportError = Callable[[Exception], None]


class StreamBridge:
    """
    Registry of live sub-channels for one control channel.

    Only the session's dispatch point and this bridge's own reader tasks
    touch the registry, all on the same event loop.
    """

    def __init__(self, host: str, port: int, send: SendFrame, report_error: ReportError):
        """
        Initialize stream bridge.

        Args:
            host: Local host to connect to
            port: Local target port
            send: Coroutine sending a frame upstream
            report_error: Error side channel
        """
        self.host = host
        self.port = port
        self._send = send
        self._report_error = report_error
        self._closed = False

        # Map connection_id -> writer of the connected local socket
        self._connections: dict[str, asyncio.StreamWriter] = {}
        # Map connection_id -> data received while the local connect is in progress
        self._connecting: dict[str, list[bytes]] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections or connection_id in self._connecting

    def __len__(self) -> int:
        return len(self._connections) + len(self._connecting)

    def open(self, connection_id: str) -> None:
        """Start a local connection for a new sub-channel."""
        if self._closed:
            return
        if connection_id in self:
            logger.warning(
                f"[Stream {connection_id}] Duplicate tcp_connection for live id, ignoring"
            )
            return

        logger.debug(
            f"[Stream {connection_id}] Opening local connection to {self.host}:{self.port}"
        )
        self._connecting[connection_id] = []
        self._tasks[connection_id] = asyncio.create_task(self._run(connection_id))

    def write(self, connection_id: str, data: bytes) -> None:
        """
        Deliver relay data to a sub-channel's local socket.

        Unknown ids are ignored: the local side may already have closed.
        """
        pending = self._connecting.get(connection_id)
        if pending is not None:
            pending.append(data)
            return

        writer = self._connections.get(connection_id)
        if writer is None or writer.is_closing():
            return
        writer.write(data)

    def close_all(self) -> None:
        """Force-close every local socket and stop opening new ones."""
        self._closed = True
        for writer in self._connections.values():
            writer.transport.abort()
        for task in self._tasks.values():
            task.cancel()
        self._connections.clear()
        self._connecting.clear()
        self._tasks.clear()

    async def _run(self, connection_id: str) -> None:
        try:
            reader, writer = await asyncio.open_connection(self.host, self.port)
        except OSError as e:
            self._connecting.pop(connection_id, None)
            self._tasks.pop(connection_id, None)
            logger.warning(f"[Stream {connection_id}] Local connect failed: {e}")
            self._report_error(
                LocalConnectionError(
                    f"Failed to connect to {self.host}:{self.port}: {e}", connection_id
                )
            )
            return

        buffered = self._connecting.pop(connection_id, None)
        if self._closed or buffered is None:
            writer.transport.abort()
            return

        self._connections[connection_id] = writer
        for chunk in buffered:
            writer.write(chunk)
        logger.info(f"[Stream {connection_id}] Connected to {self.host}:{self.port}")

        try:
            await self._pump(connection_id, reader)
        except OSError as e:
            logger.warning(f"[Stream {connection_id}] Local socket error: {e}")
            self._report_error(LocalConnectionError(str(e), connection_id))
            writer.transport.abort()
        finally:
            if self._connections.get(connection_id) is writer:
                del self._connections[connection_id]
            self._tasks.pop(connection_id, None)
            writer.close()

    async def _pump(self, connection_id: str, reader: asyncio.StreamReader) -> None:
        """Read local data and frame it upstream until EOF."""
        while True:
            data = await reader.read(READ_CHUNK_SIZE)
            if not data:
                logger.debug(f"[Stream {connection_id}] Local closed (EOF)")
                return
            frame = TCPData(connection_id=connection_id, data=encode_payload(data))
            try:
                await self._send(frame)
            except ChannelClosedError:
                logger.debug(f"[Stream {connection_id}] Channel gone, dropping local data")
                return
