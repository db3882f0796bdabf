"""
Datagram bridge: one-shot local UDP exchange per relayed packet.

Each `udp_data` frame opens its own UDP socket to the target port, sends
the payload, and waits for a single reply. The first reply is framed as
`udp_response`; a timeout or socket error ends the exchange without a
frame. The socket is closed exactly once either way.
"""

import asyncio
import socket
from typing import Awaitable, Callable

from outray.exceptions import ChannelClosedError, LocalConnectionError
from outray.tunnel.protocol import Frame, UDPResponse, encode_payload
from outray.utils.logger import get_logger

logger = get_logger(__name__)

SendFrame = Callable[[Frame], Awaitable[None]]
ReportError = Callable[[Exception], None]


class _ExchangeProtocol(asyncio.DatagramProtocol):
    """Resolve a future with the first datagram or socket error."""

    def __init__(self, response: asyncio.Future):
        self.response = response

    def datagram_received(self, data: bytes, addr) -> None:
        if not self.response.done():
            self.response.set_result(data)

    def error_received(self, exc: Exception) -> None:
        if not self.response.done():
            self.response.set_exception(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if not self.response.done():
            self.response.set_exception(exc or ConnectionError("Datagram socket closed"))


class DatagramBridge:
    """Pending datagram exchanges for one control channel."""

    def __init__(
        self,
        host: str,
        port: int,
        send: SendFrame,
        report_error: ReportError,
        timeout: float = 5.0,
    ):
        """
        Initialize datagram bridge.

        Args:
            host: Local host to send datagrams to
            port: Local target port
            send: Coroutine sending a frame upstream
            report_error: Error side channel
            timeout: Seconds to wait for the local reply
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self._send = send
        self._report_error = report_error
        self._closed = False

        # Map packet_id -> exchange task
        self._pending: dict[str, asyncio.Task] = {}
        self._transports: dict[str, asyncio.DatagramTransport] = {}

    def __contains__(self, packet_id: str) -> bool:
        return packet_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def handle(self, packet_id: str, payload: bytes) -> None:
        """Start a local exchange for an inbound packet."""
        if self._closed:
            return
        if packet_id in self._pending:
            logger.warning(f"[UDP {packet_id}] Duplicate packet id while pending, ignoring")
            return
        self._pending[packet_id] = asyncio.create_task(
            self._exchange(packet_id, payload)
        )

    def close_all(self) -> None:
        """Abandon every pending exchange and release its socket."""
        self._closed = True
        for task in self._pending.values():
            task.cancel()
        for transport in self._transports.values():
            transport.close()
        self._pending.clear()
        self._transports.clear()

    async def _exchange(self, packet_id: str, payload: bytes) -> None:
        loop = asyncio.get_running_loop()
        response = loop.create_future()

        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _ExchangeProtocol(response),
                remote_addr=(self.host, self.port),
                # IPv4 only; a connected socket would otherwise pin ::1 for localhost
                family=socket.AF_INET,
            )
        except OSError as e:
            self._pending.pop(packet_id, None)
            logger.warning(f"[UDP {packet_id}] Failed to open socket: {e}")
            self._report_error(LocalConnectionError(f"UDP socket error: {e}", packet_id))
            return

        if self._closed:
            transport.close()
            return
        self._transports[packet_id] = transport

        try:
            transport.sendto(payload)
            data = await asyncio.wait_for(response, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.debug(f"[UDP {packet_id}] No response within {self.timeout}s")
            return
        except OSError as e:
            logger.warning(f"[UDP {packet_id}] Socket error: {e}")
            self._report_error(LocalConnectionError(f"UDP socket error: {e}", packet_id))
            return
        finally:
            transport.close()
            self._transports.pop(packet_id, None)
            self._pending.pop(packet_id, None)

        try:
            await self._send(
                UDPResponse(packet_id=packet_id, data=encode_payload(data))
            )
        except ChannelClosedError:
            logger.debug(f"[UDP {packet_id}] Channel gone, dropping response")
