"""
Tunnel event handlers.

A TunnelHandler receives the three events the embedding application cares
about: the tunnel being opened, HTTP requests (when the application wants
to answer them itself instead of proxying), and errors.
"""

import inspect
from typing import Awaitable, Callable

from outray.models.messages import IncomingRequest, IncomingResponse
from outray.utils.logger import format_traceback, get_logger

logger = get_logger(__name__)

OpenCallback = Callable[[str], None]
RequestCallback = Callable[
    [IncomingRequest], IncomingResponse | Awaitable[IncomingResponse]
]
ErrorCallback = Callable[[Exception], None]


class TunnelHandler:
    """
    Base handler with logging defaults.

    Subclasses override any of on_open, on_request and on_error. Overriding
    on_request makes the client answer HTTP requests through it instead of
    proxying them to the local port.
    """

    def on_open(self, url: str) -> None:
        """Called when the relay confirms the tunnel and assigns a public URL."""
        logger.info(f"Tunnel open at {url}")

    async def on_request(self, request: IncomingRequest) -> IncomingResponse:
        """Answer a proxied HTTP request."""
        raise NotImplementedError

    def on_error(self, error: Exception) -> None:
        """Called for every recoverable failure."""
        logger.warning(f"Tunnel error: {error}")

    @property
    def handles_requests(self) -> bool:
        """Whether on_request is implemented."""
        return type(self).on_request is not TunnelHandler.on_request


class CallbackHandler(TunnelHandler):
    """Adapt plain callables to the TunnelHandler interface."""

    def __init__(
        self,
        on_open: OpenCallback | None = None,
        on_request: RequestCallback | None = None,
        on_error: ErrorCallback | None = None,
    ):
        self._on_open = on_open
        self._on_request = on_request
        self._on_error = on_error

    def on_open(self, url: str) -> None:
        if self._on_open is None:
            super().on_open(url)
        else:
            self._on_open(url)

    async def on_request(self, request: IncomingRequest) -> IncomingResponse:
        if self._on_request is None:
            raise NotImplementedError
        result = self._on_request(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    def on_error(self, error: Exception) -> None:
        if self._on_error is None:
            super().on_error(error)
        else:
            self._on_error(error)

    @property
    def handles_requests(self) -> bool:
        return self._on_request is not None


class SafeHandler:
    """
    Wrap a handler so exceptions from on_open/on_error never escape.

    on_request is passed through untouched; its failures are handled by
    the HTTP bridge.
    """

    def __init__(self, handler: TunnelHandler):
        self.handler = handler

    def on_open(self, url: str) -> None:
        try:
            self.handler.on_open(url)
        except Exception as e:
            logger.error(f"Callback error in on_open: {e}")
            logger.debug(f"Traceback:\n{format_traceback(e)}")

    def on_error(self, error: Exception) -> None:
        try:
            self.handler.on_error(error)
        except Exception as e:
            logger.error(f"Callback error in on_error: {e}")
            logger.debug(f"Traceback:\n{format_traceback(e)}")

    async def on_request(self, request: IncomingRequest) -> IncomingResponse:
        return await self.handler.on_request(request)

    @property
    def handles_requests(self) -> bool:
        return self.handler.handles_requests
