"""
HTTP bridge: answer relayed HTTP requests.

Requests are answered, in priority order, by the user's handler, by
proxying to the local HTTP service, or with a fixed 501. Exactly one
`response` frame is sent per request id, except when the user's handler
raises: that failure goes to the error callback and no frame is sent.
"""

import asyncio
from typing import Awaitable, Callable

import httpx

from outray.client.config import ClientConfig
from outray.exceptions import ChannelClosedError
from outray.models.messages import IncomingRequest, IncomingResponse
from outray.tunnel.protocol import Frame, ResponseFrame
from outray.utils.logger import format_traceback, get_logger

logger = get_logger(__name__)

SendFrame = Callable[[Frame], Awaitable[None]]
ReportError = Callable[[Exception], None]

# Headers that describe one hop's framing and must not be copied across the proxy
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "content-length",
        "transfer-encoding",
        "upgrade",
    }
)
# httpx decodes compressed bodies, so the original encoding no longer applies
RESPONSE_DROP_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding"}


# =============================================================================
# Responders
# =============================================================================


class HandlerResponder:
    """Answer requests with the user-supplied handler."""

    def __init__(self, handler):
        self.handler = handler

    async def __call__(self, request: IncomingRequest) -> IncomingResponse:
        result = await self.handler.on_request(request)
        if isinstance(result, IncomingResponse):
            return result
        # Allow handlers to return a plain mapping
        return IncomingResponse.model_validate(result)

    async def aclose(self) -> None:
        pass


class LocalProxy:
    """Forward requests to the local HTTP service with httpx."""

    def __init__(self, config: ClientConfig):
        self.config = config
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # Redirects go back to the caller untouched
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.proxy_timeout),
                follow_redirects=False,
            )
        return self._client

    async def __call__(self, request: IncomingRequest) -> IncomingResponse:
        url = self.config.get_local_url(request.path)
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS
        }

        try:
            resp = await self._get_client().request(
                request.method,
                url,
                headers=headers,
                content=request.body,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"[HTTP {request.id}] Local service timed out: {e!r}")
            return IncomingResponse(status_code=504, body="Proxy Timeout")
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.warning(f"[HTTP {request.id}] Local service unreachable: {e!r}")
            return IncomingResponse(status_code=502, body=f"Proxy Error: {e}")

        # One value per header name; repeated headers keep the first value
        response_headers = {}
        for name in resp.headers.keys():
            if name.lower() in RESPONSE_DROP_HEADERS:
                continue
            response_headers[name] = resp.headers.get_list(name)[0]

        # Upstream statuses pass through as-is, even outside 100..599
        return IncomingResponse.model_construct(
            status_code=resp.status_code,
            headers=response_headers,
            body=resp.content,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class NotImplementedResponder:
    """Fixed answer when there is neither a handler nor a local HTTP target."""

    async def __call__(self, request: IncomingRequest) -> IncomingResponse:
        return IncomingResponse(status_code=501, body="Not implemented")

    async def aclose(self) -> None:
        pass


def select_responder(config: ClientConfig, handler):
    """Pick how requests are answered for this configuration."""
    if handler.handles_requests:
        return HandlerResponder(handler)
    if config.proxies_http:
        return LocalProxy(config)
    return NotImplementedResponder()


# =============================================================================
# HTTP Bridge
# =============================================================================


class HttpBridge:
    """In-flight HTTP requests for one control channel."""

    def __init__(
        self,
        config: ClientConfig,
        handler,
        send: SendFrame,
        report_error: ReportError,
    ):
        """
        Initialize HTTP bridge.

        Args:
            config: Client configuration
            handler: Tunnel handler (user handler takes priority)
            send: Coroutine sending a frame upstream
            report_error: Error side channel
        """
        self.responder = select_responder(config, handler)
        self._send = send
        self._report_error = report_error
        self._closed = False
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def handle(self, request: IncomingRequest) -> None:
        """Start answering a relayed request."""
        if self._closed:
            return
        logger.info(f"[HTTP {request.id}] {request.method} {request.path}")
        task = asyncio.create_task(self._serve(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def close_all(self) -> None:
        """Abandon in-flight requests without waiting for them."""
        self._closed = True
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

    async def aclose(self) -> None:
        """Release the responder's resources (the local HTTP client)."""
        self.close_all()
        await self.responder.aclose()

    async def _serve(self, request: IncomingRequest) -> None:
        try:
            response = await self.responder(request)
        except Exception as e:
            logger.error(f"[HTTP {request.id}] Error handling request: {e}")
            logger.debug(f"[HTTP {request.id}] Traceback:\n{format_traceback(e)}")
            self._report_error(e)
            return

        frame = ResponseFrame(
            request_id=request.id,
            status_code=response.status_code,
            headers=response.headers,
            body=response.body_text(),
        )
        try:
            await self._send(frame)
        except ChannelClosedError as e:
            logger.warning(f"[HTTP {request.id}] Could not send response: {e}")
            self._report_error(e)
