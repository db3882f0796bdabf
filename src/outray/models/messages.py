"""
Pydantic models for proxied HTTP traffic.

These are the objects a user-supplied request handler receives and
returns. They are independent of the control channel wire format, which
lives in `outray.tunnel.protocol`.
"""

from pydantic import BaseModel, Field


class IncomingRequest(BaseModel):
    """
    HTTP request forwarded from the public tunnel endpoint.

    The relay sends the body as text; it is exposed here as UTF-8 bytes so
    handlers and the local proxy treat it uniformly.
    """

    id: str = Field(..., description="Relay-assigned request identifier")
    method: str = Field(..., description="HTTP method")
    path: str = Field(..., description="Request path including query string")
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes | None = Field(default=None)


class IncomingResponse(BaseModel):
    """HTTP response to send back through the tunnel."""

    status_code: int = Field(..., ge=100, le=599)
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes | str = Field(default="")

    def body_text(self) -> str:
        """Body as text, the only body encoding the response frame carries."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8", errors="replace")
        return self.body
