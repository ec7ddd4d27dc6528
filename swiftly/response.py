"""
Swiftly: Response Envelope & Builder
=====================================

What:  The canonical `{code, message, data, detail, timestamp}` envelope and
       the mutable per-request response builder.
How:   `make_response()` fills the message from the code registry.
       `ResponseBuilder` accumulates status, headers and body for one request
       and is finalized into exactly one Starlette `Response`.
Who:   Handlers return envelopes; plugins write to `ctx.response` directly
       (e.g. CORS preflight) and set `sent` to short-circuit the pipeline.

Wire shape:
    {
        "code": 0,
        "message": "Operation successful",
        "data": {...},
        "detail": null,
        "timestamp": "2024-01-15T12:00:00.000Z"
    }
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from starlette.datastructures import MutableHeaders
from starlette.responses import Response

from swiftly.codes import Code, CodeRegistry, default_registry


def utc_timestamp() -> str:
    """ISO 8601 UTC timestamp with millisecond precision and a `Z` suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class Envelope(BaseModel):
    """
    Canonical response object.

    Invariant: `code == 0` means success; every other code is an error whose
    HTTP status comes from the code registry.
    """

    code: int = Field(description="Response code (0 = success)")
    message: str = Field(description="Human-readable message")
    data: Any = Field(default=None, description="Payload on success")
    detail: Any = Field(default=None, description="Error detail (e.g. field errors)")
    timestamp: str = Field(default_factory=utc_timestamp, description="UTC ISO 8601")

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return self.code == Code.SUCCESS


def make_response(
    code: int = Code.SUCCESS,
    message: Optional[str] = None,
    data: Any = None,
    detail: Any = None,
    registry: Optional[CodeRegistry] = None,
) -> Envelope:
    """
    Build an envelope; `message` defaults to the registry entry for `code`.

    Unknown codes get "Unknown error" (and HTTP 500 when sent).
    """
    registry = registry or default_registry
    return Envelope(
        code=int(code),
        message=message or registry.message(int(code)),
        data=data,
        detail=detail,
    )


def make_error(
    code: int,
    message: Optional[str] = None,
    detail: Any = None,
    registry: Optional[CodeRegistry] = None,
) -> Envelope:
    """Same as make_response() with `data` fixed to None."""
    return make_response(code, message, None, detail, registry)


def is_envelope_like(value: Any) -> bool:
    """A dict that already carries an integer response code."""
    return (
        isinstance(value, dict)
        and isinstance(value.get("code"), int)
        and not isinstance(value.get("code"), bool)
    )


class ResponseBuilder:
    """
    Mutable outgoing response for a single request.

    Attributes:
        status_code:  HTTP status (default 200)
        headers:      Starlette MutableHeaders
        body:         bytes / str, or None for an empty body
        media_type:   Content-Type applied on finalize (if not already set)
        sent:         True once a plugin or the dispatcher has committed a
                      response; the pipeline stops at the first plugin that
                      sets it
    """

    def __init__(self, registry: Optional[CodeRegistry] = None):
        self.status_code: int = 200
        self.headers = MutableHeaders()
        self.body: Any = None
        self.media_type: Optional[str] = None
        self.sent: bool = False
        self.envelope: Optional[Envelope] = None
        self._registry = registry or default_registry

    # ── Body writers ──────────────────────────────────────────────────────

    def json(self, data: Any, status: Optional[int] = None) -> "ResponseBuilder":
        if status is not None:
            self.status_code = status
        self.media_type = "application/json"
        self.body = json.dumps(
            jsonable_encoder(data), ensure_ascii=False, separators=(",", ":")
        ).encode("utf-8")
        return self

    def text(self, data: str, status: Optional[int] = None) -> "ResponseBuilder":
        if status is not None:
            self.status_code = status
        self.media_type = "text/plain; charset=utf-8"
        self.body = data
        return self

    def html(self, data: str, status: Optional[int] = None) -> "ResponseBuilder":
        if status is not None:
            self.status_code = status
        self.media_type = "text/html; charset=utf-8"
        self.body = data
        return self

    def write_envelope(
        self,
        envelope: Envelope,
        headers: Optional[Dict[str, str]] = None,
    ) -> "ResponseBuilder":
        """Serialize an envelope; HTTP status derives from its code."""
        self.envelope = envelope
        for key, value in (headers or {}).items():
            self.headers[key] = value
        return self.json(
            envelope.model_dump(mode="json"),
            status=self._registry.status(envelope.code),
        )

    def write_raw_envelope(self, payload: Dict[str, Any]) -> "ResponseBuilder":
        """Pass a handler-built envelope dict through unchanged."""
        return self.json(payload, status=self._registry.status(payload["code"]))

    def send(self, envelope: Optional[Envelope] = None, **headers: str) -> "ResponseBuilder":
        """Write (optionally) an envelope and mark the response as sent."""
        if envelope is not None:
            self.write_envelope(envelope, headers)
        self.sent = True
        return self

    # ── Finalization ──────────────────────────────────────────────────────

    def finalize(self) -> Response:
        """Build the one Starlette Response for this request."""
        self.sent = True
        body = b"" if self.body is None else self.body
        response = Response(
            content=body,
            status_code=self.status_code,
            media_type=self.media_type if "content-type" not in self.headers else None,
        )
        for key, value in self.headers.items():
            response.headers.append(key, value)
        return response
