"""Newline-delimited JSON messages exchanged over the local socket."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict

RequestType = Literal["user_input", "status", "create_session"]
ResponseType = Literal[
    "chunk",
    "tool_call",
    "done",
    "error",
    "status",
    "session_created",
    "processing_status",
]

MAX_LINE_BYTES = 1024 * 1024


class Request(BaseModel):
    # ``type`` stays a plain string so unknown types reach the dispatcher
    model_config = ConfigDict(extra="ignore")

    type: str
    sessionId: Optional[str] = None
    text: Optional[str] = None


class Response(BaseModel):
    type: ResponseType
    text: Optional[str] = None
    name: Optional[str] = None
    input: Optional[Any] = None
    sessionId: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None
    processingStatus: Optional[str] = None
    tool: Optional[str] = None


def encode(message: BaseModel) -> bytes:
    return (message.model_dump_json(exclude_none=True) + "\n").encode("utf-8")


def decode_response(line: str) -> Response:
    return Response.model_validate_json(line)


class LineBuffer:
    """Accumulates stream bytes and yields complete, non-blank lines.

    A partial line longer than ``max_pending`` is dropped along with the rest
    of that line once its newline arrives; ``overflowed`` reports it for the
    last ``feed`` call.
    """

    def __init__(self, max_pending: Optional[int] = None) -> None:
        self.max_pending = max_pending or MAX_LINE_BYTES
        self.overflowed = False
        self._pending = b""
        self._discarding = False

    def feed(self, data: bytes) -> list[str]:
        self.overflowed = False
        *complete, pending = (self._pending + data).split(b"\n")
        if self._discarding and complete:
            complete.pop(0)
            self._discarding = False
        if len(pending) > self.max_pending:
            self.overflowed = not self._discarding
            self._discarding = True
            pending = b""
        self._pending = pending
        return [
            line.decode("utf-8", errors="replace")
            for line in complete
            if line.strip()
        ]

    @property
    def pending(self) -> bytes:
        return self._pending
