"""CLI-side client for the daemon's Unix socket."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from camille import paths
from camille.adapters.protocol import LineBuffer, Request, Response, decode_response, encode
from camille.log import get_logger

logger = get_logger(__name__)


class IPCError(RuntimeError):
    """The daemon answered a request with an ``error`` message."""


class IPCClient:
    def __init__(self, socket_path: str | Path | None = None):
        self._socket_path = Path(socket_path) if socket_path else paths.socket()
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._buffer = LineBuffer()
        self._pending: list[Response] = []
        self.session_id: Optional[str] = None

    async def connect(self) -> None:
        try:
            self._reader, self._writer = await asyncio.open_unix_connection(
                str(self._socket_path)
            )
        except OSError as e:
            raise ConnectionError(f"Failed to connect: {e}") from e

    async def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except ConnectionError:
                pass
            self._writer = None
            self._reader = None

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def __aenter__(self) -> IPCClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _send(self, request: Request) -> None:
        if self._writer is None:
            raise ConnectionError("Not connected")
        self._writer.write(encode(request))
        await self._writer.drain()

    async def _receive(self) -> Response:
        if self._reader is None:
            raise ConnectionError("Not connected")
        while not self._pending:
            data = await self._reader.read(65536)
            if not data:
                raise ConnectionError("Connection closed by daemon")
            for line in self._buffer.feed(data):
                try:
                    self._pending.append(decode_response(line))
                except ValidationError:
                    logger.debug("ipc_response_unparseable", line=line[:200])
        return self._pending.pop(0)

    async def create_session(self) -> str:
        await self._send(Request(type="create_session"))
        while True:
            response = await self._receive()
            if response.type == "session_created" and response.sessionId:
                self.session_id = response.sessionId
                return response.sessionId
            if response.type == "error":
                raise IPCError(response.error or "Unknown error")

    async def get_status(self) -> str:
        await self._send(Request(type="status"))
        while True:
            response = await self._receive()
            if response.type == "status":
                return response.status or "unknown"
            if response.type == "error":
                raise IPCError(response.error or "Unknown error")

    async def send_message(
        self,
        text: str,
        on_chunk: Optional[Callable[[str], None]] = None,
        on_status: Optional[Callable[[Response], None]] = None,
    ) -> str:
        """Send user input and return the full reply once ``done`` arrives."""
        await self._send(Request(type="user_input", sessionId=self.session_id, text=text))
        parts: list[str] = []
        while True:
            response = await self._receive()
            if response.type == "chunk" and response.text:
                parts.append(response.text)
                if on_chunk is not None:
                    on_chunk(response.text)
            elif response.type == "processing_status" and on_status is not None:
                on_status(response)
            elif response.type == "done":
                return "".join(parts)
            elif response.type == "error":
                raise IPCError(response.error or "Unknown error")
