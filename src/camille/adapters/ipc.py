"""Unix-socket adapter serving the local CLI."""

from __future__ import annotations

import asyncio
from pathlib import Path

from pydantic import ValidationError

from camille import paths
from camille.adapters.base import Adapter
from camille.adapters.protocol import LineBuffer, Request, Response, encode
from camille.ai.models import OrchestratorStatus, ProcessingStatus
from camille.ai.orchestrator import Orchestrator
from camille.core.crypto import generate_session_id
from camille.core.types import ClientType
from camille.log import get_logger

logger = get_logger(__name__)

READ_CHUNK_SIZE = 65536


class _Connection:
    """One client connection; requests are handled strictly in arrival order."""

    def __init__(
        self,
        adapter: IPCAdapter,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ):
        self._adapter = adapter
        self._reader = reader
        self._writer = writer
        self._buffer = LineBuffer()
        self._gone = False
        self.session_id = generate_session_id()

    async def send(self, response: Response) -> None:
        """Write one message; a vanished client never interrupts the request."""
        if self._gone or self._writer.is_closing():
            return
        try:
            self._writer.write(encode(response))
            await self._writer.drain()
        except ConnectionError as e:
            self._gone = True
            logger.debug("ipc_client_gone", session_id=self.session_id, error=str(e))

    async def serve(self) -> None:
        while True:
            data = await self._reader.read(READ_CHUNK_SIZE)
            if not data:
                return
            for line in self._buffer.feed(data):
                try:
                    request = Request.model_validate_json(line)
                except ValidationError as e:
                    await self.send(Response(type="error", error=f"Invalid message: {e}"))
                    continue
                await self._adapter.handle_request(self, request)
            if self._buffer.overflowed:
                await self.send(Response(type="error", error="Message too long"))


class IPCAdapter(Adapter):
    def __init__(self, orchestrator: Orchestrator, socket_path: str | Path | None = None):
        super().__init__(orchestrator)
        self._socket_path = Path(socket_path) if socket_path else paths.socket()
        self._server: asyncio.AbstractServer | None = None
        self._connections: set[asyncio.StreamWriter] = set()

    @property
    def name(self) -> str:
        return "ipc"

    @property
    def socket_path(self) -> Path:
        return self._socket_path

    async def start(self) -> None:
        self._remove_socket()
        self._server = await asyncio.start_unix_server(
            self._on_connection, path=str(self._socket_path)
        )
        logger.info("ipc_adapter_started", socket=str(self._socket_path))

    async def stop(self) -> None:
        for writer in list(self._connections):
            writer.close()
        self._connections.clear()

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        self._remove_socket()
        logger.info("ipc_adapter_stopped")

    def _remove_socket(self) -> None:
        try:
            self._socket_path.unlink()
        except FileNotFoundError:
            pass

    async def _on_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        logger.debug("ipc_client_connected")
        self._connections.add(writer)
        connection = _Connection(self, reader, writer)
        try:
            await connection.serve()
        except (ConnectionError, asyncio.IncompleteReadError) as e:
            logger.debug("ipc_socket_error", error=str(e))
        finally:
            self._connections.discard(writer)
            writer.close()
            logger.debug("ipc_client_disconnected")

    async def handle_request(self, connection: _Connection, request: Request) -> None:
        if request.type == "create_session":
            session_id = await self.orchestrator.create_session(ClientType.IPC)
            await connection.send(Response(type="session_created", sessionId=session_id))
        elif request.type == "status":
            await connection.send(Response(type="status", status="running"))
        elif request.type == "user_input":
            await self._handle_user_input(connection, request)
        else:
            await connection.send(
                Response(type="error", error=f"Unknown message type: {request.type}")
            )

    async def _handle_user_input(self, connection: _Connection, request: Request) -> None:
        if not request.text:
            await connection.send(
                Response(type="error", error="Missing text in user_input message")
            )
            return

        session_id = request.sessionId or connection.session_id

        async def on_status(status: OrchestratorStatus) -> None:
            await connection.send(
                Response(
                    type="processing_status",
                    processingStatus=str(status.type),
                    tool=status.tool if status.type == ProcessingStatus.EXECUTING_TOOL else None,
                )
            )

        async def on_chunk(chunk: str) -> None:
            await connection.send(Response(type="chunk", text=chunk))

        try:
            await self.orchestrator.ensure_session(session_id, ClientType.IPC)
            response = await self.orchestrator.process_message(
                request.text, session_id, on_status=on_status, on_chunk=on_chunk
            )
        except Exception as e:
            logger.error("ipc_request_failed", session_id=session_id, error=str(e))
            await connection.send(Response(type="error", error=str(e) or type(e).__name__))
            return

        for call in response.tool_calls or []:
            await connection.send(Response(type="tool_call", name=call.tool, input=call.input))
        await connection.send(Response(type="done"))
