"""Webhook listener for Game State Integration pushes.

Every connection carries exactly one POST from the game client. The listener
answers ``200 OK`` as soon as the request has been read, then decodes the body
and forwards the snapshot to the tracker through a bounded queue.
"""

from __future__ import annotations

import asyncio
import http.client
import io
import json

import structlog

from ..exceptions import MalformedRequestError
from .models import TelemetrySnapshot

logger = structlog.get_logger(__name__)

OK_RESPONSE = (
    b"HTTP/1.1 200 OK\r\n"
    b"Content-Type: text/html\r\n"
    b"Content-Length: 0\r\n"
    b"Connection: close\r\n"
    b"\r\n"
)


def parse_request_head(buf: bytes) -> tuple[str, http.client.HTTPMessage, int] | None:
    """Split the request line and headers off a raw request.

    Returns:
        ``(request_line, headers, body_offset)``, or ``None`` when the header
        boundary is not in ``buf`` yet

    Raises:
        MalformedRequestError: If the request line or headers are invalid
    """
    end = buf.find(b"\r\n\r\n")
    separator = 4
    if end == -1:
        end = buf.find(b"\n\n")
        separator = 2
    if end == -1:
        return None

    head = buf[:end]
    request_line_raw, _, header_block = head.partition(b"\n")
    request_line = request_line_raw.rstrip(b"\r").decode("latin-1")
    parts = request_line.split()
    if len(parts) != 3 or not parts[2].startswith("HTTP/"):
        raise MalformedRequestError(f"Invalid request line: {request_line[:80]!r}")

    try:
        headers = http.client.parse_headers(io.BytesIO(header_block + b"\r\n\r\n"))
    except http.client.HTTPException as e:
        raise MalformedRequestError(f"Invalid headers: {e}") from e

    return request_line, headers, end + separator


def _content_length(headers: http.client.HTTPMessage) -> int | None:
    raw = headers.get("Content-Length")
    if raw is None:
        return None
    try:
        return max(0, int(raw))
    except ValueError:
        return None


def is_request_complete(buf: bytes) -> bool:
    """True once the headers and the declared body have both arrived."""
    try:
        parsed = parse_request_head(buf)
    except MalformedRequestError:
        # Nothing more to wait for, the decode step will reject it.
        return True
    if parsed is None:
        return False
    _, headers, offset = parsed
    length = _content_length(headers)
    if length is None:
        return True
    return len(buf) - offset >= length


def decode_snapshot(buf: bytes) -> TelemetrySnapshot:
    """Decode one raw request into a snapshot.

    Raises:
        MalformedRequestError: If the header boundary is missing or the body
            is not a JSON object
    """
    parsed = parse_request_head(buf)
    if parsed is None:
        raise MalformedRequestError("Header boundary not found")

    _, headers, offset = parsed
    body = buf[offset:]
    length = _content_length(headers)
    if length is not None:
        body = body[:length]

    try:
        payload = json.loads(body)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError, UnicodeDecodeError and the int digit limit are all ValueErrors.
        raise MalformedRequestError(f"Undecodable body: {e}") from e

    try:
        return TelemetrySnapshot.from_json(payload)
    except ValueError as e:
        raise MalformedRequestError(str(e)) from e


class TelemetryListener:
    """Accept GSI webhook connections and feed decoded snapshots to a queue."""

    def __init__(
        self,
        queue: asyncio.Queue[TelemetrySnapshot],
        host: str = "127.0.0.1",
        port: int = 3682,
        max_request_bytes: int = 122880,
        read_timeout_seconds: float = 5.0,
    ):
        self.queue = queue
        self.host = host
        self.port = port
        self.max_request_bytes = max_request_bytes
        self.read_timeout_seconds = read_timeout_seconds
        self._server: asyncio.Server | None = None

    @property
    def bound_port(self) -> int | None:
        """Port actually bound (useful when configured with port 0)."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    def on_config_updated(self, key: str, value) -> None:
        if key == "gsi.read_timeout_seconds":
            self.read_timeout_seconds = value

    async def start(self) -> None:
        if self._server is not None:
            return
        self._server = await asyncio.start_server(self._handle_connection, self.host, self.port)
        logger.info("gsi_listening", host=self.host, port=self.bound_port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("gsi_stopped")

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        peer = writer.get_extra_info("peername")
        logger.debug("gsi_connection_accepted", peer=str(peer))
        try:
            snapshot = await self._serve_request(reader, writer)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug("gsi_close_failed", peer=str(peer), error=str(e))

        if snapshot is not None:
            # Blocks while the tracker is behind.
            await self.queue.put(snapshot)
            logger.debug("gsi_snapshot_forwarded", queue_size=self.queue.qsize())

    async def _serve_request(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> TelemetrySnapshot | None:
        try:
            buf = await asyncio.wait_for(self._read_request(reader), timeout=self.read_timeout_seconds)
        except (ConnectionError, OSError, asyncio.TimeoutError) as e:
            logger.debug("gsi_socket_unreadable", error=str(e), error_type=type(e).__name__)
            return None

        if not buf:
            logger.debug("gsi_connection_closed_empty")
            return None

        try:
            writer.write(OK_RESPONSE)
            await writer.drain()
        except (ConnectionError, OSError) as e:
            logger.debug("gsi_socket_unwritable", error=str(e))
            return None

        try:
            return decode_snapshot(buf)
        except MalformedRequestError as e:
            logger.debug("gsi_request_dropped", reason=str(e), size=len(buf))
            return None

    async def _read_request(self, reader: asyncio.StreamReader) -> bytes:
        buf = bytearray()
        while len(buf) < self.max_request_bytes:
            chunk = await reader.read(self.max_request_bytes - len(buf))
            if not chunk:
                break
            buf += chunk
            if is_request_complete(bytes(buf)):
                break
        return bytes(buf)
