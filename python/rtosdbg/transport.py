"""
Transport layer for rtosdbg.

Responsibilities:
    * Open a TCP connection to a debug adapter.
    * Frame Debug Adapter Protocol messages with ``Content-Length`` headers.
    * Surface connection state changes to callers.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)

JsonDict = Dict[str, Any]


class TransportError(RuntimeError):
    """Raised when the transport cannot complete an operation."""


@dataclass
class TransportConfig:
    host: str = "127.0.0.1"
    port: int = 4711
    connect_timeout: float = 2.0
    request_timeout: float = 5.0
    reconnect_backoff: float = 0.5
    max_backoff: float = 5.0
    max_retries: int = 5


def encode_message(message: JsonDict) -> bytes:
    encoded = json.dumps(message).encode("utf-8")
    header = f"Content-Length: {len(encoded)}\r\n\r\n".encode("ascii")
    return header + encoded


async def read_message(reader: asyncio.StreamReader) -> Optional[JsonDict]:
    """Read a single DAP message. Returns None on EOF.

    Frames that cannot be decoded, or whose body is not a JSON object, raise
    :class:`TransportError`.
    """
    content_length: Optional[int] = None
    while True:
        line = await reader.readline()
        if not line:
            return None
        try:
            decoded = line.decode("ascii").strip()
        except UnicodeDecodeError as exc:
            raise TransportError(f"invalid header line: {line!r}") from exc
        if not decoded:
            break
        if decoded.lower().startswith("content-length:"):
            _, value = decoded.split(":", 1)
            try:
                content_length = int(value.strip())
            except ValueError as exc:
                raise TransportError(f"invalid Content-Length header: {decoded!r}") from exc
    if content_length is None:
        raise TransportError("message without Content-Length header")
    try:
        body = await reader.readexactly(content_length)
    except asyncio.IncompleteReadError:
        return None
    try:
        message = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise TransportError(f"invalid message body: {exc}") from exc
    if not isinstance(message, dict):
        raise TransportError(f"message body is not an object: {type(message).__name__}")
    return message


class DAPTransport:
    """Framed DAP stream over an asyncio reader/writer pair."""

    def __init__(self, config: Optional[TransportConfig] = None) -> None:
        self.config = config or TransportConfig()
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._write_lock = asyncio.Lock()
        self._state = "disconnected"
        self._on_disconnect: List[Callable[[str], None]] = []

    @classmethod
    def from_streams(cls, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> "DAPTransport":
        transport = cls()
        transport._reader = reader
        transport._writer = writer
        transport._state = "connected"
        return transport

    @property
    def state(self) -> str:
        return self._state

    @property
    def connected(self) -> bool:
        return self._writer is not None

    def register_on_disconnect(self, callback: Callable[[str], None]) -> None:
        self._on_disconnect.append(callback)

    async def connect(self, *, retry: bool = True) -> None:
        """Open the TCP connection, backing off between attempts."""
        if self._writer is not None:
            return
        self._state = "connecting"
        attempt = 0
        backoff = self.config.reconnect_backoff
        last_error: Optional[OSError] = None
        while True:
            attempt += 1
            try:
                self._reader, self._writer = await asyncio.wait_for(
                    asyncio.open_connection(self.config.host, self.config.port),
                    timeout=self.config.connect_timeout,
                )
                self._state = "connected"
                logger.debug("connected to %s:%d", self.config.host, self.config.port)
                return
            except (OSError, asyncio.TimeoutError) as exc:
                last_error = exc if isinstance(exc, OSError) else OSError(str(exc) or "connect timeout")
                if not retry:
                    break
                if self.config.max_retries > 0 and attempt >= self.config.max_retries:
                    break
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, self.config.max_backoff)
        self._state = "disconnected"
        raise TransportError(f"connect failed: {last_error}") from last_error

    async def send(self, message: JsonDict) -> None:
        writer = self._writer
        if writer is None:
            raise TransportError("transport not connected")
        async with self._write_lock:
            try:
                writer.write(encode_message(message))
                await writer.drain()
            except (OSError, ConnectionError) as exc:
                self._handle_disconnect()
                raise TransportError(f"send failed: {exc}") from exc

    async def receive(self) -> Optional[JsonDict]:
        reader = self._reader
        if reader is None:
            raise TransportError("transport not connected")
        try:
            message = await read_message(reader)
        except TransportError as exc:
            # a malformed frame leaves the stream out of sync
            logger.warning("dropping adapter connection: %s", exc)
            self._handle_disconnect()
            raise
        except (OSError, ConnectionError) as exc:
            self._handle_disconnect()
            raise TransportError(f"receive failed: {exc}") from exc
        if message is None:
            self._handle_disconnect()
        return message

    async def close(self) -> None:
        writer = self._writer
        self._handle_disconnect()
        if writer is None:
            return
        try:
            await writer.wait_closed()
        except (OSError, ConnectionError):
            pass

    def _handle_disconnect(self) -> None:
        writer = self._writer
        self._writer = None
        self._reader = None
        if writer is not None:
            writer.close()
        if self._state == "disconnected":
            return
        self._state = "disconnected"
        for callback in list(self._on_disconnect):
            try:
                callback(self._state)
            except Exception:
                logger.exception("disconnect callback failed")
