"""Asynchronous Debug Adapter Protocol client.

``DAPClient`` is the concrete debugging session used by the RTOS layer.  It
matches responses to requests by ``request_seq``, publishes adapter events on
an :class:`~rtosdbg.events.EventBus` and exposes ``custom_request`` as the
single entry point used by :class:`~rtosdbg.base.RTOSBase`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .events import BaseEvent, EventBus, EventSubscription
from .transport import DAPTransport, TransportConfig, TransportError


logger = logging.getLogger(__name__)

JsonDict = Dict[str, Any]


class DAPRequestError(RuntimeError):
    """Raised when the adapter answers a request with ``success: false``."""

    def __init__(self, command: str, message: str, body: Optional[JsonDict] = None) -> None:
        super().__init__(f"{command} failed: {message}")
        self.command = command
        self.body = body or {}


class DAPClient:
    """Request/response session over a :class:`DAPTransport`."""

    def __init__(
        self,
        transport: Optional[DAPTransport] = None,
        *,
        config: Optional[TransportConfig] = None,
        event_bus: Optional[EventBus] = None,
        client_id: str = "rtos-dbg",
    ) -> None:
        self.transport = transport or DAPTransport(config)
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.client_id = client_id
        self.capabilities: JsonDict = {}
        self._seq = 1
        self._pending: Dict[int, asyncio.Future] = {}
        self._reader_task: Optional[asyncio.Task] = None
        self.transport.register_on_disconnect(self._on_disconnect)

    @property
    def config(self) -> TransportConfig:
        return self.transport.config

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> None:
        if not self.transport.connected:
            await self.transport.connect()
        self.start()

    def start(self) -> None:
        """Start the reader task for an already connected transport."""
        if self._reader_task is None or self._reader_task.done():
            self._reader_task = asyncio.ensure_future(self._reader_loop())

    async def close(self) -> None:
        task = self._reader_task
        self._reader_task = None
        await self.transport.close()
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._fail_pending(TransportError("connection closed"))

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------
    async def custom_request(self, command: str, args: Optional[JsonDict] = None) -> Optional[JsonDict]:
        """Send ``command`` and return the response body."""
        seq = self._next_seq()
        message: JsonDict = {"seq": seq, "type": "request", "command": command}
        if args is not None:
            message["arguments"] = args
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._pending[seq] = future
        try:
            await self.transport.send(message)
            response = await asyncio.wait_for(future, timeout=self.config.request_timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError(f"{command} timed out") from exc
        finally:
            self._pending.pop(seq, None)
        if not response.get("success", False):
            raise DAPRequestError(command, str(response.get("message") or "unknown error"), response.get("body"))
        return response.get("body")

    async def initialize(self, adapter_id: str = "rtos") -> JsonDict:
        args = {
            "clientID": self.client_id,
            "adapterID": adapter_id,
            "linesStartAt1": True,
            "columnsStartAt1": True,
            "pathFormat": "path",
            "supportsVariableType": True,
        }
        self.capabilities = await self.custom_request("initialize", args) or {}
        return self.capabilities

    async def start_debugging(
        self,
        request: str = "attach",
        args: Optional[JsonDict] = None,
        *,
        adapter_id: str = "rtos",
    ) -> Optional[JsonDict]:
        """initialize -> attach/launch -> wait for ``initialized`` -> configurationDone."""
        if request not in ("attach", "launch"):
            raise ValueError(f"unsupported request {request!r}")
        initialized = asyncio.ensure_future(self.wait_for_event("initialized"))
        try:
            await self.initialize(adapter_id)
        except BaseException:
            initialized.cancel()
            raise
        start = asyncio.ensure_future(self.custom_request(request, args or {}))
        try:
            await initialized
        except TransportError as exc:
            logger.debug("no initialized event: %s", exc)
        if start.done():
            return await start
        await self.configuration_done()
        return await start

    async def wait_for_event(self, name: str, timeout: Optional[float] = None) -> BaseEvent:
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def _handler(event: BaseEvent) -> None:
            if not future.done():
                future.set_result(event)

        token = self.event_bus.subscribe(EventSubscription(categories=[name], handler=_handler))
        try:
            return await asyncio.wait_for(future, timeout=timeout or self.config.request_timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError(f"timed out waiting for {name} event") from exc
        finally:
            self.event_bus.unsubscribe(token)

    async def attach(self, args: Optional[JsonDict] = None) -> Optional[JsonDict]:
        return await self.custom_request("attach", args or {})

    async def launch(self, args: Optional[JsonDict] = None) -> Optional[JsonDict]:
        return await self.custom_request("launch", args or {})

    async def configuration_done(self) -> Optional[JsonDict]:
        return await self.custom_request("configurationDone", {})

    async def stack_trace(self, thread_id: int, *, levels: int = 1) -> List[JsonDict]:
        body = await self.custom_request("stackTrace", {"threadId": thread_id, "startFrame": 0, "levels": levels})
        frames = (body or {}).get("stackFrames")
        return [frame for frame in frames if isinstance(frame, dict)] if isinstance(frames, list) else []

    async def threads(self) -> List[JsonDict]:
        body = await self.custom_request("threads", {})
        threads = (body or {}).get("threads")
        return [entry for entry in threads if isinstance(entry, dict)] if isinstance(threads, list) else []

    async def continue_(self, thread_id: int) -> Optional[JsonDict]:
        return await self.custom_request("continue", {"threadId": thread_id})

    async def pause(self, thread_id: int) -> Optional[JsonDict]:
        return await self.custom_request("pause", {"threadId": thread_id})

    async def disconnect(self, *, terminate: bool = False) -> None:
        try:
            await self.custom_request("disconnect", {"terminateDebuggee": terminate})
        except (TransportError, DAPRequestError) as exc:
            logger.debug("disconnect request failed: %s", exc)
        await self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _next_seq(self) -> int:
        seq = self._seq
        self._seq += 1
        return seq

    async def _reader_loop(self) -> None:
        try:
            while True:
                try:
                    message = await self.transport.receive()
                except TransportError as exc:
                    logger.debug("reader stopped: %s", exc)
                    break
                if message is None:
                    break
                kind = message.get("type")
                if kind == "response":
                    self._handle_response(message)
                elif kind == "event":
                    self.event_bus.publish(message)
                else:
                    logger.debug("ignoring %s message from adapter", kind)
        finally:
            self._fail_pending(TransportError("connection closed"))

    def _handle_response(self, message: JsonDict) -> None:
        request_seq = message.get("request_seq")
        future = self._pending.get(request_seq) if isinstance(request_seq, int) else None
        if future is None:
            logger.debug("response for unknown request %r", request_seq)
            return
        if not future.done():
            future.set_result(message)

    def _fail_pending(self, exc: Exception) -> None:
        for future in list(self._pending.values()):
            if not future.done():
                future.set_exception(exc)
        self._pending.clear()

    def _on_disconnect(self, state: str) -> None:
        self._fail_pending(TransportError("connection lost"))
