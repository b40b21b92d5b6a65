"""Event bus utilities and typed DAP event helpers for rtosdbg."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union


logger = logging.getLogger(__name__)

EventHandler = Callable[["BaseEvent"], Union[None, Awaitable[None]]]


def _to_int(value: Any) -> Optional[int]:
    try:
        if value is None:
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_event(message: Dict[str, Any]) -> BaseEvent:
    """Convert a raw DAP event message into a typed dataclass."""

    event_type = str(message.get("event") or "")
    seq = int(message.get("seq") or 0)
    body = message.get("body") or {}
    if not isinstance(body, dict):
        body = {}

    if event_type == "stopped":
        return StoppedEvent(
            seq=seq,
            event=event_type,
            body=body,
            reason=body.get("reason"),
            thread_id=_to_int(body.get("threadId")),
            all_threads_stopped=bool(body.get("allThreadsStopped", False)),
        )
    if event_type == "continued":
        return ContinuedEvent(
            seq=seq,
            event=event_type,
            body=body,
            thread_id=_to_int(body.get("threadId")),
        )
    if event_type == "exited":
        return ExitedEvent(seq=seq, event=event_type, body=body, exit_code=_to_int(body.get("exitCode")))
    if event_type == "terminated":
        return TerminatedEvent(seq=seq, event=event_type, body=body)
    if event_type == "output":
        return OutputEvent(
            seq=seq,
            event=event_type,
            body=body,
            category=str(body.get("category") or "console"),
            output=str(body.get("output") or ""),
        )
    return BaseEvent(seq=seq, event=event_type, body=body)


@dataclass
class BaseEvent:
    seq: int
    event: str
    body: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StoppedEvent(BaseEvent):
    reason: Optional[str] = None
    thread_id: Optional[int] = None
    all_threads_stopped: bool = False


@dataclass
class ContinuedEvent(BaseEvent):
    thread_id: Optional[int] = None


@dataclass
class ExitedEvent(BaseEvent):
    exit_code: Optional[int] = None


@dataclass
class TerminatedEvent(BaseEvent):
    pass


@dataclass
class OutputEvent(BaseEvent):
    category: str = "console"
    output: str = ""


@dataclass
class EventSubscription:
    categories: Optional[List[str]] = None
    handler: EventHandler = lambda event: None

    def matches(self, event: BaseEvent) -> bool:
        return not self.categories or event.event in self.categories


class EventBus:
    """Fan-out filtered events to subscribers.

    Handlers run in publish order. Coroutine handlers are scheduled as tasks
    on the running loop so a handler may itself await protocol requests.
    """

    def __init__(self) -> None:
        self._subs: Dict[int, EventSubscription] = {}
        self._next_token = 1
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, sub: EventSubscription) -> int:
        token = self._next_token
        self._next_token += 1
        self._subs[token] = sub
        return token

    def unsubscribe(self, token: int) -> None:
        self._subs.pop(token, None)

    def publish(self, message: Dict[str, Any]) -> BaseEvent:
        parsed = parse_event(message)
        for sub in list(self._subs.values()):
            if not sub.matches(parsed):
                continue
            try:
                result = sub.handler(parsed)
            except Exception:
                logger.exception("event handler for %s failed", parsed.event)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)
        return parsed

    async def drain(self) -> None:
        """Wait for scheduled coroutine handlers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("event handler task failed: %s", exc, exc_info=exc)
