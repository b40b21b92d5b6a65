"""Host-side coordinator for RTOS variant plugins.

The tracker owns one instance per candidate variant, tries detection on each
stop until one reports ``INITIALIZED``, forwards program-status notifications
and serves the rendered view without ever raising to its caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from html import escape
from typing import Callable, List, Optional, Sequence

from .base import DebugSession, RTOSBase
from .client import DAPClient
from .events import BaseEvent, EventSubscription, StoppedEvent
from .model import DetectStatus, ProgStatus
from .plugins import RTOSFactory


logger = logging.getLogger(__name__)

UNAVAILABLE_HTML = "<p>RTOS data unavailable</p>\n"
NOT_DETECTED_HTML = "<p>No RTOS detected</p>\n"
PENDING_HTML = "<p>RTOS not yet detected</p>\n"

UpdateCallback = Callable[["RTOSTracker"], None]


@dataclass
class TrackerConfig:
    stack_levels: int = 1
    show_errors: bool = True


class RTOSTracker:
    """Runs variant detection and refresh for one debug session."""

    def __init__(
        self,
        session: DebugSession,
        factories: Sequence[RTOSFactory],
        *,
        config: Optional[TrackerConfig] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> None:
        self.session = session
        self.factories = list(factories)
        self.config = config or TrackerConfig()
        self.on_update = on_update
        self.candidates: List[RTOSBase] = []
        self.rtos: Optional[RTOSBase] = None
        self.prog_status = ProgStatus.STARTED
        self.last_frame_id: Optional[int] = None
        self.last_thread_id: Optional[int] = None
        self.last_html: Optional[str] = None
        self.last_text: Optional[str] = None
        self.last_error: Optional[str] = None
        self._lock: Optional[asyncio.Lock] = None
        self._tokens: List[int] = []
        self._client: Optional[DAPClient] = None

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    async def on_stopped(self, frame_id: int) -> None:
        self.prog_status = ProgStatus.STOPPED
        self.last_frame_id = frame_id
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self.prog_status is not ProgStatus.STOPPED:
                return
            if self.rtos is None:
                await self._detect(frame_id)
            if self.rtos is not None and self.prog_status is ProgStatus.STOPPED:
                await self._refresh(self.rtos, frame_id)
        self._notify()

    def on_continued(self) -> None:
        self.prog_status = ProgStatus.RUNNING
        for rtos in self._instances():
            rtos.on_continued()

    def on_exited(self) -> None:
        self.prog_status = ProgStatus.EXITED
        for rtos in self._instances():
            rtos.on_exited()
        self._notify()

    async def refresh(self) -> bool:
        """Re-run the stop handling for the last known frame."""
        if self.prog_status is not ProgStatus.STOPPED or self.last_frame_id is None:
            return False
        await self.on_stopped(self.last_frame_id)
        return True

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def get_html(self) -> str:
        """Current view; falls back to the last good table, never raises."""
        if self.rtos is None:
            if self.candidates and all(c.status is DetectStatus.FAILED for c in self.candidates):
                return NOT_DETECTED_HTML
            return PENDING_HTML
        html = self.last_html
        if not self.last_error:
            try:
                html = self.rtos.get_html()
            except Exception:
                logger.exception("%s render failed", self.rtos.name)
        if not html:
            html = UNAVAILABLE_HTML
        if self.last_error and self.config.show_errors:
            html += f'<p class="rtos-error">Refresh failed: {escape(self.last_error)}</p>\n'
        return html

    def get_text(self) -> str:
        if self.rtos is None:
            if self.candidates and all(c.status is DetectStatus.FAILED for c in self.candidates):
                return "No RTOS detected\n"
            return "RTOS not yet detected\n"
        text = self.last_text
        if not self.last_error:
            try:
                text = self.rtos.get_text()
            except Exception:
                logger.exception("%s text render failed", self.rtos.name)
        if not text:
            text = "RTOS data unavailable\n"
        if self.last_error and self.config.show_errors:
            text += f"Refresh failed: {self.last_error}\n"
        return text

    @property
    def detected(self) -> bool:
        return self.rtos is not None

    # ------------------------------------------------------------------
    # Client wiring
    # ------------------------------------------------------------------
    def bind(self, client: DAPClient) -> None:
        """Drive the tracker from ``client``'s adapter events."""
        self.unbind()
        self._client = client
        bus = client.event_bus
        self._tokens = [
            bus.subscribe(EventSubscription(categories=["stopped"], handler=self._handle_stopped_event)),
            bus.subscribe(EventSubscription(categories=["continued"], handler=lambda event: self.on_continued())),
            bus.subscribe(EventSubscription(categories=["exited", "terminated"], handler=lambda event: self.on_exited())),
        ]

    def unbind(self) -> None:
        client = self._client
        if client is not None:
            for token in self._tokens:
                client.event_bus.unsubscribe(token)
        self._tokens = []
        self._client = None

    async def _handle_stopped_event(self, event: BaseEvent) -> None:
        client = self._client
        if client is None:
            return
        thread_id = event.thread_id if isinstance(event, StoppedEvent) else None
        # gate opens before the frame lookup so a racing continue closes it again
        self.prog_status = ProgStatus.STOPPED
        try:
            if thread_id is None:
                threads = await client.threads()
                if not threads:
                    logger.debug("stopped without threads; skipping refresh")
                    return
                thread_id = int(threads[0].get("id"))
            frames = await client.stack_trace(thread_id, levels=self.config.stack_levels)
        except Exception as exc:
            logger.warning("failed to resolve stop frame: %s", exc)
            return
        self.last_thread_id = thread_id
        if not frames or self.prog_status is not ProgStatus.STOPPED:
            return
        await self.on_stopped(int(frames[0].get("id", 0)))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _instances(self) -> List[RTOSBase]:
        if self.rtos is not None:
            return [self.rtos]
        return list(self.candidates)

    def _ensure_candidates(self) -> None:
        if self.candidates or not self.factories:
            return
        for factory in self.factories:
            try:
                self.candidates.append(factory(self.session))
            except Exception:
                logger.exception("failed to create RTOS plugin from %r", factory)

    async def _detect(self, frame_id: int) -> None:
        self._ensure_candidates()
        for candidate in self.candidates:
            if candidate.status is DetectStatus.FAILED:
                continue
            candidate.set_prog_status(ProgStatus.STOPPED)
            try:
                await candidate.try_detect(frame_id)
            except Exception as exc:
                candidate.mark_failed(exc)
                continue
            if self.prog_status is not ProgStatus.STOPPED:
                logger.debug("program resumed during detection; will retry on next stop")
                return
            if candidate.status is DetectStatus.INITIALIZED:
                logger.info("detected RTOS %s", candidate.name)
                self.rtos = candidate
                self.candidates = [candidate]
                return

    async def _refresh(self, rtos: RTOSBase, frame_id: int) -> None:
        try:
            await rtos.on_stopped(frame_id)
        except Exception as exc:
            self.last_error = str(exc) or exc.__class__.__name__
            logger.warning("%s refresh failed: %s", rtos.name, exc)
            return
        self.last_error = None
        try:
            self.last_html = rtos.get_html()
            self.last_text = rtos.get_text()
        except Exception:
            logger.exception("%s render failed", rtos.name)

    def _notify(self) -> None:
        callback = self.on_update
        if callback is None:
            return
        try:
            callback(self)
        except Exception:
            logger.exception("tracker update callback failed")
