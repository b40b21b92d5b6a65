"""Viewer context and session helpers."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from rtosdbg import DAPClient, RTOSTracker, TrackerConfig, TransportConfig, load_factories

LOGGER = logging.getLogger("rtos_dbg.context")


def load_request_args(path: Optional[str]) -> Dict[str, Any]:
    """Read attach/launch arguments from a JSON file."""
    if not path:
        return {}
    candidate = Path(path).expanduser()
    try:
        data = json.loads(candidate.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise RuntimeError(f"request arguments file not found: {candidate}") from exc
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"invalid JSON in {candidate}: {exc}") from exc
    if not isinstance(data, dict):
        raise RuntimeError(f"{candidate} must contain a JSON object")
    return data


@dataclass
class ViewerContext:
    """Holds shared CLI viewer state."""

    host: str = "127.0.0.1"
    port: int = 4711
    json_output: bool = False
    plugin_specs: List[str] = field(default_factory=list)
    request: str = "attach"
    request_args: Dict[str, Any] = field(default_factory=dict)
    adapter_id: str = "rtos"
    html_out: Optional[Path] = None
    tracker_config: TrackerConfig = field(default_factory=TrackerConfig)
    _client: Optional[DAPClient] = field(default=None, init=False, repr=False)
    _tracker: Optional[RTOSTracker] = field(default=None, init=False, repr=False)
    _updated: Optional[asyncio.Event] = field(default=None, init=False, repr=False)

    async def ensure_client(self) -> DAPClient:
        """Connect to the adapter, start the debug session and bind the tracker."""
        client = self._client
        if client is not None and client.transport.connected:
            return client
        factories = load_factories(self.plugin_specs)
        if not factories:
            LOGGER.warning("no RTOS plugins configured; the view will stay empty")
        client = DAPClient(config=TransportConfig(host=self.host, port=self.port))
        await client.connect()
        tracker = RTOSTracker(client, factories, config=self.tracker_config, on_update=self._on_update)
        tracker.bind(client)
        self._client = client
        self._tracker = tracker
        try:
            await client.start_debugging(self.request, self.request_args, adapter_id=self.adapter_id)
        except Exception:
            await self.disconnect()
            raise
        LOGGER.info("%s started on %s:%d", self.request, self.host, self.port)
        return client

    @property
    def client(self) -> Optional[DAPClient]:
        return self._client

    @property
    def tracker(self) -> Optional[RTOSTracker]:
        return self._tracker

    async def wait_for_update(self, timeout: float) -> bool:
        """Wait until the tracker finishes a stop/exit cycle."""
        event = self._update_event()
        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def disconnect(self) -> None:
        client = self._client
        tracker = self._tracker
        self._client = None
        self._tracker = None
        if tracker is not None:
            tracker.unbind()
        if client is None:
            return
        try:
            await client.disconnect()
        except Exception as exc:
            LOGGER.debug("disconnect failed: %s", exc)

    def _update_event(self) -> asyncio.Event:
        if self._updated is None:
            self._updated = asyncio.Event()
        return self._updated

    def _on_update(self, tracker: RTOSTracker) -> None:
        self._update_event().set()
        if not self.html_out:
            return
        try:
            self.html_out.parent.mkdir(parents=True, exist_ok=True)
            self.html_out.write_text(tracker.get_html(), encoding="utf-8")
        except OSError as exc:
            LOGGER.warning("failed to write %s: %s", self.html_out, exc)
