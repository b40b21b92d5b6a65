"""Output helpers for rtos-dbg."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Mapping, Optional

from rtosdbg import RTOSBase

from .context import ViewerContext


def _json_dump(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, indent=2, sort_keys=True)


def emit_result(ctx: ViewerContext, *, message: str, data: Optional[Mapping[str, Any]] = None) -> None:
    """Emit a successful command result."""
    if ctx.json_output:
        payload: Dict[str, Any] = {"status": "ok"}
        if data is not None:
            payload["result"] = data
        else:
            payload["message"] = message
        print(_json_dump(payload))
    else:
        print(message)


def emit_error(ctx: ViewerContext, *, message: str, data: Optional[Mapping[str, Any]] = None) -> None:
    """Emit an error message respecting JSON mode."""
    payload: Dict[str, Any] = {"status": "error", "error": message}
    if data:
        payload["details"] = dict(data)
    if ctx.json_output:
        print(_json_dump(payload))
    else:
        print(f"error: {message}")


def describe_plugins(plugins: Iterable[RTOSBase]) -> list[Dict[str, Any]]:
    entries: list[Dict[str, Any]] = []
    for plugin in plugins:
        entry: Dict[str, Any] = {"name": plugin.name, "status": plugin.status.value}
        if plugin.failed_why is not None:
            entry["why"] = str(plugin.failed_why)
        entries.append(entry)
    return entries


def render_plugin_table(entries: Iterable[Mapping[str, Any]]) -> None:
    """Print one line per RTOS candidate."""
    rows = list(entries)
    if not rows:
        print("  plugins: (none)")
        return
    print("  plugins:")
    for entry in rows:
        why = entry.get("why")
        suffix = f"  ({why})" if why else ""
        print(f"    {str(entry.get('name')):<16} {str(entry.get('status')):<12}{suffix}")


__all__ = [
    "emit_result",
    "emit_error",
    "describe_plugins",
    "render_plugin_table",
]
