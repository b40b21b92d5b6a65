"""Session status command."""

from __future__ import annotations

from typing import Any, Dict, List

from .base import Command
from ..context import ViewerContext
from ..output import describe_plugins, emit_result, render_plugin_table


class StatusCommand(Command):
    def __init__(self) -> None:
        super().__init__("status", "Show connection, program and RTOS detection status", aliases=("info",))

    async def run(self, ctx: ViewerContext, argv: List[str]) -> int:
        client = ctx.client
        tracker = ctx.tracker
        if client is None or tracker is None:
            emit_result(ctx, message=f"Not connected (adapter {ctx.host}:{ctx.port})", data={"status": "disconnected"})
            return 0
        plugins = describe_plugins(tracker.candidates)
        data: Dict[str, Any] = {
            "status": client.transport.state,
            "host": ctx.host,
            "port": ctx.port,
            "program": tracker.prog_status.value,
            "rtos": tracker.rtos.name if tracker.rtos else None,
            "plugins": plugins,
        }
        if tracker.last_error:
            data["last_error"] = tracker.last_error
        rtos_name = data["rtos"] or "-"
        emit_result(
            ctx,
            message=f"Adapter {ctx.host}:{ctx.port} ({data['status']}) program={data['program']} rtos={rtos_name}",
            data=data,
        )
        if not ctx.json_output:
            render_plugin_table(plugins)
            if tracker.last_error:
                print(f"  last error: {tracker.last_error}")
        return 0
