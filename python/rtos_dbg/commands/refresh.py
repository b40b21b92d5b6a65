"""Force a refresh of the RTOS view for the current stop."""

from __future__ import annotations

from typing import List

from .base import Command
from ..context import ViewerContext
from ..output import emit_error, emit_result


class RefreshCommand(Command):
    def __init__(self) -> None:
        super().__init__("refresh", "Re-read RTOS data (program must be stopped)")

    async def run(self, ctx: ViewerContext, argv: List[str]) -> int:
        tracker = ctx.tracker
        if tracker is None:
            emit_error(ctx, message="not connected")
            return 1
        if not await tracker.refresh():
            emit_error(ctx, message=f"program is {tracker.prog_status.value}; refresh needs a stopped target")
            return 1
        if tracker.last_error:
            emit_error(ctx, message=f"refresh failed: {tracker.last_error}")
            return 1
        emit_result(ctx, message="Refreshed", data={"rtos": tracker.rtos.name if tracker.rtos else None})
        return 0
