"""Execution control commands (continue/pause)."""

from __future__ import annotations

import argparse
from typing import List, Optional

from .base import Command, parse_or_none
from ..context import ViewerContext
from ..output import emit_error, emit_result


async def _resolve_thread(ctx: ViewerContext, requested: Optional[int]) -> Optional[int]:
    if requested is not None:
        return requested
    tracker = ctx.tracker
    if tracker is not None and tracker.last_thread_id is not None:
        return tracker.last_thread_id
    client = ctx.client
    if client is None:
        return None
    threads = await client.threads()
    if not threads:
        return None
    return int(threads[0].get("id"))


class ContinueCommand(Command):
    def __init__(self) -> None:
        super().__init__("continue", "Resume the target", aliases=("cont", "c"))
        self._parser = argparse.ArgumentParser(prog="continue", add_help=False)
        self._parser.add_argument("thread", nargs="?", type=int, help="Thread id (default: last stopped)")

    async def run(self, ctx: ViewerContext, argv: List[str]) -> int:
        args = parse_or_none(self._parser, argv)
        if args is None:
            return 1
        client = ctx.client
        tracker = ctx.tracker
        if client is None or tracker is None:
            emit_error(ctx, message="not connected")
            return 1
        try:
            thread_id = await _resolve_thread(ctx, args.thread)
            if thread_id is None:
                emit_error(ctx, message="no thread to continue")
                return 1
            # close the gate before the request goes out
            tracker.on_continued()
            await client.continue_(thread_id)
        except Exception as exc:
            emit_error(ctx, message=f"continue failed: {exc}")
            return 2
        emit_result(ctx, message=f"Continued thread {thread_id}", data={"result": "continued", "thread": thread_id})
        return 0


class PauseCommand(Command):
    def __init__(self) -> None:
        super().__init__("pause", "Halt the target")
        self._parser = argparse.ArgumentParser(prog="pause", add_help=False)
        self._parser.add_argument("thread", nargs="?", type=int, help="Thread id (default: first thread)")

    async def run(self, ctx: ViewerContext, argv: List[str]) -> int:
        args = parse_or_none(self._parser, argv)
        if args is None:
            return 1
        client = ctx.client
        if client is None:
            emit_error(ctx, message="not connected")
            return 1
        try:
            thread_id = await _resolve_thread(ctx, args.thread)
            if thread_id is None:
                emit_error(ctx, message="no thread to pause")
                return 1
            await client.pause(thread_id)
        except Exception as exc:
            emit_error(ctx, message=f"pause failed: {exc}")
            return 2
        emit_result(ctx, message=f"Pause requested for thread {thread_id}", data={"result": "pausing", "thread": thread_id})
        return 0
