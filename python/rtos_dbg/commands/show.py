"""Render the current RTOS thread table."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List

from .base import Command, parse_or_none
from ..context import ViewerContext
from ..output import emit_error, emit_result


class ShowCommand(Command):
    def __init__(self) -> None:
        super().__init__("show", "Show the RTOS thread table", aliases=("threads",))
        self._parser = argparse.ArgumentParser(prog="show", add_help=False)
        self._parser.add_argument("--html", action="store_true", help="Print the grid markup instead of text")
        self._parser.add_argument("--out", type=Path, help="Write the grid markup to a file")

    async def run(self, ctx: ViewerContext, argv: List[str]) -> int:
        args = parse_or_none(self._parser, argv)
        if args is None:
            return 1
        tracker = ctx.tracker
        if tracker is None:
            emit_error(ctx, message="not connected")
            return 1
        html = tracker.get_html()
        if args.out:
            try:
                args.out.write_text(html, encoding="utf-8")
            except OSError as exc:
                emit_error(ctx, message=f"cannot write {args.out}: {exc}")
                return 2
        if ctx.json_output:
            emit_result(ctx, message="show", data={"html": html, "text": tracker.get_text()})
            return 0
        if args.html:
            print(html, end="")
        elif not args.out:
            print(tracker.get_text(), end="")
        else:
            print(f"Wrote {args.out}")
        return 0
