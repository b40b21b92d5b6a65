"""rtos-dbg CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from rtosdbg import TrackerConfig, TransportError, plugin_specs_from_env

from .commands import CommandRegistry, build_registry
from .context import ViewerContext, load_request_args
from .parser import PARSE_ERROR_PREFIX, split_command
from .repl import ViewerREPL

LOG = logging.getLogger("rtos_dbg.cli")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RTOS thread viewer for Debug Adapter Protocol sessions")
    parser.add_argument("--host", default="127.0.0.1", help="Debug adapter host")
    parser.add_argument("--port", type=int, default=4711, help="Debug adapter port")
    parser.add_argument("--json", action="store_true", help="Emit JSON output when supported")
    parser.add_argument("--log-level", default=os.environ.get("RTOS_DBG_LOG", "INFO"), help="Logging level (default INFO)")
    parser.add_argument(
        "--plugin",
        action="append",
        dest="plugins",
        metavar="MODULE:FACTORY",
        help="RTOS variant factory to try (repeatable; default from RTOS_DBG_PLUGINS)",
    )
    parser.add_argument("--launch", action="store_true", help="Send a launch request instead of attach")
    parser.add_argument("--args", dest="args_file", help="JSON file with attach/launch arguments")
    parser.add_argument("--adapter-id", default="rtos", help="adapterID sent with initialize")
    parser.add_argument("--html-out", type=Path, help="Rewrite this file with the grid markup after every stop")
    parser.add_argument("--stack-levels", type=int, default=1, help="Frames requested when resolving a stop")
    parser.add_argument(
        "-c",
        "--command",
        help="Execute a single command non-interactively (quote the command string)",
    )
    parser.add_argument(
        "--wait-stop",
        type=float,
        default=0.0,
        metavar="SECONDS",
        help="With -c, wait up to SECONDS for the first stop before running the command",
    )
    parser.add_argument(
        "--history",
        type=Path,
        default=Path.home() / ".rtos-dbg-history",
        help="Path to command history file",
    )
    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    try:
        request_args = load_request_args(args.args_file)
    except RuntimeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    ctx = ViewerContext(
        host=args.host,
        port=args.port,
        json_output=args.json,
        plugin_specs=args.plugins if args.plugins else plugin_specs_from_env(),
        request="launch" if args.launch else "attach",
        request_args=request_args,
        adapter_id=args.adapter_id,
        html_out=args.html_out,
        tracker_config=TrackerConfig(stack_levels=max(1, args.stack_levels)),
    )
    registry = build_registry()
    try:
        return asyncio.run(_run(ctx, registry, args))
    except KeyboardInterrupt:
        print()
        return 0


async def _run(ctx: ViewerContext, registry: CommandRegistry, args: argparse.Namespace) -> int:
    try:
        await ctx.ensure_client()
    except (TransportError, RuntimeError, OSError) as exc:
        LOG.error("failed to start session on %s:%d: %s", ctx.host, ctx.port, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 2
    try:
        if args.command:
            if args.wait_stop > 0 and not await ctx.wait_for_update(args.wait_stop):
                LOG.info("no stop within %.1fs", args.wait_stop)
            return await _run_single_command(ctx, registry, args.command)
        repl = ViewerREPL(ctx, registry, history_path=args.history)
        return await repl.run()
    except SystemExit as exc:
        return int(exc.code or 0)
    finally:
        await ctx.disconnect()


async def _run_single_command(ctx: ViewerContext, registry: CommandRegistry, command_line: str) -> int:
    argv = split_command(command_line)
    if not argv:
        return 0
    cmd_name, *cmd_args = argv
    if cmd_name.startswith(PARSE_ERROR_PREFIX):
        print(f"Parse error: {' '.join(cmd_args)}")
        return 1
    command = registry.get(cmd_name)
    if not command:
        print(f"Unknown command: {cmd_name}")
        return 1
    try:
        return await command.run(ctx, cmd_args)
    except SystemExit as exc:
        return int(exc.code or 0)
    except Exception as exc:
        LOG.exception("command failed")
        print(f"Command '{cmd_name}' failed: {exc}")
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
