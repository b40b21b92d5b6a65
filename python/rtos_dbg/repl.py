"""Interactive REPL for rtos-dbg."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory, InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout

from .commands import CommandRegistry
from .context import ViewerContext
from .parser import PARSE_ERROR_PREFIX, split_command

LOGGER = logging.getLogger("rtos_dbg.repl")


class ViewerREPL:
    """prompt_toolkit REPL running on the same event loop as the DAP client."""

    def __init__(
        self,
        ctx: ViewerContext,
        registry: CommandRegistry,
        *,
        history_path: Optional[Path] = None,
    ) -> None:
        self.ctx = ctx
        self.registry = registry
        self.history_path = history_path

    def _history(self):
        if self.history_path is None:
            return InMemoryHistory()
        try:
            self.history_path.parent.mkdir(parents=True, exist_ok=True)
            self.history_path.touch(exist_ok=True)
        except OSError as exc:
            LOGGER.warning("history disabled (%s): %s", self.history_path, exc)
            return InMemoryHistory()
        return FileHistory(str(self.history_path))

    async def run(self) -> int:
        session: PromptSession = PromptSession("rtos> ", history=self._history())
        buffer: List[str] = []
        with patch_stdout():
            while True:
                try:
                    line = await session.prompt_async()
                except (EOFError, KeyboardInterrupt):
                    print()
                    return 0
                if self._handle_multiline(buffer, line):
                    continue
                payload = " ".join(buffer) if buffer else line
                buffer.clear()
                await self.dispatch(payload)

    async def dispatch(self, line: str) -> Optional[int]:
        stripped = line.strip()
        if not stripped:
            return None
        argv = split_command(stripped)
        if not argv:
            return None
        cmd_name, *cmd_args = argv
        if cmd_name.startswith(PARSE_ERROR_PREFIX):
            print(f"Parse error: {cmd_name[len(PARSE_ERROR_PREFIX) + 1:]}")
            return 1
        command = self.registry.get(cmd_name)
        if not command:
            print(f"Unknown command: {cmd_name}")
            return 1
        try:
            return await command.run(self.ctx, cmd_args)
        except SystemExit:
            raise
        except Exception as exc:
            LOGGER.exception("command failed")
            print(f"Command '{cmd_name}' failed: {exc}")
            return 1

    @staticmethod
    def _handle_multiline(buffer: List[str], line: str) -> bool:
        stripped = line.rstrip()
        if stripped.endswith("\\"):
            buffer.append(stripped[:-1])
            return True
        if buffer:
            buffer.append(stripped)
        return False
