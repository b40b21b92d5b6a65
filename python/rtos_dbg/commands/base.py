"""Command base classes for rtos-dbg."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..context import ViewerContext


@dataclass
class Command:
    """Abstract command description."""

    name: str
    description: str
    aliases: Sequence[str] = field(default_factory=tuple)

    async def run(self, ctx: ViewerContext, argv: List[str]) -> int:
        raise NotImplementedError("Command must implement run()")

    def format_help(self) -> str:
        return f"{self.name:<12} {self.description}"


def parse_or_none(parser: argparse.ArgumentParser, argv: List[str]) -> Optional[argparse.Namespace]:
    try:
        return parser.parse_args(argv)
    except SystemExit:
        return None
