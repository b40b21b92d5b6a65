"""Command line splitting for the rtos-dbg prompt."""

from __future__ import annotations

import shlex
from typing import List

PARSE_ERROR_PREFIX = "#parse-error"


def split_command(line: str) -> List[str]:
    """Split a prompt line into argv tokens; unbalanced quotes yield a parse-error marker."""
    if not line:
        return []
    try:
        return shlex.split(line, comments=True, posix=True)
    except ValueError as exc:
        return [f"{PARSE_ERROR_PREFIX}:{exc}", line.strip()]
