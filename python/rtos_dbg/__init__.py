"""
rtos-dbg CLI package.

Connects to a Debug Adapter Protocol server, drives RTOS variant detection
on every stop and shows the resulting thread table.  Run ``rtos-dbg`` or
``python -m rtos_dbg.cli``.
"""

from __future__ import annotations

from .cli import main

__all__ = ["main"]
__version__ = "0.1.0"
