#!/usr/bin/env python3
"""Entry point for the rtos-dbg thread viewer."""

from __future__ import annotations

from rtos_dbg import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
