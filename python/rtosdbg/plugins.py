"""Loading RTOS variant factories from ``module:attr`` specifications."""

from __future__ import annotations

import importlib
import os
from typing import Callable, Iterable, List, Optional

from .base import DebugSession, RTOSBase

PLUGINS_ENV = "RTOS_DBG_PLUGINS"

RTOSFactory = Callable[[DebugSession], RTOSBase]


def load_factory(spec: str) -> RTOSFactory:
    """Import ``package.module:Name`` and return it as a variant factory."""
    module_name, _, attr = spec.strip().partition(":")
    if not module_name or not attr:
        raise RuntimeError(f"Invalid plugin spec: {spec!r} (expected module:attr)")
    module = importlib.import_module(module_name)
    try:
        factory = getattr(module, attr)
    except AttributeError as exc:
        raise RuntimeError(f"Plugin {spec!r}: {module_name} has no attribute {attr}") from exc
    if not callable(factory):
        raise RuntimeError(f"Plugin {spec!r} is not callable")
    return factory


def plugin_specs_from_env(environ: Optional[dict] = None) -> List[str]:
    raw = (environ if environ is not None else os.environ).get(PLUGINS_ENV, "")
    return [item.strip() for item in raw.replace(";", ",").split(",") if item.strip()]


def load_factories(specs: Iterable[str]) -> List[RTOSFactory]:
    return [load_factory(spec) for spec in specs]
