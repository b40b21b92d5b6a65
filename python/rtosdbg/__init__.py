"""
rtosdbg - Shared RTOS-introspection toolkit for debug front-ends.

This package is the common surface for RTOS variant plugins (FreeRTOS,
Zephyr, ...) that inspect a halted target through a Debug Adapter Protocol
session.  Each module is implemented in its own file to keep
responsibilities clear:

    model.py      → status enums, row records, column schema, child maps
    helper.py     → per-expression evaluation cache entry
    base.py       → status-gated evaluator and plugin lifecycle
    render.py     → thread table rendering (markup and text)
    transport.py  → DAP framing over asyncio streams
    events.py     → typed adapter events and dispatch
    client.py     → asynchronous DAP request/response session
    plugins.py    → loading variant factories
    tracker.py    → host coordinator (detect, refresh, render)
"""

from .model import (  # noqa: F401
    BUSY,
    ChildFields,
    DetectStatus,
    DisplayItem,
    ProgStatus,
    StackInfo,
    ThreadInfo,
    Variable,
    VariableMap,
    is_busy,
)
from .errors import RTOSDetectionError, RTOSError, RTOSNotFoundError  # noqa: F401
from .helper import RTOSVarHelper  # noqa: F401
from .base import DebugSession, RTOSBase  # noqa: F401
from .render import format_text_table, render_thread_table  # noqa: F401
from .transport import DAPTransport, TransportConfig, TransportError  # noqa: F401
from .events import (  # noqa: F401
    BaseEvent,
    ContinuedEvent,
    EventBus,
    EventSubscription,
    ExitedEvent,
    OutputEvent,
    StoppedEvent,
    TerminatedEvent,
    parse_event,
)
from .client import DAPClient, DAPRequestError  # noqa: F401
from .plugins import PLUGINS_ENV, load_factories, load_factory, plugin_specs_from_env  # noqa: F401
from .tracker import RTOSTracker, TrackerConfig  # noqa: F401

__all__ = [
    "BUSY",
    "is_busy",
    "ProgStatus",
    "DetectStatus",
    "DisplayItem",
    "StackInfo",
    "ThreadInfo",
    "Variable",
    "ChildFields",
    "VariableMap",
    "RTOSError",
    "RTOSNotFoundError",
    "RTOSDetectionError",
    "RTOSVarHelper",
    "DebugSession",
    "RTOSBase",
    "render_thread_table",
    "format_text_table",
    "DAPTransport",
    "TransportConfig",
    "TransportError",
    "EventBus",
    "EventSubscription",
    "BaseEvent",
    "StoppedEvent",
    "ContinuedEvent",
    "ExitedEvent",
    "TerminatedEvent",
    "OutputEvent",
    "parse_event",
    "DAPClient",
    "DAPRequestError",
    "load_factory",
    "load_factories",
    "plugin_specs_from_env",
    "PLUGINS_ENV",
    "RTOSTracker",
    "TrackerConfig",
]

__version__ = "0.1.0"
