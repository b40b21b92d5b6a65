"""Data model shared by the RTOS evaluator, variant plugins and renderers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple


class ProgStatus(str, Enum):
    """Whether the debugged target is currently halted."""

    STARTED = "started"
    STOPPED = "stopped"
    RUNNING = "running"
    EXITED = "exited"


class DetectStatus(str, Enum):
    """Outcome of RTOS detection for one plugin instance."""

    NONE = "none"
    INITIALIZED = "initialized"
    FAILED = "failed"


class _Busy:
    """Sentinel returned when the program is not halted; retry later."""

    _instance: Optional["_Busy"] = None

    def __new__(cls) -> "_Busy":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "BUSY"


BUSY = _Busy()


def is_busy(value: Any) -> bool:
    return value is BUSY


@dataclass(frozen=True)
class DisplayItem:
    """Column schema entry: label rows and proportional width."""

    width: float
    header_row1: str
    header_row2: str = ""


@dataclass
class StackInfo:
    stack_start: int
    stack_top: int
    stack_end: Optional[int] = None
    stack_size: Optional[int] = None
    stack_used: Optional[int] = None
    stack_free: Optional[int] = None
    stack_peak: Optional[int] = None
    bytes: Optional[bytes] = None


@dataclass
class ThreadInfo:
    """One row record: display strings keyed by field name plus raw stack data."""

    display: Dict[str, str] = field(default_factory=dict)
    stack_info: StackInfo = field(default_factory=lambda: StackInfo(stack_start=0, stack_top=0))


@dataclass(frozen=True)
class Variable:
    """Child descriptor returned by a ``variables`` request."""

    name: str
    value: str
    variables_reference: int = 0
    evaluate_name: Optional[str] = None

    @classmethod
    def from_dap(cls, payload: Mapping[str, Any]) -> "Variable":
        try:
            reference = int(payload.get("variablesReference") or 0)
        except (TypeError, ValueError):
            reference = 0
        return cls(
            name=str(payload.get("name", "")),
            value=str(payload.get("value", "")),
            variables_reference=reference,
            evaluate_name=payload.get("evaluateName"),
        )


@dataclass(frozen=True)
class ChildFields:
    value: str
    reference: int
    expression: Optional[str]


_SUFFIXES: Tuple[Tuple[str, str], ...] = (
    ("-val", "value"),
    ("-ref", "reference"),
    ("-exp", "expression"),
)


class VariableMap(Mapping[str, Any]):
    """Children of a composite value keyed by member name.

    Reads as a flat mapping (``"<name>-val"``, ``"<name>-ref"``,
    ``"<name>-exp"``) so variants can pick sub-fields by key, while
    ``child(name)`` returns the typed :class:`ChildFields`.
    """

    def __init__(self, children: Optional[Mapping[str, ChildFields]] = None) -> None:
        self._children: Dict[str, ChildFields] = dict(children or {})

    @classmethod
    def from_variables(cls, variables: Iterable[Variable]) -> "VariableMap":
        children: Dict[str, ChildFields] = {}
        for var in variables:
            children[var.name] = ChildFields(
                value=var.value,
                reference=var.variables_reference,
                expression=var.evaluate_name,
            )
        return cls(children)

    def child(self, name: str) -> Optional[ChildFields]:
        return self._children.get(name)

    def names(self) -> List[str]:
        return list(self._children)

    def _split_key(self, key: str) -> Tuple[str, str]:
        for suffix, attr in _SUFFIXES:
            if key.endswith(suffix):
                return key[: -len(suffix)], attr
        raise KeyError(key)

    def __getitem__(self, key: str) -> Any:
        name, attr = self._split_key(key)
        entry = self._children.get(name)
        if entry is None:
            raise KeyError(key)
        return getattr(entry, attr)

    def __iter__(self) -> Iterator[str]:
        for name in self._children:
            for suffix, _ in _SUFFIXES:
                yield name + suffix

    def __len__(self) -> int:
        return len(self._children) * len(_SUFFIXES)

    def __repr__(self) -> str:
        return f"VariableMap({dict(self)!r})"
