"""Evaluation cache entry: resolve-and-cache for one expression."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Union

from .errors import RTOSNotFoundError
from .model import BUSY, ProgStatus, Variable, VariableMap, _Busy

if TYPE_CHECKING:  # pragma: no cover
    from .base import RTOSBase


logger = logging.getLogger(__name__)


def variables_from_reply(reply: Optional[Dict[str, Any]]) -> List[Variable]:
    if not reply:
        return []
    raw = reply.get("variables")
    if not isinstance(raw, list):
        return []
    return [Variable.from_dap(item) for item in raw if isinstance(item, dict)]


class RTOSVarHelper:
    """Caches the last resolved value and child reference of ``expression``.

    The cached value is only meaningful while the owning instance stays
    stopped; callers re-request explicitly after a continue.
    """

    def __init__(self, expression: str, rtos: "RTOSBase") -> None:
        self.expression = expression
        self.rtos = rtos
        self.value: Optional[str] = None
        self.variables_reference: Optional[int] = None

    def __repr__(self) -> str:
        return f"RTOSVarHelper({self.expression!r}, value={self.value!r}, ref={self.variables_reference!r})"

    @staticmethod
    def vars_to_map(variables: Iterable[Variable]) -> VariableMap:
        return VariableMap.from_variables(variables)

    async def resolve(self, frame_id: int) -> bool:
        """Evaluate the expression and overwrite the cached value.

        Returns False when the target is not halted (or went away while the
        reply was in flight); nothing is cached in that case. A session error
        resolves to "no value" and still returns True.
        """
        if self.rtos.prog_status is not ProgStatus.STOPPED:
            return False
        args = {"frameId": frame_id, "expression": self.expression, "context": "hover"}
        try:
            reply = await self.rtos.send_request("evaluate", args)
        except Exception as exc:
            logger.debug("evaluate %r failed: %s", self.expression, exc)
            self.value = None
            self.variables_reference = None
            return True
        if reply is BUSY:
            return False
        if reply:
            self.value = reply.get("result")
            self.variables_reference = reply.get("variablesReference")
        else:
            self.value = None
            self.variables_reference = None
        return True

    async def get_value(self, frame_id: int) -> Union[Optional[str], _Busy]:
        if self.rtos.prog_status is not ProgStatus.STOPPED:
            return BUSY
        if not await self.resolve(frame_id):
            return BUSY
        return self.value

    async def get_children(self, frame_id: int) -> Union[List[Variable], _Busy]:
        value = await self.get_value(frame_id)
        if value is BUSY:
            return BUSY
        if not self.variables_reference or not value:
            raise RTOSNotFoundError(f"Failed to get variable reference for {self.expression}")
        args = {"variablesReference": self.variables_reference}
        reply = await self.rtos.send_request("variables", args)
        if reply is BUSY:
            return BUSY
        variables = variables_from_reply(reply)
        if not variables:
            raise RTOSNotFoundError(f"Failed to evaluate variable {self.expression} {self.variables_reference}")
        return variables

    async def get_children_as_object(self, frame_id: int) -> Union[VariableMap, _Busy]:
        variables = await self.get_children(frame_id)
        if variables is BUSY:
            return BUSY
        return self.vars_to_map(variables)
