"""RTOS plugin base: status-gated evaluation and detect/refresh lifecycle.

Every protocol request made on behalf of a variant goes through
:meth:`RTOSBase.send_request`, which refuses to issue anything unless the
program is halted and discards replies that arrive after a status change.
Busy outcomes are reported with the :data:`~rtosdbg.model.BUSY` sentinel;
missing values raise :class:`~rtosdbg.errors.RTOSNotFoundError`; session
errors propagate unchanged.
"""

from __future__ import annotations

import abc
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from .errors import RTOSNotFoundError
from .helper import RTOSVarHelper, variables_from_reply
from .model import BUSY, DetectStatus, DisplayItem, ProgStatus, ThreadInfo, Variable, VariableMap, _Busy
from .render import TableSnapshot, render_thread_table


JsonDict = Dict[str, Any]


class DebugSession(Protocol):
    """The host debugging session, treated as an asynchronous oracle."""

    async def custom_request(self, command: str, args: Optional[JsonDict] = None) -> Optional[JsonDict]:
        ...


class RTOSBase(abc.ABC):
    """Common base for RTOS variant plugins.

    ``status`` starts as ``NONE``.  After :meth:`try_detect` it is either
    ``INITIALIZED`` (RTOS found), still ``NONE`` (session was busy, retry on
    the next stop) or ``FAILED`` (give up; the host must not reuse the
    instance).
    """

    def __init__(self, session: DebugSession, name: str) -> None:
        self.session = session
        self.name = name
        self.status = DetectStatus.NONE
        self.prog_status = ProgStatus.STARTED
        self.expr_values: Dict[str, RTOSVarHelper] = {}
        self.failed_why: Optional[BaseException | str] = None
        self.epoch = 0
        self.last_table: Optional[TableSnapshot] = None
        self.logger = logging.getLogger(f"{__name__}.{name}")

    # ------------------------------------------------------------------
    # Lifecycle contract
    # ------------------------------------------------------------------
    @abc.abstractmethod
    async def try_detect(self, frame_id: int) -> "RTOSBase":
        """Attempt detection; inspect ``status`` afterwards."""

    @abc.abstractmethod
    async def refresh(self, frame_id: int) -> None:
        """Re-read RTOS structures. Only called while halted and initialized."""

    @abc.abstractmethod
    def get_html(self) -> str:
        """Markup for the last completed refresh. Must not issue requests."""

    def release(self) -> None:
        """Hook for variants to drop retained protocol handles after exit."""

    async def on_stopped(self, frame_id: int) -> None:
        self.set_prog_status(ProgStatus.STOPPED)
        await self.refresh(frame_id)

    def on_continued(self) -> None:
        self.set_prog_status(ProgStatus.RUNNING)

    def on_exited(self) -> None:
        self.set_prog_status(ProgStatus.EXITED)
        self.release()

    def mark_initialized(self) -> None:
        self.status = DetectStatus.INITIALIZED

    def mark_failed(self, why: Optional[BaseException | str] = None) -> None:
        self.status = DetectStatus.FAILED
        self.failed_why = why
        self.logger.info("%s detection failed: %s", self.name, why)

    def set_prog_status(self, status: ProgStatus) -> None:
        self.prog_status = status
        self.epoch += 1

    @property
    def is_stopped(self) -> bool:
        return self.prog_status is ProgStatus.STOPPED

    # ------------------------------------------------------------------
    # Request gate
    # ------------------------------------------------------------------
    async def send_request(self, command: str, args: JsonDict) -> Union[Optional[JsonDict], _Busy]:
        """Issue ``command`` if halted; BUSY if not, or if the reply went stale."""
        if not self.is_stopped:
            return BUSY
        epoch = self.epoch
        try:
            reply = await self.session.custom_request(command, args)
        except Exception:
            if self.epoch != epoch:
                self.logger.debug("%s failed after status change; treating as busy", command, exc_info=True)
                return BUSY
            raise
        if self.epoch != epoch or not self.is_stopped:
            self.logger.debug("discarding stale %s reply (epoch %d -> %d)", command, epoch, self.epoch)
            return BUSY
        return reply

    # ------------------------------------------------------------------
    # Evaluation utilities for variants
    # ------------------------------------------------------------------
    async def resolve_reference_if_empty(
        self,
        prev_ref: Optional[int],
        frame_id: int,
        expr: str,
        optional: bool = False,
    ) -> Union[int, _Busy]:
        """Variables reference for ``expr``; ``prev_ref`` is returned if already known.

        Optional lookups yield ``0`` when the target has no such value.
        """
        if prev_ref is not None:
            return prev_ref
        args = {"frameId": frame_id, "expression": expr, "context": "hover"}
        reply = await self.send_request("evaluate", args)
        if reply is BUSY:
            return BUSY
        reference = int(reply.get("variablesReference") or 0) if reply else 0
        if not optional and (not reply or reference == 0):
            raise RTOSNotFoundError(f"Failed to evaluate {expr}")
        return reference

    async def resolve_value_if_empty(
        self,
        prev: Optional[RTOSVarHelper],
        frame_id: int,
        expr: str,
        optional: bool = False,
    ) -> Union[Optional[RTOSVarHelper], _Busy]:
        """Resolved helper for ``expr``.

        Returns ``prev`` unchanged when given, BUSY when the session is busy
        (try again), ``None`` when the value is missing and ``optional``.
        A missing required value raises; callers should not retry it.
        """
        if prev is not None:
            return prev
        if not self.is_stopped:
            return BUSY
        helper = RTOSVarHelper(expr, self)
        if not await helper.resolve(frame_id):
            return BUSY
        if helper.value is None:
            if not optional:
                raise RTOSNotFoundError(f"{expr} not found")
            return None
        return helper

    async def enumerate_children(self, reference: int, dbg: str) -> Union[List[Variable], _Busy]:
        """Children of ``reference``; an empty list counts as a failure."""
        if not self.is_stopped:
            return BUSY
        reply = await self.send_request("variables", {"variablesReference": reference})
        if reply is BUSY:
            return BUSY
        variables = variables_from_reply(reply)
        if not variables:
            raise RTOSNotFoundError(f"Failed to evaluate variable {reference} {dbg}")
        return variables

    async def enumerate_children_as_object(self, reference: Optional[int], dbg: str) -> Union[VariableMap, _Busy]:
        if not reference:
            return VariableMap()
        variables = await self.enumerate_children(reference, dbg)
        if variables is BUSY:
            return BUSY
        return RTOSVarHelper.vars_to_map(variables)

    def cached_expression(self, expr: str) -> RTOSVarHelper:
        helper = self.expr_values.get(expr)
        if helper is None:
            helper = RTOSVarHelper(expr, self)
            self.expr_values[expr] = helper
        return helper

    async def get_cached_expression_value(self, expr: str, frame_id: int) -> Union[Optional[str], _Busy]:
        return await self.cached_expression(expr).get_value(frame_id)

    async def get_cached_expression_children(self, expr: str, frame_id: int) -> Union[List[Variable], _Busy]:
        return await self.cached_expression(expr).get_children(frame_id)

    async def get_cached_expression_children_as_object(self, expr: str, frame_id: int) -> Union[VariableMap, _Busy]:
        return await self.cached_expression(expr).get_children_as_object(frame_id)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def render_table(
        self,
        field_names: Sequence[str],
        display_items: Mapping[str, DisplayItem],
        threads: Sequence[ThreadInfo],
        time_info: Optional[str] = None,
    ) -> str:
        self.last_table = TableSnapshot(list(field_names), dict(display_items), list(threads), time_info)
        return render_thread_table(field_names, display_items, threads, time_info, name=self.name)

    def get_text(self) -> str:
        """Plain-text view of the last rendered table."""
        table = self.last_table
        return table.as_text() if table else ""
