"""Status gate, cache and lifecycle tests for RTOSBase."""

from __future__ import annotations

import asyncio

import pytest

from rtosdbg import BUSY, DetectStatus, ProgStatus, RTOSNotFoundError, RTOSVarHelper, VariableMap, is_busy

from dap_stubs import FakeSession, ToyRTOS, toy_session


def _stopped(session: FakeSession) -> ToyRTOS:
    rtos = ToyRTOS(session)
    rtos.set_prog_status(ProgStatus.STOPPED)
    return rtos


GATED_CALLS = [
    ("resolve_reference_if_empty", lambda r: r.resolve_reference_if_empty(None, 1, "toy_threads")),
    ("resolve_value_if_empty", lambda r: r.resolve_value_if_empty(None, 1, "toy_threads")),
    ("enumerate_children", lambda r: r.enumerate_children(10, "toy_threads")),
    ("enumerate_children_as_object", lambda r: r.enumerate_children_as_object(10, "toy_threads")),
    ("get_cached_expression_value", lambda r: r.get_cached_expression_value("toy_threads", 1)),
    ("get_cached_expression_children", lambda r: r.get_cached_expression_children("toy_threads", 1)),
    (
        "get_cached_expression_children_as_object",
        lambda r: r.get_cached_expression_children_as_object("toy_threads", 1),
    ),
]


@pytest.mark.parametrize("status", [ProgStatus.STARTED, ProgStatus.RUNNING, ProgStatus.EXITED])
@pytest.mark.parametrize("name,call", GATED_CALLS, ids=[name for name, _ in GATED_CALLS])
def test_gate_closed_returns_busy_without_requests(status, name, call):
    session = toy_session()
    rtos = ToyRTOS(session)
    rtos.set_prog_status(status)
    result = asyncio.run(call(rtos))
    assert result is BUSY
    assert is_busy(result)
    assert not result
    assert session.requests == []


def test_resolve_value_returns_prev_without_request():
    session = toy_session()
    rtos = _stopped(session)
    first = asyncio.run(rtos.resolve_value_if_empty(None, 1, "toy_threads"))
    assert isinstance(first, RTOSVarHelper)
    assert first.value == "{...}"
    assert first.variables_reference == 10
    assert len(session.requests) == 1
    again = asyncio.run(rtos.resolve_value_if_empty(first, 1, "toy_threads"))
    assert again is first
    assert len(session.requests) == 1


def test_resolve_reference_returns_prev_without_request():
    session = toy_session()
    rtos = _stopped(session)
    assert asyncio.run(rtos.resolve_reference_if_empty(42, 1, "toy_threads")) == 42
    assert session.requests == []


def test_missing_required_value_raises():
    rtos = _stopped(FakeSession())
    with pytest.raises(RTOSNotFoundError):
        asyncio.run(rtos.resolve_value_if_empty(None, 1, "no_such_symbol"))


def test_missing_optional_value_is_absent():
    rtos = _stopped(FakeSession())
    assert asyncio.run(rtos.resolve_value_if_empty(None, 1, "no_such_symbol", optional=True)) is None


def test_adapter_error_counts_as_missing_value():
    session = FakeSession(errors={"broken": RuntimeError("evaluate failed")})
    rtos = _stopped(session)
    with pytest.raises(RTOSNotFoundError):
        asyncio.run(rtos.resolve_value_if_empty(None, 1, "broken"))
    assert asyncio.run(rtos.resolve_value_if_empty(None, 1, "broken", optional=True)) is None


def test_reference_zero_is_allowed_only_when_optional():
    session = FakeSession(evaluate={"uxTopUsedPriority": {"result": "7", "variablesReference": 0}})
    rtos = _stopped(session)
    assert asyncio.run(rtos.resolve_reference_if_empty(None, 1, "uxTopUsedPriority", optional=True)) == 0
    with pytest.raises(RTOSNotFoundError):
        asyncio.run(rtos.resolve_reference_if_empty(None, 1, "uxTopUsedPriority"))


def test_reference_without_reply_is_absent_when_optional():
    session = FakeSession()
    rtos = _stopped(session)
    assert asyncio.run(rtos.resolve_reference_if_empty(None, 1, "missing", optional=True)) == 0
    assert session.commands() == ["evaluate"]
    with pytest.raises(RTOSNotFoundError):
        asyncio.run(rtos.resolve_reference_if_empty(None, 1, "missing"))


def test_evaluate_request_shape():
    session = toy_session()
    rtos = _stopped(session)
    asyncio.run(rtos.resolve_reference_if_empty(None, 3, "toy_threads"))
    assert session.requests == [("evaluate", {"frameId": 3, "expression": "toy_threads", "context": "hover"})]


def test_cached_expression_scenario():
    session = FakeSession(evaluate={"&pxCurrentTCB": {"result": "0x2000", "variablesReference": 7}})
    rtos = _stopped(session)
    current = asyncio.run(rtos.resolve_value_if_empty(None, 1, "&pxCurrentTCB"))
    assert current.value == "0x2000"
    assert current.variables_reference == 7
    assert asyncio.run(rtos.resolve_value_if_empty(current, 1, "&pxCurrentTCB")) is current
    assert len(session.requests) == 1

    rtos.on_continued()
    assert asyncio.run(rtos.resolve_value_if_empty(None, 1, "&pxCurrentTCB")) is BUSY
    assert len(session.requests) == 1

    rtos.set_prog_status(ProgStatus.STOPPED)
    session.evaluate["&pxCurrentTCB"] = {"result": "0x2400", "variablesReference": 8}
    fresh = asyncio.run(rtos.resolve_value_if_empty(None, 1, "&pxCurrentTCB"))
    assert fresh.value == "0x2400"
    assert len(session.requests) == 2


def test_stale_reply_is_discarded():
    session = toy_session()
    rtos = _stopped(session)
    session.hook = lambda command, args: rtos.on_continued()
    assert asyncio.run(rtos.resolve_value_if_empty(None, 1, "toy_threads")) is BUSY
    assert len(session.requests) == 1


def test_reply_after_continue_stop_cycle_is_discarded():
    session = toy_session()
    rtos = _stopped(session)

    def _cycle(command, args):
        rtos.on_continued()
        rtos.set_prog_status(ProgStatus.STOPPED)

    session.hook = _cycle
    assert asyncio.run(rtos.resolve_reference_if_empty(None, 1, "toy_threads")) is BUSY


def test_error_after_status_change_is_busy():
    session = FakeSession(errors={"toy_threads": RuntimeError("target running")})
    rtos = _stopped(session)
    session.hook = lambda command, args: rtos.on_continued()
    assert asyncio.run(rtos.resolve_reference_if_empty(None, 1, "toy_threads")) is BUSY


def test_session_error_propagates_while_stopped():
    session = FakeSession(errors={"toy_threads": RuntimeError("adapter gone")})
    rtos = _stopped(session)
    with pytest.raises(RuntimeError, match="adapter gone"):
        asyncio.run(rtos.resolve_reference_if_empty(None, 1, "toy_threads"))


def test_enumerate_children_as_object_zero_reference_short_circuits():
    session = toy_session()
    rtos = _stopped(session)
    for reference in (0, None):
        result = asyncio.run(rtos.enumerate_children_as_object(reference, "scalar"))
        assert isinstance(result, VariableMap)
        assert len(result) == 0
    assert session.requests == []


def test_enumerate_children_empty_list_raises():
    session = FakeSession(variables={5: []})
    rtos = _stopped(session)
    with pytest.raises(RTOSNotFoundError):
        asyncio.run(rtos.enumerate_children(5, "empty"))


def test_enumerate_children_returns_variables():
    session = toy_session()
    rtos = _stopped(session)
    children = asyncio.run(rtos.enumerate_children(10, "toy_threads"))
    assert [child.name for child in children] == ["[0]", "[1]"]
    assert children[0].variables_reference == 20
    assert children[0].evaluate_name == "toy_threads[[0]]"


def test_cache_entries_are_created_once_and_kept():
    session = toy_session()
    rtos = _stopped(session)
    asyncio.run(rtos.get_cached_expression_value("toy_threads", 1))
    entry = rtos.expr_values["toy_threads"]
    asyncio.run(rtos.get_cached_expression_value("toy_threads", 1))
    assert rtos.expr_values["toy_threads"] is entry
    # cached entries re-evaluate on every call
    assert session.commands() == ["evaluate", "evaluate"]
    rtos.on_exited()
    assert rtos.expr_values["toy_threads"] is entry


def test_lifecycle_transitions():
    session = toy_session()
    rtos = ToyRTOS(session)
    assert rtos.status is DetectStatus.NONE
    assert rtos.prog_status is ProgStatus.STARTED
    rtos.set_prog_status(ProgStatus.STOPPED)
    asyncio.run(rtos.try_detect(1))
    assert rtos.status is DetectStatus.INITIALIZED
    asyncio.run(rtos.on_stopped(1))
    assert rtos.is_stopped
    assert rtos.refreshes == 1
    assert "task1" in rtos.get_html()
    rtos.on_continued()
    assert rtos.prog_status is ProgStatus.RUNNING
    rtos.on_exited()
    assert rtos.prog_status is ProgStatus.EXITED


def test_try_detect_while_running_stays_undetected():
    session = toy_session()
    rtos = ToyRTOS(session)
    rtos.set_prog_status(ProgStatus.RUNNING)
    asyncio.run(rtos.try_detect(1))
    assert rtos.status is DetectStatus.NONE
    assert session.requests == []


def test_mark_failed_records_reason():
    rtos = ToyRTOS(FakeSession())
    rtos.mark_failed("no symbols")
    assert rtos.status is DetectStatus.FAILED
    assert rtos.failed_why == "no symbols"


def test_status_changes_bump_epoch():
    rtos = ToyRTOS(FakeSession())
    start = rtos.epoch
    rtos.set_prog_status(ProgStatus.STOPPED)
    rtos.on_continued()
    assert rtos.epoch == start + 2


def test_get_text_uses_last_rendered_table():
    session = toy_session()
    rtos = _stopped(session)
    assert rtos.get_text() == ""
    asyncio.run(rtos.try_detect(1))
    asyncio.run(rtos.on_stopped(1))
    text = rtos.get_text()
    assert "task1" in text
    assert "Data collected at 12:00:00" in text
