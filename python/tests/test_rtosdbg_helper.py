"""Evaluation cache entry tests."""

from __future__ import annotations

import asyncio

import pytest

from rtosdbg import BUSY, ChildFields, ProgStatus, RTOSNotFoundError, RTOSVarHelper, Variable, VariableMap
from rtosdbg.helper import variables_from_reply

from dap_stubs import FakeSession, ToyRTOS


def _helper(session: FakeSession, expr: str, status: ProgStatus = ProgStatus.STOPPED) -> RTOSVarHelper:
    rtos = ToyRTOS(session)
    rtos.set_prog_status(status)
    return RTOSVarHelper(expr, rtos)


def _x_session() -> FakeSession:
    return FakeSession(
        evaluate={"x": {"result": "{...}", "variablesReference": 4}},
        variables={4: [{"name": "a", "value": "1", "variablesReference": 5, "evaluateName": "x.a"}]},
    )


def test_children_projection():
    helper = _helper(_x_session(), "x")
    result = asyncio.run(helper.get_children_as_object(1))
    assert result == {"a-val": "1", "a-ref": 5, "a-exp": "x.a"}
    assert result.child("a") == ChildFields(value="1", reference=5, expression="x.a")
    assert result.names() == ["a"]


def test_variable_map_missing_keys():
    result = VariableMap.from_variables([Variable(name="a", value="1")])
    assert result["a-exp"] is None
    with pytest.raises(KeyError):
        result["b-val"]
    with pytest.raises(KeyError):
        result["a"]
    assert result.get("a-xyz") is None
    assert len(result) == 3


def test_resolve_overwrites_cached_value():
    session = _x_session()
    helper = _helper(session, "x")
    assert asyncio.run(helper.resolve(1)) is True
    assert helper.value == "{...}"
    session.evaluate["x"] = {"result": "0", "variablesReference": 0}
    assert asyncio.run(helper.resolve(1)) is True
    assert helper.value == "0"
    assert helper.variables_reference == 0


def test_resolve_not_stopped_keeps_cache():
    session = _x_session()
    helper = _helper(session, "x")
    asyncio.run(helper.resolve(1))
    helper.rtos.on_continued()
    assert asyncio.run(helper.resolve(1)) is False
    assert helper.value == "{...}"
    assert len(session.requests) == 1


def test_protocol_error_resolves_to_no_value():
    session = FakeSession(errors={"x": RuntimeError("not found")})
    helper = _helper(session, "x")
    assert asyncio.run(helper.resolve(1)) is True
    assert helper.value is None
    assert helper.variables_reference is None
    assert asyncio.run(helper.get_value(1)) is None


def test_get_value_busy_when_running():
    helper = _helper(_x_session(), "x", ProgStatus.RUNNING)
    assert asyncio.run(helper.get_value(1)) is BUSY


def test_get_children_requires_reference():
    session = FakeSession(evaluate={"n": {"result": "3", "variablesReference": 0}})
    helper = _helper(session, "n")
    with pytest.raises(RTOSNotFoundError):
        asyncio.run(helper.get_children(1))
    assert session.commands() == ["evaluate"]


def test_get_children_empty_list_raises():
    session = FakeSession(evaluate={"x": {"result": "{...}", "variablesReference": 4}}, variables={4: []})
    helper = _helper(session, "x")
    with pytest.raises(RTOSNotFoundError):
        asyncio.run(helper.get_children(1))


def test_get_children_stale_reply_is_busy():
    session = _x_session()
    helper = _helper(session, "x")

    def _continue_on_variables(command, args):
        if command == "variables":
            helper.rtos.on_continued()

    session.hook = _continue_on_variables
    assert asyncio.run(helper.get_children(1)) is BUSY


def test_variables_from_reply_skips_junk():
    reply = {"variables": [{"name": "a", "value": "1", "variablesReference": "bad"}, "junk"]}
    assert variables_from_reply(reply) == [Variable(name="a", value="1", variables_reference=0)]
    assert variables_from_reply(None) == []
    assert variables_from_reply({"variables": None}) == []
