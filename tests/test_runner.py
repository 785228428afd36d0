import asyncio
import logging

import pytest

from member_agent.errors import FlowAborted, SessionInvalid
from member_agent.models import FlowContext, FlowDefinition, FlowStep, InteractionSurface
from member_agent.runner import merge_capture, run_flow


def make_ctx(page=object()):
    surface = InteractionSurface(page=page) if page is not None else None
    return FlowContext(config=None, logger=logging.getLogger("test"), surface=surface)


def make_flow(*actions):
    steps = [FlowStep(name=f"step-{i}", action=action, description=f"step {i}") for i, action in enumerate(actions)]
    return FlowDefinition(name="test-flow", description="test", steps=steps)


def test_merge_capture():
    target = {"a": [1], "b": "old", "c": []}
    merge_capture(target, {"a": [2, 3], "b": "new", "c": [4], "d": {"x": 1}})
    assert target == {"a": [1, 2, 3], "b": "new", "c": [4], "d": {"x": 1}}


def test_run_flow_collects_flow_data():
    async def first(ctx):
        ctx.flow_data.setdefault("matches", []).append("mon")

    async def second(ctx):
        ctx.flow_data["matches"].append("wed")

    result = asyncio.run(run_flow(make_flow(first, second), make_ctx()))
    assert result.steps_completed == 2
    assert result.data == {"matches": ["mon", "wed"]}


def test_failed_step_carries_partial_result():
    async def first(ctx):
        ctx.flow_data["matches"] = ["mon"]

    async def broken(ctx):
        raise ValueError("Missing --days or --time parameter.")

    async def never(ctx):
        raise AssertionError("should not run")

    with pytest.raises(FlowAborted) as exc:
        asyncio.run(run_flow(make_flow(first, broken, never), make_ctx()))

    aborted = exc.value
    assert aborted.step == "step-1"
    assert aborted.flow == "test-flow"
    assert isinstance(aborted.cause, ValueError)
    assert aborted.result.steps_completed == 1
    assert aborted.result.data == {"matches": ["mon"]}


def test_session_invalid_triggers_relogin_and_retry():
    calls = []

    async def needs_session(ctx):
        calls.append("step")
        if "relogin" not in calls:
            raise SessionInvalid("expired")

    async def relogin(ctx):
        calls.append("relogin")

    result = asyncio.run(run_flow(make_flow(needs_session), make_ctx(), relogin=relogin))
    assert calls == ["step", "relogin", "step"]
    assert result.steps_completed == 1


def test_session_invalid_without_relogin_aborts():
    async def needs_session(ctx):
        raise SessionInvalid("expired")

    with pytest.raises(FlowAborted) as exc:
        asyncio.run(run_flow(make_flow(needs_session), make_ctx()))
    assert isinstance(exc.value.cause, SessionInvalid)


def test_relogin_only_retries_once():
    calls = []

    async def always_invalid(ctx):
        calls.append("step")
        raise SessionInvalid("expired")

    async def relogin(ctx):
        calls.append("relogin")

    with pytest.raises(FlowAborted):
        asyncio.run(run_flow(make_flow(always_invalid), make_ctx(), relogin=relogin))
    assert calls == ["step", "relogin", "step"]


def test_dry_run_skips_actions_and_page():
    async def never(ctx):
        raise AssertionError("should not run")

    result = asyncio.run(run_flow(make_flow(never, never), make_ctx(page=None), dry_run=True))
    assert result.steps_completed == 2
    assert result.data == {}


def test_missing_page_is_an_error():
    async def step(ctx):
        pass

    with pytest.raises(RuntimeError):
        asyncio.run(run_flow(make_flow(step), make_ctx(page=None)))
