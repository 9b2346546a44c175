"""Tests for DecisionEmitter."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from fakes import FakeExecutor

from wingman.actions import ActionKind
from wingman.config import CoordinatorConfig
from wingman.coordinator import AnalysisOrchestrator, CoordinatorState, DecisionEmitter, parse_action
from wingman.errors import RequestFailed
from wingman.models import (
    AnalysisResult,
    Context,
    Direction,
    Entity,
    PreferenceProfile,
    StyleProfile,
    Suggestion,
    GenerationMode,
)


@pytest.fixture
def state() -> CoordinatorState:
    state = CoordinatorState()
    state.supersede()
    return state


@pytest.fixture
def emitter(state, inference, executor, event_log) -> DecisionEmitter:
    orchestrator = AnalysisOrchestrator(state, inference, CoordinatorConfig.immediate(), event_log)
    return DecisionEmitter(orchestrator, executor, event_log)


def entity() -> Entity:
    return Entity(identity_hash="Sam-30", name="Sam", age=30, bio="Climber and cook")


class TestParseAction:
    """Tests for decision parsing."""

    def test_valid(self):
        action = parse_action({"decision": "right", "confidence": 80, "reasons": ["climbs"], "match_percentage": "72"})
        assert action.direction is Direction.ACCEPT
        assert action.confidence == 80
        assert action.reasons == ("climbs",)
        assert action.match_percentage == 72

    def test_confidence_clamped(self):
        assert parse_action({"decision": "super", "confidence": 140}).confidence == 100

    @pytest.mark.parametrize("data", [None, {}, {"decision": "maybe"}])
    def test_safe_default(self, data):
        action = parse_action(data)
        assert action.direction is Direction.REJECT
        assert action.confidence == 50


class TestDecide:
    """Tests for DecisionEmitter.decide."""

    @pytest.mark.asyncio
    async def test_parsed_action(self, emitter):
        action = await emitter.decide(entity(), AnalysisResult(), PreferenceProfile())
        assert action.direction is Direction.ACCEPT
        assert action.confidence == 80

    @pytest.mark.asyncio
    async def test_failure_gives_safe_default(self, emitter, inference):
        inference.decide.side_effect = RequestFailed("timeout")

        action = await emitter.decide(entity(), None, PreferenceProfile())

        assert action.direction is Direction.REJECT
        assert action.confidence == 50

    @pytest.mark.asyncio
    async def test_superseded_entity_gets_no_action(self, emitter, inference, state):
        release = asyncio.Event()

        async def slow_decide(*args):
            await release.wait()
            return {"decision": "right"}

        inference.decide.side_effect = slow_decide
        task = asyncio.create_task(emitter.decide(entity(), None, PreferenceProfile()))
        await asyncio.sleep(0)
        state.supersede()
        release.set()

        assert await task is None


class TestExecution:
    """Tests for handing actions to the executor."""

    @pytest.mark.asyncio
    async def test_emit_swipe(self, emitter, executor):
        action = parse_action({"decision": "left", "confidence": 60})

        assert await emitter.emit(action) is True

        params = executor.of_kind(ActionKind.SWIPE)[0]
        assert params["direction"] == "reject"

    @pytest.mark.asyncio
    async def test_executor_false_not_retried(self, state, inference, event_log):
        executor = FakeExecutor(result=False)
        orchestrator = AnalysisOrchestrator(state, inference, event_log=event_log)
        emitter = DecisionEmitter(orchestrator, executor, event_log)

        assert await emitter.show_status("hello") is False
        assert len(executor.actions) == 1

    @pytest.mark.asyncio
    async def test_executor_exception_logged(self, state, inference, event_log):
        executor = AsyncMock()
        executor.execute.side_effect = RuntimeError("no such element")
        orchestrator = AnalysisOrchestrator(state, inference, event_log=event_log)
        emitter = DecisionEmitter(orchestrator, executor, event_log)

        assert await emitter.insert_text("hi") is False
        executor.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_show_analysis_carries_raw_fields(self, emitter, executor):
        await emitter.show_analysis(entity(), AnalysisResult(error="No API key configured"))

        params = executor.of_kind(ActionKind.SHOW_ANALYSIS)[0]
        assert params["entity"]["name"] == "Sam"
        assert params["analysis"] == {"error": "No API key configured"}
        assert params["loading"] is False

    @pytest.mark.asyncio
    async def test_suggest_and_show(self, emitter, executor, state):
        context = Context("Jane-1", "Jane", state.version)

        suggestion = await emitter.suggest(context, StyleProfile())
        await emitter.show_suggestion(suggestion)

        assert suggestion == Suggestion("Hey there!", GenerationMode.OPENER, state.version, "Jane-1")
        assert executor.of_kind(ActionKind.SHOW_SUGGESTION)[0]["text"] == "Hey there!"
