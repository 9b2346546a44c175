"""End-to-end tests for the Coordinator pipelines."""

import asyncio
from dataclasses import replace

import pytest
from fakes import no_sleep

from wingman.actions import ActionKind
from wingman.config import CoordinatorConfig
from wingman.coordinator import ContextPhase, Coordinator, OutcomeStatus, build_coordinator
from wingman.inference import GroqInferenceService
from wingman.models import Direction, GenerationMode, Message, Sender
from wingman.surface import RawFields


def alice() -> RawFields:
    return RawFields(identity="Alice-25", name="Alice", age=25, bio="Loves the ocean", images=("a.jpg",))


def profile(name: str, bio: str = "Climbs rocks on weekends") -> RawFields:
    return RawFields(identity=f"{name}-28", name=name, age=28, bio=bio)


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def coordinator(observer, executor, inference, store, event_log) -> Coordinator:
    coordinator = Coordinator(
        observer, executor, inference, store, CoordinatorConfig.immediate(),
        event_log=event_log, sleep=no_sleep,
    )
    coordinator.start()
    return coordinator


class TestStart:
    """Tests for coordinator startup."""

    def test_wires_three_detectors(self, coordinator, observer, store):
        assert len(observer.subscribers) == 3
        assert len(observer.pollers) == 3
        assert store.get("stats")["sessions"] == 1

    def test_start_idempotent(self, coordinator, observer):
        coordinator.start()
        assert len(observer.subscribers) == 3


class TestEntityPipeline:
    """Tests for entity detection, analysis and decisions."""

    @pytest.mark.asyncio
    async def test_missing_credentials_still_shows_profile(
        self, observer, executor, store, event_log, monkeypatch
    ):
        """Analysis without an API key reports the error and still shows the entity."""
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        service = GroqInferenceService(api_key=lambda: store.get("settings")["api_key"])
        coordinator = Coordinator(
            observer, executor, service, store, CoordinatorConfig.immediate(),
            event_log=event_log, sleep=no_sleep,
        )
        coordinator.start()

        observer.mutate(alice())
        await coordinator.drain()

        shown = executor.of_kind(ActionKind.SHOW_ANALYSIS)
        assert len(shown) == 2
        assert shown[0]["entity"]["name"] == "Alice"
        assert shown[0]["loading"] is True
        assert shown[1]["analysis"] == {"error": "No API key configured"}
        assert shown[1]["entity"]["bio"] == "Loves the ocean"
        assert coordinator.state.in_flight is False

    @pytest.mark.asyncio
    async def test_duplicate_signals_analyze_once(self, coordinator, observer, inference):
        observer.mutate(alice())
        observer.tick()
        observer.mutate(alice())
        await coordinator.drain()

        inference.analyze_entity.assert_awaited_once()
        assert coordinator.state.version == 1

    @pytest.mark.asyncio
    async def test_auto_decide_emits_swipe(self, coordinator, observer, executor, store):
        store.update("settings", auto_decide=True)

        observer.mutate(profile("Sam"))
        await coordinator.drain()

        swipes = executor.of_kind(ActionKind.SWIPE)
        assert len(swipes) == 1
        assert swipes[0]["direction"] == "accept"
        stats = store.get("stats")
        assert stats["decisions"] == 1
        assert stats["accepted"] == 1

    @pytest.mark.asyncio
    async def test_no_swipe_when_auto_decide_off(self, coordinator, observer, executor, inference):
        observer.mutate(profile("Sam"))
        await coordinator.drain()

        assert executor.of_kind(ActionKind.SWIPE) == []
        inference.decide.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_superseded_entity_not_analyzed(self, coordinator, observer, inference):
        """An entity replaced during extraction is dropped."""
        release = asyncio.Event()

        async def slow_sleep(seconds):
            await release.wait()

        coordinator.extraction._sleep = slow_sleep
        observer.mutate(profile("Sam"))
        await settle()
        coordinator.extraction._sleep = no_sleep
        observer.mutate(profile("Tom"))
        await settle()
        release.set()
        await coordinator.drain()

        assert coordinator.state.entity.name == "Tom"
        inference.analyze_entity.assert_awaited_once()


class TestRecordDecision:
    """Tests for decisions reported by the user."""

    @pytest.mark.asyncio
    async def test_updates_stats_and_history(self, coordinator, observer, store):
        observer.mutate(profile("Sam"))
        await coordinator.drain()

        result = await coordinator.record_decision(Direction.SUPER)

        assert result["stats"]["super_accepted"] == 1
        assert result["retrained"] is False
        liked = store.get("preferences")["liked_history"]
        assert [e["name"] for e in liked] == ["Sam"]

    @pytest.mark.asyncio
    async def test_learning_disabled(self, coordinator, observer, store):
        store.update("settings", learn_type=False)
        observer.mutate(profile("Sam"))
        await coordinator.drain()

        await coordinator.record_decision(Direction.REJECT)

        assert store.get("preferences")["disliked_history"] == []
        assert store.get("stats")["rejected"] == 1


class TestConversationPipeline:
    """Tests for conversation swaps and suggestions."""

    @pytest.mark.asyncio
    async def test_detected_conversation_becomes_ready(self, coordinator, observer, store):
        messages = (Message(Sender.OTHER, "hi there"),)
        observer.mutate(RawFields(counterpart_name="Jane, 27", messages=messages))
        await coordinator.drain()

        state = coordinator.state
        assert state.phase is ContextPhase.READY
        assert state.context.counterpart_name == "Jane"
        assert state.context.messages == messages
        assert store.get("stats")["chats"] == 1

    @pytest.mark.asyncio
    async def test_switch_goes_through_switching(self, coordinator, observer):
        observer.mutate(RawFields(counterpart_name="Jane"))
        await coordinator.drain()
        version = coordinator.state.version

        observer.mutate(RawFields(counterpart_name="Sam"))
        await coordinator.drain()

        state = coordinator.state
        assert state.context.counterpart_name == "Sam"
        assert state.version == version + 1
        assert ContextPhase.SWITCHING in state.phase_history

    @pytest.mark.asyncio
    async def test_newest_swap_wins_during_settle(self, observer, executor, inference, store, event_log):
        config = replace(CoordinatorConfig.immediate(), switch_settle_delay=0.05)
        coordinator = Coordinator(
            observer, executor, inference, store, config, event_log=event_log, sleep=asyncio.sleep
        )
        await coordinator.open_chat("Jane")

        first, second = await asyncio.gather(coordinator.open_chat("Sam"), coordinator.open_chat("Tom"))

        assert first is None
        assert second.counterpart_name == "Tom"
        assert coordinator.state.context.counterpart_name == "Tom"
        assert coordinator.state.phase is ContextPhase.READY

    @pytest.mark.asyncio
    async def test_auto_suggestion_when_ready(self, coordinator, executor, inference, store):
        store.update("settings", chat_assist=True)

        await coordinator.open_chat("Jane", messages=(Message(Sender.OTHER, "hey!"),))
        await coordinator.drain()

        suggestions = executor.of_kind(ActionKind.SHOW_SUGGESTION)
        assert len(suggestions) == 1
        assert suggestions[0]["mode"] == "reply"
        assert store.get("stats")["suggestions"] == 1

    @pytest.mark.asyncio
    async def test_no_auto_suggestion_without_chat_assist(self, coordinator, executor, inference):
        await coordinator.open_chat("Jane")
        await coordinator.drain()

        inference.generate_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pending_suggestion_reissued_when_idle(
        self, coordinator, observer, executor, inference, store
    ):
        store.update("settings", chat_assist=True)
        release = asyncio.Event()

        async def slow_analysis(entity):
            await release.wait()

        inference.analyze_entity.side_effect = slow_analysis
        observer.mutate(profile("Sam"))
        await settle()
        assert coordinator.state.in_flight

        await coordinator.open_chat("Jane")
        await settle()
        assert coordinator.state.suggestion_pending

        release.set()
        await coordinator.drain()

        assert coordinator.state.suggestion_pending is False
        assert len(executor.of_kind(ActionKind.SHOW_SUGGESTION)) == 1

    @pytest.mark.asyncio
    async def test_in_flight_suggestion_discarded_on_new_entity(
        self, coordinator, observer, executor, inference
    ):
        """A suggestion for Jane that resolves after a new entity appears is not shown."""
        observer.mutate(profile("Alice"))
        await coordinator.drain()
        observer.mutate(profile("Bob"))
        await coordinator.drain()
        await coordinator.open_chat("Jane")
        assert coordinator.state.version == 3

        release = asyncio.Event()

        async def slow_generation(*args):
            await release.wait()
            return "Hi Jane!"

        inference.generate_message.side_effect = slow_generation
        pending = asyncio.create_task(coordinator.generate())
        await settle()

        observer.mutate(profile("Sam"))
        await coordinator.drain()
        assert coordinator.state.version == 4

        release.set()
        outcome = await pending

        assert outcome.status is OutcomeStatus.STALE
        assert executor.of_kind(ActionKind.SHOW_SUGGESTION) == []

        inference.generate_message.side_effect = None
        again = await coordinator.generate()
        assert again.status is OutcomeStatus.APPLIED
        assert again.value.version == 4


class TestMessages:
    """Tests for in-conversation updates."""

    @pytest.mark.asyncio
    async def test_sent_message_learns_and_follows_up(self, coordinator, inference, store):
        store.update("settings", chat_assist=True)
        await coordinator.open_chat("Jane", messages=(Message(Sender.OTHER, "hey!"),))
        await coordinator.drain()
        inference.generate_message.reset_mock()

        await coordinator.on_message_sent("how was your weekend?")
        await coordinator.drain()

        assert store.get("chat_style")["samples"][0]["text"] == "how was your weekend?"
        assert inference.generate_message.await_args.args[2] is GenerationMode.FOLLOW_UP

    @pytest.mark.asyncio
    async def test_received_message_triggers_reply(self, coordinator, inference, store):
        store.update("settings", chat_assist=True)
        await coordinator.open_chat("Jane")
        await coordinator.drain()
        inference.generate_message.reset_mock()

        context = await coordinator.on_message_received("pretty good, you?")
        await coordinator.drain()

        assert context.last_message.text == "pretty good, you?"
        assert inference.generate_message.await_args.args[2] is GenerationMode.REPLY

    @pytest.mark.asyncio
    async def test_message_ignored_without_conversation(self, coordinator):
        assert await coordinator.on_message_received("hello?") is None

    @pytest.mark.asyncio
    async def test_surface_messages_synced(self, coordinator, observer, store):
        first = Message(Sender.OTHER, "hi")
        observer.mutate(RawFields(counterpart_name="Jane", messages=(first,)))
        await coordinator.drain()

        reply = Message(Sender.SELF, "hello Jane")
        observer.mutate(RawFields(counterpart_name="Jane", messages=(first, reply)))
        await coordinator.drain()

        assert coordinator.state.context.messages == (first, reply)
        assert store.get("chat_style")["samples"][0]["text"] == "hello Jane"


class TestTriggerCheck:
    """Tests for manual re-detection."""

    @pytest.mark.asyncio
    async def test_redetects_current_surface(self, coordinator, observer, inference):
        observer.mutate(profile("Sam"))
        await coordinator.drain()

        changes = coordinator.trigger_check()
        await coordinator.drain()

        assert changes == {"entity": True, "context": False, "messages": False}
        assert inference.analyze_entity.await_count == 2
        assert coordinator.state.version == 2


class TestSwapDuringStyleRetrain:
    """Conversation updates that finish after a swap stay with their own conversation."""

    @pytest.fixture
    def release(self, inference, store) -> asyncio.Event:
        store.update("settings", chat_assist=True)
        store.update("chat_style", samples=[{"text": f"sample {i}"} for i in range(9)])
        release = asyncio.Event()

        async def slow_style(samples):
            await release.wait()
            return {"tone": "warm"}

        inference.analyze_style.side_effect = slow_style
        return release

    @pytest.mark.asyncio
    async def test_synced_messages_not_carried_into_new_conversation(
        self, coordinator, inference, release
    ):
        await coordinator.open_chat("Jane")
        await coordinator.drain()
        inference.generate_message.reset_mock()

        hello = Message(Sender.SELF, "hello Jane")
        reply = Message(Sender.OTHER, "Jane private reply")
        syncing = asyncio.create_task(
            coordinator.sync_messages(RawFields(counterpart_name="Jane", messages=(hello, reply)))
        )
        await settle()
        inference.analyze_style.assert_awaited_once()

        sam = await coordinator.open_chat("Sam")
        release.set()
        assert await syncing == 2
        await coordinator.drain()

        context = coordinator.state.context
        assert context.context_id == sam.context_id
        assert context.messages == ()
        modes = [call.args[2] for call in inference.generate_message.await_args_list]
        assert modes == [GenerationMode.OPENER]

    @pytest.mark.asyncio
    async def test_sent_message_follow_up_dropped_after_swap(self, coordinator, inference, release):
        await coordinator.open_chat("Jane", messages=(Message(Sender.OTHER, "dinner?"),))
        await coordinator.drain()
        inference.generate_message.reset_mock()

        sending = asyncio.create_task(coordinator.on_message_sent("see you at eight"))
        await settle()
        await coordinator.open_chat("Sam")
        release.set()
        assert await sending is True
        await coordinator.drain()

        calls = inference.generate_message.await_args_list
        assert [call.args[3]["name"] for call in calls] == ["Sam"]
        assert [call.args[2] for call in calls] == [GenerationMode.OPENER]


class TestBuildCoordinator:
    """Tests for the Groq-backed factory."""

    def test_uses_key_from_settings(self, observer, executor, store, event_log, monkeypatch):
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        coordinator = build_coordinator(observer, executor, store, event_log=event_log)
        service = coordinator.orchestrator.inference
        assert isinstance(service, GroqInferenceService)

        store.update("settings", api_key="gsk_from_settings")

        assert service._resolve_key() == "gsk_from_settings"
