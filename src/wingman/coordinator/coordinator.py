"""The coordinator: wires detection, extraction, inference, learning and actions."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Coroutine

from ..actions import ActionExecutor
from ..config import CoordinatorConfig
from ..inference import GroqInferenceService, inference_config_from_env
from ..inference.base import InferenceService
from ..learning import PreferenceAccumulator, StyleAccumulator
from ..logging import JSONLLogger, get_logger
from ..models import UNKNOWN_NAME, Context, Direction, Entity, Message, Sender, Suggestion
from ..store import BucketStore
from ..surface import (
    ChangeDetector,
    ExtractionRetryPolicy,
    RawFields,
    SurfaceObserver,
    context_fingerprint,
    entity_fingerprint,
    messages_fingerprint,
)
from ..surface.base import counterpart_name
from .decisions import DecisionEmitter
from .orchestrator import AnalysisOrchestrator, Outcome, OutcomeStatus
from .state import ContextPhase, CoordinatorState

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

STAT_FOR_DIRECTION = {
    Direction.ACCEPT: "accepted",
    Direction.REJECT: "rejected",
    Direction.SUPER: "super_accepted",
}


class Coordinator:
    """Owns one CoordinatorState and runs the entity and conversation pipelines.

    Detectors report changes synchronously; each change is handled in its own
    task. Pipelines check the version after every suspension point and stop
    quietly once superseded.
    """

    def __init__(
        self,
        observer: SurfaceObserver,
        executor: ActionExecutor,
        inference: InferenceService,
        store: BucketStore,
        config: CoordinatorConfig | None = None,
        *,
        event_log: JSONLLogger | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.config = config or CoordinatorConfig()
        self.store = store
        self.event_log = event_log or get_logger()
        self._sleep = sleep

        self.state = CoordinatorState()
        self.orchestrator = AnalysisOrchestrator(self.state, inference, self.config, self.event_log)
        self.orchestrator.on_idle = self._on_orchestrator_idle
        self.emitter = DecisionEmitter(self.orchestrator, executor, self.event_log)
        self.extraction = ExtractionRetryPolicy(observer, self.config, sleep=sleep)
        self.preferences = PreferenceAccumulator(store, inference, self.event_log)
        self.style = StyleAccumulator(
            store, inference, self.config.min_sample_length, self.event_log
        )

        interval = self.config.poll_interval_ms
        self.entity_detector = ChangeDetector(
            observer, entity_fingerprint, self._on_entity_change,
            name="entity", poll_interval_ms=interval,
        )
        self.context_detector = ChangeDetector(
            observer, context_fingerprint, self._on_context_change,
            name="context", poll_interval_ms=interval,
        )
        self.message_detector = ChangeDetector(
            observer, messages_fingerprint, self._on_messages_change,
            name="messages", poll_interval_ms=interval,
        )

        self._context_seq = 0
        self._tasks: set[asyncio.Task[Any]] = set()
        self._started = False

    # Lifecycle

    def start(self) -> None:
        if self._started:
            return
        self.entity_detector.start()
        self.context_detector.start()
        self.message_detector.start()
        self.store.increment_stat("sessions")
        self._started = True
        logger.info("Coordinator started")

    async def stop(self) -> None:
        """Cancel pipelines still running."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def drain(self) -> None:
        """Wait until every spawned pipeline has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Pipeline task failed: {error}", exc_info=error)
            self.event_log.log("error", version=self.state.version, error=str(error))

    @property
    def settings(self) -> dict[str, Any]:
        return self.store.get("settings")

    # Detector callbacks

    def _on_entity_change(self, fingerprint: str, fields: RawFields) -> None:
        self._spawn(self.handle_entity(fingerprint))

    def _on_context_change(self, fingerprint: str, fields: RawFields) -> None:
        self._spawn(self.handle_context(fingerprint))

    def _on_messages_change(self, fingerprint: str, fields: RawFields) -> None:
        self._spawn(self.sync_messages(fields))

    def trigger_check(self) -> dict[str, bool]:
        """Forget what the detectors have seen and check the surface again."""
        results = {}
        for detector in (self.entity_detector, self.context_detector, self.message_detector):
            detector.reset()
            results[detector.name] = detector.check_for_change()
        return results

    # Entity pipeline

    async def handle_entity(self, identity: str) -> Entity | None:
        """Extract, display, analyze and (optionally) decide on a new entity.

        Returns:
            The extracted entity, or None if it was superseded during extraction.
        """
        version = self.state.supersede()
        self.state.restamp_context()
        self.event_log.log_detection("entity", identity, version=version)
        logger.info(f"New entity {identity!r} (version {version})")

        entity = await self.extraction.extract(identity)
        if not self.state.is_current(version):
            return None
        self.state.set_entity(entity)
        await self.emitter.show_analysis(entity, None)

        outcome = await self.orchestrator.analyze(entity)
        if outcome.status in (OutcomeStatus.STALE, OutcomeStatus.BUSY):
            return entity
        await self.emitter.show_analysis(entity, outcome.value)

        if self.settings.get("auto_decide") and self.state.is_current(version):
            action = await self.emitter.decide(entity, outcome.value, self.preferences.profile)
            if action is not None and self.state.is_current(version):
                if await self.emitter.emit(action):
                    self._record_stats(action.direction)
        return entity

    async def analyze_current(self) -> Outcome | None:
        """Re-run analysis for the displayed entity."""
        entity = self.state.entity
        if entity is None:
            return None
        outcome = await self.orchestrator.analyze(entity)
        if outcome.status not in (OutcomeStatus.STALE, OutcomeStatus.BUSY):
            await self.emitter.show_analysis(entity, outcome.value)
        return outcome

    def _record_stats(self, direction: Direction) -> dict[str, Any]:
        stats = self.store.get("stats")
        stats["decisions"] = stats.get("decisions", 0) + 1
        key = STAT_FOR_DIRECTION[direction]
        stats[key] = stats.get(key, 0) + 1
        stats["last_active"] = time.time()
        self.store.set("stats", stats)
        return stats

    async def record_decision(
        self, direction: Direction, entity: Entity | None = None
    ) -> dict[str, Any]:
        """Record a decision the user made.

        Updates stats and, when learning is enabled, the preference history.
        """
        entity = entity or self.state.entity
        stats = self._record_stats(direction)
        retrained = False
        if entity is not None and self.settings.get("learn_type", True):
            retrained = await self.preferences.record(entity, direction.accepted)
        return {"stats": stats, "retrained": retrained}

    # Conversation pipeline

    async def _begin_context(self, name: str) -> int | None:
        """Enter LOADING for a new conversation.

        Returns:
            The swap sequence number, or None if a newer swap took over
            during the settle delay.
        """
        self._context_seq += 1
        seq = self._context_seq
        if self.state.phase is ContextPhase.IDLE:
            self.state.supersede()
        else:
            self.state.begin_switch()
            logger.info(f"Switching conversation to {name!r}")
            await self._sleep(self.config.switch_settle_delay)
            if seq != self._context_seq:
                return None
        self.state.begin_loading()
        self.event_log.log_detection("context", name, version=self.state.version)
        return seq

    def _ready_context(
        self,
        seq: int,
        name: str,
        photo: str | None,
        messages: tuple[Message, ...],
    ) -> Context:
        context = Context(
            context_id=f"{name}-{seq}",
            counterpart_name=name,
            version=self.state.version,
            counterpart_photo=photo,
            messages=messages,
        )
        self.state.mark_ready(context)
        self.store.increment_stat("chats")
        logger.info(f"Conversation with {name!r} ready ({len(messages)} messages)")
        self._schedule_suggestion(context)
        return context

    async def handle_context(self, name: str) -> Context | None:
        """Swap to the conversation detected on the surface."""
        seq = await self._begin_context(name)
        if seq is None:
            return None

        snapshot = await self.extraction.extract_conversation()
        if seq != self._context_seq:
            return None
        resolved = snapshot.counterpart_name
        if resolved == UNKNOWN_NAME:
            resolved = name
        return self._ready_context(seq, resolved, snapshot.counterpart_photo, snapshot.messages)

    async def open_chat(
        self,
        name: str,
        photo: str | None = None,
        messages: tuple[Message, ...] = (),
    ) -> Context | None:
        """Swap to a conversation reported directly by the surface."""
        current = self.state.context
        if (
            current is not None
            and self.state.phase is ContextPhase.READY
            and current.counterpart_name == name
        ):
            return current

        seq = await self._begin_context(name)
        if seq is None:
            return None
        return self._ready_context(seq, name, photo, tuple(messages))

    async def sync_messages(self, fields: RawFields) -> int:
        """Append messages the surface shows beyond those already known.

        Returns:
            Number of messages appended.
        """
        context = self.state.context
        if context is None or self.state.phase is not ContextPhase.READY:
            return 0
        if counterpart_name(fields.counterpart_name) != context.counterpart_name:
            return 0

        new = fields.messages[len(context.messages):]
        if not new:
            return 0
        for message in new:
            self.state.append_message(message)

        context_id = context.context_id
        for message in new:
            if not self._is_active(context_id):
                return len(new)
            if message.sender is Sender.SELF:
                await self.style.record(message.text)

        if self._is_active(context_id):
            follow_up = new[-1].sender is Sender.SELF
            self._schedule_suggestion(
                self.state.context,
                is_follow_up=follow_up,
                delay=self.config.follow_up_delay if follow_up else None,
            )
        return len(new)

    async def on_message_received(self, text: str) -> Context | None:
        context = self.state.append_message(Message(Sender.OTHER, text))
        if context is not None:
            self._schedule_suggestion(context, is_follow_up=False)
        return context

    async def on_message_sent(self, text: str) -> bool:
        """Record a sent message as a style sample and queue a follow-up.

        The follow-up is only queued if the conversation is still active
        once the sample (and any retrain) has been recorded.

        Returns:
            True if the sample triggered a style retrain.
        """
        context = self.state.append_message(Message(Sender.SELF, text))
        retrained = await self.style.record(text)
        if context is not None and self._is_active(context.context_id):
            self._schedule_suggestion(
                self.state.context, is_follow_up=True, delay=self.config.follow_up_delay
            )
        return retrained

    def _is_active(self, context_id: str) -> bool:
        context = self.state.context
        return (
            context is not None
            and context.context_id == context_id
            and self.state.phase is ContextPhase.READY
        )

    def _counterpart(self, context: Context) -> dict[str, Any]:
        info: dict[str, Any] = {"name": context.counterpart_name, "photo": context.counterpart_photo}
        entity = self.state.entity
        if entity is not None and entity.name == context.counterpart_name:
            info.update(age=entity.age, bio=entity.bio)
        return info

    async def generate(
        self, is_follow_up: bool | None = None, is_opener: bool = False
    ) -> Outcome[Suggestion] | None:
        """Generate a suggestion for the active conversation on request."""
        context = self.state.context
        if context is None:
            return None
        outcome = await self.orchestrator.generate(
            context,
            self.style.profile,
            is_follow_up=is_follow_up,
            is_opener=is_opener,
            counterpart=self._counterpart(context),
        )
        if outcome.applied:
            self.store.increment_stat("suggestions")
        return outcome

    # Auto-suggestions

    def _schedule_suggestion(
        self,
        context: Context,
        is_follow_up: bool | None = None,
        delay: float | None = None,
    ) -> None:
        if not self.settings.get("chat_assist"):
            return
        self._spawn(self._auto_suggest(context.context_id, is_follow_up, delay))

    async def _auto_suggest(
        self,
        context_id: str,
        is_follow_up: bool | None = None,
        delay: float | None = None,
    ) -> Suggestion | None:
        await self._sleep(self.config.auto_suggest_delay if delay is None else delay)

        context = self.state.context
        if (
            self.state.phase is not ContextPhase.READY
            or context is None
            or context.context_id != context_id
        ):
            return None
        if self.orchestrator.busy:
            logger.debug("Auto-suggestion deferred, a call is in flight")
            self.state.suggestion_pending = True
            return None

        suggestion = await self.emitter.suggest(
            context,
            self.style.profile,
            is_follow_up=is_follow_up,
            counterpart=self._counterpart(context),
        )
        if suggestion is None:
            return None
        self.store.increment_stat("suggestions")
        await self.emitter.show_suggestion(suggestion)
        return suggestion

    def _on_orchestrator_idle(self) -> None:
        if not self.state.suggestion_pending:
            return
        self.state.suggestion_pending = False
        context = self.state.context
        if context is not None and self.state.phase is ContextPhase.READY:
            self._spawn(self._auto_suggest(context.context_id, delay=0))


def build_coordinator(
    observer: SurfaceObserver,
    executor: ActionExecutor,
    store: BucketStore,
    config: CoordinatorConfig | None = None,
    *,
    event_log: JSONLLogger | None = None,
) -> Coordinator:
    """Create a Coordinator backed by Groq.

    The API key is read from the settings bucket on every call, so a key set
    with `wingman settings api_key ...` is used without a restart.
    """
    inference = GroqInferenceService(
        config=inference_config_from_env(),
        api_key=lambda: store.get("settings").get("api_key"),
    )
    return Coordinator(observer, executor, inference, store, config, event_log=event_log)
