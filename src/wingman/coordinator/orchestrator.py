"""Single-flight, version-stamped inference orchestration."""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from ..config import CoordinatorConfig
from ..errors import CredentialMissing, RequestFailed
from ..inference.base import InferenceService, basic_analysis
from ..logging import JSONLLogger, get_logger
from ..models import (
    AnalysisResult,
    Context,
    Entity,
    GenerationMode,
    Message,
    PreferenceProfile,
    Sender,
    StyleProfile,
    Suggestion,
)
from .state import CoordinatorState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OutcomeStatus(Enum):
    APPLIED = "applied"
    STALE = "stale"
    BUSY = "busy"
    FAILED = "failed"


@dataclass
class Outcome(Generic[T]):
    """Result of an orchestrated call.

    value is only set for APPLIED outcomes, and for FAILED analyses where it
    carries the error to display.
    """

    status: OutcomeStatus
    version: int
    value: T | None = None
    error: str | None = None

    @property
    def applied(self) -> bool:
        return self.status is OutcomeStatus.APPLIED


def is_system_notice(message: Message, markers: Sequence[str]) -> bool:
    """Surface notices ("24 hours left", "You matched ...") are not messages."""
    text = message.text.strip().lower()
    return not text or any(marker in text for marker in markers)


def classify_mode(
    messages: Sequence[Message],
    *,
    is_follow_up: bool | None = None,
    is_opener: bool = False,
    markers: Sequence[str] = (),
) -> GenerationMode:
    """Pick the generation mode for a conversation.

    Explicit flags win. Otherwise: no real messages means an opener, a last
    message from the other side needs a reply, and a last message of our own
    needs a follow-up.
    """
    if is_opener:
        return GenerationMode.OPENER
    if is_follow_up:
        return GenerationMode.FOLLOW_UP

    real = [m for m in messages if not is_system_notice(m, markers)]
    if not real:
        return GenerationMode.OPENER
    if real[-1].sender is Sender.SELF:
        return GenerationMode.FOLLOW_UP
    return GenerationMode.REPLY


class AnalysisOrchestrator:
    """Runs inference calls one at a time and drops results that arrive late.

    Every call is stamped with the state version when it starts. A call made
    while another is in flight is ignored (BUSY), not queued. When a call
    completes after the version moved on, its value is discarded (STALE).
    """

    def __init__(
        self,
        state: CoordinatorState,
        inference: InferenceService,
        config: CoordinatorConfig | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        self.state = state
        self.inference = inference
        self.config = config or CoordinatorConfig()
        self.event_log = event_log or get_logger()
        self.on_idle: Callable[[], None] | None = None

    @property
    def busy(self) -> bool:
        return self.state.in_flight

    async def _run(
        self,
        kind: str,
        call: Callable[[], Awaitable[T]],
        *,
        context_id: str | None = None,
    ) -> Outcome[T]:
        if self.state.in_flight:
            logger.debug(f"{kind} ignored, another call is in flight")
            self.event_log.log_inference(
                kind, OutcomeStatus.BUSY.value, version=self.state.version, context_id=context_id
            )
            return Outcome(OutcomeStatus.BUSY, version=self.state.version)

        version = self.state.version
        self.state.in_flight = True
        start = time.monotonic()
        value: T | None = None
        error: str | None = None
        try:
            value = await call()
        except CredentialMissing as e:
            error = str(e)
        except RequestFailed as e:
            logger.warning(f"{kind} failed: {e}")
            error = str(e)
        finally:
            self.state.in_flight = False
            if self.on_idle is not None:
                self.on_idle()

        duration_ms = (time.monotonic() - start) * 1000
        if not self.state.is_current(version):
            status = OutcomeStatus.STALE
            value = None
            logger.info(f"{kind} result for version {version} discarded (now {self.state.version})")
            self.event_log.log(
                "stale_discard", context_id=context_id, version=version, kind=kind,
                current_version=self.state.version,
            )
        elif error is not None:
            status = OutcomeStatus.FAILED
        else:
            status = OutcomeStatus.APPLIED

        self.event_log.log_inference(
            kind, status.value, version=version, context_id=context_id,
            duration_ms=round(duration_ms, 1), error=error,
        )
        return Outcome(status, version=version, value=value, error=error)

    def _needs_backend(self, entity: Entity) -> bool:
        return len(entity.bio) > self.config.min_bio_length or entity.primary_image is not None

    async def analyze(self, entity: Entity) -> Outcome[AnalysisResult]:
        """Analyze an entity.

        Entities with a short bio and no image get the basic local analysis
        without a backend call.
        """
        if not self._needs_backend(entity):
            return Outcome(OutcomeStatus.APPLIED, version=self.state.version, value=basic_analysis(entity))

        outcome = await self._run(
            "analyze", lambda: self.inference.analyze_entity(entity), context_id=entity.identity_hash
        )
        if outcome.status is OutcomeStatus.FAILED:
            outcome.value = AnalysisResult(error=outcome.error)
        return outcome

    async def decide(
        self,
        entity: Entity,
        analysis: AnalysisResult | None,
        preferences: PreferenceProfile,
    ) -> Outcome[dict[str, Any]]:
        """Ask the backend for a direction. The raw reply is returned as-is."""
        profile = entity.summary()
        profile["analysis"] = analysis.to_dict() if analysis else {}
        return await self._run(
            "decide",
            lambda: self.inference.decide(profile, preferences.derived()),
            context_id=entity.identity_hash,
        )

    async def generate(
        self,
        context: Context,
        style: StyleProfile,
        is_follow_up: bool | None = None,
        is_opener: bool = False,
        counterpart: dict[str, Any] | None = None,
    ) -> Outcome[Suggestion]:
        """Generate the next message for context."""
        if not self.state.is_current(context.version):
            return Outcome(OutcomeStatus.STALE, version=context.version)

        mode = classify_mode(
            context.messages,
            is_follow_up=is_follow_up,
            is_opener=is_opener,
            markers=self.config.system_markers,
        )

        async def call() -> Suggestion:
            text = await self.inference.generate_message(context, style, mode, counterpart)
            if not text or not text.strip():
                raise RequestFailed("Empty suggestion")
            return Suggestion(
                text=text.strip(), mode=mode, version=context.version, context_id=context.context_id
            )

        return await self._run(f"generate_{mode.value}", call, context_id=context.context_id)
