"""Turn orchestrator outcomes into actions on the surface."""

import logging
from typing import Any

from ..actions import ActionExecutor, ActionKind
from ..logging import JSONLLogger, get_logger
from ..models import (
    Action,
    AnalysisResult,
    Context,
    Direction,
    Entity,
    PreferenceProfile,
    StyleProfile,
    Suggestion,
)
from .orchestrator import AnalysisOrchestrator, OutcomeStatus

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 50


def safe_default(reason: str) -> Action:
    """Rejecting is the only action that is safe to take blind."""
    return Action(Direction.REJECT, DEFAULT_CONFIDENCE, reasons=(reason,))


def _as_int(value: Any, default: int | None) -> int | None:
    try:
        return max(0, min(100, int(value)))
    except (TypeError, ValueError):
        return default


def parse_action(data: dict[str, Any] | None) -> Action:
    """Build an Action from a backend reply, falling back to the safe default."""
    if not data:
        return safe_default("No decision returned")

    direction = Direction.parse(data.get("decision", data.get("direction")))
    if direction is None:
        return safe_default(f"Unrecognized decision: {data.get('decision')!r}")

    reasons = data.get("reasons") or []
    if isinstance(reasons, str):
        reasons = [reasons]
    return Action(
        direction=direction,
        confidence=_as_int(data.get("confidence"), DEFAULT_CONFIDENCE) or 0,
        reasons=tuple(str(r) for r in reasons),
        match_percentage=_as_int(data.get("match_percentage"), None),
    )


class DecisionEmitter:
    """Decides, suggests, and hands actions to the executor.

    Executor failures are logged and never retried.
    """

    def __init__(
        self,
        orchestrator: AnalysisOrchestrator,
        executor: ActionExecutor,
        event_log: JSONLLogger | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.executor = executor
        self.event_log = event_log or get_logger()

    async def decide(
        self,
        entity: Entity,
        analysis: AnalysisResult | None,
        preferences: PreferenceProfile,
    ) -> Action | None:
        """Decide a direction for entity.

        Returns:
            None when the entity was superseded or another call was in
            flight, otherwise an Action (the safe default on any failure).
        """
        outcome = await self.orchestrator.decide(entity, analysis, preferences)
        if outcome.status in (OutcomeStatus.STALE, OutcomeStatus.BUSY):
            return None
        if outcome.status is OutcomeStatus.FAILED:
            return safe_default(outcome.error or "Decision failed")
        return parse_action(outcome.value)

    async def suggest(
        self,
        context: Context,
        style: StyleProfile,
        is_follow_up: bool | None = None,
        is_opener: bool = False,
        counterpart: dict[str, Any] | None = None,
    ) -> Suggestion | None:
        outcome = await self.orchestrator.generate(
            context, style, is_follow_up=is_follow_up, is_opener=is_opener, counterpart=counterpart
        )
        return outcome.value if outcome.applied else None

    async def _execute(self, kind: ActionKind, params: dict[str, Any], version: int | None) -> bool:
        try:
            ok = bool(await self.executor.execute(kind, params))
            error = None if ok else "executor reported failure"
        except Exception as e:
            ok = False
            error = str(e)

        if not ok:
            logger.warning(f"Action {kind.value} failed: {error}")
        self.event_log.log_action(kind.value, ok, version=version, error=error)
        return ok

    async def emit(self, action: Action) -> bool:
        """Perform a directional action."""
        version = self.orchestrator.state.version
        return await self._execute(ActionKind.SWIPE, action.to_dict(), version)

    async def show_suggestion(self, suggestion: Suggestion) -> bool:
        return await self._execute(ActionKind.SHOW_SUGGESTION, suggestion.to_dict(), suggestion.version)

    async def show_analysis(self, entity: Entity, analysis: AnalysisResult | None) -> bool:
        """Display an entity. Raw fields are always included, analysis when available."""
        params = {
            "entity": entity.summary(),
            "images": list(entity.images),
            "analysis": analysis.to_dict() if analysis is not None else None,
            "loading": analysis is None,
        }
        return await self._execute(ActionKind.SHOW_ANALYSIS, params, self.orchestrator.state.version)

    async def insert_text(self, text: str) -> bool:
        return await self._execute(ActionKind.INSERT_TEXT, {"text": text}, self.orchestrator.state.version)

    async def show_status(self, message: str, level: str = "info") -> bool:
        return await self._execute(ActionKind.SHOW_STATUS, {"message": message, "level": level}, None)
