"""Coordinator state: version counter, context phase and single-flight flag."""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from ..errors import InvalidTransition
from ..models import Context, Entity, Message

logger = logging.getLogger(__name__)


class ContextPhase(Enum):
    """Lifecycle of the active conversation."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    SWITCHING = "switching"


TRANSITIONS: dict[ContextPhase, frozenset[ContextPhase]] = {
    ContextPhase.IDLE: frozenset({ContextPhase.LOADING}),
    ContextPhase.LOADING: frozenset({ContextPhase.READY, ContextPhase.SWITCHING}),
    ContextPhase.READY: frozenset({ContextPhase.SWITCHING}),
    ContextPhase.SWITCHING: frozenset({ContextPhase.LOADING, ContextPhase.SWITCHING}),
}


@dataclass
class CoordinatorState:
    """Mutable state owned by one coordinator instance.

    Attributes:
        version: Bumped on every entity or context swap. Never decreases.
        phase: Phase of the active conversation.
        in_flight: True while an orchestrated inference call is running.
        entity: Entity currently displayed, if any.
        context: Active conversation, if any.
        suggestion_pending: An auto-suggestion was skipped because a call was
            in flight and should be re-issued once it completes.
    """

    version: int = 0
    phase: ContextPhase = ContextPhase.IDLE
    in_flight: bool = False
    entity: Entity | None = None
    context: Context | None = None
    suggestion_pending: bool = False
    _history: list[ContextPhase] = field(default_factory=list, repr=False)

    def supersede(self) -> int:
        """Bump the version so results stamped earlier are discarded."""
        self.version += 1
        return self.version

    def is_current(self, version: int) -> bool:
        return version == self.version

    def transition(self, target: ContextPhase) -> None:
        """Move to target, raising InvalidTransition if not allowed."""
        if target not in TRANSITIONS[self.phase]:
            raise InvalidTransition(f"{self.phase.value} -> {target.value}")
        logger.debug(f"Context phase {self.phase.value} -> {target.value}")
        self._history.append(self.phase)
        self.phase = target

    def begin_switch(self) -> int:
        """Start a conversation swap: drop the old context and bump the version."""
        self.transition(ContextPhase.SWITCHING)
        self.context = None
        self.suggestion_pending = False
        return self.supersede()

    def begin_loading(self) -> None:
        self.transition(ContextPhase.LOADING)

    def mark_ready(self, context: Context) -> None:
        self.transition(ContextPhase.READY)
        self.context = context

    def set_entity(self, entity: Entity) -> None:
        self.entity = entity

    def restamp_context(self) -> None:
        """Carry the active context over to the current version."""
        if self.context is not None and self.context.version != self.version:
            self.context = replace(self.context, version=self.version)

    def append_message(self, message: Message) -> Context | None:
        """Append to the active context. Ignored unless the context is ready."""
        if self.context is None or self.phase is not ContextPhase.READY:
            return None
        self.context = self.context.with_message(message)
        return self.context

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "phase": self.phase.value,
            "in_flight": self.in_flight,
            "suggestion_pending": self.suggestion_pending,
            "entity": self.entity.summary() if self.entity else None,
            "context": self.context.to_dict() if self.context else None,
        }

    @property
    def phase_history(self) -> list[ContextPhase]:
        """Phases left so far, oldest first."""
        return list(self._history)
