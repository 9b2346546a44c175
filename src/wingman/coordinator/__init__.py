"""Coordinator: state, orchestration, decisions and commands."""

from .commands import Command, CommandResponse, CommandRouter, CommandType
from .coordinator import Coordinator, build_coordinator
from .decisions import DecisionEmitter, parse_action, safe_default
from .orchestrator import AnalysisOrchestrator, Outcome, OutcomeStatus, classify_mode
from .state import ContextPhase, CoordinatorState

__all__ = [
    "AnalysisOrchestrator",
    "Command",
    "CommandResponse",
    "CommandRouter",
    "CommandType",
    "ContextPhase",
    "Coordinator",
    "CoordinatorState",
    "DecisionEmitter",
    "Outcome",
    "OutcomeStatus",
    "build_coordinator",
    "classify_mode",
    "parse_action",
    "safe_default",
]
