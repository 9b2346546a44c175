"""Action executor interface."""

from enum import Enum
from typing import Any, Protocol


class ActionKind(Enum):
    """Commands the coordinator can issue back to the surface."""

    SWIPE = "swipe"
    SHOW_ANALYSIS = "show_analysis"
    SHOW_SUGGESTION = "show_suggestion"
    INSERT_TEXT = "insert_text"
    SHOW_STATUS = "show_status"


class ActionExecutor(Protocol):
    """Performs actions on the surface.

    How an action is carried out is entirely up to the implementation.
    Returning False (or raising) marks the action as failed; the coordinator
    logs it and does not retry.
    """

    async def execute(self, kind: ActionKind, params: dict[str, Any]) -> bool:
        ...
