"""Inference backend interface.

The coordinator only depends on this Protocol, so any backend with these
coroutines can be plugged in.
"""

import json
import re
from typing import Any, Protocol

from ..models import AnalysisResult, Context, Entity, GenerationMode, StyleProfile

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class InferenceService(Protocol):
    """Protocol for the inference backend.

    Every method may raise CredentialMissing (terminal) or RequestFailed
    (transient).
    """

    async def analyze_entity(self, entity: Entity) -> AnalysisResult:
        """Enrich an entity with structured analysis."""
        ...

    async def analyze_preferences(
        self, liked: list[dict[str, Any]], disliked: list[dict[str, Any]]
    ) -> dict[str, Any] | None:
        """Derive preference fields from accepted/rejected history."""
        ...

    async def analyze_style(self, samples: list[str]) -> dict[str, Any] | None:
        """Derive writing-style fields from text samples."""
        ...

    async def generate_message(
        self,
        context: Context,
        style: StyleProfile,
        mode: GenerationMode,
        counterpart: dict[str, Any] | None = None,
    ) -> str:
        """Generate the next message for a conversation."""
        ...

    async def decide(
        self, profile: dict[str, Any], preferences: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Decide a direction for a profile given learned preferences."""
        ...


def parse_json_object(content: str) -> dict[str, Any] | None:
    """Extract a JSON object from a model reply.

    Handles bare JSON, markdown code fences and JSON embedded in prose.

    Returns:
        The parsed object, or None if no object could be parsed.
    """
    text = content.strip()
    if text.startswith("```"):
        lines = [line for line in text.split("\n") if not line.startswith("```")]
        text = "\n".join(lines).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(text)
        if match is None:
            return None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None

    return data if isinstance(data, dict) else None


def basic_analysis(entity: Entity) -> AnalysisResult:
    """Analysis built locally for entities without a usable bio."""
    starters = []
    if entity.resolved:
        starters = [
            f"Hey {entity.name}! Love your photos, what do you like to do for fun?",
            f"Hi {entity.name}! What are you hoping to find here?",
        ]
    return AnalysisResult(
        bio={
            "interests": [],
            "personality": ["Unknown - no bio"],
            "green_flags": ["Has photos"] if entity.primary_image else [],
            "red_flags": ["No bio provided"],
            "conversation_starters": starters,
        },
        fallback=True,
    )
