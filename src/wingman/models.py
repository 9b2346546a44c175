"""Data models for entities, conversations and learned profiles."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any

UNKNOWN_NAME = "Unknown"

LIKED_HISTORY_CAP = 100
DISLIKED_HISTORY_CAP = 100
STYLE_SAMPLES_CAP = 200


def append_bounded(items: list[Any], item: Any, cap: int) -> list[Any]:
    """Return a new list with item appended, keeping only the newest cap entries."""
    if cap < 1:
        raise ValueError("cap must be at least 1")
    updated = [*items, item]
    if len(updated) > cap:
        updated = updated[-cap:]
    return updated


class Sender(Enum):
    """Who wrote a message."""

    SELF = "self"
    OTHER = "other"


class Direction(Enum):
    """Directional decision on an entity."""

    ACCEPT = "accept"
    REJECT = "reject"
    SUPER = "super"

    @property
    def accepted(self) -> bool:
        """Super counts as accepted for learning purposes."""
        return self is not Direction.REJECT

    @classmethod
    def parse(cls, value: Any) -> Direction | None:
        """Parse a direction from backend or front-end vocabulary."""
        if isinstance(value, Direction):
            return value
        if not isinstance(value, str):
            return None
        aliases = {
            "accept": cls.ACCEPT,
            "right": cls.ACCEPT,
            "like": cls.ACCEPT,
            "reject": cls.REJECT,
            "left": cls.REJECT,
            "pass": cls.REJECT,
            "super": cls.SUPER,
            "superlike": cls.SUPER,
        }
        return aliases.get(value.strip().lower())


class GenerationMode(Enum):
    """What kind of message to generate for a conversation."""

    OPENER = "opener"
    REPLY = "reply"
    FOLLOW_UP = "follow_up"


@dataclass(frozen=True)
class Entity:
    """A discovered profile. Never mutated once extracted.

    Attributes:
        identity_hash: Fingerprint that triggered the extraction.
        name: Resolved name, or UNKNOWN_NAME when extraction gave up.
        age: Age if the surface exposed one.
        bio: Free-form profile text (may be empty).
        images: Ordered, de-duplicated image URLs.
        primary_image: First image, if any.
        detected_at: Epoch seconds at extraction time.
    """

    identity_hash: str
    name: str = UNKNOWN_NAME
    age: int | None = None
    bio: str = ""
    images: tuple[str, ...] = ()
    primary_image: str | None = None
    detected_at: float = field(default_factory=time.time)

    @property
    def resolved(self) -> bool:
        """Whether the mandatory name field was found."""
        return bool(self.name) and self.name != UNKNOWN_NAME

    def summary(self) -> dict[str, Any]:
        """Compact representation stored in learning histories."""
        return {
            "name": self.name,
            "age": self.age,
            "bio": self.bio,
            "image": self.primary_image,
            "timestamp": self.detected_at,
        }


@dataclass(frozen=True)
class Message:
    """A single chat message."""

    sender: Sender
    text: str
    received_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {"sender": self.sender.value, "text": self.text, "received_at": self.received_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        """Build from a command payload. Accepts 'me'/'them' as sender aliases."""
        raw_sender = str(data.get("sender", "other")).lower()
        sender = Sender.SELF if raw_sender in ("self", "me") else Sender.OTHER
        return cls(
            sender=sender,
            text=str(data.get("text", "")),
            received_at=float(data.get("received_at") or time.time()),
        )


@dataclass(frozen=True)
class Context:
    """The active conversation, tagged with the version it was created under."""

    context_id: str
    counterpart_name: str
    version: int
    counterpart_photo: str | None = None
    messages: tuple[Message, ...] = ()

    def with_message(self, message: Message) -> Context:
        """Append-only: return a copy with one more message, same version."""
        return replace(self, messages=(*self.messages, message))

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "context_id": self.context_id,
            "counterpart_name": self.counterpart_name,
            "counterpart_photo": self.counterpart_photo,
            "version": self.version,
            "messages": [m.to_dict() for m in self.messages],
        }


def _known_fields(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    """Keep only keys that are dataclass fields of cls."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class PreferenceProfile:
    """Learned preferences. Derived fields are replaced wholesale on retrain."""

    traits: list[str] = field(default_factory=list)
    interests: list[str] = field(default_factory=list)
    physical_preferences: list[str] = field(default_factory=list)
    deal_breakers: list[str] = field(default_factory=list)
    must_haves: list[str] = field(default_factory=list)
    type_summary: str = ""
    liked_history: list[dict[str, Any]] = field(default_factory=list)
    disliked_history: list[dict[str, Any]] = field(default_factory=list)

    @property
    def history_size(self) -> int:
        return len(self.liked_history) + len(self.disliked_history)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def derived(self) -> dict[str, Any]:
        """Derived fields only, as sent to the backend for decisions."""
        data = self.to_dict()
        data.pop("liked_history")
        data.pop("disliked_history")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PreferenceProfile:
        return cls(**_known_fields(cls, data))


@dataclass
class StyleProfile:
    """Learned writing style. Samples accumulate; the rest is re-derived."""

    tone: str = "casual"
    emoji_usage: str = "moderate"
    message_length: str | None = None
    patterns: list[str] = field(default_factory=list)
    vocabulary: list[str] = field(default_factory=list)
    samples: list[dict[str, Any]] = field(default_factory=list)

    def recent_samples(self, limit: int = 20) -> list[str]:
        return [str(s.get("text", "")) for s in self.samples[-limit:]]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StyleProfile:
        return cls(**_known_fields(cls, data))


@dataclass
class AnalysisResult:
    """Enriched analysis of an entity.

    Attributes:
        bio: Structured bio analysis (personality, interests, flags, starters).
        image: Structured image analysis, if any.
        error: Error message when inference was unavailable.
        fallback: True when built locally without calling the backend.
    """

    bio: dict[str, Any] | None = None
    image: dict[str, Any] | None = None
    error: str | None = None
    fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.bio is not None:
            data["bio"] = self.bio
        if self.image is not None:
            data["image"] = self.image
        if self.error is not None:
            data["error"] = self.error
        if self.fallback:
            data["fallback"] = True
        return data


@dataclass(frozen=True)
class Action:
    """A directional decision ready to be executed on the surface."""

    direction: Direction
    confidence: int
    reasons: tuple[str, ...] = ()
    match_percentage: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
            "match_percentage": self.match_percentage,
        }


@dataclass(frozen=True)
class Suggestion:
    """A generated message for the active conversation."""

    text: str
    mode: GenerationMode
    version: int
    context_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "mode": self.mode.value,
            "version": self.version,
            "context_id": self.context_id,
        }
