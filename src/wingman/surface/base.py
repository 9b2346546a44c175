"""Interfaces for the observed surface.

The coordinator never inspects page structure. A SurfaceObserver hands it
snapshots of fields that have already been located on the page.
"""

import hashlib
from dataclasses import dataclass
from typing import Callable, Protocol

from ..models import Message

IDENTITY_FINGERPRINT_LENGTH = 50


@dataclass(frozen=True)
class RawFields:
    """One snapshot of the surface.

    Every field may be missing or stale while the surface is still rendering.
    """

    identity: str = ""
    name: str | None = None
    age: int | None = None
    bio: str = ""
    images: tuple[str, ...] = ()
    counterpart_name: str = ""
    counterpart_photo: str | None = None
    messages: tuple[Message, ...] = ()


class SurfaceObserver(Protocol):
    """Source of mutation events, poll ticks and snapshots."""

    def subscribe(self, on_mutation: Callable[[], None]) -> None:
        """Call on_mutation whenever the surface changes."""
        ...

    def poll(self, interval_ms: int, on_tick: Callable[[], None]) -> None:
        """Call on_tick every interval_ms milliseconds."""
        ...

    def read_snapshot(self) -> RawFields:
        """Return the fields currently visible on the surface."""
        ...


def entity_fingerprint(fields: RawFields) -> str:
    """Truncated identity text of the displayed profile."""
    return fields.identity.strip()[:IDENTITY_FINGERPRINT_LENGTH]


def counterpart_name(raw: str) -> str:
    """Counterpart name as displayed, without a trailing ', age' part."""
    return raw.strip().split(",")[0].strip()


def context_fingerprint(fields: RawFields) -> str:
    """Name of the counterpart in the open conversation."""
    return counterpart_name(fields.counterpart_name)


def messages_fingerprint(fields: RawFields) -> str:
    """Changes whenever a message is added to the open conversation."""
    name = context_fingerprint(fields)
    if not name:
        return ""
    last = fields.messages[-1].text if fields.messages else ""
    digest = hashlib.sha1(last.encode("utf-8")).hexdigest()[:12]
    return f"{name}:{len(fields.messages)}:{digest}"
