"""Surface observation: change detection and extraction."""

from .base import (
    RawFields,
    SurfaceObserver,
    context_fingerprint,
    entity_fingerprint,
    messages_fingerprint,
)
from .detector import ChangeDetector
from .extraction import ConversationSnapshot, ExtractionRetryPolicy

__all__ = [
    "ChangeDetector",
    "ConversationSnapshot",
    "ExtractionRetryPolicy",
    "RawFields",
    "SurfaceObserver",
    "context_fingerprint",
    "entity_fingerprint",
    "messages_fingerprint",
]
