"""Coordinator configuration.

Timings and budgets live in CoordinatorConfig; values can be overridden
through WINGMAN_* environment variables (loaded from .env by the entry point).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_DB_PATH = Path.home() / ".wingman" / "state.db"

# Chat notices rendered by the surface that are not real messages.
DEFAULT_SYSTEM_MARKERS = (
    "hours left",
    "introduce yourself",
    "start a chat",
    "make a move",
    "matched",
)


@dataclass
class CoordinatorConfig:
    """Configuration for detection, extraction and scheduling.

    Attributes:
        poll_interval_ms: Safety-net polling interval for change detection.
        entity_render_delay: Wait before the first entity read (seconds).
        entity_retry_delay: Delay between entity re-reads (seconds).
        entity_max_retries: Re-reads allowed while the name is unresolved.
        conversation_render_delay: Wait before the first conversation read.
        conversation_retry_delay: Delay between conversation re-reads.
        conversation_max_attempts: Total conversation reads allowed.
        switch_settle_delay: Guard window after a conversation swap.
        auto_suggest_delay: Delay between a context becoming ready and the
            automatic suggestion.
        follow_up_delay: Delay between sending a message and suggesting a
            follow-up.
        min_sample_length: Shorter style samples are ignored.
        min_bio_length: Bios at or below this length are not sent for analysis.
        system_markers: Lowercase substrings identifying surface notices.
    """

    poll_interval_ms: int = 2000
    entity_render_delay: float = 0.8
    entity_retry_delay: float = 0.6
    entity_max_retries: int = 3
    conversation_render_delay: float = 1.0
    conversation_retry_delay: float = 0.5
    conversation_max_attempts: int = 5
    switch_settle_delay: float = 1.2
    auto_suggest_delay: float = 0.3
    follow_up_delay: float = 1.0
    min_sample_length: int = 2
    min_bio_length: int = 10
    system_markers: tuple[str, ...] = field(default=DEFAULT_SYSTEM_MARKERS)

    def __post_init__(self) -> None:
        if self.entity_max_retries < 0:
            raise ValueError("entity_max_retries cannot be negative")
        if self.conversation_max_attempts < 1:
            raise ValueError("conversation_max_attempts must be at least 1")
        if self.poll_interval_ms < 1:
            raise ValueError("poll_interval_ms must be positive")

    @classmethod
    def immediate(cls) -> "CoordinatorConfig":
        """Same budgets with every delay set to zero."""
        return cls(
            entity_render_delay=0,
            entity_retry_delay=0,
            conversation_render_delay=0,
            conversation_retry_delay=0,
            switch_settle_delay=0,
            auto_suggest_delay=0,
            follow_up_delay=0,
        )


def config_from_env() -> CoordinatorConfig:
    """Load configuration from environment variables."""
    return CoordinatorConfig(
        poll_interval_ms=int(os.getenv("WINGMAN_POLL_INTERVAL_MS", "2000")),
        entity_max_retries=int(os.getenv("WINGMAN_ENTITY_RETRIES", "3")),
        conversation_max_attempts=int(os.getenv("WINGMAN_CONVERSATION_ATTEMPTS", "5")),
        switch_settle_delay=float(os.getenv("WINGMAN_SWITCH_SETTLE", "1.2")),
    )


def db_path_from_env() -> Path:
    """Location of the persistent store."""
    raw = os.getenv("WINGMAN_DB_PATH")
    return Path(raw).expanduser() if raw else DEFAULT_DB_PATH
