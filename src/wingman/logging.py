"""JSONL event logging for observability."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    context_id: str | None = None
    version: int | None = None
    duration_ms: float | None = None
    outcome: str | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


class JSONLLogger:
    """Logger that writes coordinator events in JSONL format."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "events.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".wingman" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        """Write a log entry to the file."""
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), default=str) + "\n")

    def log(
        self,
        event: str,
        *,
        context_id: str | None = None,
        version: int | None = None,
        duration_ms: float | None = None,
        outcome: str | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            context_id=context_id,
            version=version,
            duration_ms=duration_ms,
            outcome=outcome,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_detection(self, kind: str, fingerprint: str, *, version: int) -> None:
        """Log a detected identity or conversation change."""
        self.log("detection", context_id=fingerprint, version=version, kind=kind)

    def log_inference(
        self,
        kind: str,
        outcome: str,
        *,
        version: int,
        context_id: str | None = None,
        duration_ms: float | None = None,
        error: str | None = None,
    ) -> None:
        """Log the outcome of an orchestrated inference call."""
        self.log(
            "inference",
            context_id=context_id,
            version=version,
            duration_ms=duration_ms,
            outcome=outcome,
            error=error,
            kind=kind,
        )

    def log_retrain(
        self,
        profile: str,
        success: bool,
        *,
        sample_count: int,
        error: str | None = None,
    ) -> None:
        """Log a learning accumulator retraining cycle."""
        self.log(
            "retrain",
            outcome="success" if success else "failed",
            error=error if not success else None,
            profile=profile,
            sample_count=sample_count,
        )

    def log_action(
        self,
        kind: str,
        success: bool,
        *,
        version: int | None = None,
        error: str | None = None,
    ) -> None:
        """Log an action handed to the executor."""
        self.log(
            "action",
            version=version,
            outcome="executed" if success else "failed",
            error=error,
            kind=kind,
        )


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
