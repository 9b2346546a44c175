"""Change detection over a mutating surface."""

import logging
from typing import Callable

from .base import RawFields, SurfaceObserver

logger = logging.getLogger(__name__)

FingerprintFn = Callable[[RawFields], str]
ChangeCallback = Callable[[str, RawFields], None]


class ChangeDetector:
    """Turns mutation events and poll ticks into one change notification.

    Both channels call check_for_change(). Either channel may miss a
    transition on its own; because they share the last-seen fingerprint,
    a transition seen by both is still reported once.
    """

    def __init__(
        self,
        observer: SurfaceObserver,
        fingerprint: FingerprintFn,
        on_change: ChangeCallback,
        *,
        name: str = "entity",
        poll_interval_ms: int = 2000,
    ) -> None:
        self.observer = observer
        self.fingerprint = fingerprint
        self.on_change = on_change
        self.name = name
        self.poll_interval_ms = poll_interval_ms
        self._last_fingerprint: str | None = None
        self._started = False

    @property
    def last_fingerprint(self) -> str | None:
        """Fingerprint of the last reported change."""
        return self._last_fingerprint

    def start(self) -> None:
        """Wire the mutation subscription and the polling safety net."""
        if self._started:
            return
        self.observer.subscribe(self.on_surface_event)
        self.observer.poll(self.poll_interval_ms, self.poll_tick)
        self._started = True

    def on_surface_event(self) -> None:
        self.check_for_change()

    def poll_tick(self) -> None:
        self.check_for_change()

    def reset(self) -> None:
        """Forget the last fingerprint so the next check reports a change."""
        self._last_fingerprint = None

    def check_for_change(self) -> bool:
        """Compare the current fingerprint with the last one seen.

        Returns:
            True if a change was reported.
        """
        try:
            fields = self.observer.read_snapshot()
        except Exception as e:
            logger.warning(f"{self.name} snapshot read failed: {e}")
            return False

        current = self.fingerprint(fields)
        if not current or current == self._last_fingerprint:
            return False

        logger.info(f"{self.name} changed: {self._last_fingerprint!r} -> {current!r}")
        self._last_fingerprint = current
        self.on_change(current, fields)
        return True
