"""Writing-style learning from sent messages."""

import logging
import time

from ..errors import WingmanError
from ..inference.base import InferenceService
from ..logging import JSONLLogger, get_logger
from ..models import STYLE_SAMPLES_CAP, StyleProfile, append_bounded
from ..store import BucketStore

logger = logging.getLogger(__name__)

BUCKET = "chat_style"
MIN_SAMPLES = 10
RETRAIN_EVERY = 5


def should_retrain(profile: StyleProfile) -> bool:
    count = len(profile.samples)
    return count >= MIN_SAMPLES and count % RETRAIN_EVERY == 0


class StyleAccumulator:
    """Accumulates sent messages and periodically re-derives the writing style."""

    def __init__(
        self,
        store: BucketStore,
        inference: InferenceService,
        min_sample_length: int = 2,
        event_log: JSONLLogger | None = None,
    ) -> None:
        self.store = store
        self.inference = inference
        self.min_sample_length = min_sample_length
        self.event_log = event_log or get_logger()

    @property
    def profile(self) -> StyleProfile:
        return StyleProfile.from_dict(self.store.get(BUCKET))

    async def record(self, text: str) -> bool:
        """Add a sent message as a style sample.

        Returns:
            True if the sample triggered a retrain.
        """
        text = text.strip()
        if len(text) < self.min_sample_length:
            return False

        profile = self.profile
        profile.samples = append_bounded(
            profile.samples, {"text": text, "timestamp": time.time()}, STYLE_SAMPLES_CAP
        )
        self.store.set(BUCKET, profile.to_dict())

        if not should_retrain(profile):
            return False
        await self.retrain(profile)
        return True

    async def retrain(self, profile: StyleProfile | None = None) -> bool:
        """Re-derive style fields. On failure the profile is left untouched."""
        profile = profile or self.profile
        sample_count = len(profile.samples)
        try:
            derived = await self.inference.analyze_style(
                [str(s.get("text", "")) for s in profile.samples]
            )
        except WingmanError as e:
            logger.warning(f"Style retrain failed: {e}")
            self.event_log.log_retrain(BUCKET, False, sample_count=sample_count, error=str(e))
            return False

        if not derived:
            self.event_log.log_retrain(BUCKET, False, sample_count=sample_count, error="empty reply")
            return False

        # Derived fields are replaced as a whole; omitted ones reset to defaults.
        defaults = StyleProfile()
        current = self.profile
        current.tone = str(derived.get("tone") or defaults.tone)
        current.emoji_usage = str(derived.get("emoji_usage") or defaults.emoji_usage)
        current.message_length = derived.get("message_length") or defaults.message_length
        current.patterns = list(derived.get("patterns") or [])
        current.vocabulary = list(derived.get("vocabulary") or [])
        self.store.set(BUCKET, current.to_dict())

        logger.info(f"Style updated from {sample_count} samples: {current.tone}")
        self.event_log.log_retrain(BUCKET, True, sample_count=sample_count)
        return True
