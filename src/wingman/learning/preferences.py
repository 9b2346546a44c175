"""Preference learning from accept/reject decisions."""

import logging

from ..errors import WingmanError
from ..inference.base import InferenceService
from ..logging import JSONLLogger, get_logger
from ..models import (
    DISLIKED_HISTORY_CAP,
    LIKED_HISTORY_CAP,
    Entity,
    PreferenceProfile,
    append_bounded,
)
from ..store import BucketStore

logger = logging.getLogger(__name__)

BUCKET = "preferences"
MIN_LIKED = 5
RETRAIN_EVERY = 10


def should_retrain(profile: PreferenceProfile) -> bool:
    """Retrain once more than MIN_LIKED accepts exist, every RETRAIN_EVERY decisions."""
    return len(profile.liked_history) > MIN_LIKED and profile.history_size % RETRAIN_EVERY == 0


class PreferenceAccumulator:
    """Accumulates decision history and periodically re-derives preferences."""

    def __init__(
        self,
        store: BucketStore,
        inference: InferenceService,
        event_log: JSONLLogger | None = None,
    ) -> None:
        self.store = store
        self.inference = inference
        self.event_log = event_log or get_logger()

    @property
    def profile(self) -> PreferenceProfile:
        return PreferenceProfile.from_dict(self.store.get(BUCKET))

    async def record(self, entity: Entity, accepted: bool) -> bool:
        """Append entity to the liked or disliked history.

        Args:
            entity: The decided entity.
            accepted: True for accept and super, False for reject.

        Returns:
            True if the append triggered a retrain.
        """
        profile = self.profile
        if accepted:
            profile.liked_history = append_bounded(
                profile.liked_history, entity.summary(), LIKED_HISTORY_CAP
            )
        else:
            profile.disliked_history = append_bounded(
                profile.disliked_history, entity.summary(), DISLIKED_HISTORY_CAP
            )
        self.store.set(BUCKET, profile.to_dict())

        if not should_retrain(profile):
            return False
        await self.retrain(profile)
        return True

    async def retrain(self, profile: PreferenceProfile | None = None) -> bool:
        """Re-derive preference fields from the history.

        On failure the previous derived fields are kept.

        Returns:
            True if the profile was updated.
        """
        profile = profile or self.profile
        sample_count = profile.history_size
        logger.info(f"Retraining preferences from {sample_count} decisions")
        try:
            derived = await self.inference.analyze_preferences(
                profile.liked_history, profile.disliked_history
            )
        except WingmanError as e:
            logger.warning(f"Preference retrain failed: {e}")
            self.event_log.log_retrain(BUCKET, False, sample_count=sample_count, error=str(e))
            return False

        if not derived:
            self.event_log.log_retrain(BUCKET, False, sample_count=sample_count, error="empty reply")
            return False

        # History may have grown while the call was in flight.
        current = self.profile
        current.traits = list(derived.get("traits") or [])
        current.interests = list(derived.get("interests") or [])
        current.physical_preferences = list(derived.get("physical_preferences") or [])
        current.deal_breakers = list(derived.get("deal_breakers") or [])
        current.must_haves = list(derived.get("must_haves") or [])
        current.type_summary = str(derived.get("type") or derived.get("type_summary") or "")
        self.store.set(BUCKET, current.to_dict())

        self.event_log.log_retrain(BUCKET, True, sample_count=sample_count)
        return True
