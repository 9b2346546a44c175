"""Bounded-retry extraction from a surface that renders progressively."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from ..config import CoordinatorConfig
from ..errors import ExtractionFailure
from ..models import UNKNOWN_NAME, Entity, Message
from .base import RawFields, SurfaceObserver, counterpart_name

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class ConversationSnapshot:
    """Fields of a freshly opened conversation."""

    counterpart_name: str
    counterpart_photo: str | None
    messages: tuple[Message, ...]
    attempts: int


class ExtractionRetryPolicy:
    """Samples the surface until required fields stabilize or the budget runs out.

    Never raises and never blocks past its budget: when the mandatory name
    cannot be read, a placeholder entity named UNKNOWN_NAME is returned.
    """

    def __init__(
        self,
        observer: SurfaceObserver,
        config: CoordinatorConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.observer = observer
        self.config = config or CoordinatorConfig()
        self._sleep = sleep

    def _read(self) -> RawFields:
        try:
            return self.observer.read_snapshot()
        except Exception as e:
            raise ExtractionFailure(f"snapshot read failed: {e}") from e

    def _read_entity(self, identity: str) -> Entity:
        """Build an entity from one snapshot. The name may still be unresolved."""
        fields = self._read()
        images = tuple(dict.fromkeys(url for url in fields.images if url))
        return Entity(
            identity_hash=identity,
            name=(fields.name or "").strip() or UNKNOWN_NAME,
            age=fields.age,
            bio=fields.bio.strip(),
            images=images,
            primary_image=images[0] if images else None,
            detected_at=time.time(),
        )

    async def extract(self, identity: str) -> Entity:
        """Extract the entity behind identity.

        The name is mandatory; bio and images are taken as found.

        Args:
            identity: Fingerprint that triggered the extraction.

        Returns:
            The resolved entity, or the best partial read with name UNKNOWN_NAME.
        """
        await self._sleep(self.config.entity_render_delay)

        best = Entity(identity_hash=identity)
        max_retries = self.config.entity_max_retries
        for attempt in range(max_retries + 1):
            try:
                entity = self._read_entity(identity)
            except ExtractionFailure as e:
                logger.debug(f"Entity read failed: {e}")
            else:
                if entity.resolved:
                    return entity
                best = entity

            if attempt < max_retries:
                logger.debug(f"Name not found, retry {attempt + 1}/{max_retries}")
                await self._sleep(self.config.entity_retry_delay)

        logger.info(f"Name not resolved for {identity!r}, using placeholder")
        return best

    async def extract_conversation(self) -> ConversationSnapshot:
        """Read a freshly opened conversation.

        Succeeds as soon as messages are visible; after the budget an empty
        conversation is accepted as genuinely empty.
        """
        await self._sleep(self.config.conversation_render_delay)

        max_attempts = self.config.conversation_max_attempts
        fields = RawFields()
        attempt = 0
        while attempt < max_attempts:
            attempt += 1
            try:
                fields = self._read()
            except ExtractionFailure as e:
                logger.debug(f"Conversation read {attempt}/{max_attempts} failed: {e}")
                fields = RawFields()
            if fields.messages or attempt >= max_attempts:
                break
            await self._sleep(self.config.conversation_retry_delay)

        logger.info(f"Loaded {len(fields.messages)} messages after {attempt} attempt(s)")
        return ConversationSnapshot(
            counterpart_name=counterpart_name(fields.counterpart_name) or UNKNOWN_NAME,
            counterpart_photo=fields.counterpart_photo,
            messages=tuple(fields.messages),
            attempts=attempt,
        )
