"""Inference backend on the Groq SDK."""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable

from groq import APIError, AsyncGroq

from ..errors import CredentialMissing, RequestFailed
from ..models import AnalysisResult, Context, Entity, GenerationMode, StyleProfile
from .base import parse_json_object
from .prompts import (
    BIO_ANALYSIS_PROMPT,
    DECISION_PROMPT,
    IMAGE_ANALYSIS_PROMPT,
    PREFERENCES_PROMPT,
    STYLE_PROMPT,
    build_generation_prompt,
    build_generation_request,
)

logger = logging.getLogger(__name__)

KeyProvider = Callable[[], str | None]


@dataclass
class InferenceConfig:
    """Model selection and request limits."""

    model: str = "llama-3.3-70b-versatile"
    fast_model: str = "llama-3.1-8b-instant"
    vision_model: str | None = None
    max_tokens: int = 500
    history_limit: int = 30
    style_sample_limit: int = 20


def inference_config_from_env() -> InferenceConfig:
    """Load model selection from GROQ_* environment variables."""
    defaults = InferenceConfig()
    return InferenceConfig(
        model=os.getenv("GROQ_MODEL", defaults.model),
        fast_model=os.getenv("GROQ_FAST_MODEL", defaults.fast_model),
        vision_model=os.getenv("GROQ_VISION_MODEL") or None,
    )


def _env_key() -> str | None:
    return os.getenv("GROQ_API_KEY")


class GroqInferenceService:
    """InferenceService implementation that wraps AsyncGroq.

    The client is created lazily from the key provider, so a key saved after
    startup is picked up on the next call.

    Example:
        service = GroqInferenceService(api_key=lambda: store.get("settings").get("api_key"))
        result = await service.analyze_entity(entity)
    """

    def __init__(
        self,
        client: AsyncGroq | None = None,
        config: InferenceConfig | None = None,
        api_key: KeyProvider | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            client: Pre-built client. When given, no key lookup happens.
            config: Model selection, defaults to InferenceConfig().
            api_key: Callable returning the configured key; GROQ_API_KEY is
                used when it returns nothing.
        """
        self._client = client
        self._client_key: str | None = None
        self.config = config or InferenceConfig()
        self._api_key = api_key or _env_key

    def _resolve_key(self) -> str:
        key = (self._api_key() or "").strip() or (_env_key() or "").strip()
        if not key:
            raise CredentialMissing()
        return key

    def _get_client(self) -> AsyncGroq:
        if self._client is not None and self._client_key is None:
            return self._client
        key = self._resolve_key()
        if self._client is None or key != self._client_key:
            self._client = AsyncGroq(api_key=key)
            self._client_key = key
        return self._client

    async def _complete(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> str:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=model or self.config.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens or self.config.max_tokens,
            )
        except APIError as e:
            raise RequestFailed(f"Groq request failed: {e}") from e
        return response.choices[0].message.content or ""

    async def _complete_json(self, messages: list[dict[str, Any]], **kwargs: Any) -> dict[str, Any]:
        content = await self._complete(messages, **kwargs)
        data = parse_json_object(content)
        if data is None:
            raise RequestFailed(f"Could not parse JSON from reply: {content[:100]!r}")
        return data

    async def analyze_entity(self, entity: Entity) -> AnalysisResult:
        """Analyze bio text and, when a vision model is configured, the primary image."""
        result = AnalysisResult()

        if entity.bio:
            result.bio = await self._complete_json(
                [
                    {"role": "system", "content": BIO_ANALYSIS_PROMPT},
                    {"role": "user", "content": entity.bio},
                ],
                model=self.config.fast_model,
                temperature=0.3,
            )

        if entity.primary_image and self.config.vision_model:
            try:
                result.image = await self._complete_json(
                    [
                        {"role": "system", "content": IMAGE_ANALYSIS_PROMPT},
                        {
                            "role": "user",
                            "content": [
                                {"type": "text", "text": "Analyze this profile photo:"},
                                {"type": "image_url", "image_url": {"url": entity.primary_image}},
                            ],
                        },
                    ],
                    model=self.config.vision_model,
                    temperature=0.3,
                )
            except RequestFailed as e:
                # The bio analysis is still worth returning.
                logger.warning(f"Image analysis failed: {e}")

        return result

    async def analyze_preferences(
        self, liked: list[dict[str, Any]], disliked: list[dict[str, Any]]
    ) -> dict[str, Any] | None:
        limit = self.config.history_limit
        payload = {"liked": liked[-limit:], "disliked": disliked[-limit:]}
        return await self._complete_json(
            [
                {"role": "system", "content": PREFERENCES_PROMPT},
                {"role": "user", "content": json.dumps(payload, default=str)},
            ],
            temperature=0.3,
            max_tokens=800,
        )

    async def analyze_style(self, samples: list[str]) -> dict[str, Any] | None:
        recent = samples[-self.config.history_limit :]
        return await self._complete_json(
            [
                {"role": "system", "content": STYLE_PROMPT},
                {"role": "user", "content": "\n".join(recent)},
            ],
            temperature=0.3,
        )

    async def generate_message(
        self,
        context: Context,
        style: StyleProfile,
        mode: GenerationMode,
        counterpart: dict[str, Any] | None = None,
    ) -> str:
        system = build_generation_prompt(
            style, mode, counterpart, sample_limit=self.config.style_sample_limit
        )
        content = await self._complete(
            [
                {"role": "system", "content": system},
                {"role": "user", "content": build_generation_request(context, mode)},
            ],
            temperature=0.8,
            max_tokens=150,
        )
        return content.strip().strip('"').strip()

    async def decide(
        self, profile: dict[str, Any], preferences: dict[str, Any]
    ) -> dict[str, Any] | None:
        return await self._complete_json(
            [
                {
                    "role": "system",
                    "content": DECISION_PROMPT.format(
                        preferences=json.dumps(preferences, default=str)
                    ),
                },
                {"role": "user", "content": json.dumps(profile, default=str)},
            ],
            temperature=0.3,
        )
