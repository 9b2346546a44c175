"""Inference backends."""

from .base import InferenceService, basic_analysis, parse_json_object
from .groq_service import GroqInferenceService, InferenceConfig, inference_config_from_env

__all__ = [
    "GroqInferenceService",
    "InferenceConfig",
    "InferenceService",
    "basic_analysis",
    "inference_config_from_env",
    "parse_json_object",
]
