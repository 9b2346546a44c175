"""Prompt builders for the inference backend."""

import json
from typing import Any

from ..models import Context, GenerationMode, Sender, StyleProfile

BIO_ANALYSIS_PROMPT = """Analyze this dating profile bio and extract:
- personality: array of traits
- interests: array of hobbies/interests mentioned
- looking_for: what they seem to want
- red_flags: any concerning patterns (be objective)
- green_flags: positive indicators
- humor: boolean, do they seem funny
- conversation_starters: 2-3 topics you could talk about based on the bio
Return ONLY valid JSON."""

IMAGE_ANALYSIS_PROMPT = """You are a dating profile analyzer. Analyze the profile photo and extract relevant characteristics.
Return ONLY valid JSON with:
- estimated_age: number
- vibe: string (adventurous, artistic, professional, sporty, etc)
- interests: array of strings (visible hobbies, activities, settings)
- attractiveness_factors: array of strings (smile, style, confidence, etc)
Be respectful and objective."""

DECISION_PROMPT = """You are a dating assistant helping someone find matches. Based on their learned preferences and the current profile, decide if they would like this person.

User's preferences and patterns:
{preferences}

Return ONLY valid JSON with:
- decision: "right" | "left" | "super"
- confidence: 0-100
- reasons: array of strings explaining why
- match_percentage: estimated compatibility 0-100"""

PREFERENCES_PROMPT = """Analyze the user's dating preferences based on their swipe history. Compare liked vs disliked profiles to find patterns.

Return ONLY valid JSON with:
- traits: array of preferred characteristics
- interests: common interests they're attracted to
- physical_preferences: patterns in physical attributes
- deal_breakers: things that made them swipe left
- must_haves: things consistently present in right swipes
- type: one sentence describing their "type\""""

STYLE_PROMPT = """Analyze this person's texting style from their message samples.

Return ONLY valid JSON with:
- tone: primary tone (casual, flirty, funny, sincere, witty)
- message_length: short, medium, long
- emoji_usage: none, minimal, moderate, heavy
- patterns: array of notable patterns
- vocabulary: array of frequently used words/phrases"""

MODE_INSTRUCTIONS = {
    GenerationMode.OPENER: """There are no messages yet. Generate an OPENING message that:
- References something specific from their profile
- Is unique, not generic, and short (1-2 sentences)
- Avoids corny pickup lines""",
    GenerationMode.REPLY: """The match sent the last message. Generate a REPLY that:
- Responds to what they said
- Keeps the conversation flowing
- Shows genuine interest""",
    GenerationMode.FOLLOW_UP: """The user sent the LAST message and hasn't gotten a reply yet. Generate a FOLLOW-UP message to:
- Re-engage the conversation
- Ask a question or share something interesting
- NOT repeat what was already said
- Keep it light and not desperate""",
}

GENERATION_PROMPT = """You are helping someone chat on a dating app. Generate a message that matches their texting style.

Their texting style samples:
{samples}

Style characteristics:
- Tone: {tone}
- Emoji usage: {emoji_usage}

Match's profile info:
{profile}

CONTEXT: {instruction}

Rules:
- Match their typing style (length, punctuation, emoji usage)
- Be natural and conversational
- Don't be creepy or too forward too fast
- Return ONLY the message text, nothing else"""


def format_conversation(context: Context) -> str:
    """Render messages as 'You: ...' / '<name>: ...' lines."""
    name = context.counterpart_name or "Them"
    lines = []
    for message in context.messages:
        speaker = "You" if message.sender is Sender.SELF else name
        lines.append(f"{speaker}: {message.text}")
    return "\n".join(lines)


def build_generation_prompt(
    style: StyleProfile,
    mode: GenerationMode,
    counterpart: dict[str, Any] | None = None,
    sample_limit: int = 20,
) -> str:
    """Build the system prompt for message generation."""
    samples = "\n".join(style.recent_samples(sample_limit)) or "(no samples yet)"
    return GENERATION_PROMPT.format(
        samples=samples,
        tone=style.tone or "casual",
        emoji_usage=style.emoji_usage or "moderate",
        profile=json.dumps(counterpart, default=str) if counterpart else "Not available",
        instruction=MODE_INSTRUCTIONS[mode],
    )


def build_generation_request(context: Context, mode: GenerationMode) -> str:
    """Build the user message for message generation."""
    if mode is GenerationMode.OPENER:
        return f"Write my opening message to {context.counterpart_name}."
    label = "follow-up" if mode is GenerationMode.FOLLOW_UP else "response"
    return f"Conversation so far:\n{format_conversation(context)}\n\nGenerate my next {label}:"
