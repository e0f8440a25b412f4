"""Stage 1: one generative read of the whole essay."""
from __future__ import annotations
from typing import List
import logging

from essay_workshop.ir import AnalysisInput, HolisticUnderstanding, KeyMoment
from essay_workshop.llm.client import LLMSession
from essay_workshop.llm.parsing import Schema, normalize
from essay_workshop.llm.prompts import HOLISTIC_SYSTEM_PROMPT, HOLISTIC_USER_TEMPLATE
from essay_workshop.rules.load_rules import EssayTypeProfile

logger = logging.getLogger(__name__)

HOLISTIC_SCHEMA: Schema = {
    "central_theme": ("str", ""),
    "narrative_thread": ("str", ""),
    "primary_voice": ("str", "reflective"),
    "voice_consistency": ("num", 5.0),
    "essay_structure": ("str", "unclear"),
    "number_of_distinct_sections": ("int", 3),
    "transition_quality": ("num", 5.0),
    "key_moments": ("list", []),
    "identified_themes": ("list", []),
    "emotional_arc": ("str", ""),
    "universal_insight": ("str", ""),
    "overall_coherence": ("num", 5.0),
    "authenticity_signals": ("list", []),
    "red_flags": ("list", []),
    "first_impression": ("str", ""),
    "estimated_strength_tier": ("str", "competent"),
}


def _key_moments(raw: list) -> List[KeyMoment]:
    moments = []
    for m in raw:
        if not isinstance(m, dict):
            continue
        try:
            effectiveness = float(m.get("effectiveness", 5))
        except (TypeError, ValueError):
            effectiveness = 5.0
        moments.append(KeyMoment(
            type=str(m.get("type", "")),
            sentence_range=str(m.get("sentence_range", "")),
            description=str(m.get("description", "")),
            effectiveness=effectiveness,
        ))
    return moments


async def analyze_holistic(
    essay: AnalysisInput,
    essay_type: str,
    session: LLMSession,
) -> HolisticUnderstanding:
    word_limit = f" (limit {essay.max_words})" if essay.max_words else ""
    prompt = HOLISTIC_USER_TEMPLATE.format(
        essay_type=essay_type,
        prompt_text=essay.prompt_text or "(none given)",
        word_count=essay.word_count,
        word_limit=word_limit,
        text=essay.text,
    )
    response = await session.complete_json(HOLISTIC_SYSTEM_PROMPT, prompt, label="stage1.holistic")
    values, missing = normalize(response.data or {}, HOLISTIC_SCHEMA)
    if missing:
        logger.warning(f"stage1.holistic: degraded, missing {', '.join(missing)}")

    return HolisticUnderstanding(
        central_theme=values["central_theme"],
        narrative_thread=values["narrative_thread"],
        primary_voice=values["primary_voice"],
        voice_consistency=values["voice_consistency"],
        essay_structure=values["essay_structure"],
        number_of_distinct_sections=values["number_of_distinct_sections"],
        transition_quality=values["transition_quality"],
        key_moments=_key_moments(values["key_moments"]),
        identified_themes=[str(t) for t in values["identified_themes"]],
        emotional_arc=values["emotional_arc"],
        universal_insight=values["universal_insight"],
        overall_coherence=values["overall_coherence"],
        authenticity_signals=[str(s) for s in values["authenticity_signals"]],
        red_flags=[str(f) for f in values["red_flags"]],
        first_impression=values["first_impression"],
        estimated_strength_tier=values["estimated_strength_tier"],
        tokens_used=response.tokens_used,
        missing_fields=missing,
    )


def brief(holistic: HolisticUnderstanding, profile: EssayTypeProfile) -> str:
    """Short holistic summary used as context by later generative calls."""
    lines = [
        f"Theme: {holistic.central_theme}",
        f"Voice: {holistic.primary_voice}",
        f"Structure: {holistic.essay_structure}",
        f"Essay type goal: {profile.primary_goal}",
    ]
    if holistic.universal_insight:
        lines.append(f"Insight: {holistic.universal_insight}")
    return "\n".join(lines)
