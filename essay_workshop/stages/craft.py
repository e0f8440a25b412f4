"""Stage 3: deterministic grammar and voice metrics plus one generative style pass."""
from __future__ import annotations
import logging

from essay_workshop.analysis.grammar import analyze_grammar
from essay_workshop.analysis.voice import analyze_voice
from essay_workshop.ir import AnalysisInput, CraftAnalysis, StageResult
from essay_workshop.llm.client import LLMSession
from essay_workshop.llm.parsing import Schema, normalize
from essay_workshop.llm.prompts import STYLE_SYSTEM_PROMPT, STYLE_USER_TEMPLATE

logger = logging.getLogger(__name__)

STYLE_SCHEMA: Schema = {
    "formality_level": ("num", 5.0),
    "energy_level": ("num", 5.0),
    "voice_distinctiveness": ("num", 5.0),
    "originality_score": ("num", 5.0),
    "memorable_phrases": ("list", []),
    "voice_consistency": ("num", 5.0),
    "rhythm_quality": ("num", 5.0),
    "imagery_strength": ("num", 5.0),
    "style_notes": ("list", []),
}


async def analyze_craft(essay: AnalysisInput, session: LLMSession) -> CraftAnalysis:
    grammar = analyze_grammar(essay.text)
    voice = analyze_voice(essay.text)

    prompt = STYLE_USER_TEMPLATE.format(
        avg_sentence_length=grammar.sentences.average_length,
        variety_score=grammar.sentences.variety_score,
        voice_score=voice.voice_score,
        voice_quality=voice.voice_quality,
        essay_speak=", ".join(voice.essay_speak_examples) or "none",
        text=essay.text,
    )
    response = await session.complete_json(STYLE_SYSTEM_PROMPT, prompt, label="stage3.style")
    values, missing = normalize(response.data or {}, STYLE_SCHEMA)
    if missing:
        logger.warning(f"stage3.style: degraded, missing {', '.join(missing)}")

    return CraftAnalysis(
        grammar=grammar,
        voice=voice,
        style=StageResult("style", values, response.tokens_used, missing),
    )
