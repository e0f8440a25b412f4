"""
Stage 2: six section analyzers run concurrently.

Each analyzer sends one request scoped to its slice of the essay and
normalizes the reply against a fixed field schema. The fan-out is a
barrier: under the default fail_fast policy the first analyzer failure
cancels the others and aborts the stage.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional
import asyncio
import logging
import time

from essay_workshop.errors import StageFailed
from essay_workshop.ir import AnalysisInput, HolisticUnderstanding, StageResult
from essay_workshop.llm.client import LLMSession
from essay_workshop.llm.parsing import Schema, normalize
from essay_workshop.llm.prompts import (
    BODY_SYSTEM_PROMPT,
    CHARACTER_SYSTEM_PROMPT,
    CLIMAX_SYSTEM_PROMPT,
    CONCLUSION_SYSTEM_PROMPT,
    OPENING_SYSTEM_PROMPT,
    STAGE2_USER_TEMPLATE,
    STAKES_SYSTEM_PROMPT,
)
from essay_workshop.rules.load_rules import EssayTypeProfile
from essay_workshop.text import Sentence, section_text

logger = logging.getLogger(__name__)

POLICIES = ("fail_fast", "degraded")

OPENING_SCHEMA: Schema = {
    "hook_type": ("str", "none"),
    "hook_strength": ("num", 5.0),
    "hook_quote": ("str", ""),
    "has_opening_scene": ("bool", False),
    "scene_vividness": ("num", 5.0),
    "sensory_details": ("list", []),
    "has_temporal_anchor": ("bool", False),
    "has_spatial_anchor": ("bool", False),
    "context_clarity": ("num", 5.0),
    "reader_engagement": ("num", 5.0),
    "improvement_suggestions": ("list", []),
}

BODY_SCHEMA: Schema = {
    "narrative_progression": ("num", 5.0),
    "specificity_level": ("num", 5.0),
    "quantification_presence": ("num", 5.0),
    "agency_demonstration": ("num", 5.0),
    "concrete_examples": ("list", []),
    "vague_statements": ("list", []),
    "show_vs_tell": ("dict", {"showing": 50.0, "telling": 50.0}),
    "pacing_rating": ("num", 5.0),
    "rushed_sections": ("list", []),
    "belabored_sections": ("list", []),
    "detected_issues": ("list", []),
}

CLIMAX_SCHEMA: Schema = {
    "has_identifiable_climax": ("bool", False),
    "climax_strength": ("num", 5.0),
    "has_turning_point": ("bool", False),
    "turning_point_type": ("str", "none"),
    "turning_point_quote": ("str", ""),
    "turning_point_depth": ("num", 5.0),
    "stakes_clarity": ("num", 5.0),
    "conflict_present": ("bool", False),
    "conflict_type": ("str", "none"),
    "vulnerability_moments": ("list", []),
    "improvement_suggestions": ("list", []),
}

CONCLUSION_SCHEMA: Schema = {
    "conclusion_type": ("str", "summary"),
    "conclusion_strength": ("num", 5.0),
    "conclusion_quote": ("str", ""),
    "reflection_present": ("bool", False),
    "reflection_depth": ("num", 5.0),
    "reflection_type": ("str", "none"),
    "micro_to_macro": ("dict", {"present": False, "connection_quality": 5.0}),
    "intellectual_maturity": ("num", 5.0),
    "philosophical_depth": ("num", 5.0),
    "nuanced_thinking": ("bool", False),
    "cliches_detected": ("list", []),
    "generic_statements": ("list", []),
}

CHARACTER_SCHEMA: Schema = {
    "protagonist_clarity": ("num", 5.0),
    "agency_level": ("num", 5.0),
    "interiority_present": ("bool", False),
    "interiority_depth": ("num", 5.0),
    "emotion_description_type": ("str", "named"),
    "voice_authenticity": ("num", 5.0),
    "dialogue_present": ("bool", False),
    "dialogue_quality": ("num", 5.0),
    "dialogue_percentage": ("num", 0.0),
    "dialogue_examples": ("list", []),
    "growth_demonstrated": ("bool", False),
    "inauthentic_markers": ("list", []),
}

STAKES_SCHEMA: Schema = {
    "tension_level": ("num", 5.0),
    "stakes_established": ("bool", False),
    "stakes_type": ("str", "none"),
    "stakes_height": ("num", 5.0),
    "conflict_markers": ("list", []),
    "progression_score": ("num", 5.0),
    "resolution_present": ("bool", False),
    "resolution_satisfying": ("bool", False),
}


@dataclass(frozen=True)
class SectionAnalyzer:
    name: str
    system_prompt: str
    schema: Schema
    section: Optional[str]      # None means the whole essay is the focus
    label: str


ANALYZERS = (
    SectionAnalyzer("opening", OPENING_SYSTEM_PROMPT, OPENING_SCHEMA, "opening", "opening, first 15% of sentences"),
    SectionAnalyzer("body", BODY_SYSTEM_PROMPT, BODY_SCHEMA, "body", "body development"),
    SectionAnalyzer("climax", CLIMAX_SYSTEM_PROMPT, CLIMAX_SCHEMA, "climax", "climax band, 40-70% of sentences"),
    SectionAnalyzer("conclusion", CONCLUSION_SYSTEM_PROMPT, CONCLUSION_SCHEMA, "conclusion", "conclusion, last 20% of sentences"),
    SectionAnalyzer("character", CHARACTER_SYSTEM_PROMPT, CHARACTER_SCHEMA, None, "the narrator across the whole essay"),
    SectionAnalyzer("stakes", STAKES_SYSTEM_PROMPT, STAKES_SCHEMA, None, "stakes and tension across the whole essay"),
)

ANALYZER_NAMES = tuple(a.name for a in ANALYZERS)


def degraded_result(analyzer: SectionAnalyzer) -> StageResult:
    """Neutral defaults with every field flagged missing."""
    values, missing = normalize({}, analyzer.schema)
    return StageResult(analyzer=analyzer.name, data=values, missing_fields=missing)


async def run_analyzer(
    analyzer: SectionAnalyzer,
    essay: AnalysisInput,
    sentences: List[Sentence],
    holistic: HolisticUnderstanding,
    profile: EssayTypeProfile,
    session: LLMSession,
) -> StageResult:
    focus = section_text(sentences, analyzer.section) if analyzer.section else essay.text
    prompt = STAGE2_USER_TEMPLATE.format(
        essay_type=profile.id,
        primary_goal=profile.primary_goal,
        central_theme=holistic.central_theme or "(unknown)",
        section_label=analyzer.label,
        section_text=focus,
        text=essay.text,
    )
    response = await session.complete_json(analyzer.system_prompt, prompt, label=f"stage2.{analyzer.name}")
    values, missing = normalize(response.data or {}, analyzer.schema)
    if missing:
        logger.warning(f"stage2.{analyzer.name}: degraded, missing {', '.join(missing)}")
    return StageResult(
        analyzer=analyzer.name,
        data=values,
        tokens_used=response.tokens_used,
        missing_fields=missing,
    )


async def _cancel_all(tasks) -> None:
    for t in tasks:
        t.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


async def run_deep_dive(
    essay: AnalysisInput,
    sentences: List[Sentence],
    holistic: HolisticUnderstanding,
    profile: EssayTypeProfile,
    session: LLMSession,
    policy: str = "fail_fast",
    parallelism: int = 6,
) -> Dict[str, StageResult]:
    """
    Fan out the six analyzers and wait for all of them.

    fail_fast: the first failure cancels the in-flight analyzers and raises
    StageFailed naming the analyzer. degraded: a failed analyzer is replaced
    by degraded_result(); the result still covers all six analyzers.
    """
    if policy not in POLICIES:
        raise ValueError(f"Unknown stage 2 policy: {policy}")

    start = time.time()
    semaphore = asyncio.Semaphore(parallelism)

    async def guarded(analyzer: SectionAnalyzer) -> StageResult:
        async with semaphore:
            return await run_analyzer(analyzer, essay, sentences, holistic, profile, session)

    tasks = {asyncio.ensure_future(guarded(a)): a for a in ANALYZERS}
    return_when = asyncio.FIRST_EXCEPTION if policy == "fail_fast" else asyncio.ALL_COMPLETED
    try:
        done, pending = await asyncio.wait(tasks, return_when=return_when)
    except asyncio.CancelledError:
        await _cancel_all(list(tasks))
        raise

    failures = [
        (tasks[t], t.exception())
        for t in sorted(done, key=lambda t: ANALYZERS.index(tasks[t]))
        if t.exception() is not None
    ]
    if failures and policy == "fail_fast":
        await _cancel_all(list(pending))
        analyzer, exc = failures[0]
        logger.error(f"stage2.{analyzer.name} failed: {exc}; cancelled {len(pending)} in-flight analyzer(s)")
        raise StageFailed("stage2", analyzer.name, exc) from exc

    results: Dict[str, StageResult] = {}
    failed = {a.name for a, _ in failures}
    for t, analyzer in tasks.items():
        if analyzer.name in failed:
            logger.warning(f"stage2.{analyzer.name}: failed, using degraded defaults")
            results[analyzer.name] = degraded_result(analyzer)
        else:
            results[analyzer.name] = t.result()

    logger.info(
        f"Stage 2 complete in {time.time() - start:.1f}s "
        f"({sum(r.tokens_used for r in results.values())} tokens, {len(failed)} failed)"
    )
    return results
