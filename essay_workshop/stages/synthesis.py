"""
Stage 4b: synthesis.

The aggregate score and impression label come from the dimension scores;
the generative call only narrates them into strengths, gaps and a roadmap.
"""
from __future__ import annotations
from typing import Any, Dict, List
import logging

from essay_workshop.ir import (
    AnalysisInput,
    DimensionScore,
    Gap,
    HolisticUnderstanding,
    Strength,
    SynthesizedInsights,
)
from essay_workshop.llm.client import LLMSession
from essay_workshop.llm.parsing import Schema, normalize
from essay_workshop.llm.prompts import SYNTHESIS_SYSTEM_PROMPT, SYNTHESIS_USER_TEMPLATE
from essay_workshop.rules.load_rules import EssayTypeProfile
from essay_workshop.stages.scoring import aggregate_score, impression_label

logger = logging.getLogger(__name__)

FIX_COMPLEXITIES = ("easy", "moderate", "challenging")

SYNTHESIS_SCHEMA: Schema = {
    "strengths": ("list", []),
    "gaps": ("list", []),
    "opportunities": ("list", []),
    "percentile_estimate": ("str", ""),
    "officer_perspective": ("dict", {}),
    "roadmap": ("list", []),
    "key_insights": ("list", []),
}


def _dimension_table(dimensions: List[DimensionScore]) -> str:
    return "\n".join(f"- {d.key}: {d.score}/10, weight {d.weight:.3f}" for d in dimensions)


def _strengths(raw: List[Any]) -> List[Strength]:
    out = []
    for s in raw:
        if not isinstance(s, dict):
            continue
        out.append(Strength(
            dimension=str(s.get("dimension", "")),
            title=str(s.get("title", "")),
            description=str(s.get("description", "")),
            evidence=[str(e) for e in s.get("evidence", []) or [] if isinstance(e, str)],
        ))
    return out


def _gaps(raw: List[Any]) -> List[Gap]:
    out = []
    for g in raw:
        if not isinstance(g, dict):
            continue
        complexity = str(g.get("fix_complexity", "moderate")).lower()
        out.append(Gap(
            dimension=str(g.get("dimension", "")),
            title=str(g.get("title", "")),
            description=str(g.get("description", "")),
            fix_complexity=complexity if complexity in FIX_COMPLEXITIES else "moderate",
            estimated_gain=str(g.get("estimated_gain", "")),
        ))
    return out


async def synthesize(
    essay: AnalysisInput,
    profile: EssayTypeProfile,
    holistic: HolisticUnderstanding,
    dimensions: List[DimensionScore],
    session: LLMSession,
) -> SynthesizedInsights:
    aggregate = aggregate_score(dimensions)
    label = impression_label(aggregate)

    prompt = SYNTHESIS_USER_TEMPLATE.format(
        essay_type=profile.id,
        primary_goal=profile.primary_goal,
        aggregate=aggregate,
        label=label,
        dimension_table=_dimension_table(dimensions),
        central_theme=holistic.central_theme,
        primary_voice=holistic.primary_voice,
        red_flags="; ".join(holistic.red_flags) or "none",
        text=essay.text,
    )
    response = await session.complete_json(SYNTHESIS_SYSTEM_PROMPT, prompt, label="stage4.synthesis")
    values, missing = normalize(response.data or {}, SYNTHESIS_SCHEMA)
    if missing:
        logger.warning(f"stage4.synthesis: degraded, missing {', '.join(missing)}")

    officer: Dict[str, Any] = values["officer_perspective"]
    return SynthesizedInsights(
        essay_type=profile.id,
        aggregate_score=aggregate,
        impression_label=label,
        strengths=_strengths(values["strengths"]),
        gaps=_gaps(values["gaps"]),
        opportunities=[str(o) for o in values["opportunities"]],
        percentile_estimate=values["percentile_estimate"],
        officer_perspective=officer,
        roadmap=[str(r) for r in values["roadmap"]],
        key_insights=[str(k) for k in values["key_insights"]],
        tokens_used=response.tokens_used,
    )
