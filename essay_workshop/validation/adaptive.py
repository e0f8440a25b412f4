"""
Adaptive Validator: tier-aware thresholds.

The essay's current aggregate score picks one of six difficulty tiers.
Each tier bounds suggestion quality from both sides (weak essays are not
handed trivial fixes, strong ones are not handed fixes beyond the writer's
level) and limits sentence complexity and voice drift.
"""
from __future__ import annotations
from dataclasses import dataclass, replace
from typing import List, Optional
import logging
import math
import re

from essay_workshop.text import average_sentence_length
from essay_workshop.validation.validator import (
    OutputValidator,
    ValidationContext,
    ValidationFailure,
    ValidationResult,
)

logger = logging.getLogger(__name__)

TIERS = ("foundation", "developing", "competent", "strong", "exceptional", "masterful")


@dataclass(frozen=True)
class TierThresholds:
    tier: str
    upper_bound: Optional[float]     # essay scores below this fall in the tier
    min_quality: float
    max_quality: float
    max_complexity: int
    voice_shift_tolerance: float


TIER_TABLE = (
    TierThresholds("foundation", 50, 55, 65, 8, 0.2),
    TierThresholds("developing", 70, 65, 78, 10, 0.3),
    TierThresholds("competent", 80, 75, 88, 12, 0.4),
    TierThresholds("strong", 90, 85, 95, 14, 0.5),
    TierThresholds("exceptional", 95, 92, 98, 15, 0.6),
    TierThresholds("masterful", None, 96, 100, 16, 0.7),
)

CASUAL_MARKERS = re.compile(r"\b(?:kinda|really|just|like|pretty)\b", re.I)
FORMAL_MARKERS = re.compile(r"\b(?:furthermore|moreover|consequently|thus)\b", re.I)


def tier_thresholds(essay_score: float) -> TierThresholds:
    for t in TIER_TABLE:
        if t.upper_bound is None or essay_score < t.upper_bound:
            return t
    return TIER_TABLE[-1]


def difficulty_tier(essay_score: float) -> str:
    return tier_thresholds(essay_score).tier


def difficulty_multiplier(score: float, midpoint: float = 70.0, steepness: float = 0.08) -> float:
    """Effort needed per point at this score: a sigmoid scaled to [0.5, 12]."""
    sigmoid = 1 / (1 + math.exp(-steepness * (score - midpoint)))
    return round(0.5 + sigmoid * (12 - 0.5), 1)


def effort_adjusted_score(score: float, previous: Optional[float] = None) -> float:
    """Raw gain weighted by the mean difficulty of the two scores, capped at 100."""
    if previous is None:
        return score
    gain = score - previous
    avg = (difficulty_multiplier(score) + difficulty_multiplier(previous)) / 2
    return round(min(100.0, previous + gain * avg), 1)


def complexity_score(avg_sentence_length: float) -> int:
    """Rough reading-grade estimate from average sentence length."""
    n = round(avg_sentence_length)
    if n <= 12:
        return 8
    if n <= 17:
        return 10
    if n <= 22:
        return 12
    if n <= 27:
        return 14
    return 16


def voice_shift(original: str, suggested: str) -> float:
    """0.0 means the same voice, 1.0 a different writer."""
    length_shift = min(1.0, abs(average_sentence_length(suggested) - average_sentence_length(original)) / 10)
    orig_casual = bool(CASUAL_MARKERS.search(original))
    orig_formal = bool(FORMAL_MARKERS.search(original))
    sugg_casual = bool(CASUAL_MARKERS.search(suggested))
    sugg_formal = bool(FORMAL_MARKERS.search(suggested))
    flipped = (orig_casual and sugg_formal) or (orig_formal and sugg_casual)
    return round(min(1.0, length_shift + (0.3 if flipped else 0.0)), 2)


def tier_violations(
    result: ValidationResult,
    text: str,
    context: ValidationContext,
    thresholds: TierThresholds,
) -> List[ValidationFailure]:
    failures: List[ValidationFailure] = []
    tier = thresholds.tier

    if result.score < thresholds.min_quality:
        failures.append(ValidationFailure(
            rule_id="tier-minimum-quality",
            severity="critical",
            message=f"Quality {result.score} is below the {tier} tier minimum of {thresholds.min_quality}",
            fix="Add concrete detail, sensory language or emotional depth.",
            evidence=text[:100],
        ))
    if result.score > thresholds.max_quality:
        failures.append(ValidationFailure(
            rule_id="tier-maximum-quality",
            severity="warning",
            message=f"Quality {result.score} overshoots the {tier} tier maximum of {thresholds.max_quality}",
            fix="Simplify the language so it stays within reach of the writer.",
            evidence=text[:100],
        ))

    avg = average_sentence_length(text)
    complexity = complexity_score(avg)
    if complexity > thresholds.max_complexity:
        failures.append(ValidationFailure(
            rule_id="tier-complexity-limit",
            severity="warning",
            message=f"Sentence complexity {complexity} exceeds the {tier} tier limit of {thresholds.max_complexity}",
            fix="Break long sentences into shorter ones.",
            evidence=f"Average sentence length: {avg:.0f} words",
        ))

    if context.voice_markers:
        shift = voice_shift(context.original, text)
        if shift > thresholds.voice_shift_tolerance:
            failures.append(ValidationFailure(
                rule_id="tier-voice-shift",
                severity="warning",
                message=f"Voice shift {shift:.0%} exceeds the {tier} tier tolerance of {thresholds.voice_shift_tolerance:.0%}",
                fix="Stay closer to the writer's original rhythm and register.",
                evidence="Voice changed noticeably from the original",
            ))

    return failures


class AdaptiveValidator:
    """OutputValidator plus the bounds of the essay's difficulty tier."""

    def __init__(self, validator: OutputValidator, essay_score: float):
        self.validator = validator
        self.essay_score = essay_score
        self.thresholds = tier_thresholds(essay_score)

    @property
    def tier(self) -> str:
        return self.thresholds.tier

    async def validate(self, text: str, rationale: str, context: ValidationContext) -> ValidationResult:
        base = await self.validator.validate(text, rationale, context)
        extra = tier_violations(base, text, context, self.thresholds)
        if not extra:
            return base
        blocking = any(f.severity == "critical" for f in extra)
        return replace(
            base,
            passed=base.passed and not blocking,
            failures=base.failures + extra,
        )
