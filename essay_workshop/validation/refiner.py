"""
Multi-Pass Refiner

Iteratively improves one validated suggestion. Each pass derives numbered
goals from the gap to the target, makes one generative refinement call and
revalidates. The held suggestion only ever moves up: a pass is adopted only
when it passes validation with a strictly higher score.

Stops on the first of: target_reached, max_passes, no_improvement,
diminishing_returns.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import logging

from essay_workshop.config import RefinementConfig
from essay_workshop.errors import LLMError
from essay_workshop.llm.client import LLMSession
from essay_workshop.llm.parsing import Schema, normalize
from essay_workshop.llm.prompts import REFINE_SYSTEM_PROMPT, REFINE_USER_TEMPLATE
from essay_workshop.validation.adaptive import AdaptiveValidator
from essay_workshop.validation.validator import ValidationContext, ValidationResult

logger = logging.getLogger(__name__)

REFINE_TEMPERATURE = 0.7

STOP_REASONS = ("target_reached", "max_passes", "no_improvement", "diminishing_returns")

REFINE_SCHEMA: Schema = {
    "text": ("str", ""),
    "rationale": ("str", ""),
}


@dataclass(frozen=True)
class RefinementGoal:
    dimension: str
    current_score: float
    target_score: float
    action: str

    def describe(self, n: int) -> str:
        return f"{n}. {self.dimension} (current {self.current_score:.1f}, target {self.target_score:.1f}): {self.action}"


@dataclass(frozen=True)
class RefinementPass:
    pass_number: int
    previous_score: float
    previous_text: str
    previous_rationale: str
    goals: Tuple[RefinementGoal, ...]
    improved_score: float
    improved_text: str
    improved_rationale: str
    improvement: float
    adopted: bool
    worth_continuing: bool


@dataclass(frozen=True)
class RefinementResult:
    original_score: float
    original_text: str
    original_rationale: str
    final_score: float
    final_text: str
    final_rationale: str
    target_score: float
    stop_reason: str
    history: Tuple[RefinementPass, ...] = field(default_factory=tuple)

    @property
    def passes_executed(self) -> int:
        return len(self.history)

    @property
    def total_improvement(self) -> float:
        return round(self.final_score - self.original_score, 1)


def refinement_goals(
    current_score: float,
    target_score: float,
    validation: Optional[ValidationResult] = None,
) -> List[RefinementGoal]:
    """Broad goals for a large gap, narrow ones for a small gap, plus one per warning."""
    gap = target_score - current_score
    if gap <= 0:
        return []

    goals: List[RefinementGoal] = []
    if gap >= 15:
        step = current_score + min(gap / 3, 8)
        goals += [
            RefinementGoal("specificity", current_score, step,
                           "Add concrete nouns, numbers and sensory language"),
            RefinementGoal("emotional_resonance", current_score, step,
                           "Deepen the emotional stakes with a visceral detail or consequence"),
            RefinementGoal("rationale_depth", current_score, step,
                           "Explain the principle behind the change and its effect on the reader"),
        ]
    elif gap >= 8:
        step = current_score + min(gap / 2, 5)
        goals += [
            RefinementGoal("specificity", current_score, step,
                           "Add two or three more specific nouns or sensory descriptors"),
            RefinementGoal("teaching_quality", current_score, step,
                           "Make the rationale explain why the technique works"),
        ]
    else:
        goals.append(RefinementGoal("word_choice", current_score, target_score,
                                    "Replace vague words with precise ones"))

    if validation is not None:
        for f in validation.failures:
            if f.severity == "warning":
                goals.append(RefinementGoal(f.rule_id, current_score, current_score + 3,
                                            f.fix or f"Address: {f.message}"))
    return goals


def effective_target(config: RefinementConfig, validator: AdaptiveValidator) -> float:
    if config.use_adaptive_target:
        return min(config.target_score, validator.thresholds.max_quality)
    return config.target_score


class MultiPassRefiner:
    def __init__(
        self,
        validator: AdaptiveValidator,
        session: LLMSession,
        config: RefinementConfig,
        case_file: str = "",
    ):
        self.validator = validator
        self.session = session
        self.config = config
        self.case_file = case_file
        self.target = effective_target(config, validator)

    async def _refine_once(
        self, text: str, rationale: str, score: float, goals: List[RefinementGoal], context: ValidationContext,
    ) -> Tuple[str, str]:
        prompt = REFINE_USER_TEMPLATE.format(
            original=context.original,
            score=score,
            target=self.target,
            current=text,
            rationale=rationale,
            goals="\n".join(g.describe(i) for i, g in enumerate(goals, 1)),
            case_file=self.case_file or "(none)",
        )
        response = await self.session.complete_json(
            REFINE_SYSTEM_PROMPT, prompt, temperature=REFINE_TEMPERATURE, label="refine.pass",
        )
        values, missing = normalize(response.data or {}, REFINE_SCHEMA)
        if "text" in missing or not values["text"].strip():
            raise LLMError("refine.pass returned no text")
        return values["text"].strip(), (values["rationale"] or rationale).strip()

    async def refine(
        self,
        text: str,
        rationale: str,
        validation: ValidationResult,
        context: ValidationContext,
    ) -> RefinementResult:
        current_text, current_rationale = text, rationale
        current_score, current_validation = validation.score, validation
        history: List[RefinementPass] = []
        logger.info(f"Refining from {current_score} (target {self.target}, max {self.config.max_passes} passes)")

        while True:
            if current_score >= self.target:
                reason = "target_reached"
                break
            if len(history) >= self.config.max_passes:
                reason = "max_passes"
                break

            goals = refinement_goals(current_score, self.target, current_validation)
            pass_number = len(history) + 1
            try:
                new_text, new_rationale = await self._refine_once(
                    current_text, current_rationale, current_score, goals, context,
                )
                new_validation = await self.validator.validate(new_text, new_rationale, context)
            except LLMError as e:
                logger.warning(f"Refinement pass {pass_number} failed, keeping current version: {e}")
                reason = "no_improvement"
                break

            improvement = round(new_validation.score - current_score, 1)
            adopted = new_validation.passed and improvement > 0
            history.append(RefinementPass(
                pass_number=pass_number,
                previous_score=current_score,
                previous_text=current_text,
                previous_rationale=current_rationale,
                goals=tuple(goals),
                improved_score=new_validation.score,
                improved_text=new_text,
                improved_rationale=new_rationale,
                improvement=improvement,
                adopted=adopted,
                worth_continuing=adopted and improvement >= self.config.min_improvement_per_pass,
            ))
            logger.info(f"Pass {pass_number}: {current_score} -> {new_validation.score} ({improvement:+.1f})")

            if not adopted:
                reason = "no_improvement"
                break

            current_text, current_rationale = new_text, new_rationale
            current_score, current_validation = new_validation.score, new_validation
            if current_score >= self.target:
                reason = "target_reached"
                break
            if improvement < self.config.min_improvement_per_pass:
                reason = "diminishing_returns"
                break

        logger.info(f"Refinement stopped ({reason}): {validation.score} -> {current_score} in {len(history)} pass(es)")
        return RefinementResult(
            original_score=validation.score,
            original_text=text,
            original_rationale=rationale,
            final_score=current_score,
            final_text=current_text,
            final_rationale=current_rationale,
            target_score=self.target,
            stop_reason=reason,
            history=tuple(history),
        )
