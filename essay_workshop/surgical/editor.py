"""
Surgical Editor

Drives one located issue through its lifecycle:

    diagnosed -> context_assembled -> generated -> validated
              -> [retried | refined]* -> final

Generation asks for all three variants (polished_original, voice_amplifier,
divergent_strategy) in one call. Variants that fail the adaptive quality
gate are regenerated with an explicit critique; variants that pass are
optionally refined, then ranked by validated score. An item whose variants
never validate is excluded rather than returned half-finished.
"""
from __future__ import annotations
from typing import Dict, List, Optional
import logging
import random
import uuid

from essay_workshop.config import WorkshopConfig
from essay_workshop.editops import (
    CONTEXT_ASSEMBLED,
    DIAGNOSED,
    FINAL,
    GENERATED,
    REFINED,
    RETRIED,
    SUGGESTION_TYPES,
    VALIDATED,
    Locator,
    Suggestion,
    VoiceProfile,
    WorkshopItem,
    rank_suggestions,
    revise_suggestion,
)
from essay_workshop.ir import HolisticUnderstanding
from essay_workshop.llm.client import LLMSession
from essay_workshop.llm.parsing import Schema, normalize
from essay_workshop.llm.prompts import SURGICAL_SYSTEM_PROMPT, SURGICAL_USER_TEMPLATE
from essay_workshop.rules.load_rules import Library
from essay_workshop.surgical.context import assemble_context
from essay_workshop.surgical.diagnoser import diagnose
from essay_workshop.validation.adaptive import AdaptiveValidator
from essay_workshop.validation.refiner import MultiPassRefiner, RefinementResult
from essay_workshop.validation.retry import RetryOrchestrator
from essay_workshop.validation.validator import OutputValidator, ValidationContext, ValidationResult

logger = logging.getLogger(__name__)

GENERATION_SCHEMA: Schema = {
    "suggestions": ("list", []),
}


def _score_impact(raw) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw.strip().lstrip("+"))
        except ValueError:
            return None
    return None


def parse_suggestions(raw: List) -> List[Suggestion]:
    """First usable variant of each type; entries without text or a known type are skipped."""
    seen: Dict[str, Suggestion] = {}
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        kind = str(entry.get("type", "")).strip().lower()
        text = entry.get("text")
        if kind not in SUGGESTION_TYPES or kind in seen:
            continue
        if not isinstance(text, str) or not text.strip():
            continue
        rationale = entry.get("rationale")
        strategy = entry.get("strategy_used")
        seen[kind] = Suggestion(
            text=text.strip(),
            rationale=rationale.strip() if isinstance(rationale, str) else "",
            type=kind,  # type: ignore[arg-type]
            strategy_used=strategy.strip() if isinstance(strategy, str) else "",
            score_impact=_score_impact(entry.get("score_impact")),
        )
    return [seen[t] for t in SUGGESTION_TYPES if t in seen]


def validation_context(locator: Locator, voice: VoiceProfile, suggestion_type: str, attempt: int = 1) -> ValidationContext:
    return ValidationContext(
        original=locator.quote,
        category=locator.category,
        voice_tone=voice.tone,
        voice_markers=voice.markers,
        suggestion_type=suggestion_type,
        attempt=attempt,
    )


async def edit_item(
    text: str,
    locator: Locator,
    voice: VoiceProfile,
    holistic: Optional[HolisticUnderstanding],
    essay_score: float,
    library: Library,
    session: LLMSession,
    config: WorkshopConfig,
    rng: random.Random,
) -> Optional[WorkshopItem]:
    """
    Produce one WorkshopItem for locator, or None when no variant survives
    validation. Service errors from generation or validation propagate to the
    caller, which treats them as item-level failures.
    """
    item_id = locator.issue_id or f"item-{uuid.uuid4().hex[:8]}"
    states = []

    diagnosis = await diagnose(locator, text, session)
    states.append(DIAGNOSED)

    bundle = assemble_context(
        text, locator, voice, diagnosis, library, rng,
        holistic=holistic,
        essay_score=essay_score,
        context_chars=config.editor.context_chars,
    )
    states.append(CONTEXT_ASSEMBLED)

    validator = AdaptiveValidator(OutputValidator(config.validation, session), essay_score)
    current_attempt = 1

    async def generate(attempt: int, temperature: float, critique: str) -> List[Suggestion]:
        nonlocal current_attempt
        current_attempt = attempt
        response = await session.complete_json(
            SURGICAL_SYSTEM_PROMPT,
            SURGICAL_USER_TEMPLATE.format(case_file=bundle.case_file, critique=critique),
            temperature=temperature,
            label="surgical.generate",
        )
        values, _ = normalize(response.data or {}, GENERATION_SCHEMA)
        if GENERATED not in states:
            states.append(GENERATED)
        return parse_suggestions(values["suggestions"])

    async def validate(suggestion: Suggestion) -> ValidationResult:
        ctx = validation_context(locator, voice, suggestion.type, current_attempt)
        return await validator.validate(suggestion.text, suggestion.rationale, ctx)

    retry = await RetryOrchestrator(config.validation.max_retries).run(generate, validate)
    states.append(VALIDATED)
    if len(retry.attempts) > 1:
        states.append(RETRIED)

    if not retry.success:
        logger.warning(f"{item_id}: no variant passed validation, excluding item")
        return None

    survivors: List[Suggestion] = []
    refinements: List[RefinementResult] = []
    for kind in SUGGESTION_TYPES:
        validated = retry.accepted.get(kind)
        if validated is None:
            continue
        suggestion = validated.suggestion
        if config.editor.refine:
            refiner = MultiPassRefiner(validator, session, config.refinement, case_file=bundle.case_file)
            result = await refiner.refine(
                suggestion.text, suggestion.rationale, validated.validation,
                validation_context(locator, voice, kind, current_attempt),
            )
            refinements.append(result)
            survivors.append(revise_suggestion(suggestion, result.final_text, result.final_rationale, result.final_score))
        else:
            survivors.append(revise_suggestion(suggestion, suggestion.text, suggestion.rationale, validated.validation.score))

    if any(r.passes_executed for r in refinements):
        states.append(REFINED)
    states.append(FINAL)

    ranked = rank_suggestions(survivors)
    logger.info(
        f"{item_id}: {len(ranked)} suggestion(s), best {ranked[0].type} at {ranked[0].score} "
        f"({diagnosis.primary_symptom}, tier {validator.tier})"
    )
    return WorkshopItem(
        id=item_id,
        locator=locator,
        diagnosis=diagnosis,
        suggestions=ranked,
        complexity_tier=bundle.complexity_tier,
        states=tuple(states),
        retries=tuple(retry.attempts),
        refinements=tuple(refinements),
    )
