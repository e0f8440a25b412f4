"""
Retry Orchestrator

Bounded state machine around one generation request:

    GENERATED -> VALIDATED -> (pass -> FINAL)
                           -> (fail -> CRITIQUED -> REGENERATED) ...

The critique is an explicit payload built from the previous attempt's
validation failures; no conversation history is carried between attempts.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Sequence, Tuple
import logging

from essay_workshop.editops import SUGGESTION_TYPES, Suggestion
from essay_workshop.llm.prompts import CRITIQUE_TEMPLATE
from essay_workshop.validation.validator import ValidationFailure, ValidationResult

logger = logging.getLogger(__name__)

GENERATION_TEMPERATURE = 0.7
RETRY_TEMPERATURE = 0.6

# (attempt, temperature, critique) -> candidate suggestions
GenerateFn = Callable[[int, float, str], Awaitable[List[Suggestion]]]
ValidateFn = Callable[[Suggestion], Awaitable[ValidationResult]]


@dataclass(frozen=True)
class RetryAttempt:
    attempt: int
    temperature: float
    critique: str                              # sent with this attempt; empty on the first
    failures: Tuple[ValidationFailure, ...]    # found in this attempt's output
    accepted: Tuple[str, ...] = ()             # variant types that passed


@dataclass
class Validated:
    suggestion: Suggestion
    validation: ValidationResult


@dataclass
class RetryResult:
    accepted: Dict[str, Validated] = field(default_factory=dict)
    attempts: List[RetryAttempt] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.accepted)


def render_critique(attempt: int, failures: Sequence[ValidationFailure]) -> str:
    lines = []
    for i, f in enumerate(failures, 1):
        line = f"{i}. [{f.severity}] {f.rule_id}: {f.message}"
        if f.evidence:
            line += f'\n   Evidence: "{f.evidence}"'
        if f.fix:
            line += f"\n   Fix: {f.fix}"
        lines.append(line)
    return CRITIQUE_TEMPLATE.format(attempt=attempt, failures="\n".join(lines))


class RetryOrchestrator:
    def __init__(self, max_attempts: int = 3):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts

    async def run(
        self,
        generate: GenerateFn,
        validate: ValidateFn,
        wanted: Sequence[str] = SUGGESTION_TYPES,
    ) -> RetryResult:
        """
        Generate, validate each variant, and regenerate with a critique until
        every wanted variant type has passed or attempts run out.

        A variant type that has passed is never regenerated or replaced.
        """
        result = RetryResult()
        critique = ""
        for attempt in range(1, self.max_attempts + 1):
            temperature = GENERATION_TEMPERATURE if attempt == 1 else RETRY_TEMPERATURE
            candidates = await generate(attempt, temperature, critique)
            if not candidates:
                logger.warning(f"Attempt {attempt}/{self.max_attempts}: no usable variants generated")

            failures: List[ValidationFailure] = []
            passed: List[str] = []
            for suggestion in candidates:
                if suggestion.type not in wanted or suggestion.type in result.accepted:
                    continue
                validation = await validate(suggestion)
                if validation.passed:
                    result.accepted[suggestion.type] = Validated(suggestion, validation)
                    passed.append(suggestion.type)
                else:
                    failures.extend(validation.failures)

            result.attempts.append(RetryAttempt(attempt, temperature, critique, tuple(failures), tuple(passed)))
            missing = [t for t in wanted if t not in result.accepted]
            logger.info(
                f"Attempt {attempt}/{self.max_attempts}: {len(passed)} variant(s) passed, "
                f"{len(failures)} failure(s), missing {missing or 'none'}"
            )
            if not missing:
                break
            if attempt < self.max_attempts:
                if not failures:
                    failures = [ValidationFailure(
                        rule_id="missing-variants",
                        severity="warning",
                        message=f"No valid variant of type {', '.join(missing)} was returned",
                        fix="Return exactly three variants with the required types.",
                    )]
                critique = render_critique(attempt, failures)

        if not result.success:
            logger.warning(f"No variant passed validation after {len(result.attempts)} attempt(s)")
        return result
