"""Quality gate, retry loop and multi-pass refinement for surgical suggestions."""
from essay_workshop.validation.adaptive import (
    AdaptiveValidator,
    TierThresholds,
    difficulty_multiplier,
    difficulty_tier,
    tier_thresholds,
)
from essay_workshop.validation.refiner import MultiPassRefiner, RefinementPass, RefinementResult
from essay_workshop.validation.retry import RetryAttempt, RetryOrchestrator, RetryResult
from essay_workshop.validation.validator import (
    OutputValidator,
    ValidationContext,
    ValidationFailure,
    ValidationResult,
)

__all__ = [
    "AdaptiveValidator",
    "TierThresholds",
    "difficulty_multiplier",
    "difficulty_tier",
    "tier_thresholds",
    "MultiPassRefiner",
    "RefinementPass",
    "RefinementResult",
    "RetryAttempt",
    "RetryOrchestrator",
    "RetryResult",
    "OutputValidator",
    "ValidationContext",
    "ValidationFailure",
    "ValidationResult",
]
