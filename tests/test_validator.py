import asyncio

import pytest

from essay_workshop.config import ValidationConfig
from essay_workshop.errors import LLMError
from essay_workshop.validation.adaptive import (
    TIER_TABLE,
    AdaptiveValidator,
    difficulty_multiplier,
    difficulty_tier,
    effort_adjusted_score,
    tier_thresholds,
    voice_shift,
)
from essay_workshop.validation.validator import (
    OutputValidator,
    ValidationContext,
    deterministic_checks,
    score_failures,
)

from conftest import GOOD_RATIONALE

CONTEXT = ValidationContext(original="It was a plethora of emotions", category="show_dont_tell_craft")


def _validate(validator, text, rationale=GOOD_RATIONALE, context=CONTEXT):
    return asyncio.run(validator.validate(text, rationale, context))


def test_banned_term_is_critical_and_skips_the_service(session, client):
    validator = OutputValidator(ValidationConfig(), session)
    result = _validate(validator, "The fire became a tapestry of smoke.")
    assert not result.passed
    assert result.critical_count == 1
    assert result.failures[0].evidence == "tapestry"
    assert result.score == 50
    assert not result.nuance_checked
    assert client.count("validation.nuance") == 0


def test_passive_voice_is_a_warning():
    failures = deterministic_checks("The tray was dropped on the curb.", GOOD_RATIONALE)
    assert [f.rule_id for f in failures] == ["passive-voice"]
    assert failures[0].severity == "warning"


def test_rationale_checks():
    failures = deterministic_checks("I held the tray.", "I changed the verb.")
    ids = {f.rule_id: f.severity for f in failures}
    assert ids == {"editor-voice-rationale": "warning", "short-rationale": "suggestion"}


def test_clean_text_without_service_scores_base():
    validator = OutputValidator(ValidationConfig(use_llm_check=False))
    result = _validate(validator, "I held the tray and did not move.")
    assert result.passed
    assert result.score == 75
    assert result.failures == []


def test_nuance_score_is_the_base(session, client):
    validator = OutputValidator(ValidationConfig(), session)
    result = _validate(validator, "I held the tray and did not move.")
    assert result.nuance_checked
    assert result.score == 76
    assert result.passed
    assert result.checks["sounds_authentic"] is True
    assert client.count("validation.nuance") == 1


def test_nuance_issues_are_penalized(session, client):
    client.responses["validation.nuance"] = {
        "quality_score": 80, "sounds_authentic": False, "adds_specificity": True, "rationale_teaches": True,
        "issues": [{"severity": "warning", "message": "Sounds adult", "fix": "Simplify"},
                   {"severity": "loud", "message": "Odd"}],
    }
    result = _validate(OutputValidator(ValidationConfig(), session), "I held the tray and did not move.")
    assert result.score == 60
    assert not result.passed
    assert all(f.severity == "warning" for f in result.failures)


def test_nan_quality_score_falls_back_to_base(session, client):
    client.responses["validation.nuance"] = {
        "quality_score": float("nan"), "sounds_authentic": True, "adds_specificity": True,
        "rationale_teaches": True, "issues": [],
    }
    result = _validate(OutputValidator(ValidationConfig(), session), "I held the tray and did not move.")
    assert result.score == 75


def test_nuance_service_failure_propagates(session, client):
    client.responses["validation.nuance"] = LLMError("down")
    with pytest.raises(LLMError):
        _validate(OutputValidator(ValidationConfig(), session), "I held the tray and did not move.")


def test_score_is_clamped():
    failures = deterministic_checks("A tapestry, a realm, a testament, a showcase.", "")
    assert score_failures(failures) == 0.0
    assert score_failures([], base=140) == 100.0


def test_tier_table_boundaries():
    assert [t.tier for t in TIER_TABLE] == [
        "foundation", "developing", "competent", "strong", "exceptional", "masterful",
    ]
    assert difficulty_tier(49.9) == "foundation"
    assert difficulty_tier(50) == "developing"
    assert difficulty_tier(79.9) == "competent"
    assert difficulty_tier(80) == "strong"
    assert difficulty_tier(94.9) == "exceptional"
    assert difficulty_tier(95) == "masterful"
    assert tier_thresholds(85).min_quality == 85


def test_below_tier_minimum_is_critical():
    # strong tier requires 85; a clean offline result scores 75
    validator = AdaptiveValidator(OutputValidator(ValidationConfig(use_llm_check=False)), essay_score=85)
    result = _validate(validator, "I held the tray and did not move.")
    assert not result.passed
    assert "tier-minimum-quality" in [f.rule_id for f in result.failures]


def test_above_tier_maximum_is_only_a_warning():
    validator = AdaptiveValidator(OutputValidator(ValidationConfig(use_llm_check=False)), essay_score=40)
    result = _validate(validator, "I held the tray and did not move.")
    assert result.passed
    assert [f.rule_id for f in result.failures] == ["tier-maximum-quality"]
    assert validator.tier == "foundation"


def test_voice_shift():
    assert voice_shift("I was kinda scared.", "I was kinda scared.") == 0.0
    shifted = voice_shift("I was kinda scared.", "Furthermore, I was scared.")
    assert shifted >= 0.3


def test_difficulty_multiplier_range():
    values = [difficulty_multiplier(s) for s in range(0, 101, 5)]
    assert all(0.5 <= v <= 12 for v in values)
    assert values == sorted(values)
    assert difficulty_multiplier(70) == pytest.approx(6.2, abs=0.1)


def test_effort_adjusted_score():
    assert effort_adjusted_score(80) == 80
    assert effort_adjusted_score(90, previous=85) > 90
    assert effort_adjusted_score(99, previous=95) == 100.0
