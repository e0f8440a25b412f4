import asyncio

from essay_workshop.config import RefinementConfig, ValidationConfig
from essay_workshop.errors import LLMError
from essay_workshop.validation.adaptive import AdaptiveValidator
from essay_workshop.validation.refiner import MultiPassRefiner, effective_target, refinement_goals
from essay_workshop.validation.validator import (
    OutputValidator,
    ValidationContext,
    ValidationFailure,
    ValidationResult,
)

from conftest import GOOD_RATIONALE

CONTEXT = ValidationContext(original="It was a plethora of emotions", category="show_dont_tell_craft")
START = ValidationResult(passed=True, score=66.0)


def _nuance(score):
    return {"quality_score": score, "sounds_authentic": True, "adds_specificity": True,
            "rationale_teaches": True, "issues": []}


def _refine(session, client, scores, essay_score=50.0, **config):
    client.responses["validation.nuance"] = [_nuance(s) for s in scores]
    validator = AdaptiveValidator(OutputValidator(ValidationConfig(), session), essay_score)
    refiner = MultiPassRefiner(validator, session, RefinementConfig(**config), case_file="# CASE FILE")
    return asyncio.run(refiner.refine("I held the tray.", GOOD_RATIONALE, START, CONTEXT))


def test_adaptive_target_is_capped_by_tier():
    validator = AdaptiveValidator(OutputValidator(ValidationConfig()), essay_score=50)
    assert effective_target(RefinementConfig(), validator) == 78
    assert effective_target(RefinementConfig(use_adaptive_target=False), validator) == 90


def test_scores_never_go_down(session, client):
    result = _refine(session, client, [70, 74, 73])
    assert result.stop_reason == "no_improvement"
    assert result.passes_executed == 3
    assert result.final_score == 74
    assert result.final_score >= result.original_score
    assert [p.adopted for p in result.history] == [True, True, False]
    assert result.total_improvement == 8.0


def test_stops_at_max_passes(session, client):
    result = _refine(session, client, [70, 74, 77], max_passes=2)
    assert result.stop_reason == "max_passes"
    assert result.passes_executed == 2
    assert client.count("refine.pass") == 2


def test_stops_when_target_reached(session, client):
    result = _refine(session, client, [80])
    assert result.stop_reason == "target_reached"
    assert result.final_score == 80
    assert result.final_text == "The tray got heavier with every siren."


def test_already_at_target_makes_no_calls(session, client):
    client.responses["validation.nuance"] = _nuance(70)
    validator = AdaptiveValidator(OutputValidator(ValidationConfig(), session), 50)
    refiner = MultiPassRefiner(validator, session, RefinementConfig())
    start = ValidationResult(passed=True, score=78.0)
    result = asyncio.run(refiner.refine("I held the tray.", GOOD_RATIONALE, start, CONTEXT))
    assert result.stop_reason == "target_reached"
    assert result.passes_executed == 0
    assert client.count("refine.pass") == 0


def test_small_gain_is_diminishing_returns(session, client):
    result = _refine(session, client, [67])
    assert result.stop_reason == "diminishing_returns"
    assert result.final_score == 67
    assert not result.history[0].worth_continuing


def test_service_failure_keeps_current_version(session, client):
    client.responses["refine.pass"] = LLMError("down")
    result = _refine(session, client, [80])
    assert result.stop_reason == "no_improvement"
    assert result.passes_executed == 0
    assert result.final_text == "I held the tray."
    assert result.final_score == 66


def test_rejected_pass_is_not_adopted(session, client):
    client.responses["refine.pass"] = {"text": "It was a tapestry of grief.", "rationale": GOOD_RATIONALE}
    result = _refine(session, client, [90])
    assert result.stop_reason == "no_improvement"
    assert result.final_text == "I held the tray."
    assert not result.history[0].adopted


def test_goals_scale_with_the_gap():
    assert len(refinement_goals(60, 90)) == 3
    assert [g.dimension for g in refinement_goals(80, 90)] == ["specificity", "teaching_quality"]
    assert [g.dimension for g in refinement_goals(86, 90)] == ["word_choice"]
    assert refinement_goals(90, 90) == []
    warned = ValidationResult(passed=True, score=86, failures=[
        ValidationFailure("passive-voice", "warning", "Passive", fix="Use active voice"),
        ValidationFailure("short-rationale", "suggestion", "Short"),
    ])
    goals = refinement_goals(86, 90, warned)
    assert [g.dimension for g in goals] == ["word_choice", "passive-voice"]
    assert goals[1].action == "Use active voice"
