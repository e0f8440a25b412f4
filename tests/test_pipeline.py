import asyncio
import json

import pytest

from essay_workshop.config import with_analysis
from essay_workshop.errors import LLMError, StageFailed
from essay_workshop.ir import AnalysisInput
from essay_workshop.llm.client import LLMSession
from essay_workshop.stages.deep_dive import ANALYZER_NAMES
from essay_workshop.stages.orchestrator import generate_review_report, run_pipeline
from essay_workshop.stages.scoring import aggregate_score
from essay_workshop.workshop import run_analysis

from conftest import ESSAY, FakeClient, pipeline_responses


def _run(session, config, library, **kwargs):
    essay = AnalysisInput(text=ESSAY, essay_type="personal_statement", **kwargs)
    return asyncio.run(run_pipeline(essay, config, session, library))


def test_full_pipeline_produces_twelve_dimensions(session, config, library):
    result = _run(session, config, library)
    assert len(result.dimensions) == 12
    assert all(0 <= d.score <= 10 for d in result.dimensions)
    assert sum(d.weight for d in result.dimensions) == pytest.approx(1.0)
    assert result.insights.aggregate_score == aggregate_score(result.dimensions)
    assert 0 <= result.insights.aggregate_score <= 100
    assert set(result.stage2) == set(ANALYZER_NAMES)
    assert result.stats.degraded_analyzers == []


def test_pipeline_call_order_and_stats(session, client, config, library):
    result = _run(session, config, library)
    labels = client.labels()
    assert labels[0] == "stage1.holistic"
    assert sorted(labels[1:7]) == sorted(f"stage2.{n}" for n in ANALYZER_NAMES)
    assert labels[7:] == ["stage3.style", "stage4.synthesis"]
    assert result.stats.llm_calls == 9
    assert result.stats.tokens_used == 9 * 150
    assert set(result.stats.stage_times_s) == {"stage1", "stage2", "stage3", "stage4", "stage5"}


def test_synthesis_does_not_change_the_aggregate(session, client, config, library):
    client.responses["stage4.synthesis"] = dict(client.responses["stage4.synthesis"], aggregate_score=99)
    result = _run(session, config, library)
    assert result.insights.aggregate_score == aggregate_score(result.dimensions)
    assert result.insights.aggregate_score != 99


def test_stage2_failure_aborts_the_run(session, client, config, library):
    client.responses["stage2.climax"] = LLMError("service down")
    with pytest.raises(StageFailed) as exc_info:
        _run(session, config, library)
    assert exc_info.value.stage == "stage2"
    assert exc_info.value.analyzer == "climax"
    assert "stage4.synthesis" not in client.labels()


class StallingClient(FakeClient):
    """Holds stage2.climax open until it is cancelled."""

    def __init__(self, responses, fail_opening=False):
        super().__init__(responses)
        self.fail_opening = fail_opening
        self.started = None
        self.cancelled = False

    async def complete(self, request):
        if request.label == "stage2.climax":
            self.requests.append(request)
            self.started.set()
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if request.label == "stage2.opening" and self.fail_opening:
            await self.started.wait()
            raise LLMError("service down")
        return await super().complete(request)


async def _no_sleep(_seconds):
    return None


def test_stage2_failure_cancels_in_flight_analyzers(config, library):
    client = StallingClient(pipeline_responses(), fail_opening=True)
    session = LLMSession(client, config.llm, sleep=_no_sleep)

    async def main():
        client.started = asyncio.Event()
        essay = AnalysisInput(text=ESSAY, essay_type="personal_statement")
        return await run_pipeline(essay, config, session, library)

    with pytest.raises(StageFailed) as exc_info:
        asyncio.run(main())
    assert exc_info.value.analyzer == "opening"
    assert client.cancelled
    assert "stage3.style" not in client.labels()


def test_cancelling_the_run_cancels_stage2_analyzers(config, library):
    client = StallingClient(pipeline_responses())
    session = LLMSession(client, config.llm, sleep=_no_sleep)

    async def main():
        client.started = asyncio.Event()
        essay = AnalysisInput(text=ESSAY, essay_type="personal_statement")
        task = asyncio.ensure_future(run_pipeline(essay, config, session, library))
        await client.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(main())
    assert client.cancelled
    assert "stage3.style" not in client.labels()


def test_stage2_degraded_policy_keeps_twelve_dimensions(session, client, config, library):
    client.responses["stage2.climax"] = LLMError("service down")
    result = _run(session, with_analysis(config, stage2_policy="degraded"), library)
    assert len(result.dimensions) == 12
    assert result.stage2["climax"].degraded
    assert "climax" in result.stats.degraded_analyzers


def test_stage1_failure_is_fatal(session, client, config, library):
    client.responses["stage1.holistic"] = "no json, ever"
    with pytest.raises(StageFailed) as exc_info:
        _run(session, config, library)
    assert exc_info.value.stage == "stage1"
    assert not any(label.startswith("stage2") for label in client.labels())


def test_style_failure_names_stage3(session, client, config, library):
    client.responses["stage3.style"] = LLMError("boom")
    with pytest.raises(StageFailed) as exc_info:
        _run(session, config, library)
    assert exc_info.value.stage == "stage3"


def test_missing_fields_mark_results_degraded(session, client, config, library):
    client.responses["stage2.opening"] = {"hook_type": "sensory"}
    result = _run(session, config, library)
    assert result.stage2["opening"].degraded
    assert "hook_strength" in result.stage2["opening"].missing_fields
    assert "opening" in result.stats.degraded_analyzers


def test_issues_and_sentence_insights(session, config, library):
    result = _run(session, config, library)
    quotes = [i.quote for i in result.issues]
    assert "It was a plethora of emotions" in quotes
    assert "hard work always pays off" in quotes
    assert 0 < len(result.sentence_insights) <= 10
    priorities = [si.priority for si in result.sentence_insights]
    assert priorities == sorted(priorities, reverse=True)


def test_scoring_is_deterministic(session, config, library):
    first = _run(session, config, library)
    second = _run(session, config, library)
    assert [d.score for d in first.dimensions] == [d.score for d in second.dimensions]


def test_result_serializes_and_reports(session, config, library):
    result = _run(session, config, library)
    payload = json.loads(json.dumps(result.to_dict()))
    assert len(payload["dimensions"]) == 12
    report = generate_review_report(result)
    assert report.startswith("# Essay Analysis Report")
    assert "## Dimensions" in report
    assert "## Revision Roadmap" in report
    assert "Strongest dimensions" in report


def test_run_analysis_sync_wrapper(client, config, library):
    result = run_analysis(ESSAY, prompt_text=None, config=config, client=client, library=library)
    assert result.essay_type == "uc_piq"
    assert len(result.dimensions) == 12
