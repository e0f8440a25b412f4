"""
Stage Orchestrator

Coordinates the five-stage analysis of one essay:
1. Holistic understanding (one generative call; failure is fatal)
2. Six section analyzers in parallel (fan-in barrier)
3. Deterministic grammar/voice metrics plus the generative style pass
4. Deterministic dimension scoring, then one generative synthesis call
5. Deterministic sentence-level insights

Every run owns its own LLMSession, so concurrent runs share nothing but the
read-only library.
"""
from __future__ import annotations
from typing import Awaitable, Callable, Optional, TypeVar
import logging
import time

from essay_workshop.analysis.patterns import detect_patterns
from essay_workshop.config import WorkshopConfig
from essay_workshop.errors import StageFailed, WorkshopError
from essay_workshop.ir import AnalysisInput, AnalysisResult, PipelineStats
from essay_workshop.llm.client import LLMSession
from essay_workshop.rules.load_rules import Library
from essay_workshop.stages.craft import analyze_craft
from essay_workshop.stages.deep_dive import run_deep_dive
from essay_workshop.stages.holistic import analyze_holistic
from essay_workshop.stages.scoring import infer_essay_type, score_dimensions, top_dimensions
from essay_workshop.stages.sentences import collect_issues, generate_sentence_insights
from essay_workshop.stages.synthesis import synthesize
from essay_workshop.text import parse_sentences

logger = logging.getLogger(__name__)

T = TypeVar("T")
ProgressFn = Callable[[str, int, int], None]

TOTAL_STAGES = 5


async def _guard(stage: str, analyzer: str, awaitable: Awaitable[T]) -> T:
    try:
        return await awaitable
    except StageFailed:
        raise
    except WorkshopError as e:
        logger.error(f"{stage}/{analyzer} failed: {e}")
        raise StageFailed(stage, analyzer, e) from e


def resolve_essay_type(essay: AnalysisInput, config: WorkshopConfig, library: Library) -> str:
    essay_type = essay.essay_type or config.analysis.essay_type
    if not essay_type:
        essay_type = infer_essay_type(essay.text, essay.prompt_text, library)
        logger.info(f"Inferred essay type: {essay_type}")
    library.profile(essay_type)
    return essay_type


async def run_pipeline(
    essay: AnalysisInput,
    config: WorkshopConfig,
    session: LLMSession,
    library: Library,
    progress_callback: Optional[ProgressFn] = None,
) -> AnalysisResult:
    """
    Run all five stages and return a complete AnalysisResult.

    Raises:
        StageFailed: a stage (or one Stage-2 analyzer) failed after retries
        StructuralError: dimension scoring violated its invariants
    """
    start_time = time.time()
    stats = PipelineStats()

    def progress(stage: str, done: int) -> None:
        if progress_callback:
            progress_callback(stage, done, TOTAL_STAGES)

    essay_type = resolve_essay_type(essay, config, library)
    profile = library.profile(essay_type)
    sentences = parse_sentences(essay.text, config.sections)
    logger.info(f"Analyzing {essay.word_count}-word {essay_type} essay ({len(sentences)} sentences)")

    # Stage 1: Holistic understanding
    t = time.time()
    progress("holistic", 0)
    holistic = await _guard("stage1", "holistic", analyze_holistic(essay, essay_type, session))
    stats.stage_times_s["stage1"] = time.time() - t
    logger.info(f"Stage 1 complete in {stats.stage_times_s['stage1']:.1f}s: {holistic.central_theme!r}")

    # Stage 2: Section analyzers (fan-out / fan-in)
    t = time.time()
    progress("deep_dive", 1)
    stage2 = await run_deep_dive(
        essay, sentences, holistic, profile, session,
        policy=config.analysis.stage2_policy,
        parallelism=config.analysis.stage2_parallelism,
    )
    stats.stage_times_s["stage2"] = time.time() - t

    # Stage 3: Grammar, voice and style
    t = time.time()
    progress("craft", 2)
    craft = await _guard("stage3", "style", analyze_craft(essay, session))
    stats.stage_times_s["stage3"] = time.time() - t
    logger.info(
        f"Stage 3 complete in {stats.stage_times_s['stage3']:.1f}s "
        f"(grammar {craft.grammar.overall_score}/10, voice {craft.voice.voice_score}/10)"
    )

    # Stage 4: Dimension scoring + synthesis
    t = time.time()
    progress("synthesis", 3)
    dimensions = score_dimensions(holistic, stage2, craft, profile)
    insights = await _guard("stage4", "synthesis", synthesize(essay, profile, holistic, dimensions, session))
    stats.stage_times_s["stage4"] = time.time() - t
    logger.info(
        f"Stage 4 complete in {stats.stage_times_s['stage4']:.1f}s: "
        f"{insights.aggregate_score}/100 ({insights.impression_label})"
    )

    # Stage 5: Sentence-level insights
    t = time.time()
    progress("sentences", 4)
    matches = detect_patterns(essay.text, library.patterns, sentences)
    issues = collect_issues(stage2, craft, matches)
    sentence_insights = generate_sentence_insights(
        sentences, issues, dimensions, config.analysis.max_sentence_insights
    )
    stats.stage_times_s["stage5"] = time.time() - t
    progress("done", 5)

    stats.degraded_analyzers = [name for name, r in stage2.items() if r.degraded]
    if holistic.degraded:
        stats.degraded_analyzers.insert(0, "holistic")
    if craft.style.degraded:
        stats.degraded_analyzers.append("style")
    stats.llm_calls = session.calls
    stats.tokens_used = session.tokens_used
    stats.total_time_s = time.time() - start_time
    logger.info(
        f"Analysis complete in {stats.total_time_s:.1f}s: {stats.llm_calls} calls, "
        f"{stats.tokens_used} tokens, {len(issues)} issues, {len(sentence_insights)} sentence insights"
    )

    return AnalysisResult(
        input=essay,
        essay_type=essay_type,
        holistic=holistic,
        stage2=stage2,
        craft=craft,
        dimensions=dimensions,
        insights=insights,
        issues=issues,
        sentence_insights=sentence_insights,
        stats=stats,
    )


def generate_review_report(result: AnalysisResult) -> str:
    """Markdown report of one analysis run."""
    ins = result.insights
    lines = []

    lines.append("# Essay Analysis Report")
    lines.append("")
    lines.append("## Summary")
    lines.append("")
    lines.append("| Metric | Value |")
    lines.append("|--------|-------|")
    lines.append(f"| Essay type | {result.essay_type} |")
    lines.append(f"| Words | {result.input.word_count} |")
    lines.append(f"| Aggregate score | {ins.aggregate_score}/100 |")
    lines.append(f"| Impression | {ins.impression_label} |")
    if ins.percentile_estimate:
        lines.append(f"| Percentile estimate | {ins.percentile_estimate} |")
    lines.append(f"| Generative calls | {result.stats.llm_calls} |")
    lines.append(f"| Tokens | {result.stats.tokens_used:,} |")
    strongest = ", ".join(f"{k} ({s})" for k, s in top_dimensions(result.dimensions))
    weakest = ", ".join(f"{k} ({s})" for k, s in top_dimensions(result.dimensions, reverse=False))
    lines.append(f"| Strongest dimensions | {strongest} |")
    lines.append(f"| Weakest dimensions | {weakest} |")
    lines.append(f"| Processing time | {result.stats.total_time_s:.1f}s |")
    lines.append("")

    if result.stats.degraded_analyzers:
        lines.append(f"> Degraded analyzers (fields defaulted): {', '.join(result.stats.degraded_analyzers)}")
        lines.append("")

    lines.append("## First Read")
    lines.append("")
    lines.append(f"**Theme:** {result.holistic.central_theme}")
    lines.append("")
    lines.append(f"**Voice:** {result.holistic.primary_voice} | **Structure:** {result.holistic.essay_structure}")
    lines.append("")
    if result.holistic.first_impression:
        lines.append(f"_{result.holistic.first_impression}_")
        lines.append("")

    lines.append("## Dimensions")
    lines.append("")
    lines.append("| Dimension | Score | Weight | Contribution |")
    lines.append("|-----------|-------|--------|--------------|")
    for d in result.dimensions:
        lines.append(f"| {d.name} | {d.score:.1f} | {d.weight:.3f} | {d.contribution * 10:.1f} |")
    lines.append("")

    if ins.strengths:
        lines.append("## Strengths")
        lines.append("")
        for s in ins.strengths:
            lines.append(f"- **{s.title}** ({s.dimension}): {s.description}")
        lines.append("")

    if ins.gaps:
        lines.append("## Gaps")
        lines.append("")
        for g in ins.gaps:
            gain = f", {g.estimated_gain}" if g.estimated_gain else ""
            lines.append(f"- **{g.title}** ({g.dimension}; {g.fix_complexity}{gain}): {g.description}")
        lines.append("")

    if ins.roadmap:
        lines.append("## Revision Roadmap")
        lines.append("")
        for i, step in enumerate(ins.roadmap, 1):
            lines.append(f"{i}. {step}")
        lines.append("")

    if result.sentence_insights:
        lines.append("## Sentence-Level Priorities")
        lines.append("")
        for si in result.sentence_insights:
            lines.append(f"### Sentence {si.index + 1} ({si.section}, priority {si.priority:.0f})")
            lines.append("")
            lines.append(f"> {si.sentence}")
            lines.append("")
            for issue in si.issues:
                lines.append(f"- [{issue.severity}] {issue.explanation} ({issue.impact})")
                if issue.suggestion:
                    lines.append(f"  - Fix: {issue.suggestion}")
            lines.append("")

    essay_wide = [i for i in result.issues if not i.quote]
    if essay_wide:
        lines.append("## Essay-Wide Issues")
        lines.append("")
        for issue in essay_wide:
            lines.append(f"- [{issue.severity}] {issue.explanation}")
        lines.append("")

    return "\n".join(lines)
