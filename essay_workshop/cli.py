from __future__ import annotations
import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from essay_workshop.config import load_config, with_editor, with_llm
from essay_workshop.errors import WorkshopError
from essay_workshop.llm.client import ClaudeClient
from essay_workshop.rules.load_rules import default_library
from essay_workshop.stages.orchestrator import generate_review_report
from essay_workshop.surgical.locator import locate, locators_from_dimensions
from essay_workshop.workshop import generate_suggestions_async, run_analysis_async


def _progress(stage, completed, total):
    if total > 0:
        print(f"  {stage}: {completed}/{total}", file=sys.stderr)


def _read_essay(path: str) -> str:
    text = Path(path).read_text(encoding="utf-8").strip()
    if not text:
        raise SystemExit(f"{path} is empty")
    return text


def _run_analyze(args, config):
    text = _read_essay(args.essay)
    result = asyncio.run(run_analysis_async(
        text, args.type, args.prompt, args.max_words,
        config=config, progress_callback=_progress,
    ))

    if args.json:
        Path(args.json).write_text(json.dumps(result.to_dict(), indent=2))
    if args.report:
        Path(args.report).write_text(generate_review_report(result))

    output = {
        "essay_type": result.essay_type,
        "aggregate_score": result.insights.aggregate_score,
        "impression": result.insights.impression_label,
        "percentile": result.insights.percentile_estimate,
        "dimensions": {d.key: d.score for d in result.dimensions},
        "issues": len(result.issues),
        "sentence_insights": len(result.sentence_insights),
        "degraded_analyzers": result.stats.degraded_analyzers,
        "llm_calls": result.stats.llm_calls,
        "tokens_used": result.stats.tokens_used,
        "processing_time_s": round(result.stats.total_time_s, 1),
    }
    print(json.dumps(output, indent=2))


async def _analyze_and_suggest(text, config):
    library = default_library()
    client = ClaudeClient(config.llm)
    analysis = await run_analysis_async(
        text, config=config, client=client, library=library, progress_callback=_progress,
    )
    locators = locate(text, analysis.issues)
    if not locators:
        locators = locators_from_dimensions(text, analysis.dimensions)
    items = await generate_suggestions_async(
        text, locators, analysis=analysis, config=config, client=client, library=library,
    )
    return analysis, items


def _run_suggest(args, config):
    text = _read_essay(args.essay)
    analysis, items = asyncio.run(_analyze_and_suggest(text, config))

    if args.json:
        Path(args.json).write_text(json.dumps([item.to_dict() for item in items], indent=2))

    output = {
        "aggregate_score": analysis.insights.aggregate_score,
        "items": [
            {
                "id": item.id,
                "quote": item.locator.quote,
                "span": [item.locator.start, item.locator.end],
                "severity": item.locator.severity,
                "symptom": item.diagnosis.primary_symptom,
                "best": asdict(item.best),
            }
            for item in items
        ],
    }
    print(json.dumps(output, indent=2))


def main():
    ap = argparse.ArgumentParser(
        prog="essay-workshop",
        description="Essay analysis and surgical suggestion pipeline"
    )
    ap.add_argument("--config", help="Path to a YAML config file")
    ap.add_argument("--model", help="Claude model to use (overrides config)")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log stage progress")
    sub = ap.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Run the five-stage analysis")
    analyze.add_argument("essay", help="Path to the essay (plain text)")
    analyze.add_argument("--type", help="Essay type profile (inferred when omitted)")
    analyze.add_argument("--prompt", help="The essay prompt")
    analyze.add_argument("--max-words", type=int, help="Word limit")
    analyze.add_argument("--json", help="Write the full analysis as JSON to this path")
    analyze.add_argument("--report", help="Write a markdown report to this path")

    suggest = sub.add_parser("suggest", help="Analyze, then generate surgical suggestions")
    suggest.add_argument("essay", help="Path to the essay (plain text)")
    suggest.add_argument("--max-items", type=int, help="Maximum workshop items")
    suggest.add_argument("--seed", type=int, help="Seed for strategy selection")
    suggest.add_argument("--json", help="Write the workshop items as JSON to this path")

    args = ap.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(message)s",
    )

    config = load_config(args.config)
    if args.model:
        config = with_llm(config, model=args.model)
    if not config.llm.api_key:
        ap.error("an API key is required: set ANTHROPIC_API_KEY or llm.api_key in --config")

    try:
        if args.command == "analyze":
            _run_analyze(args, config)
        else:
            if args.max_items is not None:
                config = with_editor(config, max_items=args.max_items)
            if args.seed is not None:
                config = with_editor(config, seed=args.seed)
            _run_suggest(args, config)
    except WorkshopError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
