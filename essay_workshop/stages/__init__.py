"""
Five-stage essay analysis pipeline.

Stage 1 reads the whole essay, Stage 2 fans out six section analyzers,
Stage 3 measures craft, Stage 4 scores and synthesizes, Stage 5 pins
issues to sentences.
"""
from essay_workshop.stages.deep_dive import ANALYZER_NAMES, run_deep_dive
from essay_workshop.stages.orchestrator import generate_review_report, run_pipeline
from essay_workshop.stages.scoring import (
    aggregate_score,
    dimension_weights,
    impression_label,
    infer_essay_type,
    score_dimensions,
)
from essay_workshop.stages.sentences import collect_issues, generate_sentence_insights

__all__ = [
    "ANALYZER_NAMES",
    "run_deep_dive",
    "run_pipeline",
    "generate_review_report",
    "aggregate_score",
    "dimension_weights",
    "impression_label",
    "infer_essay_type",
    "score_dimensions",
    "collect_issues",
    "generate_sentence_insights",
]
