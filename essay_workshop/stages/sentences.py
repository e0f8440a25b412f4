"""
Stage 5: Sentence-Level Insights

Purely deterministic. Gathers every issue raised by stages 2-4 and the
pattern library, pins each one to the first sentence that contains its
quote (case-insensitive), and ranks the sentences:

    priority = severity weight (critical 40, major 25, minor 10)
             + (10 - dimension score) * 3
             + section bonus (opening 20, conclusion 15, climax 12, body 8)
             + number parsed from the impact estimate

Issues whose quote matches no sentence stay in the essay-wide list only.
"""
from __future__ import annotations
from typing import Dict, Iterable, List, Optional
import logging
import re

from essay_workshop.analysis.patterns import PatternMatch
from essay_workshop.ir import CraftAnalysis, DimensionScore, Issue, SentenceInsight, StageResult
from essay_workshop.text import Sentence

logger = logging.getLogger(__name__)

SEVERITY_WEIGHT = {"critical": 40, "major": 25, "minor": 10}
SECTION_BONUS = {"opening": 20, "conclusion": 15, "climax": 12, "body": 8}
IMPACT_TEXT = {
    "critical": "-2 to -3 points",
    "major": "-1 to -2 points",
    "minor": "-0.5 to -1 points",
}
_IMPACT_NUMBER = re.compile(r"[-+](\d+)")


def _severity(value) -> str:
    value = str(value or "").lower()
    return value if value in SEVERITY_WEIGHT else "major"


class _IssueBuilder:
    def __init__(self):
        self.issues: List[Issue] = []

    def add(self, source: str, category: str, severity: str, quote: str, explanation: str, suggestion: str = ""):
        severity = _severity(severity)
        self.issues.append(Issue(
            id=f"{source}-{len(self.issues) + 1}",
            category=category,
            severity=severity,
            quote=quote.strip(),
            explanation=explanation,
            suggestion=suggestion,
            source=source,
            impact=IMPACT_TEXT[severity],
        ))


def collect_issues(
    stage2: Dict[str, StageResult],
    craft: CraftAnalysis,
    pattern_matches: Iterable[PatternMatch] = (),
) -> List[Issue]:
    b = _IssueBuilder()

    body = stage2.get("body")
    if body is not None:
        for item in body.items("detected_issues"):
            if isinstance(item, dict) and isinstance(item.get("quote"), str):
                b.add(
                    "body", "show_dont_tell_craft", item.get("severity"), item["quote"],
                    str(item.get("explanation", item.get("type", ""))), str(item.get("suggestion", "")),
                )
        for quote in body.items("vague_statements"):
            if isinstance(quote, str):
                b.add("body", "originality_specificity_voice", "major", quote,
                      "Vague statement with no concrete detail", "Replace with a specific example")

    conclusion = stage2.get("conclusion")
    if conclusion is not None:
        for quote in conclusion.items("cliches_detected"):
            if isinstance(quote, str):
                b.add("conclusion", "reflection_meaning_making", "critical", quote,
                      "Cliché in the reflection", "Replace with an insight only you could write")
        for quote in conclusion.items("generic_statements"):
            if isinstance(quote, str):
                b.add("conclusion", "reflection_meaning_making", "major", quote,
                      "Generic statement in the conclusion", "Tie the lesson to a specific moment")

    for phrase in craft.grammar.cliches:
        b.add("grammar", "sentence_level_craft", "major", phrase,
              f'Cliché phrase "{phrase}"', "Say it in your own words")
    for phrase in craft.grammar.weak_verbs[:3]:
        b.add("grammar", "sentence_level_craft", "minor", phrase,
              f'Weak verb construction "{phrase}"', "Use a precise action verb")
    for phrase in craft.voice.essay_speak_examples:
        b.add("voice", "originality_specificity_voice", "major", phrase,
              f'Essay-speak "{phrase}"', "Show the moment instead of summarizing it")

    for m in pattern_matches:
        p = m.pattern
        b.add(f"pattern.{p.id}", p.category, p.severity, m.quote, p.explanation, p.quick_fix)

    return b.issues


def impact_number(impact: str) -> int:
    m = _IMPACT_NUMBER.search(impact or "")
    return int(m.group(1)) if m else 0


def issue_priority(issue: Issue, section: str, dimension_score: float) -> float:
    return (
        SEVERITY_WEIGHT[issue.severity]
        + (10 - dimension_score) * 3
        + SECTION_BONUS.get(section, 0)
        + impact_number(issue.impact)
    )


def match_sentence(quote: str, sentences: List[Sentence]) -> Optional[Sentence]:
    needle = quote.strip().lower()
    if not needle:
        return None
    for s in sentences:
        if needle in s.text.lower():
            return s
    return None


def generate_sentence_insights(
    sentences: List[Sentence],
    issues: List[Issue],
    dimensions: List[DimensionScore],
    max_insights: int = 10,
) -> List[SentenceInsight]:
    """
    One insight per flagged sentence, ranked by its highest-priority issue.

    The insight takes its dimension and impact from that issue.
    """
    scores = {d.key: d.score for d in dimensions}
    by_sentence: Dict[int, List[Issue]] = {}
    unmatched = 0
    for issue in issues:
        s = match_sentence(issue.quote, sentences)
        if s is None:
            unmatched += 1
            continue
        by_sentence.setdefault(s.index, []).append(issue)

    insights = []
    for index, sentence_issues in by_sentence.items():
        sentence = sentences[index]
        ranked = sorted(
            sentence_issues,
            key=lambda i: issue_priority(i, sentence.section, scores.get(i.category, 5.0)),
            reverse=True,
        )
        top = ranked[0]
        insights.append(SentenceInsight(
            index=index,
            sentence=sentence.text,
            section=sentence.section,
            issues=ranked,
            priority=issue_priority(top, sentence.section, scores.get(top.category, 5.0)),
            dimension=top.category,
            impact=top.impact,
        ))

    insights.sort(key=lambda i: (-i.priority, i.index))
    if unmatched:
        logger.info(f"Stage 5: {unmatched} essay-wide issue(s) not pinned to a sentence")
    return insights[:max_insights]
