"""
Locator Bridge

Maps issue records (category + quoted evidence) onto character spans in
the essay. Generative analyzers paraphrase, so the search falls back in a
fixed order:

    1. exact substring
    2. case-insensitive
    3. case-insensitive with any run of whitespace matching any other
    4. drop the issue and log it

The first occurrence wins. A located quote is always re-read from the
text, so locator.quote == text[start:end] holds for every locator.
"""
from __future__ import annotations
from typing import Iterable, List, Optional, Tuple
import logging
import re

from essay_workshop.editops import ISSUE_TO_LOCATOR_SEVERITY, SEVERITY_RANK, Locator, make_locator
from essay_workshop.ir import DimensionScore, Issue

logger = logging.getLogger(__name__)

MIN_QUOTE_CHARS = 5
PROXIMITY_CHARS = 10
_QUOTE_MARKS = "\"'“”‘’«»"


def clean_quote(quote: str) -> str:
    return (quote or "").strip().strip(_QUOTE_MARKS).strip()


def find_span(text: str, quote: str) -> Optional[Tuple[int, int]]:
    if not quote:
        return None
    i = text.find(quote)
    if i != -1:
        return i, i + len(quote)

    m = re.search(re.escape(quote), text, re.IGNORECASE)
    if m:
        return m.start(), m.end()

    parts = quote.split()
    if len(parts) > 1:
        m = re.search(r"\s+".join(re.escape(p) for p in parts), text, re.IGNORECASE)
        if m:
            return m.start(), m.end()
    return None


def locate(text: str, issues: Iterable[Issue]) -> List[Locator]:
    """One locator per locatable issue; unlocatable issues are logged and dropped."""
    locators: List[Locator] = []
    dropped = 0
    for issue in issues:
        quote = clean_quote(issue.quote)
        if len(quote) < MIN_QUOTE_CHARS:
            dropped += 1
            logger.warning(f"Skipping {issue.id}: quote too short ({quote!r})")
            continue
        span = find_span(text, quote)
        if span is None:
            dropped += 1
            logger.warning(f"Unlocatable evidence for {issue.id}: {quote[:60]!r}")
            continue
        locators.append(make_locator(
            text, span[0], span[1],
            category=issue.category,
            severity=ISSUE_TO_LOCATOR_SEVERITY.get(issue.severity, "warning"),
            issue_id=issue.id,
            problem=issue.explanation,
            why_it_matters=f"Costs {issue.impact}" if issue.impact else "",
        ))
    if dropped:
        logger.info(f"Located {len(locators)} issue(s), dropped {dropped} unlocatable or too short")
    return locators


def locators_from_dimensions(text: str, dimensions: Iterable[DimensionScore], below: float = 7.0) -> List[Locator]:
    """Locators for the evidence quotes of every dimension scoring under `below`."""
    locators: List[Locator] = []
    for d in dimensions:
        if d.score >= below:
            continue
        severity = "critical" if d.score < 4 else "warning" if d.score < 6 else "optimization"
        for n, raw in enumerate(d.evidence, 1):
            quote = clean_quote(raw)
            if len(quote) < MIN_QUOTE_CHARS:
                logger.warning(f"Skipping evidence for {d.key}: quote too short ({quote!r})")
                continue
            span = find_span(text, quote)
            if span is None:
                logger.warning(f"Unlocatable evidence for {d.key}: {quote[:60]!r}")
                continue
            locators.append(make_locator(
                text, span[0], span[1],
                category=d.key,
                severity=severity,
                issue_id=f"dimension.{d.key}-{n}",
                problem=f"This passage scored {d.score}/10 for {d.name}.",
                why_it_matters="; ".join(d.justification),
            ))
    return locators


def revalidate(text: str, locators: Iterable[Locator]) -> List[Locator]:
    """
    Rebuild caller-supplied locators against `text`. A locator whose span no
    longer reads back as its quote is re-located by quote; one whose quote
    cannot be found is dropped.
    """
    valid: List[Locator] = []
    for loc in locators:
        span: Optional[Tuple[int, int]] = (loc.start, loc.end)
        if not (0 <= loc.start < loc.end <= len(text)) or text[loc.start:loc.end] != loc.quote:
            span = find_span(text, clean_quote(loc.quote))
            if span is None:
                logger.warning(f"Dropping locator {loc.issue_id or loc.quote[:40]!r}: quote not found in text")
                continue
            logger.warning(f"Re-located {loc.issue_id or loc.quote[:40]!r} from {loc.start}-{loc.end} to {span[0]}-{span[1]}")
        try:
            valid.append(make_locator(
                text, span[0], span[1], loc.category, loc.severity,
                issue_id=loc.issue_id, problem=loc.problem, why_it_matters=loc.why_it_matters,
            ))
        except ValueError as exc:
            logger.warning(f"Dropping locator {loc.issue_id or loc.quote[:40]!r}: {exc}")
    return valid


def prioritize_locators(locators: Iterable[Locator], max_items: int) -> List[Locator]:
    """
    Most severe first, then earliest in the text; a locator starting within
    PROXIMITY_CHARS of one already kept is treated as a duplicate.
    """
    kept: List[Locator] = []
    for loc in sorted(locators, key=lambda l: (SEVERITY_RANK[l.severity], l.start)):
        if any(abs(loc.start - k.start) <= PROXIMITY_CHARS for k in kept):
            continue
        kept.append(loc)
        if len(kept) >= max_items:
            break
    return kept
