"""
Narrative pattern matching.

Runs the pattern library against an essay. Regex patterns yield one hit per
match, quoting the containing sentence; marker and detector patterns are
essay-wide and only quote text when they point at a specific sentence.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import re

from essay_workshop.errors import LibraryError
from essay_workshop.rules.load_rules import NarrativePattern
from essay_workshop.text import Sentence, paragraphs, parse_sentences

_TIME_MARKER = re.compile(
    r"\b(monday|tuesday|wednesday|thursday|friday|saturday|sunday|\d{1,2}:\d{2}|morning|afternoon|evening|night|"
    r"midnight|dawn|junior year|freshman|sophomore|senior|january|february|march|april|may|june|july|august|"
    r"september|october|november|december|spring|summer|fall|winter|yesterday|today|last week|ago)\b",
    re.IGNORECASE,
)
_PLACE_MARKER = re.compile(
    r"\b(lab|kitchen|classroom|field|stage|gym|library|room|table|desk|court|office|hospital|street|park|home|"
    r"house|school|building)\b",
    re.IGNORECASE,
)
_SENSORY = re.compile(
    r"\b(smell|sound|taste|feel|touch|see|saw|heard|felt|looked|appeared|cold|hot|warm|bright|dark|loud|quiet|"
    r"soft|hard|rough|smooth)\b",
    re.IGNORECASE,
)
_HOOK_UNCONVENTIONAL = re.compile(
    r"\b(worst|best|strangest|never|always|no one|everyone|nobody|turns out|honestly|actually)\b", re.IGNORECASE
)
_HOOK_PROVOCATIVE = re.compile(
    r"\b(wrong|failed|mistake|lied|hated|loved|impossible|changed everything)\b", re.IGNORECASE
)


@dataclass
class PatternMatch:
    pattern: NarrativePattern
    quote: str = ""              # empty for essay-wide hits
    sentence_index: Optional[int] = None


def _first_paragraph(text: str) -> str:
    paras = paragraphs(text)
    return paras[0] if paras else text[:200]


def _opening_no_scene(text: str, sentences: List[Sentence]) -> Optional[str]:
    first = _first_paragraph(text)
    if _TIME_MARKER.search(first) or _PLACE_MARKER.search(first) or _SENSORY.search(first):
        return None
    return sentences[0].text if sentences else ""


def _opening_no_hook(text: str, sentences: List[Sentence]) -> Optional[str]:
    if not sentences:
        return None
    first = sentences[0].text
    if (
        '"' in first or "“" in first
        or _HOOK_UNCONVENTIONAL.search(first)
        or re.search(r"\b\d+\b", first)
        or _HOOK_PROVOCATIVE.search(first)
        or len(first) <= 50
    ):
        return None
    return first


def _opening_too_much_context(text: str, sentences: List[Sentence]) -> Optional[str]:
    first = _first_paragraph(text)
    long_sentences = [s for s in re.split(r"[.!?]", first) if len(s.strip()) > 20]
    if len(first.split()) > 200 and len(long_sentences) > 4 and '"' not in first:
        return ""
    return None


# detector name -> fn(text, sentences) returning the quote ("" for essay-wide) or None
DETECTORS: Dict[str, Callable[[str, List[Sentence]], Optional[str]]] = {
    "opening_no_scene": _opening_no_scene,
    "opening_no_hook": _opening_no_hook,
    "opening_too_much_context": _opening_too_much_context,
}


def _sentence_at(sentences: List[Sentence], offset: int) -> Optional[Sentence]:
    for s in sentences:
        if s.start <= offset < s.end:
            return s
    return None


def match_pattern(pattern: NarrativePattern, text: str, sentences: List[Sentence]) -> List[PatternMatch]:
    if pattern.regex is not None:
        if pattern.scope == "first_sentence":
            if sentences and pattern.regex.search(sentences[0].text):
                return [PatternMatch(pattern, sentences[0].text, 0)]
            return []
        hits: List[PatternMatch] = []
        seen = set()
        for m in pattern.regex.finditer(text):
            s = _sentence_at(sentences, m.start())
            if s is None or s.index in seen:
                continue
            seen.add(s.index)
            hits.append(PatternMatch(pattern, s.text, s.index))
        return hits

    if pattern.markers is not None:
        count = len(pattern.markers.findall(text))
        if pattern.min_count is not None and count < pattern.min_count:
            return [PatternMatch(pattern)]
        if pattern.max_count is not None and count > pattern.max_count:
            return [PatternMatch(pattern)]
        return []

    detector = DETECTORS.get(pattern.detector or "")
    if detector is None:
        raise LibraryError(f"Unknown detector for pattern {pattern.id}: {pattern.detector}")
    quote = detector(text, sentences)
    if quote is None:
        return []
    return [PatternMatch(pattern, quote, 0 if quote else None)]


def detect_patterns(text: str, patterns, sentences: Optional[List[Sentence]] = None) -> List[PatternMatch]:
    """Run every pattern; results keep library order, then text order."""
    sentences = sentences if sentences is not None else parse_sentences(text)
    matches: List[PatternMatch] = []
    for pattern in patterns:
        matches.extend(match_pattern(pattern, text, sentences))
    return matches
