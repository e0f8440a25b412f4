"""
Deterministic text parsing shared by every stage.

Sentences keep their character offsets into the original text so later
stages can point back at exact spans.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional
import re

from essay_workshop.config import SectionBoundaries

_SENTENCE_RE = re.compile(r"[^.!?]+(?:[.!?]+[\"'”’)\]]*|$)")
_WORD_RE = re.compile(r"\b[a-z]+(?:'[a-z]+)?\b")
_PARAGRAPH_RE = re.compile(r"\n\s*\n+")

SECTIONS = ("opening", "body", "climax", "conclusion")


@dataclass(frozen=True)
class Sentence:
    index: int
    text: str
    start: int
    end: int
    section: str

    @property
    def word_count(self) -> int:
        return len(self.text.split())


def section_for_position(index: int, total: int, boundaries: Optional[SectionBoundaries] = None) -> str:
    """
    Label a sentence by its relative position in the essay.

    progress < opening_end               -> opening
    progress > conclusion_start          -> conclusion
    climax_start <= progress <= climax_end -> climax
    anything else                        -> body
    """
    b = boundaries or SectionBoundaries()
    if total <= 0:
        return "body"
    progress = index / total
    if progress < b.opening_end:
        return "opening"
    if progress > b.conclusion_start:
        return "conclusion"
    if b.climax_start <= progress <= b.climax_end:
        return "climax"
    return "body"


def parse_sentences(text: str, boundaries: Optional[SectionBoundaries] = None) -> List[Sentence]:
    spans = []
    for m in _SENTENCE_RE.finditer(text):
        raw = m.group(0)
        stripped = raw.strip()
        if not stripped or not re.search(r"\w", stripped):
            continue
        lead = len(raw) - len(raw.lstrip())
        start = m.start() + lead
        spans.append((start, start + len(stripped), stripped))
    total = len(spans)
    return [
        Sentence(i, s, start, end, section_for_position(i, total, boundaries))
        for i, (start, end, s) in enumerate(spans)
    ]


def split_sentences(text: str) -> List[str]:
    return [s.text for s in parse_sentences(text)]


def section_text(sentences: List[Sentence], section: str) -> str:
    """Join the sentences of one section; falls back to the nearest edge sentence."""
    picked = [s.text for s in sentences if s.section == section]
    if not picked and sentences:
        if section == "opening":
            picked = [sentences[0].text]
        elif section == "conclusion":
            picked = [sentences[-1].text]
        else:
            picked = [sentences[len(sentences) // 2].text]
    return " ".join(picked)


def words(text: str) -> List[str]:
    return _WORD_RE.findall(text.lower())


def paragraphs(text: str) -> List[str]:
    return [p.strip() for p in _PARAGRAPH_RE.split(text) if p.strip()]


def average_sentence_length(text: str) -> float:
    sentences = split_sentences(text)
    if not sentences:
        return 0.0
    return sum(len(s.split()) for s in sentences) / len(sentences)
