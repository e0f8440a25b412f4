"""
Grammar & Mechanics Analyzer

Deterministic sentence, verb, vocabulary and punctuation metrics.
No generative calls; identical text always yields identical metrics.
"""
from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List
import re

from essay_workshop.text import paragraphs, split_sentences, words

_PASSIVE = re.compile(
    r"\b(am|is|are|was|were|been|being)\s+(\w+ed|gotten|given|taken|made|done|seen|known|found|kept|left|felt|heard)\b",
    re.IGNORECASE,
)
_WEAK_VERB = re.compile(r"\b(is|am|are|was|were|be|been|being|have|has|had|get|got|make|made|do|did|go|went)\s+\w+", re.IGNORECASE)

STRONG_VERBS = (
    "sprinted", "whispered", "shattered", "erupted", "clutched", "scrawled", "hurled",
    "tumbled", "devoured", "forged", "wrestled", "salvaged", "stumbled", "bolted",
    "rebuilt", "untangled", "scoured", "coaxed", "hammered", "surged", "flinched",
    "gripped", "scrambled", "sketched", "dissected", "rewired", "improvised",
)

CLICHES = (
    r"\bat the end of the day\b",
    r"\bthink outside the box\b",
    r"\bcomfort zone\b",
    r"\bfound my passion\b",
    r"\banything is possible\b",
    r"\bchanged my life\b",
    r"\bthe importance of\b",
    r"\bgrow as a person\b",
    r"\bmade me who i am today\b",
    r"\bever since i was (?:young|a child|little)\b",
)

ADVANCED_VOCABULARY = (
    "ephemeral", "juxtaposition", "paradox", "nuance", "meticulous", "resilience",
    "dissonance", "catalyst", "ambiguity", "empathy", "threshold", "cadence",
    "entropy", "iteration", "hypothesis", "equilibrium", "synthesis",
)

STOPWORDS = frozenset("""
the and that this with from have were they their there what when which would could should
about into than then them these those been being also just very really some more most much
because while after before where your will only other over such even like each every
""".split())


@dataclass
class SentenceMetrics:
    total: int = 0
    average_length: float = 0.0
    short_ratio: float = 0.0      # < 10 words
    medium_ratio: float = 0.0     # 10-25 words
    long_ratio: float = 0.0       # > 25 words
    variety_score: float = 0.0


@dataclass
class GrammarMetrics:
    """Stage 3.1 output."""
    sentences: SentenceMetrics
    word_count: int = 0
    passive_count: int = 0
    passive_percentage: float = 0.0
    weak_verbs: List[str] = field(default_factory=list)
    strong_verb_count: int = 0
    cliches: List[str] = field(default_factory=list)
    lexical_diversity: float = 0.0
    overused_words: List[str] = field(default_factory=list)
    advanced_vocabulary: List[str] = field(default_factory=list)
    punctuation: Dict[str, int] = field(default_factory=dict)
    punctuation_flags: List[str] = field(default_factory=list)
    paragraph_count: int = 0
    paragraph_flags: List[str] = field(default_factory=list)
    red_flags: List[str] = field(default_factory=list)
    green_flags: List[str] = field(default_factory=list)
    overall_score: float = 0.0


def sentence_metrics(sentences: List[str]) -> SentenceMetrics:
    if not sentences:
        return SentenceMetrics()
    lengths = [len(s.split()) for s in sentences]
    total = len(lengths)
    short = sum(1 for n in lengths if n < 10) / total
    long_ = sum(1 for n in lengths if n > 25) / total
    medium = 1.0 - short - long_
    avg = sum(lengths) / total

    variety = 10.0
    if not 0.15 <= short <= 0.35:
        variety -= 2
    if not 0.40 <= medium <= 0.70:
        variety -= 2
    if not 0.10 <= long_ <= 0.30:
        variety -= 2
    if avg < 12 or avg > 25:
        variety -= 2

    return SentenceMetrics(
        total=total,
        average_length=round(avg, 1),
        short_ratio=round(short, 2),
        medium_ratio=round(medium, 2),
        long_ratio=round(long_, 2),
        variety_score=max(0.0, variety),
    )


def _overused(tokens: List[str]) -> List[str]:
    counts = Counter(t for t in tokens if len(t) > 3 and t not in STOPWORDS)
    return [w for w, n in counts.most_common(5) if n >= 4]


def _punctuation(text: str) -> Dict[str, int]:
    return {
        "exclamation": text.count("!"),
        "question": text.count("?"),
        "semicolon": text.count(";"),
        "dash": text.count("—") + text.count(" - ") + text.count("--"),
        "comma": text.count(","),
    }


def analyze_grammar(text: str) -> GrammarMetrics:
    sentences = split_sentences(text)
    tokens = words(text)
    sm = sentence_metrics(sentences)

    passive = [m.group(0) for m in _PASSIVE.finditer(text)]
    passive_pct = round(100.0 * len(passive) / len(sentences), 1) if sentences else 0.0
    weak = [m.group(0) for m in _WEAK_VERB.finditer(text)]
    strong = sum(1 for t in tokens if t in STRONG_VERBS)

    lowered = text.lower()
    cliches: List[str] = []
    for pattern in CLICHES:
        for m in re.finditer(pattern, lowered):
            cliches.append(text[m.start():m.end()])

    diversity = round(len(set(tokens)) / len(tokens), 3) if tokens else 0.0
    advanced = sorted({t for t in tokens if t in ADVANCED_VOCABULARY})

    punct = _punctuation(text)
    punct_flags = []
    if punct["exclamation"] > 3:
        punct_flags.append(f"Too many exclamation marks ({punct['exclamation']})")
    if punct["question"] > 5:
        punct_flags.append(f"Too many questions ({punct['question']})")
    if punct["semicolon"] > 5:
        punct_flags.append(f"Heavy semicolon use ({punct['semicolon']})")

    paras = paragraphs(text)
    para_flags = []
    if len(paras) == 1 and len(tokens) > 250:
        para_flags.append("Single block of text; break into paragraphs")
    for i, p in enumerate(paras, 1):
        n = len(p.split())
        if n > 200:
            para_flags.append(f"Paragraph {i} is very long ({n} words)")

    red: List[str] = []
    green: List[str] = []
    if sm.variety_score < 5:
        red.append("Monotonous sentence lengths")
    elif sm.variety_score >= 8:
        green.append("Varied sentence rhythm")
    if passive_pct > 25:
        red.append(f"Heavy passive voice ({passive_pct}% of sentences)")
    if cliches:
        red.append(f"{len(cliches)} cliché phrase(s)")
    if tokens and diversity < 0.5:
        red.append(f"Low lexical diversity ({diversity})")
    elif diversity >= 0.6:
        green.append("Rich vocabulary")
    if strong >= 3:
        green.append(f"{strong} vivid action verbs")
    red.extend(punct_flags)

    score = 10.0
    if sm.variety_score < 5:
        score -= 2
    elif sm.variety_score < 7:
        score -= 1
    if passive_pct > 25:
        score -= 2
    elif passive_pct > 15:
        score -= 1
    if tokens and diversity < 0.50:
        score -= 2
    elif tokens and diversity < 0.55:
        score -= 1
    if len(cliches) >= 3:
        score -= 2
    elif cliches:
        score -= 1
    score -= 0.5 * len(red)

    return GrammarMetrics(
        sentences=sm,
        word_count=len(tokens),
        passive_count=len(passive),
        passive_percentage=passive_pct,
        weak_verbs=weak,
        strong_verb_count=strong,
        cliches=cliches,
        lexical_diversity=diversity,
        overused_words=_overused(tokens),
        advanced_vocabulary=advanced,
        punctuation=punct,
        punctuation_flags=punct_flags,
        paragraph_count=len(paras),
        paragraph_flags=para_flags,
        red_flags=red,
        green_flags=green,
        overall_score=round(min(10.0, max(0.0, score)), 1),
    )
