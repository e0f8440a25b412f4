"""
Voice & Style Analyzer

Scores how much the essay sounds like a person rather than an essay:
- Essay-speak ("This experience taught me...") and AI-flavored phrasing
- Active vs passive constructions (80%+ active reads as confident)
- Thesaurus words ("plethora", "utilize")
- Rhythm: at least one punchy and one long sentence
- Conversational markers

Baseline is 5.0; the detectors push it up or down, then it is clamped to [0, 10].
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Tuple
import re

from essay_workshop.text import split_sentences

ESSAY_SPEAK = (
    r"(?:This|That|The)\s+(?:experience|activity|project|journey)\s+(?:taught|showed|revealed|demonstrated)",
    r"Through\s+(?:this|that|my)\s+(?:experience|activity|work|journey)",
    r"I\s+learned\s+(?:that|the\s+importance\s+of|how\s+to)",
    r"In\s+conclusion",
    r"(?:This|It)\s+(?:has\s+)?made\s+me\s+(?:realize|understand|appreciate)",
    r"As\s+a\s+result\s+of\s+this",
    r"(?:Throughout|During)\s+(?:this|my)\s+(?:journey|experience)",
    r"I\s+(?:have\s+)?come\s+to\s+(?:realize|understand|appreciate|value)",
    r"(?:This|That)\s+is\s+why\s+I\s+(?:believe|think|value)",
    r"Looking\s+back\s+(?:on|at)\s+(?:this|my)",
    r"I\s+have\s+always\s+been\s+(?:passionate|interested|fascinated)",
    r"make\s+a\s+(?:real\s+)?difference\s+in\s+the\s+world",
)

AI_PHRASES = (
    r"\bdelve\s+into",
    r"\bfurthermore\b",
    r"\bmoreover\b",
    r"\bit\s+(?:is\s+)?(?:important|worth|should\s+be)\s+noted\s+that",
    r"\bnavigat(?:e|ing)\s+the\s+(?:complexities|challenges)",
    r"\bin\s+today's\s+(?:world|society|landscape)",
    r"\bmultifaceted\b",
    r"\bproven\s+to\s+be\s+invaluable",
    r"\bultimately\b(?!\s+(?:won|lost|decided|chose))",
    r"\bserves\s+as\s+a\s+testament\s+to",
    r"\bembodies\s+the\s+(?:essence|spirit)",
    r"\bpivotal\s+moment",
    r"\btransformative\s+(?:experience|journey)",
)

ACTIVE = (
    r"\bI\s+(?:led|created|organized|designed|built|wrote|taught|solved|decided|managed|developed|implemented|launched)",
    r"\bI\s+(?:made|took|gave|ran|planned|executed|started|founded|coordinated|directed)",
    r"\b(?:He|She|They|We)\s+(?:created|built|designed|developed|implemented|launched|organized)",
)

PASSIVE = (
    r"\b(?:was|were|been|being)\s+(?:created|designed|built|made|developed|implemented|organized|led|managed|coordinated|taught|given|shown|told|asked)",
    r"\bgot\s+(?:selected|chosen|picked|asked|invited)",
    r"\b(?:was|were)\s+(?:responsible|tasked|assigned|chosen|selected)\s+(?:for|to|with)",
)

FANCY_WORDS = (
    r"\b(?:utilize|utilization)\b",
    r"\bplethora\b",
    r"\bmyriad\b",
    r"\bendeavors?\b",
    r"\bfacilitated?\b",
    r"\b(?:optimal|optimize)\b",
    r"\bparadigm\b",
    r"\b(?:synergy|synergistic)\b",
    r"\bleveraged?\b",
    r"\b(?:implement|implementation)\b",
    r"\bparamount\b",
    r"\bquintessential\b",
    r"\belucidate\b",
    r"\bameliorate\b",
)

CONVERSATIONAL = (
    r"\bI\s+mean\b",
    r"\bhonestly\b",
    r"\byeah\b",
    r"\bokay\b",
    r"\blike\s+(?!a\b|an\b|the\b)",
    r"\bbasically\b",
    r"\bactually\b",
    r"\byou\s+know\b",
    r"\bto\s+be\s+honest\b",
    r"\blet's\s+be\s+real\b",
    r"\bhere's\s+the\s+thing\b",
)


@dataclass
class VoiceAnalysis:
    voice_score: float
    voice_quality: str   # authentic_distinctive|strong_voice|mixed_voice|generic_essay|ai_generated
    essay_speak_count: int = 0
    essay_speak_examples: List[str] = field(default_factory=list)
    ai_phrase_count: int = 0
    ai_phrase_examples: List[str] = field(default_factory=list)
    active_count: int = 0
    passive_count: int = 0
    active_ratio: float = 0.5
    fancy_word_count: int = 0
    fancy_word_examples: List[str] = field(default_factory=list)
    rhythm_score: float = 0.0
    short_sentences: int = 0
    long_sentences: int = 0
    conversational_count: int = 0
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    quick_wins: List[str] = field(default_factory=list)

    @property
    def has_essay_speak(self) -> bool:
        return self.essay_speak_count > 0


def _scan(text: str, patterns, per_pattern: int = 3) -> Tuple[int, List[str]]:
    count = 0
    examples: List[str] = []
    for p in patterns:
        matches = [m.group(0) for m in re.finditer(p, text, re.IGNORECASE)]
        count += len(matches)
        for m in matches[:per_pattern]:
            if m not in examples:
                examples.append(m)
    return count, examples


def _rhythm(text: str) -> Tuple[float, int, int]:
    short = long_ = 0
    for s in split_sentences(text):
        n = len(s.split())
        if 3 <= n <= 5:
            short += 1
        elif n >= 20:
            long_ += 1
    score = 0.0
    if short >= 1:
        score += 0.5
    if long_ >= 1:
        score += 0.5
    if short >= 2 and long_ >= 2:
        score = 1.0
    return score, short, long_


def _quality(score: float) -> str:
    if score >= 9:
        return "authentic_distinctive"
    if score >= 7:
        return "strong_voice"
    if score >= 5:
        return "mixed_voice"
    if score >= 3:
        return "generic_essay"
    return "ai_generated"


def analyze_voice(text: str) -> VoiceAnalysis:
    essay_speak, essay_speak_examples = _scan(text, ESSAY_SPEAK)
    ai_count, ai_examples = _scan(text, AI_PHRASES)
    active, _ = _scan(text, ACTIVE)
    passive, _ = _scan(text, PASSIVE)
    fancy, fancy_examples = _scan(text, FANCY_WORDS)
    conversational, _ = _scan(text, CONVERSATIONAL, per_pattern=2)
    rhythm, short, long_ = _rhythm(text)

    total = active + passive
    ratio = active / total if total else 0.5

    score = 5.0
    if essay_speak >= 5:
        score -= 3.0
    elif essay_speak >= 3:
        score -= 2.0
    elif essay_speak >= 1:
        score -= 1.0

    if ai_count >= 4:
        score -= 2.5
    elif ai_count >= 2:
        score -= 1.5
    elif ai_count >= 1:
        score -= 0.5

    if ratio >= 0.8:
        score += 3.0
    elif ratio >= 0.7:
        score += 2.0
    elif ratio >= 0.6:
        score += 1.0
    elif ratio < 0.5:
        score -= 1.5

    if fancy >= 5:
        score -= 1.5
    elif fancy >= 3:
        score -= 1.0
    elif fancy >= 1:
        score -= 0.5

    if rhythm >= 0.7:
        score += 1.5
    elif rhythm >= 0.5:
        score += 1.0
    elif rhythm >= 0.3:
        score += 0.5

    if conversational >= 3:
        score += 1.0
    elif conversational >= 2:
        score += 0.5

    score = round(max(0.0, min(10.0, score)), 2)

    strengths: List[str] = []
    weaknesses: List[str] = []
    quick_wins: List[str] = []
    if essay_speak == 0:
        strengths.append("No essay-speak")
    else:
        weaknesses.append(f"{essay_speak} essay-speak phrase(s)")
        quick_wins.append(f'Cut summary phrasing such as "{essay_speak_examples[0]}"; show the moment instead')
    if ai_count:
        weaknesses.append(f"{ai_count} AI-flavored phrase(s)")
    if ratio >= 0.8 and total:
        strengths.append(f"Strong active voice ({round(ratio * 100)}% active constructions)")
    elif ratio < 0.5:
        weaknesses.append(f"Too much passive voice ({round((1 - ratio) * 100)}% passive)")
        quick_wins.append('Flip passive to active: "was created by me" -> "I created"')
    if fancy:
        weaknesses.append(f"Thesaurus words: {', '.join(fancy_examples)}")
        quick_wins.append("Swap inflated vocabulary for plain words")
    if rhythm >= 0.7:
        strengths.append("Varied sentence rhythm")
    elif rhythm < 0.3:
        weaknesses.append("Flat rhythm; no short punches or long builds")
        quick_wins.append("Add one 3-5 word sentence after a long one")

    return VoiceAnalysis(
        voice_score=score,
        voice_quality=_quality(score),
        essay_speak_count=essay_speak,
        essay_speak_examples=essay_speak_examples,
        ai_phrase_count=ai_count,
        ai_phrase_examples=ai_examples,
        active_count=active,
        passive_count=passive,
        active_ratio=round(ratio, 2),
        fancy_word_count=fancy,
        fancy_word_examples=fancy_examples,
        rhythm_score=rhythm,
        short_sentences=short,
        long_sentences=long_,
        conversational_count=conversational,
        strengths=strengths,
        weaknesses=weaknesses,
        quick_wins=quick_wins,
    )
