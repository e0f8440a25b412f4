"""
Context assembly for the surgical editor.

Everything here is deterministic given the request's random source: the
voice profile, strategy and example selection, and the eight-section case
file handed to the generation call.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple
import random
import re

from essay_workshop.analysis.voice import CONVERSATIONAL
from essay_workshop.editops import Locator, SymptomDiagnosis, VoiceProfile
from essay_workshop.ir import HolisticUnderstanding
from essay_workshop.llm.prompts import TEACHING_PROTOCOL, WRITING_PROTOCOL
from essay_workshop.rules.load_rules import Library, Strategy, SurgicalExample
from essay_workshop.text import average_sentence_length, split_sentences

FALLBACK_EXAMPLE_CATEGORY = "show_dont_tell_craft"

_CONTRACTION = re.compile(r"\b\w+'(?:t|s|re|ve|ll|d|m)\b", re.I)
_DASH = re.compile(r"—|--|\s-\s")


def cadence_for(avg_sentence_length: float) -> str:
    if avg_sentence_length < 12:
        return "punchy"
    if avg_sentence_length < 20:
        return "measured"
    return "flowing"


def build_voice_profile(text: str, holistic: Optional[HolisticUnderstanding] = None) -> VoiceProfile:
    sentences = split_sentences(text)
    avg = round(average_sentence_length(text), 1)

    markers = []
    if _CONTRACTION.search(text):
        markers.append("contractions")
    if _DASH.search(text):
        markers.append("dashes")
    if "?" in text:
        markers.append("questions")
    if any(len(s.split()) < 4 for s in sentences):
        markers.append("fragments")
    if any(re.search(p, text, re.IGNORECASE) for p in CONVERSATIONAL):
        markers.append("conversational asides")

    samples = [s for s in sentences if 8 <= len(s.split()) <= 25][:3]
    tone = holistic.primary_voice if holistic is not None and holistic.primary_voice else "neutral"
    return VoiceProfile(
        tone=tone,
        cadence=cadence_for(avg),
        avg_sentence_length=avg,
        markers=tuple(markers),
        sample_sentences=tuple(samples),
    )


def select_strategies(library: Library, category: str, rng: random.Random, count: int = 3) -> List[Strategy]:
    """Up to two strategies with affinity for the category, the rest from the others, shuffled."""
    matched = [s for s in library.strategies if category in s.rubric_affinity]
    others = [s for s in library.strategies if category not in s.rubric_affinity]
    picked = rng.sample(matched, min(2, len(matched), count))
    picked += rng.sample(others, min(count - len(picked), len(others)))
    rng.shuffle(picked)
    return picked


def select_examples(
    library: Library,
    category: str,
    symptom: str,
    voice: Optional[VoiceProfile] = None,
    limit: int = 2,
) -> List[SurgicalExample]:
    pool = [e for e in library.examples if e.category == category]
    if not pool:
        pool = [e for e in library.examples if e.category == FALLBACK_EXAMPLE_CATEGORY] or list(library.examples)
    voice_tags = {voice.tone.lower(), voice.cadence} if voice is not None else set()
    ranked = sorted(
        pool,
        key=lambda e: (symptom in e.symptom_tags, len(voice_tags & set(e.voice_types))),
        reverse=True,
    )
    return ranked[:max(1, limit)]


def complexity_tier(essay_score: float) -> str:
    if essay_score < 30:
        return "Basic"
    if essay_score < 50:
        return "Competent"
    if essay_score < 70:
        return "Advanced"
    return "Elite"


def context_snippet(text: str, locator: Locator, chars: int = 200) -> str:
    before = text[max(0, locator.start - chars):locator.start]
    after = text[locator.end:locator.end + chars]
    return f"[PRE-CONTEXT]\n{before}\n[TARGET_START]\n{locator.quote}\n[TARGET_END]\n{after}\n[POST-CONTEXT]"


@dataclass(frozen=True)
class ContextBundle:
    case_file: str
    complexity_tier: str
    strategies: Tuple[Strategy, ...]
    examples: Tuple[SurgicalExample, ...]


def _clinical_chart(diagnosis: SymptomDiagnosis, locator: Locator) -> List[str]:
    lines = [
        f"**Symptom:** {diagnosis.primary_symptom}",
        f"**Diagnosis:** {diagnosis.diagnosis or locator.problem or 'n/a'}",
    ]
    if diagnosis.secondary_symptoms:
        lines.append(f"**Secondary:** {', '.join(diagnosis.secondary_symptoms)}")
    if locator.problem:
        lines.append(f"**Reported issue:** {locator.problem}")
    me = diagnosis.missing_elements
    if me.any():
        lines.append("")
        lines.append("**Missing elements (every variant must supply at least one):**")
        if me.sensory_details:
            lines.append(f"- Sensory details: {', '.join(me.sensory_details)}")
        if me.concrete_objects:
            lines.append(f"- Concrete objects/numbers: {', '.join(me.concrete_objects)}")
        if me.micro_moment:
            lines.append(f"- Grounding moment: {me.micro_moment}")
        if me.emotional_truth:
            lines.append(f"- Emotional truth to show: {me.emotional_truth}")
    return lines


def assemble_context(
    text: str,
    locator: Locator,
    voice: VoiceProfile,
    diagnosis: SymptomDiagnosis,
    library: Library,
    rng: random.Random,
    holistic: Optional[HolisticUnderstanding] = None,
    essay_score: float = 50.0,
    context_chars: int = 200,
) -> ContextBundle:
    tier = complexity_tier(essay_score)
    strategies = select_strategies(library, locator.category, rng)
    examples = select_examples(library, locator.category, diagnosis.primary_symptom, voice)

    lines = []
    lines.append(f"# CASE FILE: {locator.category}")
    lines.append(f"**Status:** {tier}")
    lines.append(f'**Target:** "{locator.quote}"')
    lines.append("")

    lines.append("## 1. CLINICAL CHART")
    lines.extend(_clinical_chart(diagnosis, locator))
    lines.append("")

    lines.append("## 2. VOICE PROFILE")
    lines.append(f"**Tone:** {voice.tone} | **Cadence:** {voice.cadence} ({voice.avg_sentence_length} words/sentence)")
    lines.append(f"**Markers:** {', '.join(voice.markers) or 'none noted'}")
    for s in voice.sample_sentences or ("(no samples available)",):
        lines.append(f'> "{s}"')
    lines.append("")

    lines.append("## 3. HOLISTIC BRIEF")
    if holistic is not None:
        lines.append(f"**Central theme:** {holistic.central_theme}")
        lines.append(f"**Narrative thread:** {holistic.narrative_thread}")
        lines.append("Every edit must serve this theme and must not contradict it.")
    else:
        lines.append("No holistic context available.")
    lines.append("")

    lines.append("## 4. REFERENCE LIBRARY")
    for i, e in enumerate(examples, 1):
        lines.append(f"**Case study {i}** ({e.strategy})")
        lines.append(f'- Original: "{e.original}"')
        lines.append(f'- Transformation: "{e.fix}"')
        lines.append(f"- Why it works: {e.rationale}")
    lines.append("")

    lines.append("## 5. WRITING PROTOCOL")
    lines.append(WRITING_PROTOCOL)
    lines.append("")

    lines.append("## 6. TEACHING PROTOCOL")
    lines.append(TEACHING_PROTOCOL)
    lines.append("")

    lines.append("## 7. STRATEGIC DIRECTIVES")
    lines.append("- polished_original: repair the diagnosed weakness and keep the sentence's shape and intent.")
    lines.append("- voice_amplifier: push the writer's own voice traits further (rhythm, word choice), no filler.")
    if strategies:
        lead = strategies[0]
        lines.append(f"- divergent_strategy: apply **{lead.name}**. {lead.instruction}")
        lines.append(f"  Example concept: {lead.example_concept}")
        for s in strategies[1:]:
            lines.append(f"  Alternative: **{s.name}**. {s.instruction}")
    lines.append("")

    lines.append("## 8. TARGET TEXT SEGMENT")
    lines.append(context_snippet(text, locator, context_chars))

    return ContextBundle(
        case_file="\n".join(lines),
        complexity_tier=tier,
        strategies=tuple(strategies),
        examples=tuple(examples),
    )
