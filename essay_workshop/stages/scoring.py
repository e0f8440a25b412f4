"""
Stage 4a: Dimension Scorer

Purely deterministic. Each of the twelve dimensions starts from a neutral
base and moves by fixed threshold bonuses over specific upstream fields:

    opening        <- opening analyzer
    arc            <- holistic, climax, body, stakes
    interiority    <- character, climax
    show/tell      <- body
    reflection     <- conclusion
    dialogue/action<- character
    originality    <- style pass, character
    structure      <- holistic, body
    sentence craft <- grammar metrics, style pass
    context        <- body, opening, stakes
    school fit     <- conclusion, holistic
    ethics         <- climax, conclusion, holistic

Profile weights are the essay type's adjustments normalized to sum to 1.0;
the aggregate is the weighted mean scaled to 100.
"""
from __future__ import annotations
from typing import Dict, List, Optional, Tuple
import re

from essay_workshop.errors import StructuralError
from essay_workshop.ir import (
    DIMENSION_KEYS,
    DIMENSION_NAMES,
    CraftAnalysis,
    DimensionScore,
    HolisticUnderstanding,
    StageResult,
)
from essay_workshop.rules.load_rules import EssayTypeProfile, Library

DEFAULT_ESSAY_TYPE = "supplemental_other"


class _Tally:
    def __init__(self, base: float):
        self.score = base
        self.notes: List[str] = []
        self.evidence: List[str] = []

    def add(self, delta: float, note: str) -> None:
        self.score += delta
        self.notes.append(f"{delta:+.2f} {note}")

    def quote(self, *quotes) -> None:
        for q in quotes:
            if isinstance(q, str) and q.strip() and q not in self.evidence:
                self.evidence.append(q)

    def final(self) -> float:
        return clamp(self.score)


def clamp(value: float, lo: float = 0.0, hi: float = 10.0) -> float:
    return max(lo, min(hi, round(value * 10) / 10))


def _quotes(items: list, key: str = "quote") -> List[str]:
    out = []
    for item in items:
        if isinstance(item, str):
            out.append(item)
        elif isinstance(item, dict) and isinstance(item.get(key), str):
            out.append(item[key])
    return out


def _opening(opening: StageResult) -> _Tally:
    t = _Tally(5)
    hook = opening.num("hook_strength")
    if hook >= 9:
        t.add(1.5, f"hook strength {hook}")
    elif hook >= 7:
        t.add(1.0, f"hook strength {hook}")
    elif hook >= 5:
        t.add(0.5, f"hook strength {hook}")
    elif hook < 3:
        t.add(-1.5, f"weak hook ({hook})")

    hook_type = opening.text("hook_type")
    if hook_type in ("action", "sensory", "provocative_claim"):
        t.add(1.0, f"{hook_type} hook")
    elif hook_type == "dialogue":
        t.add(0.7, "dialogue hook")
    elif hook_type in ("summary", "definition", "none"):
        t.add(-2.0, f"generic hook ({hook_type})")

    if opening.flag("has_opening_scene"):
        vivid = opening.num("scene_vividness")
        t.add(1.0 if vivid >= 8 else 0.5 if vivid >= 6 else 0.2, f"opening scene (vividness {vivid})")
    else:
        t.add(-0.5, "no opening scene")

    sensory = len(opening.items("sensory_details"))
    if sensory >= 3:
        t.add(0.75, f"{sensory} sensory details")
    elif sensory >= 1:
        t.add(0.4, f"{sensory} sensory detail(s)")
    else:
        t.add(-0.3, "no sensory details")

    engagement = opening.num("reader_engagement")
    if engagement >= 8:
        t.add(0.75, f"engagement {engagement}")
    elif engagement >= 6:
        t.add(0.4, f"engagement {engagement}")
    elif engagement < 4:
        t.add(-0.75, f"low engagement ({engagement})")
    t.quote(opening.text("hook_quote"))
    return t


def _arc(holistic: HolisticUnderstanding, climax: StageResult, body: StageResult, stakes: StageResult) -> _Tally:
    t = _Tally(5)
    coherence = holistic.overall_coherence
    if coherence >= 9:
        t.add(1.25, f"coherence {coherence}")
    elif coherence >= 7:
        t.add(0.75, f"coherence {coherence}")
    elif coherence < 5:
        t.add(-1.25, f"low coherence ({coherence})")

    structure = holistic.essay_structure
    if structure in ("moment-focused", "thematic", "circular"):
        t.add(1.0, f"{structure} structure")
    elif structure == "chronological":
        t.add(0.5, "chronological structure")
    elif structure == "unclear":
        t.add(-1.0, "unclear structure")

    if climax.flag("has_turning_point"):
        depth = climax.num("turning_point_depth")
        t.add(1.25 if depth >= 8 else 0.75 if depth >= 6 else 0.4, f"turning point (depth {depth})")
        t.quote(climax.text("turning_point_quote"))
    else:
        t.add(-1.0, "no turning point")

    progression = body.num("narrative_progression")
    if progression >= 8:
        t.add(1.0, f"progression {progression}")
    elif progression >= 6:
        t.add(0.5, f"progression {progression}")
    elif progression < 4:
        t.add(-1.0, f"stalled progression ({progression})")

    if stakes.flag("resolution_present") and stakes.flag("resolution_satisfying"):
        t.add(0.5, "satisfying resolution")
    return t


def _interiority(character: StageResult, climax: StageResult) -> _Tally:
    t = _Tally(5)
    if character.flag("interiority_present"):
        depth = character.num("interiority_depth")
        t.add(1.5 if depth >= 8 else 0.9 if depth >= 6 else 0.4, f"interiority (depth {depth})")
    else:
        t.add(-1.5, "no interiority")

    moments = [m for m in climax.items("vulnerability_moments") if isinstance(m, dict)]
    if len(moments) >= 2:
        depths = []
        for m in moments:
            try:
                depths.append(float(m.get("depth", 5)))
            except (TypeError, ValueError):
                depths.append(5.0)
        avg = sum(depths) / len(depths)
        t.add(2.0 if avg >= 8 else 1.5 if avg >= 6 else 1.0, f"{len(moments)} vulnerability moments (avg depth {avg:.1f})")
    elif len(moments) == 1:
        t.add(0.5, "one vulnerability moment")
    else:
        t.add(-2.0, "no vulnerability moments")
    t.quote(*_quotes(moments))

    clarity = character.num("protagonist_clarity")
    if clarity >= 8:
        t.add(0.75, f"protagonist clarity {clarity}")
    elif clarity >= 6:
        t.add(0.4, f"protagonist clarity {clarity}")
    elif clarity < 4:
        t.add(-0.75, f"unclear protagonist ({clarity})")

    emotion = character.text("emotion_description_type")
    if emotion == "physical":
        t.add(0.75, "emotions rendered physically")
    elif emotion == "shown":
        t.add(0.5, "emotions shown through behavior")
    elif emotion == "mixed":
        t.add(0.3, "mixed emotion rendering")
    elif emotion == "named":
        t.add(-0.5, "emotions only named")
    return t


def _show_tell(body: StageResult) -> _Tally:
    t = _Tally(5)
    ratio = body.sub("show_vs_tell")
    try:
        showing = float(ratio.get("showing", 50))
        telling = float(ratio.get("telling", 50))
    except (TypeError, ValueError):
        showing, telling = 50.0, 50.0
    if showing >= 80 and telling <= 30:
        t.add(2.0, f"show/tell {showing:.0f}/{telling:.0f}")
    elif showing >= 60 and telling <= 50:
        t.add(1.2, f"show/tell {showing:.0f}/{telling:.0f}")
    elif showing < 40:
        t.add(-2.0, f"mostly telling ({showing:.0f}% showing)")

    specificity = body.num("specificity_level")
    if specificity >= 8:
        t.add(1.5, f"specificity {specificity}")
    elif specificity >= 6:
        t.add(0.9, f"specificity {specificity}")
    elif specificity < 4:
        t.add(-1.5, f"vague ({specificity})")

    quant = body.num("quantification_presence")
    if quant >= 7:
        t.add(1.0, f"quantification {quant}")
    elif quant >= 5:
        t.add(0.5, f"quantification {quant}")
    elif quant < 3:
        t.add(-1.0, f"little quantification ({quant})")

    concrete = body.items("concrete_examples")
    vague = body.items("vague_statements")
    if len(concrete) > len(vague) * 2:
        t.add(0.5, f"{len(concrete)} concrete vs {len(vague)} vague")
    elif len(vague) > len(concrete):
        t.add(-0.5, f"{len(vague)} vague vs {len(concrete)} concrete")
    t.quote(*_quotes(concrete)[:3])
    return t


def _reflection(conclusion: StageResult) -> _Tally:
    t = _Tally(5)
    if conclusion.flag("reflection_present"):
        depth = conclusion.num("reflection_depth")
        t.add(1.5 if depth >= 9 else 1.0 if depth >= 7 else 0.5 if depth >= 5 else 0.2, f"reflection (depth {depth})")
    else:
        t.add(-1.5, "no reflection")

    kind = conclusion.text("reflection_type")
    if kind == "insight":
        t.add(1.25, "insight-level reflection")
    elif kind == "lesson":
        t.add(0.4, "lesson-level reflection")
    elif kind == "summary":
        t.add(-0.75, "summary reflection")

    m2m = conclusion.sub("micro_to_macro")
    if m2m.get("present"):
        try:
            quality = float(m2m.get("connection_quality", 5))
        except (TypeError, ValueError):
            quality = 5.0
        t.add(1.25 if quality >= 8 else 0.9 if quality >= 6 else 0.5, f"micro-to-macro (quality {quality})")
    else:
        t.add(-0.5, "no micro-to-macro connection")

    depth = conclusion.num("philosophical_depth")
    if depth >= 8:
        t.add(0.75, f"philosophical depth {depth}")
    elif depth >= 6:
        t.add(0.4, f"philosophical depth {depth}")
    elif depth < 4:
        t.add(-0.5, f"shallow ({depth})")

    cliches = conclusion.items("cliches_detected")
    if len(cliches) >= 2:
        t.add(-1.0, f"{len(cliches)} clichés")
    elif len(cliches) == 1:
        t.add(-0.5, "one cliché")
    else:
        t.add(0.25, "no clichés")
    t.quote(conclusion.text("conclusion_quote"))
    return t


def _dialogue_action(character: StageResult) -> _Tally:
    t = _Tally(5)
    agency = character.num("agency_level")
    if agency >= 8:
        t.add(2.5, f"agency {agency}")
    elif agency >= 6:
        t.add(1.5, f"agency {agency}")
    elif agency >= 4:
        t.add(0.5, f"agency {agency}")
    else:
        t.add(-1.5, f"passive protagonist ({agency})")

    if character.flag("dialogue_present"):
        quality = character.num("dialogue_quality")
        if quality >= 8:
            t.add(1.5, f"dialogue quality {quality}")
        elif quality >= 6:
            t.add(0.9, f"dialogue quality {quality}")
        elif quality < 4:
            t.add(-0.6, f"weak dialogue ({quality})")
        if character.num("dialogue_percentage") > 10:
            t.add(-0.5, "dialogue crowds the essay")
        t.quote(*_quotes(character.items("dialogue_examples"))[:2])
    else:
        t.add(0.3, "no dialogue (not required)")

    if character.flag("growth_demonstrated"):
        t.add(0.7, "growth demonstrated")
    else:
        t.add(-0.7, "growth claimed or absent")
    return t


def _originality(style: StageResult, character: StageResult) -> _Tally:
    t = _Tally(5)
    distinct = style.num("voice_distinctiveness")
    if distinct >= 8:
        t.add(1.5, f"distinctive voice ({distinct})")
    elif distinct >= 6:
        t.add(1.0, f"clear personality ({distinct})")
    elif distinct < 4:
        t.add(-1.5, f"generic voice ({distinct})")

    originality = style.num("originality_score")
    if originality >= 8:
        t.add(1.25, f"originality {originality}")
    elif originality >= 6:
        t.add(0.75, f"originality {originality}")
    elif originality < 4:
        t.add(-1.0, f"unoriginal ({originality})")

    authenticity = character.num("voice_authenticity")
    if authenticity >= 8:
        t.add(1.0, f"authentic voice ({authenticity})")
    elif authenticity >= 6:
        t.add(0.6, f"authentic voice ({authenticity})")
    elif authenticity < 4:
        t.add(-1.0, f"inauthentic voice ({authenticity})")

    memorable = _quotes(style.items("memorable_phrases"))
    if len(memorable) >= 3:
        t.add(0.75, f"{len(memorable)} memorable phrases")
    elif memorable:
        t.add(0.4, f"{len(memorable)} memorable phrase(s)")
    t.quote(*memorable[:3])

    consistency = style.num("voice_consistency")
    if consistency >= 8:
        t.add(0.5, f"consistent voice ({consistency})")
    elif consistency < 5:
        t.add(-0.5, f"inconsistent voice ({consistency})")
    return t


def _structure(holistic: HolisticUnderstanding, body: StageResult) -> _Tally:
    t = _Tally(5)
    transitions = holistic.transition_quality
    if transitions >= 8:
        t.add(1.5, f"transitions {transitions}")
    elif transitions >= 6:
        t.add(0.9, f"transitions {transitions}")
    elif transitions < 4:
        t.add(-1.5, f"choppy transitions ({transitions})")

    pacing = body.num("pacing_rating")
    if pacing >= 8:
        t.add(2.0, f"pacing {pacing}")
    elif pacing >= 6:
        t.add(1.2, f"pacing {pacing}")
    elif pacing < 4:
        t.add(-2.0, f"poor pacing ({pacing})")

    issues = len(body.items("rushed_sections")) + len(body.items("belabored_sections"))
    if issues == 0:
        t.add(1.0, "no pacing problems")
    elif issues == 1:
        t.add(0.3, "one pacing problem")
    elif issues >= 3:
        t.add(-1.0, f"{issues} pacing problems")

    sections = holistic.number_of_distinct_sections
    if 3 <= sections <= 6:
        t.add(0.5, f"{sections} sections")
    elif sections < 2 or sections > 8:
        t.add(-0.5, f"{sections} sections")
    return t


def _sentence_craft(craft: CraftAnalysis) -> _Tally:
    t = _Tally(5)
    grammar, style = craft.grammar, craft.style
    variety = grammar.sentences.variety_score
    if variety >= 8:
        t.add(1.25, f"sentence variety {variety}")
    elif variety >= 6:
        t.add(0.75, f"sentence variety {variety}")
    elif variety < 4:
        t.add(-1.25, f"monotonous sentences ({variety})")

    rhythm = style.num("rhythm_quality")
    if rhythm >= 8:
        t.add(1.0, f"rhythm {rhythm}")
    elif rhythm >= 6:
        t.add(0.6, f"rhythm {rhythm}")
    elif rhythm < 4:
        t.add(-1.0, f"flat rhythm ({rhythm})")

    overall = grammar.overall_score
    if overall >= 8:
        t.add(1.0, f"mechanics {overall}")
    elif overall >= 6:
        t.add(0.6, f"mechanics {overall}")
    elif overall < 5:
        t.add(-1.0, f"weak mechanics ({overall})")

    diversity = grammar.lexical_diversity
    if diversity >= 0.60:
        t.add(0.75, f"lexical diversity {diversity}")
    elif diversity >= 0.55:
        t.add(0.4, f"lexical diversity {diversity}")
    elif diversity < 0.50:
        t.add(-0.75, f"repetitive vocabulary ({diversity})")

    passive = grammar.passive_percentage
    if passive < 10:
        t.add(0.5, f"{passive}% passive")
    elif passive > 20:
        t.add(-0.5, f"{passive}% passive")

    imagery = style.num("imagery_strength")
    if imagery >= 7:
        t.add(0.5, f"imagery {imagery}")
    elif imagery < 4:
        t.add(-0.5, f"thin imagery ({imagery})")
    t.quote(*grammar.cliches[:2])
    return t


def _context(body: StageResult, opening: StageResult, stakes: StageResult) -> _Tally:
    t = _Tally(7)
    quant = body.num("quantification_presence")
    if quant >= 7:
        t.add(1.5, f"quantification {quant}")
    elif quant >= 5:
        t.add(0.8, f"quantification {quant}")
    elif quant < 3:
        t.add(-1.5, f"little quantification ({quant})")

    clarity = opening.num("context_clarity")
    if clarity >= 8:
        t.add(1.0, f"context clarity {clarity}")
    elif clarity < 5:
        t.add(-1.0, f"unclear context ({clarity})")

    if stakes.flag("stakes_established"):
        if stakes.num("stakes_height") >= 7:
            t.add(0.5, "high stakes")
    else:
        t.add(-1.0, "stakes not established")
    return t


def _school_fit(holistic: HolisticUnderstanding, conclusion: StageResult) -> _Tally:
    t = _Tally(6)
    maturity = conclusion.num("intellectual_maturity")
    if maturity >= 8:
        t.add(2.0, f"intellectual maturity {maturity}")
    elif maturity >= 6:
        t.add(1.0, f"intellectual maturity {maturity}")
    elif maturity < 4:
        t.add(-1.0, f"immature reflection ({maturity})")

    signals = len(holistic.authenticity_signals)
    if signals >= 3:
        t.add(1.0, f"{signals} authenticity signals")
    elif signals < 1:
        t.add(-1.0, "no authenticity signals")

    flags = len(holistic.red_flags)
    if flags == 0:
        t.add(1.0, "no red flags")
    elif flags >= 2:
        t.add(-1.5, f"{flags} red flags")
    return t


_ARROGANCE = re.compile(r"arrogan|superiority|dismissive", re.IGNORECASE)


def _ethics(climax: StageResult, conclusion: StageResult, holistic: HolisticUnderstanding) -> _Tally:
    t = _Tally(6)
    moments = len(climax.items("vulnerability_moments"))
    if moments >= 2:
        t.add(2.0, f"{moments} vulnerability moments")
    elif moments == 1:
        t.add(1.0, "one vulnerability moment")
    else:
        t.add(-1.0, "no vulnerability")

    if conclusion.flag("nuanced_thinking"):
        t.add(1.0, "nuanced thinking")

    conflict = climax.text("conflict_type")
    if conflict == "ethical":
        t.add(0.5, "ethical conflict")
    elif conflict == "internal":
        t.add(0.3, "internal conflict")

    if any(_ARROGANCE.search(f) for f in holistic.red_flags):
        t.add(-2.0, "arrogance red flag")
    return t


def dimension_weights(profile: EssayTypeProfile) -> Dict[str, float]:
    total = sum(adj for _, adj in profile.adjustments)
    if total <= 0:
        raise StructuralError(f"Profile {profile.id} has no positive adjustments")
    return {key: adj / total for key, adj in profile.adjustments}


def validate_dimensions(dimensions: List[DimensionScore]) -> None:
    """Raise StructuralError unless all twelve dimensions are present, in range and weighted to 1.0."""
    keys = [d.key for d in dimensions]
    if len(dimensions) != 12 or set(keys) != set(DIMENSION_KEYS):
        raise StructuralError(f"Expected 12 dimensions, got {len(dimensions)}: {keys}")
    for d in dimensions:
        if not 0.0 <= d.score <= 10.0:
            raise StructuralError(f"Dimension {d.key} score out of range: {d.score}")
    total = sum(d.weight for d in dimensions)
    if abs(total - 1.0) > 1e-6:
        raise StructuralError(f"Dimension weights sum to {total}, expected 1.0")


def score_dimensions(
    holistic: HolisticUnderstanding,
    stage2: Dict[str, StageResult],
    craft: CraftAnalysis,
    profile: EssayTypeProfile,
) -> List[DimensionScore]:
    missing = [name for name in ("opening", "body", "climax", "conclusion", "character", "stakes") if name not in stage2]
    if missing:
        raise StructuralError(f"Dimension scoring needs all six section analyses; missing {', '.join(missing)}")
    opening, body, climax = stage2["opening"], stage2["body"], stage2["climax"]
    conclusion, character, stakes = stage2["conclusion"], stage2["character"], stage2["stakes"]

    tallies: Dict[str, _Tally] = {
        "opening_power_scene_entry": _opening(opening),
        "narrative_arc_stakes_turn": _arc(holistic, climax, body, stakes),
        "character_interiority_vulnerability": _interiority(character, climax),
        "show_dont_tell_craft": _show_tell(body),
        "reflection_meaning_making": _reflection(conclusion),
        "dialogue_action_texture": _dialogue_action(character),
        "originality_specificity_voice": _originality(craft.style, character),
        "structure_pacing_coherence": _structure(holistic, body),
        "sentence_level_craft": _sentence_craft(craft),
        "context_constraints_disclosure": _context(body, opening, stakes),
        "school_program_fit": _school_fit(holistic, conclusion),
        "ethical_awareness_humility": _ethics(climax, conclusion, holistic),
    }
    weights = dimension_weights(profile)

    dimensions = []
    for key in DIMENSION_KEYS:
        tally = tallies[key]
        score = tally.final()
        dimensions.append(DimensionScore(
            key=key,
            name=DIMENSION_NAMES[key],
            score=score,
            weight=weights[key],
            contribution=score * weights[key],
            evidence=tally.evidence,
            justification=tally.notes,
        ))
    validate_dimensions(dimensions)
    return dimensions


def aggregate_score(dimensions: List[DimensionScore]) -> float:
    """Weighted mean of the dimension scores on a 0-100 scale."""
    validate_dimensions(dimensions)
    return round(sum(d.score * d.weight for d in dimensions) * 10, 1)


def impression_label(aggregate: float) -> str:
    if aggregate >= 90:
        return "exceptional"
    if aggregate >= 80:
        return "compelling"
    if aggregate >= 70:
        return "competent"
    if aggregate >= 60:
        return "developing"
    return "weak"


def _has_word(text: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", text) is not None


def infer_essay_type(text: str, prompt_text: Optional[str], library: Library) -> str:
    """Prompt keywords decide first; otherwise the word count does."""
    if prompt_text:
        prompt = prompt_text.lower()
        for profile in library.profiles:
            keyword_hit = any(_has_word(prompt, k) for k in profile.keywords)
            if keyword_hit and profile.requires_any:
                keyword_hit = any(_has_word(prompt, k) for k in profile.requires_any)
            pair_hit = any(all(_has_word(prompt, w) for w in pair) for pair in profile.keyword_pairs)
            if keyword_hit or pair_hit:
                return profile.id

    word_count = len(text.split())
    if word_count >= 600:
        return "personal_statement"
    if word_count <= 360:
        return "uc_piq"
    return DEFAULT_ESSAY_TYPE


def top_dimensions(dimensions: List[DimensionScore], n: int = 3, reverse: bool = True) -> List[Tuple[str, float]]:
    ranked = sorted(dimensions, key=lambda d: d.score, reverse=reverse)
    return [(d.key, d.score) for d in ranked[:n]]
