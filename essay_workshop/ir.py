"""Analysis records produced by one pipeline run."""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Literal

from essay_workshop.analysis.grammar import GrammarMetrics
from essay_workshop.analysis.voice import VoiceAnalysis

Severity = Literal["critical", "major", "minor"]
Section = Literal["opening", "body", "climax", "conclusion"]

DIMENSION_KEYS = (
    "opening_power_scene_entry",
    "narrative_arc_stakes_turn",
    "character_interiority_vulnerability",
    "show_dont_tell_craft",
    "reflection_meaning_making",
    "dialogue_action_texture",
    "originality_specificity_voice",
    "structure_pacing_coherence",
    "sentence_level_craft",
    "context_constraints_disclosure",
    "school_program_fit",
    "ethical_awareness_humility",
)

DIMENSION_NAMES = {
    "opening_power_scene_entry": "Opening Power & Scene Entry",
    "narrative_arc_stakes_turn": "Narrative Arc, Stakes & Turn",
    "character_interiority_vulnerability": "Character Interiority & Vulnerability",
    "show_dont_tell_craft": "Show-Don't-Tell Craft",
    "reflection_meaning_making": "Reflection & Meaning-Making",
    "dialogue_action_texture": "Dialogue & Action Texture",
    "originality_specificity_voice": "Originality, Specificity & Voice",
    "structure_pacing_coherence": "Structure, Pacing & Coherence",
    "sentence_level_craft": "Sentence-Level Craft",
    "context_constraints_disclosure": "Context & Constraints Disclosure",
    "school_program_fit": "School & Program Fit",
    "ethical_awareness_humility": "Ethical Awareness & Humility",
}


@dataclass(frozen=True)
class AnalysisInput:
    text: str
    essay_type: Optional[str] = None
    prompt_text: Optional[str] = None
    max_words: Optional[int] = None

    @property
    def word_count(self) -> int:
        return len(self.text.split())


@dataclass(frozen=True)
class KeyMoment:
    type: str          # hook|turning_point|climax|realization|resolution
    sentence_range: str
    description: str
    effectiveness: float


@dataclass(frozen=True)
class HolisticUnderstanding:
    """Stage 1 output; read-only for every later stage."""
    central_theme: str
    narrative_thread: str
    primary_voice: str
    voice_consistency: float
    essay_structure: str
    number_of_distinct_sections: int
    transition_quality: float
    key_moments: List[KeyMoment]
    identified_themes: List[str]
    emotional_arc: str
    universal_insight: str
    overall_coherence: float
    authenticity_signals: List[str]
    red_flags: List[str]
    first_impression: str
    estimated_strength_tier: str
    tokens_used: int = 0
    missing_fields: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.missing_fields)


@dataclass
class StageResult:
    """
    Output of one generative analyzer.

    Values are normalized against the analyzer's field schema; any field the
    service omitted is listed in missing_fields and marks the result degraded.
    """
    analyzer: str
    data: Dict[str, Any]
    tokens_used: int = 0
    missing_fields: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.missing_fields)

    def num(self, key: str) -> float:
        value = self.data.get(key)
        return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0.0

    def flag(self, key: str) -> bool:
        return bool(self.data.get(key))

    def text(self, key: str) -> str:
        value = self.data.get(key)
        return value if isinstance(value, str) else ""

    def items(self, key: str) -> List[Any]:
        value = self.data.get(key)
        return list(value) if isinstance(value, list) else []

    def sub(self, key: str) -> Dict[str, Any]:
        value = self.data.get(key)
        return value if isinstance(value, dict) else {}


@dataclass
class CraftAnalysis:
    """Stage 3: deterministic grammar/voice metrics plus the generative style pass."""
    grammar: GrammarMetrics
    voice: VoiceAnalysis
    style: StageResult


@dataclass
class DimensionScore:
    key: str
    name: str
    score: float                   # raw, [0, 10]
    weight: float = 0.0            # normalized profile weight
    contribution: float = 0.0      # score * weight
    evidence: List[str] = field(default_factory=list)
    justification: List[str] = field(default_factory=list)


@dataclass
class Strength:
    dimension: str
    title: str
    description: str
    evidence: List[str] = field(default_factory=list)


@dataclass
class Gap:
    dimension: str
    title: str
    description: str
    fix_complexity: str = "moderate"   # easy|moderate|challenging
    estimated_gain: str = ""


@dataclass
class SynthesizedInsights:
    essay_type: str
    aggregate_score: float             # [0, 100], computed from DimensionScores
    impression_label: str
    strengths: List[Strength] = field(default_factory=list)
    gaps: List[Gap] = field(default_factory=list)
    opportunities: List[str] = field(default_factory=list)
    percentile_estimate: str = ""
    officer_perspective: Dict[str, Any] = field(default_factory=dict)
    roadmap: List[str] = field(default_factory=list)
    key_insights: List[str] = field(default_factory=list)
    tokens_used: int = 0


@dataclass
class Issue:
    id: str
    category: str          # dimension key
    severity: Severity
    quote: str
    explanation: str
    suggestion: str = ""
    source: str = ""       # analyzer or detector that raised it
    impact: str = ""       # e.g. "-1 to -2 points"


@dataclass
class SentenceInsight:
    index: int
    sentence: str
    section: Section
    issues: List[Issue]
    priority: float
    dimension: str
    impact: str


@dataclass
class PipelineStats:
    """Statistics from one analysis run."""
    llm_calls: int = 0
    tokens_used: int = 0
    degraded_analyzers: List[str] = field(default_factory=list)
    stage_times_s: Dict[str, float] = field(default_factory=dict)
    total_time_s: float = 0.0


@dataclass
class AnalysisResult:
    input: AnalysisInput
    essay_type: str
    holistic: HolisticUnderstanding
    stage2: Dict[str, StageResult]
    craft: CraftAnalysis
    dimensions: List[DimensionScore]
    insights: SynthesizedInsights
    issues: List[Issue]
    sentence_insights: List[SentenceInsight]
    stats: PipelineStats

    def dimension(self, key: str) -> DimensionScore:
        for d in self.dimensions:
            if d.key == key:
                return d
        raise KeyError(key)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
