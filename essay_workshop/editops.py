from __future__ import annotations
from dataclasses import dataclass, field, asdict, replace
from typing import Any, Dict, List, Literal, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from essay_workshop.validation.refiner import RefinementResult
    from essay_workshop.validation.retry import RetryAttempt

LocatorSeverity = Literal["critical", "warning", "optimization"]
SuggestionType = Literal["polished_original", "voice_amplifier", "divergent_strategy"]

SUGGESTION_TYPES: Tuple[str, ...] = ("polished_original", "voice_amplifier", "divergent_strategy")
SYMPTOMS: Tuple[str, ...] = (
    "abstract_language",
    "passive_agency",
    "cliche_metaphor",
    "telling_not_showing",
    "generic_pacing",
    "weak_verb",
)
ISSUE_TO_LOCATOR_SEVERITY = {"critical": "critical", "major": "warning", "minor": "optimization"}
SEVERITY_RANK = {"critical": 0, "warning": 1, "optimization": 2}

# Workshop item lifecycle
DIAGNOSED = "diagnosed"
CONTEXT_ASSEMBLED = "context_assembled"
GENERATED = "generated"
VALIDATED = "validated"
RETRIED = "retried"
REFINED = "refined"
FINAL = "final"


@dataclass(frozen=True)
class Locator:
    quote: str                   # always text[start:end]
    start: int
    end: int
    category: str                # dimension key
    severity: LocatorSeverity
    issue_id: Optional[str] = None
    problem: str = ""
    why_it_matters: str = ""


def make_locator(
    text: str,
    start: int,
    end: int,
    category: str,
    severity: str,
    issue_id: Optional[str] = None,
    problem: str = "",
    why_it_matters: str = "",
) -> Locator:
    """Build a Locator whose quote is read back from text; rejects spans outside it."""
    if not 0 <= start < end <= len(text):
        raise ValueError(f"Span [{start}, {end}) outside text of length {len(text)}")
    if severity not in SEVERITY_RANK:
        raise ValueError(f"Unknown locator severity: {severity}")
    return Locator(
        quote=text[start:end],
        start=start,
        end=end,
        category=category,
        severity=severity,  # type: ignore[arg-type]
        issue_id=issue_id,
        problem=problem,
        why_it_matters=why_it_matters,
    )


@dataclass(frozen=True)
class MissingElements:
    sensory_details: Tuple[str, ...] = ()
    concrete_objects: Tuple[str, ...] = ()
    micro_moment: str = ""
    emotional_truth: str = ""

    def any(self) -> bool:
        return bool(self.sensory_details or self.concrete_objects or self.micro_moment or self.emotional_truth)


@dataclass(frozen=True)
class SymptomDiagnosis:
    primary_symptom: str
    secondary_symptoms: Tuple[str, ...] = ()
    missing_elements: MissingElements = field(default_factory=MissingElements)
    diagnosis: str = ""
    fallback: bool = False       # True when the documented default was substituted


def fallback_diagnosis() -> SymptomDiagnosis:
    return SymptomDiagnosis(
        primary_symptom="abstract_language",
        diagnosis="Diagnosis unavailable; treating the segment as abstract language.",
        fallback=True,
    )


@dataclass(frozen=True)
class VoiceProfile:
    tone: str                    # holistic primary voice
    cadence: str                 # punchy|measured|flowing
    avg_sentence_length: float
    markers: Tuple[str, ...] = ()
    sample_sentences: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Suggestion:
    text: str
    rationale: str
    type: SuggestionType
    strategy_used: str = ""
    score_impact: Optional[float] = None   # estimated dimension points gained
    score: float = 0.0                     # validated quality score, 0-100


def revise_suggestion(suggestion: Suggestion, text: str, rationale: str, score: float) -> Suggestion:
    """Replace text, rationale and score together; a suggestion is never half-updated."""
    return replace(suggestion, text=text, rationale=rationale, score=score)


@dataclass(frozen=True)
class WorkshopItem:
    id: str
    locator: Locator
    diagnosis: SymptomDiagnosis
    suggestions: Tuple[Suggestion, ...]          # ranked by validated score, best first
    complexity_tier: str = ""
    states: Tuple[str, ...] = ()                 # lifecycle trail, ends with "final"
    retries: Tuple["RetryAttempt", ...] = ()
    refinements: Tuple["RefinementResult", ...] = ()

    @property
    def best(self) -> Suggestion:
        return self.suggestions[0]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def rank_suggestions(suggestions: List[Suggestion]) -> Tuple[Suggestion, ...]:
    order = {t: i for i, t in enumerate(SUGGESTION_TYPES)}
    return tuple(sorted(suggestions, key=lambda s: (-s.score, order.get(s.type, len(order)))))
