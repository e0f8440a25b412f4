"""
Output Validator

Quality gate for surgical suggestions. Fast deterministic pre-checks run
first; a critical finding short-circuits the generative nuance check so
obviously bad output never costs a service call.

Score:
    base  = nuance quality score (or 75 when the nuance check did not run)
    score = clamp(base - 25*critical - 10*warning - 3*suggestion, 0, base)
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple
import logging
import re

from essay_workshop.config import ValidationConfig
from essay_workshop.llm.client import LLMSession
from essay_workshop.llm.parsing import Schema, normalize
from essay_workshop.llm.prompts import VALIDATION_SYSTEM_PROMPT, VALIDATION_USER_TEMPLATE

logger = logging.getLogger(__name__)

FailureSeverity = Literal["critical", "warning", "suggestion"]
FAILURE_SEVERITIES = ("critical", "warning", "suggestion")
PENALTY = {"critical": 25, "warning": 10, "suggestion": 3}
BASE_SCORE = 75.0

BANNED_TERMS = (
    ("tapestry", re.compile(r"\btapestr(?:y|ies)\b", re.I)),
    ("realm", re.compile(r"\brealms?\b", re.I)),
    ("testament", re.compile(r"\btestament\b", re.I)),
    ("showcase", re.compile(r"\bshowcas(?:e|es|ed|ing)\b", re.I)),
    ("delve", re.compile(r"\bdelv(?:e|es|ed|ing)\b", re.I)),
    ("underscore", re.compile(r"\bunderscor(?:e|es|ed|ing)\b", re.I)),
    ("gave 110%", re.compile(r"\bgave\s+110\s*%", re.I)),
)

AI_PHRASES = (
    re.compile(r"\bpivotal\s+moment\b", re.I),
    re.compile(r"\bnavigat(?:e|ed|ing)\s+the\s+complexities\b", re.I),
    re.compile(r"\bin\s+today's\s+(?:fast-paced\s+)?world\b", re.I),
    re.compile(r"\bever-evolving\b", re.I),
    re.compile(r"\bfoster(?:ed|ing)?\s+a\s+sense\s+of\b", re.I),
    re.compile(r"\bembark(?:ed)?\s+on\s+a\s+journey\b", re.I),
)

PASSIVE_PATTERNS = (
    re.compile(r"\bit\s+was\s+\w+ed\b", re.I),
    re.compile(r"\b(?:was|were)\s+\w+ed\b", re.I),
    re.compile(r"\b(?:was|were)\s+\w+ing\b", re.I),
)

SUMMARY_PATTERNS = (
    re.compile(r"\bthis\s+(?:taught|showed|helped)\s+me\b", re.I),
    re.compile(r"\bI\s+learned\s+that\b", re.I),
    re.compile(r"\bfrom\s+this,?\s+I\s+(?:realized|learned|understood)\b", re.I),
    re.compile(r"\bthis\s+experience\s+(?:taught|showed)\b", re.I),
)

EDITOR_VOICE = re.compile(r"\bI\s+(?:changed|replaced|added)\b", re.I)

MIN_RATIONALE_WORDS = 20


@dataclass(frozen=True)
class ValidationFailure:
    rule_id: str
    severity: FailureSeverity
    message: str
    fix: str = ""
    evidence: str = ""


@dataclass(frozen=True)
class ValidationContext:
    """What the validator needs to know about the segment being repaired."""
    original: str
    category: str
    voice_tone: str = ""
    voice_markers: Tuple[str, ...] = ()
    suggestion_type: str = "polished_original"
    attempt: int = 1


@dataclass
class ValidationResult:
    passed: bool
    score: float
    failures: List[ValidationFailure] = field(default_factory=list)
    nuance_checked: bool = False
    checks: Dict[str, Any] = field(default_factory=dict)

    def count(self, severity: str) -> int:
        return sum(1 for f in self.failures if f.severity == severity)

    @property
    def critical_count(self) -> int:
        return self.count("critical")

    @property
    def warning_count(self) -> int:
        return self.count("warning")


NUANCE_SCHEMA: Schema = {
    "quality_score": ("num", BASE_SCORE),
    "sounds_authentic": ("bool", True),
    "adds_specificity": ("bool", True),
    "rationale_teaches": ("bool", True),
    "issues": ("list", []),
}


def deterministic_checks(text: str, rationale: str) -> List[ValidationFailure]:
    """Pattern checks that need no service call."""
    failures: List[ValidationFailure] = []

    for term, pattern in BANNED_TERMS:
        m = pattern.search(text)
        if m:
            failures.append(ValidationFailure(
                rule_id="banned-term",
                severity="critical",
                message=f'Uses the banned term "{term}", which reads as generated text',
                fix="Replace it with a plain word the writer would actually use.",
                evidence=m.group(0),
            ))

    for pattern in AI_PHRASES:
        m = pattern.search(text)
        if m:
            failures.append(ValidationFailure(
                rule_id="ai-phrase",
                severity="critical",
                message=f'"{m.group(0)}" is a stock phrase from generated essays',
                fix="Name the specific moment instead of labelling it.",
                evidence=m.group(0),
            ))

    for pattern in PASSIVE_PATTERNS:
        m = pattern.search(text)
        if m:
            failures.append(ValidationFailure(
                rule_id="passive-voice",
                severity="warning",
                message="Passive construction hides who acted",
                fix="Make the writer the subject doing the action.",
                evidence=m.group(0),
            ))
            break

    for pattern in SUMMARY_PATTERNS:
        m = pattern.search(text)
        if m:
            failures.append(ValidationFailure(
                rule_id="summary-language",
                severity="warning",
                message="Summary language tells the lesson instead of showing it",
                fix="Show the changed behavior or the specific moment instead.",
                evidence=m.group(0),
            ))
            break

    m = EDITOR_VOICE.search(rationale)
    if m:
        failures.append(ValidationFailure(
            rule_id="editor-voice-rationale",
            severity="warning",
            message=f'Rationale uses editor voice ("{m.group(0)}") instead of teaching the principle',
            fix='Explain why the technique works, e.g. "By doing X, the reader sees Y".',
            evidence=rationale[:100],
        ))

    word_count = len(rationale.split())
    if word_count < MIN_RATIONALE_WORDS:
        failures.append(ValidationFailure(
            rule_id="short-rationale",
            severity="suggestion",
            message=f"Rationale is {word_count} words; it needs at least {MIN_RATIONALE_WORDS} to teach anything",
            fix="Explain the writing principle and its effect on the reader.",
            evidence=rationale,
        ))

    return failures


def score_failures(failures: List[ValidationFailure], base: Optional[float] = None) -> float:
    base = BASE_SCORE if base is None else max(0.0, min(100.0, float(base)))
    penalized = base - sum(PENALTY[f.severity] for f in failures)
    return round(max(0.0, min(penalized, base)), 1)


def build_result(
    failures: List[ValidationFailure],
    config: ValidationConfig,
    quality_score: Optional[float] = None,
    nuance_checked: bool = False,
    checks: Optional[Dict[str, Any]] = None,
) -> ValidationResult:
    score = score_failures(failures, quality_score)
    critical = sum(1 for f in failures if f.severity == "critical")
    warning = sum(1 for f in failures if f.severity == "warning")
    passed = (
        (critical == 0 or not config.fail_on_critical)
        and (warning == 0 or not config.fail_on_warning)
        and score >= config.min_quality_score
    )
    return ValidationResult(
        passed=passed,
        score=score,
        failures=list(failures),
        nuance_checked=nuance_checked,
        checks=dict(checks or {}),
    )


def _nuance_failures(raw_issues: List[Any]) -> List[ValidationFailure]:
    failures = []
    for issue in raw_issues:
        if not isinstance(issue, dict):
            continue
        severity = str(issue.get("severity", "warning")).lower()
        failures.append(ValidationFailure(
            rule_id="nuance",
            severity=severity if severity in FAILURE_SEVERITIES else "warning",  # type: ignore[arg-type]
            message=str(issue.get("message", "Quality issue")),
            fix=str(issue.get("fix", "")),
            evidence=str(issue.get("evidence", "")),
        ))
    return failures


class OutputValidator:
    """
    Validates one suggestion against deterministic rules and, optionally,
    a generative nuance check (authenticity, specificity, teaching quality).

    A failed nuance call is not papered over with a default score: the
    LLMError propagates and the caller decides what to drop.
    """

    def __init__(self, config: ValidationConfig, session: Optional[LLMSession] = None):
        self.config = config
        self.session = session

    async def validate(self, text: str, rationale: str, context: ValidationContext) -> ValidationResult:
        failures = deterministic_checks(text, rationale)
        if self.config.fail_on_critical and any(f.severity == "critical" for f in failures):
            logger.debug(f"Deterministic critical failure, skipping nuance check: {failures[0].rule_id}")
            return build_result(failures, self.config)

        if not self.config.use_llm_check or self.session is None:
            return build_result(failures, self.config)

        prompt = VALIDATION_USER_TEMPLATE.format(
            category=context.category,
            voice_tone=context.voice_tone or "unknown",
            voice_markers=", ".join(context.voice_markers) or "none noted",
            suggestion_type=context.suggestion_type,
            original=context.original,
            suggestion=text,
            rationale=rationale,
        )
        response = await self.session.complete_json(
            VALIDATION_SYSTEM_PROMPT, prompt, temperature=0.1, max_tokens=800, label="validation.nuance",
        )
        values, missing = normalize(response.data or {}, NUANCE_SCHEMA)
        if missing:
            logger.warning(f"validation.nuance: missing {', '.join(missing)}")
        failures.extend(_nuance_failures(values["issues"]))
        checks = {k: values[k] for k in ("sounds_authentic", "adds_specificity", "rationale_teaches")}
        quality = None if "quality_score" in missing else values["quality_score"]
        return build_result(failures, self.config, quality, nuance_checked=True, checks=checks)
