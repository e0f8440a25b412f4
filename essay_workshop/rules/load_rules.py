from __future__ import annotations
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional, Pattern, Tuple
import logging
import os
import re

import yaml

from essay_workshop.errors import LibraryError
from essay_workshop.ir import DIMENSION_KEYS

logger = logging.getLogger(__name__)

RULES_DIR = os.path.dirname(os.path.abspath(__file__))
SEVERITIES = ("critical", "major", "minor")


@dataclass(frozen=True)
class NarrativePattern:
    id: str
    name: str
    category: str
    severity: str
    explanation: str
    why_it_matters: str = ""
    quick_fix: str = ""
    deep_fix: str = ""
    regex: Optional[Pattern[str]] = None
    scope: str = "essay"             # essay|first_sentence
    markers: Optional[Pattern[str]] = None
    min_count: Optional[int] = None
    max_count: Optional[int] = None
    detector: Optional[str] = None


@dataclass(frozen=True)
class Strategy:
    id: str
    name: str
    instruction: str
    example_concept: str
    rubric_affinity: Tuple[str, ...]


@dataclass(frozen=True)
class SurgicalExample:
    category: str
    original: str
    problem: str
    fix: str
    rationale: str
    strategy: str
    voice_types: Tuple[str, ...]
    symptom_tags: Tuple[str, ...]


@dataclass(frozen=True)
class EssayTypeProfile:
    id: str
    typical_word_count: int
    primary_goal: str
    must_have: Tuple[str, ...]
    adjustments: Tuple[Tuple[str, float], ...]   # ordered as DIMENSION_KEYS
    keywords: Tuple[str, ...] = ()
    requires_any: Tuple[str, ...] = ()
    keyword_pairs: Tuple[Tuple[str, ...], ...] = ()

    def adjustment(self, key: str) -> float:
        return dict(self.adjustments)[key]


@dataclass(frozen=True)
class Library:
    """Read-only pattern, strategy, example and profile tables."""
    patterns: Tuple[NarrativePattern, ...]
    strategies: Tuple[Strategy, ...]
    examples: Tuple[SurgicalExample, ...]
    profiles: Tuple[EssayTypeProfile, ...]

    def profile(self, essay_type: str) -> EssayTypeProfile:
        for p in self.profiles:
            if p.id == essay_type:
                return p
        raise LibraryError(f"Unknown essay type: {essay_type}")

    def strategy(self, strategy_id: str) -> Strategy:
        for s in self.strategies:
            if s.id == strategy_id:
                return s
        raise LibraryError(f"Unknown strategy: {strategy_id}")


def load_rule_pack(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise LibraryError(f"Cannot load rule pack {path}: {e}")


def _compile(raw: Optional[str], where: str) -> Optional[Pattern[str]]:
    if raw is None:
        return None
    try:
        return re.compile(raw, re.IGNORECASE)
    except re.error as e:
        raise LibraryError(f"{where}: bad regex: {e}")


def load_patterns(rule_pack: Dict[str, Any]) -> List[NarrativePattern]:
    patterns: List[NarrativePattern] = []
    for p in rule_pack.get("patterns", []) or []:
        try:
            pid = p["id"]
            severity = str(p.get("severity", "minor"))
            if severity not in SEVERITIES:
                raise LibraryError(f"{pid}: unknown severity {severity}")
            if p["category"] not in DIMENSION_KEYS:
                raise LibraryError(f"{pid}: unknown category {p['category']}")
            if not any(k in p for k in ("regex", "markers", "detector")):
                raise LibraryError(f"{pid}: needs one of regex, markers or detector")
            patterns.append(NarrativePattern(
                id=pid,
                name=p.get("name", pid),
                category=p["category"],
                severity=severity,
                explanation=p.get("explanation", ""),
                why_it_matters=p.get("why_it_matters", ""),
                quick_fix=p.get("quick_fix", ""),
                deep_fix=p.get("deep_fix", ""),
                regex=_compile(p.get("regex"), pid),
                scope=str(p.get("scope", "essay")),
                markers=_compile(p.get("markers"), pid),
                min_count=p.get("min_count"),
                max_count=p.get("max_count"),
                detector=p.get("detector"),
            ))
        except KeyError as e:
            raise LibraryError(f"Pattern missing field {e}: {p}")
    return patterns


def load_strategies(rule_pack: Dict[str, Any]) -> List[Strategy]:
    strategies: List[Strategy] = []
    for s in rule_pack.get("strategies", []) or []:
        try:
            strategies.append(Strategy(
                id=s["id"],
                name=s["name"],
                instruction=s["instruction"],
                example_concept=s.get("example_concept", ""),
                rubric_affinity=tuple(s.get("rubric_affinity", []) or []),
            ))
        except KeyError as e:
            raise LibraryError(f"Strategy missing field {e}: {s}")
    return strategies


def load_examples(rule_pack: Dict[str, Any]) -> List[SurgicalExample]:
    examples: List[SurgicalExample] = []
    for e in rule_pack.get("examples", []) or []:
        try:
            examples.append(SurgicalExample(
                category=e["category"],
                original=e["original"],
                problem=e.get("problem", ""),
                fix=e["fix"],
                rationale=e.get("rationale", ""),
                strategy=e.get("strategy", ""),
                voice_types=tuple(str(v).lower() for v in e.get("voice_types", []) or []),
                symptom_tags=tuple(e.get("symptom_tags", []) or []),
            ))
        except KeyError as err:
            raise LibraryError(f"Example missing field {err}: {e}")
    return examples


def load_profiles(rule_pack: Dict[str, Any]) -> List[EssayTypeProfile]:
    profiles: List[EssayTypeProfile] = []
    for p in rule_pack.get("essay_types", []) or []:
        pid = p.get("id", "?")
        adjustments = p.get("adjustments") or {}
        missing = [k for k in DIMENSION_KEYS if k not in adjustments]
        if missing:
            raise LibraryError(f"Profile {pid} missing adjustments: {', '.join(missing)}")
        negative = [k for k in DIMENSION_KEYS if float(adjustments[k]) < 0]
        if negative:
            raise LibraryError(f"Profile {pid} has negative adjustments: {', '.join(negative)}")
        if sum(float(adjustments[k]) for k in DIMENSION_KEYS) <= 0:
            raise LibraryError(f"Profile {pid} has no positive adjustments")
        profiles.append(EssayTypeProfile(
            id=pid,
            typical_word_count=int(p.get("typical_word_count", 500)),
            primary_goal=p.get("primary_goal", ""),
            must_have=tuple(p.get("must_have", []) or []),
            adjustments=tuple((k, float(adjustments[k])) for k in DIMENSION_KEYS),
            keywords=tuple(p.get("keywords", []) or []),
            requires_any=tuple(p.get("requires_any", []) or []),
            keyword_pairs=tuple(tuple(pair) for pair in p.get("keyword_pairs", []) or []),
        ))
    return profiles


def load_library(rules_dir: Optional[str] = None) -> Library:
    """Load every rule pack under rules_dir (defaults to the packaged rules)."""
    base = rules_dir or RULES_DIR
    library = Library(
        patterns=tuple(load_patterns(load_rule_pack(os.path.join(base, "narrative_patterns.yml")))),
        strategies=tuple(load_strategies(load_rule_pack(os.path.join(base, "strategies.yml")))),
        examples=tuple(load_examples(load_rule_pack(os.path.join(base, "surgical_examples.yml")))),
        profiles=tuple(load_profiles(load_rule_pack(os.path.join(base, "essay_types.yml")))),
    )
    if not library.profiles:
        raise LibraryError(f"No essay-type profiles found in {base}")
    logger.info(
        f"Loaded library: {len(library.patterns)} patterns, {len(library.strategies)} strategies, "
        f"{len(library.examples)} examples, {len(library.profiles)} profiles"
    )
    return library


@lru_cache(maxsize=1)
def default_library() -> Library:
    """Process-wide packaged library, loaded once."""
    return load_library()
