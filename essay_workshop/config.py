"""
Workshop configuration.

Each concern has its own dataclass; WorkshopConfig aggregates them.
Nested updates go through the with_* builders, which return new values.
"""
from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional
import os

import yaml


@dataclass(frozen=True)
class LLMConfig:
    """Configuration for the generative service client."""
    api_key: Optional[str] = None
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    temperature: float = 0.3
    timeout_s: float = 90.0
    max_retries: int = 2           # Retries after the first attempt
    backoff_base_s: float = 1.0    # 1s, 2s, ...
    max_concurrent: int = 6


@dataclass(frozen=True)
class SectionBoundaries:
    """Relative sentence-position cutoffs used to label essay sections."""
    opening_end: float = 0.15
    climax_start: float = 0.40
    climax_end: float = 0.70
    conclusion_start: float = 0.80


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for the five-stage analysis pipeline."""
    # Forces a profile instead of inferring it from prompt and length
    essay_type: Optional[str] = None

    # Stage 2 policy: "fail_fast" aborts the run if any analyzer fails
    stage2_policy: str = "fail_fast"   # or "degraded"
    stage2_parallelism: int = 6

    # Stage 5
    max_sentence_insights: int = 10


@dataclass(frozen=True)
class ValidationConfig:
    """Configuration for the output validator."""
    fail_on_critical: bool = True
    fail_on_warning: bool = False
    min_quality_score: float = 65.0
    use_llm_check: bool = True
    max_retries: int = 3           # Attempts for generate -> validate -> critique


@dataclass(frozen=True)
class RefinementConfig:
    """Configuration for the multi-pass refiner."""
    target_score: float = 90.0
    max_passes: int = 3
    min_improvement_per_pass: float = 1.5
    use_adaptive_target: bool = True


@dataclass(frozen=True)
class EditorConfig:
    """Configuration for surgical suggestion generation."""
    max_items: int = 5
    refine: bool = True
    seed: Optional[int] = None
    context_chars: int = 200


@dataclass(frozen=True)
class WorkshopConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    sections: SectionBoundaries = field(default_factory=SectionBoundaries)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    refinement: RefinementConfig = field(default_factory=RefinementConfig)
    editor: EditorConfig = field(default_factory=EditorConfig)


def with_llm(config: WorkshopConfig, **changes: Any) -> WorkshopConfig:
    return replace(config, llm=replace(config.llm, **changes))


def with_sections(config: WorkshopConfig, **changes: Any) -> WorkshopConfig:
    return replace(config, sections=replace(config.sections, **changes))


def with_analysis(config: WorkshopConfig, **changes: Any) -> WorkshopConfig:
    return replace(config, analysis=replace(config.analysis, **changes))


def with_validation(config: WorkshopConfig, **changes: Any) -> WorkshopConfig:
    return replace(config, validation=replace(config.validation, **changes))


def with_refinement(config: WorkshopConfig, **changes: Any) -> WorkshopConfig:
    return replace(config, refinement=replace(config.refinement, **changes))


def with_editor(config: WorkshopConfig, **changes: Any) -> WorkshopConfig:
    return replace(config, editor=replace(config.editor, **changes))


_SECTIONS = {
    "llm": LLMConfig,
    "sections": SectionBoundaries,
    "analysis": AnalysisConfig,
    "validation": ValidationConfig,
    "refinement": RefinementConfig,
    "editor": EditorConfig,
}


def _build_section(cls, raw: Dict[str, Any]):
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    return cls(**raw)


def config_from_dict(data: Dict[str, Any]) -> WorkshopConfig:
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown config sections: {', '.join(sorted(unknown))}")
    kwargs = {}
    for name, cls in _SECTIONS.items():
        kwargs[name] = _build_section(cls, data.get(name) or {})
    return WorkshopConfig(**kwargs)


def load_config(path: Optional[str] = None) -> WorkshopConfig:
    """
    Load configuration from a YAML file (or defaults when path is None).

    The API key falls back to the ANTHROPIC_API_KEY environment variable.
    """
    data: Dict[str, Any] = {}
    if path:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    config = config_from_dict(data)
    if not config.llm.api_key and os.environ.get("ANTHROPIC_API_KEY"):
        config = with_llm(config, api_key=os.environ["ANTHROPIC_API_KEY"])
    return config
