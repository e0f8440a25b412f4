"""
Surgical editing of located issues.

Main entry point: edit_item()

Steps:
1. Locate - pin each issue's quoted evidence to a character span
2. Diagnose - classify the defect and the elements a fix must supply
3. Assemble - build the case file (voice, theme, examples, strategies)
4. Generate, validate, retry and refine - three ranked variants per item
"""
from essay_workshop.surgical.context import (
    ContextBundle,
    assemble_context,
    build_voice_profile,
    complexity_tier,
    select_examples,
    select_strategies,
)
from essay_workshop.surgical.diagnoser import diagnose
from essay_workshop.surgical.editor import edit_item, parse_suggestions
from essay_workshop.surgical.locator import (
    find_span,
    locate,
    locators_from_dimensions,
    prioritize_locators,
)

__all__ = [
    # Context
    "ContextBundle",
    "assemble_context",
    "build_voice_profile",
    "complexity_tier",
    "select_examples",
    "select_strategies",
    # Diagnosis
    "diagnose",
    # Editor
    "edit_item",
    "parse_suggestions",
    # Locator
    "find_span",
    "locate",
    "locators_from_dimensions",
    "prioritize_locators",
]
