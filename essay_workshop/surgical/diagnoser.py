"""
Symptom Diagnoser

Classifies the defect in one located segment before anything is generated,
so the editor knows which symptom to treat and which elements to add.

This is the one place a documented default is substituted: if the call
fails or the response is unusable, the diagnosis falls back to
abstract_language with no missing elements and is marked fallback=True.
"""
from __future__ import annotations
import logging

from essay_workshop.editops import (
    SYMPTOMS,
    Locator,
    MissingElements,
    SymptomDiagnosis,
    fallback_diagnosis,
)
from essay_workshop.errors import LLMError
from essay_workshop.llm.client import LLMSession
from essay_workshop.llm.parsing import Schema, normalize
from essay_workshop.llm.prompts import DIAGNOSIS_SYSTEM_PROMPT, DIAGNOSIS_USER_TEMPLATE

logger = logging.getLogger(__name__)

DIAGNOSIS_CONTEXT_CHARS = 100

DIAGNOSIS_SCHEMA: Schema = {
    "primary_symptom": ("str", ""),
    "secondary_symptoms": ("list", []),
    "missing_elements": ("dict", {}),
    "diagnosis": ("str", ""),
}


def _strings(value) -> tuple:
    if not isinstance(value, list):
        return ()
    return tuple(str(v).strip() for v in value if isinstance(v, str) and v.strip())


def parse_missing_elements(raw: dict) -> MissingElements:
    micro = raw.get("micro_moment")
    truth = raw.get("emotional_truth")
    return MissingElements(
        sensory_details=_strings(raw.get("sensory_details")),
        concrete_objects=_strings(raw.get("concrete_objects")),
        micro_moment=micro.strip() if isinstance(micro, str) else "",
        emotional_truth=truth.strip() if isinstance(truth, str) else "",
    )


async def diagnose(locator: Locator, text: str, session: LLMSession) -> SymptomDiagnosis:
    start = max(0, locator.start - DIAGNOSIS_CONTEXT_CHARS)
    context = text[start:locator.end + DIAGNOSIS_CONTEXT_CHARS]
    prompt = DIAGNOSIS_USER_TEMPLATE.format(
        quote=locator.quote,
        category=locator.category,
        issue=locator.problem or "(not specified)",
        context=context,
    )
    where = locator.issue_id or repr(locator.quote[:30])
    try:
        response = await session.complete_json(
            DIAGNOSIS_SYSTEM_PROMPT, prompt, temperature=0.1, max_tokens=400, label="surgical.diagnosis",
        )
    except LLMError as e:
        logger.warning(f"Diagnosis failed for {where}, using fallback: {e}")
        return fallback_diagnosis()

    values, missing = normalize(response.data or {}, DIAGNOSIS_SCHEMA)
    symptom = values["primary_symptom"].strip().lower()
    if symptom not in SYMPTOMS:
        logger.warning(f"Unusable diagnosis for {where} (symptom {symptom!r}), using fallback")
        return fallback_diagnosis()
    if missing:
        logger.debug(f"surgical.diagnosis: missing {', '.join(missing)}")

    return SymptomDiagnosis(
        primary_symptom=symptom,
        secondary_symptoms=tuple(
            s for s in (str(x).strip().lower() for x in values["secondary_symptoms"])
            if s in SYMPTOMS and s != symptom
        ),
        missing_elements=parse_missing_elements(values["missing_elements"]),
        diagnosis=values["diagnosis"].strip(),
    )
