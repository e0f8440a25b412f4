import json

import pytest

from essay_workshop.config import LLMConfig, WorkshopConfig, with_llm
from essay_workshop.llm.client import LLMResponse, LLMSession
from essay_workshop.rules.load_rules import default_library

ESSAY = (
    "The smell of burnt sugar still makes my hands shake. I was twelve when my grandmother's bakery "
    "caught fire, and I stood on the sidewalk holding a tray of cinnamon rolls nobody would ever buy.\n\n"
    "It was a plethora of emotions. I felt sad and angry and lost all at once. My grandmother did not cry. "
    "She handed me a broom and said, \"Ashes sweep the same as flour.\"\n\n"
    "For three months we rebuilt the kitchen with borrowed ovens and a loan from the church. "
    "I learned how to temper chocolate at 5 a.m. before school. I burned my wrist twice. I kept going.\n\n"
    "The night we reopened, a line wrapped around the block. Mrs. Patel ordered forty rolls and paid in "
    "quarters. I counted every one of them.\n\n"
    "This experience taught me that hard work always pays off. Now I want to study business so I can "
    "make a difference in the world."
)

HOLISTIC = {
    "central_theme": "Rebuilding a family bakery after a fire taught the writer persistence.",
    "narrative_thread": "From the fire, through the rebuild, to the reopening night.",
    "primary_voice": "reflective",
    "voice_consistency": 7,
    "essay_structure": "chronological",
    "number_of_distinct_sections": 4,
    "transition_quality": 6,
    "key_moments": [
        {"type": "hook", "sentence_range": "1", "description": "burnt sugar", "effectiveness": 8},
        {"type": "turning_point", "sentence_range": "5-6", "description": "the broom", "effectiveness": 7},
    ],
    "identified_themes": ["resilience", "family"],
    "emotional_arc": "shock to pride",
    "universal_insight": "Rebuilding is made of small repeated acts.",
    "overall_coherence": 7,
    "authenticity_signals": ["specific sensory opening"],
    "red_flags": ["generic conclusion"],
    "first_impression": "A vivid opening that fades into a generic ending.",
    "estimated_strength_tier": "competent",
}

STAGE2 = {
    "opening": {
        "hook_type": "sensory",
        "hook_strength": 8,
        "hook_quote": "The smell of burnt sugar still makes my hands shake.",
        "has_opening_scene": True,
        "scene_vividness": 7,
        "sensory_details": ["burnt sugar"],
        "has_temporal_anchor": True,
        "has_spatial_anchor": True,
        "context_clarity": 7,
        "reader_engagement": 8,
        "improvement_suggestions": [],
    },
    "body": {
        "narrative_progression": 6,
        "specificity_level": 6,
        "quantification_presence": 6,
        "agency_demonstration": 7,
        "concrete_examples": ["temper chocolate at 5 a.m."],
        "vague_statements": ["I felt sad and angry and lost all at once."],
        "show_vs_tell": {"showing": 60, "telling": 40},
        "pacing_rating": 6,
        "rushed_sections": [],
        "belabored_sections": [],
        "detected_issues": [
            {
                "type": "telling",
                "severity": "critical",
                "quote": "It was a plethora of emotions",
                "explanation": "Names emotions instead of showing them",
                "suggestion": "Show one physical reaction",
            },
        ],
    },
    "climax": {
        "has_identifiable_climax": True,
        "climax_strength": 6,
        "has_turning_point": True,
        "turning_point_type": "realization",
        "turning_point_quote": "Ashes sweep the same as flour.",
        "turning_point_depth": 6,
        "stakes_clarity": 6,
        "conflict_present": True,
        "conflict_type": "external",
        "vulnerability_moments": [{"quote": "I burned my wrist twice.", "type": "physical", "depth": 5}],
        "improvement_suggestions": [],
    },
    "conclusion": {
        "conclusion_type": "moral",
        "conclusion_strength": 3,
        "conclusion_quote": "This experience taught me that hard work always pays off.",
        "reflection_present": True,
        "reflection_depth": 3,
        "reflection_type": "lesson",
        "micro_to_macro": {"present": False, "connection_quality": 3},
        "intellectual_maturity": 4,
        "philosophical_depth": 3,
        "nuanced_thinking": False,
        "cliches_detected": ["hard work always pays off"],
        "generic_statements": ["make a difference in the world"],
    },
    "character": {
        "protagonist_clarity": 7,
        "agency_level": 7,
        "interiority_present": True,
        "interiority_depth": 5,
        "emotion_description_type": "named",
        "voice_authenticity": 6,
        "dialogue_present": True,
        "dialogue_quality": 7,
        "dialogue_percentage": 5,
        "dialogue_examples": ["Ashes sweep the same as flour."],
        "growth_demonstrated": True,
        "inauthentic_markers": [],
    },
    "stakes": {
        "tension_level": 6,
        "stakes_established": True,
        "stakes_type": "personal",
        "stakes_height": 6,
        "conflict_markers": ["caught fire"],
        "progression_score": 6,
        "resolution_present": True,
        "resolution_satisfying": True,
    },
}

STYLE = {
    "formality_level": 4,
    "energy_level": 6,
    "voice_distinctiveness": 6,
    "originality_score": 6,
    "memorable_phrases": ["Ashes sweep the same as flour."],
    "voice_consistency": 7,
    "rhythm_quality": 7,
    "imagery_strength": 7,
    "style_notes": ["strong sensory opening"],
}

SYNTHESIS = {
    "strengths": [
        {"dimension": "opening_power_scene_entry", "title": "Sensory hook", "description": "Opens on a smell.",
         "evidence": ["The smell of burnt sugar still makes my hands shake."]},
    ],
    "gaps": [
        {"dimension": "reflection_meaning_making", "title": "Generic lesson", "description": "The ending is a moral.",
         "fix_complexity": "moderate", "estimated_gain": "+4"},
    ],
    "opportunities": ["Connect the quarters to the business goal"],
    "percentile_estimate": "top 40%",
    "officer_perspective": {"memorability": 6, "would_advocate": False, "one_line_summary": "Bakery fire kid"},
    "roadmap": ["Rewrite the conclusion", "Show the emotions in paragraph two"],
    "key_insights": ["The details are strong; the lesson is not."],
}

DIAGNOSIS = {
    "primary_symptom": "telling_not_showing",
    "secondary_symptoms": ["abstract_language"],
    "missing_elements": {
        "sensory_details": ["the heat of the sidewalk"],
        "concrete_objects": ["the tray of rolls"],
        "micro_moment": "the second the roof caught",
        "emotional_truth": "helplessness",
    },
    "diagnosis": "Names a vague emotional state instead of showing one reaction.",
}

GOOD_RATIONALE = (
    "By anchoring the feeling in the weight of the tray and the heat on your face, the reader "
    "experiences the moment with you instead of being told about it, which makes the loss land harder."
)

SUGGESTIONS = {
    "suggestions": [
        {
            "type": "polished_original",
            "text": "The tray got heavier with every siren.",
            "rationale": GOOD_RATIONALE,
            "strategy_used": "",
            "score_impact": 1.5,
        },
        {
            "type": "voice_amplifier",
            "text": "I held the tray and did not move.",
            "rationale": GOOD_RATIONALE,
            "strategy_used": "",
            "score_impact": "+1",
        },
        {
            "type": "divergent_strategy",
            "text": "Cinnamon and smoke. I held the tray.",
            "rationale": GOOD_RATIONALE,
            "strategy_used": "Sensory Anchor",
            "score_impact": 2,
        },
    ]
}


class FakeClient:
    """
    Scripted generative client keyed by request label.

    A reply may be a dict (sent as JSON), a raw string, an exception (raised),
    a callable taking the request, or a list of those consumed in order
    (the last one repeats).
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.requests = []

    async def complete(self, request):
        self.requests.append(request)
        if request.label not in self.responses:
            raise LookupError(f"unscripted call: {request.label}")
        reply = self.responses[request.label]
        if isinstance(reply, list):
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if callable(reply) and not isinstance(reply, type):
            reply = reply(request)
        if isinstance(reply, BaseException):
            raise reply
        text = reply if isinstance(reply, str) else json.dumps(reply)
        return LLMResponse(text=text, input_tokens=100, output_tokens=50)

    def labels(self):
        return [r.label for r in self.requests]

    def count(self, label):
        return sum(1 for r in self.requests if r.label == label)


def pipeline_responses():
    responses = {
        "stage1.holistic": HOLISTIC,
        "stage3.style": STYLE,
        "stage4.synthesis": SYNTHESIS,
        "surgical.diagnosis": DIAGNOSIS,
        "surgical.generate": SUGGESTIONS,
        "validation.nuance": {"quality_score": 76, "sounds_authentic": True, "adds_specificity": True,
                              "rationale_teaches": True, "issues": []},
        "refine.pass": {"text": "The tray got heavier with every siren.", "rationale": GOOD_RATIONALE},
    }
    for name, data in STAGE2.items():
        responses[f"stage2.{name}"] = data
    return responses


@pytest.fixture
def essay():
    return ESSAY


@pytest.fixture
def library():
    return default_library()


@pytest.fixture
def config():
    # No backoff delays in tests
    return with_llm(WorkshopConfig(), api_key="test-key", backoff_base_s=0.0)


@pytest.fixture
def client():
    return FakeClient(pipeline_responses())


@pytest.fixture
def session(client, config):
    return LLMSession(client, config.llm, sleep=_no_sleep)


async def _no_sleep(_seconds):
    return None


@pytest.fixture
def llm_config():
    return LLMConfig(api_key="test-key", backoff_base_s=0.0)
