import asyncio
import random

from essay_workshop.config import with_editor
from essay_workshop.editops import SUGGESTION_TYPES, Locator, make_locator
from essay_workshop.errors import LLMError
from essay_workshop.surgical.context import build_voice_profile
from essay_workshop.surgical.editor import edit_item, parse_suggestions
from essay_workshop.workshop import generate_suggestions

from conftest import ESSAY, FakeClient, GOOD_RATIONALE, pipeline_responses


def _locator(quote, severity="critical", issue_id=None):
    start = ESSAY.index(quote)
    return make_locator(ESSAY, start, start + len(quote), "show_dont_tell_craft", severity,
                        issue_id=issue_id, problem="Names the feeling")


PLETHORA = "It was a plethora of emotions"
HARD_WORK = "hard work always pays off"


def test_parse_suggestions_keeps_first_of_each_type():
    raw = [
        {"type": "voice_amplifier", "text": "first", "score_impact": "+2"},
        {"type": "voice_amplifier", "text": "second"},
        {"type": "polished_original", "text": "  "},
        {"type": "rewrite", "text": "unknown type"},
        "not a dict",
        {"type": "Polished_Original", "text": "kept", "rationale": GOOD_RATIONALE, "score_impact": "n/a"},
    ]
    parsed = parse_suggestions(raw)
    assert [s.type for s in parsed] == ["polished_original", "voice_amplifier"]
    assert parsed[1].text == "first"
    assert parsed[1].score_impact == 2.0
    assert parsed[0].score_impact is None


def test_edit_item_end_to_end(session, client, config, library):
    locator = _locator(PLETHORA, issue_id="body-1")
    item = asyncio.run(edit_item(
        ESSAY, locator, build_voice_profile(ESSAY), None, 50.0, library, session, config, random.Random(1),
    ))
    assert item.id == "body-1"
    assert item.states[0] == "diagnosed"
    assert item.states[-1] == "final"
    assert "generated" in item.states and "validated" in item.states
    assert item.locator.quote == ESSAY[item.locator.start:item.locator.end]
    assert item.diagnosis.primary_symptom == "telling_not_showing"
    assert {s.type for s in item.suggestions} == set(SUGGESTION_TYPES)
    assert all(s.score == 76 for s in item.suggestions)
    assert [s.type for s in item.suggestions] == list(SUGGESTION_TYPES)
    assert item.complexity_tier == "Advanced"
    assert len(item.retries) == 1
    assert all(r.stop_reason == "no_improvement" for r in item.refinements)


def test_edit_item_without_refinement(session, client, config, library):
    config = with_editor(config, refine=False)
    item = asyncio.run(edit_item(
        ESSAY, _locator(PLETHORA), build_voice_profile(ESSAY), None, 50.0, library, session, config,
        random.Random(1),
    ))
    assert item.id.startswith("item-")
    assert item.refinements == ()
    assert "refined" not in item.states
    assert client.count("refine.pass") == 0


def test_critique_is_sent_on_retry(session, client, config, library):
    bad = {"suggestions": [dict(s, text=s["text"] + " A tapestry.") for s in pipeline_responses()["surgical.generate"]["suggestions"]]}
    client.responses["surgical.generate"] = [bad, pipeline_responses()["surgical.generate"]]
    item = asyncio.run(edit_item(
        ESSAY, _locator(PLETHORA), build_voice_profile(ESSAY), None, 50.0, library, session, config,
        random.Random(1),
    ))
    assert "retried" in item.states
    generate_requests = [r for r in client.requests if r.label == "surgical.generate"]
    assert "CRITIQUE OF ATTEMPT 1" in generate_requests[1].prompt
    assert [r.temperature for r in generate_requests] == [0.7, 0.6]


def test_generate_suggestions_runs_holistic_without_analysis(client, config, library):
    items = generate_suggestions(ESSAY, [_locator(PLETHORA)], config=config, client=client, library=library)
    assert len(items) == 1
    assert client.labels()[0] == "stage1.holistic"
    assert client.count("stage2.opening") == 0


def test_item_excluded_when_nothing_validates(client, config, library):
    client.responses["surgical.generate"] = {"suggestions": [
        {"type": t, "text": "It was a tapestry of feelings.", "rationale": GOOD_RATIONALE} for t in SUGGESTION_TYPES
    ]}
    items = generate_suggestions(ESSAY, [_locator(PLETHORA)], config=config, client=client, library=library)
    assert items == []
    assert client.count("surgical.generate") == config.validation.max_retries


def test_one_failed_item_does_not_abort_the_others(client, config, library):
    good = pipeline_responses()["surgical.generate"]

    def generate(request):
        if f'**Target:** "{HARD_WORK}"' in request.prompt:
            return LLMError("bad request")
        return good

    client.responses["surgical.generate"] = generate
    locators = [_locator(PLETHORA, issue_id="a"), _locator(HARD_WORK, issue_id="b")]
    items = generate_suggestions(ESSAY, locators, config=config, client=client, library=library)
    assert [i.id for i in items] == ["a"]


def test_items_are_capped_and_prioritized(client, config, library):
    locators = [
        _locator("I kept going", severity="optimization", issue_id="low"),
        _locator(HARD_WORK, severity="warning", issue_id="mid"),
        _locator(PLETHORA, severity="critical", issue_id="top"),
    ]
    config = with_editor(config, max_items=2, refine=False)
    items = generate_suggestions(ESSAY, locators, config=config, client=client, library=library)
    assert [i.id for i in items] == ["top", "mid"]


def test_seeded_runs_send_identical_case_files(config, library):
    config = with_editor(config, seed=11, refine=False)
    prompts = []
    for _ in range(2):
        client = FakeClient(pipeline_responses())
        generate_suggestions(ESSAY, [_locator(PLETHORA)], config=config, client=client, library=library)
        prompts.append([r.prompt for r in client.requests if r.label == "surgical.generate"])
    assert prompts[0] == prompts[1]


def test_no_locators_makes_no_calls(client, config, library):
    assert generate_suggestions(ESSAY, [], config=config, client=client, library=library) == []
    assert client.requests == []


def test_stale_locator_is_relocated_against_the_text(client, config, library):
    stale = Locator(quote=PLETHORA, start=0, end=len(PLETHORA), category="show_dont_tell_craft", severity="critical")
    config = with_editor(config, refine=False)
    items = generate_suggestions(ESSAY, [stale], config=config, client=client, library=library)
    assert len(items) == 1
    loc = items[0].locator
    assert loc.start == ESSAY.index(PLETHORA)
    assert ESSAY[loc.start:loc.end] == loc.quote == PLETHORA


def test_locator_for_missing_quote_is_dropped(client, config, library):
    absent = Locator(quote="a sentence this essay never contains", start=5, end=40,
                     category="show_dont_tell_craft", severity="critical")
    assert generate_suggestions(ESSAY, [absent], config=config, client=client, library=library) == []
    assert client.requests == []
