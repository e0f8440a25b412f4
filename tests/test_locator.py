import logging

import pytest

from essay_workshop.editops import Locator, make_locator
from essay_workshop.ir import DimensionScore, Issue
from essay_workshop.surgical.locator import (
    clean_quote,
    find_span,
    locate,
    locators_from_dimensions,
    prioritize_locators,
    revalidate,
)

SCENE = (
    "The fire started in the back room while my grandmother was kneading dough for the morning rush. "
    "By the time the trucks arrived, the whole block smelled like burnt sugar and wet ash. "
    "It was a plethora of emotions. "
    "I stood on the sidewalk holding a tray of cinnamon rolls that nobody would ever buy, and I watched "
    "the windows go black one pane at a time while she swept the front step. "
    "Nobody said one word until the last fire truck slowly pulled away."
)


def _issue(quote, severity="major", category="show_dont_tell_craft", id="body-1"):
    return Issue(id=id, category=category, severity=severity, quote=quote,
                 explanation="Names the feeling", impact="-1 to -2 points")


def test_single_issue_in_short_scene():
    assert len(SCENE) == 450
    locators = locate(SCENE, [_issue("It was a plethora of emotions", severity="critical")])
    assert len(locators) == 1
    loc = locators[0]
    assert loc.quote == "It was a plethora of emotions"
    assert (loc.start, loc.end) == (182, 211)
    assert SCENE[loc.start:loc.end] == loc.quote
    assert loc.severity == "critical"
    assert loc.issue_id == "body-1"
    assert loc.why_it_matters == "Costs -1 to -2 points"


def test_case_insensitive_match_reads_quote_from_text():
    loc = locate(SCENE, [_issue("it WAS a plethora of emotions")])[0]
    assert loc.quote == "It was a plethora of emotions"
    assert loc.severity == "warning"


def test_whitespace_flexible_match():
    text = "It was a\n  plethora of\temotions, honestly."
    loc = locate(text, [_issue("It was a plethora of emotions")])[0]
    assert loc.quote == "It was a\n  plethora of\temotions"
    assert text[loc.start:loc.end] == loc.quote


def test_surrounding_quote_marks_are_stripped():
    assert clean_quote('  "It was a plethora"  ') == "It was a plethora"
    assert clean_quote("“burnt sugar”") == "burnt sugar"
    loc = locate(SCENE, [_issue("“burnt sugar and wet ash”")])[0]
    assert loc.quote == "burnt sugar and wet ash"


def test_unlocatable_and_short_quotes_are_dropped():
    issues = [
        _issue("a sentence the writer never wrote", id="x-1"),
        _issue("ash", id="x-2"),
        _issue("", id="x-3"),
        _issue("wet ash", id="x-4"),
    ]
    locators = locate(SCENE, issues)
    assert [l.issue_id for l in locators] == ["x-4"]


def test_short_and_empty_quotes_are_logged_as_dropped(caplog):
    with caplog.at_level(logging.INFO, logger="essay_workshop.surgical.locator"):
        locate(SCENE, [_issue("ash", id="x-2"), _issue("", id="x-3")])
    warned = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert any("x-2" in m and "too short" in m for m in warned)
    assert any("x-3" in m and "too short" in m for m in warned)
    assert any("dropped 2" in r.getMessage() for r in caplog.records)


def test_first_occurrence_wins():
    text = "I ran. Then I ran again. Then I ran."
    assert find_span(text, "I ran") == (0, 5)


def test_every_locator_reads_back_from_text():
    quotes = ["THE FIRE STARTED", "burnt   sugar", "the front step", "pulled away"]
    for loc in locate(SCENE, [_issue(q, id=q) for q in quotes]):
        assert SCENE[loc.start:loc.end] == loc.quote
        assert 0 <= loc.start < loc.end <= len(SCENE)


def test_make_locator_rejects_bad_spans():
    with pytest.raises(ValueError):
        make_locator(SCENE, 10, 10, "show_dont_tell_craft", "warning")
    with pytest.raises(ValueError):
        make_locator(SCENE, 440, 460, "show_dont_tell_craft", "warning")
    with pytest.raises(ValueError):
        make_locator(SCENE, 0, 5, "show_dont_tell_craft", "urgent")


def test_prioritize_by_severity_then_position():
    text = SCENE
    locs = [
        make_locator(text, 300, 320, "a", "optimization"),
        make_locator(text, 200, 220, "b", "warning"),
        make_locator(text, 100, 120, "c", "critical"),
        make_locator(text, 10, 30, "d", "warning"),
    ]
    kept = prioritize_locators(locs, max_items=3)
    assert [l.category for l in kept] == ["c", "d", "b"]


def test_prioritize_drops_nearby_duplicates():
    locs = [
        make_locator(SCENE, 182, 211, "a", "critical"),
        make_locator(SCENE, 185, 211, "b", "warning"),
        make_locator(SCENE, 250, 270, "c", "warning"),
    ]
    kept = prioritize_locators(locs, max_items=5)
    assert [l.category for l in kept] == ["a", "c"]


def test_locators_from_weak_dimension_evidence():
    dims = [
        DimensionScore(key="show_dont_tell_craft", name="Show-Don't-Tell Craft", score=3.0,
                       evidence=["It was a plethora of emotions", "not in the text at all"],
                       justification=["Names emotions"]),
        DimensionScore(key="opening_power_scene_entry", name="Opening", score=8.0,
                       evidence=["The fire started"]),
    ]
    locators = locators_from_dimensions(SCENE, dims)
    assert len(locators) == 1
    assert locators[0].severity == "critical"
    assert locators[0].issue_id == "dimension.show_dont_tell_craft-1"
    assert locators[0].why_it_matters == "Names emotions"


def test_revalidate_keeps_relocates_and_drops():
    start = SCENE.index("wet ash")
    good = make_locator(SCENE, start, start + 7, "craft", "warning", issue_id="good")
    stale = Locator(quote="It was a plethora of emotions", start=0, end=29, category="craft",
                    severity="critical", issue_id="stale")
    out_of_range = Locator(quote="burnt sugar", start=400, end=900, category="craft", severity="warning",
                           issue_id="range")
    missing = Locator(quote="never written here", start=0, end=18, category="craft", severity="warning",
                      issue_id="missing")
    locators = revalidate(SCENE, [good, stale, out_of_range, missing])
    assert [l.issue_id for l in locators] == ["good", "stale", "range"]
    assert locators[0] == good
    assert all(SCENE[l.start:l.end] == l.quote for l in locators)
    assert locators[1].start == SCENE.index("It was a plethora")
