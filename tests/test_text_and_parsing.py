import pytest

from essay_workshop.config import SectionBoundaries
from essay_workshop.errors import ParseError
from essay_workshop.llm.parsing import extract_json, normalize
from essay_workshop.text import parse_sentences, section_for_position, section_text

from conftest import ESSAY


def test_section_for_position_default_cutoffs():
    labels = [section_for_position(i, 20) for i in range(20)]
    assert labels[:3] == ["opening"] * 3
    assert labels[3] == "body"
    assert labels[8] == "climax" and labels[14] == "climax"
    assert labels[15] == "body" and labels[16] == "body"
    assert labels[17:] == ["conclusion"] * 3


def test_section_boundaries_are_tunable():
    wide_opening = SectionBoundaries(opening_end=0.5)
    assert section_for_position(4, 10, wide_opening) == "opening"
    assert section_for_position(4, 10) == "climax"


def test_sentence_offsets_point_back_into_text():
    sentences = parse_sentences(ESSAY)
    assert len(sentences) > 10
    for s in sentences:
        assert ESSAY[s.start:s.end] == s.text
    assert sentences[0].section == "opening"
    assert sentences[-1].section == "conclusion"


def test_sentence_parsing_is_idempotent():
    assert parse_sentences(ESSAY) == parse_sentences(ESSAY)


def test_section_text_falls_back_to_edge_sentence():
    sentences = parse_sentences("Only one sentence here.")
    assert section_text(sentences, "conclusion") == "Only one sentence here."


def test_extract_json_from_fenced_and_chatty_replies():
    assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_json('Sure! Here it is: {"a": {"b": [1, 2]}} Hope that helps.') == {"a": {"b": [1, 2]}}


def test_extract_json_fails_closed():
    with pytest.raises(ParseError):
        extract_json("I cannot help with that.")
    with pytest.raises(ParseError):
        extract_json("")
    with pytest.raises(ParseError):
        extract_json("{not json at all}")


def test_normalize_records_missing_and_mistyped_fields():
    schema = {"score": ("num", 5.0), "flag": ("bool", False), "quotes": ("list", [])}
    values, missing = normalize({"score": "7.5", "flag": "maybe", "extra": 1}, schema)
    assert values["score"] == 7.5
    assert values["flag"] is False
    assert values["quotes"] == []
    assert values["extra"] == 1
    assert set(missing) == {"flag", "quotes"}


def test_non_finite_numbers_count_as_missing():
    schema = {"score": ("num", 5.0), "count": ("int", 0), "weight": ("num", 1.0)}
    values, missing = normalize({"score": float("nan"), "count": "inf", "weight": "-Infinity"}, schema)
    assert values == {"score": 5.0, "count": 0, "weight": 1.0}
    assert set(missing) == {"score", "count", "weight"}
