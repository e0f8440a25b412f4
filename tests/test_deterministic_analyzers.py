from essay_workshop.analysis.grammar import analyze_grammar
from essay_workshop.analysis.patterns import detect_patterns
from essay_workshop.analysis.voice import analyze_voice
from essay_workshop.text import parse_sentences

from conftest import ESSAY

GENERIC = (
    "I have always been passionate about helping others. Through this experience I learned that "
    "kindness matters more than anything. This experience taught me the importance of teamwork and "
    "leadership. In conclusion, I want to make a difference in the world."
)


def test_generic_essay_is_flagged_for_essay_speak():
    voice = analyze_voice(GENERIC)
    assert voice.has_essay_speak
    assert voice.essay_speak_count >= 1
    assert any("passionate" in e for e in voice.essay_speak_examples)
    assert voice.voice_score < 5
    assert voice.voice_quality in ("generic_essay", "ai_generated")


def test_specific_essay_scores_higher_than_generic():
    specific = (
        "Honestly, the oven door still sticks. I built a wedge out of a paint stirrer. "
        "It worked for a week. Then it snapped and I burned my thumb on the rack, which I mean, "
        "was my own fault because I never measured the hinge before cutting anything at all."
    )
    assert analyze_voice(specific).voice_score > analyze_voice(GENERIC).voice_score


def test_fancy_words_are_penalized():
    voice = analyze_voice("It was a plethora of emotions. I had to utilize a myriad of skills.")
    assert voice.fancy_word_count >= 3
    assert "plethora" in " ".join(voice.fancy_word_examples).lower()


def test_grammar_metrics_are_idempotent():
    assert analyze_grammar(ESSAY) == analyze_grammar(ESSAY)
    assert analyze_voice(ESSAY) == analyze_voice(ESSAY)


def test_grammar_metrics_shape():
    grammar = analyze_grammar(ESSAY)
    assert grammar.word_count > 100
    assert grammar.sentences.total == len(parse_sentences(ESSAY))
    assert 0 <= grammar.overall_score <= 10
    assert grammar.paragraph_count == 5


def test_pattern_quotes_are_real_substrings(library):
    sentences = parse_sentences(ESSAY)
    for match in detect_patterns(ESSAY, library.patterns, sentences):
        if match.quote:
            assert match.quote.lower() in ESSAY.lower()
