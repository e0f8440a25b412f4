import pytest

from essay_workshop.config import (
    WorkshopConfig,
    config_from_dict,
    load_config,
    with_refinement,
    with_validation,
)
from essay_workshop.errors import LibraryError
from essay_workshop.ir import DIMENSION_KEYS
from essay_workshop.rules.load_rules import load_library, load_profiles
from essay_workshop.stages.scoring import dimension_weights, infer_essay_type


def test_library_tables_load(library):
    assert len(library.profiles) == 9
    assert len(library.strategies) == 13
    assert library.examples
    assert library.patterns
    assert library.strategy("sensory_anchor").name == "Sensory Anchor"


def test_library_is_loaded_once(library):
    from essay_workshop.rules.load_rules import default_library
    assert default_library() is library


def test_unknown_profile_and_strategy_raise(library):
    with pytest.raises(LibraryError):
        library.profile("haiku")
    with pytest.raises(LibraryError):
        library.strategy("nope")


def test_missing_rules_dir_raises(tmp_path):
    with pytest.raises(LibraryError):
        load_library(str(tmp_path))


def test_negative_adjustment_is_rejected():
    adjustments = {k: 1.0 for k in DIMENSION_KEYS}
    adjustments[DIMENSION_KEYS[0]] = -0.5
    with pytest.raises(LibraryError, match="negative"):
        load_profiles({"essay_types": [{"id": "lopsided", "adjustments": adjustments}]})


def test_profile_weights_sum_to_one(library):
    for profile in library.profiles:
        weights = dimension_weights(profile)
        assert set(weights) == set(DIMENSION_KEYS)
        assert sum(weights.values()) == pytest.approx(1.0)


def test_infer_essay_type_by_length(library):
    assert infer_essay_type("word " * 650, None, library) == "personal_statement"
    assert infer_essay_type("word " * 300, None, library) == "uc_piq"
    assert infer_essay_type("word " * 450, None, library) == "supplemental_other"


def test_infer_essay_type_prompt_keywords_win(library):
    essay_type = infer_essay_type("word " * 650, "Why do you want to attend our university?", library)
    assert essay_type == "why_us"


def test_builders_return_new_values():
    base = WorkshopConfig()
    changed = with_refinement(base, max_passes=5)
    assert changed.refinement.max_passes == 5
    assert base.refinement.max_passes == 3
    assert changed.validation is base.validation
    assert with_validation(base, min_quality_score=70).validation.min_quality_score == 70


def test_config_from_dict_rejects_unknown_keys():
    with pytest.raises(ValueError):
        config_from_dict({"refinement": {"max_pass": 2}})
    with pytest.raises(ValueError):
        config_from_dict({"ui": {}})


def test_load_config_yaml_and_env_key(tmp_path, monkeypatch):
    path = tmp_path / "workshop.yml"
    path.write_text(
        "analysis:\n"
        "  stage2_policy: degraded\n"
        "sections:\n"
        "  opening_end: 0.2\n"
        "editor:\n"
        "  seed: 7\n"
    )
    monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
    config = load_config(str(path))
    assert config.analysis.stage2_policy == "degraded"
    assert config.sections.opening_end == 0.2
    assert config.editor.seed == 7
    assert config.llm.api_key == "env-key"
