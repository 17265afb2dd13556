import pytest

from eager_macros.core.expand.engine_config import (
    DEFAULT_CONFIG,
    EngineConfigError,
    load_and_merge,
    load_config_file,
    merged_config,
)


def test_defaults():
    cfg = load_and_merge(None)
    assert cfg is DEFAULT_CONFIG
    assert cfg.sentinel == "eager_1"
    assert cfg.expand_keyword == "eager"
    assert cfg.restrict_keyword == "lazy"


def test_config_file_overrides_limits():
    cfg = load_and_merge("examples/config.yaml")
    assert cfg.recursion_limit == 64
    assert cfg.step_limit == 5000
    assert cfg.sentinel == DEFAULT_CONFIG.sentinel


def test_empty_config_file(tmp_path):
    p = tmp_path / "empty.yaml"
    p.write_text("", encoding="utf-8")
    assert load_config_file(str(p)) == {}


def test_merged_config_keywords():
    cfg = merged_config({"expand_keyword": "now", "restrict_keyword": "later"})
    assert (cfg.expand_keyword, cfg.restrict_keyword) == ("now", "later")


@pytest.mark.parametrize(
    "body, needle",
    [
        ("nope: 1\n", "unknown setting"),
        ("step_limit: 0\n", "positive integer"),
        ("recursion_limit: true\n", "positive integer"),
        ("sentinel: 'two words'\n", "identifier"),
        ("expand_keyword: lazy\n", "must differ"),
        ("- a\n- b\n", "mapping"),
        ("step_limit: [\n", "valid YAML"),
    ],
)
def test_invalid_config_file(tmp_path, body, needle):
    p = tmp_path / "config.yaml"
    p.write_text(body, encoding="utf-8")
    with pytest.raises(EngineConfigError) as exc:
        load_config_file(str(p))
    assert needle in str(exc.value)
