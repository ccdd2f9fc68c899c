"""
Unit tests for configuration files, overrides, and user credentials.
"""

from __future__ import annotations

import pytest

from clarity.configuration import (
    apply_dotted_overrides,
    load_chunk_strategy,
    load_configuration_view,
    parse_dotted_overrides,
    parse_override_value,
)
from clarity.errors import ConfigurationError
from clarity.user_config import load_user_config, resolve_openai_api_key


def _write(path, text: str):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("true", True),
        ("False", False),
        ("none", None),
        ("42", 42),
        ("0.5", 0.5),
        ('["a", "b"]', ["a", "b"]),
        ("{broken", "{broken"),
        ("hierarchical", "hierarchical"),
        ("  ", ""),
    ],
)
def test_parse_override_value(raw, expected):
    assert parse_override_value(raw) == expected


def test_parse_dotted_overrides_rejects_bad_pairs():
    assert parse_dotted_overrides(["chunking.max_tokens=500"]) == {"chunking.max_tokens": 500}
    with pytest.raises(ConfigurationError):
        parse_dotted_overrides(["max_tokens"])
    with pytest.raises(ConfigurationError):
        parse_dotted_overrides(["=5"])


def test_apply_dotted_overrides_does_not_mutate_input():
    config = {"chunking": {"max_tokens": 10}}
    updated = apply_dotted_overrides(config, {"chunking.overlap_tokens": 5, "other": 1})
    assert updated == {"chunking": {"max_tokens": 10, "overlap_tokens": 5}, "other": 1}
    assert config == {"chunking": {"max_tokens": 10}}


def test_configuration_files_deep_merge_in_order(tmp_path):
    base = _write(tmp_path / "base.yml", "chunking:\n  max_tokens: 1000\n  overlap_tokens: 50\n")
    local = _write(tmp_path / "local.yml", "chunking:\n  max_tokens: 2000\n")
    view = load_configuration_view([str(base), str(local)])
    assert view == {"chunking": {"max_tokens": 2000, "overlap_tokens": 50}}


def test_configuration_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_configuration_view([str(tmp_path / "missing.yml")])
    listing = _write(tmp_path / "list.yml", "- a\n- b\n")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_configuration_view([str(listing)])


def test_load_chunk_strategy_applies_overrides(tmp_path):
    config = _write(
        tmp_path / "clarity.yml",
        "chunking:\n  max_tokens: 8000\n  priority_order: [metadata, project_summary]\n",
    )
    strategy = load_chunk_strategy([str(config)], {"overlap_tokens": 100})

    assert strategy.max_tokens == 8000
    assert strategy.overlap_tokens == 100
    assert strategy.priority_order == ["metadata", "project_summary"]


def test_load_chunk_strategy_defaults_and_validation():
    assert load_chunk_strategy().max_tokens == 120000
    with pytest.raises(ConfigurationError, match="Invalid chunking configuration"):
        load_chunk_strategy([], {"chunking.max_tokens": 0})
    with pytest.raises(ConfigurationError):
        load_chunk_strategy([], {"window": 3})


def test_user_config_precedence(tmp_path, monkeypatch):
    local = _write(tmp_path / "project" / ".clarity" / "config.yml", "openai:\n  api_key: local\n")
    home = _write(tmp_path / "home" / ".clarity" / "config.yml", "openai:\n  api_key: home\n")

    assert load_user_config([local, home]).openai.api_key == "local"
    assert load_user_config([tmp_path / "nothing.yml", home]).openai.api_key == "home"
    assert load_user_config([tmp_path / "nothing.yml"]).openai is None

    monkeypatch.setenv("OPENAI_API_KEY", "env-key")
    assert resolve_openai_api_key(config=load_user_config([local])) == "env-key"
    monkeypatch.delenv("OPENAI_API_KEY")
    assert resolve_openai_api_key(config=load_user_config([local])) == "local"


def test_user_config_must_be_mapping(tmp_path):
    bad = _write(tmp_path / ".clarity" / "config.yml", "just a string\n")
    with pytest.raises(ValueError):
        load_user_config([bad])
