"""Tests for screening configuration loading and validation."""

import os

import pytest
import yaml

from src.screening.config import ScreeningConfig, load_screening_config
from src.screening.errors import ConfigError


REPO_CONFIG = os.path.join(os.path.dirname(os.path.dirname(__file__)), "config", "screening.yaml")


def _write(tmp_path, data, name="screening.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data) if not isinstance(data, str) else data, encoding="utf-8")
    return str(path)


class TestRepoConfig:
    def test_repo_config_matches_defaults(self):
        assert load_screening_config(REPO_CONFIG) == ScreeningConfig()

    def test_no_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("src.screening.config._candidate_paths", lambda: [])

        assert load_screening_config() == ScreeningConfig()


class TestLoad:
    def test_partial_override(self, tmp_path):
        path = _write(tmp_path, {
            "grouping": {"threshold": 0.5, "strategy": "union_find"},
            "providers": {"consolidation_order": ["deepseek"]},
        })

        config = load_screening_config(path)

        assert config.threshold == 0.5
        assert config.strategy == "union_find"
        assert config.same_person_threshold == 0.3
        assert config.consolidation_order == ["deepseek"]
        assert config.clustering_order == ["gemini", "deepseek", "kimi"]
        assert config.max_per_cluster == 3

    def test_empty_file_gives_defaults(self, tmp_path):
        assert load_screening_config(_write(tmp_path, "")) == ScreeningConfig()

    def test_cwd_config_found(self, tmp_path, monkeypatch):
        (tmp_path / "config").mkdir()
        _write(tmp_path / "config", {"clustering": {"batch_size": 10}})
        monkeypatch.chdir(tmp_path)

        assert load_screening_config().batch_size == 10


class TestInvalid:
    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_screening_config(str(tmp_path / "nope.yaml"))

    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(ConfigError, match="mapping"):
            load_screening_config(_write(tmp_path, "- a\n- b\n"))

    def test_bad_yaml(self, tmp_path):
        with pytest.raises(ConfigError):
            load_screening_config(_write(tmp_path, "grouping: [unclosed\n"))

    @pytest.mark.parametrize("data", [
        {"grouping": {"threshold": 1.5}},
        {"grouping": {"same_person_threshold": -0.1}},
        {"grouping": {"threshold": "high"}},
        {"grouping": {"strategy": "kmeans"}},
        {"clustering": {"max_per_cluster": 0}},
        {"clustering": {"batch_size": 2.5}},
        {"providers": {"timeout_seconds": 0}},
        {"providers": {"consolidation_order": ["openai"]}},
    ])
    def test_invalid_values(self, tmp_path, data):
        with pytest.raises(ConfigError):
            load_screening_config(_write(tmp_path, data))
