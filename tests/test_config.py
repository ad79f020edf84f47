"""
Tests for Configuration Loading
"""

import pytest
from pydantic import ValidationError

from memoria.config import MemoryConfig, load_config
from memoria.errors import ConfigurationError


class TestLoadConfig:
    """Tests for load_config()."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("MEMORIA_PROFILE", raising=False)

    def test_defaults_when_file_missing(self, tmp_path):
        config = load_config(tmp_path / "memoria.yaml")

        assert config.llm.model == "gpt-4o-mini"
        assert config.llm.api_key is None
        assert config.recognition.threshold == 0.75
        assert config.recognition.similarity_method == "overlap"
        assert config.pipeline.profile == "basic"
        assert config.storage.backend == "memory"
        assert config.monitoring.enabled is False

    def test_yaml_values(self, tmp_path):
        path = tmp_path / "memoria.yaml"
        path.write_text(
            "llm:\n"
            "  model: gpt-4o\n"
            "  timeout_seconds: 10\n"
            "recognition:\n"
            "  threshold: 0.8\n"
            "  llm_lower_bound: 0.65\n"
            "pipeline:\n"
            "  profile: conversational\n"
            "storage:\n"
            "  backend: file\n"
            "  path: data/store.json\n"
        )

        config = load_config(path)

        assert config.llm.model == "gpt-4o"
        assert config.llm.timeout_seconds == 10.0
        assert config.recognition.threshold == 0.8
        assert config.recognition.llm_lower_bound == 0.65
        assert config.pipeline.profile == "conversational"
        assert config.storage.backend == "file"
        assert str(config.storage.path) == "data/store.json"

    def test_environment_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "memoria.yaml"
        path.write_text("pipeline:\n  profile: basic\n")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("MEMORIA_PROFILE", "minimal")

        config = load_config(path)

        assert config.llm.api_key == "sk-test"
        assert config.pipeline.profile == "minimal"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "memoria.yaml"
        path.write_text("")
        assert load_config(path) == MemoryConfig()

    def test_string_path(self, tmp_path):
        path = tmp_path / "memoria.yaml"
        path.write_text("storage:\n  backend: file\n")

        config = load_config(str(path))

        assert config.storage.backend == "file"

    def test_invalid_values_raise_configuration_error(self, tmp_path):
        """Test that every invalid setting is reported as a ConfigurationError."""
        path = tmp_path / "memoria.yaml"
        path.write_text(
            "recognition:\n"
            "  threshold: 1.5\n"
            "storage:\n"
            "  backend: postgres\n"
        )

        with pytest.raises(ConfigurationError) as exc:
            load_config(path)

        assert len(exc.value.errors) == 2
        assert any(e.startswith("recognition.threshold") for e in exc.value.errors)
        assert any(e.startswith("storage.backend") for e in exc.value.errors)

    def test_top_level_must_be_a_mapping(self, tmp_path):
        path = tmp_path / "memoria.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path)


def test_invalid_values_rejected():
    with pytest.raises(ValidationError):
        MemoryConfig(recognition={"threshold": 1.5})
    with pytest.raises(ValidationError):
        MemoryConfig(recognition={"similarity_method": "cosine"})
    with pytest.raises(ValidationError):
        MemoryConfig(storage={"backend": "postgres"})
