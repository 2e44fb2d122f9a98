"""Unit tests for configuration loading."""

from pathlib import Path

import pytest

from layoutran.core.config import PipelineConfig, TranslationConfig
from layoutran.core.exceptions import ConfigurationError
from layoutran.core.pipeline import DocumentPipeline
from layoutran.utils.config_loader import (
    get_default_config, load_config, load_pipeline_config, save_config
)

from conftest import FakeBackend


class TestPipelineConfig:
    def test_defaults_are_valid(self):
        assert PipelineConfig().validate() == []

    def test_from_dict_reads_nested_sections(self):
        config = PipelineConfig.from_dict({
            "target_lang": "he",
            "output_format": "docx",
            "translation": {
                "backend": "libre",
                "batch_size": 5,
                "cache_dir": "/tmp/layoutran-cache",
                "masking": {"mask_numbers": False},
                "unknown_key": 1,
            },
            "rendering": {"line_height": 1.5},
        })

        assert config.target_lang == "he"
        assert config.extraction.target_language == "he"
        assert config.translation.backend == "libre"
        assert config.translation.batch_size == 5
        assert config.translation.cache_dir == Path("/tmp/layoutran-cache")
        assert config.translation.masking.mask_numbers is False
        assert config.translation.masking.mask_tags is True
        assert config.rendering.line_height == 1.5

    def test_validate_reports_every_issue(self):
        config = PipelineConfig(output_format="odt")
        config.translation = TranslationConfig(batch_size=0, max_attempts=0)
        issues = config.validate()

        assert any("output_format" in issue for issue in issues)
        assert "batch_size must be at least 1" in issues
        assert "max_attempts must be at least 1" in issues

    def test_pipeline_rejects_invalid_config(self):
        with pytest.raises(ConfigurationError):
            DocumentPipeline(PipelineConfig(output_format="odt"), backend=FakeBackend())


class TestConfigLoader:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("target_lang: fr\ntranslation:\n  batch_size: 4\n", encoding="utf-8")

        config = load_pipeline_config(path)

        assert config.target_lang == "fr"
        assert config.translation.batch_size == 4
        assert config.translation.max_attempts == 3

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("translation:\n  backend: free\n", encoding="utf-8")
        monkeypatch.setenv("LAYOUTRAN_BACKEND", "libre")
        monkeypatch.setenv("LIBRETRANSLATE_URL", "http://localhost:5000")

        data = load_config(path)

        assert data["translation"]["backend"] == "libre"
        assert data["translation"]["endpoint"] == "http://localhost:5000"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("translation: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_save_and_reload(self, tmp_path):
        config = PipelineConfig(target_lang="ar", output_format="json")
        path = tmp_path / "nested" / "saved.yaml"

        save_config(config, path)
        loaded = load_pipeline_config(path)

        assert loaded.target_lang == "ar"
        assert loaded.output_format == "json"
        assert loaded.to_dict() == config.to_dict()

    def test_default_config_matches_dataclass(self):
        assert get_default_config() == PipelineConfig().to_dict()
