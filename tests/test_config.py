"""Tests for configuration loading."""

from pathlib import Path

import pytest

from weighvision.config import DEFAULTS, load_config


class TestLoadConfig:
    def test_missing_file_returns_defaults(self, tmp_path: Path):
        config = load_config(tmp_path / "nonexistent.toml")
        assert config["engine"]["language"] == DEFAULTS["engine"]["language"]
        assert config["plate"]["concurrency"] == 1
        assert config["debug"]["keep_images"] is False

    def test_partial_override(self, tmp_path: Path):
        config_file = tmp_path / "config.toml"
        config_file.write_text('[engine]\nlanguage = "eng"\n')
        config = load_config(config_file)
        assert config["engine"]["language"] == "eng"
        # Unspecified values should use defaults
        assert config["engine"]["product_language"] == "por"
        assert config["weight"]["max_kg"] == 80000

    def test_full_override(self, tmp_path: Path):
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            "[weight]\nmin_kg = 1000\nmax_kg = 60000\ntare_max_kg = 20000\n"
            "[product]\nvocabulary = [\"cevada\", \"aveia\"]\n"
        )
        config = load_config(config_file)
        assert config["weight"]["min_kg"] == 1000
        assert config["weight"]["max_kg"] == 60000
        assert config["weight"]["tare_max_kg"] == 20000
        assert config["product"]["vocabulary"] == ["cevada", "aveia"]

    def test_defaults_not_mutated(self, tmp_path: Path):
        """Loading config should not mutate the DEFAULTS dict."""
        original_scale = DEFAULTS["plate"]["scale"]
        config_file = tmp_path / "config.toml"
        config_file.write_text("[plate]\nscale = 4.0\n")
        config = load_config(config_file)
        assert config["plate"]["scale"] == 4.0
        assert DEFAULTS["plate"]["scale"] == original_scale


class TestValidateConfig:
    @pytest.mark.parametrize(
        "toml",
        [
            "[plate]\nconcurrency = 0\n",
            "[plate]\nblock_size = 0\n",
            "[weight]\nscale = 0\n",
            "[weight]\ntare_max_kg = 90000\n",
            "[weight]\ntonnes_min = 90\n",
            "[product]\nvocabulary = []\n",
        ],
    )
    def test_rejects_unusable_settings(self, tmp_path: Path, toml: str):
        config_file = tmp_path / "config.toml"
        config_file.write_text(toml)
        with pytest.raises(ValueError):
            load_config(config_file)
