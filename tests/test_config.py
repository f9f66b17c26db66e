"""Tests for localscribe.config module."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
import yaml

from localscribe.config import (
    BUILTIN_MODELS,
    DEFAULT_MODEL_ID,
    SUPPORTED_LANGUAGES,
    ScribeConfig,
    create_default_config,
    load_config,
    merge_config,
    write_config,
)
from localscribe.exceptions import ConfigError


class TestScribeConfig:
    def test_defaults(self) -> None:
        config = ScribeConfig()
        assert config.backend == "transformers"
        assert config.model_id == DEFAULT_MODEL_ID
        assert config.device == "cpu"
        assert config.language == "english"
        assert config.pause_threshold == 1.5
        assert config.server_port == 3000

    def test_default_model_is_builtin(self) -> None:
        assert DEFAULT_MODEL_ID in BUILTIN_MODELS

    def test_language_is_lowercased(self) -> None:
        assert ScribeConfig(language="Turkish").language == "turkish"

    def test_unsupported_language_raises(self) -> None:
        with pytest.raises(ValueError):
            ScribeConfig(language="klingon")

    def test_invalid_device_raises(self) -> None:
        with pytest.raises(ValueError):
            ScribeConfig(device="tpu")

    def test_invalid_backend_raises(self) -> None:
        with pytest.raises(ValueError):
            ScribeConfig(backend="whisper.cpp")

    def test_stride_must_be_shorter_than_chunk(self) -> None:
        with pytest.raises(ValueError, match="stride_length_s"):
            ScribeConfig(chunk_length_s=5, stride_length_s=5)

    def test_negative_pause_threshold_raises(self) -> None:
        with pytest.raises(ValueError):
            ScribeConfig(pause_threshold=-1)

    def test_every_language_is_valid(self) -> None:
        for language in SUPPORTED_LANGUAGES:
            assert ScribeConfig(language=language).language == language


class TestMergeConfig:
    def test_overrides_win(self) -> None:
        merged = merge_config({"device": "cpu", "language": "german"}, {"device": "gpu"})
        assert merged == {"device": "gpu", "language": "german"}

    def test_none_overrides_are_skipped(self) -> None:
        merged = merge_config({"device": "gpu"}, {"device": None})
        assert merged["device"] == "gpu"


class TestLoadConfig:
    def test_missing_default_file_gives_defaults(self, tmp_path: Path) -> None:
        original_cwd = os.getcwd()
        try:
            os.chdir(tmp_path)
            config = load_config()
        finally:
            os.chdir(original_cwd)
        assert config.model_id == DEFAULT_MODEL_ID

    def test_explicit_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_file_values_and_overrides(self, tmp_path: Path) -> None:
        path = tmp_path / "localscribe.yaml"
        path.write_text("model_id: openai/whisper-base\nlanguage: french\n")
        config = load_config(path, language="spanish", device=None)
        assert config.model_id == "openai/whisper-base"
        assert config.language == "spanish"
        assert config.device == "cpu"

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "localscribe.yaml"
        path.write_text("")
        assert load_config(path).language == "english"

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "localscribe.yaml"
        path.write_text("model_id: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_non_mapping_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "localscribe.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_invalid_value_raises_config_error(self, tmp_path: Path) -> None:
        path = tmp_path / "localscribe.yaml"
        path.write_text("device: tpu\n")
        with pytest.raises(ConfigError):
            load_config(path)


class TestWriteConfig:
    def test_default_config_round_trips(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "localscribe.yaml"
        write_config(create_default_config(), path)

        with open(path) as f:
            raw = yaml.safe_load(f)
        assert raw["model_id"] == DEFAULT_MODEL_ID
        assert load_config(path) == ScribeConfig(**raw)
