"""
localscribe.config - YAML config loading and validation.

Handles loading localscribe.yaml, merging it over the built-in defaults,
and validating all parameters.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from localscribe.exceptions import ConfigError

CONFIG_FILENAME = "localscribe.yaml"

DEFAULT_MODEL_ID = "openai/whisper-tiny"
DEFAULT_LANGUAGE = "english"

SUPPORTED_LANGUAGES: dict[str, str] = {
    "english": "English",
    "turkish": "Türkçe",
    "spanish": "Español",
    "french": "Français",
    "german": "Deutsch",
    "italian": "Italiano",
}

BUILTIN_MODELS: dict[str, dict[str, Any]] = {
    "openai/whisper-tiny": {"label": "Tiny", "size_mb": 73, "note": "Fast"},
    "openai/whisper-base": {"label": "Base", "size_mb": 145, "note": "Balanced"},
    "openai/whisper-small": {"label": "Small", "size_mb": 483, "note": "Accurate"},
}


def default_registry_path() -> Path:
    return Path.home() / ".cache" / "localscribe" / "models.json"


class ScribeConfig(BaseModel):
    """Resolved configuration for transcription runs and the HTTP server."""

    model_config = ConfigDict(protected_namespaces=())

    backend: str = "transformers"
    model_id: str = DEFAULT_MODEL_ID
    device: str = "cpu"
    language: str = DEFAULT_LANGUAGE

    chunk_length_s: float = Field(default=30.0, gt=0.0)
    stride_length_s: float = Field(default=5.0, ge=0.0)
    pause_threshold: float = Field(default=1.5, ge=0.0)

    cache_registry_path: Path = Field(default_factory=default_registry_path)

    server_host: str = "0.0.0.0"
    server_port: int = Field(default=3000, gt=0, lt=65536)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        valid = {"transformers", "faster"}
        if v not in valid:
            raise ValueError(f"backend must be one of: {valid}")
        return v

    @field_validator("device")
    @classmethod
    def validate_device(cls, v: str) -> str:
        valid = {"cpu", "gpu"}
        if v not in valid:
            raise ValueError(f"device must be one of: {valid}")
        return v

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        v = v.lower()
        if v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"language must be one of: {set(SUPPORTED_LANGUAGES)}")
        return v

    @model_validator(mode="after")
    def validate_stride(self) -> ScribeConfig:
        if self.stride_length_s >= self.chunk_length_s:
            raise ValueError("stride_length_s must be smaller than chunk_length_s")
        return self


def merge_config(file_config: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge CLI overrides over file config. Overrides that are None are ignored."""
    merged = file_config.copy()
    for key, value in overrides.items():
        if value is not None:
            merged[key] = value
    return merged


def load_config(path: Path | None = None, **overrides: Any) -> ScribeConfig:
    """Load and validate configuration.

    Args:
        path: Path to a YAML config file; ./localscribe.yaml is used when None
        **overrides: Values that take precedence over the file (None is skipped)

    Returns:
        Validated ScribeConfig

    Raises:
        ConfigError: If the file is unreadable or a value is invalid
    """
    config_file = path if path is not None else Path.cwd() / CONFIG_FILENAME

    raw_config: dict[str, Any] = {}
    if config_file.exists():
        try:
            with open(config_file) as f:
                raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e
        if not isinstance(raw_config, dict):
            raise ConfigError(f"{config_file} must contain a mapping")
    elif path is not None:
        raise ConfigError(f"Config file not found: {config_file}")

    merged = merge_config(raw_config, overrides)

    try:
        return ScribeConfig(**merged)
    except ValidationError as e:
        raise ConfigError(str(e)) from e


def create_default_config() -> dict[str, Any]:
    """Create a default config dict suitable for writing to disk."""
    return {
        "backend": "transformers",
        "model_id": DEFAULT_MODEL_ID,
        "device": "cpu",
        "language": DEFAULT_LANGUAGE,
        "chunk_length_s": 30,
        "stride_length_s": 5,
        "pause_threshold": 1.5,
    }


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
