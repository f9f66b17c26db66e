"""
localscribe.registry - Record of which models have been downloaded before.

Only a UI hint ("Ready" next to a model name). Assets are shared between
devices, so entries are keyed by model id alone.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from localscribe.io import read_json, write_json
from localscribe.logging import get_logger
from localscribe.models import ModelDescriptor

logger = get_logger("registry")


class ModelRegistry(Protocol):
    def was_model_cached(self, descriptor: ModelDescriptor) -> bool: ...

    def mark_model_cached(self, descriptor: ModelDescriptor) -> None: ...


class JsonModelRegistry:
    """ModelRegistry persisted as {"models": [...]} in a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def cached_models(self) -> list[str]:
        if not self.path.exists():
            return []
        try:
            data = read_json(self.path)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable model registry %s: %s", self.path, e)
            return []
        models = data.get("models", []) if isinstance(data, dict) else []
        return [m for m in models if isinstance(m, str)]

    def was_model_cached(self, descriptor: ModelDescriptor) -> bool:
        return descriptor.model_id in self.cached_models()

    def mark_model_cached(self, descriptor: ModelDescriptor) -> None:
        models = self.cached_models()
        if descriptor.model_id in models:
            return
        models.append(descriptor.model_id)
        write_json(self.path, {"models": models})


class MemoryModelRegistry:
    """In-process ModelRegistry, used by the HTTP server and tests."""

    def __init__(self) -> None:
        self._models: set[str] = set()

    def was_model_cached(self, descriptor: ModelDescriptor) -> bool:
        return descriptor.model_id in self._models

    def mark_model_cached(self, descriptor: ModelDescriptor) -> None:
        self._models.add(descriptor.model_id)
