"""
localscribe.session - Wire a ScribeConfig into a ready-to-use controller.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np

from localscribe.config import ScribeConfig
from localscribe.controller import TaskController, TaskState
from localscribe.engine import get_engine_factory
from localscribe.engine.cache import EngineCache
from localscribe.models import Device, ProgressSnapshot, TranscriptionRequest
from localscribe.registry import JsonModelRegistry, ModelRegistry


def create_engine_cache(config: ScribeConfig) -> EngineCache:
    return EngineCache(get_engine_factory(config.backend))


def create_controller(
    config: ScribeConfig,
    engine_cache: EngineCache | None = None,
    registry: ModelRegistry | None = None,
    on_progress: Callable[[ProgressSnapshot], None] | None = None,
    on_state_change: Callable[[TaskState], None] | None = None,
) -> TaskController:
    """Build a TaskController from config.

    The engine cache and registry default to fresh instances; pass them in to
    share a loaded engine between controllers or to use a different store.
    """
    if engine_cache is None:
        engine_cache = create_engine_cache(config)
    if registry is None:
        registry = JsonModelRegistry(config.cache_registry_path)
    return TaskController(
        engine_cache,
        registry=registry,
        pause_threshold=config.pause_threshold,
        on_progress=on_progress,
        on_state_change=on_state_change,
    )


def build_request(
    samples: np.ndarray,
    config: ScribeConfig,
    language: str | None = None,
) -> TranscriptionRequest:
    """Freeze decoded samples and config into a TranscriptionRequest."""
    return TranscriptionRequest(
        samples=samples,
        model_id=config.model_id,
        device=Device(config.device),
        language=(language or config.language).lower(),
        chunk_length_s=config.chunk_length_s,
        stride_length_s=config.stride_length_s,
    )
