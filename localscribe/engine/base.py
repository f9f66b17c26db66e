"""
localscribe.engine.base - Protocols shared by the engine cache and backends.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

import numpy as np

from localscribe.models import ModelDescriptor

ProgressCallback = Callable[[dict[str, Any]], None]


class Engine(Protocol):
    """Speech-to-text capability built for one ModelDescriptor."""

    def infer(self, samples: np.ndarray, options: dict[str, Any]) -> dict[str, Any]:
        """Transcribe 16kHz mono float32 samples.

        Returns:
            {"text": str, "chunks": [{"text": str, "timestamp": [start, end]}]}
        """
        ...


class EngineFactory(Protocol):
    """Builds an Engine, emitting asset download events through on_progress.

    Events use the worker message vocabulary: {"status": "initiate", "file"},
    {"status": "progress", "file", "loaded", "total"}, {"status": "done", "file"}.
    """

    def __call__(
        self,
        descriptor: ModelDescriptor,
        on_progress: ProgressCallback | None = None,
    ) -> Engine: ...
