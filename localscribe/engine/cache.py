"""
localscribe.engine.cache - Single-slot engine cache with CPU fallback.

Holds one engine keyed by its ModelDescriptor. A changed model or device
rebuilds the engine; a failed build on an accelerated device is retried once
on CPU before giving up.
"""

from __future__ import annotations

import threading
from typing import Any

import numpy as np

from localscribe.engine.base import Engine, EngineFactory, ProgressCallback
from localscribe.exceptions import CancellationError, ConstructionError
from localscribe.logging import get_logger
from localscribe.models import Device, ModelDescriptor

logger = get_logger("engine.cache")


class EngineCache:
    """Owns the lifecycle of the live inference engine.

    Shared across tasks so unchanged models are not downloaded again. The
    slot lock guards against a cancelled background build finishing late;
    the inference lock keeps an abandoned job and its successor from running
    the engine at the same time.
    """

    def __init__(self, factory: EngineFactory, fallback_device: Device = Device.CPU) -> None:
        self._factory = factory
        self._fallback_device = fallback_device
        self._lock = threading.Lock()
        self._infer_lock = threading.Lock()
        self._engine: Engine | None = None
        self._descriptor: ModelDescriptor | None = None
        self._generation = 0
        self.construction_count = 0

    @property
    def descriptor(self) -> ModelDescriptor | None:
        """Descriptor of the cached engine, after any device fallback."""
        with self._lock:
            return self._descriptor

    def is_loaded(self, descriptor: ModelDescriptor | None = None) -> bool:
        with self._lock:
            if self._engine is None:
                return False
            return descriptor is None or self._descriptor == descriptor

    def acquire(
        self,
        descriptor: ModelDescriptor,
        on_progress: ProgressCallback | None = None,
    ) -> Engine:
        """Return an engine for descriptor, building it if needed.

        Args:
            descriptor: Requested (model_id, device)
            on_progress: Receives asset download events during construction

        Returns:
            The cached or newly constructed engine

        Raises:
            ConstructionError: If both the requested and fallback builds fail
            CancellationError: If discard_pending() was called mid-build
        """
        with self._lock:
            if self._engine is not None and self._descriptor == descriptor:
                logger.debug("Reusing cached engine for %s", descriptor)
                return self._engine
            generation = self._generation

        engine, resolved = self._construct(descriptor, on_progress)

        with self._lock:
            if generation != self._generation:
                logger.debug("Dropping discarded engine build for %s", resolved)
                raise CancellationError(f"Engine construction for {resolved} was discarded")
            previous = self._engine
            self._engine = engine
            self._descriptor = resolved

        if previous is not None and previous is not engine:
            _close_engine(previous)
        return engine

    def _construct(
        self,
        descriptor: ModelDescriptor,
        on_progress: ProgressCallback | None,
    ) -> tuple[Engine, ModelDescriptor]:
        logger.info("Building engine for %s", descriptor)
        try:
            self.construction_count += 1
            return self._factory(descriptor, on_progress), descriptor
        except Exception as e:
            if descriptor.device == self._fallback_device:
                raise ConstructionError(f"Failed to load {descriptor}: {e}") from e
            logger.warning(
                "Engine build on %s failed (%s), falling back to %s",
                descriptor.device.value,
                e,
                self._fallback_device.value,
            )

        fallback = descriptor.with_device(self._fallback_device)
        try:
            self.construction_count += 1
            return self._factory(fallback, on_progress), fallback
        except Exception as e:
            raise ConstructionError(f"Failed to load {fallback}: {e}") from e

    def infer(self, engine: Engine, samples: np.ndarray, options: dict[str, Any]) -> dict[str, Any]:
        """Run engine.infer, waiting for any inference already in progress.

        A cancelled task's thread may still be inside the engine when the
        next task reaches inference; it finishes first.
        """
        if not self._infer_lock.acquire(blocking=False):
            logger.debug("Waiting for an abandoned inference to finish")
            self._infer_lock.acquire()
        try:
            return engine.infer(samples, options)
        finally:
            self._infer_lock.release()

    def discard_pending(self) -> None:
        """Invalidate any construction still in flight.

        A build that finishes afterwards is not installed, so the next
        acquire starts from a clean slot.
        """
        with self._lock:
            self._generation += 1

    def clear(self) -> None:
        """Drop the cached engine."""
        with self._lock:
            previous = self._engine
            self._engine = None
            self._descriptor = None
            self._generation += 1
        if previous is not None:
            _close_engine(previous)


def _close_engine(engine: Engine) -> None:
    close = getattr(engine, "close", None)
    if callable(close):
        close()
