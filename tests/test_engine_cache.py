"""Tests for localscribe.engine.cache module."""

from __future__ import annotations

import numpy as np
import pytest
from conftest import FakeFactory

from localscribe.engine import get_engine_factory
from localscribe.engine.cache import EngineCache
from localscribe.exceptions import CancellationError, ConstructionError
from localscribe.models import Device, ModelDescriptor

TINY_CPU = ModelDescriptor(model_id="openai/whisper-tiny", device=Device.CPU)
TINY_GPU = ModelDescriptor(model_id="openai/whisper-tiny", device=Device.GPU)
BASE_CPU = ModelDescriptor(model_id="openai/whisper-base", device=Device.CPU)


class TestEngineCache:
    def test_same_descriptor_reuses_engine(self) -> None:
        factory = FakeFactory()
        cache = EngineCache(factory)
        first = cache.acquire(TINY_CPU)
        second = cache.acquire(TINY_CPU)
        assert first is second
        assert cache.construction_count == 1
        assert len(factory.calls) == 1

    def test_changed_model_rebuilds_and_closes_previous(self) -> None:
        factory = FakeFactory()
        cache = EngineCache(factory)
        first = cache.acquire(TINY_CPU)
        second = cache.acquire(BASE_CPU)
        assert second is not first
        assert first.closed
        assert cache.descriptor == BASE_CPU
        assert cache.construction_count == 2

    def test_changed_device_rebuilds(self) -> None:
        factory = FakeFactory()
        cache = EngineCache(factory)
        cache.acquire(TINY_CPU)
        cache.acquire(TINY_GPU)
        assert cache.descriptor == TINY_GPU
        assert cache.construction_count == 2

    def test_gpu_failure_falls_back_to_cpu(self) -> None:
        factory = FakeFactory(failing_devices={Device.GPU})
        cache = EngineCache(factory)
        engine = cache.acquire(TINY_GPU)
        assert engine.descriptor == TINY_CPU
        assert cache.descriptor == TINY_CPU
        assert cache.construction_count == 2
        assert [d.device for d in factory.calls] == [Device.GPU, Device.CPU]

    def test_cpu_failure_raises_without_retry(self) -> None:
        factory = FakeFactory(failing_devices={Device.CPU})
        cache = EngineCache(factory)
        with pytest.raises(ConstructionError, match="cpu backend unavailable"):
            cache.acquire(TINY_CPU)
        assert cache.construction_count == 1
        assert not cache.is_loaded()

    def test_both_devices_failing_raises(self) -> None:
        factory = FakeFactory(failing_devices={Device.CPU, Device.GPU})
        cache = EngineCache(factory)
        with pytest.raises(ConstructionError):
            cache.acquire(TINY_GPU)
        assert cache.construction_count == 2

    def test_failed_build_keeps_previous_engine(self) -> None:
        factory = FakeFactory()
        cache = EngineCache(factory)
        first = cache.acquire(TINY_CPU)
        factory.failing_devices = {Device.CPU}
        with pytest.raises(ConstructionError):
            cache.acquire(BASE_CPU)
        assert cache.is_loaded(TINY_CPU)
        assert not first.closed

    def test_progress_events_are_forwarded(self) -> None:
        factory = FakeFactory(files={"model.bin": 10})
        cache = EngineCache(factory)
        events: list[dict] = []
        cache.acquire(TINY_CPU, events.append)
        assert [e["status"] for e in events] == ["initiate", "progress", "done"]

    def test_discard_pending_prevents_install(self) -> None:
        cache = EngineCache(FakeFactory())

        def discarding_factory(descriptor, on_progress=None):
            cache.discard_pending()
            return FakeFactory()(descriptor)

        cache._factory = discarding_factory
        with pytest.raises(CancellationError):
            cache.acquire(TINY_CPU)
        assert not cache.is_loaded()
        assert cache.descriptor is None

    def test_clear_drops_engine(self) -> None:
        cache = EngineCache(FakeFactory())
        engine = cache.acquire(TINY_CPU)
        cache.clear()
        assert engine.closed
        assert not cache.is_loaded()
        cache.acquire(TINY_CPU)
        assert cache.construction_count == 2

    def test_is_loaded_with_descriptor(self) -> None:
        cache = EngineCache(FakeFactory())
        assert not cache.is_loaded()
        cache.acquire(TINY_CPU)
        assert cache.is_loaded()
        assert cache.is_loaded(TINY_CPU)
        assert not cache.is_loaded(BASE_CPU)

    def test_infer_runs_engine_and_releases_lock(self) -> None:
        cache = EngineCache(FakeFactory(output={"text": "hi", "chunks": []}))
        engine = cache.acquire(TINY_CPU)
        engine.error = RuntimeError("boom")
        with pytest.raises(RuntimeError, match="boom"):
            cache.infer(engine, np.zeros(4), {})

        engine.error = None
        assert cache.infer(engine, np.zeros(4), {"language": "en"}) == {"text": "hi", "chunks": []}
        assert engine.calls[-1]["options"] == {"language": "en"}


class TestGetEngineFactory:
    def test_unknown_backend_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown backend"):
            get_engine_factory("whisper.cpp")

    def test_transformers_backend(self) -> None:
        from localscribe.engine.transformers_backend import build_transformers_engine

        assert get_engine_factory("transformers") is build_transformers_engine

    def test_faster_backend(self) -> None:
        from localscribe.engine.faster_whisper_backend import build_faster_whisper_engine

        assert get_engine_factory("faster") is build_faster_whisper_engine
