"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import numpy as np
import pytest

from localscribe.engine.cache import EngineCache
from localscribe.models import Device, ModelDescriptor, TranscriptionRequest
from localscribe.worker import MessageSink, WorkerMessage


class FakeEngine:
    """Engine that returns canned output and records its calls."""

    def __init__(self, descriptor: ModelDescriptor, output: dict[str, Any] | None = None) -> None:
        self.descriptor = descriptor
        self.output = output if output is not None else {"text": "", "chunks": []}
        self.calls: list[dict[str, Any]] = []
        self.closed = False
        self.error: Exception | None = None

    def infer(self, samples: np.ndarray, options: dict[str, Any]) -> dict[str, Any]:
        self.calls.append({"samples": samples, "options": options})
        if self.error is not None:
            raise self.error
        return self.output

    def close(self) -> None:
        self.closed = True


class FakeFactory:
    """EngineFactory that emits download events and can fail per device."""

    def __init__(
        self,
        output: dict[str, Any] | None = None,
        failing_devices: set[Device] | None = None,
        files: dict[str, int] | None = None,
    ) -> None:
        self.output = output
        self.failing_devices = failing_devices or set()
        self.files = files or {}
        self.calls: list[ModelDescriptor] = []
        self.engines: list[FakeEngine] = []

    def __call__(self, descriptor: ModelDescriptor, on_progress=None) -> FakeEngine:
        self.calls.append(descriptor)
        if descriptor.device in self.failing_devices:
            raise RuntimeError(f"{descriptor.device.value} backend unavailable")
        for name, size in self.files.items():
            if on_progress is not None:
                on_progress({"status": "initiate", "file": name})
                on_progress({"status": "progress", "file": name, "loaded": size, "total": size})
                on_progress({"status": "done", "file": name})
        engine = FakeEngine(descriptor, self.output)
        self.engines.append(engine)
        return engine


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InlineExecutionContext:
    """Runs the job synchronously inside submit()."""

    def __init__(self, sink: MessageSink) -> None:
        self.sink = sink
        self.discarded = False

    def post(self, message: WorkerMessage) -> None:
        if not self.discarded:
            self.sink(message)

    def submit(self, job: Callable[..., None], *args: Any) -> None:
        job(*args, self.post)

    def discard(self) -> None:
        self.discarded = True


class ManualExecutionContext:
    """Holds the job without running it; tests post messages by hand."""

    instances: list[ManualExecutionContext] = []

    def __init__(self, sink: MessageSink) -> None:
        self.sink = sink
        self.discarded = False
        self.job: Callable[..., None] | None = None
        self.args: tuple[Any, ...] = ()
        ManualExecutionContext.instances.append(self)

    def post(self, message: WorkerMessage) -> None:
        if not self.discarded:
            self.sink(message)

    def submit(self, job: Callable[..., None], *args: Any) -> None:
        self.job = job
        self.args = args

    def run(self) -> None:
        assert self.job is not None
        self.job(*self.args, self.post)

    def discard(self) -> None:
        self.discarded = True


@pytest.fixture
def sample_output() -> dict[str, Any]:
    """Raw engine output: two words, a 3s pause, two more words."""
    return {
        "text": " Hello there. General Kenobi.",
        "chunks": [
            {"text": " Hello", "timestamp": [0.0, 0.5]},
            {"text": " there.", "timestamp": [0.6, 1.0]},
            {"text": " General", "timestamp": [4.0, 4.5]},
            {"text": " Kenobi.", "timestamp": [4.6, 5.2]},
        ],
    }


@pytest.fixture
def fake_factory(sample_output: dict[str, Any]) -> FakeFactory:
    return FakeFactory(output=sample_output, files={"config.json": 1000, "model.bin": 9000})


@pytest.fixture
def engine_cache(fake_factory: FakeFactory) -> EngineCache:
    return EngineCache(fake_factory)


@pytest.fixture
def sample_request() -> TranscriptionRequest:
    return TranscriptionRequest(
        samples=np.zeros(16000, dtype=np.float32),
        model_id="openai/whisper-tiny",
        device=Device.CPU,
        language="english",
    )


@pytest.fixture(autouse=True)
def reset_manual_contexts() -> None:
    ManualExecutionContext.instances.clear()
