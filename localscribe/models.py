"""
localscribe.models - Immutable data model for requests, progress and results.

Engine output arrives as loose dicts ({"text", "chunks": [{"text",
"timestamp": [start, end]}]}); the from_output constructors tolerate missing
or null fields so that downstream consumers never have to.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

ASR_TASK = "automatic-speech-recognition"
SAMPLE_RATE = 16000


class Device(str, Enum):
    """Compute device for the inference engine."""

    CPU = "cpu"
    GPU = "gpu"


class ModelDescriptor(BaseModel):
    """Identity of a cached engine: (model_id, device)."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    task: str = ASR_TASK
    model_id: str
    device: Device = Device.CPU

    def with_device(self, device: Device) -> ModelDescriptor:
        return self.model_copy(update={"device": device})

    def __str__(self) -> str:
        return f"{self.model_id} ({self.device.value})"


class TranscriptionRequest(BaseModel):
    """A single transcription job. Never mutated after submission."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, protected_namespaces=())

    samples: np.ndarray
    model_id: str
    device: Device = Device.CPU
    language: str = "english"
    task: str = "transcribe"
    chunk_length_s: float = Field(default=30.0, gt=0.0)
    stride_length_s: float = Field(default=5.0, ge=0.0)

    @field_validator("samples", mode="before")
    @classmethod
    def coerce_samples(cls, v: Any) -> np.ndarray:
        samples = np.array(v, dtype=np.float32)
        if samples.ndim != 1:
            raise ValueError("samples must be a 1-D mono buffer")
        samples.setflags(write=False)
        return samples

    @property
    def descriptor(self) -> ModelDescriptor:
        return ModelDescriptor(model_id=self.model_id, device=self.device)

    @property
    def duration_seconds(self) -> float:
        return len(self.samples) / SAMPLE_RATE

    def inference_options(self) -> dict[str, Any]:
        """Options handed to Engine.infer alongside the samples."""
        return {
            "chunk_length_s": self.chunk_length_s,
            "stride_length_s": self.stride_length_s,
            "return_timestamps": "word",
            "language": self.language,
            "task": self.task,
        }


class FileDownloadState(BaseModel):
    """Byte counters for one asset file of the engine being built."""

    file_name: str
    loaded: int = 0
    total: int = 0


class ProgressSnapshot(BaseModel):
    """Aggregate download progress across every tracked file."""

    model_config = ConfigDict(frozen=True)

    loaded: int = 0
    total: int = 0
    speed: float = 0.0
    eta: float = 0.0
    percentage: float = 0.0
    file: str | None = None

    @property
    def speed_mb(self) -> float:
        return self.speed / (1024 * 1024)


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # NaN and Infinity are valid JSON to Python but not valid times
    return number if math.isfinite(number) else None


class TranscriptionChunk(BaseModel):
    """One word (or short phrase) with its time bounds."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    start: float = 0.0
    end: float | None = None
    speaker: str | None = None

    @classmethod
    def from_output(cls, data: dict[str, Any]) -> TranscriptionChunk:
        """Build a chunk from an engine/JSON chunk dict, substituting defaults."""
        text = data.get("text")
        if text is None:
            text = data.get("word")
        timestamp = data.get("timestamp")
        if isinstance(timestamp, (list, tuple)):
            start = _as_float(timestamp[0]) if len(timestamp) > 0 else None
            end = _as_float(timestamp[1]) if len(timestamp) > 1 else None
        else:
            start = _as_float(data.get("start"))
            end = _as_float(data.get("end"))

        start = start if start is not None else 0.0
        if end is not None and end < start:
            end = start

        speaker = data.get("speaker")
        return cls(
            text=str(text) if text is not None else "",
            start=start,
            end=end,
            speaker=str(speaker) if speaker is not None else None,
        )

    @property
    def end_or_default(self) -> float:
        """End time, or one second after start when the engine gave none."""
        return self.end if self.end is not None else self.start + 1.0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "text": self.text,
            "timestamp": [self.start, self.end],
        }
        if self.speaker is not None:
            data["speaker"] = self.speaker
        return data


class TranscriptionResult(BaseModel):
    """Final transcript of one task; a rerun produces a new object."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    chunks: tuple[TranscriptionChunk, ...] = ()

    @classmethod
    def from_output(cls, data: dict[str, Any] | None) -> TranscriptionResult:
        data = data or {}
        raw_chunks = data.get("chunks") or []
        chunks = tuple(
            TranscriptionChunk.from_output(chunk)
            for chunk in raw_chunks
            if isinstance(chunk, dict)
        )
        text = data.get("text")
        if text is None:
            text = "".join(chunk.text for chunk in chunks)
        return cls(text=str(text), chunks=chunks)

    @property
    def duration_seconds(self) -> float:
        if not self.chunks:
            return 0.0
        return max(chunk.end_or_default for chunk in self.chunks)

    @property
    def speakers(self) -> list[str]:
        seen: list[str] = []
        for chunk in self.chunks:
            if chunk.speaker and chunk.speaker not in seen:
                seen.append(chunk.speaker)
        return seen

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "chunks": [chunk.to_dict() for chunk in self.chunks],
        }
