"""
localscribe.engine.transformers_backend - Whisper via Hugging Face transformers.

Fetches the model assets (reporting per-file progress), builds an
automatic-speech-recognition pipeline on the requested device and returns
word-level chunks.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from localscribe.engine.assets import fetch_model_assets
from localscribe.engine.base import ProgressCallback
from localscribe.exceptions import ConstructionError, DependencyError, TranscriptionError
from localscribe.logging import get_logger
from localscribe.models import SAMPLE_RATE, Device, ModelDescriptor

logger = get_logger("engine.transformers")

ASSET_PATTERNS = ("*.json", "*.txt", "model.safetensors")
ASSET_EXCLUDE = ("*onnx*",)


def resolve_torch_device(device: Device) -> str:
    """Map a Device onto a torch device string.

    Raises:
        ConstructionError: If a GPU is requested but none is available
    """
    if device == Device.CPU:
        return "cpu"

    import torch

    if torch.cuda.is_available():
        return "cuda:0"
    mps = getattr(torch.backends, "mps", None)
    if mps is not None and mps.is_available():
        return "mps"
    raise ConstructionError("No CUDA or MPS device available for GPU inference")


class TransformersEngine:
    """Wraps a transformers ASR pipeline behind Engine.infer."""

    def __init__(self, asr_pipeline: Any, descriptor: ModelDescriptor) -> None:
        self._pipeline = asr_pipeline
        self.descriptor = descriptor

    def infer(self, samples: np.ndarray, options: dict[str, Any]) -> dict[str, Any]:
        generate_kwargs = {"task": options.get("task", "transcribe")}
        if options.get("language"):
            generate_kwargs["language"] = options["language"]

        try:
            output = self._pipeline(
                {"raw": np.array(samples, dtype=np.float32), "sampling_rate": SAMPLE_RATE},
                chunk_length_s=options.get("chunk_length_s", 30),
                stride_length_s=options.get("stride_length_s", 5),
                return_timestamps=options.get("return_timestamps", "word"),
                generate_kwargs=generate_kwargs,
            )
        except Exception as e:
            raise TranscriptionError(f"Transcription failed: {e}") from e

        return _parse_pipeline_output(output)

    def close(self) -> None:
        self._pipeline = None


def _parse_pipeline_output(output: dict[str, Any]) -> dict[str, Any]:
    """Normalize pipeline output into {"text", "chunks": [{"text", "timestamp"}]}."""
    chunks = []
    for chunk in output.get("chunks") or []:
        timestamp = chunk.get("timestamp") or (None, None)
        chunks.append(
            {
                "text": chunk.get("text", ""),
                "timestamp": [timestamp[0], timestamp[1]],
            }
        )
    return {"text": output.get("text", ""), "chunks": chunks}


def build_transformers_engine(
    descriptor: ModelDescriptor,
    on_progress: ProgressCallback | None = None,
) -> TransformersEngine:
    """EngineFactory for the transformers backend."""
    try:
        from transformers import pipeline
    except ImportError as e:
        raise DependencyError(
            "transformers",
            "not installed",
            install_hint="pip install 'localscribe[engine]'",
        ) from e

    torch_device = resolve_torch_device(descriptor.device)
    model_dir = fetch_model_assets(
        descriptor.model_id,
        ASSET_PATTERNS,
        on_progress=on_progress,
        exclude=ASSET_EXCLUDE,
    )

    logger.info("Loading %s on %s", descriptor.model_id, torch_device)
    asr_pipeline = pipeline(descriptor.task, model=str(model_dir), device=torch_device)
    return TransformersEngine(asr_pipeline, descriptor)
