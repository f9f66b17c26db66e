"""
localscribe.engine.faster_whisper_backend - Whisper via CTranslate2.

Uses faster-whisper converted checkpoints ("Systran/faster-whisper-<size>").
Model ids of the form "openai/whisper-<size>" are mapped onto them so the
same config works for both backends.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from localscribe.engine.assets import fetch_model_assets
from localscribe.engine.base import ProgressCallback
from localscribe.exceptions import DependencyError, TranscriptionError
from localscribe.logging import get_logger
from localscribe.models import Device, ModelDescriptor

logger = get_logger("engine.faster_whisper")

ASSET_PATTERNS = ("config.json", "model.bin", "tokenizer.json", "vocabulary.*")

LANGUAGE_CODES = {
    "english": "en",
    "turkish": "tr",
    "spanish": "es",
    "french": "fr",
    "german": "de",
    "italian": "it",
}


def faster_whisper_repo(model_id: str) -> str:
    """Map "openai/whisper-tiny" (or "tiny") to "Systran/faster-whisper-tiny"."""
    name = model_id.rsplit("/", 1)[-1]
    if name.startswith("faster-whisper-"):
        return model_id if "/" in model_id else f"Systran/{name}"
    if name.startswith("whisper-"):
        name = name[len("whisper-") :]
    return f"Systran/faster-whisper-{name}"


class FasterWhisperEngine:
    """Wraps a faster_whisper.WhisperModel behind Engine.infer."""

    def __init__(self, model: Any, descriptor: ModelDescriptor) -> None:
        self._model = model
        self.descriptor = descriptor

    def infer(self, samples: np.ndarray, options: dict[str, Any]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "word_timestamps": True,
            "task": options.get("task", "transcribe"),
        }
        language = options.get("language")
        if language:
            kwargs["language"] = LANGUAGE_CODES.get(language, language)

        try:
            segments, _info = self._model.transcribe(np.array(samples, dtype=np.float32), **kwargs)
            chunks = []
            for segment in segments:
                for word in segment.words or []:
                    chunks.append({"text": word.word, "timestamp": [word.start, word.end]})
        except Exception as e:
            raise TranscriptionError(f"Transcription failed: {e}") from e

        return {"text": "".join(chunk["text"] for chunk in chunks), "chunks": chunks}

    def close(self) -> None:
        self._model = None


def build_faster_whisper_engine(
    descriptor: ModelDescriptor,
    on_progress: ProgressCallback | None = None,
) -> FasterWhisperEngine:
    """EngineFactory for the faster-whisper backend."""
    try:
        from faster_whisper import WhisperModel
    except ImportError as e:
        raise DependencyError(
            "faster-whisper",
            "not installed",
            install_hint="pip install 'localscribe[faster]'",
        ) from e

    model_dir = fetch_model_assets(
        faster_whisper_repo(descriptor.model_id),
        ASSET_PATTERNS,
        on_progress=on_progress,
    )

    device = "cuda" if descriptor.device == Device.GPU else "cpu"
    logger.info("Loading %s on %s", model_dir, device)
    model = WhisperModel(str(model_dir), device=device, compute_type="auto")
    return FasterWhisperEngine(model, descriptor)
