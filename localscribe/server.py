"""
localscribe.server - FastAPI ingestion endpoint.

POST /api/transcribe takes a multipart WAV upload ("audio") and an optional
"language" field, runs it through the same TaskController as the CLI, and
returns {"success": true, "data": <transcript JSON>}. Requests are served one
at a time; the loaded engine is shared between them.
"""

from __future__ import annotations

import threading

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse

from localscribe import __version__
from localscribe.audio import decode_wav_bytes
from localscribe.config import ScribeConfig
from localscribe.controller import TaskController
from localscribe.engine.cache import EngineCache
from localscribe.exceptions import CancellationError, InputError, TranscriptionError
from localscribe.logging import get_logger
from localscribe.registry import MemoryModelRegistry
from localscribe.session import build_request, create_controller, create_engine_cache

logger = get_logger("server")


def create_app(
    config: ScribeConfig | None = None,
    controller: TaskController | None = None,
    engine_cache: EngineCache | None = None,
    task_timeout: float | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        config: Server configuration; defaults to ScribeConfig()
        controller: Pre-built controller; one is created from config when None
        engine_cache: Cache for the controller built from config; ignored
            when a controller is passed in
        task_timeout: Seconds before a running transcription is abandoned
    """
    config = config or ScribeConfig()
    if controller is None:
        engine_cache = engine_cache or create_engine_cache(config)
        controller = create_controller(
            config, engine_cache=engine_cache, registry=MemoryModelRegistry()
        )
    engine_cache = controller.engine_cache
    task_lock = threading.Lock()

    app = FastAPI(
        title="localscribe",
        description="Local Whisper transcription with word timestamps and speaker tags",
        version=__version__,
    )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "model_loaded": engine_cache.is_loaded()}

    @app.post("/api/transcribe")
    def transcribe(
        audio: UploadFile | None = File(None),
        language: str | None = Form(None),
    ) -> JSONResponse:
        if audio is None:
            return JSONResponse(status_code=400, content={"error": "No audio file provided"})

        try:
            samples = decode_wav_bytes(audio.file.read())
            request = build_request(samples, config, language=language)
        except InputError as e:
            return JSONResponse(status_code=400, content={"error": str(e)})

        with task_lock:
            try:
                result = controller.run(request, timeout=task_timeout)
            except InputError as e:
                return JSONResponse(status_code=400, content={"error": str(e)})
            except (TranscriptionError, CancellationError) as e:
                logger.error("Transcription error: %s", e)
                return JSONResponse(status_code=500, content={"error": str(e)})

        return JSONResponse(content={"success": True, "data": result.to_dict()})

    return app
