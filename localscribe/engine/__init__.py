"""
localscribe.engine - Inference engine lifecycle.

The engine is an opaque capability, infer(samples, options) -> output dict.
EngineCache holds at most one live engine keyed by ModelDescriptor; backends
build engines and report asset downloads while doing so.
"""

from __future__ import annotations

from localscribe.engine.base import Engine, EngineFactory


def get_engine_factory(backend: str = "transformers") -> EngineFactory:
    """Return the EngineFactory for a backend name.

    Backends import their heavy dependencies lazily, so selecting one does not
    require it to be installed until an engine is actually built.
    """
    if backend == "transformers":
        from localscribe.engine.transformers_backend import build_transformers_engine

        return build_transformers_engine
    if backend == "faster":
        from localscribe.engine.faster_whisper_backend import build_faster_whisper_engine

        return build_faster_whisper_engine
    raise ValueError(f"Unknown backend: {backend}")


__all__ = ["Engine", "EngineFactory", "get_engine_factory"]
