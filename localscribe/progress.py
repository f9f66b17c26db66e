"""
localscribe.progress - Aggregate download progress across model asset files.

The set of files an engine needs is discovered while it loads, so totals grow
as new files are initiated. Throughput is resampled at most every half second
to keep the reported speed and ETA from jittering.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from localscribe.models import FileDownloadState, ProgressSnapshot

SPEED_SAMPLE_INTERVAL = 0.5


class ProgressAggregator:
    """Folds per-file download events into one global snapshot.

    One instance lives as long as its owner and is reset at the start of
    every task rather than rebuilt.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._files: dict[str, FileDownloadState] = {}
        self._last_file: str | None = None
        self._sample_time = clock()
        self._sample_loaded = 0
        self._speed = 0.0

    def reset(self) -> None:
        """Forget all files and restart the rolling speed estimate."""
        self._files = {}
        self._last_file = None
        self._sample_time = self._clock()
        self._sample_loaded = 0
        self._speed = 0.0

    @property
    def files(self) -> dict[str, FileDownloadState]:
        return {name: state.model_copy() for name, state in self._files.items()}

    def on_file_initiated(self, file_name: str) -> None:
        if file_name not in self._files:
            self._files[file_name] = FileDownloadState(file_name=file_name)
        self._last_file = file_name

    def on_file_progress(self, file_name: str, loaded: int | float, total: int | float) -> None:
        state = self._files.setdefault(file_name, FileDownloadState(file_name=file_name))
        state.loaded = max(0, int(loaded or 0))
        state.total = max(0, int(total or 0))
        self._last_file = file_name

        global_loaded, _ = self._totals()
        now = self._clock()
        elapsed = now - self._sample_time
        if elapsed >= SPEED_SAMPLE_INTERVAL:
            self._speed = max(0.0, (global_loaded - self._sample_loaded) / elapsed)
            self._sample_time = now
            self._sample_loaded = global_loaded

    def on_file_done(self, file_name: str) -> None:
        state = self._files.get(file_name)
        if state is None:
            return
        state.loaded = state.total
        self._last_file = file_name

    def _totals(self) -> tuple[int, int]:
        loaded = sum(state.loaded for state in self._files.values())
        total = sum(state.total for state in self._files.values())
        return loaded, total

    def snapshot(self) -> ProgressSnapshot:
        loaded, total = self._totals()
        if total <= 0:
            return ProgressSnapshot(loaded=loaded, total=0, file=self._last_file)

        speed = self._speed
        remaining = max(0, total - loaded)
        eta = remaining / speed if speed > 0 else 0.0
        percentage = min(100.0, max(0.0, loaded / total * 100))

        return ProgressSnapshot(
            loaded=loaded,
            total=total,
            speed=speed,
            eta=eta,
            percentage=percentage,
            file=self._last_file,
        )
