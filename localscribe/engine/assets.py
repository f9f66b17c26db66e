"""
localscribe.engine.assets - Model asset fetching with per-file progress events.

Lists the files of a Hugging Face model repo, keeps the ones a backend needs,
and downloads each into the local hub cache, reporting initiate / progress /
done events as it goes. Download progress is reported byte by byte. Files
already in the cache are reported as complete without being fetched again,
and a model already in the cache still loads when the Hub is unreachable or
HF_HUB_OFFLINE is set.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from fnmatch import fnmatch
from pathlib import Path

from localscribe.engine.base import ProgressCallback
from localscribe.exceptions import DependencyError
from localscribe.logging import get_logger

logger = get_logger("engine.assets")

OFFLINE_VALUES = ("1", "true", "yes", "on")


def _emit(on_progress: ProgressCallback | None, status: str, **fields) -> None:
    if on_progress is not None:
        on_progress({"status": status, **fields})


def _hub_offline() -> bool:
    return os.environ.get("HF_HUB_OFFLINE", "").strip().lower() in OFFLINE_VALUES


def select_asset_files(
    files: Sequence[tuple[str, int]],
    patterns: Sequence[str],
    exclude: Sequence[str] = (),
) -> list[tuple[str, int]]:
    """Filter (file name, size) pairs down to root-level files matching patterns."""
    selected = []
    for name, size in files:
        if "/" in name:
            continue
        if any(fnmatch(name, pattern) for pattern in exclude):
            continue
        if any(fnmatch(name, pattern) for pattern in patterns):
            selected.append((name, size))
    return selected


def byte_progress_class(
    base: type,
    file_name: str,
    size: int,
    on_progress: ProgressCallback | None,
) -> type:
    """Build a silent progress-bar class that reports downloaded bytes.

    huggingface_hub drives the bar with update(n) for every chunk it writes;
    each call becomes a "progress" event carrying the running byte count.
    """

    class ByteProgress(base):
        def __init__(self, *args, **kwargs) -> None:
            kwargs["disable"] = True
            super().__init__(*args, **kwargs)
            self.loaded = int(kwargs.get("initial") or 0)

        def update(self, n=1):
            self.loaded += int(n or 0)
            total = int(getattr(self, "total", None) or size)
            _emit(on_progress, "progress", file=file_name, loaded=self.loaded, total=total)
            return super().update(n)

    return ByteProgress


def _cached_snapshot(
    snapshot_download,
    repo_id: str,
    patterns: Sequence[str],
    exclude: Sequence[str],
    on_progress: ProgressCallback | None,
) -> Path | None:
    """Report and return the cached snapshot of repo_id, or None if it is not cached."""
    try:
        local_dir = Path(
            snapshot_download(
                repo_id,
                allow_patterns=list(patterns),
                ignore_patterns=list(exclude) or None,
                local_files_only=True,
            )
        )
    except OSError as e:
        logger.debug("No cached snapshot of %s: %s", repo_id, e)
        return None

    listing = [(p.name, p.stat().st_size) for p in sorted(local_dir.iterdir()) if p.is_file()]
    wanted = select_asset_files(listing, patterns, exclude)
    if not wanted:
        return None

    for name, size in wanted:
        _emit(on_progress, "initiate", file=name)
        _emit(on_progress, "progress", file=name, loaded=size, total=size)
        _emit(on_progress, "done", file=name)
    return local_dir


def fetch_model_assets(
    repo_id: str,
    patterns: Sequence[str],
    on_progress: ProgressCallback | None = None,
    exclude: Sequence[str] = (),
) -> Path:
    """Download the files a backend needs from a model repo.

    Args:
        repo_id: Hugging Face repo id, e.g. "openai/whisper-tiny"
        patterns: Glob patterns of root-level files to fetch
        on_progress: Receives initiate / progress / done events per file
        exclude: Glob patterns to skip even when they match

    Returns:
        Local directory holding the fetched files

    Raises:
        DependencyError: If huggingface_hub is not installed
        OSError: If the repo cannot be listed or a download fails and the
            model is not in the local cache
    """
    try:
        from huggingface_hub import (
            HfApi,
            hf_hub_download,
            snapshot_download,
            try_to_load_from_cache,
        )
        from huggingface_hub.utils import tqdm as hub_tqdm
    except ImportError as e:
        raise DependencyError(
            "huggingface_hub",
            "not installed",
            install_hint="pip install 'localscribe[engine]'",
        ) from e

    if _hub_offline():
        local_dir = _cached_snapshot(snapshot_download, repo_id, patterns, exclude, on_progress)
        if local_dir is None:
            raise OSError(f"{repo_id} is not in the local cache and HF_HUB_OFFLINE is set")
        logger.info("Offline mode: loading %s from the local cache", repo_id)
        return local_dir

    try:
        info = HfApi().model_info(repo_id, files_metadata=True)
    except Exception as e:
        local_dir = _cached_snapshot(snapshot_download, repo_id, patterns, exclude, on_progress)
        if local_dir is None:
            raise
        logger.warning("Could not reach the Hub for %s (%s); using the local cache", repo_id, e)
        return local_dir

    listing = [(s.rfilename, s.size or 0) for s in info.siblings or []]
    wanted = select_asset_files(listing, patterns, exclude)
    if not wanted:
        raise OSError(f"No usable model files found in {repo_id}")

    local_dir = Path()
    for name, size in wanted:
        _emit(on_progress, "initiate", file=name)

        cached = try_to_load_from_cache(repo_id, name, revision=info.sha)
        if isinstance(cached, str):
            logger.debug("Using cached %s/%s", repo_id, name)
            path = Path(cached)
        else:
            _emit(on_progress, "progress", file=name, loaded=0, total=size)
            logger.info("Downloading %s/%s (%d bytes)", repo_id, name, size)
            progress_class = byte_progress_class(hub_tqdm, name, size, on_progress)
            path = Path(
                hf_hub_download(repo_id, name, revision=info.sha, tqdm_class=progress_class)
            )

        _emit(on_progress, "progress", file=name, loaded=size, total=size)
        _emit(on_progress, "done", file=name)
        local_dir = path.parent

    return local_dir
