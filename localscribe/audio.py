"""
localscribe.audio - Media loading into 16kHz mono float32 samples.

WAV, FLAC and OGG are decoded with soundfile; other audio/video containers
go through FFmpeg. Multichannel audio is downmixed by averaging channels and
resampled to 16kHz with librosa.
"""

from __future__ import annotations

import io
import mimetypes
import subprocess
from pathlib import Path

import librosa
import numpy as np
import soundfile as sf

from localscribe.exceptions import DependencyError, InputError
from localscribe.models import SAMPLE_RATE

SOUNDFILE_SUFFIXES = {".wav", ".flac", ".ogg"}
EXTRA_MEDIA_SUFFIXES = {".webm", ".m4a", ".mkv", ".opus"}


def is_media_file(path: Path) -> bool:
    """True if the file looks like audio or video by its type."""
    if path.suffix.lower() in SOUNDFILE_SUFFIXES | EXTRA_MEDIA_SUFFIXES:
        return True
    mime, _ = mimetypes.guess_type(path.name)
    return bool(mime) and mime.split("/", 1)[0] in {"audio", "video"}


def to_mono_16k(audio: np.ndarray, sample_rate: int) -> np.ndarray:
    """Downmix (frames, channels) audio by averaging and resample to 16kHz."""
    samples = np.asarray(audio, dtype=np.float32)
    if samples.ndim == 2:
        samples = samples.mean(axis=1, dtype=np.float32)
    if sample_rate != SAMPLE_RATE:
        samples = librosa.resample(samples, orig_sr=sample_rate, target_sr=SAMPLE_RATE)
    return np.ascontiguousarray(samples, dtype=np.float32)


def _require_samples(samples: np.ndarray, source: str) -> np.ndarray:
    if samples.size == 0:
        raise InputError(f"No audio samples in {source}")
    return samples


def decode_wav_bytes(data: bytes) -> np.ndarray:
    """Decode an in-memory WAV payload to 16kHz mono float32.

    Raises:
        InputError: If the payload is not decodable audio or is empty
    """
    if not data:
        raise InputError("Empty audio payload")
    try:
        audio, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
    except (RuntimeError, ValueError) as e:
        raise InputError(
            f"Failed to process audio. Make sure it is a valid WAV file ({e})"
        ) from e
    return to_mono_16k(_require_samples(audio, "WAV payload"), sample_rate)


def decode_with_ffmpeg(path: Path) -> np.ndarray:
    """Decode any FFmpeg-readable media to 16kHz mono float32.

    Raises:
        DependencyError: If ffmpeg is not on PATH
        InputError: If FFmpeg cannot decode the file
    """
    cmd = [
        "ffmpeg",
        "-nostdin",
        "-i",
        str(path),
        "-vn",
        "-f",
        "f32le",
        "-acodec",
        "pcm_f32le",
        "-ar",
        str(SAMPLE_RATE),
        "-ac",
        "1",
        "-",
    ]
    try:
        proc = subprocess.run(cmd, capture_output=True)
    except FileNotFoundError as e:
        raise DependencyError(
            "ffmpeg",
            "not found on PATH",
            install_hint="Install with: brew install ffmpeg / apt install ffmpeg",
        ) from e
    if proc.returncode != 0:
        stderr = proc.stderr.decode("utf-8", errors="replace").strip().splitlines()
        detail = stderr[-1] if stderr else f"exit code {proc.returncode}"
        raise InputError(f"Failed to decode {path.name}: {detail}")

    return _require_samples(np.frombuffer(proc.stdout, dtype=np.float32).copy(), path.name)


def load_media(path: Path) -> np.ndarray:
    """Load an audio or video file as 16kHz mono float32 samples.

    Raises:
        InputError: If the file is missing, not media, undecodable or empty
    """
    if not path.exists():
        raise InputError(f"File not found: {path}")
    if not is_media_file(path):
        raise InputError(
            "Please provide a valid audio or video file (e.g., WAV, MP3, MP4, WebM)."
        )

    if path.suffix.lower() in SOUNDFILE_SUFFIXES:
        try:
            audio, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
        except (RuntimeError, ValueError) as e:
            raise InputError(f"Failed to decode {path.name}: {e}") from e
        return to_mono_16k(_require_samples(audio, path.name), sample_rate)

    return decode_with_ffmpeg(path)
