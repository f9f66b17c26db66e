"""
localscribe.export.subtitles - SRT, WebVTT, JSON and plain-text output.

Renderers accept a TranscriptionResult or its JSON dict form. Missing fields
are replaced with safe defaults (start 0, end start + 1, empty text) rather
than aborting the export.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

from localscribe.diarize import speaker_turns
from localscribe.exceptions import ExportError
from localscribe.export.timecode import srt_timestamp, vtt_timestamp
from localscribe.io import write_text
from localscribe.models import TranscriptionResult

VTT_HEADER = "WEBVTT\n\n"


class SubtitleFormat(str, Enum):
    SRT = "srt"
    VTT = "vtt"
    JSON = "json"
    TXT = "txt"


def _coerce_format(fmt: SubtitleFormat | str) -> SubtitleFormat:
    if isinstance(fmt, SubtitleFormat):
        return fmt
    try:
        return SubtitleFormat(str(fmt).lower())
    except ValueError as e:
        valid = ", ".join(f.value for f in SubtitleFormat)
        raise ExportError(f"Unknown export format '{fmt}'; expected one of: {valid}") from e


def _coerce_result(result: TranscriptionResult | dict[str, Any] | None) -> TranscriptionResult:
    if isinstance(result, TranscriptionResult):
        return result
    return TranscriptionResult.from_output(result)


def format_timestamp(seconds: float, fmt: SubtitleFormat | str = SubtitleFormat.SRT) -> str:
    """Cue timestamp for a subtitle format ("," before millis for SRT, "." for VTT)."""
    if _coerce_format(fmt) == SubtitleFormat.VTT:
        return vtt_timestamp(seconds)
    return srt_timestamp(seconds)


def render(result: TranscriptionResult | dict[str, Any], fmt: SubtitleFormat | str) -> str:
    """Render a transcript as SRT or WebVTT cues, one cue per chunk.

    Args:
        result: Transcript to render
        fmt: "srt" or "vtt"

    Returns:
        Subtitle file contents

    Raises:
        ExportError: If fmt is not a subtitle format
    """
    subtitle_format = _coerce_format(fmt)
    if subtitle_format not in (SubtitleFormat.SRT, SubtitleFormat.VTT):
        raise ExportError(f"'{subtitle_format.value}' is not a subtitle format")

    transcript = _coerce_result(result)
    is_srt = subtitle_format == SubtitleFormat.SRT

    lines = [] if is_srt else [VTT_HEADER]
    for i, chunk in enumerate(transcript.chunks):
        if is_srt:
            lines.append(f"{i + 1}\n")
        start = format_timestamp(chunk.start, subtitle_format)
        end = format_timestamp(chunk.end_or_default, subtitle_format)
        lines.append(f"{start} --> {end}\n")
        lines.append(f"{chunk.text.strip()}\n\n")

    return "".join(lines)


def render_json(result: TranscriptionResult | dict[str, Any], indent: int = 2) -> str:
    """Serialize a transcript with the stable text/chunks/timestamp/speaker keys."""
    return json.dumps(_coerce_result(result).to_dict(), indent=indent, ensure_ascii=False)


def render_text(result: TranscriptionResult | dict[str, Any]) -> str:
    """Plain transcript, one paragraph per speaker turn."""
    transcript = _coerce_result(result)
    if not any(chunk.speaker for chunk in transcript.chunks):
        return transcript.text.strip() + "\n"

    paragraphs = []
    for turn in speaker_turns(transcript.chunks):
        prefix = f"{turn.speaker}: " if turn.speaker else ""
        paragraphs.append(f"[{srt_timestamp(turn.start)}] {prefix}{turn.text}")
    return "\n\n".join(paragraphs) + "\n"


def render_as(result: TranscriptionResult | dict[str, Any], fmt: SubtitleFormat | str) -> str:
    """Render in any supported output format."""
    output_format = _coerce_format(fmt)
    if output_format == SubtitleFormat.JSON:
        return render_json(result) + "\n"
    if output_format == SubtitleFormat.TXT:
        return render_text(result)
    return render(result, output_format)


def format_from_path(path: Path) -> SubtitleFormat:
    """Infer the output format from a file suffix."""
    suffix = path.suffix.lstrip(".")
    if not suffix:
        raise ExportError(f"Cannot infer export format from '{path}'")
    return _coerce_format(suffix)


def write_subtitles(
    result: TranscriptionResult | dict[str, Any],
    path: Path,
    fmt: SubtitleFormat | str | None = None,
) -> Path:
    """Render and atomically write a transcript to path.

    Args:
        result: Transcript to write
        path: Destination file
        fmt: Output format; inferred from the suffix when None

    Returns:
        The written path
    """
    output_format = _coerce_format(fmt) if fmt is not None else format_from_path(path)
    write_text(path, render_as(result, output_format))
    return path
