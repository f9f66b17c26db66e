"""
localscribe.export.timecode - Subtitle timestamp formatting.

SRT and WebVTT both use HH:MM:SS plus milliseconds and differ only in the
fractional separator. Hours keep counting past 24.
"""

from __future__ import annotations

SRT_SEPARATOR = ","
VTT_SEPARATOR = "."


def seconds_to_timestamp(seconds: float, separator: str = SRT_SEPARATOR) -> str:
    """Convert float seconds to HH:MM:SS<sep>mmm.

    Args:
        seconds: Time in seconds; negative values clamp to zero
        separator: Fractional separator ("," for SRT, "." for VTT)

    Returns:
        Timestamp string, e.g. "00:01:05,500"
    """
    total_ms = max(0, round(seconds * 1000))

    ms = total_ms % 1000
    total_seconds = total_ms // 1000
    ss = total_seconds % 60
    mm = (total_seconds // 60) % 60
    hh = total_seconds // 3600

    return f"{hh:02d}:{mm:02d}:{ss:02d}{separator}{ms:03d}"


def srt_timestamp(seconds: float) -> str:
    return seconds_to_timestamp(seconds, SRT_SEPARATOR)


def vtt_timestamp(seconds: float) -> str:
    return seconds_to_timestamp(seconds, VTT_SEPARATOR)

