"""
localscribe.utils - Shared formatting helpers.

Contains common functions used by the CLI and the HTTP server.
"""

from __future__ import annotations

import math


def format_duration(seconds: float) -> str:
    """Format seconds as HH:MM:SS or MM:SS.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (H:MM:SS if >= 1 hour, otherwise M:SS)
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_eta(seconds: float) -> str:
    """Format a download ETA.

    Zero, negative or infinite values mean the speed is not known yet.

    Returns:
        "Calculating...", "42s" or "3m 5s"
    """
    if not seconds or seconds < 0 or math.isinf(seconds) or math.isnan(seconds):
        return "Calculating..."
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_megabytes(num_bytes: float) -> str:
    """Format a byte count as megabytes with one decimal, e.g. "72.9 MB"."""
    return f"{num_bytes / (1024 * 1024):.1f} MB"
