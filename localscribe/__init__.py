"""
localscribe - Local speech-to-text with speaker tags and subtitle export.

Takes raw audio or video and produces a time-aligned transcript on the local
machine: model download → background inference → pause-based diarization →
SRT, VTT or JSON export.
"""

__version__ = "0.1.0"
