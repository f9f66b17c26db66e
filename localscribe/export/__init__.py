"""
localscribe.export - Transcript export.

Subtitle formats for players and editors:
- SRT - numbered cues, comma millisecond separator
- WebVTT - WEBVTT header, dot millisecond separator
plus JSON (text, chunks[].text, chunks[].timestamp, chunks[].speaker) and a
speaker-turn plain-text transcript.
"""

from __future__ import annotations
