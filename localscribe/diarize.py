"""
localscribe.diarize - Pause-based speaker labelling.

A basic heuristic, not speaker identification: a silence longer than the
threshold between two consecutive chunks is taken as a change of speaker,
alternating between "Speaker 1" and "Speaker 2". No acoustic features are
used.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from localscribe.models import TranscriptionChunk

DEFAULT_PAUSE_THRESHOLD = 1.5


def speaker_label(index: int) -> str:
    return f"Speaker {index}"


def annotate(
    chunks: Sequence[TranscriptionChunk],
    pause_threshold: float = DEFAULT_PAUSE_THRESHOLD,
) -> list[TranscriptionChunk]:
    """Label every chunk with one of two alternating speakers.

    Args:
        chunks: Chunks in engine order (start ascending)
        pause_threshold: Gap in seconds that flips the speaker

    Returns:
        New chunks, same order and length, with speaker set
    """
    labelled: list[TranscriptionChunk] = []
    speaker = 1
    previous: TranscriptionChunk | None = None

    for chunk in chunks:
        if previous is not None:
            previous_end = previous.end if previous.end is not None else previous.start
            if chunk.start - previous_end > pause_threshold:
                speaker = 2 if speaker == 1 else 1
        labelled.append(chunk.model_copy(update={"speaker": speaker_label(speaker)}))
        previous = chunk

    return labelled


@dataclass(frozen=True)
class SpeakerTurn:
    """Consecutive chunks attributed to the same speaker."""

    speaker: str | None
    start: float
    end: float
    text: str


def speaker_turns(chunks: Sequence[TranscriptionChunk]) -> list[SpeakerTurn]:
    """Group consecutive chunks that share a speaker label."""
    turns: list[SpeakerTurn] = []
    current: list[TranscriptionChunk] = []

    def flush() -> None:
        if current:
            turns.append(
                SpeakerTurn(
                    speaker=current[0].speaker,
                    start=current[0].start,
                    end=current[-1].end_or_default,
                    text="".join(c.text for c in current).strip(),
                )
            )

    for chunk in chunks:
        if current and chunk.speaker != current[0].speaker:
            flush()
            current = []
        current.append(chunk)
    flush()

    return turns
