"""Contracts for speech recognition and audio playback engines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol


@dataclass(frozen=True, slots=True)
class CaptureOptions:
    """Recognition stream configuration."""

    language: str = "fa-IR"
    continuous: bool = True
    interim_results: bool = False
    max_alternatives: int = 1


@dataclass(frozen=True, slots=True)
class RecognitionSegment:
    """One recognized piece of speech; only ``final`` segments are kept."""

    text: str
    final: bool = True


class CaptureEngine(Protocol):
    """Platform speech recognition capability."""

    supported: bool

    def start(
        self,
        options: CaptureOptions,
        *,
        on_result: Callable[[RecognitionSegment], None],
        on_error: Callable[[str], None],
        on_end: Callable[[], None],
    ) -> None:
        """Open a recognition stream; ``on_end`` fires once it has closed."""

    def stop(self) -> None:
        """Ask the open stream to finish; pending results may still arrive before ``on_end``."""


class PlaybackEngine(Protocol):
    """Platform audio sink accepting WAV bytes."""

    def play(
        self,
        wav: bytes,
        *,
        on_ended: Callable[[], None],
        on_error: Callable[[str], None],
    ) -> None:
        """Start playing ``wav``."""

    def stop(self) -> None:
        """Stop whatever is playing."""
