"""Voice capture and playback module boundaries."""

from .capture import CaptureOutcome, CaptureOutcomeKind, CaptureStatus, SpeechCaptureSession
from .interfaces import CaptureEngine, CaptureOptions, PlaybackEngine, RecognitionSegment
from .playback import PlaybackController

__all__ = [
    "CaptureEngine",
    "CaptureOptions",
    "CaptureOutcome",
    "CaptureOutcomeKind",
    "CaptureStatus",
    "PlaybackController",
    "PlaybackEngine",
    "RecognitionSegment",
    "SpeechCaptureSession",
]
