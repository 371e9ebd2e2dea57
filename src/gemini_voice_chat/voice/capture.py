"""Microphone capture state machine: idle -> listening -> finalizing -> idle."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from .interfaces import CaptureEngine, CaptureOptions, RecognitionSegment


class CaptureStatus(str, Enum):
    """Lifecycle states of a capture session."""

    IDLE = "idle"
    LISTENING = "listening"
    FINALIZING = "finalizing"


class CaptureOutcomeKind(str, Enum):
    TRANSCRIPT = "transcript"
    SILENCE = "silence"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class CaptureOutcome:
    kind: CaptureOutcomeKind
    transcript: str = ""
    error: str | None = None


@dataclass(slots=True)
class RecordingSession:
    """State of one capture, recreated on every start."""

    id: int
    outcome: asyncio.Future[CaptureOutcome]
    status: CaptureStatus = CaptureStatus.LISTENING
    accumulated_transcript: str = ""
    segments: list[str] = field(default_factory=list)


class SpeechCaptureSession:
    """Wraps a :class:`CaptureEngine` so each capture yields exactly one outcome.

    Only segments the engine marks final are accumulated. Interim text is
    passed to ``on_interim`` for live feedback and otherwise dropped. Events
    coming from a stream that has been torn down are ignored.
    """

    def __init__(
        self,
        engine: CaptureEngine,
        *,
        language: str = "fa-IR",
        enabled: bool = True,
        on_interim: Callable[[str], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._engine = engine
        self._options = CaptureOptions(language=language)
        self._enabled = enabled
        self._on_interim = on_interim
        self._logger = logger or logging.getLogger("gemini_voice_chat.voice.capture")
        self._ids = itertools.count(1)
        self._recording: RecordingSession | None = None

    @property
    def status(self) -> CaptureStatus:
        if self._recording is None:
            return CaptureStatus.IDLE
        return self._recording.status

    @property
    def recording(self) -> RecordingSession | None:
        return self._recording

    @property
    def last_outcome(self) -> CaptureOutcome | None:
        recording = self._recording
        if recording is None or not recording.outcome.done():
            return None
        return recording.outcome.result()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value

    @property
    def supported(self) -> bool:
        return bool(getattr(self._engine, "supported", False))

    def start(self, *, replace: bool = False) -> bool:
        """Open a new capture; returns False when it was rejected."""
        if not self._enabled or not self.supported:
            self._logger.warning("capture_rejected", extra={"reason": "unavailable"})
            return False

        previous = self._recording
        if previous is not None and previous.status is CaptureStatus.LISTENING and not replace:
            self._logger.warning("capture_rejected", extra={"reason": "already_listening"})
            return False
        if previous is not None and previous.status is not CaptureStatus.IDLE:
            self._teardown(previous)

        recording = RecordingSession(id=next(self._ids), outcome=asyncio.get_running_loop().create_future())
        self._recording = recording
        try:
            self._engine.start(
                self._options,
                on_result=lambda segment: self._handle_result(recording, segment),
                on_error=lambda message: self._handle_error(recording, message),
                on_end=lambda: self._handle_end(recording),
            )
        except Exception as exc:  # noqa: BLE001 - engine failures become an error outcome.
            self._handle_error(recording, f"{type(exc).__name__}: {exc}")
            return False

        self._logger.info("capture_started", extra={"recording_id": recording.id})
        return True

    def stop(self) -> None:
        """Request the end of the current capture; the outcome follows the engine's end event."""
        recording = self._recording
        if recording is None or recording.status is not CaptureStatus.LISTENING:
            return
        recording.status = CaptureStatus.FINALIZING
        self._logger.info("capture_stopping", extra={"recording_id": recording.id})
        self._engine.stop()

    def cancel(self) -> None:
        """Discard the current capture without producing a transcript."""
        recording = self._recording
        if recording is not None and recording.status is not CaptureStatus.IDLE:
            self._teardown(recording)

    async def wait_outcome(self) -> CaptureOutcome:
        recording = self._recording
        if recording is None:
            return CaptureOutcome(kind=CaptureOutcomeKind.CANCELLED)
        return await asyncio.shield(recording.outcome)

    def _is_current(self, recording: RecordingSession) -> bool:
        return recording is self._recording and recording.status is not CaptureStatus.IDLE

    def _handle_result(self, recording: RecordingSession, segment: RecognitionSegment) -> None:
        if not self._is_current(recording):
            return
        if not segment.final:
            if self._on_interim is not None:
                self._on_interim(segment.text)
            return
        text = segment.text.strip()
        if text:
            recording.segments.append(text)
            recording.accumulated_transcript = " ".join(recording.segments)

    def _handle_error(self, recording: RecordingSession, message: str) -> None:
        if not self._is_current(recording):
            return
        self._logger.warning("capture_error", extra={"recording_id": recording.id, "error": message})
        self._finish(recording, CaptureOutcome(kind=CaptureOutcomeKind.ERROR, error=message))

    def _handle_end(self, recording: RecordingSession) -> None:
        if not self._is_current(recording):
            return
        recording.status = CaptureStatus.FINALIZING
        transcript = recording.accumulated_transcript.strip()
        if transcript:
            outcome = CaptureOutcome(kind=CaptureOutcomeKind.TRANSCRIPT, transcript=transcript)
        else:
            outcome = CaptureOutcome(kind=CaptureOutcomeKind.SILENCE)
        self._logger.info(
            "capture_finished",
            extra={"recording_id": recording.id, "outcome": outcome.kind.value, "chars": len(transcript)},
        )
        self._finish(recording, outcome)

    def _teardown(self, recording: RecordingSession) -> None:
        self._logger.info("capture_discarded", extra={"recording_id": recording.id})
        self._finish(recording, CaptureOutcome(kind=CaptureOutcomeKind.CANCELLED))
        self._engine.stop()

    @staticmethod
    def _finish(recording: RecordingSession, outcome: CaptureOutcome) -> None:
        recording.status = CaptureStatus.IDLE
        if not recording.outcome.done():
            recording.outcome.set_result(outcome)
