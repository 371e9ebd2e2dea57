"""Session orchestration: user intents, busy state and mutual exclusion."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from gemini_voice_chat import prompts
from gemini_voice_chat.conversation import ConversationStore
from gemini_voice_chat.errors import CompletionError
from gemini_voice_chat.models import (
    ConversationMode,
    Message,
    MessageHandle,
    MessageRole,
    MessageTag,
    RequestPayload,
    Turn,
)
from gemini_voice_chat.rendering import ResponseRenderer, SpeechOutcome, SpeechOutcomeKind
from gemini_voice_chat.voice.capture import CaptureOutcomeKind, RecordingSession, SpeechCaptureSession
from gemini_voice_chat.voice.playback import PlaybackController


class Completer(Protocol):
    async def complete(self, payload: RequestPayload) -> str:
        """Return the generated text for ``payload``."""


class Activity(str, Enum):
    """The one request/render sequence currently holding the busy flag."""

    IDLE = "idle"
    SENDING = "sending"
    SUMMARIZING = "summarizing"
    GENERATING_IDEAS = "generating_ideas"


@dataclass(slots=True)
class SessionStatus:
    mode: ConversationMode = ConversationMode.chat
    activity: Activity = Activity.IDLE
    thinking: bool = False
    recording: bool = False
    speaking: bool = False
    notice: str | None = None

    @property
    def busy(self) -> bool:
        return self.activity is not Activity.IDLE


@dataclass(frozen=True, slots=True)
class _Feature:
    activity: Activity
    tag: MessageTag
    system_prompt: str
    empty_message: str
    error_template: str


_SUMMARY = _Feature(
    activity=Activity.SUMMARIZING,
    tag=MessageTag.summary,
    system_prompt=prompts.SUMMARY_SYSTEM_PROMPT,
    empty_message=prompts.NOTHING_TO_SUMMARIZE,
    error_template=prompts.SUMMARY_ERROR,
)
_IDEAS = _Feature(
    activity=Activity.GENERATING_IDEAS,
    tag=MessageTag.idea,
    system_prompt=prompts.IDEAS_SYSTEM_PROMPT,
    empty_message=prompts.NOTHING_FOR_IDEAS,
    error_template=prompts.IDEAS_ERROR,
)


class SessionOrchestrator:
    """Wires user intents to the store, completion client, renderer and capture.

    ``SessionStatus`` is only changed here, at operation entry and exit. The
    busy activity gates ``submit_text``, ``request_summary``, ``request_ideas``
    and starting a recording; stopping a recording is always allowed.

    Every mode switch starts a new store epoch. Work begun in an older epoch
    keeps running to completion but its results and status updates are dropped.
    """

    def __init__(
        self,
        *,
        store: ConversationStore,
        client: Completer,
        renderer: ResponseRenderer,
        capture: SpeechCaptureSession | None = None,
        playback: PlaybackController | None = None,
        mode: ConversationMode = ConversationMode.chat,
        speak_in_chat: bool = False,
        on_change: Callable[[SessionStatus], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._renderer = renderer
        self._capture = capture
        self._playback = playback
        self._speak_in_chat = speak_in_chat
        self._on_change = on_change
        self._logger = logger or logging.getLogger("gemini_voice_chat.session")

        self._status = SessionStatus(mode=mode)
        self._inflight: asyncio.Task[str] | None = None
        self._capture_task: asyncio.Task[None] | None = None
        self._speech_tasks: set[asyncio.Task[SpeechOutcome]] = set()

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def _epoch(self) -> int:
        return self._store.epoch

    # ---- user intents ----

    async def submit_text(self, text: str) -> bool:
        content = text.strip()
        if not content or not self._can_begin("submit_text"):
            return False

        epoch = self._epoch
        self._begin(Activity.SENDING)
        try:
            tag = self._status.mode.turn_tag
            self._store.append(Message(role=MessageRole.user, text=content, tag=tag))
            payload = RequestPayload(
                turns=[Turn(role=message.role, text=message.text) for message in self._store.filtered_view(self._status.mode)]
            )
            reply, failed = await self._request(payload, prompts.CONNECTION_ERROR, epoch)
            if reply is None:
                return False
            await self._render_reply(reply, tag, speak=not failed, epoch=epoch)
            return True
        finally:
            self._end(epoch)

    async def request_summary(self) -> bool:
        return await self._run_feature(_SUMMARY)

    async def request_ideas(self) -> bool:
        return await self._run_feature(_IDEAS)

    async def toggle_recording(self) -> bool:
        """Stop the open recording, or start one in voice mode."""
        if self._capture is None:
            self._set_notice(prompts.CAPTURE_UNAVAILABLE)
            return False

        if self._status.recording:
            self._logger.info("recording_stop_requested")
            self._capture.stop()
            return True

        if not self._can_begin("start_recording"):
            return False
        if self._status.mode is not ConversationMode.voice:
            self._logger.warning("operation_rejected", extra={"operation": "start_recording", "reason": "chat_mode"})
            self._set_notice(prompts.CAPTURE_UNAVAILABLE)
            return False

        if not self._capture.start():
            outcome = self._capture.last_outcome
            if outcome is not None and outcome.kind is CaptureOutcomeKind.ERROR:
                self._set_notice(prompts.CAPTURE_ERROR.format(error=outcome.error))
            else:
                self._set_notice(prompts.CAPTURE_UNAVAILABLE)
            return False

        recording = self._capture.recording
        self._status.recording = True
        self._status.notice = None
        self._notify()
        self._capture_task = asyncio.create_task(
            self._follow_capture(recording, self._epoch),
            name="capture-follow",
        )
        return True

    async def switch_mode(self, mode: ConversationMode, *, force: bool = False) -> bool:
        """Start a fresh conversation in ``mode``.

        Rejected while busy unless ``force`` is set. Any open capture,
        playback and in-flight completion is cancelled.
        """
        if mode is self._status.mode and not force:
            return False
        if self._status.busy and not force:
            self._logger.warning("operation_rejected", extra={"operation": "switch_mode", "reason": "busy"})
            return False

        self._cancel_background()
        self._store.reset()
        self._status = SessionStatus(mode=mode)
        self._logger.info("mode_switched", extra={"mode": mode.value, "epoch": self._epoch})
        self._notify()
        return True

    async def replay(self, index: int) -> SpeechOutcome | None:
        """Speak an assistant message again; cached audio is reused."""
        if self._status.busy:
            return None
        handle = MessageHandle(epoch=self._epoch, index=index)
        message = self._store.get(handle)
        if message is None or message.role is not MessageRole.assistant:
            return None
        task = asyncio.create_task(self._renderer.replay(handle), name="response-replay")
        self._track_speech(task, self._epoch)
        await asyncio.gather(task, return_exceptions=True)
        return self._speech_outcome(task)

    async def drain(self) -> None:
        """Wait for background speech and capture follow-up tasks."""
        while True:
            pending = [task for task in (*self._speech_tasks, self._capture_task) if task is not None and not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        self._cancel_background()
        await self.drain()

    # ---- sequences ----

    async def _run_feature(self, feature: _Feature) -> bool:
        if not self._can_begin(feature.activity.value):
            return False

        view = self._store.filtered_view(self._status.mode)
        if len(view) < 2:
            self._store.append(Message(role=MessageRole.assistant, text=feature.empty_message, tag=feature.tag))
            self._logger.info("feature_skipped", extra={"feature": feature.tag.value, "turns": len(view)})
            return True

        epoch = self._epoch
        self._begin(feature.activity)
        try:
            payload = RequestPayload(
                turns=[Turn(role=MessageRole.user, text=prompts.format_transcript(view))],
                system_prompt=feature.system_prompt,
            )
            reply, failed = await self._request(payload, feature.error_template, epoch)
            if reply is None:
                return False
            await self._render_reply(reply, feature.tag, speak=not failed, epoch=epoch)
            return True
        finally:
            self._end(epoch)

    async def _request(self, payload: RequestPayload, error_template: str, epoch: int) -> tuple[str | None, bool]:
        """Run the completion; returns ``(text, failed)`` or ``(None, False)`` when the epoch went stale."""
        self._status.thinking = True
        self._notify()
        task = asyncio.create_task(self._client.complete(payload), name="completion")
        self._inflight = task
        failed = False
        try:
            reply = await task
        except CompletionError as exc:
            self._logger.error("completion_failed", extra={"code": exc.code, "error": exc.message})
            reply, failed = error_template.format(error=exc.message), True
        except asyncio.CancelledError:
            if epoch != self._epoch:
                self._logger.info("completion_discarded", extra={"epoch": epoch})
                return None, False
            raise
        finally:
            if self._inflight is task:
                self._inflight = None
            if epoch == self._epoch:
                self._status.thinking = False
                self._notify()

        if epoch != self._epoch:
            self._logger.info("completion_discarded", extra={"epoch": epoch})
            return None, False
        return reply, failed

    async def _render_reply(self, text: str, tag: MessageTag | None, *, speak: bool, epoch: int) -> None:
        handle = self._store.append_placeholder(tag)
        await self._renderer.render(
            text,
            handle,
            speak=speak and self._speech_enabled(),
            on_speech=lambda task: self._track_speech(task, epoch),
        )
        self._store.finalize(handle)

    async def _follow_capture(self, recording: RecordingSession, epoch: int) -> None:
        outcome = await asyncio.shield(recording.outcome)
        if epoch != self._epoch:
            return

        self._status.recording = False
        if outcome.kind is CaptureOutcomeKind.TRANSCRIPT:
            self._notify()
            await self.submit_text(outcome.transcript)
        elif outcome.kind is CaptureOutcomeKind.SILENCE:
            self._set_notice(prompts.NOT_UNDERSTOOD)
        elif outcome.kind is CaptureOutcomeKind.ERROR:
            self._set_notice(prompts.CAPTURE_ERROR.format(error=outcome.error))
        else:
            self._notify()

    # ---- status bookkeeping ----

    def _speech_enabled(self) -> bool:
        return self._status.mode is ConversationMode.voice or self._speak_in_chat

    def _can_begin(self, operation: str) -> bool:
        if self._status.busy or self._status.recording:
            reason = "busy" if self._status.busy else "recording"
            self._logger.warning("operation_rejected", extra={"operation": operation, "reason": reason})
            return False
        return True

    def _begin(self, activity: Activity) -> None:
        self._status.activity = activity
        self._status.notice = None
        self._logger.info("activity_started", extra={"activity": activity.value, "epoch": self._epoch})
        self._notify()

    def _end(self, epoch: int) -> None:
        if epoch != self._epoch:
            return
        self._logger.info("activity_finished", extra={"activity": self._status.activity.value})
        self._status.activity = Activity.IDLE
        self._status.thinking = False
        self._notify()

    def _track_speech(self, task: asyncio.Task[SpeechOutcome], epoch: int) -> None:
        self._speech_tasks.add(task)
        self._status.speaking = True
        self._notify()
        task.add_done_callback(lambda done: self._speech_finished(done, epoch))

    def _speech_finished(self, task: asyncio.Task[SpeechOutcome], epoch: int) -> None:
        self._speech_tasks.discard(task)
        if epoch != self._epoch:
            return
        outcome = self._speech_outcome(task)
        if outcome.kind is SpeechOutcomeKind.FAILED:
            self._status.notice = prompts.SPEECH_ERROR.format(error=outcome.error)
        self._status.speaking = any(not pending.done() for pending in self._speech_tasks)
        self._notify()

    def _speech_outcome(self, task: asyncio.Task[SpeechOutcome]) -> SpeechOutcome:
        if task.cancelled():
            return SpeechOutcome(kind=SpeechOutcomeKind.INTERRUPTED)
        error = task.exception()
        if error is not None:
            self._logger.error("speech_task_crashed", extra={"error": f"{type(error).__name__}: {error}"})
            return SpeechOutcome(kind=SpeechOutcomeKind.FAILED, error=f"{type(error).__name__}: {error}")
        return task.result()

    def _set_notice(self, notice: str) -> None:
        self._status.notice = notice
        self._notify()

    def _cancel_background(self) -> None:
        if self._capture is not None:
            self._capture.cancel()
        if self._playback is not None:
            self._playback.stop()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        for task in self._speech_tasks:
            if not task.done():
                task.cancel()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self._status)
