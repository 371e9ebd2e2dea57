"""CLI entrypoint for Gemini Voice Chat."""

from __future__ import annotations

import asyncio

import typer
from rich import print
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.text import Text

from gemini_voice_chat import prompts
from gemini_voice_chat.completion import CompletionClient
from gemini_voice_chat.config import Settings, settings
from gemini_voice_chat.conversation import ConversationStore
from gemini_voice_chat.models import ConversationMode, Message, MessageRole, MessageTag
from gemini_voice_chat.rendering import ResponseRenderer
from gemini_voice_chat.session import SessionOrchestrator, SessionStatus
from gemini_voice_chat.synthesis import SpeechSynthesisClient
from gemini_voice_chat.telemetry import configure_logging
from gemini_voice_chat.voice.capture import SpeechCaptureSession
from gemini_voice_chat.voice.playback import PlaybackController

app = typer.Typer(help="Gemini chat with optional voice input and spoken replies")

_HELP = "Commands: /summary, /ideas, /record, /mode chat|voice, /replay N, /quit"
_THINKING = "در حال فکر کردن..."


class _TerminalView:
    """Shows the newest message live while a reply is revealed."""

    def __init__(self, console: Console) -> None:
        self.console = console
        self.live: Live | None = None
        self.session: SessionOrchestrator | None = None
        self._last_notice: str | None = None
        self._was_busy = False

    def on_store_change(self) -> None:
        if self.live is None or self.session is None:
            return
        messages = self.session.store.messages
        if messages and messages[-1].role is MessageRole.assistant:
            self.live.update(render_message(messages[-1]))

    def on_status_change(self, status: SessionStatus) -> None:
        if self.live is not None and status.thinking:
            self.live.update(Text(_THINKING, style="dim"))
        if status.notice and status.notice != self._last_notice:
            self.console.print(Text(status.notice, style="yellow"))
        self._last_notice = status.notice
        if self._was_busy and not status.busy and self.live is None and self.session is not None:
            self.console.print(render_message(self.session.store.messages[-1]))
        self._was_busy = status.busy


def render_message(message: Message):
    if message.tag is MessageTag.idea:
        return Markdown(message.text)
    style = "cyan" if message.role is MessageRole.assistant else "white"
    return Text(message.text, style=style)


def _mask(secret: str) -> str:
    return f"{secret[:4]}…" if secret else "(not set)"


def _build_session(
    cfg: Settings,
    view: _TerminalView,
    *,
    mode: ConversationMode,
    capture_engine=None,
    playback_engine=None,
) -> SessionOrchestrator:
    store = ConversationStore(prompts.WELCOME, on_change=view.on_store_change)
    playback = PlaybackController(playback_engine) if playback_engine is not None else None
    synthesizer = SpeechSynthesisClient(cfg) if playback is not None else None
    renderer = ResponseRenderer(store, synthesizer, playback, typing_interval_ms=cfg.typing_interval_ms)
    capture = None
    if capture_engine is not None:
        capture = SpeechCaptureSession(capture_engine, language=cfg.speech_language)
    session = SessionOrchestrator(
        store=store,
        client=CompletionClient(cfg),
        renderer=renderer,
        capture=capture,
        playback=playback,
        mode=mode,
        speak_in_chat=cfg.speak_in_chat,
        on_change=view.on_status_change,
    )
    view.session = session
    return session


async def _with_live(view: _TerminalView, work) -> None:
    with Live(console=view.console, refresh_per_second=30) as live:
        view.live = live
        try:
            await work
        finally:
            view.live = None


async def _chat_loop(session: SessionOrchestrator, view: _TerminalView) -> None:
    console = view.console
    console.print(Text(session.store.messages[0].text, style="cyan"))
    console.print(Text(_HELP, style="dim"))
    try:
        while True:
            prefix = "[red]● [/red]" if session.status.recording else ""
            line = (await asyncio.to_thread(console.input, f"{prefix}[bold]{session.status.mode.value}>[/bold] ")).strip()
            if not line:
                continue
            if line == "/quit":
                break
            if line == "/summary":
                await _with_live(view, session.request_summary())
            elif line == "/ideas":
                await _with_live(view, session.request_ideas())
            elif line == "/record":
                was_recording = session.status.recording
                await session.toggle_recording()
                if was_recording:
                    await _with_live(view, session.drain())
            elif line.startswith("/mode"):
                _, _, value = line.partition(" ")
                try:
                    mode = ConversationMode(value.strip())
                except ValueError:
                    console.print(Text(_HELP, style="dim"))
                    continue
                if await session.switch_mode(mode):
                    console.print(Text(session.store.messages[0].text, style="cyan"))
            elif line.startswith("/replay"):
                _, _, value = line.partition(" ")
                if value.strip().isdigit():
                    await session.replay(int(value))
            elif line.startswith("/"):
                console.print(Text(_HELP, style="dim"))
            else:
                await _with_live(view, session.submit_text(line))
    finally:
        await session.aclose()


@app.command("show-config")
def show_config() -> None:
    """Show the effective runtime configuration."""
    values = settings.model_dump()
    values["api_key"] = _mask(settings.api_key)
    print(values)


@app.command()
def chat(
    voice: bool = typer.Option(False, help="Start in voice mode with microphone capture and spoken replies"),
    speak: bool = typer.Option(False, help="Speak replies in chat mode too"),
) -> None:
    """Run an interactive conversation in the terminal."""
    configure_logging(settings.log_level)

    capture_engine = None
    playback_engine = None
    if voice or speak:
        try:
            from gemini_voice_chat.voice.playback_simpleaudio import SimpleaudioPlaybackEngine

            playback_engine = SimpleaudioPlaybackEngine()
            if voice:
                from gemini_voice_chat.voice.stt_speechrecognition import SpeechRecognitionCaptureEngine

                capture_engine = SpeechRecognitionCaptureEngine()
        except RuntimeError as exc:
            print({"error": str(exc)})
            raise typer.Exit(code=1)
        except ImportError:
            print({"error": "Voice extras are missing. Install with: pip install 'gemini-voice-chat[voice]'"})
            raise typer.Exit(code=1)

    if not settings.api_key:
        print({"error": "Set GEMINI_VOICE_CHAT_API_KEY before starting a chat."})
        raise typer.Exit(code=1)

    cfg = settings.model_copy(update={"speak_in_chat": settings.speak_in_chat or speak})
    view = _TerminalView(Console())
    session = _build_session(
        cfg,
        view,
        mode=ConversationMode.voice if voice else ConversationMode.chat,
        capture_engine=capture_engine,
        playback_engine=playback_engine,
    )
    try:
        asyncio.run(_chat_loop(session, view))
    except (KeyboardInterrupt, EOFError):
        print({"chat": "stopped"})


if __name__ == "__main__":
    app()
