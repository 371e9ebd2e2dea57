from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class MessageRole(str, Enum):
    user = "user"
    assistant = "assistant"


class MessageTag(str, Enum):
    summary = "summary"
    idea = "idea"
    voice_turn = "voice_turn"


class ConversationMode(str, Enum):
    chat = "chat"
    voice = "voice"

    @property
    def turn_tag(self) -> MessageTag | None:
        """Tag carried by ordinary turns in this mode."""
        return MessageTag.voice_turn if self is ConversationMode.voice else None


@dataclass(slots=True)
class AudioBuffer:
    samples: list[int]
    sample_rate: int


@dataclass(frozen=True, slots=True)
class AudioClip:
    """Playable audio handle cached on a message for replay."""

    wav: bytes
    sample_rate: int

    @property
    def duration_seconds(self) -> float:
        data_size = max(0, len(self.wav) - 44)
        return data_size / (self.sample_rate * 2) if self.sample_rate else 0.0


@dataclass(slots=True)
class Message:
    role: MessageRole
    text: str
    tag: MessageTag | None = None
    audio: AudioClip | None = None
    greeting: bool = False


@dataclass(frozen=True, slots=True)
class MessageHandle:
    """Reference to a message slot within one conversation epoch."""

    epoch: int
    index: int


@dataclass(frozen=True, slots=True)
class Turn:
    role: MessageRole
    text: str


@dataclass(slots=True)
class RequestPayload:
    turns: list[Turn] = field(default_factory=list)
    system_prompt: str | None = None
