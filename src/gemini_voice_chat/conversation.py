"""Ordered, append-only message store with mode-scoped context views."""

from __future__ import annotations

import logging
from typing import Callable

from gemini_voice_chat.errors import PendingReplyError
from gemini_voice_chat.models import AudioClip, ConversationMode, Message, MessageHandle, MessageRole, MessageTag


class ConversationStore:
    """Owns every message of the current conversation.

    Other components address messages through :class:`MessageHandle`. A
    ``reset`` starts a new epoch, after which handles from the previous epoch
    are stale and every write through them is a no-op.
    """

    def __init__(
        self,
        greeting: str | None = None,
        *,
        on_change: Callable[[], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._greeting = greeting
        self._on_change = on_change
        self._logger = logger or logging.getLogger("gemini_voice_chat.conversation")
        self._messages: list[Message] = []
        self._epoch = 0
        self._pending: MessageHandle | None = None
        self._seed()

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def pending(self) -> MessageHandle | None:
        return self._pending

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: Message) -> MessageHandle:
        self._messages.append(message)
        handle = MessageHandle(epoch=self._epoch, index=len(self._messages) - 1)
        self._notify()
        return handle

    def append_placeholder(self, tag: MessageTag | None = None) -> MessageHandle:
        """Append an empty assistant reply and mark it pending."""
        if self._pending is not None:
            raise PendingReplyError(code="REPLY_PENDING", message="Another reply is still being rendered")
        handle = self.append(Message(role=MessageRole.assistant, text="", tag=tag))
        self._pending = handle
        return handle

    def get(self, handle: MessageHandle) -> Message | None:
        if not self._is_live(handle):
            return None
        return self._messages[handle.index]

    def update(self, handle: MessageHandle, *, text: str | None = None) -> bool:
        message = self.get(handle)
        if message is None:
            self._logger.debug("stale_message_write", extra={"epoch": handle.epoch, "index": handle.index})
            return False
        if text is not None:
            message.text = text
        self._notify()
        return True

    def attach_audio(self, handle: MessageHandle, clip: AudioClip) -> bool:
        """Cache ``clip`` on the message; an already cached clip is kept."""
        message = self.get(handle)
        if message is None:
            return False
        if message.audio is None:
            message.audio = clip
        return True

    def finalize(self, handle: MessageHandle) -> None:
        if self._pending == handle:
            self._pending = None
            self._notify()

    def filtered_view(self, mode: ConversationMode) -> list[Message]:
        """Messages that count as context for ``mode``: its turns, minus the greeting."""
        turn_tag = mode.turn_tag
        return [message for message in self._messages if not message.greeting and message.tag == turn_tag]

    def reset(self) -> None:
        self._epoch += 1
        self._messages = []
        self._pending = None
        self._seed()
        self._logger.info("conversation_reset", extra={"epoch": self._epoch})

    def _seed(self) -> None:
        if self._greeting:
            self._messages.append(Message(role=MessageRole.assistant, text=self._greeting, greeting=True))
        self._notify()

    def _is_live(self, handle: MessageHandle) -> bool:
        return handle.epoch == self._epoch and 0 <= handle.index < len(self._messages)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
