import pytest

from gemini_voice_chat.conversation import ConversationStore
from gemini_voice_chat.errors import PendingReplyError
from gemini_voice_chat.models import AudioClip, ConversationMode, Message, MessageRole, MessageTag


def _user(text: str, tag: MessageTag | None = None) -> Message:
    return Message(role=MessageRole.user, text=text, tag=tag)


def test_greeting_is_first_but_never_in_context() -> None:
    store = ConversationStore("hello")

    assert store.messages[0].greeting is True
    assert store.filtered_view(ConversationMode.chat) == []


def test_filtered_view_is_scoped_to_mode_turns() -> None:
    store = ConversationStore("hello")
    store.append(_user("chat turn"))
    store.append(Message(role=MessageRole.assistant, text="summary", tag=MessageTag.summary))
    store.append(Message(role=MessageRole.assistant, text="ideas", tag=MessageTag.idea))
    store.append(_user("voice turn", MessageTag.voice_turn))

    assert [m.text for m in store.filtered_view(ConversationMode.chat)] == ["chat turn"]
    assert [m.text for m in store.filtered_view(ConversationMode.voice)] == ["voice turn"]


def test_only_one_placeholder_may_be_pending() -> None:
    store = ConversationStore()
    handle = store.append_placeholder()

    assert store.pending == handle
    with pytest.raises(PendingReplyError):
        store.append_placeholder()

    store.finalize(handle)
    assert store.pending is None
    store.append_placeholder(MessageTag.summary)


def test_reset_makes_old_handles_stale() -> None:
    changes: list[int] = []
    store = ConversationStore("hello", on_change=lambda: changes.append(len(store)))
    handle = store.append_placeholder()

    store.reset()

    assert store.epoch == 1
    assert store.pending is None
    assert store.update(handle, text="late") is False
    assert store.get(handle) is None
    assert [m.text for m in store.messages] == ["hello"]
    assert changes


def test_cached_audio_is_never_replaced() -> None:
    store = ConversationStore()
    handle = store.append(Message(role=MessageRole.assistant, text="hi"))
    first = AudioClip(wav=b"first", sample_rate=24_000)

    assert store.attach_audio(handle, first) is True
    store.attach_audio(handle, AudioClip(wav=b"second", sample_rate=24_000))

    assert store.get(handle).audio is first
