"""Canned assistant strings and feature system prompts (Persian)."""

from __future__ import annotations

from typing import Iterable

from gemini_voice_chat.models import Message, MessageRole, MessageTag

WELCOME = "سلام! من یک چت‌بات هوش مصنوعی هستم. چطور می‌توانم امروز به شما کمک کنم؟"

SUMMARY_SYSTEM_PROMPT = (
    "شما یک دستیار خلاصه‌سازی هوشمند هستید. متن زیر یک مکالمه است. "
    "لطفاً آن را به فارسی و در یک پاراگراف، به صورت شیوا و مختصر خلاصه کنید. "
    "تمرکز بر نکات اصلی، تصمیمات یا موضوعات کلیدی مکالمه باشد."
)
IDEAS_SYSTEM_PROMPT = (
    "شما یک دستیار خلاق هستید. بر اساس مکالمه زیر، پنج ایده، راه‌حل یا پاسخ جایگزین "
    "برای موضوع اصلی گفتگو ارائه دهید. پاسخ را به صورت لیست شماره‌گذاری شده در قالب "
    "Markdown و به زبان فارسی برگردانید."
)

NOTHING_TO_SUMMARIZE = "مکالمه‌ای برای خلاصه‌سازی وجود ندارد. لطفا ابتدا گفتگو را شروع کنید."
NOTHING_FOR_IDEAS = "مکالمه‌ای برای تولید ایده وجود ندارد. لطفا ابتدا گفتگو را شروع کنید."

CONNECTION_ERROR = "خطای اتصال: {error}"
SUMMARY_ERROR = "خطا در خلاصه‌سازی مکالمه: {error}"
IDEAS_ERROR = "خطا در تولید ایده‌های جایگزین: {error}"

NOT_UNDERSTOOD = "متوجه نشدم، لطفاً دوباره تلاش کنید."
CAPTURE_ERROR = "خطا در تشخیص گفتار: {error}"
CAPTURE_UNAVAILABLE = "ضبط صدا در این حالت در دسترس نیست."
SPEECH_ERROR = "پخش صدا ممکن نشد: {error}"

# Spoken instead of the full text for informational results.
ANNOUNCEMENTS: dict[MessageTag, str] = {
    MessageTag.summary: "خلاصه مکالمه آماده است.",
    MessageTag.idea: "ایده‌های جایگزین آماده است.",
}

_SPEAKER_LABELS = {MessageRole.user: "کاربر", MessageRole.assistant: "ربات"}


def format_transcript(messages: Iterable[Message]) -> str:
    """Flatten turns to ``label: text`` lines for the summary/idea prompts."""
    return "\n".join(f"{_SPEAKER_LABELS[message.role]}: {message.text}" for message in messages)
