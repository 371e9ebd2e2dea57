"""WAV packaging for raw 16-bit mono PCM.

Synthesized speech arrives as headerless little-endian PCM. ``encode_wav``
wraps it in the canonical 44-byte RIFF header so any player can consume it.

Samples are converted with ``int()`` (so floats truncate toward zero) and then
wrapped into the signed 16-bit range using two's complement, e.g. ``70000``
becomes ``4464``. NaN or infinite values make ``int()`` raise ``ValueError``.
"""

from __future__ import annotations

import re
import struct
from typing import Iterable

from gemini_voice_chat.errors import AudioFormatError
from gemini_voice_chat.models import AudioBuffer

WAV_HEADER_SIZE = 44
DEFAULT_SAMPLE_RATE = 24_000

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")
_RATE_RE = re.compile(r"rate\s*=\s*(\d+)", re.IGNORECASE)


def _wrap_int16(value) -> int:
    return ((int(value) + 0x8000) & 0xFFFF) - 0x8000


def encode_wav(samples: Iterable[int], sample_rate: int) -> bytes:
    """Return a mono 16-bit PCM WAV blob for ``samples`` at ``sample_rate``."""
    wrapped = [_wrap_int16(sample) for sample in samples]
    data_size = len(wrapped) * 2
    header = _HEADER.pack(
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        1,  # integer PCM
        1,  # mono
        sample_rate,
        sample_rate * 2,
        2,
        16,
        b"data",
        data_size,
    )
    return header + struct.pack(f"<{len(wrapped)}h", *wrapped)


def decode_wav(blob: bytes) -> AudioBuffer:
    """Parse a blob produced by :func:`encode_wav` back into samples."""
    if len(blob) < WAV_HEADER_SIZE:
        raise AudioFormatError(code="WAV_TOO_SHORT", message=f"Expected at least 44 bytes, got {len(blob)}")

    (
        riff,
        _riff_size,
        wave,
        fmt,
        fmt_size,
        audio_format,
        channels,
        sample_rate,
        _byte_rate,
        _block_align,
        bits_per_sample,
        data_tag,
        data_size,
    ) = _HEADER.unpack_from(blob)

    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data":
        raise AudioFormatError(code="WAV_BAD_TAGS", message="Missing RIFF/WAVE/fmt/data tags")
    if fmt_size != 16 or audio_format != 1 or channels != 1 or bits_per_sample != 16:
        raise AudioFormatError(
            code="WAV_UNSUPPORTED",
            message="Only mono 16-bit integer PCM is supported",
            channels=channels,
            bits_per_sample=bits_per_sample,
        )

    payload = blob[WAV_HEADER_SIZE : WAV_HEADER_SIZE + data_size]
    if len(payload) != data_size:
        raise AudioFormatError(code="WAV_TRUNCATED", message=f"Data chunk declares {data_size} bytes, got {len(payload)}")

    return AudioBuffer(samples=pcm16_to_samples(payload), sample_rate=sample_rate)


def pcm16_to_samples(raw: bytes) -> list[int]:
    """Interpret little-endian signed 16-bit PCM; a trailing odd byte is dropped."""
    count = len(raw) // 2
    return list(struct.unpack_from(f"<{count}h", raw))


def parse_sample_rate(mime_type: str | None, default: int = DEFAULT_SAMPLE_RATE) -> int:
    """Read ``rate=NNNN`` from a descriptor like ``audio/L16;codec=pcm;rate=24000``."""
    if not mime_type:
        return default
    match = _RATE_RE.search(mime_type)
    return int(match.group(1)) if match else default
