import struct

import pytest

from gemini_voice_chat.audio import decode_wav, encode_wav, parse_sample_rate, pcm16_to_samples
from gemini_voice_chat.errors import AudioFormatError


def test_header_layout_is_canonical_mono_16bit() -> None:
    blob = encode_wav([0, 1, -1], 24_000)

    assert blob[0:4] == b"RIFF"
    assert struct.unpack_from("<I", blob, 4)[0] == 36 + 6
    assert blob[8:12] == b"WAVE"
    assert blob[12:16] == b"fmt "
    assert struct.unpack_from("<IHHIIHH", blob, 16) == (16, 1, 1, 24_000, 48_000, 2, 16)
    assert blob[36:40] == b"data"
    assert struct.unpack_from("<I", blob, 40)[0] == 6
    assert blob[44:] == b"\x00\x00\x01\x00\xff\xff"


def test_round_trip_preserves_samples_and_rate() -> None:
    samples = [0, 1, -1, 32767, -32768, 1234, -4321]

    blob = encode_wav(samples, 16_000)
    decoded = decode_wav(blob)

    assert len(blob) == 44 + 2 * len(samples)
    assert decoded.samples == samples
    assert decoded.sample_rate == 16_000


def test_empty_input_produces_header_only_container() -> None:
    blob = encode_wav([], 8_000)

    assert len(blob) == 44
    assert struct.unpack_from("<I", blob, 40)[0] == 0
    assert decode_wav(blob).samples == []


def test_out_of_range_and_fractional_samples_wrap() -> None:
    decoded = decode_wav(encode_wav([70000, -32769, 32768, 1.9, -1.9], 24_000))

    assert decoded.samples == [4464, 32767, -32768, 1, -1]


def test_decode_rejects_foreign_layouts() -> None:
    blob = bytearray(encode_wav([1, 2], 24_000))
    blob[22] = 2  # stereo

    with pytest.raises(AudioFormatError):
        decode_wav(bytes(blob))
    with pytest.raises(AudioFormatError):
        decode_wav(b"RIFF")
    with pytest.raises(AudioFormatError):
        decode_wav(b"JUNK" + encode_wav([1], 24_000)[4:])


def test_pcm_helpers() -> None:
    assert pcm16_to_samples(b"\x01\x00\xff\xff\x07") == [1, -1]
    assert parse_sample_rate("audio/L16;codec=pcm;rate=16000") == 16_000
    assert parse_sample_rate("audio/L16") == 24_000
    assert parse_sample_rate(None, default=8_000) == 8_000
