"""Tests for single frame decoding and encoding."""

from __future__ import annotations

import pytest
from mutagen.id3 import Encoding

from tagger.errors import (
    CorruptFrame, EncodingNotAllowed, FormatError, TruncatedFrame, UnknownEncoding
)
from tagger.tags.frames import (
    Frame,
    decode_frame,
    encode_frame,
    syncsafe_decode,
    syncsafe_encode,
)
from tests.tag_builders import frame, text_body


class TestSyncsafe:
    def test_decode(self):
        assert syncsafe_decode(b"\x00\x00\x02\x01") == 257

    def test_encode_max(self):
        assert syncsafe_encode((1 << 28) - 1) == b"\x7f\x7f\x7f\x7f"

    def test_encode_decode_agree(self):
        assert syncsafe_decode(syncsafe_encode(1234567)) == 1234567


class TestDecodeFrame:
    def test_text_frame(self):
        raw = frame("TIT2", text_body("Hello"))
        decoded, consumed = decode_frame(raw, 4)

        assert consumed == len(raw)
        assert decoded.frame_id == "TIT2"
        assert decoded.text == "Hello"
        assert decoded.text_encoding == Encoding.UTF8
        assert not decoded.opaque

    def test_decode_at_offset(self):
        raw = frame("TIT2", text_body("One")) + frame("TALB", text_body("Two"))
        first, consumed = decode_frame(raw, 4)
        second, _ = decode_frame(raw, 4, consumed)
        assert (first.text, second.text) == ("One", "Two")

    def test_v23_plain_size(self):
        body = text_body("x" * 200, encoding=0)
        decoded, consumed = decode_frame(frame("TALB", body, version=3), 3)
        assert decoded.text == "x" * 200
        assert consumed == 10 + len(body)

    def test_multiple_values_joined(self):
        decoded, _ = decode_frame(frame("TPE1", b"\x03A\x00B"), 4)
        assert decoded.text == "A/B"

    def test_utf16_values_with_bom(self):
        body = b"\x01" + "a".encode("utf-16") + b"\x00\x00" + "b".encode("utf-16")
        decoded, _ = decode_frame(frame("TPE1", body), 4)
        assert decoded.text == "a/b"

    def test_unknown_id_is_opaque(self):
        decoded, _ = decode_frame(frame("XYZ1", b"\x01\x02\x03"), 4)
        assert decoded.opaque
        assert decoded.text_encoding is None

    def test_compressed_known_frame_is_opaque(self):
        decoded, _ = decode_frame(frame("TIT2", b"\x00\x00\x00\x05zzzz", flags=0x0009), 4)
        assert decoded.opaque

    def test_declared_length_past_buffer(self):
        raw = frame("TIT2", text_body("Hello"))[:-2]
        with pytest.raises(TruncatedFrame):
            decode_frame(raw, 4)

    def test_short_header(self):
        with pytest.raises(TruncatedFrame):
            decode_frame(b"TIT2\x00\x00", 4)

    def test_invalid_frame_id(self):
        with pytest.raises(CorruptFrame):
            decode_frame(frame("ti!2", b"\x00abc"), 4)

    def test_unknown_encoding_carries_opaque_frame(self):
        raw = frame("TIT2", b"\x07abc")
        with pytest.raises(UnknownEncoding) as exc_info:
            decode_frame(raw, 4)

        kept = exc_info.value.frame
        assert kept.opaque
        assert kept.payload == b"\x07abc"
        assert encode_frame(kept, 4) == raw

    def test_utf8_not_accepted_in_v23(self):
        with pytest.raises(UnknownEncoding):
            decode_frame(frame("TIT2", text_body("Hi", encoding=3), version=3), 3)

    def test_unreadable_encoding_byte_has_no_text(self):
        kept = Frame("TIT2", b"\x07abc")
        assert kept.text_encoding is None
        with pytest.raises(FormatError):
            kept.text


class TestEncodeFrame:
    @pytest.mark.parametrize("version,encoding", [
        (4, Encoding.UTF8),
        (4, Encoding.UTF16BE),
        (3, Encoding.UTF16),
        (3, Encoding.LATIN1),
    ])
    def test_round_trip(self, version, encoding):
        original = Frame.text_frame("TALB", "Album Ä", encoding)
        decoded, _ = decode_frame(encode_frame(original, version), version)
        assert decoded == original
        assert decoded.text == "Album Ä"

    def test_size_follows_payload(self):
        f = Frame.text_frame("TIT2", "short")
        f.payload = text_body("a much longer title")
        raw = encode_frame(f, 4)
        assert syncsafe_decode(raw[4:8]) == len(f.payload)
        assert decode_frame(raw, 4)[0].text == "a much longer title"

    def test_flags_preserved(self):
        raw = frame("TIT2", text_body("Flagged"), flags=0x4000)
        decoded, _ = decode_frame(raw, 4)
        assert decoded.flags == 0x4000
        assert encode_frame(decoded, 4) == raw

    def test_opaque_bytes_unchanged(self):
        raw = frame("PRIV", b"owner\x00\xde\xad\xbe\xef")
        decoded, _ = decode_frame(raw, 4)
        assert encode_frame(decoded, 4) == raw

    def test_utf8_rejected_on_v23_write(self):
        with pytest.raises(EncodingNotAllowed) as exc_info:
            encode_frame(Frame.text_frame("TIT2", "Hi", Encoding.UTF8), 3)
        assert "UTF-8" in str(exc_info.value)

    def test_utf16be_rejected_on_v23_write(self):
        with pytest.raises(EncodingNotAllowed):
            encode_frame(Frame.text_frame("TIT2", "Hi", Encoding.UTF16BE), 3)

    def test_invalid_id_rejected_on_write(self):
        with pytest.raises(CorruptFrame):
            encode_frame(Frame("tit2", b"\x03x"), 4)
