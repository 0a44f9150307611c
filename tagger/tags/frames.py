# Mr Tagger - ID3v2 tag editing engine
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Frame model for ID3v2 tags
Decodes and encodes single frames; knows which frame kinds are editable
"""
import re
import struct
from dataclasses import dataclass
from typing import Optional, Tuple

from mutagen.id3 import Encoding

from config import FIELD_FRAMES, IMAGE_FRAME_ID
from tagger.errors import (
    CorruptFrame, EncodingNotAllowed, FormatError, TruncatedFrame, UnknownEncoding
)

FRAME_HEADER_SIZE = 10
MAX_SYNCSAFE = (1 << 28) - 1

# Format flags that change how the body must be read (compression, encryption,
# grouping, unsynchronisation, data length indicator)
FORMAT_FLAG_MASK = {
    3: 0x00E0,
    4: 0x004F
}

CODECS = {
    Encoding.LATIN1: 'latin-1',
    Encoding.UTF16: 'utf-16',
    Encoding.UTF16BE: 'utf-16-be',
    Encoding.UTF8: 'utf-8'
}

ENCODING_LABELS = {
    Encoding.LATIN1: 'Latin-1',
    Encoding.UTF16: 'UTF-16',
    Encoding.UTF16BE: 'UTF-16BE',
    Encoding.UTF8: 'UTF-8'
}

# Encodings a v2.3 tag may carry
V23_ENCODINGS = (Encoding.LATIN1, Encoding.UTF16)

TEXT_FRAME_IDS = frozenset(
    frame_id for versions in FIELD_FRAMES.values() for frame_id in versions.values()
)
KNOWN_FRAME_IDS = TEXT_FRAME_IDS | {IMAGE_FRAME_ID}

_FRAME_ID_RE = re.compile(rb'[A-Z0-9]{4}')


def syncsafe_decode(data: bytes) -> int:
    """Decode a 4-byte syncsafe integer (7 significant bits per byte)"""
    value = 0
    for byte in data:
        value = (value << 7) | (byte & 0x7F)
    return value


def syncsafe_encode(value: int) -> bytes:
    if value < 0 or value > MAX_SYNCSAFE:
        raise FormatError(f"Size {value} does not fit in a syncsafe integer")
    return bytes((value >> shift) & 0x7F for shift in (21, 14, 7, 0))


def is_text_frame(frame_id: str) -> bool:
    return frame_id in TEXT_FRAME_IDS


def terminator(encoding: Encoding) -> bytes:
    """Null terminator for strings in the given encoding"""
    if encoding in (Encoding.UTF16, Encoding.UTF16BE):
        return b'\x00\x00'
    return b'\x00'


@dataclass
class Frame:
    """A single tag frame

    `payload` is the frame body exactly as stored on disk (for text frames it
    starts with the encoding byte). Opaque frames are never reinterpreted.
    """
    frame_id: str
    payload: bytes
    flags: int = 0
    opaque: bool = False

    @property
    def text_encoding(self) -> Optional[Encoding]:
        if self.opaque or not is_text_frame(self.frame_id) or not self.payload:
            return None
        if self.payload[0] not in CODECS:
            return None
        return Encoding(self.payload[0])

    @property
    def text(self) -> str:
        """Decoded value of a text frame; multiple values are joined with '/'"""
        encoding = self.text_encoding
        if encoding is None:
            raise FormatError(f"{self.frame_id} is not a readable text frame")
        decoded = self.payload[1:].decode(CODECS[encoding], errors='replace')
        values = [part.lstrip('\ufeff') for part in decoded.split('\x00')]
        return '/'.join(value for value in values if value)

    @classmethod
    def text_frame(cls, frame_id: str, value: str, encoding: Encoding = Encoding.UTF8) -> 'Frame':
        if not is_text_frame(frame_id):
            raise FormatError(f"{frame_id} is not a text frame")
        return cls(frame_id, bytes([encoding]) + value.encode(CODECS[encoding]))


def decode_frame(data: bytes, version: int, offset: int = 0) -> Tuple[Frame, int]:
    """
    Decode one frame starting at `offset`

    Args:
        data: Buffer holding the frames region of a tag block
        version: ID3v2 major version (3 or 4)
        offset: Position of the frame header in `data`

    Returns:
        tuple: (frame, number of bytes consumed)

    Raises:
        TruncatedFrame: Header or declared body runs past the buffer
        CorruptFrame: Frame id is not four uppercase letters/digits
        UnknownEncoding: A known frame names an encoding the version does not allow;
            the exception carries the frame marked opaque
    """
    remaining = len(data) - offset
    if remaining < FRAME_HEADER_SIZE:
        raise TruncatedFrame(f"Frame header needs {FRAME_HEADER_SIZE} bytes, {remaining} left")

    raw_id = data[offset:offset + 4]
    if not _FRAME_ID_RE.fullmatch(raw_id):
        raise CorruptFrame(f"Invalid frame id {raw_id!r} at offset {offset}")
    frame_id = raw_id.decode('ascii')

    size_bytes = data[offset + 4:offset + 8]
    if version == 4:
        size = syncsafe_decode(size_bytes)
    else:
        size = struct.unpack('>I', size_bytes)[0]
    flags = struct.unpack('>H', data[offset + 8:offset + 10])[0]

    body_start = offset + FRAME_HEADER_SIZE
    if size > len(data) - body_start:
        raise TruncatedFrame(
            f"Frame {frame_id} declares {size} bytes, only {len(data) - body_start} available"
        )
    payload = bytes(data[body_start:body_start + size])
    consumed = FRAME_HEADER_SIZE + size

    opaque = (
        frame_id not in KNOWN_FRAME_IDS
        or not payload
        or bool(flags & FORMAT_FLAG_MASK[version])
    )
    frame = Frame(frame_id, payload, flags, opaque)

    if not opaque:
        allowed = V23_ENCODINGS if version == 3 else tuple(CODECS)
        if payload[0] not in allowed:
            frame.opaque = True
            raise UnknownEncoding(
                f"Frame {frame_id} uses encoding byte {payload[0]} in ID3v2.{version}", frame=frame
            )

    return frame, consumed


def encode_frame(frame: Frame, version: int) -> bytes:
    """Encode a frame; the size field always comes from the current payload"""
    if not _FRAME_ID_RE.fullmatch(frame.frame_id.encode('ascii', errors='replace')):
        raise CorruptFrame(f"Invalid frame id {frame.frame_id!r}")

    if not frame.opaque and version == 3:
        encoding = frame.text_encoding
        if encoding is not None and encoding not in V23_ENCODINGS:
            raise EncodingNotAllowed(f"{ENCODING_LABELS[encoding]} text is not allowed in ID3v2.3")

    size = len(frame.payload)
    if version == 4:
        size_bytes = syncsafe_encode(size)
    else:
        size_bytes = struct.pack('>I', size)

    return frame.frame_id.encode('ascii') + size_bytes + struct.pack('>H', frame.flags) + frame.payload
