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
Tag document operations for Mr Tagger
Parses an ID3v2 tag block into an ordered list of frames and writes it back
"""
import struct
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from mutagen.id3 import Encoding

from config import DEFAULT_TEXT_ENCODING, FIELD_FRAMES, logger
from tagger.errors import CorruptHeader, TruncatedFrame, UnknownEncoding, UnknownField
from tagger.tags.frames import (
    FORMAT_FLAG_MASK, FRAME_HEADER_SIZE, KNOWN_FRAME_IDS, Frame, decode_frame, encode_frame,
    syncsafe_decode, syncsafe_encode
)

MAGIC = b'ID3'
HEADER_SIZE = 10
SUPPORTED_VERSIONS = (3, 4)

# Header flags
FLAG_UNSYNCHRONISATION = 0x80
FLAG_EXTENDED_HEADER = 0x40
FLAG_FOOTER = 0x10


def _read_header(data: bytes) -> Tuple[int, int, int, int]:
    """Validate the 10-byte tag header and return (version, revision, flags, size)"""
    if data[:3] != MAGIC:
        raise CorruptHeader(f"Missing ID3 marker (found {bytes(data[:3])!r})")
    if len(data) < HEADER_SIZE:
        raise TruncatedFrame(f"Tag header needs {HEADER_SIZE} bytes, got {len(data)}")

    version, revision, flags = data[3], data[4], data[5]
    if version not in SUPPORTED_VERSIONS:
        raise CorruptHeader(f"Unsupported ID3v2 version 2.{version}")
    if flags & FLAG_UNSYNCHRONISATION:
        raise CorruptHeader("Unsynchronised tags are not supported")
    if version == 4 and flags & FLAG_FOOTER:
        raise CorruptHeader("Tags with a footer are not supported")
    if any(byte & 0x80 for byte in data[6:10]):
        raise CorruptHeader("Tag size is not a syncsafe integer")

    return version, revision, flags, syncsafe_decode(data[6:10])


def tag_length(data: bytes) -> int:
    """Total on-disk length (header included) declared by the tag at the start of `data`"""
    size = _read_header(data)[3]
    if HEADER_SIZE + size > len(data):
        raise TruncatedFrame(
            f"Tag declares {size} bytes, only {len(data) - HEADER_SIZE} available"
        )
    return HEADER_SIZE + size


@dataclass
class TagDocument:
    """Ordered frames of one tag, plus the header details needed to rebuild it"""
    version: int = 4
    frames: List[Frame] = field(default_factory=list)
    revision: int = 0
    flags: int = 0
    extended_header: bytes = b''

    @classmethod
    def empty(cls, version: int = 4) -> 'TagDocument':
        if version not in SUPPORTED_VERSIONS:
            raise CorruptHeader(f"Unsupported ID3v2 version 2.{version}")
        return cls(version=version)

    @classmethod
    def parse(cls, data: bytes) -> 'TagDocument':
        """
        Parse the tag block at the start of `data`

        Bytes past the declared tag length are ignored. Duplicates of a known
        frame kind are kept as opaque frames after all other frames.

        Raises:
            CorruptHeader: Bad marker, version or header flags
            CorruptFrame: A frame cannot be decoded, even as opaque
            TruncatedFrame: Declared sizes exceed the available bytes
        """
        version, revision, flags, _ = _read_header(data)
        end = tag_length(data)
        block = bytes(data[HEADER_SIZE:end])

        offset = 0
        extended_header = b''
        if flags & FLAG_EXTENDED_HEADER:
            if len(block) < 4:
                raise TruncatedFrame("Extended header is truncated")
            if version == 4:
                ext_size = syncsafe_decode(block[:4])
            else:
                # v2.3 size excludes the size field itself
                ext_size = struct.unpack('>I', block[:4])[0] + 4
            if ext_size < 4 or ext_size > len(block):
                raise TruncatedFrame(f"Extended header declares {ext_size} bytes")
            extended_header = block[:ext_size]
            offset = ext_size

        frames = []
        while offset < len(block):
            if block[offset] == 0:
                # padding runs to the end of the tag
                break
            try:
                frame, consumed = decode_frame(block, version, offset)
            except UnknownEncoding as e:
                logger.warning(f"Keeping {e.frame.frame_id} as opaque: {e}")
                frame, consumed = e.frame, FRAME_HEADER_SIZE + len(e.frame.payload)
            frames.append(frame)
            offset += consumed

        document = cls(version, [], revision, flags, extended_header)
        document.frames = document._settle_duplicates(frames)
        return document

    @staticmethod
    def _settle_duplicates(frames: List[Frame]) -> List[Frame]:
        seen = set()
        kept, duplicates = [], []
        for frame in frames:
            if frame.opaque:
                kept.append(frame)
            elif frame.frame_id in seen:
                logger.warning(f"Duplicate {frame.frame_id} frame kept as opaque data")
                frame.opaque = True
                duplicates.append(frame)
            else:
                seen.add(frame.frame_id)
                kept.append(frame)
        return kept + duplicates

    def get(self, frame_id: str) -> Optional[Frame]:
        for frame in self.frames:
            if frame.frame_id == frame_id and not frame.opaque:
                return frame
        return None

    def set(self, frame_id: str, payload: bytes) -> Frame:
        """Replace the frame of this kind, or append a new one

        A known frame that was only kept as opaque data (unreadable encoding,
        compressed body) is taken over in place and becomes editable again.
        """
        frame = self.get(frame_id)
        if frame is not None:
            frame.payload = payload
            return frame
        if frame_id in KNOWN_FRAME_IDS:
            for frame in self.frames:
                if frame.frame_id == frame_id:
                    frame.payload = payload
                    frame.flags &= ~FORMAT_FLAG_MASK[self.version]
                    frame.opaque = False
                    return frame
        frame = Frame(frame_id, payload, opaque=frame_id not in KNOWN_FRAME_IDS)
        self.frames.append(frame)
        return frame

    def remove(self, frame_id: str) -> bool:
        """Delete every frame with this id; returns whether anything was removed"""
        before = len(self.frames)
        self.frames = [frame for frame in self.frames if frame.frame_id != frame_id]
        return len(self.frames) != before

    def serialize(self) -> bytes:
        """Encode the header and all frames; the tag size is recomputed"""
        body = self.extended_header + b''.join(
            encode_frame(frame, self.version) for frame in self.frames
        )
        flags = self.flags & ~(FLAG_UNSYNCHRONISATION | FLAG_FOOTER | FLAG_EXTENDED_HEADER)
        if self.extended_header:
            flags |= FLAG_EXTENDED_HEADER
        return MAGIC + bytes([self.version, self.revision, flags]) + syncsafe_encode(len(body)) + body

    # Field level helpers

    def frame_id_for(self, field_name: str) -> str:
        try:
            return FIELD_FRAMES[field_name][self.version]
        except KeyError:
            raise UnknownField(f"Unknown field '{field_name}'")

    def get_text(self, field_name: str) -> str:
        frame = self.get(self.frame_id_for(field_name))
        return frame.text if frame is not None else ''

    def set_text(self, field_name: str, value: str, encoding: Optional[Encoding] = None):
        """Set a text field; an empty value removes the frame"""
        frame_id = self.frame_id_for(field_name)
        if not value:
            self.remove(frame_id)
            return
        if encoding is None:
            encoding = getattr(Encoding, DEFAULT_TEXT_ENCODING[self.version])
        self.set(frame_id, Frame.text_frame(frame_id, value, encoding).payload)

    def fields(self) -> Dict[str, str]:
        """All editable field values, empty when absent"""
        return {name: self.get_text(name) for name in FIELD_FRAMES}


def read_tag(data: bytes) -> Tuple[TagDocument, bytes]:
    """Split file contents into the parsed tag and the trailing bytes"""
    document = TagDocument.parse(data)
    return document, bytes(data[tag_length(data):])
