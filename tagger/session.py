"""
File sessions for Mr Tagger
Couples an open file with its parsed tag, the untouched trailing bytes and a dirty flag
"""
import os
from typing import Optional

from config import IMAGE_FRAME_ID, logger
from tagger.album_art.codec import CoverImage, decode_image_frame, encode_image_frame
from tagger.file_utils import atomic_write, display_name, read_file
from tagger.tags.document import TagDocument, read_tag


class FileSession:
    """An open file being edited

    Only mutations go through this class; the document itself never tracks
    dirtiness.
    """

    def __init__(self, path: str, document: TagDocument, raw_trailer: bytes):
        self.path = path
        self.document = document
        self.raw_trailer = raw_trailer
        self.dirty = False

    @classmethod
    def open(cls, path: str) -> 'FileSession':
        """
        Read and parse a file

        Raises:
            TagIOError: The path cannot be read
            FormatError: The file does not start with a valid tag block
        """
        path = os.path.abspath(path)
        data = read_file(path)
        document, trailer = read_tag(data)
        logger.info(f"Opened {path} (ID3v2.{document.version}, {len(document.frames)} frames)")
        return cls(path, document, trailer)

    @property
    def display_name(self) -> str:
        return display_name(self.path)

    # Mutations

    def set_field(self, field_name: str, value: str):
        self.document.set_text(field_name, value)
        self.dirty = True

    def remove_field(self, field_name: str):
        self.document.remove(self.document.frame_id_for(field_name))
        self.dirty = True

    def set_image(self, mime_type: str, raw_bytes: bytes):
        # Encoding validates the image first, so a rejected image leaves the tag alone
        frame = encode_image_frame(mime_type, raw_bytes)
        self.document.set(IMAGE_FRAME_ID, frame.payload)
        self.dirty = True

    def remove_image(self):
        self.document.remove(IMAGE_FRAME_ID)
        self.dirty = True

    # Reads

    def get_image(self) -> Optional[CoverImage]:
        """The embedded cover image, or None when the file has none"""
        frame = self.document.get(IMAGE_FRAME_ID)
        if frame is None:
            return None
        return decode_image_frame(frame)

    def has_image(self) -> bool:
        return self.document.get(IMAGE_FRAME_ID) is not None

    # Persistence

    def to_bytes(self) -> bytes:
        return self.document.serialize() + self.raw_trailer

    def save(self):
        """Write the file atomically; the session is clean afterwards"""
        atomic_write(self.path, self.to_bytes())
        self.dirty = False
        logger.info(f"Saved {self.path}")

    def save_as(self, new_path: str):
        """Write to another path, which becomes this session's working file"""
        new_path = os.path.abspath(new_path)
        atomic_write(new_path, self.to_bytes(), mode_source=self.path)
        self.path = new_path
        self.dirty = False
        logger.info(f"Saved as {new_path}")

    def to_dict(self):
        return {
            'name': self.display_name,
            'path': self.path,
            'dirty': self.dirty
        }
