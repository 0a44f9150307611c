"""
Album art codec for Mr Tagger
Recognizes PNG/JPEG cover images and converts them to and from APIC frames
"""
import base64
import binascii
from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Tuple

from mutagen.id3 import Encoding, PictureType
from PIL import Image

from config import IMAGE_FRAME_ID, logger
from tagger.errors import CorruptFrame, UnsupportedImageFormat
from tagger.tags.frames import CODECS, Frame, terminator

PNG_MAGIC = b'\x89PNG\r\n\x1a\n'
JPEG_MAGIC = b'\xff\xd8\xff'

# Pillow format name for each accepted mime type
PILLOW_FORMATS = {
    'image/png': 'PNG',
    'image/jpeg': 'JPEG'
}

MIME_ALIASES = {
    'image/jpg': 'image/jpeg',
    'image/pjpeg': 'image/jpeg',
    'png': 'image/png',
    'jpeg': 'image/jpeg',
    'jpg': 'image/jpeg'
}


@dataclass
class ImageInfo:
    mime_type: str
    width: int
    height: int
    raw_bytes: bytes


@dataclass
class CoverImage:
    """Contents of an APIC frame"""
    mime_type: str
    picture_type: int
    description: str
    raw_bytes: bytes


def normalize_mime_type(mime_type: Optional[str]) -> str:
    mime_type = (mime_type or '').strip().lower()
    return MIME_ALIASES.get(mime_type, mime_type)


def sniff_mime_type(data: bytes) -> Optional[str]:
    """Classify image bytes by their magic prefix (PNG and JPEG only)"""
    if data.startswith(PNG_MAGIC):
        return 'image/png'
    if data.startswith(JPEG_MAGIC):
        return 'image/jpeg'
    return None


def decode_image(data: bytes) -> ImageInfo:
    """
    Identify an image and read its dimensions without decoding pixels

    Args:
        data: Raw image bytes

    Returns:
        ImageInfo: mime type, width, height and the untouched bytes

    Raises:
        UnsupportedImageFormat: Not PNG/JPEG, or the header cannot be read
    """
    mime_type = sniff_mime_type(data)
    if mime_type is None:
        raise UnsupportedImageFormat("Image is neither PNG nor JPEG")

    try:
        # Image.open only reads the header; pixels are loaded lazily
        with Image.open(BytesIO(data), formats=[PILLOW_FORMATS[mime_type]]) as img:
            width, height = img.size
    except Exception as e:
        raise UnsupportedImageFormat(f"Could not read {mime_type} header: {e}") from e

    return ImageInfo(mime_type, width, height, data)


def encode_image_frame(mime_type: str, raw_bytes: bytes) -> Frame:
    """
    Build a front-cover APIC frame

    The declared mime type must match the image bytes. No size limit is applied.

    Raises:
        UnsupportedImageFormat: Unrecognized image or mime/content mismatch
    """
    mime_type = normalize_mime_type(mime_type)
    if mime_type not in PILLOW_FORMATS:
        raise UnsupportedImageFormat(f"Unsupported image type '{mime_type}'")

    info = decode_image(raw_bytes)
    if info.mime_type != mime_type:
        raise UnsupportedImageFormat(
            f"Image declared as {mime_type} but contains {info.mime_type} data"
        )

    payload = (
        bytes([Encoding.LATIN1])
        + mime_type.encode('latin-1') + b'\x00'
        + bytes([PictureType.COVER_FRONT])
        + terminator(Encoding.LATIN1)
        + raw_bytes
    )
    return Frame(IMAGE_FRAME_ID, payload)


def _find_terminator(data: bytes, start: int, encoding: Encoding) -> int:
    term = terminator(encoding)
    step = len(term)
    pos = start
    while pos + step <= len(data):
        if data[pos:pos + step] == term:
            return pos
        pos += step
    return -1


def decode_image_frame(frame: Frame) -> CoverImage:
    """Parse the body of an APIC frame"""
    data = frame.payload
    if not data or data[0] not in CODECS:
        raise CorruptFrame(f"{frame.frame_id} frame has no valid text encoding")
    encoding = Encoding(data[0])

    mime_end = data.find(b'\x00', 1)
    if mime_end < 0 or mime_end + 1 >= len(data):
        raise CorruptFrame(f"{frame.frame_id} frame has no mime type")
    mime_type = data[1:mime_end].decode('latin-1')
    picture_type = data[mime_end + 1]

    desc_start = mime_end + 2
    desc_end = _find_terminator(data, desc_start, encoding)
    if desc_end < 0:
        raise CorruptFrame(f"{frame.frame_id} frame description is not terminated")
    description = data[desc_start:desc_end].decode(CODECS[encoding], errors='replace')

    image_start = desc_end + len(terminator(encoding))
    return CoverImage(normalize_mime_type(mime_type), picture_type, description, data[image_start:])


def parse_data_url(art_data: str) -> Tuple[Optional[str], bytes]:
    """Split a base64 data URL (or bare base64) into mime type and bytes"""
    mime_type = None
    if ',' in art_data:
        prefix, art_data = art_data.split(',', 1)
        if prefix.startswith('data:'):
            mime_type = prefix[5:].split(';')[0] or None
    try:
        return mime_type, base64.b64decode(art_data, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Rejected album art upload: {e}")
        raise UnsupportedImageFormat("Image data is not valid base64") from e


def to_data_url(mime_type: str, raw_bytes: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(raw_bytes).decode()}"
