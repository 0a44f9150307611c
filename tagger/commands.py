"""
Command surface for Mr Tagger
Thin request/response operations for the UI layer. Every engine error is
turned into a message here and nowhere else.
"""
from typing import Callable, Iterable, Optional

from config import logger
from tagger.album_art.codec import decode_image
from tagger.errors import TaggerError, UnsupportedImageFormat
from tagger.file_utils import display_name
from tagger.registry import SessionRegistry, registry as default_registry


def _error_response(e: TaggerError, action: str) -> dict:
    """Downgrade an engine error to a user-facing message"""
    detail = str(e)
    message = e.user_message if detail == e.user_message else f"{e.user_message}: {detail}"
    logger.error(f"Error {action}: {detail}")
    return {'status': 'error', 'error': message, 'kind': type(e).__name__}


class TaggerCommands:
    """Operations exposed to the UI; holds nothing but the registry"""

    def __init__(self, registry: Optional[SessionRegistry] = None):
        self.registry = registry if registry is not None else default_registry

    def open_files(self, paths: Iterable[str]) -> list:
        """Open each path on its own; one bad file never aborts the batch"""
        results = []
        for path in paths:
            try:
                handle = self.registry.open(path)
                results.append({'handle': handle, 'name': display_name(path), 'path': path})
            except TaggerError as e:
                response = _error_response(e, f"opening {path}")
                results.append({'handle': None, 'name': display_name(path), 'path': path,
                                'error': response['error'], 'kind': response['kind']})
        return results

    def close_file(self, handle: str) -> dict:
        try:
            self.registry.close(handle)
            return {'status': 'success'}
        except TaggerError as e:
            return _error_response(e, f"closing {handle}")

    def save_file(self, handle: str, as_path: Optional[str] = None) -> dict:
        def save(session):
            if as_path:
                session.save_as(as_path)
            else:
                session.save()
            return session.to_dict()

        try:
            return dict(self.registry.with_session(handle, save), status='success')
        except TaggerError as e:
            return _error_response(e, f"saving {handle}")

    def get_image(self, handle: str) -> dict:
        """Cover image bytes and details; 'image' is None when the file has none"""
        try:
            cover = self.registry.with_session(handle, lambda session: session.get_image())
        except TaggerError as e:
            return _error_response(e, f"reading image of {handle}")

        if cover is None:
            return {'status': 'success', 'image': None}

        width = height = None
        try:
            info = decode_image(cover.raw_bytes)
            width, height = info.width, info.height
        except UnsupportedImageFormat:
            logger.warning(f"Embedded {cover.mime_type} image of {handle} is not a readable PNG/JPEG")

        return {
            'status': 'success',
            'image': {
                'mime_type': cover.mime_type,
                'data': cover.raw_bytes,
                'width': width,
                'height': height,
                'picture_type': cover.picture_type,
                'description': cover.description
            }
        }

    def set_image(self, handle: str, mime_type: str, raw_bytes: bytes) -> dict:
        try:
            self.registry.with_session(handle, lambda session: session.set_image(mime_type, raw_bytes))
            return {'status': 'success'}
        except TaggerError as e:
            return _error_response(e, f"setting image of {handle}")

    def remove_image(self, handle: str) -> dict:
        try:
            self.registry.with_session(handle, lambda session: session.remove_image())
            return {'status': 'success'}
        except TaggerError as e:
            return _error_response(e, f"removing image of {handle}")

    def set_field(self, handle: str, field_name: str, value: str) -> dict:
        try:
            self.registry.with_session(handle, lambda session: session.set_field(field_name, value))
            return {'status': 'success'}
        except TaggerError as e:
            return _error_response(e, f"setting {field_name} of {handle}")

    def remove_field(self, handle: str, field_name: str) -> dict:
        try:
            self.registry.with_session(handle, lambda session: session.remove_field(field_name))
            return {'status': 'success'}
        except TaggerError as e:
            return _error_response(e, f"removing {field_name} of {handle}")

    def get_page(self, handle: str) -> dict:
        """Read-only snapshot for populating the editor view"""
        def snapshot(session):
            return dict(
                session.to_dict(),
                handle=handle,
                version=f"ID3v2.{session.document.version}",
                fields=session.document.fields(),
                hasImage=session.has_image()
            )

        try:
            return dict(self.registry.with_session(handle, snapshot), status='success')
        except TaggerError as e:
            return _error_response(e, f"reading {handle}")

    def list_files(self) -> dict:
        return {'files': self.registry.list_sessions()}

    def is_dirty(self) -> bool:
        return self.registry.any_dirty()

    def close_all(self) -> dict:
        """Second phase of the exit protocol, once the user agreed to discard changes"""
        self.registry.close_all()
        return {'status': 'success'}

    def request_exit(self, confirm: Callable[[str], bool]):
        return self.registry.request_exit(confirm)
