"""Tests for file sessions: dirty tracking and atomic saves."""

from __future__ import annotations

import os

import pytest

from tagger.errors import TagIOError, TruncatedFrame, UnsupportedImageFormat
from tagger.session import FileSession
from tagger.tags.document import TagDocument
from tests.tag_builders import TRAILER


class TestOpen:
    def test_fresh_session_is_clean(self, tagged_file):
        session = FileSession.open(str(tagged_file))

        assert session.dirty is False
        assert session.raw_trailer == TRAILER
        assert session.display_name == "song.mp3"
        assert session.document.get_text("title") == "Song Title"

    def test_missing_file(self, tmp_path):
        with pytest.raises(TagIOError):
            FileSession.open(str(tmp_path / "nope.mp3"))

    def test_truncated_file(self, truncated_file):
        with pytest.raises(TruncatedFrame):
            FileSession.open(str(truncated_file))


class TestDirtyTracking:
    def test_set_field_marks_dirty(self, tagged_file):
        session = FileSession.open(str(tagged_file))
        session.set_field("album", "Album")
        assert session.dirty is True

    def test_remove_marks_dirty(self, tagged_file):
        session = FileSession.open(str(tagged_file))
        session.remove_image()
        assert session.dirty is True

    def test_save_clears_dirty(self, tagged_file):
        session = FileSession.open(str(tagged_file))
        session.set_field("album", "Album")
        session.save()

        assert session.dirty is False
        data = tagged_file.read_bytes()
        assert data.endswith(TRAILER)
        assert TagDocument.parse(data).get_text("album") == "Album"

    def test_failed_save_keeps_state(self, tagged_file, monkeypatch):
        original = tagged_file.read_bytes()
        session = FileSession.open(str(tagged_file))
        session.set_field("title", "Changed")

        def fail_replace(src, dst):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(os, "replace", fail_replace)
        with pytest.raises(TagIOError):
            session.save()

        assert session.dirty is True
        assert session.document.get_text("title") == "Changed"
        assert tagged_file.read_bytes() == original
        assert os.listdir(tagged_file.parent) == ["song.mp3"]

    def test_save_is_idempotent(self, tagged_file):
        session = FileSession.open(str(tagged_file))
        session.set_field("genre", "Jazz")
        session.save()
        first = tagged_file.read_bytes()
        session.save()

        assert tagged_file.read_bytes() == first

    def test_unchanged_save_keeps_trailer_and_frames(self, tagged_file, tag_bytes):
        session = FileSession.open(str(tagged_file))
        session.save()

        reopened = FileSession.open(str(tagged_file))
        assert reopened.raw_trailer == TRAILER
        assert reopened.document == TagDocument.parse(tag_bytes)


class TestSaveAs:
    def test_path_moves_to_new_file(self, tagged_file, tmp_path):
        original = tagged_file.read_bytes()
        target = tmp_path / "copy.mp3"
        session = FileSession.open(str(tagged_file))
        session.set_field("title", "Copy")
        session.save_as(str(target))

        assert session.path == str(target)
        assert session.dirty is False
        assert tagged_file.read_bytes() == original
        assert FileSession.open(str(target)).document.get_text("title") == "Copy"

    def test_save_as_keeps_mode(self, tagged_file, tmp_path):
        os.chmod(tagged_file, 0o644)
        target = tmp_path / "copy.mp3"
        session = FileSession.open(str(tagged_file))
        session.save_as(str(target))

        assert os.stat(target).st_mode & 0o777 == 0o644

    def test_save_as_over_existing_file_keeps_its_mode(self, tagged_file, tmp_path):
        os.chmod(tagged_file, 0o644)
        target = tmp_path / "existing.mp3"
        target.write_bytes(b"old")
        os.chmod(target, 0o640)

        FileSession.open(str(tagged_file)).save_as(str(target))

        assert os.stat(target).st_mode & 0o777 == 0o640

    def test_unwritable_target(self, tagged_file, tmp_path):
        session = FileSession.open(str(tagged_file))
        session.set_field("title", "Copy")

        with pytest.raises(TagIOError):
            session.save_as(str(tmp_path / "missing-dir" / "copy.mp3"))
        assert session.path == str(tagged_file)
        assert session.dirty is True


class TestImages:
    def test_absent_image(self, tagged_file):
        session = FileSession.open(str(tagged_file))
        assert session.get_image() is None
        assert session.has_image() is False

    def test_set_then_remove(self, tagged_file, png_bytes):
        session = FileSession.open(str(tagged_file))
        session.set_image("image/png", png_bytes)
        assert session.get_image().raw_bytes == png_bytes

        session.remove_image()
        assert session.get_image() is None
        assert all(f.frame_id != "APIC" for f in session.document.frames)

    def test_image_survives_save(self, tagged_file, jpeg_bytes):
        session = FileSession.open(str(tagged_file))
        session.set_image("image/jpeg", jpeg_bytes)
        session.save()

        cover = FileSession.open(str(tagged_file)).get_image()
        assert cover.mime_type == "image/jpeg"
        assert cover.raw_bytes == jpeg_bytes

    def test_rejected_image_leaves_document(self, tagged_file, png_bytes):
        session = FileSession.open(str(tagged_file))
        session.set_image("image/png", png_bytes)
        session.save()

        with pytest.raises(UnsupportedImageFormat):
            session.set_image("image/png", b"\xff\xd8\xff" + b"\x00" * 14)

        assert session.dirty is False
        assert session.get_image().raw_bytes == png_bytes
