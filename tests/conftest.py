"""Pytest configuration and shared fixtures for Mr Tagger tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from tagger.commands import TaggerCommands
from tagger.registry import SessionRegistry
from tests.tag_builders import TRAILER, frame, image_bytes, tag, text_body

# =============================================================================
# Image Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def png_bytes() -> bytes:
    return image_bytes("PNG", (4, 3))


@pytest.fixture(scope="session")
def jpeg_bytes() -> bytes:
    return image_bytes("JPEG", (8, 6))


# =============================================================================
# Tagged File Fixtures
# =============================================================================


@pytest.fixture
def tag_bytes() -> bytes:
    """A v2.4 tag with two known text frames and one opaque frame."""
    return tag(
        frame("TIT2", text_body("Song Title")),
        frame("TPE1", text_body("Some Artist")),
        frame("TXXX", b"\x03custom\x00value"),
        padding=16,
    )


@pytest.fixture
def tagged_file(tmp_path: Path, tag_bytes: bytes) -> Path:
    path = tmp_path / "song.mp3"
    path.write_bytes(tag_bytes + TRAILER)
    return path


@pytest.fixture
def corrupt_file(tmp_path: Path) -> Path:
    path = tmp_path / "corrupt.mp3"
    path.write_bytes(b"RIFF" + b"\x00" * 40)
    return path


@pytest.fixture
def truncated_file(tmp_path: Path) -> Path:
    """Header declares a 20 byte tag block but only 10 bytes follow."""
    path = tmp_path / "truncated.mp3"
    path.write_bytes(b"ID3\x04\x00\x00" + b"\x00\x00\x00\x14" + b"\x00" * 10)
    return path


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def commands(registry: SessionRegistry) -> TaggerCommands:
    return TaggerCommands(registry)
