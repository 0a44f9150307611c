"""
Configuration and constants for Mr Tagger
"""
import os

# User/Group IDs for file ownership after a save (unset means leave as is)
OWNER_UID = int(os.environ['PUID']) if os.environ.get('PUID') else None
OWNER_GID = int(os.environ['PGID']) if os.environ.get('PGID') else None

# Server configuration
PORT = int(os.environ.get('PORT', '8339'))
HOST = os.environ.get('HOST', '127.0.0.1')

# Text encoding (mutagen Encoding attribute name) for newly written text frames,
# per ID3v2 major version.
# v2.3 only allows Latin-1 and UTF-16.
DEFAULT_TEXT_ENCODING = {
    3: 'UTF16',
    4: 'UTF8'
}

# Editable text fields and their frame ids per ID3v2 major version
FIELD_FRAMES = {
    'title': {3: 'TIT2', 4: 'TIT2'},
    'artist': {3: 'TPE1', 4: 'TPE1'},
    'album': {3: 'TALB', 4: 'TALB'},
    'albumartist': {3: 'TPE2', 4: 'TPE2'},
    'genre': {3: 'TCON', 4: 'TCON'},
    'track': {3: 'TRCK', 4: 'TRCK'},
    'disc': {3: 'TPOS', 4: 'TPOS'},
    'composer': {3: 'TCOM', 4: 'TCOM'},
    'date': {3: 'TYER', 4: 'TDRC'}
}

# Frame id of the embedded cover image
IMAGE_FRAME_ID = 'APIC'

# Prompt shown before exiting with unsaved sessions
UNSAVED_CHANGES_PROMPT = 'You have unsaved changes. Close without saving?'

# Logging configuration
import logging
logging.basicConfig(level=os.environ.get('LOG_LEVEL', 'INFO').upper())
logger = logging.getLogger(__name__)

logger.info(f"Editing {len(FIELD_FRAMES)} text fields plus cover art")
