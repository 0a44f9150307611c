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
File system utilities for Mr Tagger
Handles whole-file reads, atomic replacement and file ownership
"""
import os
import tempfile

from config import OWNER_UID, OWNER_GID, logger
from tagger.errors import TagIOError


def read_file(filepath):
    """Read a whole file, raising TagIOError when it cannot be read"""
    try:
        with open(filepath, 'rb') as f:
            return f.read()
    except OSError as e:
        raise TagIOError(f"Could not read {filepath}: {e.strerror or e}") from e


def atomic_write(filepath, data, mode_source=None):
    """
    Replace a file's contents without ever exposing a half-written file

    Writes to a temporary file in the target directory, flushes it to disk,
    then renames it over the target. On failure the target is untouched and
    the temporary file is removed. A brand new file takes its permission bits
    from `mode_source` when given.

    Raises:
        TagIOError: If writing or renaming fails
    """
    directory = os.path.dirname(os.path.abspath(filepath))
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(prefix='.mrtagger-', suffix='.tmp', dir=directory)
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, _replacement_mode(filepath, mode_source))
        os.replace(tmp_path, filepath)
        tmp_path = None
    except OSError as e:
        raise TagIOError(f"Could not write {filepath}: {e.strerror or e}") from e
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.remove(tmp_path)

    fix_file_ownership(filepath)


def _replacement_mode(filepath, mode_source=None):
    """Permission bits for the file that replaces `filepath`"""
    for path in (filepath, mode_source):
        if path is None:
            continue
        try:
            return os.stat(path).st_mode & 0o7777
        except FileNotFoundError:
            continue
    # Neither exists: what a plain open() would have created
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def fix_file_ownership(filepath):
    """Set file ownership to the configured user, when one is configured"""
    if OWNER_UID is None or OWNER_GID is None:
        return
    try:
        os.chown(filepath, OWNER_UID, OWNER_GID)
        logger.info(f"Fixed ownership of {filepath} to {OWNER_UID}:{OWNER_GID}")
    except OSError as e:
        logger.warning(f"Could not fix ownership of {filepath}: {e}")


def display_name(filepath):
    return os.path.basename(filepath)
