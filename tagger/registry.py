"""
Open file registry for Mr Tagger
Single source of truth for which files are open and which have unsaved changes
"""
import threading
import uuid
from concurrent.futures import Future
from typing import Callable, Dict, List, TypeVar

from config import UNSAVED_CHANGES_PROMPT, logger
from tagger.errors import SessionNotFound
from tagger.session import FileSession

T = TypeVar('T')


class SessionRegistry:
    """All open file sessions, keyed by handle and guarded by one lock

    The lock is held during file I/O as well, so saves of different files
    never run in parallel.
    """

    def __init__(self):
        self.sessions: Dict[str, FileSession] = {}
        self.lock = threading.Lock()

    def open(self, path: str) -> str:
        """Open a file and return its new handle; nothing is registered on failure"""
        with self.lock:
            session = FileSession.open(path)
            handle = uuid.uuid4().hex
            self.sessions[handle] = session
            return handle

    def close(self, handle: str):
        """Forget a session whether or not it has unsaved changes"""
        with self.lock:
            session = self.sessions.pop(handle, None)
            if session is None:
                raise SessionNotFound(f"No open file for handle {handle}")
            logger.info(f"Closed {session.path}")

    def close_all(self):
        with self.lock:
            count = len(self.sessions)
            self.sessions.clear()
        logger.info(f"Closed {count} open files")

    def with_session(self, handle: str, fn: Callable[[FileSession], T]) -> T:
        """Run `fn` on a session while holding the registry lock"""
        with self.lock:
            session = self.sessions.get(handle)
            if session is None:
                raise SessionNotFound(f"No open file for handle {handle}")
            return fn(session)

    def any_dirty(self) -> bool:
        with self.lock:
            return any(session.dirty for session in self.sessions.values())

    def list_sessions(self) -> List[dict]:
        with self.lock:
            return [
                dict(session.to_dict(), handle=handle)
                for handle, session in self.sessions.items()
            ]

    def request_exit(self, confirm: Callable[[str], bool]) -> 'Future[bool]':
        """
        Decide whether the application may exit

        With no unsaved changes every session is closed and the result is
        True straight away. Otherwise `confirm` is asked on a worker thread,
        outside the lock; a yes closes every session, a no leaves them open.

        Args:
            confirm: Blocking yes/no prompt, called with the message to show

        Returns:
            Future resolving to True when the application may exit
        """
        result: 'Future[bool]' = Future()

        if not self.any_dirty():
            self.close_all()
            result.set_result(True)
            return result

        def ask():
            try:
                answer = bool(confirm(UNSAVED_CHANGES_PROMPT))
                if answer:
                    self.close_all()
                else:
                    logger.info("Exit cancelled, unsaved changes kept")
                result.set_result(answer)
            except Exception as e:
                logger.error(f"Exit confirmation failed: {e}")
                result.set_exception(e)

        threading.Thread(target=ask, name='exit-confirmation', daemon=True).start()
        return result


# Global registry instance
registry = SessionRegistry()
