"""
Per-user serialization of multi-step operations.
"""
import threading
import weakref
from contextlib import contextmanager
from typing import Iterator

class UserLockRegistry:
    """
    Hands out one re-entrant lock per user id.

    Operations for different users never wait on each other; operations for
    the same user run one at a time. Locks are held weakly, so a user's entry
    disappears once no caller references or holds its lock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, user_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        # The local reference keeps the entry alive while the lock is held
        lock = self.lock_for(user_id)
        with lock:
            yield
