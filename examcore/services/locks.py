"""
Keyed Locks
Serializes read-modify-write sequences per attempt, plan or student
"""
from contextlib import contextmanager
import threading

from examcore.errors import ConflictError


class KeyedLocks:
    """Re-entrant lock per key; entries are dropped when unused"""

    def __init__(self, timeout=10.0):
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks = {}

    @contextmanager
    def hold(self, key):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.RLock(), 0]
            entry[1] += 1

        lock = entry[0]
        acquired = lock.acquire(timeout=self.timeout)
        try:
            if not acquired:
                raise ConflictError(f"Timed out waiting for {key}; another request holds it")
            yield
        finally:
            if acquired:
                lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

    def held_keys(self):
        with self._guard:
            return set(self._locks)


def attempt_key(attempt_id):
    return f"attempt:{attempt_id}"


def plan_key(plan_id):
    return f"plan:{plan_id}"


def student_key(student_id):
    return f"student:{student_id}"
