"""Reader/writer lock for the shared caches."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Writers are preferred: once a writer is waiting, new readers block until
    it has run. Not reentrant.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the lock shared."""
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the lock exclusively."""
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class Memo:
    """Per-key memo table guarded by a ReadWriteLock.

    Stores negative results (None) as well as positive ones. The first value
    written for a key wins; later writers get the stored value back.
    """

    _MISSING = object()

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._values: dict = {}

    def lookup(self, key) -> tuple[bool, object]:
        """Return (hit, value) for key."""
        with self._lock.read():
            value = self._values.get(key, self._MISSING)
        if value is self._MISSING:
            return False, None
        return True, value

    def store(self, key, value):
        """Store value unless key is already present; return the kept value."""
        with self._lock.write():
            return self._values.setdefault(key, value)

    def clear(self) -> None:
        with self._lock.write():
            self._values.clear()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._values)
