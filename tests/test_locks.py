"""Tests for the reader/writer lock and memo table."""

import threading
import time

from reactor.locks import Memo, ReadWriteLock


class TestReadWriteLock:
    def test_readers_share(self) -> None:
        """Two readers can hold the lock at once."""
        lock = ReadWriteLock()
        inside = threading.Barrier(2)
        done = []

        def reader() -> None:
            with lock.read():
                inside.wait(timeout=2)
                done.append(True)

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert done == [True, True]

    def test_writer_excludes_readers(self) -> None:
        lock = ReadWriteLock()
        events: list[str] = []
        writer_in = threading.Event()

        def writer() -> None:
            with lock.write():
                writer_in.set()
                time.sleep(0.1)
                events.append("write-done")

        def reader() -> None:
            writer_in.wait(timeout=2)
            with lock.read():
                events.append("read")

        w = threading.Thread(target=writer)
        r = threading.Thread(target=reader)
        w.start()
        r.start()
        w.join(timeout=5)
        r.join(timeout=5)

        assert events == ["write-done", "read"]

    def test_lock_released_on_error(self) -> None:
        lock = ReadWriteLock()
        try:
            with lock.write():
                raise ValueError("boom")
        except ValueError:
            pass
        with lock.read():
            pass


class TestMemo:
    def test_stores_negative_results(self) -> None:
        memo = Memo()
        assert memo.lookup(1) == (False, None)
        memo.store(1, None)
        assert memo.lookup(1) == (True, None)

    def test_first_value_wins(self) -> None:
        memo = Memo()
        assert memo.store("k", "first") == "first"
        assert memo.store("k", "second") == "first"
        assert memo.lookup("k") == (True, "first")

    def test_clear(self) -> None:
        memo = Memo()
        memo.store(1, "a")
        memo.clear()
        assert len(memo) == 0
        assert memo.lookup(1) == (False, None)
