"""按内容哈希加锁。

同一哈希的并发请求串行化，后到者在锁内重新检查后直接读取结果。
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ContentLocks:
    """按哈希分配的锁注册表，无人持有的锁会被回收"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._waiters: dict[str, int] = {}

    @contextmanager
    def hold(self, content_hash: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(content_hash, threading.Lock())
            self._waiters[content_hash] = self._waiters.get(content_hash, 0) + 1

        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._waiters[content_hash] -= 1
                if self._waiters[content_hash] == 0:
                    del self._waiters[content_hash]
                    del self._locks[content_hash]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
