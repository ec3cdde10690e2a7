"""结果缓存模块。

以内容哈希为键缓存已序列化的元数据记录。缓存只是加速层，
其内容始终可以从存储重建，因此缓存失效不会影响正确性。
"""

import copy
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol

from ..config import CacheSettings
from ..utils.logging_helpers import get_logger


logger = get_logger()


class CacheBackend(Protocol):
    """缓存后端接口"""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: int | None) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self, prefix: str = "") -> None: ...


class MemoryCacheBackend:
    """进程内 TTL 缓存后端

    ``ttl`` 为 None 或 0 时条目永不过期。
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int | None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        with self._lock:
            self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self, prefix: str = "") -> None:
        with self._lock:
            for key in [k for k in self._entries if k.startswith(prefix)]:
                del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class ResultCache:
    """带前缀的结果缓存

    禁用时：get 始终未命中，put/forget/flush 不做任何事，
    remember 直接调用 supplier。
    """

    def __init__(self, settings: CacheSettings, backend: CacheBackend | None = None):
        self.settings = settings
        self.backend = backend if backend is not None else MemoryCacheBackend()

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    def _key(self, key: str) -> str:
        return f"{self.settings.prefix}{key}"

    def get(self, key: str) -> Any | None:
        if not self.enabled:
            return None
        value = self.backend.get(self._key(key))
        # 返回副本，调用方修改不会影响缓存内容
        return copy.deepcopy(value)

    def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        if not self.enabled:
            return
        effective_ttl = self.settings.ttl if ttl is None else ttl
        self.backend.set(self._key(key), copy.deepcopy(value), effective_ttl)

    def forget(self, key: str) -> None:
        if not self.enabled:
            return
        self.backend.delete(self._key(key))

    def remember(
        self, key: str, supplier: Callable[[], Any], ttl: int | None = None
    ) -> Any:
        """命中时返回缓存值，否则调用 supplier 并缓存其非 None 结果"""
        if not self.enabled:
            return supplier()

        cached = self.get(key)
        if cached is not None:
            return cached

        value = supplier()
        if value is not None:
            self.put(key, value, ttl)
        return value

    def flush(self) -> None:
        """清空本缓存前缀下的所有条目"""
        if not self.enabled:
            return
        self.backend.clear(self.settings.prefix)
        logger.debug(f"已清空缓存: {self.settings.prefix}*")
