"""Blob 存储抽象与实现。

路径一律是相对于存储根目录的 POSIX 风格字符串，如
``images/optimized/ab/cd/<rest>/photo.webp``。
"""

import os
import shutil
import tempfile
import threading
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..exceptions import StorageError, handle_storage_errors
from ..utils.logging_helpers import get_logger


logger = get_logger()


@runtime_checkable
class BlobStore(Protocol):
    """最小的 blob 存储接口"""

    def put(self, path: str, data: bytes) -> None: ...

    def get(self, path: str) -> bytes: ...

    def delete(self, path: str) -> bool: ...

    def delete_prefix(self, prefix: str) -> bool: ...

    def exists(self, path: str) -> bool: ...

    def size(self, path: str) -> int: ...

    def url(self, path: str) -> str: ...

    def iter_paths(self, prefix: str) -> Iterator[str]: ...

    def modified_at(self, path: str) -> float: ...


def join_url(base_url: str, path: str) -> str:
    """拼接公开访问 URL"""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


class LocalBlobStore:
    """本地文件系统存储

    写入先落到同目录的临时文件，再原子替换目标文件。
    """

    def __init__(self, root: str | Path, base_url: str = "/storage"):
        self.root = Path(root)
        self.base_url = base_url

    def _resolve(self, path: str) -> Path:
        root = self.root.resolve()
        full = (root / path).resolve()
        if not full.is_relative_to(root):
            raise StorageError(f"路径越出存储根目录: {path}")
        return full

    @handle_storage_errors("写入文件")
    def put(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"已写入 {path} ({len(data)} bytes)")

    @handle_storage_errors("读取文件")
    def get(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    @handle_storage_errors("删除文件")
    def delete(self, path: str) -> bool:
        target = self._resolve(path)
        if not target.is_file():
            return False
        target.unlink()
        return True

    @handle_storage_errors("删除目录")
    def delete_prefix(self, prefix: str) -> bool:
        target = self._resolve(prefix)
        if not target.exists():
            return False
        if target.is_dir():
            shutil.rmtree(target)
        else:
            target.unlink()
        return True

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    @handle_storage_errors("获取文件大小")
    def size(self, path: str) -> int:
        return self._resolve(path).stat().st_size

    def url(self, path: str) -> str:
        return join_url(self.base_url, path)

    def iter_paths(self, prefix: str) -> Iterator[str]:
        base = self._resolve(prefix)
        if not base.is_dir():
            return
        root = self.root.resolve()
        for file_path in sorted(base.rglob("*")):
            if file_path.is_file() and not file_path.name.startswith(".tmp-"):
                yield file_path.relative_to(root).as_posix()

    @handle_storage_errors("获取修改时间")
    def modified_at(self, path: str) -> float:
        return self._resolve(path).stat().st_mtime


class MemoryBlobStore:
    """内存存储，用于测试和临时场景"""

    def __init__(self, base_url: str = "/storage"):
        self.base_url = base_url
        self._blobs: dict[str, bytes] = {}
        self._modified: dict[str, float] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _normalize(path: str) -> str:
        return path.strip("/")

    def put(self, path: str, data: bytes) -> None:
        key = self._normalize(path)
        with self._lock:
            self._blobs[key] = bytes(data)
            self._modified[key] = time.time()

    def get(self, path: str) -> bytes:
        key = self._normalize(path)
        with self._lock:
            if key not in self._blobs:
                raise StorageError(f"文件不存在: {path}")
            return self._blobs[key]

    def delete(self, path: str) -> bool:
        key = self._normalize(path)
        with self._lock:
            self._modified.pop(key, None)
            return self._blobs.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> bool:
        base = self._normalize(prefix) + "/"
        with self._lock:
            keys = [key for key in self._blobs if key.startswith(base)]
            for key in keys:
                del self._blobs[key]
                self._modified.pop(key, None)
        return bool(keys)

    def exists(self, path: str) -> bool:
        key = self._normalize(path)
        with self._lock:
            return key in self._blobs or any(
                existing.startswith(key + "/") for existing in self._blobs
            )

    def size(self, path: str) -> int:
        return len(self.get(path))

    def url(self, path: str) -> str:
        return join_url(self.base_url, path)

    def iter_paths(self, prefix: str) -> Iterator[str]:
        base = self._normalize(prefix) + "/"
        with self._lock:
            keys = sorted(key for key in self._blobs if key.startswith(base))
        yield from keys

    def modified_at(self, path: str) -> float:
        key = self._normalize(path)
        with self._lock:
            if key not in self._modified:
                raise StorageError(f"文件不存在: {path}")
            return self._modified[key]

    def set_modified_at(self, path: str, timestamp: float) -> None:
        """调整修改时间，用于过期清理的测试"""
        with self._lock:
            self._modified[self._normalize(path)] = timestamp
