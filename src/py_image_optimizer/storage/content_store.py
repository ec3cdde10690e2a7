"""内容寻址存储。

按内容哈希组织原始文件、优化文件、变体和元数据记录::

    <base>/<originals>/<hashpath>/<filename>
    <base>/<optimized>/<hashpath>/<stem>[-<variant>].<ext>
    <base>/<optimized>/<hashpath>/meta.json

元数据记录存在与否是“该哈希已处理”的唯一判据。
"""

import hashlib
import json
import re
from enum import Enum
from typing import Any

from ..config import StorageSettings
from ..exceptions import InvalidInputError, StorageError
from ..utils.logging_helpers import get_logger
from ..utils.naming_helpers import FileNamingStrategy
from .blob_store import BlobStore


logger = get_logger()

METADATA_FILENAME = "meta.json"
HASH_PATTERN = re.compile(r"[0-9a-f]{64}")


class StorageKind(str, Enum):
    """存储区域，取值对应 ``StorageSettings.paths`` 的键"""

    ORIGINAL = "originals"
    OPTIMIZED = "optimized"


class ContentStore:
    """内容寻址存储"""

    def __init__(self, blob_store: BlobStore, settings: StorageSettings):
        self.blob_store = blob_store
        self.settings = settings

    @staticmethod
    def hash(data: bytes) -> str:
        """计算内容哈希（SHA-256 十六进制）"""
        return hashlib.sha256(data).hexdigest()

    @staticmethod
    def is_valid_hash(content_hash: str) -> bool:
        """是否为合法的内容哈希（64 位小写十六进制）"""
        return bool(HASH_PATTERN.fullmatch(content_hash))

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        return FileNamingStrategy.sanitize(filename)

    def hash_path(self, content_hash: str, depth: int | None = None) -> str:
        """哈希分散路径

        depth=2 时 ``abcdef...`` 变为 ``ab/cd/ef...``，限制单个目录下的条目数。
        """
        if not self.settings.hash_distribution:
            return content_hash

        depth = self.settings.hash_depth if depth is None else depth
        parts = [content_hash[i * 2 : i * 2 + 2] for i in range(depth)]
        parts.append(content_hash[depth * 2 :])
        return "/".join(part for part in parts if part)

    def _build_path(
        self, kind: StorageKind, content_hash: str, filename: str | None = None
    ) -> str:
        # 非法哈希可能映射到其他哈希的目录乃至整个存储区域
        if not self.is_valid_hash(content_hash):
            raise InvalidInputError(f"无效的内容哈希: {content_hash!r}")

        parts = [
            self.settings.base_path,
            self.settings.paths.get(kind.value, kind.value),
            self.hash_path(content_hash),
        ]
        if filename:
            parts.append(filename)
        return "/".join(part.strip("/") for part in parts if part)

    def directory(self, kind: StorageKind, content_hash: str) -> str:
        """某一哈希在给定区域下的目录"""
        return self._build_path(kind, content_hash)

    def original_path(self, content_hash: str, filename: str) -> str:
        return self._build_path(
            StorageKind.ORIGINAL, content_hash, self.sanitize_filename(filename)
        )

    def optimized_path(self, content_hash: str, filename: str, format_name: str) -> str:
        """主优化资源路径"""
        name = FileNamingStrategy.derived_name(filename, format_name)
        return self._build_path(StorageKind.OPTIMIZED, content_hash, name)

    def variant_path(
        self, content_hash: str, filename: str, label: str, format_name: str
    ) -> str:
        """响应式变体路径，如 ``photo-640w.webp``"""
        name = FileNamingStrategy.derived_name(filename, format_name, label)
        return self._build_path(StorageKind.OPTIMIZED, content_hash, name)

    def metadata_path(self, content_hash: str) -> str:
        return self._build_path(StorageKind.OPTIMIZED, content_hash, METADATA_FILENAME)

    def put(
        self, kind: StorageKind, content_hash: str, filename: str, data: bytes
    ) -> str:
        """写入原始文件或优化文件，返回存储路径

        原始文件使用清理后的文件名；优化文件的 ``filename`` 需已包含扩展名。
        """
        if kind is StorageKind.ORIGINAL:
            path = self.original_path(content_hash, filename)
        else:
            path = self._build_path(
                kind, content_hash, self.sanitize_filename(filename)
            )
        self.blob_store.put(path, data)
        return path

    def put_variant(
        self,
        content_hash: str,
        filename: str,
        label: str,
        format_name: str,
        data: bytes,
    ) -> str:
        path = self.variant_path(content_hash, filename, label, format_name)
        self.blob_store.put(path, data)
        return path

    def size(self, path: str) -> int:
        return self.blob_store.size(path)

    def url(self, path: str) -> str:
        return self.blob_store.url(path)

    def write_metadata(self, content_hash: str, record: dict[str, Any]) -> str:
        """写入元数据记录（提交点）"""
        path = self.metadata_path(content_hash)
        payload = json.dumps(record, indent=2, ensure_ascii=False)
        self.blob_store.put(path, payload.encode("utf-8"))
        return path

    def read_metadata(self, content_hash: str) -> dict[str, Any] | None:
        """读取元数据记录，不存在时返回 None"""
        if not self.is_valid_hash(content_hash):
            return None

        path = self.metadata_path(content_hash)
        if not self.blob_store.exists(path):
            return None

        raw = self.blob_store.get(path)
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StorageError(f"元数据记录损坏: {path}", content_hash) from e

    def exists(self, content_hash: str) -> bool:
        if not self.is_valid_hash(content_hash):
            return False
        return self.blob_store.exists(self.metadata_path(content_hash))

    def delete(self, content_hash: str) -> bool:
        """删除某一哈希的全部文件（原始、优化、变体、元数据）

        不存在的哈希同样返回 True，非法哈希不可能存在，不触碰任何文件。
        """
        if not self.is_valid_hash(content_hash):
            logger.warning(f"忽略无效的内容哈希: {content_hash!r}")
            return True

        for kind in StorageKind:
            if self.blob_store.delete_prefix(self.directory(kind, content_hash)):
                logger.debug(f"已删除 {kind.value} 目录: {content_hash[:12]}")
        return True

    def iter_hashes(self):
        """遍历所有已提交元数据记录的哈希"""
        optimized_root = "/".join(
            part
            for part in (
                self.settings.base_path,
                self.settings.paths.get(
                    StorageKind.OPTIMIZED.value, StorageKind.OPTIMIZED.value
                ),
            )
            if part
        )
        suffix = "/" + METADATA_FILENAME
        for path in self.blob_store.iter_paths(optimized_root):
            if not path.endswith(suffix):
                continue
            relative = path[len(optimized_root) + 1 : -len(suffix)]
            content_hash = relative.replace("/", "")
            if self.is_valid_hash(content_hash):
                yield content_hash

    def metadata_modified_at(self, content_hash: str) -> float:
        return self.blob_store.modified_at(self.metadata_path(content_hash))

    def subtree_size(self, content_hash: str) -> int:
        """某一哈希占用的总字节数"""
        total = 0
        for kind in StorageKind:
            for path in self.blob_store.iter_paths(self.directory(kind, content_hash)):
                total += self.blob_store.size(path)
        return total
