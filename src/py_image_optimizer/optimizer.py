"""图像优化器接口。

``ImageOptimizer`` 由一份不可变配置组装所有组件，是对外的统一入口。
不存在全局单例，需要的地方显式传入实例。
"""

import time
from pathlib import Path
from typing import Any

from .config import OptimizerSettings
from .core.cache import CacheBackend, ResultCache
from .core.locks import ContentLocks
from .core.pipeline import OptimizationPipeline
from .core.validation import InputValidator
from .exceptions import InvalidInputError, ProcessorUnavailableError
from .models.image_metadata import ImageMetadata
from .models.options import OptimizationOptions
from .models.reports import CleanupReport
from .processors.selector import ProcessorSelector
from .storage.blob_store import BlobStore, LocalBlobStore
from .storage.content_store import ContentStore
from .utils.file_helpers import get_image_mime_type
from .utils.logging_helpers import get_logger
from .utils.message_formatter import MessageFormatter


logger = get_logger()

SECONDS_PER_DAY = 86400


class ImageOptimizer:
    """图像优化器

    Examples:
        >>> optimizer = ImageOptimizer.from_settings()
        >>> metadata = optimizer.optimize_file("photo.jpg", {"preset": "gallery"})
        >>> print(metadata.srcset)
    """

    def __init__(
        self,
        settings: OptimizerSettings,
        store: ContentStore,
        selector: ProcessorSelector,
        cache: ResultCache,
    ):
        self.settings = settings
        self.store = store
        self.selector = selector
        self.cache = cache
        self.pipeline = OptimizationPipeline(
            settings,
            store,
            selector,
            cache,
            validator=InputValidator(settings.validation),
            locks=ContentLocks(),
        )

    @classmethod
    def from_settings(
        cls,
        settings: OptimizerSettings | None = None,
        blob_store: BlobStore | None = None,
        cache_backend: CacheBackend | None = None,
    ) -> "ImageOptimizer":
        """按配置组装优化器

        Args:
            settings: 配置，None 时使用默认配置
            blob_store: 存储实现，None 时使用 ``settings.storage.root`` 下的本地存储
            cache_backend: 缓存后端，None 时使用进程内缓存
        """
        settings = settings or OptimizerSettings()
        if blob_store is None:
            blob_store = LocalBlobStore(settings.storage.root, settings.storage.base_url)

        return cls(
            settings=settings,
            store=ContentStore(blob_store, settings.storage),
            selector=ProcessorSelector.from_settings(settings),
            cache=ResultCache(settings.cache, cache_backend),
        )

    def optimize(
        self,
        data: bytes,
        filename: str,
        mime: str,
        options: OptimizationOptions | dict[str, Any] | None = None,
    ) -> ImageMetadata:
        """优化图像字节，返回元数据记录"""
        return self.pipeline.optimize(data, filename, mime, options)

    def optimize_file(
        self,
        path: str | Path,
        options: OptimizationOptions | dict[str, Any] | None = None,
        mime: str | None = None,
        filename: str | None = None,
    ) -> ImageMetadata:
        """优化本地文件，未给出 MIME 类型时自动识别"""
        path = Path(path)
        if not path.is_file():
            raise InvalidInputError(MessageFormatter.file_not_found(path))

        mime = mime or get_image_mime_type(path)
        if mime is None:
            raise InvalidInputError(MessageFormatter.unknown_mime(path))

        return self.optimize(path.read_bytes(), filename or path.name, mime, options)

    def get(self, content_hash: str) -> ImageMetadata | None:
        return self.pipeline.get(content_hash)

    def url(self, content_hash: str, variant: str | None = None) -> str | None:
        """主资源或指定变体的 URL；变体不存在时返回主资源 URL"""
        metadata = self.get(content_hash)
        if metadata is None:
            return None

        if variant and (info := metadata.get_variant(variant)) is not None:
            return info.url
        return metadata.src

    def delete(self, content_hash: str) -> bool:
        return self.pipeline.delete(content_hash)

    def list_processors(self) -> dict[str, dict[str, Any]]:
        return self.selector.describe()

    def stats(self) -> dict[str, Any]:
        """当前后端和主要配置"""
        try:
            processor = self.selector.select()
            active, formats = processor.name, processor.supported_formats()
        except ProcessorUnavailableError:
            active, formats = None, []

        return {
            "active_processor": active,
            "supported_formats": formats,
            "default_quality": self.settings.default_quality,
            "sizes": list(self.settings.sizes),
            "output_format": self.settings.output_format,
        }

    def cleanup(self, days: int = 30, dry_run: bool = False) -> CleanupReport:
        """删除元数据记录早于 ``days`` 天的图片

        Args:
            days: 过期天数
            dry_run: 只统计不删除
        """
        if days < 0:
            raise InvalidInputError(
                MessageFormatter.validation_error("days", days, "不能为负数")
            )

        cutoff = time.time() - days * SECONDS_PER_DAY
        expired: list[str] = []
        total_size = 0

        for content_hash in list(self.store.iter_hashes()):
            if self.store.metadata_modified_at(content_hash) >= cutoff:
                continue

            size = self.store.subtree_size(content_hash)
            total_size += size
            expired.append(content_hash)
            logger.info(
                MessageFormatter.pipeline_step(
                    "过期" if dry_run else "清理", content_hash, f"{size} bytes"
                )
            )
            if not dry_run:
                self.delete(content_hash)

        report = CleanupReport(
            success=True,
            days=days,
            dry_run=dry_run,
            hashes=expired,
            total_size=total_size,
        )
        logger.info(report.get_summary())
        return report
