"""图像优化流水线。

单次请求的处理顺序::

    校验 → 去重检查 → 保存原图 → 计算尺寸 → 生成主资源
        → 生成变体 → 生成占位图 → 构建元数据 → 持久化 → 写缓存

写入元数据记录是提交点，之前的任何失败都会中止请求；
残留的中间文件在重试时被同样的内容覆盖。
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from ..config import OptimizerSettings
from ..exceptions import InvalidInputError, ProcessingError
from ..models.image_metadata import (
    ImageMetadata,
    OptimizedInfo,
    OriginalInfo,
    ProcessingInfo,
    SourceAsset,
    VariantInfo,
)
from ..models.options import OptimizationOptions
from ..processors.base import ImageProcessor
from ..processors.selector import ProcessorSelector
from ..storage.content_store import ContentStore, StorageKind
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter
from ..utils.naming_helpers import FileNamingStrategy
from .cache import ResultCache
from .locks import ContentLocks
from .responsive import (
    build_srcset,
    derive_dimensions,
    resolve_sizes_attribute,
    variant_quality,
    variant_widths,
)
from .validation import InputValidator


logger = get_logger()


def metadata_cache_key(content_hash: str) -> str:
    return f"metadata:{content_hash}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class OptimizationPipeline:
    """图像优化流水线

    所有依赖在构造时注入，流水线本身不持有请求间的可变状态。
    """

    def __init__(
        self,
        settings: OptimizerSettings,
        store: ContentStore,
        selector: ProcessorSelector,
        cache: ResultCache,
        validator: InputValidator | None = None,
        locks: ContentLocks | None = None,
    ):
        self.settings = settings
        self.store = store
        self.selector = selector
        self.cache = cache
        self.validator = validator or InputValidator(settings.validation)
        self.locks = locks or ContentLocks()

    def optimize(
        self,
        data: bytes,
        filename: str,
        mime: str,
        options: OptimizationOptions | dict[str, Any] | None = None,
    ) -> ImageMetadata:
        """优化图像，返回元数据记录

        同一内容重复提交时直接返回已有记录，不产生任何写入。

        Raises:
            InvalidInputError: 输入无效
            ProcessorUnavailableError: 没有可用的处理后端
            ProcessingError: 后端处理失败
            StorageError: 存储读写失败
        """
        options = self._coerce_options(options)
        source = SourceAsset(data=data, filename=filename, mime=mime)
        self.validator.validate(source)

        content_hash = self.store.hash(data)
        if (existing := self._lookup(content_hash)) is not None:
            logger.info(MessageFormatter.pipeline_step("命中已有记录", content_hash))
            return existing

        processor = self.selector.select()

        with self.locks.hold(content_hash):
            # 等锁期间可能已有并发请求完成了同一内容
            if (existing := self._lookup(content_hash)) is not None:
                logger.info(MessageFormatter.pipeline_step("并发请求已完成", content_hash))
                return existing
            return self._process(source, content_hash, options, processor)

    def get(self, content_hash: str) -> ImageMetadata | None:
        """按哈希读取元数据，依次查缓存和存储"""
        return self._lookup(content_hash)

    def delete(self, content_hash: str) -> bool:
        """删除某一哈希的全部文件并使缓存失效"""
        self.cache.forget(metadata_cache_key(content_hash))
        deleted = self.store.delete(content_hash)
        logger.info(MessageFormatter.pipeline_step("已删除", content_hash))
        return deleted

    @staticmethod
    def _coerce_options(
        options: OptimizationOptions | dict[str, Any] | None,
    ) -> OptimizationOptions:
        if options is None:
            return OptimizationOptions()
        if isinstance(options, OptimizationOptions):
            return options
        try:
            return OptimizationOptions.model_validate(options)
        except ValidationError as e:
            raise InvalidInputError(f"优化选项无效: {e}") from e

    def _lookup(self, content_hash: str) -> ImageMetadata | None:
        cache_key = metadata_cache_key(content_hash)
        if (cached := self.cache.get(cache_key)) is not None:
            return ImageMetadata.from_record(content_hash, cached)

        record = self.store.read_metadata(content_hash)
        if record is None:
            return None

        self.cache.put(cache_key, record)
        return ImageMetadata.from_record(content_hash, record)

    def _process(
        self,
        source: SourceAsset,
        content_hash: str,
        options: OptimizationOptions,
        processor: ImageProcessor,
    ) -> ImageMetadata:
        settings = self.settings
        options = options.with_preset(settings.presets)
        quality = (
            options.quality if options.quality is not None else settings.default_quality
        )
        target_format = options.format or settings.output_format

        # 保存原图
        original_path = self.store.put(
            StorageKind.ORIGINAL, content_hash, source.filename, source.data
        )
        logger.debug(MessageFormatter.pipeline_step("已保存原图", content_hash, original_path))

        # 计算尺寸
        info = processor.inspect(source.data)
        plan = derive_dimensions(
            info.width,
            info.height,
            options.max_width or settings.max_width,
            options.max_height or settings.max_height,
        )

        # 生成主资源：缩放与格式转换是两次独立处理
        if plan.needs_resize:
            primary = processor.resize(
                source.data, plan.width, plan.height, quality=quality
            )
        else:
            primary = source.data
        if target_format != info.format:
            primary = processor.convert(primary, target_format, quality)

        optimized_name = FileNamingStrategy.derived_name(source.filename, target_format)
        optimized_path = self.store.put(
            StorageKind.OPTIMIZED, content_hash, optimized_name, primary
        )
        logger.debug(
            MessageFormatter.pipeline_step(
                "已生成主资源", content_hash, f"{plan.width}x{plan.height} {target_format}"
            )
        )

        variants = self._produce_variants(
            processor, primary, content_hash, source.filename, target_format, options
        )
        placeholder = self._produce_placeholder(processor, primary, content_hash, options)

        original_size = source.size
        optimized_size = len(primary)
        optimized_url = self.store.url(optimized_path)

        metadata = ImageMetadata(
            hash=content_hash,
            original=OriginalInfo(
                filename=source.filename,
                path=original_path,
                size=original_size,
                format=info.format,
                width=plan.width,
                height=plan.height,
                uploaded_at=_now_iso(),
            ),
            optimized=OptimizedInfo(
                format=target_format,
                path=optimized_path,
                url=optimized_url,
                size=optimized_size,
                compression_ratio=OptimizedInfo.calculate_ratio(
                    original_size, optimized_size
                ),
            ),
            variants=variants,
            srcset=build_srcset(variants, optimized_url),
            sizes=resolve_sizes_attribute(
                settings.lighthouse, options.sizes_attr, options.sizes_preset
            ),
            blur_placeholder=placeholder,
            is_lcp=bool(options.is_lcp),
            alt=options.alt or "",
            processing=ProcessingInfo(processor=processor.name, timestamp=_now_iso()),
        )

        # 持久化（提交点）
        record = metadata.to_record()
        self.store.write_metadata(content_hash, record)
        self.cache.put(metadata_cache_key(content_hash), record)

        logger.info(
            MessageFormatter.pipeline_step("优化完成", content_hash, metadata.get_summary())
        )
        return metadata

    def _produce_variants(
        self,
        processor: ImageProcessor,
        primary: bytes,
        content_hash: str,
        filename: str,
        target_format: str,
        options: OptimizationOptions,
    ) -> dict[str, VariantInfo]:
        """为每个小于主资源宽度的断点生成变体"""
        settings = self.settings
        sizes = options.sizes if options.sizes is not None else settings.sizes
        primary_width = processor.inspect(primary).width

        variants: dict[str, VariantInfo] = {}
        for width in variant_widths(sizes, primary_width):
            quality = variant_quality(width, settings.qualities, settings.default_quality)
            data = processor.resize(
                primary, width, quality=quality, output_format=target_format
            )

            label = f"{width}w"
            path = self.store.put_variant(
                content_hash, filename, label, target_format, data
            )
            variants[label] = VariantInfo(
                path=path,
                url=self.store.url(path),
                size=len(data),
                width=width,
                quality=quality,
            )
            logger.debug(
                MessageFormatter.pipeline_step(
                    "已生成变体", content_hash, f"{label} q={quality}"
                )
            )

        return variants

    def _produce_placeholder(
        self,
        processor: ImageProcessor,
        primary: bytes,
        content_hash: str,
        options: OptimizationOptions,
    ) -> str | None:
        """生成模糊占位图，失败时降级为 None"""
        blur_settings = self.settings.blur_placeholder
        enabled = options.blur if options.blur is not None else blur_settings.enabled
        if not enabled:
            return None

        try:
            return processor.blur_placeholder(
                primary, blur_settings.width, blur_settings.quality
            )
        except ProcessingError as e:
            logger.warning(
                MessageFormatter.pipeline_step("占位图生成失败，已跳过", content_hash, str(e))
            )
            return None
