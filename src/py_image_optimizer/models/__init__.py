"""数据模型包。

定义图像优化相关的数据结构和模型。
"""

from .constants import (
    ImageFormats,
    QualityDefaults,
    ResponsiveDefaults,
    ValidationLimits,
    get_extension,
    get_mime_type,
    normalize_format,
    pil_format_name,
    normalize_output_format,
)
from .image_metadata import (
    AssetInfo,
    ImageMetadata,
    OptimizedInfo,
    OriginalInfo,
    ProcessingInfo,
    SourceAsset,
    VariantInfo,
)
from .options import OptimizationOptions
from .reports import BatchReport, CleanupReport, FileResult, JobOutcome


__all__ = [
    # 核心模型
    "AssetInfo",
    "BatchReport",
    "CleanupReport",
    "FileResult",
    # 常量和工具
    "ImageFormats",
    "ImageMetadata",
    "JobOutcome",
    "OptimizationOptions",
    "OptimizedInfo",
    "OriginalInfo",
    "ProcessingInfo",
    "QualityDefaults",
    "ResponsiveDefaults",
    "SourceAsset",
    "ValidationLimits",
    "VariantInfo",
    "get_extension",
    "get_mime_type",
    "normalize_format",
    "pil_format_name",
    "normalize_output_format",
]
