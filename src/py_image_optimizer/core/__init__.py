"""核心处理包。

包含优化流水线以及缓存、校验、响应式计算等组件。
"""

from .cache import CacheBackend, MemoryCacheBackend, ResultCache
from .locks import ContentLocks
from .pipeline import OptimizationPipeline, metadata_cache_key
from .responsive import (
    DimensionPlan,
    build_srcset,
    derive_dimensions,
    resolve_sizes_attribute,
    variant_quality,
    variant_widths,
)
from .validation import InputValidator


__all__ = [
    "CacheBackend",
    "ContentLocks",
    "DimensionPlan",
    "InputValidator",
    "MemoryCacheBackend",
    "OptimizationPipeline",
    "ResultCache",
    "build_srcset",
    "derive_dimensions",
    "metadata_cache_key",
    "resolve_sizes_attribute",
    "variant_quality",
    "variant_widths",
]
