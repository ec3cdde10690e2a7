"""内容寻址的图像优化库。

按内容哈希去重，生成 Web 优化主图、响应式变体和模糊占位图，
并持久化不可变的元数据记录。
"""

__version__ = "0.1.0"
__description__ = "内容寻址的图像优化库，基于 Pillow 11"

# 核心功能导出
from .config import OptimizerSettings
from .exceptions import (
    InvalidInputError,
    OptimizerError,
    ProcessingError,
    ProcessorUnavailableError,
    StorageError,
)
from .models import ImageMetadata, OptimizationOptions
from .optimizer import ImageOptimizer


__all__ = [
    "ImageMetadata",
    "ImageOptimizer",
    "InvalidInputError",
    "OptimizationOptions",
    "OptimizerError",
    "OptimizerSettings",
    "ProcessingError",
    "ProcessorUnavailableError",
    "StorageError",
    "get_version",
]


def get_version() -> str:
    """获取版本号。"""
    return __version__
