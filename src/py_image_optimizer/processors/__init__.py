"""图像处理后端包。"""

from .base import ImageProcessor
from .pillow_processor import PillowProcessor
from .selector import PROCESSOR_TYPES, ProcessorSelector, create_processors
from .wand_processor import WandProcessor


__all__ = [
    "PROCESSOR_TYPES",
    "ImageProcessor",
    "PillowProcessor",
    "ProcessorSelector",
    "WandProcessor",
    "create_processors",
]
