"""图像处理后端选择器。

在固定的注册顺序中探测可用后端，选择首选后端并支持回退。
选择结果只计算一次并被缓存。
"""

import threading
from collections.abc import Mapping
from typing import Any

from ..config import OptimizerSettings
from ..exceptions import ProcessorUnavailableError
from ..utils.logging_helpers import get_logger
from .base import ImageProcessor
from .pillow_processor import PillowProcessor
from .wand_processor import WandProcessor


logger = get_logger()

# 注册顺序即回退顺序
PROCESSOR_TYPES: tuple[type[ImageProcessor], ...] = (PillowProcessor, WandProcessor)


def create_processors(settings: OptimizerSettings) -> dict[str, ImageProcessor]:
    """按注册顺序创建所有后端实例"""
    return {
        processor_type.name: processor_type(
            strip_metadata=settings.strip_metadata,
            auto_orient=settings.auto_orient,
            progressive=settings.progressive,
        )
        for processor_type in PROCESSOR_TYPES
    }


class ProcessorSelector:
    """图像处理后端选择器"""

    def __init__(
        self,
        processors: Mapping[str, ImageProcessor],
        preferred: str = "pillow",
        fallback: bool = True,
    ):
        self.processors = dict(processors)
        self.preferred = preferred
        self.fallback = fallback
        self._selected: ImageProcessor | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: OptimizerSettings) -> "ProcessorSelector":
        return cls(
            create_processors(settings),
            preferred=settings.processor,
            fallback=settings.fallback,
        )

    def is_available(self, name: str) -> bool:
        """后端是否已注册且可用，从不抛出异常"""
        processor = self.processors.get(name)
        if processor is None:
            return False
        try:
            return processor.is_available()
        except Exception as e:
            logger.debug(f"探测后端 {name} 失败: {e}")
            return False

    def select(self) -> ImageProcessor:
        """选择后端

        首选后端可用时直接返回；否则在允许回退时按注册顺序返回第一个可用后端。

        Raises:
            ProcessorUnavailableError: 没有可用后端
        """
        if self._selected is not None:
            return self._selected

        with self._lock:
            if self._selected is None:
                self._selected = self._resolve()
        return self._selected

    def _resolve(self) -> ImageProcessor:
        if self.is_available(self.preferred):
            logger.info(f"使用图像处理后端: {self.preferred}")
            return self.processors[self.preferred]

        if self.fallback:
            for name, processor in self.processors.items():
                if self.is_available(name):
                    logger.warning(f"首选后端 {self.preferred} 不可用，回退到 {name}")
                    return processor

        raise ProcessorUnavailableError(
            f"没有可用的图像处理后端 (首选: {self.preferred}, "
            f"回退: {'开启' if self.fallback else '关闭'})"
        )

    def describe(self) -> dict[str, dict[str, Any]]:
        """列出所有后端的可用性、是否被选中以及支持的格式"""
        try:
            active = self.select().name
        except ProcessorUnavailableError:
            active = None

        info: dict[str, dict[str, Any]] = {}
        for name, processor in self.processors.items():
            available = self.is_available(name)
            info[name] = {
                "available": available,
                "active": name == active,
                "supported_formats": processor.supported_formats() if available else [],
            }
        return info
