"""图像处理后端抽象。

所有后端都以字节为输入输出，不接触存储，便于替换存储实现。
"""

from abc import ABC, abstractmethod

from ..models.image_metadata import AssetInfo


class ImageProcessor(ABC):
    """图像处理后端基类

    后端集合是封闭的，由 selector 按注册顺序探测可用性。
    """

    name: str = ""

    def __init__(
        self,
        strip_metadata: bool = True,
        auto_orient: bool = True,
        progressive: bool = True,
    ):
        self.strip_metadata_enabled = strip_metadata
        self.auto_orient_enabled = auto_orient
        self.progressive = progressive

    @abstractmethod
    def is_available(self) -> bool:
        """后端依赖是否可用（不抛出异常）"""

    @abstractmethod
    def inspect(self, data: bytes) -> AssetInfo:
        """读取尺寸、格式和透明通道信息

        启用自动旋转时，返回的是按 EXIF 方向校正后的尺寸。
        """

    @abstractmethod
    def optimize(self, data: bytes, quality: int) -> bytes:
        """按原格式重新编码"""

    @abstractmethod
    def resize(
        self,
        data: bytes,
        width: int,
        height: int | None = None,
        *,
        quality: int,
        output_format: str | None = None,
    ) -> bytes:
        """缩放到给定尺寸

        Args:
            data: 源图像字节
            width: 目标宽度
            height: 目标高度，None 时按宽度等比计算
            quality: 编码质量
            output_format: 输出格式，None 时保持源格式
        """

    @abstractmethod
    def convert(self, data: bytes, target_format: str, quality: int) -> bytes:
        """转换为目标格式，尺寸不变"""

    @abstractmethod
    def blur_placeholder(self, data: bytes, width: int, quality: int) -> str:
        """生成低分辨率模糊占位图，返回 data:image/webp;base64 URI"""

    @abstractmethod
    def strip_metadata(self, data: bytes) -> bytes:
        """移除 EXIF 等元数据"""

    @abstractmethod
    def auto_orient(self, data: bytes) -> bytes:
        """按 EXIF 方向旋转图像"""

    @abstractmethod
    def supported_formats(self) -> list[str]:
        """可写出的格式列表（小写）"""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
