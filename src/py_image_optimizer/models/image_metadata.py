"""图像元数据模型。

定义源文件信息、派生资源以及持久化的元数据记录结构。
"""

from typing import Any

from humanize import naturalsize
from pydantic import BaseModel, ConfigDict, Field, computed_field

from .constants import get_mime_type


class SourceAsset(BaseModel):
    """上传的原始图像，仅作为输入使用"""

    data: bytes = Field(repr=False, description="原始字节")
    filename: str = Field(description="客户端提供的原始文件名")
    mime: str = Field(description="声明的 MIME 类型")

    @computed_field
    def size(self) -> int:
        """字节大小"""
        return len(self.data)

    @property
    def extension(self) -> str:
        """小写扩展名，不含点"""
        _, dot, ext = self.filename.rpartition(".")
        return ext.lower() if dot else ""


class AssetInfo(BaseModel):
    """检查图像文件得到的基础信息"""

    width: int = Field(gt=0, description="图片宽度")
    height: int = Field(gt=0, description="图片高度")
    format: str = Field(description="检测到的格式（小写）")
    size: int = Field(ge=0, description="文件大小（字节）")
    has_alpha: bool = Field(default=False, description="是否有透明通道")

    @computed_field
    def mime(self) -> str:
        """MIME 类型"""
        return get_mime_type(self.format)


class _Record(BaseModel):
    """持久化记录的公共基类，一旦构建不可修改"""

    model_config = ConfigDict(frozen=True)


class VariantInfo(_Record):
    """某一目标宽度的响应式变体"""

    path: str
    url: str
    size: int
    width: int
    quality: int


class OriginalInfo(_Record):
    """原始文件信息块"""

    filename: str
    path: str
    size: int
    format: str
    width: int
    height: int
    uploaded_at: str


class OptimizedInfo(_Record):
    """主优化资源信息块"""

    format: str
    path: str
    url: str
    size: int
    compression_ratio: float

    @staticmethod
    def calculate_ratio(original_size: int, optimized_size: int) -> float:
        """压缩比例（百分比），保留两位小数，原始大小为 0 时返回 0"""
        if original_size <= 0:
            return 0
        return round((1 - optimized_size / original_size) * 100, 2)


class ProcessingInfo(_Record):
    """处理来源信息"""

    processor: str
    timestamp: str


class ImageMetadata(_Record):
    """完整的图片元数据记录

    持久化后即不可变，同一哈希的后续请求只做读取。
    ``hash`` 不写入记录本身，读取时由存储位置确定。
    """

    hash: str = Field(description="内容哈希")
    original: OriginalInfo
    optimized: OptimizedInfo
    variants: dict[str, VariantInfo] = Field(default_factory=dict)
    srcset: str = ""
    sizes: str = "100vw"
    blur_placeholder: str | None = None
    is_lcp: bool = False
    alt: str = ""
    processing: ProcessingInfo

    @classmethod
    def from_record(cls, content_hash: str, record: dict[str, Any]) -> "ImageMetadata":
        """从持久化记录构建元数据对象"""
        return cls.model_validate({**record, "hash": content_hash})

    def to_record(self) -> dict[str, Any]:
        """转换为可 JSON 序列化的持久化记录"""
        return self.model_dump(mode="json", exclude={"hash"})

    @property
    def src(self) -> str:
        """主资源 URL"""
        return self.optimized.url

    def get_variant(self, descriptor: str) -> VariantInfo | None:
        """按宽度描述符（如 "640w"）获取变体"""
        return self.variants.get(descriptor)

    def variant_urls(self) -> dict[str, str]:
        """所有变体的 URL"""
        return {label: variant.url for label, variant in self.variants.items()}

    def get_summary(self) -> str:
        """优化结果摘要"""
        original = naturalsize(self.original.size, binary=True)
        optimized = naturalsize(self.optimized.size, binary=True)
        return (
            f"{original} → {optimized} "
            f"({self.optimized.compression_ratio:.1f}% 压缩, "
            f"{len(self.variants)} 个变体)"
        )
