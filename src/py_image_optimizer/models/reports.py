"""处理报告模型。

定义批量优化、过期清理和异步任务的结果数据结构。
"""

from pathlib import Path
from typing import Any

from humanize import naturalsize
from pydantic import BaseModel, Field

from .image_metadata import ImageMetadata


class BaseResult(BaseModel):
    """结果基类，包含通用字段和方法"""

    success: bool = Field(description="是否成功")
    error: str | None = Field(None, description="错误信息")

    @staticmethod
    def format_size(size_bytes: int) -> str:
        """格式化文件大小为人类可读格式"""
        return naturalsize(size_bytes, binary=True)


class ResultCollection(BaseResult):
    """结果集合基类，提供通用的统计方法"""

    results: list[Any] = Field(description="结果列表")

    def get_successful_items(self) -> list[Any]:
        """获取成功的结果项"""
        return [r for r in self.results if getattr(r, "success", False)]

    def get_failed_items(self) -> list[Any]:
        """获取失败的结果项"""
        return [r for r in self.results if not getattr(r, "success", False)]

    def get_total_count(self) -> int:
        """获取总数量"""
        return len(self.results)

    def get_success_count(self) -> int:
        """获取成功数量"""
        return len(self.get_successful_items())

    def get_failure_count(self) -> int:
        """获取失败数量"""
        return len(self.get_failed_items())

    def get_success_rate(self) -> float:
        """获取成功率（百分比）"""
        total = self.get_total_count()
        if total == 0:
            return 0.0
        return (self.get_success_count() / total) * 100


class FileResult(BaseResult):
    """单个文件的优化结果"""

    input_path: Path = Field(description="输入文件路径")
    content_hash: str | None = Field(None, description="内容哈希")
    original_size: int = Field(0, description="原始文件大小（字节）")
    optimized_size: int = Field(0, description="主资源大小（字节）")
    variant_count: int = Field(0, description="变体数量")

    @classmethod
    def from_metadata(cls, input_path: Path, metadata: ImageMetadata) -> "FileResult":
        return cls(
            success=True,
            input_path=input_path,
            content_hash=metadata.hash,
            original_size=metadata.original.size,
            optimized_size=metadata.optimized.size,
            variant_count=len(metadata.variants),
        )

    def get_size_saved(self) -> int:
        """节省的字节数"""
        return max(0, self.original_size - self.optimized_size)


class BatchReport(ResultCollection):
    """目录批量优化结果"""

    input_dir: Path = Field(description="输入目录")
    results: list[FileResult] = Field(description="所有文件的处理结果")

    def get_total_size_saved(self) -> int:
        """总节省大小"""
        return sum(r.get_size_saved() for r in self.results if r.success)

    def get_average_saved(self) -> int:
        """平均每个成功文件节省的字节数"""
        successful = self.get_success_count()
        if successful == 0:
            return 0
        return self.get_total_size_saved() // successful

    def get_summary(self) -> str:
        """批量处理摘要"""
        if not self.success:
            return f"批量处理失败: {self.error}"

        return (
            f"处理 {self.get_success_count()}/{self.get_total_count()} 个文件 "
            f"(成功率 {self.get_success_rate():.1f}%), "
            f"总节省 {self.format_size(self.get_total_size_saved())}"
        )


class CleanupReport(BaseResult):
    """过期图片清理结果"""

    days: int = Field(description="过期天数")
    dry_run: bool = Field(False, description="是否为演练模式")
    hashes: list[str] = Field(default_factory=list, description="已清理（或待清理）的哈希")
    total_size: int = Field(0, description="涉及的总字节数")

    def get_summary(self) -> str:
        """清理摘要"""
        action = "将删除" if self.dry_run else "已删除"
        return (
            f"{action} {len(self.hashes)} 张图片 "
            f"({self.format_size(self.total_size)}，超过 {self.days} 天)"
        )


class JobOutcome(BaseResult):
    """异步优化任务的最终结果"""

    file_path: Path = Field(description="任务输入文件")
    attempts: int = Field(0, description="实际尝试次数")
    metadata: ImageMetadata | None = Field(None, description="成功时的元数据")
