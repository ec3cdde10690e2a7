"""图像优化 MCP 服务器。

把 ``ImageOptimizer`` 的对外接口暴露为 MCP 工具。优化器实例由入口函数
按配置创建并显式传入，模块内没有全局实例。
"""

from pathlib import Path
from typing import Any

from fastmcp import FastMCP

from .config import OptimizerSettings
from .engine.batch import BatchOptimizer
from .exceptions import OptimizerError, error_type_of
from .models.image_metadata import ImageMetadata
from .models.options import OptimizationOptions
from .optimizer import ImageOptimizer
from .utils.logging_helpers import configure_logging, get_logger
from .utils.message_formatter import MessageFormatter


logger = get_logger()

# MCP 服务器响应类型定义
MCPResponse = dict[str, Any]


class MCPResponseBuilder:
    """MCP 服务器响应构建器，专门用于构建符合 MCP 协议的响应格式。"""

    @staticmethod
    def error(
        message: str,
        error_type: str = "general",
        details: dict[str, Any] | None = None,
    ) -> MCPResponse:
        """构建错误结果。

        Args:
            message: 错误消息
            error_type: 错误类型
            details: 额外的错误详情

        Returns:
            dict: 标准化的错误响应
        """
        result: MCPResponse = {
            "success": False,
            "error": message,
            "error_type": error_type,
        }

        if details:
            result["details"] = details

        return result

    @staticmethod
    def from_exception(error: Exception, operation: str) -> MCPResponse:
        """按异常类型构建错误结果"""
        details: dict[str, Any] = {"operation": operation}
        if isinstance(error, OptimizerError) and error.content_hash:
            details["hash"] = error.content_hash
        return MCPResponseBuilder.error(str(error), error_type_of(error), details)

    @staticmethod
    def not_found(content_hash: str) -> MCPResponse:
        return MCPResponseBuilder.error(
            f"图片不存在: {content_hash}", "not_found", {"hash": content_hash}
        )

    @staticmethod
    def metadata(metadata: ImageMetadata) -> MCPResponse:
        return {
            "success": True,
            "hash": metadata.hash,
            "src": metadata.src,
            "summary": metadata.get_summary(),
            "metadata": metadata.to_record(),
        }


class ImageToolHandlers:
    """MCP 工具的实现，独立于 FastMCP 以便直接测试"""

    def __init__(self, optimizer: ImageOptimizer):
        self.optimizer = optimizer
        self.batch = BatchOptimizer(optimizer)

    def optimize_image(
        self,
        input_path: str,
        quality: int | None = None,
        format: str | None = None,
        preset: str | None = None,
        sizes: list[int] | None = None,
        max_width: int | None = None,
        max_height: int | None = None,
        is_lcp: bool | None = None,
        alt: str | None = None,
        sizes_attr: str | None = None,
        sizes_preset: str | None = None,
        blur: bool | None = None,
    ) -> MCPResponse:
        path = Path(input_path)
        if not path.is_file():
            return MCPResponseBuilder.error(
                MessageFormatter.file_not_found(input_path),
                "file",
                {"file_path": input_path},
            )

        try:
            options = _build_options(
                quality=quality,
                format=format,
                preset=preset,
                sizes=sizes,
                max_width=max_width,
                max_height=max_height,
                is_lcp=is_lcp,
                alt=alt,
                sizes_attr=sizes_attr,
                sizes_preset=sizes_preset,
                blur=blur,
            )
            metadata = self.optimizer.optimize_file(path, options)
        except (OptimizerError, ValueError) as e:
            logger.error(MessageFormatter.operation_failed("优化图片", input_path, e))
            return MCPResponseBuilder.from_exception(e, "优化图片")

        return MCPResponseBuilder.metadata(metadata)

    def get_image(self, content_hash: str, variant: str | None = None) -> MCPResponse:
        try:
            metadata = self.optimizer.get(content_hash)
        except OptimizerError as e:
            return MCPResponseBuilder.from_exception(e, "读取图片")

        if metadata is None:
            return MCPResponseBuilder.not_found(content_hash)

        response = MCPResponseBuilder.metadata(metadata)
        response["url"] = self.optimizer.url(content_hash, variant)
        return response

    def delete_image(self, content_hash: str) -> MCPResponse:
        try:
            deleted = self.optimizer.delete(content_hash)
        except OptimizerError as e:
            return MCPResponseBuilder.from_exception(e, "删除图片")
        return {"success": deleted, "hash": content_hash}

    def list_processors(self) -> MCPResponse:
        return {"success": True, "processors": self.optimizer.list_processors()}

    def optimizer_stats(self) -> MCPResponse:
        return {"success": True, "stats": self.optimizer.stats()}

    def cleanup_images(self, days: int = 30, dry_run: bool = False) -> MCPResponse:
        try:
            report = self.optimizer.cleanup(days=days, dry_run=dry_run)
        except OptimizerError as e:
            return MCPResponseBuilder.from_exception(e, "清理图片")

        return {
            "success": True,
            "dry_run": report.dry_run,
            "count": len(report.hashes),
            "hashes": report.hashes,
            "total_size": report.total_size,
            "summary": report.get_summary(),
        }

    def optimize_directory(
        self,
        input_dir: str,
        recursive: bool = True,
        preset: str | None = None,
        quality: int | None = None,
        format: str | None = None,
    ) -> MCPResponse:
        try:
            options = _build_options(preset=preset, quality=quality, format=format)
        except ValueError as e:
            return MCPResponseBuilder.from_exception(e, "批量优化")

        report = self.batch.optimize_directory(input_dir, options, recursive=recursive)
        if not report.success:
            return MCPResponseBuilder.error(
                report.error or "批量优化失败", "file", {"input_dir": input_dir}
            )

        return {
            "success": True,
            "input_dir": str(report.input_dir),
            "total_files": report.get_total_count(),
            "successful_files": report.get_success_count(),
            "failed_files": report.get_failure_count(),
            "total_size_saved": report.get_total_size_saved(),
            "summary": report.get_summary(),
            "results": [
                {
                    "input_path": str(r.input_path),
                    "success": r.success,
                    "hash": r.content_hash,
                    "size_saved": r.get_size_saved() if r.success else 0,
                    "error": r.error,
                }
                for r in report.results
            ],
        }


def _build_options(**kwargs: Any) -> OptimizationOptions:
    """只把非 None 的参数作为显式选项，保证预设默认值生效"""
    return OptimizationOptions(**{k: v for k, v in kwargs.items() if v is not None})


def build_server(optimizer: ImageOptimizer) -> FastMCP:
    """创建注册了全部工具的 MCP 应用"""
    mcp: FastMCP[Any] = FastMCP("图像优化服务")
    handlers = ImageToolHandlers(optimizer)

    @mcp.tool()
    def optimize_image(
        input_path: str,
        quality: int | None = None,
        format: str | None = None,
        preset: str | None = None,
        sizes: list[int] | None = None,
        max_width: int | None = None,
        max_height: int | None = None,
        is_lcp: bool | None = None,
        alt: str | None = None,
        sizes_attr: str | None = None,
        sizes_preset: str | None = None,
        blur: bool | None = None,
    ) -> MCPResponse:
        """优化图片并生成响应式变体、srcset 和模糊占位图。

        相同内容只处理一次，重复提交直接返回已有记录。

        Args:
            input_path: 图片文件路径
            quality: 质量 0-100，默认使用配置值
            format: 输出格式，如 webp / avif / jpeg / png
            preset: 命名预设 avatar / thumbnail / gallery / hero
            sizes: 变体宽度列表
            max_width: 最大宽度
            max_height: 最大高度
            is_lcp: 是否为 LCP 图片
            alt: 替代文本
            sizes_attr: sizes 属性
            sizes_preset: sizes 预设 full / half / third / content
            blur: 是否生成模糊占位图
        """
        return handlers.optimize_image(
            input_path,
            quality=quality,
            format=format,
            preset=preset,
            sizes=sizes,
            max_width=max_width,
            max_height=max_height,
            is_lcp=is_lcp,
            alt=alt,
            sizes_attr=sizes_attr,
            sizes_preset=sizes_preset,
            blur=blur,
        )

    @mcp.tool()
    def get_image(content_hash: str, variant: str | None = None) -> MCPResponse:
        """按内容哈希读取图片元数据，可选返回某个变体（如 "640w"）的 URL。"""
        return handlers.get_image(content_hash, variant)

    @mcp.tool()
    def delete_image(content_hash: str) -> MCPResponse:
        """删除图片的原图、优化图、变体和元数据。"""
        return handlers.delete_image(content_hash)

    @mcp.tool()
    def list_processors() -> MCPResponse:
        """列出图像处理后端及其可用性。"""
        return handlers.list_processors()

    @mcp.tool()
    def optimizer_stats() -> MCPResponse:
        """当前使用的后端、支持的格式和主要配置。"""
        return handlers.optimizer_stats()

    @mcp.tool()
    def cleanup_images(days: int = 30, dry_run: bool = False) -> MCPResponse:
        """删除超过指定天数的图片；dry_run 时只列出不删除。"""
        return handlers.cleanup_images(days, dry_run)

    @mcp.tool()
    def optimize_directory(
        input_dir: str,
        recursive: bool = True,
        preset: str | None = None,
        quality: int | None = None,
        format: str | None = None,
    ) -> MCPResponse:
        """批量优化目录中的图片。"""
        return handlers.optimize_directory(
            input_dir, recursive=recursive, preset=preset, quality=quality, format=format
        )

    return mcp


# ============================================================================
# 应用入口
# ============================================================================


def main() -> None:
    """启动 MCP 服务器"""
    settings = OptimizerSettings.from_env()
    configure_logging(settings.logging.level, settings.logging.format)

    optimizer = ImageOptimizer.from_settings(settings)
    logger.info(f"启动图像优化 MCP 服务器，存储目录: {settings.storage.root}")
    build_server(optimizer).run()


if __name__ == "__main__":
    main()
