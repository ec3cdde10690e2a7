"""消息格式化工具模块。

错误消息和日志消息集中在这里生成，保证各组件输出的措辞一致。
"""

from pathlib import Path
from typing import Any


class MessageFormatter:
    """统一的消息格式化器"""

    @staticmethod
    def short_hash(content_hash: str) -> str:
        """日志中使用的短哈希"""
        return content_hash[:12]

    @staticmethod
    def pipeline_step(step: str, content_hash: str, detail: str = "") -> str:
        """流水线步骤日志消息，以短哈希开头便于按图片检索"""
        msg = f"[{MessageFormatter.short_hash(content_hash)}] {step}"
        if detail:
            msg += f": {detail}"
        return msg

    @staticmethod
    def file_not_found(file_path: str | Path) -> str:
        return f"文件不存在: {file_path}"

    @staticmethod
    def directory_not_found(directory: str | Path) -> str:
        return f"目录不存在: {directory}"

    @staticmethod
    def path_not_directory(path: str | Path) -> str:
        return f"路径不是目录: {path}"

    @staticmethod
    def unknown_mime(file_path: str | Path) -> str:
        return f"无法识别文件类型: {file_path}"

    @staticmethod
    def operation_failed(
        operation: str, target: str | Path, error: Exception | None = None
    ) -> str:
        """操作失败消息"""
        msg = f"{operation}失败: {target}"
        if error:
            msg += f" - {error}"
        return msg

    @staticmethod
    def validation_error(field: str, value: Any, reason: str | None = None) -> str:
        """参数验证错误消息"""
        msg = f"参数验证失败 - {field}: {value}"
        if reason:
            msg += f" ({reason})"
        return msg

    @staticmethod
    def upload_rejected(reason: str, filename: str, detail: Any = None) -> str:
        """上传校验未通过的消息"""
        msg = f"{reason}: {filename}"
        if detail is not None:
            msg += f" ({detail})"
        return msg

    @staticmethod
    def job_attempt_failed(
        name: str, attempt: int, tries: int, error: BaseException
    ) -> str:
        return f"任务第 {attempt}/{tries} 次尝试失败: {name} - {error}"

    @staticmethod
    def job_failed(name: str, error: BaseException) -> str:
        return f"图像优化任务失败: {name} - {error}"
