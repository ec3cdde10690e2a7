"""文件命名工具模块。

提供文件名清理和派生资源的命名规则。
"""

import re
from pathlib import PurePosixPath

from ..models.constants import get_extension


DEFAULT_FILENAME = "image.jpg"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_DOT_RUNS = re.compile(r"\.+")


class FileNamingStrategy:
    """文件命名策略类"""

    @staticmethod
    def sanitize(filename: str) -> str:
        """清理文件名

        只保留字母数字、点、短横线和下划线，合并连续的点，
        去掉首尾的分隔字符；结果为空时使用默认文件名。
        """
        cleaned = _UNSAFE_CHARS.sub("", filename)
        cleaned = _DOT_RUNS.sub(".", cleaned)
        cleaned = cleaned.strip(".-_")
        return cleaned or DEFAULT_FILENAME

    @staticmethod
    def derived_name(
        filename: str, format_name: str, variant: str | None = None
    ) -> str:
        """生成派生资源文件名: <stem>[-<variant>]<ext>

        Args:
            filename: 原始文件名（会先清理）
            format_name: 输出格式
            variant: 变体标签，如 "640w"

        Returns:
            str: 生成的文件名（不含路径）
        """
        stem = PurePosixPath(FileNamingStrategy.sanitize(filename)).stem
        suffix = f"-{variant}" if variant else ""
        return f"{stem}{suffix}{get_extension(format_name)}"


def sanitize_filename(filename: str) -> str:
    """清理文件名的便捷函数"""
    return FileNamingStrategy.sanitize(filename)
