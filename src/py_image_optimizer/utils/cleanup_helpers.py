"""临时文件工具模块。

上传内容先落盘为临时文件再排队处理，任务结束后由 ``TempFileManager`` 删除。
"""

import os
import tempfile
from pathlib import Path
from typing import Any

from .logging_helpers import get_logger


logger = get_logger()

UPLOAD_PREFIX = "imgopt-upload-"


def spool_upload(
    data: bytes, suffix: str = "", directory: str | Path | None = None
) -> Path:
    """把上传内容写入临时文件，返回路径；调用方负责删除"""
    fd, name = tempfile.mkstemp(prefix=UPLOAD_PREFIX, suffix=suffix, dir=directory)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    logger.debug(f"上传内容已写入临时文件: {name} ({len(data)} bytes)")
    return Path(name)


class TempFileManager:
    """临时文件管理器

    作为上下文管理器使用时，无论正常退出还是异常退出都会删除已注册的文件。
    """

    def __init__(self):
        self.temp_files: set[Path] = set()

    def register_temp_file(self, file_path: str | Path) -> Path:
        """登记需要在退出时删除的文件"""
        path = Path(file_path)
        self.temp_files.add(path)
        return path

    def cleanup_temp_files(self) -> int:
        """删除所有登记的文件，返回实际删除的数量"""
        removed = 0
        for path in self.temp_files:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"删除临时文件失败 {path}: {e}")
            else:
                removed += 1
                logger.debug(f"已删除临时文件: {path}")

        self.temp_files.clear()
        return removed

    def __enter__(self) -> "TempFileManager":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        del exc_type, exc_val, exc_tb
        self.cleanup_temp_files()
