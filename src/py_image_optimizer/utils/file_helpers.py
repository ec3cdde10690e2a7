"""工具函数模块。

提供图像文件查找和 MIME 类型识别等实用工具函数。
"""

import mimetypes
from collections.abc import Iterable, Iterator
from pathlib import Path

from PIL import Image

from ..models.constants import get_mime_type
from .logging_helpers import get_logger
from .message_formatter import MessageFormatter


logger = get_logger()


def find_image_files(
    directory: str | Path,
    recursive: bool = True,
    extensions: Iterable[str] | None = None,
) -> Iterator[Path]:
    """查找目录中的图像文件。

    Args:
        directory: 搜索目录
        recursive: 是否递归搜索子目录
        extensions: 允许的扩展名（不含点），None 时使用 Pillow 注册的扩展名

    Yields:
        Path: 图像文件路径，按路径排序
    """
    directory = Path(directory)

    if not directory.exists():
        logger.warning(MessageFormatter.directory_not_found(directory))
        return

    if not directory.is_dir():
        logger.warning(MessageFormatter.path_not_directory(directory))
        return

    if extensions is None:
        allowed = set(Image.registered_extensions().keys())
    else:
        allowed = {f".{ext.lower().lstrip('.')}" for ext in extensions}

    pattern = "**/*" if recursive else "*"
    for file_path in sorted(directory.glob(pattern)):
        if file_path.is_file() and file_path.suffix.lower() in allowed:
            yield file_path


def get_image_mime_type(file_path: str | Path) -> str | None:
    """获取图片文件的 MIME 类型

    优先通过 Pillow 识别真实格式，失败时按扩展名推断。

    Args:
        file_path: 图片文件路径

    Returns:
        str | None: MIME 类型，如 'image/jpeg'，无法识别时返回 None
    """
    try:
        with Image.open(file_path) as img:
            if img.format:
                return get_mime_type(img.format)
    except Exception as e:
        logger.debug(MessageFormatter.operation_failed("获取 MIME 类型", file_path, e))

    guessed, _ = mimetypes.guess_type(str(file_path))
    return guessed
