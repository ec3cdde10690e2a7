"""工具模块包。

提供纯工具函数，不包含业务逻辑。
"""

from .cleanup_helpers import TempFileManager, spool_upload
from .file_helpers import find_image_files, get_image_mime_type
from .logging_helpers import configure_logging, get_logger
from .message_formatter import MessageFormatter
from .naming_helpers import DEFAULT_FILENAME, FileNamingStrategy, sanitize_filename


__all__ = [
    "DEFAULT_FILENAME",
    "FileNamingStrategy",
    "MessageFormatter",
    "TempFileManager",
    "configure_logging",
    "find_image_files",
    "get_image_mime_type",
    "get_logger",
    "sanitize_filename",
    "spool_upload",
]
