"""图像优化异常处理模块。

定义统一的异常类型，以及把底层库异常转换为统一异常的装饰器。
"""

from collections.abc import Callable
from functools import wraps
from typing import TypeVar

from PIL.Image import DecompressionBombError, UnidentifiedImageError

from .utils.logging_helpers import get_logger


logger = get_logger()
T = TypeVar("T")


# 统一的异常类型
class OptimizerError(Exception):
    """图像优化相关错误基类"""

    retryable: bool = False

    def __init__(self, message: str, content_hash: str | None = None):
        super().__init__(message)
        self.message = message
        self.content_hash = content_hash


class InvalidInputError(OptimizerError):
    """输入无效：过大、类型错误、尺寸过小或文件损坏，属于调用方错误"""

    pass


class ProcessorUnavailableError(OptimizerError):
    """没有可用的图像处理后端，属于致命配置错误"""

    pass


class ProcessingError(OptimizerError):
    """图像处理后端在检查、缩放或转换时失败"""

    retryable = True


class StorageError(OptimizerError):
    """底层存储读写失败"""

    retryable = True


def handle_image_errors(operation_name: str = "图像处理"):
    """统一的图像处理异常处理装饰器

    把 Pillow / Wand 抛出的异常转换为 ProcessingError，保留原始异常链。

    Args:
        operation_name: 操作名称，用于日志记录
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except OptimizerError:
                raise
            except UnidentifiedImageError as e:
                logger.error(f"{operation_name} - 无法识别图像格式: {e}")
                raise ProcessingError(f"无法识别的图像格式: {e}") from e
            except DecompressionBombError as e:
                logger.error(f"{operation_name} - 图像过大: {e}")
                raise ProcessingError(f"图像像素过多，可能存在安全风险: {e}") from e
            except OSError as e:
                logger.error(f"{operation_name} - 编解码失败: {e}")
                raise ProcessingError(f"{operation_name}失败: {e}") from e
            except Exception as e:
                logger.error(f"{operation_name} - 未知错误: {e}")
                raise ProcessingError(f"{operation_name}失败: {e}") from e

        return wrapper

    return decorator


def handle_storage_errors(operation_name: str = "存储操作"):
    """统一的存储异常处理装饰器

    把文件系统错误转换为 StorageError，从不吞掉异常。

    Args:
        operation_name: 操作名称，用于日志记录
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except OptimizerError:
                raise
            except (OSError, ValueError) as e:
                logger.error(f"{operation_name} - 存储失败: {e}")
                raise StorageError(f"{operation_name}失败: {e}") from e

        return wrapper

    return decorator


def error_type_of(error: BaseException) -> str:
    """返回异常对应的对外错误类型名，供响应构建使用"""
    match error:
        case InvalidInputError():
            return "invalid_input"
        case ProcessorUnavailableError():
            return "processor_unavailable"
        case ProcessingError():
            return "processing"
        case StorageError():
            return "storage"
        case FileNotFoundError():
            return "file"
        case ValueError():
            return "validation"
        case _:
            return "general"
