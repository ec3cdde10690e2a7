"""图像处理相关常量定义。

统一管理格式名称、MIME 类型、扩展名以及各类默认值。
流水线内部的格式名称一律使用小写（如 "jpeg"、"webp"）。
"""

from typing import Final


class ImageFormats:
    """图像格式管理"""

    # 用户友好的别名
    ALIASES: Final[dict[str, str]] = {
        "jpg": "jpeg",
        "tif": "tiff",
    }

    MIME_TYPES: Final[dict[str, str]] = {
        "jpeg": "image/jpeg",
        "png": "image/png",
        "webp": "image/webp",
        "avif": "image/avif",
        "gif": "image/gif",
        "tiff": "image/tiff",
        "bmp": "image/bmp",
    }

    # 只定义首选扩展名（有多个选择时）
    PREFERRED_EXTENSIONS: Final[dict[str, str]] = {
        "jpeg": ".jpg",
        "tiff": ".tiff",
    }

    # 可作为 Web 输出的格式，按探测顺序排列
    WEB_OUTPUT_FORMATS: Final[tuple[str, ...]] = ("webp", "avif", "jpeg", "png")

    @classmethod
    def get_mime_type(cls, format_name: str) -> str:
        """获取 MIME 类型"""
        fmt = normalize_format(format_name)
        return cls.MIME_TYPES.get(fmt, f"image/{fmt}")

    @classmethod
    def get_extension(cls, format_name: str) -> str:
        """获取扩展名，优先使用首选扩展名"""
        fmt = normalize_format(format_name)
        if fmt in cls.PREFERRED_EXTENSIONS:
            return cls.PREFERRED_EXTENSIONS[fmt]
        return f".{fmt}"


class QualityDefaults:
    """质量相关默认值"""

    DEFAULT: Final[int] = 85
    MIN_QUALITY: Final[int] = 0
    MAX_QUALITY: Final[int] = 100

    # 断点宽度对应的质量
    BREAKPOINT_QUALITIES: Final[dict[int, int]] = {
        320: 80,
        640: 85,
        1024: 85,
        1920: 88,
        2560: 90,
    }


class ResponsiveDefaults:
    """响应式图片默认值"""

    SIZES: Final[tuple[int, ...]] = (320, 640, 1024, 1920)
    MAX_DIMENSION: Final[int] = 2560
    OUTPUT_FORMAT: Final[str] = "webp"
    SIZES_ATTRIBUTE: Final[str] = "100vw"
    SIZES_PRESETS: Final[dict[str, str]] = {
        "full": "100vw",
        "half": "(min-width: 1024px) 50vw, 100vw",
        "third": "(min-width: 1024px) 33vw, (min-width: 768px) 50vw, 100vw",
        "content": "(min-width: 1024px) 800px, 100vw",
    }
    BLUR_WIDTH: Final[int] = 20
    BLUR_QUALITY: Final[int] = 30


class ValidationLimits:
    """验证相关限制"""

    # 文件大小限制 (KiB)
    MAX_FILE_SIZE_KB: Final[int] = 10240
    MIN_WIDTH: Final[int] = 10
    MIN_HEIGHT: Final[int] = 10
    ALLOWED_MIMES: Final[tuple[str, ...]] = (
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
    )
    ALLOWED_EXTENSIONS: Final[tuple[str, ...]] = ("jpg", "jpeg", "png", "webp")


# 便捷访问函数
def normalize_format(format_str: str) -> str:
    """获取格式的标准名称（小写，别名展开）"""
    fmt = format_str.strip().lower().lstrip(".")
    return ImageFormats.ALIASES.get(fmt, fmt)


def get_mime_type(format_str: str) -> str:
    """获取格式的MIME类型"""
    return ImageFormats.get_mime_type(format_str)


def get_extension(format_str: str) -> str:
    """获取格式的首选扩展名"""
    return ImageFormats.get_extension(format_str)


def pil_format_name(format_str: str) -> str:
    """转换为 Pillow 使用的大写格式名"""
    return normalize_format(format_str).upper()


def normalize_output_format(format_str: str) -> str:
    """标准化输出格式名称，不可作为 Web 输出的格式抛出 ValueError"""
    fmt = normalize_format(format_str)
    if fmt not in ImageFormats.WEB_OUTPUT_FORMATS:
        supported = ", ".join(ImageFormats.WEB_OUTPUT_FORMATS)
        raise ValueError(f"不支持的输出格式: {format_str}（可选: {supported}）")
    return fmt
