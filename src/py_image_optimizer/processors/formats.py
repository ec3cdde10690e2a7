"""格式处理模块。

为目标格式准备色彩模式，并生成各格式的保存参数。
"""

from typing import Any

from PIL import Image

from ..models.constants import normalize_format
from ..utils.logging_helpers import get_logger


logger = get_logger()

WHITE = (255, 255, 255)


def prepare_for_format(img: Image.Image, target_format: str) -> Image.Image:
    """为目标格式准备图片的色彩模式

    Args:
        img: PIL图片对象
        target_format: 目标格式（任意大小写，支持别名）

    Returns:
        Image.Image: 处理后的图片对象
    """
    match normalize_format(target_format):
        case "jpeg":
            return _prepare_for_jpeg(img)
        case "png":
            return _prepare_for_png(img)
        case "webp" | "avif":
            return _prepare_for_rgba_capable(img)
        case _:
            return img


def _prepare_for_jpeg(img: Image.Image) -> Image.Image:
    """JPEG不支持透明度，透明区域合成到白色背景上"""
    if img.mode == "P":
        if "transparency" not in img.info:
            return img.convert("RGB")
        img = img.convert("RGBA")

    if img.mode == "LA":
        img = img.convert("RGBA")

    if img.mode == "RGBA":
        background = Image.new("RGB", img.size, WHITE)
        background.paste(img, mask=img.split()[-1])
        return background

    if img.mode != "RGB":
        # CMYK、L、1 等模式
        return img.convert("RGB")

    return img


def _prepare_for_png(img: Image.Image) -> Image.Image:
    """PNG支持大部分模式，只处理调色板和 CMYK"""
    if img.mode == "P":
        if "transparency" in img.info:
            return img.convert("RGBA")
        return img.convert("RGB")

    if img.mode == "CMYK":
        return img.convert("RGB")

    return img


def _prepare_for_rgba_capable(img: Image.Image) -> Image.Image:
    """WebP / AVIF 只接受 RGB 和 RGBA"""
    if img.mode in ("RGB", "RGBA"):
        return img

    if img.mode in ("LA", "PA") or (img.mode == "P" and "transparency" in img.info):
        return img.convert("RGBA")

    return img.convert("RGB")


def get_save_parameters(
    format_name: str,
    quality: int,
    *,
    progressive: bool = True,
    strip_metadata: bool = True,
) -> dict[str, Any]:
    """获取保存参数（不包含 format，由调用方处理）

    Args:
        format_name: 目标格式
        quality: 质量 0-100
        progressive: JPEG 是否使用渐进式编码
        strip_metadata: 是否移除 EXIF / ICC 元数据
    """
    params: dict[str, Any] = {}

    match normalize_format(format_name):
        case "jpeg":
            params.update(get_jpeg_params(quality, progressive))
        case "png":
            params.update(get_png_params())
        case "webp":
            params.update(get_webp_params(quality))
        case "avif":
            params.update(get_avif_params(quality))
        case other:
            logger.debug(f"格式 {other} 使用默认保存参数")

    if strip_metadata:
        params["exif"] = b""
        params["icc_profile"] = None

    return params


def get_jpeg_params(quality: int, progressive: bool = True) -> dict[str, Any]:
    """获取JPEG压缩参数

    - quality: 100 会禁用部分压缩算法，自动降到 98
    - subsampling: 高质量使用 4:2:2，其余使用 4:2:0
    """
    jpeg_quality = max(1, min(100, quality))
    if jpeg_quality == 100:
        logger.debug("JPEG质量100会禁用部分压缩算法，调整为98")
        jpeg_quality = 98

    return {
        "quality": jpeg_quality,
        "optimize": True,
        "progressive": progressive,
        "subsampling": 1 if jpeg_quality >= 85 else 2,
    }


def get_png_params() -> dict[str, Any]:
    """PNG 无损，质量值不适用，始终使用最佳压缩级别"""
    return {"optimize": True, "compress_level": 9}


def get_webp_params(quality: int) -> dict[str, Any]:
    """获取WebP压缩参数

    method 6 为最慢但压缩效果最佳；alpha_quality 控制透明通道质量。
    """
    webp_quality = max(0, min(100, quality))
    params: dict[str, Any] = {"quality": webp_quality, "method": 6}

    if webp_quality >= 85:
        params["alpha_quality"] = 100
    elif webp_quality >= 70:
        params["alpha_quality"] = min(100, webp_quality + 10)
    else:
        params["alpha_quality"] = webp_quality

    return params


def get_avif_params(quality: int) -> dict[str, Any]:
    """获取AVIF压缩参数，根据质量调整编码速度"""
    avif_quality = max(1, min(100, quality))
    if avif_quality >= 90:
        speed = 2
    elif avif_quality >= 70:
        speed = 4
    else:
        speed = 6
    return {"quality": avif_quality, "speed": speed}
