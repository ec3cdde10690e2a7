"""Pillow 图像处理后端。

Pillow 是必选依赖，因此该后端始终可用，是默认首选后端。
"""

import base64
import importlib.util
from io import BytesIO
from typing import Any

from PIL import ExifTags, Image, ImageFilter, ImageOps

from ..exceptions import ProcessingError, handle_image_errors
from ..models.constants import ImageFormats, normalize_format, pil_format_name
from ..models.image_metadata import AssetInfo
from ..utils.logging_helpers import get_logger
from .base import ImageProcessor
from .formats import get_save_parameters, prepare_for_format


logger = get_logger()

# EXIF 方向 5-8 表示图像需要旋转 90 度，宽高互换
TRANSPOSED_ORIENTATIONS = frozenset({5, 6, 7, 8})

# 只做旋转等无需改变画质的重新编码时使用
REENCODE_QUALITY = 95

BLUR_RADIUS = 2

# 候选输出格式，按探测顺序排列
CANDIDATE_FORMATS = (*ImageFormats.WEB_OUTPUT_FORMATS, "gif", "tiff", "bmp")


class PillowProcessor(ImageProcessor):
    """基于 Pillow 的处理后端"""

    name = "pillow"

    def __init__(
        self,
        strip_metadata: bool = True,
        auto_orient: bool = True,
        progressive: bool = True,
    ):
        super().__init__(strip_metadata, auto_orient, progressive)
        self._supported_formats: list[str] | None = None

    def is_available(self) -> bool:
        return importlib.util.find_spec("PIL") is not None

    @handle_image_errors("图像检查")
    def inspect(self, data: bytes) -> AssetInfo:
        with Image.open(BytesIO(data)) as img:
            if not img.format:
                raise ProcessingError("无法识别的图像格式")

            width, height = img.size
            if self.auto_orient_enabled:
                orientation = img.getexif().get(ExifTags.Base.Orientation, 1)
                if orientation in TRANSPOSED_ORIENTATIONS:
                    width, height = height, width

            return AssetInfo(
                width=width,
                height=height,
                format=normalize_format(img.format),
                size=len(data),
                has_alpha=_has_alpha(img),
            )

    @handle_image_errors("图像优化")
    def optimize(self, data: bytes, quality: int) -> bytes:
        img, source_format = self._load(data)
        return self._encode(img, source_format, quality)

    @handle_image_errors("图像缩放")
    def resize(
        self,
        data: bytes,
        width: int,
        height: int | None = None,
        *,
        quality: int,
        output_format: str | None = None,
    ) -> bytes:
        img, source_format = self._load(data)
        if height is None:
            height = max(1, int(img.height * width / img.width))

        logger.debug(f"缩放 {img.width}x{img.height} → {width}x{height}")
        resized = img.resize((width, height), Image.Resampling.LANCZOS)
        return self._encode(resized, output_format or source_format, quality)

    @handle_image_errors("格式转换")
    def convert(self, data: bytes, target_format: str, quality: int) -> bytes:
        img, _ = self._load(data)
        return self._encode(img, target_format, quality)

    @handle_image_errors("生成模糊占位图")
    def blur_placeholder(self, data: bytes, width: int, quality: int) -> str:
        img, _ = self._load(data)
        height = max(1, round(img.height * width / img.width))

        small = img.resize((width, height), Image.Resampling.LANCZOS)
        blurred = small.filter(ImageFilter.GaussianBlur(BLUR_RADIUS))

        encoded = self._encode(blurred, "webp", quality, strip=True)
        return f"data:image/webp;base64,{base64.b64encode(encoded).decode('ascii')}"

    @handle_image_errors("移除元数据")
    def strip_metadata(self, data: bytes) -> bytes:
        with Image.open(BytesIO(data)) as img:
            source_format = normalize_format(img.format or "")
            params: dict[str, Any] = {"exif": b"", "icc_profile": None}
            if source_format == "jpeg":
                # 复用原量化表，避免二次压缩损失
                params.update(quality="keep", subsampling="keep")

            buffer = BytesIO()
            img.save(buffer, format=pil_format_name(source_format), **params)
            return buffer.getvalue()

    @handle_image_errors("自动旋转")
    def auto_orient(self, data: bytes) -> bytes:
        with Image.open(BytesIO(data)) as img:
            source_format = normalize_format(img.format or "")
            rotated = ImageOps.exif_transpose(img)
        return self._encode(rotated, source_format, REENCODE_QUALITY)

    def supported_formats(self) -> list[str]:
        if self._supported_formats is None:
            self._supported_formats = [
                fmt for fmt in CANDIDATE_FORMATS if _check_format_support(fmt)
            ]
            logger.debug(f"Pillow 支持的输出格式: {self._supported_formats}")
        return list(self._supported_formats)

    def _load(self, data: bytes) -> tuple[Image.Image, str]:
        """解码图像，返回 (已加载的图像, 源格式)"""
        with Image.open(BytesIO(data)) as img:
            if not img.format:
                raise ProcessingError("无法识别的图像格式")
            source_format = normalize_format(img.format)
            img.load()
            if self.auto_orient_enabled:
                loaded = ImageOps.exif_transpose(img)
            else:
                loaded = img.copy()
        return loaded, source_format

    def _encode(
        self,
        img: Image.Image,
        target_format: str,
        quality: int,
        strip: bool | None = None,
    ) -> bytes:
        """按目标格式编码为字节"""
        strip = self.strip_metadata_enabled if strip is None else strip
        prepared = prepare_for_format(img, target_format)
        params = get_save_parameters(
            target_format,
            quality,
            progressive=self.progressive,
            strip_metadata=strip,
        )
        if not strip and (exif := img.info.get("exif")):
            params["exif"] = exif

        buffer = BytesIO()
        prepared.save(buffer, format=pil_format_name(target_format), **params)
        return buffer.getvalue()


def _has_alpha(img: Image.Image) -> bool:
    """检查图像是否带透明通道"""
    return img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info


def _check_format_support(format_name: str) -> bool:
    """检查特定格式是否可以写出并重新读取"""
    try:
        test_img = Image.new("RGB", (1, 1), color="red")
        buffer = BytesIO()
        test_img.save(buffer, format=pil_format_name(format_name))
        buffer.seek(0)
        with Image.open(buffer) as reopened:
            reopened.load()
        return True
    except Exception as e:
        logger.debug(f"格式 {format_name} 不支持: {e}")
        return False
