"""ImageMagick 图像处理后端（通过 Wand 绑定）。

Wand 是可选依赖（``pip install py-image-optimizer[wand]``），
同时需要系统安装 MagickWand 库。导入推迟到方法内部，
未安装时模块仍可导入，只是 ``is_available()`` 返回 False。
"""

import base64
import importlib.util

from ..exceptions import ProcessingError, handle_image_errors
from ..models.constants import ImageFormats, normalize_format
from ..models.image_metadata import AssetInfo
from ..utils.logging_helpers import get_logger
from .base import ImageProcessor


logger = get_logger()

BLUR_SIGMA = 2.0
REENCODE_QUALITY = 95
CANDIDATE_FORMATS = (*ImageFormats.WEB_OUTPUT_FORMATS, "gif", "tiff", "bmp")


def _open_blob(data: bytes):
    from wand.image import Image as WandImage

    return WandImage(blob=data)


class WandProcessor(ImageProcessor):
    """基于 ImageMagick 的处理后端"""

    name = "wand"

    def __init__(
        self,
        strip_metadata: bool = True,
        auto_orient: bool = True,
        progressive: bool = True,
    ):
        super().__init__(strip_metadata, auto_orient, progressive)
        self._available: bool | None = None
        self._supported_formats: list[str] | None = None

    def is_available(self) -> bool:
        if self._available is None:
            self._available = self._probe()
        return self._available

    @staticmethod
    def _probe() -> bool:
        if importlib.util.find_spec("wand") is None:
            return False
        try:
            # 缺少 MagickWand 系统库时导入会失败
            import wand.image  # noqa: F401
        except ImportError as e:
            logger.debug(f"Wand 不可用: {e}")
            return False
        return True

    @handle_image_errors("图像检查")
    def inspect(self, data: bytes) -> AssetInfo:
        with _open_blob(data) as img:
            if not img.format:
                raise ProcessingError("无法识别的图像格式")
            if self.auto_orient_enabled:
                img.auto_orient()
            return AssetInfo(
                width=img.width,
                height=img.height,
                format=normalize_format(img.format),
                size=len(data),
                has_alpha=bool(img.alpha_channel),
            )

    @handle_image_errors("图像优化")
    def optimize(self, data: bytes, quality: int) -> bytes:
        with _open_blob(data) as img:
            self._prepare(img)
            return self._encode(img, img.format, quality)

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
        with _open_blob(data) as img:
            source_format = img.format
            self._prepare(img)
            if height is None:
                height = max(1, int(img.height * width / img.width))
            logger.debug(f"缩放 {img.width}x{img.height} → {width}x{height}")
            img.resize(width, height, filter="lanczos")
            return self._encode(img, output_format or source_format, quality)

    @handle_image_errors("格式转换")
    def convert(self, data: bytes, target_format: str, quality: int) -> bytes:
        with _open_blob(data) as img:
            self._prepare(img)
            return self._encode(img, target_format, quality)

    @handle_image_errors("生成模糊占位图")
    def blur_placeholder(self, data: bytes, width: int, quality: int) -> str:
        with _open_blob(data) as img:
            self._prepare(img)
            height = max(1, round(img.height * width / img.width))
            img.resize(width, height, filter="lanczos")
            img.blur(radius=0, sigma=BLUR_SIGMA)
            img.strip()
            encoded = self._encode(img, "webp", quality)
        return f"data:image/webp;base64,{base64.b64encode(encoded).decode('ascii')}"

    @handle_image_errors("移除元数据")
    def strip_metadata(self, data: bytes) -> bytes:
        with _open_blob(data) as img:
            img.strip()
            return img.make_blob()

    @handle_image_errors("自动旋转")
    def auto_orient(self, data: bytes) -> bytes:
        with _open_blob(data) as img:
            source_format = img.format
            img.auto_orient()
            return self._encode(img, source_format, REENCODE_QUALITY)

    def supported_formats(self) -> list[str]:
        if self._supported_formats is None:
            if not self.is_available():
                return []
            from wand.version import formats

            known = {normalize_format(fmt) for fmt in formats()}
            self._supported_formats = [
                fmt for fmt in CANDIDATE_FORMATS if fmt in known
            ]
        return list(self._supported_formats)

    def _prepare(self, img) -> None:
        """按配置自动旋转并移除元数据"""
        if self.auto_orient_enabled:
            img.auto_orient()
        if self.strip_metadata_enabled:
            img.strip()

    def _encode(self, img, target_format: str, quality: int) -> bytes:
        fmt = normalize_format(target_format)
        img.format = fmt
        img.compression_quality = max(1, min(100, quality))
        if fmt == "jpeg" and self.progressive:
            img.interlace_scheme = "plane"
        return img.make_blob()
