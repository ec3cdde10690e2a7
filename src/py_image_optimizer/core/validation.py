"""上传校验模块。"""

from io import BytesIO

from PIL import Image, UnidentifiedImageError

from ..config import ValidationSettings
from ..exceptions import InvalidInputError
from ..models.image_metadata import SourceAsset
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()


class InputValidator:
    """校验上传的图像

    依次检查文件大小、MIME 类型、扩展名，启用 ``verify_image_type`` 时
    再解码文件头确认确实是图像并检查最小尺寸。任何违规都抛出 InvalidInputError。
    """

    def __init__(self, settings: ValidationSettings):
        self.settings = settings

    def validate(self, source: SourceAsset) -> None:
        settings = self.settings

        max_bytes = settings.max_file_size * 1024
        if source.size > max_bytes:
            raise InvalidInputError(
                MessageFormatter.upload_rejected(
                    "文件大小超出限制",
                    source.filename,
                    f"{source.size} > {max_bytes} bytes",
                )
            )

        if source.mime.lower() not in settings.allowed_mimes:
            raise InvalidInputError(
                MessageFormatter.upload_rejected(
                    "不支持的图像类型", source.filename, source.mime
                )
            )

        if source.extension not in settings.allowed_extensions:
            raise InvalidInputError(
                MessageFormatter.upload_rejected("不支持的文件扩展名", source.filename)
            )

        if settings.verify_image_type:
            width, height = self._read_dimensions(source.data)
            if width < settings.min_width or height < settings.min_height:
                raise InvalidInputError(
                    MessageFormatter.upload_rejected(
                        "图像尺寸过小",
                        source.filename,
                        f"{width}x{height}，"
                        f"最小 {settings.min_width}x{settings.min_height}",
                    )
                )

        logger.debug(f"校验通过: {source.filename} ({source.size} bytes)")

    @staticmethod
    def _read_dimensions(data: bytes) -> tuple[int, int]:
        """只读取文件头，不完整解码"""
        try:
            with Image.open(BytesIO(data)) as img:
                return img.size
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise InvalidInputError(f"文件不是有效的图像: {e}") from e
