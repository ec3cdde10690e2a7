"""测试配置文件。

提供测试所需的fixtures和配置。测试图片全部在内存中生成。
"""

from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from py_image_optimizer.config import OptimizerSettings, StorageSettings
from py_image_optimizer.optimizer import ImageOptimizer
from py_image_optimizer.storage.blob_store import MemoryBlobStore


def create_image_bytes(
    width: int = 400,
    height: int = 300,
    fmt: str = "JPEG",
    mode: str = "RGB",
    **save_kwargs,
) -> bytes:
    """生成带有色块的测试图片"""
    background = (255, 255, 255, 0) if mode == "RGBA" else "white"
    img = Image.new(mode, (width, height), color=background)
    draw = ImageDraw.Draw(img)
    step = max(1, min(width, height) // 10)
    for i in range(10):
        x, y = (i * step * 2) % width, (i * step) % height
        color = (i * 25 % 256, i * 40 % 256, i * 60 % 256)
        if mode == "RGBA":
            color = (*color, 200)
        draw.rectangle([x, y, x + step * 3, y + step * 2], fill=color)

    buffer = BytesIO()
    img.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


def write_image(path: Path, width: int = 400, height: int = 300, fmt: str = "JPEG") -> Path:
    """把测试图片写入文件"""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(create_image_bytes(width, height, fmt))
    return path


class CountingBlobStore(MemoryBlobStore):
    """记录写入次数的内存存储"""

    def __init__(self, base_url: str = "/storage"):
        super().__init__(base_url)
        self.put_calls: list[str] = []

    def put(self, path: str, data: bytes) -> None:
        self.put_calls.append(path)
        super().put(path, data)

    def metadata_writes(self) -> int:
        return sum(1 for path in self.put_calls if path.endswith("/meta.json"))


@pytest.fixture
def settings(tmp_path: Path) -> OptimizerSettings:
    """存储根目录指向临时目录的默认配置"""
    return OptimizerSettings(storage=StorageSettings(root=tmp_path / "storage"))


@pytest.fixture
def blob_store() -> CountingBlobStore:
    return CountingBlobStore()


@pytest.fixture
def optimizer(settings: OptimizerSettings, blob_store: CountingBlobStore) -> ImageOptimizer:
    """使用内存存储的优化器"""
    return ImageOptimizer.from_settings(settings, blob_store=blob_store)


@pytest.fixture
def jpeg_bytes() -> bytes:
    return create_image_bytes(400, 300, "JPEG")


@pytest.fixture
def photo_bytes() -> bytes:
    """2000x1500 的 JPEG 照片"""
    return create_image_bytes(2000, 1500, "JPEG", quality=90)
