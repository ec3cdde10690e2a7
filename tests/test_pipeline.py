"""优化流水线集成测试。

使用真实的 Pillow 后端和内存存储，覆盖端到端流程。
"""

import hashlib
import threading
import time
from io import BytesIO

import pytest
from PIL import Image

from py_image_optimizer.config import OptimizerSettings, StorageSettings, ValidationSettings
from py_image_optimizer.core.pipeline import metadata_cache_key
from py_image_optimizer.exceptions import InvalidInputError, ProcessingError
from py_image_optimizer.models import ImageMetadata, OptimizationOptions
from py_image_optimizer.optimizer import ImageOptimizer
from py_image_optimizer.storage.blob_store import MemoryBlobStore
from tests.conftest import CountingBlobStore, create_image_bytes


def image_size(data: bytes) -> tuple[int, int]:
    with Image.open(BytesIO(data)) as img:
        return img.size


def image_format(data: bytes) -> str:
    with Image.open(BytesIO(data)) as img:
        return img.format


class TestEndToEnd:
    """端到端流程测试"""

    def test_photo_with_three_breakpoints(
        self, optimizer: ImageOptimizer, blob_store: CountingBlobStore, photo_bytes: bytes
    ):
        """测试 2000x1500 照片生成 320w/640w/1024w 三个变体"""
        metadata = optimizer.optimize(
            photo_bytes, "photo.jpg", "image/jpeg", {"sizes": [320, 640, 1024]}
        )

        assert metadata.hash == hashlib.sha256(photo_bytes).hexdigest()
        assert (metadata.original.width, metadata.original.height) == (2000, 1500)
        assert metadata.original.format == "jpeg"
        assert metadata.original.filename == "photo.jpg"
        assert metadata.original.size == len(photo_bytes)

        # 主资源未缩放，转换为 WebP
        assert metadata.optimized.format == "webp"
        assert metadata.optimized.path.endswith("/photo.webp")
        primary = blob_store.get(metadata.optimized.path)
        assert image_size(primary) == (2000, 1500)
        assert image_format(primary) == "WEBP"
        assert metadata.optimized.size == len(primary)

        assert list(metadata.variants) == ["320w", "640w", "1024w"]
        assert [v.quality for v in metadata.variants.values()] == [80, 85, 85]
        for label, variant in metadata.variants.items():
            data = blob_store.get(variant.path)
            assert variant.width < 2000
            assert image_size(data)[0] == variant.width
            assert variant.path.endswith(f"/photo-{label}.webp")
            assert variant.size == len(data)

        assert metadata.srcset.endswith(", " + metadata.optimized.url)
        assert metadata.srcset.startswith(metadata.variants["320w"].url + " 320w")
        assert metadata.sizes == "100vw"
        assert metadata.blur_placeholder.startswith("data:image/webp;base64,")
        assert metadata.is_lcp is False
        assert metadata.alt == ""
        assert metadata.processing.processor == "pillow"

    def test_persisted_record_matches_result(
        self, optimizer: ImageOptimizer, jpeg_bytes: bytes
    ):
        """测试持久化记录与返回结果一致"""
        metadata = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")
        record = optimizer.store.read_metadata(metadata.hash)

        assert record == metadata.to_record()
        assert set(record) == {
            "original",
            "optimized",
            "variants",
            "srcset",
            "sizes",
            "blur_placeholder",
            "is_lcp",
            "alt",
            "processing",
        }
        assert ImageMetadata.from_record(metadata.hash, record) == metadata

    def test_default_sizes_filtered_by_width(
        self, optimizer: ImageOptimizer, jpeg_bytes: bytes
    ):
        """测试默认断点中只保留小于主资源宽度的"""
        metadata = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")
        assert list(metadata.variants) == ["320w"]
        assert metadata.srcset.count(",") == 1

    def test_no_variants_means_empty_srcset(self, optimizer: ImageOptimizer):
        """测试没有变体时 srcset 为空"""
        data = create_image_bytes(200, 150)
        metadata = optimizer.optimize(data, "small.jpg", "image/jpeg")

        assert metadata.variants == {}
        assert metadata.srcset == ""

    def test_oversized_image_is_limited(
        self, optimizer: ImageOptimizer, blob_store: CountingBlobStore
    ):
        """测试超出边界的图片被等比缩小，记录限制后的尺寸"""
        data = create_image_bytes(3000, 1000)
        metadata = optimizer.optimize(data, "wide.jpg", "image/jpeg", {"sizes": []})

        assert (metadata.original.width, metadata.original.height) == (2560, 853)
        assert image_size(blob_store.get(metadata.optimized.path)) == (2560, 853)

    def test_same_format_without_resize_is_bit_identical(
        self, optimizer: ImageOptimizer, blob_store: CountingBlobStore, jpeg_bytes: bytes
    ):
        """测试无需缩放且格式相同时直接复制原始字节"""
        metadata = optimizer.optimize(
            jpeg_bytes, "photo.jpg", "image/jpeg", {"format": "jpg", "sizes": []}
        )

        assert metadata.optimized.format == "jpeg"
        assert metadata.optimized.path.endswith("/photo.jpg")
        assert blob_store.get(metadata.optimized.path) == jpeg_bytes
        assert metadata.optimized.compression_ratio == 0.0

    def test_metadata_options(self, optimizer: ImageOptimizer, jpeg_bytes: bytes):
        """测试 alt、LCP 和 sizes 选项写入记录"""
        metadata = optimizer.optimize(
            jpeg_bytes,
            "photo.jpg",
            "image/jpeg",
            {"alt": "海边日落", "is_lcp": True, "sizes_preset": "half"},
        )

        assert metadata.alt == "海边日落"
        assert metadata.is_lcp is True
        assert metadata.sizes == "(min-width: 1024px) 50vw, 100vw"

    def test_local_storage(self, settings: OptimizerSettings, jpeg_bytes: bytes):
        """测试默认使用本地文件系统存储"""
        optimizer = ImageOptimizer.from_settings(settings)
        metadata = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")

        root = settings.storage.root
        assert (root / metadata.original.path).read_bytes() == jpeg_bytes
        assert (root / metadata.optimized.path).is_file()
        assert (root / optimizer.store.metadata_path(metadata.hash)).is_file()
        assert metadata.optimized.url == f"/storage/{metadata.optimized.path}"


class TestIdempotence:
    """去重测试"""

    def test_second_call_returns_same_record_without_writes(
        self, optimizer: ImageOptimizer, blob_store: CountingBlobStore, jpeg_bytes: bytes
    ):
        """测试重复提交返回相同记录且不产生写入"""
        first = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")
        writes = len(blob_store.put_calls)

        second = optimizer.optimize(jpeg_bytes, "other-name.jpg", "image/jpeg", {"quality": 10})

        assert second.to_record() == first.to_record()
        assert len(blob_store.put_calls) == writes

    def test_store_hit_without_cache(self, settings: OptimizerSettings, jpeg_bytes: bytes):
        """测试缓存禁用时从存储命中"""
        settings = settings.model_copy(
            update={"cache": settings.cache.model_copy(update={"enabled": False})}
        )
        blob_store = CountingBlobStore()
        optimizer = ImageOptimizer.from_settings(settings, blob_store=blob_store)

        first = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")
        writes = len(blob_store.put_calls)
        second = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")

        assert second.to_record() == first.to_record()
        assert len(blob_store.put_calls) == writes

    def test_store_hit_populates_cache(
        self, settings: OptimizerSettings, blob_store: CountingBlobStore, jpeg_bytes: bytes
    ):
        """测试存储命中后写入缓存"""
        first = ImageOptimizer.from_settings(settings, blob_store=blob_store)
        metadata = first.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")

        # 新实例共享存储，但缓存为空
        second = ImageOptimizer.from_settings(settings, blob_store=blob_store)
        assert second.cache.get(metadata_cache_key(metadata.hash)) is None

        assert second.get(metadata.hash) == metadata
        assert second.cache.get(metadata_cache_key(metadata.hash)) == metadata.to_record()

    def test_concurrent_duplicates_processed_once(
        self, optimizer: ImageOptimizer, blob_store: CountingBlobStore, jpeg_bytes: bytes
    ):
        """测试并发提交相同内容只处理一次"""
        results: list[ImageMetadata] = []
        barrier = threading.Barrier(4)

        def worker():
            barrier.wait()
            results.append(optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg"))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 4
        assert len({r.hash for r in results}) == 1
        assert blob_store.metadata_writes() == 1


class TestPresets:
    """预设测试"""

    def test_preset_applies_defaults(self, optimizer: ImageOptimizer):
        """测试 thumbnail 预设的尺寸限制和断点"""
        data = create_image_bytes(800, 600)
        metadata = optimizer.optimize(data, "thumb.jpg", "image/jpeg", {"preset": "thumbnail"})

        assert (metadata.original.width, metadata.original.height) == (600, 450)
        assert list(metadata.variants) == ["150w", "300w"]

    def test_explicit_options_win(self, optimizer: ImageOptimizer):
        """测试显式选项优先于预设"""
        data = create_image_bytes(800, 600)
        metadata = optimizer.optimize(
            data, "thumb.jpg", "image/jpeg", {"preset": "thumbnail", "sizes": [200]}
        )
        assert list(metadata.variants) == ["200w"]

    def test_preset_merge(self, settings: OptimizerSettings):
        """测试预设合并规则"""
        merged = OptimizationOptions(preset="thumbnail", quality=50).with_preset(
            settings.presets
        )
        assert merged.quality == 50
        assert merged.sizes == [150, 300]
        assert merged.max_width == 600

    def test_hero_preset_marks_lcp(self, settings: OptimizerSettings):
        """测试 hero 预设标记 LCP"""
        merged = OptimizationOptions(preset="hero").with_preset(settings.presets)
        assert merged.is_lcp is True

    def test_unknown_preset_ignored(self, optimizer: ImageOptimizer, jpeg_bytes: bytes):
        """测试未知预设被忽略"""
        metadata = optimizer.optimize(
            jpeg_bytes, "photo.jpg", "image/jpeg", {"preset": "does-not-exist"}
        )
        assert list(metadata.variants) == ["320w"]


class TestPlaceholder:
    """模糊占位图测试"""

    def test_failure_degrades_to_none(
        self, optimizer: ImageOptimizer, jpeg_bytes: bytes, monkeypatch: pytest.MonkeyPatch
    ):
        """测试占位图失败时记录为 None，不影响其他结果"""
        processor = optimizer.selector.select()

        def broken(*args, **kwargs):
            raise ProcessingError("blur failed")

        monkeypatch.setattr(processor, "blur_placeholder", broken)
        metadata = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")

        assert metadata.blur_placeholder is None
        assert optimizer.store.exists(metadata.hash)

    def test_disabled_by_option(self, optimizer: ImageOptimizer, jpeg_bytes: bytes):
        """测试选项关闭占位图"""
        metadata = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg", {"blur": False})
        assert metadata.blur_placeholder is None

    def test_disabled_by_settings(self, tmp_path, jpeg_bytes: bytes):
        """测试配置关闭占位图，选项可重新开启"""
        settings = OptimizerSettings.model_validate(
            {"storage": {"root": tmp_path}, "blur_placeholder": {"enabled": False}}
        )
        optimizer = ImageOptimizer.from_settings(settings, blob_store=MemoryBlobStore())

        assert optimizer.optimize(jpeg_bytes, "a.jpg", "image/jpeg").blur_placeholder is None
        other = create_image_bytes(300, 200)
        enabled = optimizer.optimize(other, "b.jpg", "image/jpeg", {"blur": True})
        assert enabled.blur_placeholder is not None


class TestFailures:
    """失败处理测试"""

    @pytest.mark.parametrize(
        ("filename", "mime"),
        [
            ("photo.gif", "image/jpeg"),
            ("photo.jpg", "image/gif"),
            ("photo", "image/jpeg"),
        ],
    )
    def test_rejected_type(
        self,
        optimizer: ImageOptimizer,
        blob_store: CountingBlobStore,
        jpeg_bytes: bytes,
        filename: str,
        mime: str,
    ):
        """测试拒绝不允许的扩展名和 MIME 类型"""
        with pytest.raises(InvalidInputError):
            optimizer.optimize(jpeg_bytes, filename, mime)
        assert blob_store.put_calls == []

    def test_rejected_size(self, tmp_path, jpeg_bytes: bytes):
        """测试拒绝过大的文件"""
        settings = OptimizerSettings(
            storage=StorageSettings(root=tmp_path),
            validation=ValidationSettings(max_file_size=1),
        )
        optimizer = ImageOptimizer.from_settings(settings, blob_store=MemoryBlobStore())

        with pytest.raises(InvalidInputError):
            optimizer.optimize(jpeg_bytes + b"\0" * 2048, "photo.jpg", "image/jpeg")

    def test_rejected_dimensions(self, optimizer: ImageOptimizer):
        """测试拒绝尺寸过小的图片"""
        with pytest.raises(InvalidInputError):
            optimizer.optimize(create_image_bytes(5, 5), "tiny.jpg", "image/jpeg")

    def test_rejected_corrupt(self, optimizer: ImageOptimizer, blob_store: CountingBlobStore):
        """测试拒绝损坏的文件"""
        with pytest.raises(InvalidInputError):
            optimizer.optimize(b"not an image at all", "photo.jpg", "image/jpeg")
        assert blob_store.put_calls == []

    def test_invalid_options(self, optimizer: ImageOptimizer, jpeg_bytes: bytes):
        """测试无效选项转换为 InvalidInputError"""
        with pytest.raises(InvalidInputError):
            optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg", {"quality": 150})

    @pytest.mark.parametrize("fmt", ["bogus", "gif"])
    def test_unsupported_format_rejected_before_writes(
        self,
        optimizer: ImageOptimizer,
        blob_store: CountingBlobStore,
        jpeg_bytes: bytes,
        fmt: str,
    ):
        """测试不支持的输出格式在写入原图之前被拒绝"""
        with pytest.raises(InvalidInputError):
            optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg", {"format": fmt})
        assert blob_store.put_calls == []

    def test_processing_failure_aborts_before_commit(
        self, optimizer: ImageOptimizer, jpeg_bytes: bytes, monkeypatch: pytest.MonkeyPatch
    ):
        """测试处理失败时不写入元数据，重试可成功"""
        processor = optimizer.selector.select()
        original_convert = processor.convert

        def broken(*args, **kwargs):
            raise ProcessingError("convert failed")

        monkeypatch.setattr(processor, "convert", broken)
        with pytest.raises(ProcessingError):
            optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")

        content_hash = hashlib.sha256(jpeg_bytes).hexdigest()
        assert not optimizer.store.exists(content_hash)
        assert optimizer.get(content_hash) is None

        monkeypatch.setattr(processor, "convert", original_convert)
        metadata = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")
        assert optimizer.store.exists(metadata.hash)


class TestOptimizerInterface:
    """对外接口测试"""

    def test_get_unknown_hash(self, optimizer: ImageOptimizer):
        """测试读取不存在的哈希"""
        assert optimizer.get("0" * 64) is None
        assert optimizer.url("0" * 64) is None

    def test_url(self, optimizer: ImageOptimizer, jpeg_bytes: bytes):
        """测试主资源和变体 URL"""
        metadata = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")

        assert optimizer.url(metadata.hash) == metadata.src
        assert optimizer.url(metadata.hash, "320w") == metadata.variants["320w"].url
        assert optimizer.url(metadata.hash, "9999w") == metadata.src
        assert metadata.variant_urls() == {"320w": metadata.variants["320w"].url}

    def test_delete(
        self, optimizer: ImageOptimizer, blob_store: CountingBlobStore, jpeg_bytes: bytes
    ):
        """测试删除全部文件并使缓存失效"""
        metadata = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")

        assert optimizer.delete(metadata.hash) is True
        assert optimizer.get(metadata.hash) is None
        assert optimizer.cache.get(metadata_cache_key(metadata.hash)) is None
        assert list(blob_store.iter_paths("images")) == []
        assert optimizer.delete(metadata.hash) is True

    @pytest.mark.parametrize("bad_hash", ["", "..", "ab"])
    def test_delete_malformed_hash_keeps_other_images(
        self, optimizer: ImageOptimizer, jpeg_bytes: bytes, bad_hash: str
    ):
        """测试非法哈希的删除请求不影响已有图片"""
        metadata = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")

        assert optimizer.delete(bad_hash) is True
        optimizer.cache.flush()
        assert optimizer.get(metadata.hash) is not None
        assert optimizer.get(bad_hash) is None

    def test_optimize_after_delete_reprocesses(
        self, optimizer: ImageOptimizer, blob_store: CountingBlobStore, jpeg_bytes: bytes
    ):
        """测试删除后重新提交会重新处理"""
        metadata = optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")
        optimizer.delete(metadata.hash)

        optimizer.optimize(jpeg_bytes, "photo.jpg", "image/jpeg")
        assert blob_store.metadata_writes() == 2

    def test_optimize_file(self, optimizer: ImageOptimizer, tmp_path):
        """测试从文件优化并自动识别 MIME 类型"""
        path = tmp_path / "upload.png"
        path.write_bytes(create_image_bytes(300, 200, "PNG"))

        metadata = optimizer.optimize_file(path)
        assert metadata.original.format == "png"
        assert metadata.original.filename == "upload.png"

    def test_optimize_missing_file(self, optimizer: ImageOptimizer, tmp_path):
        """测试文件不存在时报错"""
        with pytest.raises(InvalidInputError):
            optimizer.optimize_file(tmp_path / "missing.jpg")

    def test_list_processors_and_stats(self, optimizer: ImageOptimizer):
        """测试后端列表和统计信息"""
        processors = optimizer.list_processors()
        assert processors["pillow"]["available"] is True
        assert processors["pillow"]["active"] is True

        stats = optimizer.stats()
        assert stats["active_processor"] == "pillow"
        assert stats["default_quality"] == 85
        assert stats["sizes"] == [320, 640, 1024, 1920]
        assert stats["output_format"] == "webp"
        assert "webp" in stats["supported_formats"]


class TestCleanup:
    """过期清理测试"""

    def test_cleanup_old_records(
        self, optimizer: ImageOptimizer, blob_store: CountingBlobStore, jpeg_bytes: bytes
    ):
        """测试演练模式只列出，正式模式删除"""
        old = optimizer.optimize(jpeg_bytes, "old.jpg", "image/jpeg")
        fresh = optimizer.optimize(create_image_bytes(300, 200), "new.jpg", "image/jpeg")
        blob_store.set_modified_at(
            optimizer.store.metadata_path(old.hash), time.time() - 40 * 86400
        )

        preview = optimizer.cleanup(days=30, dry_run=True)
        assert preview.hashes == [old.hash]
        assert preview.total_size > 0
        assert optimizer.get(old.hash) is not None

        report = optimizer.cleanup(days=30)
        assert report.hashes == [old.hash]
        assert report.total_size == preview.total_size
        assert optimizer.get(old.hash) is None
        assert optimizer.get(fresh.hash) is not None

    def test_cleanup_rejects_negative_days(self, optimizer: ImageOptimizer):
        """测试天数不能为负"""
        with pytest.raises(InvalidInputError):
            optimizer.cleanup(days=-1)
