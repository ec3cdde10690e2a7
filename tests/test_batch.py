"""目录批量优化测试。"""

from pathlib import Path

import pytest

from py_image_optimizer.engine import BatchOptimizer
from py_image_optimizer.optimizer import ImageOptimizer
from tests.conftest import write_image


@pytest.fixture
def image_tree(tmp_path: Path) -> Path:
    """包含子目录、损坏文件和非图像文件的目录"""
    root = tmp_path / "images"
    write_image(root / "a.jpg", 400, 300)
    write_image(root / "b.png", 300, 200, "PNG")
    write_image(root / "nested" / "c.jpg", 500, 400)
    (root / "broken.jpg").write_bytes(b"this is not a jpeg")
    (root / "readme.txt").write_text("ignored")
    return root


class TestBatchOptimizer:
    """批量优化测试"""

    def test_recursive(self, optimizer: ImageOptimizer, image_tree: Path):
        """测试递归处理，损坏文件计为失败"""
        report = BatchOptimizer(optimizer, max_workers=2).optimize_directory(image_tree)

        assert report.success
        assert report.get_total_count() == 4
        assert report.get_success_count() == 3
        assert report.get_failure_count() == 1

        failed = report.get_failed_items()[0]
        assert failed.input_path.name == "broken.jpg"
        assert failed.error

        paths = [str(r.input_path) for r in report.results]
        assert paths == sorted(paths)
        assert all(r.content_hash for r in report.get_successful_items())

    def test_flat(self, optimizer: ImageOptimizer, image_tree: Path):
        """测试不递归时跳过子目录"""
        report = BatchOptimizer(optimizer).optimize_directory(image_tree, recursive=False)

        names = {r.input_path.name for r in report.results}
        assert names == {"a.jpg", "b.png", "broken.jpg"}

    def test_options_applied(self, optimizer: ImageOptimizer, image_tree: Path):
        """测试选项应用到每个文件"""
        report = BatchOptimizer(optimizer).optimize_directory(
            image_tree, {"sizes": []}, recursive=False
        )

        assert all(r.variant_count == 0 for r in report.get_successful_items())

    def test_missing_directory(self, optimizer: ImageOptimizer, tmp_path: Path):
        """测试目录不存在"""
        report = BatchOptimizer(optimizer).optimize_directory(tmp_path / "missing")

        assert not report.success
        assert report.error
        assert report.results == []
        assert "批量处理失败" in report.get_summary()

    def test_path_is_file(self, optimizer: ImageOptimizer, tmp_path: Path):
        """测试路径不是目录"""
        path = write_image(tmp_path / "single.jpg")
        report = BatchOptimizer(optimizer).optimize_directory(path)

        assert not report.success

    def test_empty_directory(self, optimizer: ImageOptimizer, tmp_path: Path):
        """测试空目录"""
        empty = tmp_path / "empty"
        empty.mkdir()
        report = BatchOptimizer(optimizer).optimize_directory(empty)

        assert report.success
        assert report.get_total_count() == 0
        assert report.get_success_rate() == 0.0
