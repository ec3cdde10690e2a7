"""响应式计算测试。

测试尺寸限制、变体筛选、srcset 和 sizes 属性。
"""

import pytest

from py_image_optimizer.config import LighthouseSettings
from py_image_optimizer.core.responsive import (
    build_srcset,
    derive_dimensions,
    resolve_sizes_attribute,
    variant_quality,
    variant_widths,
)
from py_image_optimizer.models import OptimizedInfo, VariantInfo


class TestDeriveDimensions:
    """尺寸限制测试"""

    def test_within_bounds_is_unchanged(self):
        """测试未超出边界时不缩放"""
        plan = derive_dimensions(2000, 1500, 2560, 2560)
        assert (plan.width, plan.height, plan.needs_resize) == (2000, 1500, False)

    def test_exactly_at_bounds_is_unchanged(self):
        """测试恰好等于边界时不缩放"""
        assert not derive_dimensions(2560, 2560, 2560, 2560).needs_resize

    @pytest.mark.parametrize(
        ("size", "bounds", "expected"),
        [
            ((5000, 2500), (2560, 2560), (2560, 1280)),
            ((3000, 4000), (2560, 2560), (1920, 2560)),
            ((1000, 333), (500, 500), (500, 166)),
            ((800, 600), (600, 600), (600, 450)),
        ],
    )
    def test_scaled_down_with_floor(self, size, bounds, expected):
        """测试按较小比例缩放并向下取整"""
        plan = derive_dimensions(*size, *bounds)
        assert (plan.width, plan.height) == expected
        assert plan.needs_resize
        assert plan.width <= bounds[0] and plan.height <= bounds[1]

    def test_extreme_aspect_ratio_keeps_one_pixel(self):
        """测试极端宽高比至少保留 1 像素"""
        plan = derive_dimensions(10000, 1, 100, 100)
        assert (plan.width, plan.height) == (100, 1)


class TestVariants:
    """变体筛选测试"""

    def test_only_widths_below_primary(self):
        """测试只保留严格小于主资源宽度的断点"""
        assert variant_widths([320, 640, 1024, 1920], 1024) == [320, 640]

    def test_duplicates_removed_in_order(self):
        """测试去重并保持顺序"""
        assert variant_widths([640, 320, 640], 2000) == [640, 320]

    def test_no_variants_for_small_primary(self):
        """测试主资源很小时没有变体"""
        assert variant_widths([320, 640], 300) == []

    def test_quality_table(self):
        """测试断点质量表和默认值"""
        table = {320: 80, 640: 85}
        assert variant_quality(320, table, 70) == 80
        assert variant_quality(500, table, 70) == 70


class TestSrcset:
    """srcset 测试"""

    def test_empty_without_variants(self):
        """测试没有变体时 srcset 为空"""
        assert build_srcset({}, "/storage/a.webp") == ""

    def test_variants_then_primary(self):
        """测试变体在前，主资源不带描述符追加在最后"""
        variants = {
            "320w": VariantInfo(path="p1", url="/u/a-320w.webp", size=1, width=320, quality=80),
            "640w": VariantInfo(path="p2", url="/u/a-640w.webp", size=2, width=640, quality=85),
        }
        assert build_srcset(variants, "/u/a.webp") == (
            "/u/a-320w.webp 320w, /u/a-640w.webp 640w, /u/a.webp"
        )


class TestSizesAttribute:
    """sizes 属性测试"""

    def test_explicit_override_wins(self):
        """测试显式值优先"""
        lighthouse = LighthouseSettings()
        assert resolve_sizes_attribute(lighthouse, "50vw", "half") == "50vw"

    def test_named_preset(self):
        """测试命名预设"""
        lighthouse = LighthouseSettings()
        assert resolve_sizes_attribute(lighthouse, None, "content") == (
            "(min-width: 1024px) 800px, 100vw"
        )

    def test_unknown_preset_falls_back(self):
        """测试未知预设回退到 100vw"""
        lighthouse = LighthouseSettings(default_sizes="80vw")
        assert resolve_sizes_attribute(lighthouse, None, "missing") == "100vw"

    def test_default(self):
        """测试使用配置的默认值"""
        lighthouse = LighthouseSettings(default_sizes="80vw")
        assert resolve_sizes_attribute(lighthouse) == "80vw"


class TestCompressionRatio:
    """压缩比例测试"""

    def test_ratio(self):
        """测试 1000 → 400 为 60%"""
        assert OptimizedInfo.calculate_ratio(1000, 400) == 60.0

    def test_ratio_rounds_to_two_decimals(self):
        """测试保留两位小数"""
        assert OptimizedInfo.calculate_ratio(3, 1) == 66.67

    def test_ratio_zero_original(self):
        """测试原始大小为 0 时比例为 0"""
        assert OptimizedInfo.calculate_ratio(0, 100) == 0

    def test_ratio_negative_when_larger(self):
        """测试优化后更大时为负数"""
        assert OptimizedInfo.calculate_ratio(100, 150) == -50.0
