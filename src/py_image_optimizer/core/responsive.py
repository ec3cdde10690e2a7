"""响应式图片计算。

尺寸限制、srcset 和 sizes 属性的纯函数，不依赖图像后端。
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass

from ..config import LighthouseSettings
from ..models.image_metadata import VariantInfo


FALLBACK_SIZES = "100vw"


@dataclass(frozen=True)
class DimensionPlan:
    """主资源的目标尺寸"""

    width: int
    height: int
    needs_resize: bool


def derive_dimensions(
    width: int, height: int, max_width: int, max_height: int
) -> DimensionPlan:
    """等比缩放到边界以内

    超出任一边界时 ``r = min(maxW/W, maxH/H)``，两边都向下取整（至少为 1）；
    否则保持原尺寸。
    """
    if width <= max_width and height <= max_height:
        return DimensionPlan(width, height, needs_resize=False)

    ratio = min(max_width / width, max_height / height)
    return DimensionPlan(
        width=max(1, math.floor(width * ratio)),
        height=max(1, math.floor(height * ratio)),
        needs_resize=True,
    )


def variant_widths(sizes: list[int], primary_width: int) -> list[int]:
    """需要生成的变体宽度：严格小于主资源宽度，按出现顺序去重"""
    widths: list[int] = []
    for width in sizes:
        if width < primary_width and width not in widths:
            widths.append(width)
    return widths


def variant_quality(
    width: int, qualities: Mapping[int, int], default_quality: int
) -> int:
    """变体质量取自断点质量表，缺失时使用默认质量"""
    return qualities.get(width, default_quality)


def build_srcset(variants: Mapping[str, VariantInfo], primary_url: str) -> str:
    """构建 srcset 字符串

    每个变体为 ``"url 640w"``；存在变体时，主资源 URL 不带描述符追加在最后。
    """
    entries = [f"{variant.url} {label}" for label, variant in variants.items()]
    if entries:
        entries.append(primary_url)
    return ", ".join(entries)


def resolve_sizes_attribute(
    lighthouse: LighthouseSettings,
    sizes_attr: str | None = None,
    sizes_preset: str | None = None,
) -> str:
    """确定 sizes 属性：显式值，其次命名预设，最后默认值"""
    if sizes_attr:
        return sizes_attr
    if sizes_preset:
        return lighthouse.sizes_presets.get(sizes_preset, FALLBACK_SIZES)
    return lighthouse.default_sizes
