"""优化选项模型。

定义单次优化请求的选项，以及命名预设的合并规则。
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .constants import normalize_output_format


class OptimizationOptions(BaseModel):
    """单次优化请求的选项

    未显式提供的字段保持未设置状态，以便与预设合并时区分“显式提供”与“默认值”。
    """

    quality: int | None = Field(None, ge=0, le=100, description="质量覆盖值")
    format: str | None = Field(None, description="目标输出格式")
    preset: str | None = Field(None, description="命名预设")
    sizes: list[int] | None = Field(None, description="显式断点宽度列表")
    max_width: int | None = Field(None, gt=0, description="最大宽度")
    max_height: int | None = Field(None, gt=0, description="最大高度")
    is_lcp: bool | None = Field(None, description="是否为 LCP 候选")
    alt: str | None = Field(None, description="替代文本")
    sizes_attr: str | None = Field(None, description="sizes 属性覆盖值")
    sizes_preset: str | None = Field(None, description="命名 sizes 预设")
    blur: bool | None = Field(None, description="是否生成模糊占位图")

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str | None) -> str | None:
        return normalize_output_format(v) if v else None

    @field_validator("sizes")
    @classmethod
    def validate_sizes(cls, v: list[int] | None) -> list[int] | None:
        if v is not None and any(width <= 0 for width in v):
            raise ValueError(f"断点宽度必须为正整数，得到: {v}")
        return v

    def explicit_values(self) -> dict[str, Any]:
        """调用方显式提供且不为 None 的选项"""
        return self.model_dump(exclude_unset=True, exclude_none=True)

    def with_preset(self, presets: Mapping[str, BaseModel]) -> "OptimizationOptions":
        """合并命名预设：预设字段作为默认值，显式选项优先

        未知的预设名称被忽略，选项原样返回。
        """
        if not self.preset or self.preset not in presets:
            return self

        merged = presets[self.preset].model_dump(exclude_none=True)
        merged.update(self.explicit_values())
        return OptimizationOptions.model_validate(merged)
