"""统一配置管理模块。

所有配置都是不可变的 pydantic 模型，在构造时显式传入各组件，
处理逻辑内部不读取任何全局配置。支持环境变量和 JSON 文件覆盖默认值。
"""

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models.constants import (
    QualityDefaults,
    ResponsiveDefaults,
    ValidationLimits,
    normalize_output_format,
)


class FrozenSettings(BaseModel):
    """不可变配置基类"""

    model_config = ConfigDict(frozen=True, extra="forbid")


class StorageSettings(FrozenSettings):
    """存储相关配置"""

    root: Path = Field(Path("storage"), description="本地存储根目录")
    base_url: str = Field("/storage", description="公开访问 URL 前缀")
    base_path: str = Field("images", description="存储内的基础路径")
    paths: dict[str, str] = Field(
        default_factory=lambda: {"originals": "originals", "optimized": "optimized"},
        description="各类文件的子目录名",
    )
    hash_distribution: bool = Field(True, description="是否按哈希前缀分散目录")
    hash_depth: int = Field(2, ge=0, le=16, description="哈希前缀目录层数")


class BlurPlaceholderSettings(FrozenSettings):
    """模糊占位图配置"""

    enabled: bool = Field(True, description="是否生成模糊占位图")
    width: int = Field(ResponsiveDefaults.BLUR_WIDTH, gt=0, description="占位图宽度")
    quality: int = Field(
        ResponsiveDefaults.BLUR_QUALITY, ge=0, le=100, description="占位图质量"
    )


class CacheSettings(FrozenSettings):
    """结果缓存配置"""

    enabled: bool = Field(True, description="是否启用缓存")
    ttl: int = Field(3600, ge=0, description="默认过期秒数，0 表示不过期")
    prefix: str = Field("img_opt_", description="缓存键前缀")


class ValidationSettings(FrozenSettings):
    """上传校验配置"""

    max_file_size: int = Field(
        ValidationLimits.MAX_FILE_SIZE_KB, gt=0, description="最大文件大小（KiB）"
    )
    min_width: int = Field(ValidationLimits.MIN_WIDTH, ge=0, description="最小宽度")
    min_height: int = Field(ValidationLimits.MIN_HEIGHT, ge=0, description="最小高度")
    allowed_mimes: tuple[str, ...] = ValidationLimits.ALLOWED_MIMES
    allowed_extensions: tuple[str, ...] = ValidationLimits.ALLOWED_EXTENSIONS
    verify_image_type: bool = Field(True, description="是否解码文件头确认图像类型")

    @field_validator("allowed_mimes", "allowed_extensions")
    @classmethod
    def lowercase_entries(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(item.lower().lstrip(".") for item in v)


class PresetSettings(FrozenSettings):
    """命名预设，字段在解析选项时作为默认值"""

    sizes: list[int] | None = None
    quality: int | None = Field(None, ge=0, le=100)
    format: str | None = None
    max_width: int | None = Field(None, gt=0)
    max_height: int | None = Field(None, gt=0)
    is_lcp: bool | None = None
    sizes_preset: str | None = None

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str | None) -> str | None:
        return normalize_output_format(v) if v else None


class LighthouseSettings(FrozenSettings):
    """sizes 属性相关配置"""

    default_sizes: str = ResponsiveDefaults.SIZES_ATTRIBUTE
    sizes_presets: dict[str, str] = Field(
        default_factory=lambda: dict(ResponsiveDefaults.SIZES_PRESETS)
    )


class JobSettings(FrozenSettings):
    """异步任务配置"""

    tries: int = Field(3, ge=1, description="最大尝试次数")
    timeout: float = Field(300.0, gt=0, description="单次尝试超时秒数")
    max_workers: int = Field(4, ge=1, description="最大并发数")


class LoggingSettings(FrozenSettings):
    """日志相关的配置"""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _default_presets() -> dict[str, PresetSettings]:
    return {
        "avatar": PresetSettings(
            sizes=[64, 128, 256], quality=85, max_width=512, max_height=512
        ),
        "thumbnail": PresetSettings(
            sizes=[150, 300], quality=80, max_width=600, max_height=600
        ),
        "gallery": PresetSettings(sizes=[640, 1024, 1920], quality=85),
        "hero": PresetSettings(sizes=[768, 1024, 1920, 2560], quality=88, is_lcp=True),
    }


class OptimizerSettings(FrozenSettings):
    """图像优化器的完整配置"""

    processor: str = Field("pillow", description="首选图像处理后端")
    fallback: bool = Field(True, description="首选后端不可用时是否回退")
    default_quality: int = Field(QualityDefaults.DEFAULT, ge=0, le=100)
    qualities: dict[int, int] = Field(
        default_factory=lambda: dict(QualityDefaults.BREAKPOINT_QUALITIES),
        description="断点宽度到质量的映射",
    )
    sizes: list[int] = Field(
        default_factory=lambda: list(ResponsiveDefaults.SIZES),
        description="响应式断点宽度",
    )
    max_width: int = Field(ResponsiveDefaults.MAX_DIMENSION, gt=0)
    max_height: int = Field(ResponsiveDefaults.MAX_DIMENSION, gt=0)
    output_format: str = Field(ResponsiveDefaults.OUTPUT_FORMAT, description="输出格式")
    strip_metadata: bool = True
    auto_orient: bool = True
    progressive: bool = True

    blur_placeholder: BlurPlaceholderSettings = Field(
        default_factory=BlurPlaceholderSettings
    )
    cache: CacheSettings = Field(default_factory=CacheSettings)
    presets: dict[str, PresetSettings] = Field(default_factory=_default_presets)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    lighthouse: LighthouseSettings = Field(default_factory=LighthouseSettings)
    jobs: JobSettings = Field(default_factory=JobSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("processor")
    @classmethod
    def lowercase_processor(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("output_format")
    @classmethod
    def validate_output_format(cls, v: str) -> str:
        return normalize_output_format(v)

    @field_validator("sizes")
    @classmethod
    def validate_sizes(cls, v: list[int]) -> list[int]:
        if any(width <= 0 for width in v):
            raise ValueError(f"断点宽度必须为正整数，得到: {v}")
        return v

    @classmethod
    def from_file(cls, path: str | Path) -> "OptimizerSettings":
        """从 JSON 文件加载配置"""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.model_validate(data)

    @classmethod
    def from_env(cls, base: "OptimizerSettings | None" = None) -> "OptimizerSettings":
        """在默认配置（或给定配置）之上叠加环境变量"""
        settings = base or cls()
        updates: dict[str, Any] = {}

        if config_file := os.getenv("IMGOPT_CONFIG_FILE"):
            settings = cls.from_file(config_file)

        if processor := os.getenv("IMGOPT_PROCESSOR"):
            updates["processor"] = processor.strip().lower()

        if output_format := os.getenv("IMGOPT_FORMAT"):
            updates["output_format"] = output_format

        if quality := os.getenv("IMGOPT_QUALITY"):
            updates["default_quality"] = int(quality)

        storage_updates: dict[str, Any] = {}
        if storage_root := os.getenv("IMGOPT_STORAGE_ROOT"):
            storage_updates["root"] = Path(storage_root)
        if base_url := os.getenv("IMGOPT_BASE_URL"):
            storage_updates["base_url"] = base_url
        if storage_updates:
            updates["storage"] = settings.storage.model_copy(update=storage_updates)

        if cache_enabled := os.getenv("IMGOPT_CACHE_ENABLED"):
            updates["cache"] = settings.cache.model_copy(
                update={"enabled": cache_enabled.lower() in ("true", "1", "yes")}
            )

        if log_level := os.getenv("IMGOPT_LOG_LEVEL"):
            updates["logging"] = settings.logging.model_copy(
                update={"level": log_level.upper()}
            )

        if not updates:
            return settings
        # 重新校验，保证环境变量的取值同样受字段约束
        return cls.model_validate({**settings.model_dump(), **_dump_updates(updates)})


def _dump_updates(updates: dict[str, Any]) -> dict[str, Any]:
    """把嵌套配置对象转换为字典，便于重新校验"""
    return {
        key: value.model_dump() if isinstance(value, BaseModel) else value
        for key, value in updates.items()
    }
