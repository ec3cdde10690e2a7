"""Entry point for python -m py_image_optimizer.

不带子命令时启动 MCP 服务器；``optimize`` / ``cleanup`` / ``info``
子命令直接在命令行完成批量优化、过期清理和环境信息查看。
配置来自环境变量（见 ``OptimizerSettings.from_env``）。
"""

import argparse
import sys

from humanize import naturalsize


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="py-image-optimizer", description="内容寻址的图像优化工具"
    )
    parser.add_argument("-v", "--version", action="store_true", help="显示版本号")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("serve", help="启动 MCP 服务器（默认）")

    optimize = subparsers.add_parser("optimize", help="优化目录中的图片")
    optimize.add_argument("path", help="图片目录")
    optimize.add_argument("--quality", type=int, help="质量 0-100")
    optimize.add_argument("--format", help="输出格式，如 webp / avif")
    optimize.add_argument("--preset", help="命名预设")
    optimize.add_argument("--recursive", action="store_true", help="处理子目录")

    cleanup = subparsers.add_parser("cleanup", help="删除过期图片")
    cleanup.add_argument("--days", type=int, default=30, help="过期天数，默认 30")
    cleanup.add_argument("--dry-run", action="store_true", help="只列出不删除")

    subparsers.add_parser("info", help="显示处理后端和主要配置")
    return parser


def main(argv: list[str] | None = None) -> int:
    """主入口函数"""
    args = build_parser().parse_args(argv)

    if args.version:
        from . import get_version

        print(f"py-image-optimizer {get_version()}")
        return 0

    if args.command in (None, "serve"):
        from .mcp_server import main as server_main

        server_main()
        return 0

    from .config import OptimizerSettings
    from .optimizer import ImageOptimizer
    from .utils.logging_helpers import configure_logging

    settings = OptimizerSettings.from_env()
    configure_logging(settings.logging.level, settings.logging.format)
    optimizer = ImageOptimizer.from_settings(settings)

    match args.command:
        case "optimize":
            return _optimize(optimizer, args)
        case "cleanup":
            return _cleanup(optimizer, args)
        case _:
            return _info(optimizer)


def _optimize(optimizer, args: argparse.Namespace) -> int:
    from .engine.batch import BatchOptimizer
    from .models.options import OptimizationOptions

    try:
        options = OptimizationOptions(
            **{
                key: value
                for key, value in (
                    ("quality", args.quality),
                    ("format", args.format),
                    ("preset", args.preset),
                )
                if value is not None
            }
        )
    except ValueError as e:
        print(f"❌ 参数无效: {e}", file=sys.stderr)
        return 2

    report = BatchOptimizer(optimizer).optimize_directory(
        args.path, options, recursive=args.recursive
    )
    if not report.success:
        print(f"❌ {report.error}", file=sys.stderr)
        return 1

    for result in report.get_failed_items():
        print(f"⚠️ 失败: {result.input_path.name} - {result.error}")

    print(f"✅ {report.get_summary()}")
    print(f"   平均每张节省 {naturalsize(report.get_average_saved(), binary=True)}")
    # 有文件失败时返回非零，便于脚本判断
    return 1 if report.get_failure_count() else 0


def _cleanup(optimizer, args: argparse.Namespace) -> int:
    from .exceptions import InvalidInputError

    try:
        report = optimizer.cleanup(days=args.days, dry_run=args.dry_run)
    except InvalidInputError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2

    for content_hash in report.hashes:
        print(f"  - {content_hash}")
    print(f"🧹 {report.get_summary()}")
    return 0


def _info(optimizer) -> int:
    print("📦 处理后端:")
    for name, info in optimizer.list_processors().items():
        status = "✓" if info["available"] else "✗"
        active = " (使用中)" if info["active"] else ""
        formats = ", ".join(info["supported_formats"]) or "-"
        print(f"  {status} {name}{active}: {formats}")

    settings = optimizer.settings
    print("⚙️ 配置:")
    rows = [
        ("存储目录", settings.storage.root),
        ("基础路径", settings.storage.base_path),
        ("默认质量", settings.default_quality),
        ("输出格式", settings.output_format),
        ("响应式断点", ", ".join(f"{w}px" for w in settings.sizes)),
        ("最大尺寸", f"{settings.max_width}x{settings.max_height}"),
        ("模糊占位图", "开启" if settings.blur_placeholder.enabled else "关闭"),
        ("结果缓存", "开启" if settings.cache.enabled else "关闭"),
    ]
    for label, value in rows:
        print(f"  {label}: {value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
