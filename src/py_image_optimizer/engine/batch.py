"""批量优化模块。

并发优化目录中的所有图像文件。
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

from ..exceptions import OptimizerError
from ..models.options import OptimizationOptions
from ..models.reports import BatchReport, FileResult
from ..optimizer import ImageOptimizer
from ..utils.file_helpers import find_image_files
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()


class BatchOptimizer:
    """目录批量优化器"""

    def __init__(self, optimizer: ImageOptimizer, max_workers: int | None = None):
        """初始化批量优化器

        Args:
            optimizer: 图像优化器
            max_workers: 最大并发数，None 时使用 ``settings.jobs.max_workers``
        """
        self.optimizer = optimizer
        self.max_workers = max_workers or optimizer.settings.jobs.max_workers

    def optimize_directory(
        self,
        directory: str | Path,
        options: OptimizationOptions | dict[str, Any] | None = None,
        recursive: bool = True,
    ) -> BatchReport:
        """优化目录中所有允许扩展名的图像

        Args:
            directory: 输入目录
            options: 应用到每个文件的优化选项
            recursive: 是否递归处理子目录

        Returns:
            BatchReport: 批量处理结果，单个文件失败不影响其他文件
        """
        directory = Path(directory)
        if not directory.is_dir():
            message = (
                MessageFormatter.directory_not_found(directory)
                if not directory.exists()
                else MessageFormatter.path_not_directory(directory)
            )
            logger.warning(message)
            return BatchReport(success=False, error=message, input_dir=directory, results=[])

        image_files = list(
            find_image_files(
                directory,
                recursive=recursive,
                extensions=self.optimizer.settings.validation.allowed_extensions,
            )
        )
        logger.info(f"找到 {len(image_files)} 个图像文件: {directory}")

        results = self._process_files(image_files, options)
        results.sort(key=lambda r: str(r.input_path))

        report = BatchReport(success=True, input_dir=directory, results=results)
        logger.info(report.get_summary())
        return report

    def _process_files(
        self,
        files: list[Path],
        options: OptimizationOptions | dict[str, Any] | None,
    ) -> list[FileResult]:
        if not files:
            return []

        results: list[FileResult] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_path = {
                executor.submit(self.optimizer.optimize_file, path, options): path
                for path in files
            }

            for future in as_completed(future_to_path):
                path = future_to_path[future]
                try:
                    metadata = future.result()
                except OptimizerError as e:
                    logger.warning(MessageFormatter.operation_failed("优化", path, e))
                    results.append(
                        FileResult(success=False, error=str(e), input_path=path)
                    )
                else:
                    logger.debug(f"处理成功: {path}")
                    results.append(FileResult.from_metadata(path, metadata))

        return results
