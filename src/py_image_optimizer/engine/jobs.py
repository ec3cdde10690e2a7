"""异步优化任务模块。

上传的文件先落到临时路径，再由 ``JobRunner`` 在线程池中处理：
有限次重试、单次超时、无论成败都删除临时文件。
"""

from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..exceptions import InvalidInputError, OptimizerError, ProcessingError
from ..models.image_metadata import ImageMetadata
from ..models.options import OptimizationOptions
from ..models.reports import JobOutcome
from ..optimizer import ImageOptimizer
from ..utils.cleanup_helpers import TempFileManager, spool_upload
from ..utils.file_helpers import get_image_mime_type
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()


@dataclass(frozen=True)
class OptimizeJob:
    """一次延迟执行的优化任务"""

    file_path: Path
    original_name: str
    options: OptimizationOptions | dict[str, Any] | None = None
    mime: str | None = None


FailureReporter = Callable[[OptimizeJob, BaseException], None]


def log_job_failure(job: OptimizeJob, error: BaseException) -> None:
    """默认的失败上报：记录一条错误日志"""
    logger.error(MessageFormatter.job_failed(job.original_name, error))


class JobRunner:
    """优化任务执行器

    每次尝试在独立的工作线程中运行并受 ``timeout`` 约束，超时的尝试被放弃
    并计为失败。InvalidInputError 和 ProcessorUnavailableError 不重试。
    """

    def __init__(
        self,
        optimizer: ImageOptimizer,
        tries: int = 3,
        timeout: float = 300.0,
        max_workers: int = 4,
        on_failure: FailureReporter | None = None,
    ):
        if tries < 1:
            raise ValueError("tries 必须大于 0")

        self.optimizer = optimizer
        self.tries = tries
        self.timeout = timeout
        self.on_failure = on_failure or log_job_failure
        self._attempts = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="imgopt-attempt"
        )
        self._dispatcher = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="imgopt-job"
        )

    @classmethod
    def from_optimizer(
        cls, optimizer: ImageOptimizer, on_failure: FailureReporter | None = None
    ) -> "JobRunner":
        jobs = optimizer.settings.jobs
        return cls(
            optimizer,
            tries=jobs.tries,
            timeout=jobs.timeout,
            max_workers=jobs.max_workers,
            on_failure=on_failure,
        )

    def submit(self, job: OptimizeJob) -> "Future[JobOutcome]":
        """提交任务，立即返回 Future"""
        return self._dispatcher.submit(self.run, job)

    def submit_upload(
        self,
        data: bytes,
        original_name: str,
        options: OptimizationOptions | dict[str, Any] | None = None,
        mime: str | None = None,
    ) -> "Future[JobOutcome]":
        """把上传内容写入临时文件后提交任务，临时文件由任务负责删除"""
        path = spool_upload(data, suffix=Path(original_name).suffix)
        return self.submit(OptimizeJob(path, original_name, options, mime))

    def run(self, job: OptimizeJob) -> JobOutcome:
        """同步执行任务直到成功或最终失败"""
        attempts = 0
        last_error: BaseException | None = None

        with TempFileManager() as temp_files:
            file_path = temp_files.register_temp_file(job.file_path)

            try:
                data, mime = self._read_input(job, file_path)
            except InvalidInputError as e:
                return self._fail(job, e, attempts)

            while attempts < self.tries:
                attempts += 1
                try:
                    metadata = self._attempt(job, data, mime)
                except FuturesTimeoutError:
                    last_error = ProcessingError(
                        f"任务超时（{self.timeout} 秒）: {job.original_name}"
                    )
                except Exception as e:
                    last_error = e
                    if isinstance(e, OptimizerError) and not e.retryable:
                        break
                else:
                    logger.info(
                        MessageFormatter.pipeline_step(
                            "任务完成", metadata.hash, f"第 {attempts} 次尝试"
                        )
                    )
                    return JobOutcome(
                        success=True,
                        file_path=job.file_path,
                        attempts=attempts,
                        metadata=metadata,
                    )

                logger.warning(
                    MessageFormatter.job_attempt_failed(
                        job.original_name, attempts, self.tries, last_error
                    )
                )

            return self._fail(job, last_error, attempts)

    def _read_input(self, job: OptimizeJob, file_path: Path) -> tuple[bytes, str]:
        if not file_path.is_file():
            raise InvalidInputError(MessageFormatter.file_not_found(file_path))

        mime = job.mime or get_image_mime_type(file_path)
        if mime is None:
            raise InvalidInputError(MessageFormatter.unknown_mime(job.original_name))
        return file_path.read_bytes(), mime

    def _attempt(self, job: OptimizeJob, data: bytes, mime: str) -> ImageMetadata:
        future = self._attempts.submit(
            self.optimizer.optimize, data, job.original_name, mime, job.options
        )
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeoutError:
            # 正在运行的尝试无法中断，只能放弃等待
            future.cancel()
            raise

    def _fail(
        self, job: OptimizeJob, error: BaseException | None, attempts: int
    ) -> JobOutcome:
        error = error or ProcessingError(f"任务失败: {job.original_name}")
        self.on_failure(job, error)
        return JobOutcome(
            success=False,
            error=str(error),
            file_path=job.file_path,
            attempts=attempts,
        )

    def shutdown(self, wait: bool = True) -> None:
        self._dispatcher.shutdown(wait=wait)
        self._attempts.shutdown(wait=wait)

    def __enter__(self) -> "JobRunner":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        del exc_type, exc_val, exc_tb
        self.shutdown()
