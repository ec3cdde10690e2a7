"""执行引擎包。

提供批量优化和带重试的异步任务执行。
"""

from .batch import BatchOptimizer
from .jobs import JobRunner, OptimizeJob, log_job_failure


__all__ = ["BatchOptimizer", "JobRunner", "OptimizeJob", "log_job_failure"]
