"""
Structured logging system for the job manager.

Provides centralized logging with console and optional file output, plus
per-run metrics (API calls, retries, deletions) that are summarised when a
command finishes.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for a cleanup or dispatch run.
    """

    def __init__(
        self,
        name: str = "jobmanager",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = False,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)

        # Pool workers record metrics concurrently
        self._metrics_lock = threading.Lock()
        self.metrics = {
            "api_calls": 0,
            "list_retries": 0,
            "list_failures": 0,
            "jobs_discovered": 0,
            "jobs_deleted": 0,
            "delete_failures": 0,
            "dispatch_skipped": 0,
            "errors_by_type": {},
        }

        self._setup_handlers(level, log_dir, enable_file, enable_console)

    def _setup_handlers(
        self,
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = False,
        enable_console: bool = True,
    ):
        """Set the level and replace the handlers of the underlying logger."""
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()  # Remove existing handlers

        # Console handler
        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        # File handler
        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"jobmanager_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(threadName)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def _increment(self, key: str, amount: int = 1):
        with self._metrics_lock:
            self.metrics[key] += amount

    def record_api_call(self):
        """Increment API call counter."""
        self._increment("api_calls")

    def record_list_retry(self):
        """Record a listing call that failed and is being retried."""
        self._increment("list_retries")

    def record_list_failure(self, error_type: str):
        """Record a listing that gave up after its retries."""
        with self._metrics_lock:
            self.metrics["list_failures"] += 1
            errors = self.metrics["errors_by_type"]
            errors[error_type] = errors.get(error_type, 0) + 1

    def record_jobs_discovered(self, count: int):
        """Add to the number of jobs seen during enumeration."""
        self._increment("jobs_discovered", count)

    def record_job_deleted(self):
        """Record a pruned job."""
        self._increment("jobs_deleted")

    def record_delete_failure(self, error_type: str):
        """Record a delete call that failed and was skipped."""
        with self._metrics_lock:
            self.metrics["delete_failures"] += 1
            errors = self.metrics["errors_by_type"]
            errors[error_type] = errors.get(error_type, 0) + 1

    def record_dispatch_skipped(self):
        """Record a dispatch skipped because an equivalent job is active."""
        self._increment("dispatch_skipped")

    def get_metrics(self) -> dict:
        """Return a copy of the current metrics."""
        with self._metrics_lock:
            metrics_copy = self.metrics.copy()
            metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Job Manager Run Metrics ===")
        self.info(f"API Calls: {metrics['api_calls']}")
        self.info(
            f"Listings: {metrics['list_retries']} retried, {metrics['list_failures']} gave up"
        )
        self.info(f"Jobs: {metrics['jobs_discovered']} discovered, {metrics['jobs_deleted']} deleted")

        if metrics["delete_failures"]:
            self.info(f"Delete failures: {metrics['delete_failures']}")

        if metrics["dispatch_skipped"]:
            self.info(f"Dispatch skipped: {metrics['dispatch_skipped']}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "jobmanager",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def configure_logger(level: str = "INFO", log_dir: Optional[Path] = None) -> StructuredLogger:
    """
    Apply runtime settings to the global logger.

    Modules keep the instance get_logger() returned at import time, so the
    handlers of the underlying logging.Logger are rebuilt in place.
    """
    logger = get_logger()
    logger._setup_handlers(level=level, log_dir=log_dir, enable_file=log_dir is not None)
    return logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
