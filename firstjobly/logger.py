"""
Structured logging for firstjobly.

Provides a process-wide logger with console and optional file output,
keyword context rendered as JSON, and counters for store activity that the
status endpoint reports.
"""

import json
import logging
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for monitoring store health.
    """

    def __init__(
        self,
        name: str = "firstjobly",
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
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()  # Remove existing handlers

        # Request handlers run on worker threads
        self._lock = threading.Lock()
        self.metrics = {
            "backend": None,
            "writes": 0,
            "reads": 0,
            "failures": 0,
            "errors_by_type": {},
            "failures_by_operation": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"firstjobly_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
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

    def record_backend(self, backend: str):
        """Remember which store is serving requests."""
        self.metrics["backend"] = backend

    def record_write(self):
        """Increment the upsert counter."""
        with self._lock:
            self.metrics["writes"] += 1

    def record_read(self):
        """Increment the read counter (list or point lookup)."""
        with self._lock:
            self.metrics["reads"] += 1

    def record_failure(self, operation: str, error_type: str):
        """Record a failed store operation."""
        with self._lock:
            self.metrics["failures"] += 1
            by_type = self.metrics["errors_by_type"]
            by_type[error_type] = by_type.get(error_type, 0) + 1
            by_op = self.metrics["failures_by_operation"]
            by_op[operation] = by_op.get(operation, 0) + 1

    def get_metrics(self) -> dict:
        """Return a snapshot of current metrics."""
        with self._lock:
            snapshot = dict(self.metrics)
            snapshot["errors_by_type"] = dict(self.metrics["errors_by_type"])
            snapshot["failures_by_operation"] = dict(self.metrics["failures_by_operation"])

        total = snapshot["writes"] + snapshot["reads"]
        snapshot["failure_rate"] = round(snapshot["failures"] / total, 3) if total else 0.0
        return snapshot

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Store Session Metrics ===")
        self.info(f"Backend: {metrics['backend'] or 'none'}")
        self.info(f"Writes: {metrics['writes']} | Reads: {metrics['reads']}")
        self.info(f"Failures: {metrics['failures']} ({metrics['failure_rate'] * 100:.1f}%)")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "firstjobly",
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


def configure_logger(settings) -> StructuredLogger:
    """Replace the global logger with one built from Settings."""
    global _global_logger

    log_dir = Path(settings.log_dir) if settings.log_dir else None
    _global_logger = StructuredLogger(
        level=settings.log_level,
        log_dir=log_dir,
        enable_file=log_dir is not None,
    )
    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
