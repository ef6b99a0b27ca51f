"""
Structured logging for provcheck.

One process-wide StructuredLogger writes to stdout and to a daily file
under the log directory, appends keyword context to each message as JSON,
and keeps counters for registry health and validation outcomes that are
summarised after a batch run.
"""

import json
import logging
import sys
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Optional

from .env import load_settings

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

COUNTERS = (
    "registry_calls",
    "registry_hits",
    "registry_misses",
    "registry_failures",
    "validations_attempted",
    "validations_succeeded",
    "validations_failed",
)


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT))
    return handler


def _rate(part: int, whole: int) -> float:
    return round(part / whole, 3) if whole > 0 else 0.0


class StructuredLogger:
    """
    Logger plus run metrics.

    Args:
        name: Name of the underlying logging.Logger
        level: Console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for provcheck_YYYYMMDD.log (default: logs/)
        enable_file: Write to the daily log file; it always gets DEBUG
        enable_console: Write to stdout
    """

    def __init__(
        self,
        name: str = "provcheck",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        numeric_level = getattr(logging, level.upper())
        self.logger = logging.getLogger(name)
        self.logger.setLevel(numeric_level)
        self.logger.handlers.clear()

        self.metrics = {counter: 0 for counter in COUNTERS}
        self.metrics["errors_by_type"] = Counter()
        self.metrics["status_counts"] = Counter()

        if enable_console:
            self.logger.addHandler(
                _handler(logging.StreamHandler(sys.stdout), numeric_level, CONSOLE_FORMAT)
            )

        if enable_file:
            log_dir = Path(log_dir or "logs")
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"provcheck_{datetime.now():%Y%m%d}.log"
            self.logger.addHandler(
                _handler(logging.FileHandler(log_file, encoding="utf-8"), logging.DEBUG, FILE_FORMAT)
            )

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Registry metrics

    def record_registry_call(self):
        self.metrics["registry_calls"] += 1

    def record_registry_hit(self):
        self.metrics["registry_hits"] += 1

    def record_registry_miss(self):
        self.metrics["registry_misses"] += 1

    def record_registry_failure(self, error_type: str):
        """Network, HTTP or payload failure; counted per error type too."""
        self.metrics["registry_failures"] += 1
        self.metrics["errors_by_type"][error_type] += 1

    # Validation metrics

    def record_validation_attempt(self):
        self.metrics["validations_attempted"] += 1

    def record_validation_success(self, status: str):
        self.metrics["validations_succeeded"] += 1
        self.metrics["status_counts"][status] += 1

    def record_validation_failure(self, error_type: str):
        self.metrics["validations_failed"] += 1
        self.metrics["errors_by_type"][error_type] += 1

    def get_metrics(self) -> dict:
        """Snapshot of the counters plus registry hit rate and validation success rate."""
        snapshot = {
            key: dict(value) if isinstance(value, Counter) else value
            for key, value in self.metrics.items()
        }
        snapshot["registry_hit_rate"] = _rate(snapshot["registry_hits"], snapshot["registry_calls"])
        snapshot["validation_success_rate"] = _rate(
            snapshot["validations_succeeded"], snapshot["validations_attempted"]
        )
        return snapshot

    def log_metrics_summary(self):
        m = self.get_metrics()

        self.info("=== Validation Session Metrics ===")
        self.info(
            f"Registry: {m['registry_hits']}/{m['registry_calls']} hits "
            f"({m['registry_hit_rate'] * 100:.1f}%), "
            f"{m['registry_misses']} misses, {m['registry_failures']} failures"
        )
        self.info(
            f"Validations: {m['validations_succeeded']}/{m['validations_attempted']} "
            f"({m['validation_success_rate'] * 100:.1f}% success)"
        )
        for title, counts in (("Statuses:", m["status_counts"]), ("Error Types:", m["errors_by_type"])):
            if counts:
                self.info(title)
                for key, count in counts.items():
                    self.info(f"  {key}: {count}")


_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "provcheck",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Return the process-wide logger, creating it on first use.

    Options not passed explicitly come from the PROVCHECK_LOG_* settings.
    Later calls return the existing instance and ignore their arguments.
    """
    global _global_logger

    if _global_logger is None:
        settings = load_settings()
        kwargs.setdefault("log_dir", settings.log_dir)
        kwargs.setdefault("enable_file", settings.log_to_file)
        _global_logger = StructuredLogger(name=name, level=level or settings.log_level, **kwargs)

    return _global_logger


def reset_logger():
    """Drop the process-wide logger so the next get_logger() builds a new one."""
    global _global_logger
    _global_logger = None
