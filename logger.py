"""
Logging Framework for the Summary Table Engine

Provides:
- Console and optional rotating-file output on the 'table_one' namespace logger
- Configurable log levels and formats (from config.CONFIG['logging'])
- Performance tracking for table construction and add-on operations

Usage:
    from logger import get_logger

    logger = get_logger(__name__)
    logger.info("Building summary table")

    with logger.track_time("build_summary"):
        table = build_summary(df, group_by="arm")
"""

import logging
import logging.handlers
import sys
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import ClassVar, Dict, Optional

import pandas as pd

from config import CONFIG

PACKAGE_LOGGER = "table_one"


class PerformanceLogger:
    """
    Track and log performance metrics.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.timings: Dict[str, list] = {}
        self._lock = threading.Lock()

    @contextmanager
    def track_time(self, operation: str, log_level: str = "DEBUG"):
        """
        Measure a named operation and record its elapsed seconds.

        A no-op when CONFIG['logging.log_performance'] is falsy.
        """
        if not CONFIG.get('logging.log_performance'):
            yield
            return

        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            with self._lock:
                self.timings.setdefault(operation, []).append(elapsed)

            log_method = getattr(self.logger, log_level.lower(), self.logger.debug)
            log_method(f"{operation} completed in {elapsed:.3f}s")

    def get_timings(self, operation: Optional[str] = None) -> Dict[str, list]:
        if operation:
            return {operation: self.timings.get(operation, [])}
        return self.timings


class LoggerFactory:
    """
    Creates and caches Logger wrappers under the package namespace.
    """

    _loggers: ClassVar[Dict[str, 'Logger']] = {}
    _perf_logger: Optional[PerformanceLogger] = None
    _configured = False
    _lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def configure(cls) -> None:
        """
        One-time configuration of the 'table_one' logger from CONFIG['logging'].

        The root logger is left alone so applications embedding the library
        keep their own setup. A failure prints a warning to stderr and still
        marks configuration done.
        """
        if cls._configured:
            return

        package_logger = logging.getLogger(PACKAGE_LOGGER)
        try:
            if not CONFIG.get('logging.enabled'):
                package_logger.disabled = True
                return

            level_name = str(CONFIG.get('logging.level', 'INFO')).upper()
            level = logging.getLevelName(level_name)
            if not isinstance(level, int):
                print(f"[WARNING] Invalid log level '{level_name}', defaulting to INFO", file=sys.stderr)
                level = logging.INFO
            package_logger.setLevel(level)
            package_logger.handlers.clear()

            formatter = logging.Formatter(
                CONFIG.get('logging.format'), datefmt=CONFIG.get('logging.date_format')
            )
            if CONFIG.get('logging.file_enabled'):
                cls._add_file_handler(package_logger, formatter)
            if CONFIG.get('logging.console_enabled'):
                cls._add_console_handler(package_logger, formatter)

        except (ValueError, TypeError) as e:
            print(f"[WARNING] Logging configuration failed: {e}", file=sys.stderr)
        finally:
            cls._configured = True

    @staticmethod
    def _add_file_handler(target: logging.Logger, formatter: logging.Formatter) -> None:
        try:
            log_dir = Path(CONFIG.get('logging.log_dir', 'logs'))
            log_dir.mkdir(exist_ok=True, parents=True)
            handler = logging.handlers.RotatingFileHandler(
                log_dir / CONFIG.get('logging.log_file', 'table_one.log'),
                maxBytes=CONFIG.get('logging.max_log_size', 10485760),
                backupCount=CONFIG.get('logging.backup_count', 5),
            )
        except OSError as e:
            print(f"[WARNING] Failed to setup file logging: {e}", file=sys.stderr)
            return
        handler.setFormatter(formatter)
        target.addHandler(handler)

    @staticmethod
    def _add_console_handler(target: logging.Logger, formatter: logging.Formatter) -> None:
        handler = logging.StreamHandler(sys.stderr)
        level = logging.getLevelName(str(CONFIG.get('logging.console_level', 'WARNING')).upper())
        handler.setLevel(level if isinstance(level, int) else logging.WARNING)
        handler.setFormatter(formatter)
        target.addHandler(handler)

    @classmethod
    def get_logger(cls, name: str) -> 'Logger':
        """
        Cached Logger for `name`, nested under the package namespace
        ('utils.statistics' -> 'table_one.utils.statistics').
        """
        cls.configure()
        qualified = name if name.startswith(PACKAGE_LOGGER) else f"{PACKAGE_LOGGER}.{name}"
        with cls._lock:
            if qualified not in cls._loggers:
                cls._loggers[qualified] = Logger(logging.getLogger(qualified))
            return cls._loggers[qualified]

    @classmethod
    def get_performance_logger(cls) -> PerformanceLogger:
        if cls._perf_logger is None:
            cls._perf_logger = PerformanceLogger(logging.getLogger(f"{PACKAGE_LOGGER}.performance"))
        return cls._perf_logger


class Logger:
    """
    Wrapper around standard logger with operation, analysis and timing helpers.
    """

    def __init__(self, standard_logger: logging.Logger):
        self._logger = standard_logger
        self._perf_logger = LoggerFactory.get_performance_logger()

    def debug(self, msg: str, *args, **kwargs) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self._logger.error(msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs) -> None:
        self._logger.exception(msg, *args, **kwargs)

    def log_operation(self, operation: str, status: str = "started", **details) -> None:
        """
        Log an operation event: "[operation] STATUS key=value | key=value".

        "failed" logs at ERROR, anything else at INFO.
        """
        msg_parts = [f"[{operation}]"]
        if status:
            msg_parts.append(status.upper())
        if details:
            msg_parts.append(" | ".join(f"{k}={v}" for k, v in details.items()))
        msg = " ".join(msg_parts)

        if status.lower() == "failed":
            self.error(msg)
        else:
            self.info(msg)

    def log_data_summary(self, name: str, df: pd.DataFrame) -> None:
        """
        Log a DataFrame's shape, numeric column count and missing cell count
        when CONFIG['logging.log_data_operations'] is enabled.
        """
        if not CONFIG.get('logging.log_data_operations'):
            return
        n_numeric = sum(pd.api.types.is_numeric_dtype(dtype) for dtype in df.dtypes)
        self.debug(
            f"{name}: shape={df.shape}, numeric={n_numeric}, "
            f"missing_cells={int(df.isna().sum().sum())}"
        )

    def log_analysis(self, analysis_type: str, outcome: str, n_vars: int, n_samples: int) -> None:
        """
        One-line analysis summary, when CONFIG['logging.log_analysis_operations'] is enabled.
        """
        if CONFIG.get('logging.log_analysis_operations'):
            self.info(f"{analysis_type}: by='{outcome}', variables={n_vars}, n={n_samples}")

    @contextmanager
    def track_time(self, operation: str, log_level: str = "DEBUG"):
        with self._perf_logger.track_time(operation, log_level):
            yield

    def get_timings(self) -> Dict[str, list]:
        return self._perf_logger.get_timings()


def get_logger(name: str) -> Logger:
    """
    Obtain a configured logger for the given name (typically `__name__`).
    """
    return LoggerFactory.get_logger(name)
