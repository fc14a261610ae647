"""
Debug logging and pipeline timing for LogDash.

Logging is off until init_logging() enables it; the message helpers are
no-ops before that. Pipeline stages wrapped in benchmark() always record
their timings, so a summary can be written when logging shuts down.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional
from platformdirs import user_log_dir

LOGGER_NAME = 'LogDash'
LOG_FORMAT = '%(asctime)s.%(msecs)03d | %(levelname)-8s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_logger: Optional[logging.Logger] = None
_log_file_path: Optional[Path] = None


@dataclass
class StageTiming:
    """Accumulated timings of one pipeline stage, in milliseconds."""
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    last_ms: float = 0.0

    def add(self, elapsed_ms: float):
        self.min_ms = elapsed_ms if self.count == 0 else min(self.min_ms, elapsed_ms)
        self.max_ms = max(self.max_ms, elapsed_ms)
        self.count += 1
        self.total_ms += elapsed_ms
        self.last_ms = elapsed_ms

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0


_timings: Dict[str, StageTiming] = {}


def get_default_log_file() -> Path:
    """Get the default log file (platform-specific log directory).

    Windows: %LOCALAPPDATA%/LogDash/LogDash/Logs
    macOS: ~/Library/Logs/LogDash
    Linux: ~/.local/state/logdash/log
    """
    return Path(user_log_dir("LogDash", "LogDash")) / "logdash_debug.log"


def _close_handlers(logger: logging.Logger):
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)


def init_logging(
    enabled: bool = False,
    log_file: Optional[str] = None,
    log_level: str = 'DEBUG',
    max_file_size_mb: int = 10,
    backup_count: int = 3
) -> None:
    """
    Enable or disable debug logging to a rotating file.

    Args:
        enabled: Whether debug logging is enabled
        log_file: Path to the log file (uses default if None)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        max_file_size_mb: Maximum log file size before rotation
        backup_count: Number of rotated files to keep
    """
    global _logger, _log_file_path

    if _logger is not None:
        _close_handlers(_logger)
    _logger = None

    if not enabled:
        return

    _log_file_path = Path(log_file) if log_file else get_default_log_file()
    _log_file_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.DEBUG))
    logger.propagate = False
    _close_handlers(logger)

    handler = RotatingFileHandler(
        _log_file_path,
        maxBytes=max_file_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding='utf-8'
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)

    _logger = logger
    _logger.info(f"LogDash debug logging started, writing to {_log_file_path}")


def init_from_settings(settings) -> None:
    """Initialize logging from the debug_* fields of a DashboardSettings."""
    init_logging(
        enabled=settings.debug_enabled,
        log_file=settings.debug_log_file,
        log_level=settings.debug_log_level,
        max_file_size_mb=settings.debug_max_file_size_mb,
        backup_count=settings.debug_backup_count
    )


def is_enabled() -> bool:
    return _logger is not None


def get_log_file_path() -> Optional[Path]:
    """Get the current log file path."""
    return _log_file_path


def _log(level: int, msg: str, *args, **kwargs):
    if _logger is not None:
        _logger.log(level, msg, *args, **kwargs)


def debug(msg: str, *args, **kwargs) -> None:
    _log(logging.DEBUG, msg, *args, **kwargs)


def info(msg: str, *args, **kwargs) -> None:
    _log(logging.INFO, msg, *args, **kwargs)


def warning(msg: str, *args, **kwargs) -> None:
    _log(logging.WARNING, msg, *args, **kwargs)


def error(msg: str, *args, **kwargs) -> None:
    _log(logging.ERROR, msg, *args, **kwargs)


@contextmanager
def benchmark(operation_name: str, log_result: bool = True):
    """
    Time a pipeline stage.

    Usage:
        with benchmark("Process log") as metrics:
            metrics['extra']['rows'] = len(rows)

    Args:
        operation_name: Name of the stage
        log_result: Whether to write the timing to the log

    Yields:
        A dict whose 'extra' entries are appended to the log line
    """
    metrics: Dict[str, Any] = {'extra': {}}
    start_time = time.perf_counter()

    try:
        yield metrics
    finally:
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        _timings.setdefault(operation_name, StageTiming()).add(elapsed_ms)

        if log_result and _logger is not None:
            extra = ''.join(f" | {k}={v}" for k, v in metrics['extra'].items())
            _logger.debug(f"BENCHMARK | {operation_name} | {elapsed_ms:.3f}ms{extra}")


def get_benchmark_stats() -> Dict[str, Dict[str, float]]:
    """Timings per stage: count, total_ms, avg_ms, min_ms, max_ms, last_ms."""
    return {
        name: {
            'count': t.count,
            'total_ms': t.total_ms,
            'avg_ms': t.avg_ms,
            'min_ms': t.min_ms,
            'max_ms': t.max_ms,
            'last_ms': t.last_ms,
        }
        for name, t in _timings.items()
    }


def get_benchmark_summary() -> str:
    """Format the collected timings as a table."""
    if not _timings:
        return "No benchmark data collected."

    lines = [f"{'Stage':<40} {'Count':>8} {'Avg(ms)':>10} {'Min(ms)':>10} {'Max(ms)':>10}"]
    for name in sorted(_timings):
        t = _timings[name]
        lines.append(f"{name:<40} {t.count:>8} {t.avg_ms:>10.3f} {t.min_ms:>10.3f} {t.max_ms:>10.3f}")
    return "\n".join(lines)


def clear_benchmark_stats() -> None:
    _timings.clear()


def shutdown() -> None:
    """Write the timing summary and close the log file."""
    global _logger

    if _logger is not None:
        _logger.info("Benchmark summary\n" + get_benchmark_summary())
        _logger.info("LogDash debug logging stopped")
        _close_handlers(_logger)
    _logger = None
