"""
Structured logging for the recaptación import.

One process-wide logger writes to the console and to a daily file under
the log directory. Keyword arguments passed to the log methods are
appended as JSON. Counters describe how collaborator names were resolved
and how many spreadsheet rows made it into the database.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from . import env

CONSOLE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT))
    return handler


class StructuredLogger:
    """
    Logger wrapper carrying the import metrics.

    Args:
        name: Name of the underlying stdlib logger
        level: Minimum level for the logger and the console
        log_dir: Where the daily file goes (default: logs/)
        enable_file: Attach the file handler
        enable_console: Attach the stdout handler
    """

    def __init__(
        self,
        name: str = "recaptacion",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        numeric_level = getattr(logging, level.upper())
        self.logger = logging.getLogger(name)
        self.logger.setLevel(numeric_level)
        self.logger.handlers.clear()

        self.metrics = self._empty_metrics()

        if enable_console:
            self.logger.addHandler(
                _handler(logging.StreamHandler(sys.stdout), numeric_level, CONSOLE_FORMAT)
            )

        if enable_file:
            log_dir = Path(log_dir or "logs")
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"recaptacion_{datetime.now():%Y%m%d}.log"
            # the file gets everything the logger lets through
            self.logger.addHandler(
                _handler(logging.FileHandler(log_file, encoding='utf-8'), logging.DEBUG, FILE_FORMAT)
            )

    @staticmethod
    def _empty_metrics() -> dict:
        return {
            "directory_queries": 0,
            "snapshot_refreshes": 0,
            "resolutions": {},
            "rows_inserted": 0,
            "rows_skipped": 0,
            "rows_failed": 0,
            "errors_by_type": {},
        }

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str, ensure_ascii=False)}"
        self.logger.log(level, message)

    def debug(self, message: str, **context):
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, **context):
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context):
        self._log(logging.WARNING, message, context)

    def error(self, message: str, **context):
        self._log(logging.ERROR, message, context)

    def critical(self, message: str, **context):
        self._log(logging.CRITICAL, message, context)

    # Import counters

    @staticmethod
    def _bump(counter: dict, key: str):
        counter[key] = counter.get(key, 0) + 1

    def record_directory_query(self):
        """One call to the user directory (substring lookup or full listing)."""
        self.metrics["directory_queries"] += 1

    def record_snapshot_refresh(self):
        self.metrics["snapshot_refreshes"] += 1

    def record_resolution(self, method: str):
        """Count a collaborator resolution by method (exact, fuzzy, fallback, empty)."""
        self._bump(self.metrics["resolutions"], method)

    def record_row_inserted(self):
        self.metrics["rows_inserted"] += 1

    def record_row_skipped(self):
        self.metrics["rows_skipped"] += 1

    def record_row_failure(self, error_type: str):
        """A spreadsheet row that could not be imported, keyed by exception name."""
        self.metrics["rows_failed"] += 1
        self._bump(self.metrics["errors_by_type"], error_type)

    def get_metrics(self) -> dict:
        """
        Snapshot of the counters.

        Adds ``match_rate``, the share of non-empty names resolved to a
        user (exact or fuzzy), once at least one name was looked up.
        """
        snapshot = dict(self.metrics)
        resolutions = snapshot["resolutions"]
        looked_up = sum(n for method, n in resolutions.items() if method != "empty")
        if looked_up:
            matched = resolutions.get("exact", 0) + resolutions.get("fuzzy", 0)
            snapshot["match_rate"] = round(matched / looked_up, 3)
        return snapshot

    def reset_metrics(self):
        self.metrics = self._empty_metrics()

    def log_metrics_summary(self):
        m = self.get_metrics()

        self.info("=== Import Session Metrics ===")
        self.info(
            f"Directory: {m['directory_queries']} queries, "
            f"{m['snapshot_refreshes']} snapshot refreshes"
        )
        self.info(
            f"Rows: {m['rows_inserted']} inserted, "
            f"{m['rows_skipped']} skipped, {m['rows_failed']} failed"
        )
        for method, count in m["resolutions"].items():
            self.info(f"Resolved by {method}: {count}")
        if "match_rate" in m:
            self.info(f"Match rate: {m['match_rate']:.1%}")
        for error_type, count in m["errors_by_type"].items():
            self.info(f"Failed with {error_type}: {count}")


_global_logger: Optional[StructuredLogger] = None


def get_logger(name: str = "recaptacion", level: Optional[str] = None, **kwargs) -> StructuredLogger:
    """
    Return the process-wide logger, creating it on first use.

    Level, log directory and file output default to the RECAPTACION_LOG_*
    environment variables (.env included). Later calls ignore their
    arguments.
    """
    global _global_logger

    if _global_logger is None:
        env.load_env()
        kwargs.setdefault("log_dir", env.log_dir())
        kwargs.setdefault("enable_file", env.log_to_file())
        _global_logger = StructuredLogger(name=name, level=level or env.log_level(), **kwargs)

    return _global_logger


def reset_logger():
    """Forget the process-wide logger; the next get_logger() builds a new one."""
    global _global_logger
    _global_logger = None
