"""
Logging infrastructure for the grant import.

Provides:
- A unified pipe-separated format with millisecond timestamps
- Console and optional file output
- key=value field formatting for structured messages
- A run context that logs start and completion of a commit
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(filename)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S,%f"


class MillisecondsFormatter(logging.Formatter):
    """Custom formatter that includes milliseconds and aligns log levels."""

    def formatTime(self, record, datefmt=None):  # noqa: N802 - must match parent class method name
        """Override formatTime to include milliseconds."""
        ct = datetime.fromtimestamp(record.created)
        if datefmt and "%f" in datefmt:
            s = ct.strftime(datefmt.replace(",%f", ""))
            return s + f",{int(record.msecs):03d}"
        elif datefmt:
            return ct.strftime(datefmt)
        else:
            return ct.strftime("%Y-%m-%d %H:%M:%S") + f",{int(record.msecs):03d}"


def format_fields(message: str, **fields) -> str:
    """Append key=value pairs: "Committed row [row=3 org=Acme]"."""
    if not fields:
        return message
    formatted_data = " ".join(f"{k}={v}" for k, v in fields.items())
    return f"{message} [{formatted_data}]"


def configure_global_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure root logging with the unified format.

    Call this early in CLI startup so every module logger shares one handler.

    Args:
        log_level: Logging level applied to the console (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path; everything at DEBUG and above is also written there
    """
    level = getattr(logging, log_level.upper())
    formatter = MillisecondsFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if log_file else level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Driver chatter stays at WARNING unless debugging
    logging.getLogger("pymysql").setLevel(logging.DEBUG if level == logging.DEBUG else logging.WARNING)


class ImportRunContext:
    """
    Context manager that brackets a commit run with start/finish log lines.

    Usage:
        with ImportRunContext(logger, provider="schwab", total_rows=12) as ctx:
            summary = orchestrator.commit(rows)
            ctx.summary = summary
    """

    def __init__(self, logger: logging.Logger, provider: str, total_rows: int):
        self.logger = logger
        self.provider = provider
        self.total_rows = total_rows
        self.start_time: Optional[datetime] = None
        self.summary = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.info("=" * 60)
        self.logger.info(format_fields("Import commit started", provider=self.provider, rows=self.total_rows))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = (datetime.now() - self.start_time).total_seconds()
        if exc_type is not None:
            self.logger.error(
                format_fields("Import commit aborted", provider=self.provider, error=exc_val),
                exc_info=(exc_type, exc_val, exc_tb),
            )
        elif self.summary is not None:
            self.logger.info(
                format_fields(
                    "Import commit completed",
                    provider=self.provider,
                    processed=self.summary.processed,
                    imported=self.summary.grants_imported,
                    failed=self.summary.failed,
                    cancelled=self.summary.cancelled,
                    duration_seconds=round(duration, 2),
                )
            )
        self.logger.info("=" * 60)

        # Don't suppress exceptions
        return False
