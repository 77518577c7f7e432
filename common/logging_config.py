# -*- coding: utf-8 -*-
"""
Logging configuration for the database provisioner.

Console output is human-readable; an optional log file receives one JSON
object per record so that a run can be audited or shipped to a log
collector afterwards.
"""

import json
import logging
import os
import socket
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

# LogRecord attributes that are not user-supplied "extra" fields.
_RESERVED_RECORD_KEYS = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
        "message",
    ]
)


class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON with a consistent structure:
    timestamp (ISO, UTC), level, service, logger, message, source location,
    host, plus any ``extra`` fields passed to the logging call.
    """

    def __init__(self, service_name: str = "db-provisioner"):
        super().__init__()
        self.service_name = service_name
        self.hostname = os.environ.get("HOSTNAME") or socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process": record.process,
            "hostname": self.hostname,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(
    service_name: str = "db-provisioner",
    log_level: Optional[Union[str, int]] = None,
    enable_console: bool = True,
    log_file_path: Optional[Union[str, Path]] = None,
    log_prefix: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging for a provisioning run.

    Args:
        service_name: Name of the service; also the name of the returned logger.
        log_level: Level name or number. Defaults to the LOG_LEVEL environment
            variable, then INFO.
        enable_console: Attach a human-readable stdout handler.
        log_file_path: If given, attach a JSON-lines file handler.
        log_prefix: Optional prefix placed in front of every console line.

    Returns:
        The service logger.
    """
    if log_level is None:
        log_level = os.environ.get("LOG_LEVEL", "INFO")

    if isinstance(log_level, int):
        numeric_level = log_level
    else:
        numeric_level = getattr(logging, str(log_level).upper(), None)
        if not isinstance(numeric_level, int):
            numeric_level = logging.INFO

    prefix = f"{log_prefix} " if log_prefix else ""
    console_formatter = logging.Formatter(
        f"{prefix}%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    if log_file_path:
        log_path = Path(log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(JSONFormatter(service_name))
        root_logger.addHandler(file_handler)

    logger = logging.getLogger(service_name)
    logger.debug(
        "Logging initialized",
        extra={
            "log_level": logging.getLevelName(numeric_level),
            "console_enabled": enable_console,
            "log_file": str(log_file_path) if log_file_path else None,
        },
    )
    return logger
