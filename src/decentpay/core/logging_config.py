"""
DecentPay - Structured Logging Configuration

Configures structured JSON logging for the contract-interaction layer:
- JSON format for easy parsing and aggregation
- Optional rotating log file
- Context fields (``event``, ``entry_point``, ``tx_hash`` ...) passed through
  ``extra=`` end up as top-level JSON keys

Usage:
    from decentpay.core.logging_config import setup_logging

    logger = setup_logging(name="decentpay", level="DEBUG")
    logger.info("Transaction confirmed", extra={"tx_hash": tx_hash})
"""

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that adds timestamp, environment, service and source
    location to every record.
    """

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        environment: Optional[str] = None,
        service_name: str = "decentpay",
    ):
        super().__init__(fmt=fmt)
        self.environment = environment or "production"
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record["environment"] = self.environment
        log_record["service"] = self.service_name

        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def setup_logging(
    name: str = "decentpay",
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    environment: str = "production",
    enable_console: bool = True,
    max_bytes: int = 20 * 1024 * 1024,  # 20MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Set up structured JSON logging.

    Args:
        name: Logger name; ``decentpay`` configures the whole package
        level: Logging level, defaults to ``DECENTPAY_LOG_LEVEL`` or INFO
        log_file: Path to a JSON log file, defaults to ``DECENTPAY_LOG_FILE``
        environment: Environment identifier (dev, staging, prod)
        enable_console: Whether to log to stdout
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        Configured logger instance
    """
    level_name = (level or os.getenv("DECENTPAY_LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    log_file = log_file or os.getenv("DECENTPAY_LOG_FILE") or None

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    formatter = CustomJsonFormatter(
        environment=environment,
        service_name=name.split(".")[0],
    )

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                filename=log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not create file handler for {log_file}: {e}")

    return logger


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a logger, configuring the package logger on first use."""
    root_name = name.split(".")[0]
    if not logging.getLogger(root_name).handlers:
        setup_logging(name=root_name, level=level)
    return logging.getLogger(name)
