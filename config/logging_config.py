#!/usr/bin/env python3
"""
Pipeline Logging Configuration
==============================

Structured JSON logging for the Hub overlap pipeline. Every enrichment run
gets a short run id, and messages emitted while a batch is in flight carry
the batch index, so a long job can be followed (or resumed) from its logs.

Features:
- Structured JSON output for log aggregation tools
- Run-specific trace IDs for filtering and debugging
- Batch context on progress and failure messages
"""

import logging
import uuid
from typing import Dict, Any, Optional
from pythonjsonlogger.json import JsonFormatter
from datetime import datetime

SERVICE_NAME = 'hub-overlap-pipeline'
SERVICE_VERSION = '1.0.0'
ROOT_LOGGER_NAME = 'hub_pipeline'


class PipelineFormatter(JsonFormatter):
    """
    Custom JSON formatter adding service identification to each record.
    """

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        """Add custom fields to each log record."""
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.utcnow().isoformat() + 'Z'
        log_record['service'] = SERVICE_NAME
        log_record['version'] = SERVICE_VERSION
        log_record['logger'] = record.name

        if not log_record.get('level'):
            log_record['level'] = record.levelname


class RunLogger:
    """
    Run-aware logger that includes the run id (and the current batch, once
    one is set) in every message.
    """

    def __init__(self, base_logger: logging.Logger, run_id: Optional[str] = None):
        """
        Initialize run logger.

        Args:
            base_logger: The base logger instance
            run_id: Optional custom run ID, generates one if not provided
        """
        self.base_logger = base_logger
        self.run_id = run_id or str(uuid.uuid4())[:8]
        self.batch_index: Optional[int] = None

    def _log_with_context(self, level: int, message: str, extra_context: Optional[Dict[str, Any]] = None) -> None:
        """Log message with run context."""
        context = {'run_id': self.run_id}
        if self.batch_index is not None:
            context['batch_index'] = self.batch_index
        if extra_context:
            context.update(extra_context)

        self.base_logger.log(level, message, extra=context)

    def info(self, message: str, **kwargs) -> None:
        self._log_with_context(logging.INFO, message, kwargs)

    def debug(self, message: str, **kwargs) -> None:
        self._log_with_context(logging.DEBUG, message, kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log_with_context(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log_with_context(logging.ERROR, message, kwargs)

    def batch_written(self, processed: int, total: int, defaulted: int) -> None:
        """
        Log the progress signal emitted after each persisted batch.

        This is the line to grep for when resuming an interrupted run.
        """
        self.info(
            f"Processed {processed} of {total} addresses - batch written",
            processed=processed,
            total=total,
            defaulted_values=defaulted,
        )

    def batch_failed(self, error: str, committed_rows: int) -> None:
        """Log a fatal sink failure with the point a resume would start from."""
        self.error(
            "Batch write failed, run aborted",
            error_message=error,
            committed_rows=committed_rows,
        )


def setup_pipeline_logging(log_level: str = 'INFO') -> logging.Logger:
    """
    Set up structured logging for the pipeline.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    formatter = PipelineFormatter('%(timestamp)s %(level)s %(service)s %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Prevent propagation to root logger to avoid duplicate logs
    logger.propagate = False

    return logger


def get_run_logger(run_id: Optional[str] = None) -> RunLogger:
    """
    Get a run-aware logger for one enrichment run.

    Args:
        run_id: Optional custom run ID

    Returns:
        RunLogger instance
    """
    base_logger = logging.getLogger(f'{ROOT_LOGGER_NAME}.run')
    return RunLogger(base_logger, run_id)
