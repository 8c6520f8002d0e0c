"""
Market Intelligence Logging Configuration

Provides structured logging with JSON format support, per-aggregation
correlation ids, performance tracking, and configurable log levels.
"""

import asyncio
import json
import logging
import os
import socket
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar


# Correlates every log line emitted during one aggregation call
analysis_id_var: ContextVar[Optional[str]] = ContextVar("analysis_id", default=None)


# =============================================================================
# Log Level Strategy
# =============================================================================
#
# DEBUG   - Analysis skipped for a missing snapshot, rule-level details
# INFO    - Component initialization, aggregation completed with timing
# WARNING - Malformed snapshot payloads, stale data, slow aggregation
# ERROR   - Computation faults converted to null results
# CRITICAL- Reference data cannot be loaded
# =============================================================================


class StructuredFormatter(logging.Formatter):
    """
    JSON structured log formatter for production observability.

    Outputs one JSON object per record, suitable for log aggregation.
    """

    def __init__(self, service_name: str = "marketintel", environment: str = "development"):
        super().__init__()
        self.service_name = service_name
        self.environment = environment
        self.hostname = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "level_num": record.levelno,
            "service": self.service_name,
            "environment": self.environment,
            "hostname": self.hostname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "analysis_id": analysis_id_var.get(),
            "process_id": record.process,
        }

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        # Context fields prefixed with ctx_ are included without the prefix
        for key, value in record.__dict__.items():
            if key.startswith("ctx_"):
                log_data[key[4:]] = value

        log_data = {k: v for k, v in log_data.items() if v is not None}

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter for development.
    """

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        analysis_id = analysis_id_var.get()
        id_str = f"[{analysis_id[:8]}]" if analysis_id else ""

        formatted = (
            f"{timestamp} {color}{record.levelname:8}{self.RESET} "
            f"{id_str} {record.name} - {record.getMessage()}"
        )

        extras = []
        for key, value in record.__dict__.items():
            if key.startswith("ctx_"):
                extras.append(f"{key[4:]}={value}")
        if extras:
            formatted += f" | {', '.join(extras)}"

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    service_name: str = "marketintel",
    environment: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure logging for the engine's host process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON structured logging (for production)
        service_name: Service name for structured logs
        environment: Environment name; defaults to MARKETINTEL_ENV or development
        log_file: Optional file path for log output
    """
    environment = environment or os.environ.get("MARKETINTEL_ENV", "development")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    if json_format:
        formatter = StructuredFormatter(service_name, environment)
    else:
        formatter = ConsoleFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter(service_name, environment))
        root_logger.addHandler(file_handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)


# =============================================================================
# Context Management
# =============================================================================


def set_analysis_context(analysis_id: Optional[str] = None) -> str:
    """
    Set the correlation id for the current aggregation call.

    Returns:
        The analysis id being used
    """
    current = analysis_id or str(uuid.uuid4())
    analysis_id_var.set(current)
    return current


def clear_analysis_context() -> None:
    analysis_id_var.set(None)


def get_analysis_id() -> Optional[str]:
    return analysis_id_var.get()


# =============================================================================
# Performance Logging Decorator
# =============================================================================


T = TypeVar("T")


def log_performance(
    threshold_ms: float = 1000.0,
    log_args: bool = False,
    log_result: bool = False,
) -> Callable:
    """
    Decorator to log function performance.

    Args:
        threshold_ms: Log warning if execution exceeds this threshold
        log_args: Include function arguments in log
        log_result: Include function result type in log

    Example:
        @log_performance(threshold_ms=250)
        async def aggregate(input_data, options):
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        logger = logging.getLogger(func.__module__)

        def _start_extra(args, kwargs) -> Dict[str, Any]:
            extra: Dict[str, Any] = {
                "ctx_function": func.__name__,
                "ctx_operation": "function_call",
            }
            if log_args:
                extra["ctx_args"] = str(args)[:200]
                extra["ctx_kwargs"] = str(kwargs)[:200]
            return extra

        def _finish(extra: Dict[str, Any], start_time: float, result: Any) -> None:
            duration_ms = (time.perf_counter() - start_time) * 1000
            extra["ctx_duration_ms"] = round(duration_ms, 2)
            extra["ctx_status"] = "success"

            if log_result:
                extra["ctx_result_type"] = type(result).__name__

            if duration_ms > threshold_ms:
                logger.warning(
                    f"Slow operation: {func.__name__} took {duration_ms:.2f}ms",
                    extra=extra,
                )
            else:
                logger.debug(
                    f"Operation completed: {func.__name__} in {duration_ms:.2f}ms",
                    extra=extra,
                )

        def _fail(extra: Dict[str, Any], start_time: float, error: Exception) -> None:
            duration_ms = (time.perf_counter() - start_time) * 1000
            extra["ctx_duration_ms"] = round(duration_ms, 2)
            extra["ctx_status"] = "error"
            extra["ctx_error_type"] = type(error).__name__

            logger.error(
                f"Operation failed: {func.__name__} - {str(error)}",
                extra=extra,
                exc_info=True,
            )

        @wraps(func)
        async def async_wrapper(*args, **kwargs) -> T:
            start_time = time.perf_counter()
            extra = _start_extra(args, kwargs)
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _fail(extra, start_time, e)
                raise
            _finish(extra, start_time, result)
            return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs) -> T:
            start_time = time.perf_counter()
            extra = _start_extra(args, kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _fail(extra, start_time, e)
                raise
            _finish(extra, start_time, result)
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


# =============================================================================
# Analysis Event Logging
# =============================================================================


class AnalysisLogger:
    """
    Logger for analysis-level events with structured context.
    """

    def __init__(self, logger_name: str = "marketintel.analysis"):
        self.logger = logging.getLogger(logger_name)

    def log_analysis_complete(
        self,
        component: str,
        duration_ms: float,
        result_count: Optional[int] = None,
    ) -> None:
        """Log analysis component completion."""
        extra = {
            "ctx_event": "analysis_complete",
            "ctx_component": component,
            "ctx_duration_ms": round(duration_ms, 2),
        }
        if result_count is not None:
            extra["ctx_result_count"] = result_count

        self.logger.info(f"Analysis complete: {component}", extra=extra)

    def log_analysis_skipped(self, component: str, missing: str) -> None:
        """Log an analysis skipped for a missing prerequisite."""
        self.logger.debug(
            f"Analysis skipped: {component} (missing {missing})",
            extra={
                "ctx_event": "analysis_skipped",
                "ctx_component": component,
                "ctx_missing": missing,
            },
        )

    def log_stale_data(self, max_age_minutes: float, threshold_minutes: int) -> None:
        """Log stale input data."""
        self.logger.warning(
            f"Stale market data: oldest source is {max_age_minutes} minutes old",
            extra={
                "ctx_event": "stale_data",
                "ctx_max_age_minutes": max_age_minutes,
                "ctx_threshold_minutes": threshold_minutes,
            },
        )


analysis_logger = AnalysisLogger()
