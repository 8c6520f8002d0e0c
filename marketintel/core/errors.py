"""
Market Intelligence Error Handling Module

Structured error codes, user-friendly messages and graceful degradation
for the analysis engine. Missing prerequisites and computation faults are
absorbed at each analysis boundary; invalid arguments are raised.
"""

import asyncio
import logging
import numbers
import re
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# =============================================================================
# Error Code Taxonomy
# =============================================================================


class ErrorCategory(Enum):
    """Top-level error categories."""

    DATA = "DATA"
    VALIDATION = "VALIDATION"
    ANALYSIS = "ANALYSIS"
    CONFIG = "CONFIG"
    SYSTEM = "SYSTEM"


class ErrorSeverity(Enum):
    """Error severity levels for monitoring and alerting."""

    DEBUG = auto()
    INFO = auto()
    WARNING = auto()
    ERROR = auto()
    CRITICAL = auto()


@dataclass(frozen=True)
class ErrorCode:
    """Structured error code with metadata."""

    code: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    user_message: str
    recovery_hint: str = ""

    def __str__(self) -> str:
        return f"{self.category.value}_{self.code}"


class ErrorCodes:
    """Central registry of engine error codes."""

    # Data Errors (2xxx)
    DATA_MISSING_PREREQUISITE = ErrorCode(
        code="2001",
        category=ErrorCategory.DATA,
        severity=ErrorSeverity.DEBUG,
        message="Required snapshot is not available",
        user_message="Not enough market data for this analysis.",
        recovery_hint="The analysis will be available once the data source reports.",
    )

    DATA_INVALID_SNAPSHOT = ErrorCode(
        code="2002",
        category=ErrorCategory.DATA,
        severity=ErrorSeverity.WARNING,
        message="Snapshot failed validation",
        user_message="Some market data could not be read.",
        recovery_hint="Check the data collaborator's payload format.",
    )

    DATA_EMPTY_SNAPSHOT = ErrorCode(
        code="2003",
        category=ErrorCategory.DATA,
        severity=ErrorSeverity.INFO,
        message="Snapshot contains no records",
        user_message="The market data set is empty.",
        recovery_hint="Wait for the next reporting date.",
    )

    # Validation Errors (4xxx)
    VALIDATION_INVALID_ARGUMENT = ErrorCode(
        code="4001",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.INFO,
        message="Invalid argument",
        user_message="One of the values is not valid.",
        recovery_hint="Check the allowed values for this field.",
    )

    VALIDATION_INVALID_PRICE = ErrorCode(
        code="4002",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.INFO,
        message="Price must be positive",
        user_message="The price is not valid.",
        recovery_hint="Provide a price greater than zero.",
    )

    VALIDATION_INVALID_SYMBOL = ErrorCode(
        code="4003",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.INFO,
        message="Invalid stock symbol format",
        user_message="The symbol format is not valid.",
        recovery_hint="Enter a valid exchange symbol (e.g., PTT, KBANK, W-F).",
    )

    # Analysis Errors (5xxx)
    ANALYSIS_COMPUTATION_FAULT = ErrorCode(
        code="5001",
        category=ErrorCategory.ANALYSIS,
        severity=ErrorSeverity.ERROR,
        message="Unexpected failure during rule evaluation",
        user_message="This analysis is temporarily unavailable.",
        recovery_hint="Other analyses are unaffected. Report the logged error.",
    )

    # Configuration Errors (7xxx)
    CONFIG_REFERENCE_DATA = ErrorCode(
        code="7001",
        category=ErrorCategory.CONFIG,
        severity=ErrorSeverity.CRITICAL,
        message="Reference data could not be loaded",
        user_message="The engine is misconfigured.",
        recovery_hint="Check the reference data file path and YAML structure.",
    )

    SYSTEM_INTERNAL_ERROR = ErrorCode(
        code="7002",
        category=ErrorCategory.SYSTEM,
        severity=ErrorSeverity.CRITICAL,
        message="Internal system error",
        user_message="An unexpected error occurred.",
        recovery_hint="Please try again. If the problem persists, contact support.",
    )


# =============================================================================
# Base Exception Classes
# =============================================================================


class MarketIntelError(Exception):
    """
    Base exception for all engine errors.

    Provides structured error information including error codes,
    user-friendly messages, and recovery suggestions.
    """

    def __init__(
        self,
        error_code: ErrorCode,
        detail: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
        debug_info: Optional[Dict[str, Any]] = None,
    ):
        self.error_code = error_code
        self.detail = detail
        self.original_error = original_error
        self.context = context or {}
        self.debug_info = debug_info or {}
        self.timestamp = datetime.now(timezone.utc)

        if original_error:
            self.debug_info["original_traceback"] = traceback.format_exception(
                type(original_error), original_error, original_error.__traceback__
            )

        super().__init__(self.technical_message)

    @property
    def code(self) -> str:
        """Full error code string."""
        return str(self.error_code)

    @property
    def category(self) -> ErrorCategory:
        return self.error_code.category

    @property
    def severity(self) -> ErrorSeverity:
        return self.error_code.severity

    @property
    def user_message(self) -> str:
        """User-friendly error message."""
        msg = self.error_code.user_message
        if self.detail:
            msg = f"{msg} ({self.detail})"
        return msg

    @property
    def technical_message(self) -> str:
        """Technical error message for logging."""
        msg = f"[{self.code}] {self.error_code.message}"
        if self.detail:
            msg = f"{msg}: {self.detail}"
        return msg

    @property
    def recovery_hint(self) -> str:
        return self.error_code.recovery_hint

    def to_dict(self, include_debug: bool = False) -> Dict[str, Any]:
        """
        Convert error to dictionary.

        Args:
            include_debug: Include debug information (for dev mode only)
        """
        result = {
            "code": self.code,
            "category": self.category.value,
            "message": self.user_message,
            "recovery_hint": self.recovery_hint,
            "timestamp": self.timestamp.isoformat(),
        }

        if include_debug:
            result["debug"] = {
                "technical_message": self.technical_message,
                "context": self.context,
                "debug_info": self.debug_info,
            }

        return result

    def log(self) -> None:
        """Log the error with appropriate severity."""
        log_method = getattr(logger, self.severity.name.lower(), logger.error)
        log_method(
            f"{self.technical_message}",
            extra={
                "ctx_error_code": self.code,
                "ctx_context": self.context,
            },
        )


class MissingPrerequisiteError(MarketIntelError):
    """A required snapshot is absent; the dependent analysis yields None."""

    def __init__(
        self,
        error_code: ErrorCode = ErrorCodes.DATA_MISSING_PREREQUISITE,
        **kwargs,
    ):
        super().__init__(error_code, **kwargs)


class ComputationFaultError(MarketIntelError):
    """Unexpected internal exception raised while evaluating rules."""

    def __init__(
        self,
        error_code: ErrorCode = ErrorCodes.ANALYSIS_COMPUTATION_FAULT,
        **kwargs,
    ):
        super().__init__(error_code, **kwargs)


class InvalidArgumentError(MarketIntelError, ValueError):
    """Caller contract violation; the only error surfaced to callers."""

    def __init__(
        self,
        error_code: ErrorCode = ErrorCodes.VALIDATION_INVALID_ARGUMENT,
        **kwargs,
    ):
        super().__init__(error_code, **kwargs)


class ReferenceDataError(MarketIntelError):
    """Reference data file is missing or malformed."""

    def __init__(
        self,
        error_code: ErrorCode = ErrorCodes.CONFIG_REFERENCE_DATA,
        **kwargs,
    ):
        super().__init__(error_code, **kwargs)


# =============================================================================
# Graceful Degradation
# =============================================================================


class GracefulDegradation:
    """
    Runs one analysis and converts any failure into None.

    Missing prerequisites are expected and logged at debug level.
    Everything else is wrapped as a ComputationFaultError carrying the
    classified cause code, and logged.
    """

    def __init__(self, component_name: str):
        self.component_name = component_name
        self.last_error: Optional[MarketIntelError] = None

    async def run(self, func: Callable[..., T], *args, **kwargs) -> Optional[T]:
        """
        Execute an analysis, awaiting it when it is a coroutine function.

        Returns:
            The analysis result, or None when it could not be produced
        """
        self.last_error = None
        try:
            if asyncio.iscoroutinefunction(func):
                return await func(*args, **kwargs)
            return func(*args, **kwargs)

        except MissingPrerequisiteError as e:
            self.last_error = e
            logger.debug(f"{self.component_name} skipped: {e.technical_message}")
            return None

        except Exception as e:
            cause = wrap_exception(e, ErrorCodes.ANALYSIS_COMPUTATION_FAULT)
            fault = ComputationFaultError(
                detail=f"{self.component_name}: {e}",
                original_error=e,
                context={"component": self.component_name, "cause_code": cause.code},
            )
            self.last_error = fault
            logger.error(
                f"Error analyzing {self.component_name}: {e}",
                extra={
                    "ctx_error_code": fault.code,
                    "ctx_cause_code": cause.code,
                    "ctx_component": self.component_name,
                },
                exc_info=True,
            )
            return None


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    exception: Exception,
    default_code: ErrorCode = ErrorCodes.SYSTEM_INTERNAL_ERROR,
) -> MarketIntelError:
    """
    Wrap a generic exception in a MarketIntelError.

    Maps common exception types to appropriate error codes.
    """
    if isinstance(exception, MarketIntelError):
        return exception

    exception_mapping = {
        ValueError: ErrorCodes.VALIDATION_INVALID_ARGUMENT,
        TypeError: ErrorCodes.VALIDATION_INVALID_ARGUMENT,
        KeyError: ErrorCodes.DATA_MISSING_PREREQUISITE,
        FileNotFoundError: ErrorCodes.CONFIG_REFERENCE_DATA,
        ZeroDivisionError: ErrorCodes.ANALYSIS_COMPUTATION_FAULT,
        ArithmeticError: ErrorCodes.ANALYSIS_COMPUTATION_FAULT,
    }

    for exc_type, error_code in exception_mapping.items():
        if isinstance(exception, exc_type):
            return MarketIntelError(
                error_code,
                detail=str(exception),
                original_error=exception,
            )

    return MarketIntelError(
        default_code,
        detail=str(exception),
        original_error=exception,
    )


SYMBOL_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9&.\-]{0,11}$")


def validate_symbol(symbol: str) -> str:
    """
    Validate and normalize an exchange symbol.

    Raises:
        InvalidArgumentError: If symbol is invalid
    """
    if not symbol or not isinstance(symbol, str):
        raise InvalidArgumentError(
            ErrorCodes.VALIDATION_INVALID_SYMBOL,
            detail="Symbol cannot be empty",
        )

    symbol = symbol.strip().upper()

    if not SYMBOL_PATTERN.match(symbol):
        raise InvalidArgumentError(
            ErrorCodes.VALIDATION_INVALID_SYMBOL,
            detail=f"Invalid symbol format: {symbol}",
            context={"symbol": symbol},
        )

    return symbol


def validate_positive(value: float, field_name: str = "price") -> float:
    """
    Require a strictly positive finite number.

    Raises:
        InvalidArgumentError: If value is missing, non-finite or <= 0
    """
    if value is None or isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidArgumentError(
            ErrorCodes.VALIDATION_INVALID_PRICE,
            detail=f"{field_name} must be a number, got {value!r}",
            context={"field": field_name},
        )

    if value != value or value in (float("inf"), float("-inf")) or value <= 0:
        raise InvalidArgumentError(
            ErrorCodes.VALIDATION_INVALID_PRICE,
            detail=f"{field_name} must be positive, got {value}",
            context={"field": field_name, "value": value},
        )

    return float(value)


__all__ = [
    # Enums
    "ErrorCategory",
    "ErrorSeverity",
    # Error Codes
    "ErrorCode",
    "ErrorCodes",
    # Exceptions
    "MarketIntelError",
    "MissingPrerequisiteError",
    "ComputationFaultError",
    "InvalidArgumentError",
    "ReferenceDataError",
    # Degradation
    "GracefulDegradation",
    # Utilities
    "wrap_exception",
    "validate_symbol",
    "validate_positive",
]
