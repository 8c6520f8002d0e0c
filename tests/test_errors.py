"""
Tests for the error hierarchy, graceful degradation and validators.
"""

import logging

import pytest

from marketintel.core.errors import (
    ComputationFaultError,
    ErrorCategory,
    ErrorCodes,
    GracefulDegradation,
    InvalidArgumentError,
    MarketIntelError,
    MissingPrerequisiteError,
    validate_positive,
    validate_symbol,
    wrap_exception,
)


class TestMarketIntelError:
    """Tests for structured errors."""

    def test_messages(self):
        error = InvalidArgumentError(detail="percentile out of range", context={"field": "percentile"})
        assert error.category == ErrorCategory.VALIDATION
        assert "percentile out of range" in error.user_message
        assert error.technical_message.startswith(f"[{error.code}]")
        assert error.context == {"field": "percentile"}

    def test_to_dict(self):
        error = MissingPrerequisiteError(detail="regime requires market_overview")
        data = error.to_dict(include_debug=True)
        assert data["category"] == "DATA"
        assert "technical_message" in data["debug"]
        assert "debug" not in error.to_dict()

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError):
            raise InvalidArgumentError()

    def test_original_traceback_recorded(self):
        try:
            raise KeyError("foreign")
        except KeyError as e:
            error = ComputationFaultError(original_error=e)
        assert "original_traceback" in error.debug_info


class TestWrapException:
    """Tests for mapping plain exceptions to engine errors."""

    def test_passthrough(self):
        error = InvalidArgumentError()
        assert wrap_exception(error) is error

    def test_mapping(self):
        assert wrap_exception(ZeroDivisionError()).error_code == ErrorCodes.ANALYSIS_COMPUTATION_FAULT
        assert wrap_exception(KeyError("x")).error_code == ErrorCodes.DATA_MISSING_PREREQUISITE
        assert wrap_exception(ValueError()).error_code == ErrorCodes.VALIDATION_INVALID_ARGUMENT

    def test_default(self):
        wrapped = wrap_exception(RuntimeError("odd"))
        assert isinstance(wrapped, MarketIntelError)
        assert wrapped.error_code == ErrorCodes.SYSTEM_INTERNAL_ERROR


class TestGracefulDegradation:
    """Tests for converting analysis failures into None."""

    @pytest.mark.asyncio
    async def test_success(self):
        degradation = GracefulDegradation("regime")
        assert await degradation.run(lambda x: x + 1, 1) == 2
        assert degradation.last_error is None

    @pytest.mark.asyncio
    async def test_coroutine(self):
        async def analysis():
            return "ok"

        assert await GracefulDegradation("regime").run(analysis) == "ok"

    @pytest.mark.asyncio
    async def test_missing_prerequisite(self, caplog):
        def analysis():
            raise MissingPrerequisiteError(detail="no investor data")

        degradation = GracefulDegradation("smart_money")
        with caplog.at_level(logging.DEBUG, logger="marketintel.core.errors"):
            assert await degradation.run(analysis) is None

        assert isinstance(degradation.last_error, MissingPrerequisiteError)
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]

    @pytest.mark.asyncio
    async def test_fault(self, caplog):
        def analysis():
            return {}["missing"]

        degradation = GracefulDegradation("sector_rotation")
        with caplog.at_level(logging.ERROR, logger="marketintel.core.errors"):
            assert await degradation.run(analysis) is None

        assert isinstance(degradation.last_error, ComputationFaultError)
        assert isinstance(degradation.last_error.original_error, KeyError)
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    @pytest.mark.asyncio
    async def test_fault_records_cause_code(self):
        def analysis():
            return {}["missing"]

        degradation = GracefulDegradation("sector_rotation")
        await degradation.run(analysis)

        context = degradation.last_error.context
        assert context["component"] == "sector_rotation"
        assert context["cause_code"] == str(ErrorCodes.DATA_MISSING_PREREQUISITE)

    @pytest.mark.asyncio
    async def test_unclassified_fault_cause_code(self):
        def analysis():
            raise RuntimeError("bad state")

        degradation = GracefulDegradation("market_regime")
        await degradation.run(analysis)

        assert degradation.last_error.context["cause_code"] == str(ErrorCodes.ANALYSIS_COMPUTATION_FAULT)


class TestValidators:
    """Tests for input validators."""

    def test_symbol_normalized(self):
        assert validate_symbol(" kbank ") == "KBANK"
        assert validate_symbol("ptt-r") == "PTT-R"

    @pytest.mark.parametrize("symbol", ["", "   ", "BAD SYMBOL", "TOOLONGSYMBOLNAME"])
    def test_symbol_rejected(self, symbol):
        with pytest.raises(InvalidArgumentError):
            validate_symbol(symbol)

    def test_positive(self):
        assert validate_positive(12.5) == 12.5

    @pytest.mark.parametrize("value", [0, -3.2, float("nan"), float("inf"), None, True, "10"])
    def test_positive_rejected(self, value):
        with pytest.raises(InvalidArgumentError) as exc:
            validate_positive(value)
        assert exc.value.error_code == ErrorCodes.VALIDATION_INVALID_PRICE
