"""
Tests for errors.py - failure classification.
"""
import asyncio
import pytest
import httpx

from autoburner.errors import (
    AggregatorError,
    ErrorKind,
    LedgerError,
    RelayError,
    classify_message,
    to_burner_error,
)


class TestClassifyMessage:
    """Tests for classify_message."""

    @pytest.mark.parametrize("text", [
        "Transaction simulation failed: Error processing Instruction 2: custom program error: 0x1775",
        "Program log: AnchorError ... Error Code: BondingCurveComplete.",
        "InstructionError(2, Custom(6005))",
    ])
    def test_curve_exhausted(self, text):
        assert classify_message(text) is ErrorKind.CURVE_EXHAUSTED

    @pytest.mark.parametrize("text", [
        "custom program error: 0x1",
        "InstructionError(0, Custom(1))",
        "Transfer: insufficient lamports 100, need 200",
        "Attempt to debit an account but found no record of a prior credit. insufficient funds",
        "Transaction results in an account (1) with insufficient funds for rent",
    ])
    def test_insufficient_funds(self, text):
        assert classify_message(text) is ErrorKind.INSUFFICIENT_FUNDS

    def test_other_custom_error_is_program_fatal(self):
        assert classify_message("custom program error: 0x1771") is ErrorKind.PROGRAM_FATAL
        assert classify_message("InstructionError(1, Custom(6001))") is ErrorKind.PROGRAM_FATAL

    def test_unknown_text_is_transient(self):
        assert classify_message("503 Service Unavailable") is ErrorKind.TRANSIENT
        assert classify_message("") is ErrorKind.TRANSIENT

    def test_terminal_kinds(self):
        assert ErrorKind.CURVE_EXHAUSTED.is_terminal
        assert ErrorKind.PROGRAM_FATAL.is_terminal
        assert ErrorKind.INSUFFICIENT_FUNDS.is_terminal
        assert not ErrorKind.TRANSIENT.is_terminal
        assert not ErrorKind.NO_ROUTE.is_terminal
        assert not ErrorKind.RELAY_REJECTED.is_terminal


class TestToBurnerError:
    """Tests for to_burner_error."""

    def test_passes_classified_errors_through(self):
        error = RelayError("bad body", ErrorKind.RELAY_REJECTED)
        assert to_burner_error(error) is error

    def test_timeout_is_transient(self):
        error = to_burner_error(asyncio.TimeoutError())
        assert isinstance(error, LedgerError)
        assert error.kind is ErrorKind.TRANSIENT
        assert str(error) == "TimeoutError"

    def test_transport_error_is_transient(self):
        error = to_burner_error(httpx.ConnectError("custom program error: 0x1775"), AggregatorError)
        assert isinstance(error, AggregatorError)
        assert error.kind is ErrorKind.TRANSIENT

    def test_plain_exception_is_classified(self):
        error = to_burner_error(RuntimeError("custom program error: 0x1775"))
        assert error.kind is ErrorKind.CURVE_EXHAUSTED
        assert error.is_terminal
