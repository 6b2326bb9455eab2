"""
Error kinds shared by the ledger, relay and aggregator clients.

Clients convert raw failures into a BurnerError carrying an ErrorKind at the
point where the failure happens. Everything above the clients (RPC pool,
claim resolver, swap router) decides what to do by matching on the kind.
"""
import asyncio
import re
from enum import Enum
from typing import Optional

import httpx


class ErrorKind(Enum):
    """Failure classes used for retry and fallback decisions."""
    CURVE_EXHAUSTED = "curve_exhausted"        # bonding curve complete, venue graduated
    PROGRAM_FATAL = "program_fatal"            # deterministic program rejection
    INSUFFICIENT_FUNDS = "insufficient_funds"  # wallet cannot cover the transaction
    NO_ROUTE = "no_route"                      # aggregator has no route for the amount
    RELAY_REJECTED = "relay_rejected"          # relay refused the request body (HTTP 400)
    TRANSIENT = "transient"                    # endpoint/network trouble, worth retrying

    @property
    def is_terminal(self) -> bool:
        """Terminal kinds are ledger-state rejections; retrying elsewhere cannot help."""
        return self in _TERMINAL_KINDS


_TERMINAL_KINDS = frozenset({
    ErrorKind.CURVE_EXHAUSTED,
    ErrorKind.PROGRAM_FATAL,
    ErrorKind.INSUFFICIENT_FUNDS,
})


class BurnerError(Exception):
    """Base error carrying a classified ErrorKind."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.TRANSIENT):
        super().__init__(message)
        self.kind = kind

    @property
    def is_terminal(self) -> bool:
        return self.kind.is_terminal


class LedgerError(BurnerError):
    """Solana RPC failure."""


class RelayError(BurnerError):
    """PumpPortal trade/claim relay failure."""


class AggregatorError(BurnerError):
    """Jupiter quote/swap failure."""


# pump.fun BondingCurveComplete is custom error 6005 (0x1775).
CURVE_COMPLETE_CODE = 0x1775
# SPL token InsufficientFunds / system transfer shortfall.
INSUFFICIENT_FUNDS_CODE = 0x1

_HEX_CUSTOM_ERROR = re.compile(r"custom program error:\s*0x([0-9a-fA-F]+)")
_DEC_CUSTOM_ERROR = re.compile(r"Custom\((\d+)\)")

_CURVE_MARKERS = ("BondingCurveComplete",)
_INSUFFICIENT_MARKERS = (
    "insufficient lamports",
    "insufficient funds",
    "Transaction results in an account",
)


def _custom_error_code(message: str) -> Optional[int]:
    match = _HEX_CUSTOM_ERROR.search(message)
    if match:
        return int(match.group(1), 16)
    match = _DEC_CUSTOM_ERROR.search(message)
    if match:
        return int(match.group(1))
    return None


def classify_message(message: str) -> ErrorKind:
    """
    Classify raw ledger or relay error text.

    Args:
        message: Error text as returned by RPC node, program logs or relay

    Returns:
        ErrorKind for the failure
    """
    text = message or ""
    if any(marker in text for marker in _CURVE_MARKERS):
        return ErrorKind.CURVE_EXHAUSTED
    code = _custom_error_code(text)
    if code == CURVE_COMPLETE_CODE:
        return ErrorKind.CURVE_EXHAUSTED
    lowered = text.lower()
    if code == INSUFFICIENT_FUNDS_CODE or any(m.lower() in lowered for m in _INSUFFICIENT_MARKERS):
        return ErrorKind.INSUFFICIENT_FUNDS
    if code is not None:
        return ErrorKind.PROGRAM_FATAL
    return ErrorKind.TRANSIENT


def to_burner_error(error: BaseException, error_cls=LedgerError) -> BurnerError:
    """
    Wrap an arbitrary exception into a classified BurnerError.

    Errors that are already classified pass through unchanged. Timeouts and
    httpx transport errors are always transient.
    """
    if isinstance(error, BurnerError):
        return error
    if isinstance(error, (asyncio.TimeoutError, httpx.TransportError)):
        message = str(error) or type(error).__name__
        return error_cls(message, ErrorKind.TRANSIENT)
    message = str(error) or type(error).__name__
    return error_cls(message, classify_message(message))
