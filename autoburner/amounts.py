"""
Exact SOL <-> lamport conversion.

All balances inside the burner are kept as integer lamports. Decimal strings
only appear at the edges (configuration, relay request bodies, log lines).
"""
from decimal import Decimal, ROUND_DOWN, InvalidOperation
from typing import Optional, Union

LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9

AmountLike = Union[str, int, float, Decimal]


def sol_to_lamports(value: AmountLike) -> int:
    """
    Convert a SOL amount into lamports without floating point drift.

    Floats are converted through their shortest repr, so 0.0001 becomes
    exactly 100000 lamports. Digits past the 9th decimal are truncated.

    Args:
        value: SOL amount as str, int, float or Decimal

    Returns:
        Amount in lamports

    Raises:
        ValueError: If value is not a decimal number
    """
    if isinstance(value, Decimal):
        amount = value
    else:
        text = str(value).strip()
        if not text:
            return 0
        try:
            amount = Decimal(text)
        except InvalidOperation as e:
            raise ValueError(f"Invalid SOL amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Invalid SOL amount: {value!r}")
    lamports = (amount * LAMPORTS_PER_SOL).to_integral_value(rounding=ROUND_DOWN)
    return int(lamports)


def lamports_to_sol(lamports: int) -> str:
    """
    Render lamports as the shortest exact SOL decimal string.

    Examples: 1500000000 -> "1.5", 1 -> "0.000000001", -200000000 -> "-0.2"
    """
    lamports = int(lamports)
    sign = "-" if lamports < 0 else ""
    whole, frac = divmod(abs(lamports), LAMPORTS_PER_SOL)
    frac_str = str(frac).rjust(SOL_DECIMALS, "0").rstrip("0")
    if frac_str:
        return f"{sign}{whole}.{frac_str}"
    return f"{sign}{whole}"


def raw_to_ui(amount: int, decimals: int) -> Decimal:
    """Convert a raw token amount into UI units for the mint's decimals."""
    return Decimal(int(amount)).scaleb(-int(decimals))


def format_sol(value: Optional[float]) -> str:
    if value is None or value != value:
        return "n/a"
    return f"{value:.6f} SOL"


def format_usd(value: Optional[float]) -> str:
    if value is None or value != value:
        return "n/a"
    return f"${value:.6f}"
