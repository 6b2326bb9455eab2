"""
Price consensus guard.

Blocks a buy unless independently sourced prices agree within tolerance.
"""
import logging
from dataclasses import dataclass
from statistics import median
from typing import List, Tuple

from .price_oracle import PriceSignal

logger = logging.getLogger(__name__)

GUARD_MODES = ("off", "on", "auto")


@dataclass
class PriceGuardConfig:
    """Price guard configuration.

    mode:
        off  - always approve
        on   - require at least two agreeing sources
        auto - approve when there is nothing to contradict (0 or 1 source)
    """
    mode: str = "auto"
    max_deviation_pct: float = 15.0

    def __post_init__(self):
        self.mode = (self.mode or "auto").lower()
        if self.mode not in GUARD_MODES:
            raise ValueError(f"Unknown price guard mode: {self.mode} (expected one of {', '.join(GUARD_MODES)})")
        if self.max_deviation_pct < 0:
            raise ValueError("max_deviation_pct must be >= 0")


class PriceGuard:
    """Evaluates collected price signals against the median-deviation policy."""

    def __init__(self, config: PriceGuardConfig):
        self.config = config

    def evaluate(self, signals: List[PriceSignal]) -> Tuple[bool, str]:
        """
        Decide whether a buy may proceed.

        All signals, including the SOL/USD reference, form one pool for the
        median and deviation check.

        Args:
            signals: Signals collected this cycle

        Returns:
            (ok: bool, reason: str)
        """
        mode = self.config.mode
        if mode == "off":
            return True, "guard off"
        if not signals:
            if mode == "on":
                return False, "no price sources"
            return True, "no price sources"
        if len(signals) == 1:
            if mode == "on":
                return False, "only one price source"
            return True, "single price source"

        values = [s.price for s in signals]
        med = median(values)
        if not med:
            return False, "median failed"

        max_dev = self.config.max_deviation_pct
        outliers = [s for s in signals if abs((s.price - med) / med) * 100 > max_dev]
        if outliers:
            logger.debug(
                "Price outliers: " + ", ".join(f"{s.source}={s.price:.8f}" for s in outliers)
                + f" (median {med:.8f})"
            )
            return False, f"price deviation > {max_dev}%"

        return True, "price consensus"
