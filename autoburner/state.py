"""
Cross-cycle state owned by the cycle orchestrator.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass
class ReplayCache:
    """Raw bytes of the reference claim transaction, reused across cycles."""
    signature: str
    raw_tx: bytes


@dataclass
class CycleState:
    """
    State carried from one cycle to the next.

    venue_graduated is one-way: once the bonding curve is known to be
    exhausted, buys go through the aggregator for the rest of the process.
    """
    venue_graduated: bool = False
    claim_cooldown: int = 0
    replay_cache: Optional[ReplayCache] = None
    cycle_count: int = 0

    def mark_graduated(self) -> None:
        self.venue_graduated = True

    def record_claim(self, claimed_lamports: int, cooldown_cycles: int) -> None:
        """Reset the cooldown after a profitable claim, re-arm it otherwise."""
        if claimed_lamports > 0:
            self.claim_cooldown = 0
        else:
            self.claim_cooldown = max(0, cooldown_cycles)
