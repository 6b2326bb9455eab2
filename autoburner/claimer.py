"""
Creator-fee claim resolution.

A claim is tried as an ordered chain of attempts (venue x priority fee x body
shape). The first transaction whose logs do not report "no fee to collect"
wins; exhausting the chain is a non-fatal "no claim this cycle".
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from solders.hash import Hash
from solders.message import Message, MessageV0
from solders.transaction import VersionedTransaction

from .fallback import Verdict, run_attempts
from .pumpportal_client import PumpPortalClient
from .solana_client import SolanaClient
from .state import CycleState, ReplayCache
from .utils import get_terminal_colors

colors = get_terminal_colors()
logger = logging.getLogger(__name__)

CLAIM_ACTION = "collectCreatorFee"
CLAIM_METHODS = ("auto", "replay", "lightning", "local")
MULTI_VENUES = ["pump", "pump-amm", "auto", "raydium-cpmm", "raydium"]
FALLBACK_PRIORITY_FEES = [0.00001, 0.00005]
NO_REWARD_MARKERS = ("No creator fee to collect", "No coin creator fee to collect")


@dataclass
class ClaimConfig:
    """Claim configuration.

    method: auto | replay | lightning | local
    pool: trading pool, used when no claim pool is given
    claim_pool: explicit claim venue, "multi" to try every known venue
    reference_signature: claim transaction to replay
    priority_fee: priority fee in SOL for relay bodies
    """
    method: str = "auto"
    pool: str = "pump"
    claim_pool: Optional[str] = None
    reference_signature: str = ""
    priority_fee: float = 0.0001

    def __post_init__(self):
        self.method = (self.method or "auto").lower()
        if self.method not in CLAIM_METHODS:
            raise ValueError(f"Unknown claim method: {self.method} (expected one of {', '.join(CLAIM_METHODS)})")


@dataclass
class ClaimAttempt:
    """One claim attempt."""
    method: str
    venue: str
    priority_fee: float
    body: Dict[str, Any] = field(default_factory=dict)
    final_for_venue: bool = False

    def label(self) -> str:
        return f"{self.method}/{self.venue}/fee={self.priority_fee}"


def with_blockhash(message, blockhash: Hash):
    """Copy a legacy or v0 message with a new recent blockhash."""
    if isinstance(message, MessageV0):
        return MessageV0(
            message.header,
            message.account_keys,
            blockhash,
            message.instructions,
            message.address_table_lookups,
        )
    header = message.header
    return Message.new_with_compiled_instructions(
        header.num_required_signatures,
        header.num_readonly_signed_accounts,
        header.num_readonly_unsigned_accounts,
        message.account_keys,
        blockhash,
        message.instructions,
    )


class ClaimResolver:
    """Resolves claim transport and venues and runs the claim chain."""

    def __init__(
        self,
        solana: SolanaClient,
        pumpportal: PumpPortalClient,
        mint: str,
        config: ClaimConfig
    ):
        self.solana = solana
        self.pumpportal = pumpportal
        self.mint = mint
        self.config = config

    def resolve_method(self) -> str:
        """
        Pick the claim transport.

        Explicit configuration wins; auto prefers replay when a reference
        signature exists, then lightning when an API key exists, then local.
        """
        if self.config.method != "auto":
            return self.config.method
        if self.config.reference_signature:
            return "replay"
        if self.pumpportal.api_key:
            return "lightning"
        return "local"

    def resolve_venues(self, method: str) -> List[str]:
        claim_pool = self.config.claim_pool
        if method == "replay":
            replay_pool = self.config.pool if claim_pool == "multi" else claim_pool
            return [v for v in [replay_pool or self.config.pool] if v]
        if claim_pool in ("multi", "pump"):
            return list(MULTI_VENUES)
        return [v for v in [claim_pool or self.config.pool] if v]

    def priority_fees(self) -> List[float]:
        fees = [self.config.priority_fee]
        if self.config.priority_fee <= 0:
            fees.extend(FALLBACK_PRIORITY_FEES)
        return fees

    def claim_bodies(self, venue: str, priority_fee: float) -> List[Dict[str, Any]]:
        """Body shapes tried per fee; the relay has accepted both forms over time."""
        base = {
            "publicKey": str(self.solana.pubkey),
            "action": CLAIM_ACTION,
            "priorityFee": priority_fee,
        }
        if venue == "pump":
            return [base, {**base, "pool": venue}]
        return [{**base, "pool": venue}, {**base, "pool": venue, "mint": self.mint}]

    def build_attempts(self, method: str) -> List[ClaimAttempt]:
        """Ordered claim attempts for a method."""
        attempts: List[ClaimAttempt] = []
        for venue in self.resolve_venues(method):
            if method == "replay":
                # The replayed transaction carries its own fee and accounts.
                attempts.append(ClaimAttempt(method, venue, self.config.priority_fee, final_for_venue=True))
                continue
            venue_attempts = [
                ClaimAttempt(method, venue, fee, body)
                for fee in self.priority_fees()
                for body in self.claim_bodies(venue, fee)
            ]
            venue_attempts[-1].final_for_venue = True
            attempts.extend(venue_attempts)
        return attempts

    async def claim(self, state: CycleState) -> Optional[str]:
        """
        Run the claim chain.

        Args:
            state: Cycle state (replay cache is read and filled here)

        Returns:
            Signature of the accepted claim, or None if every attempt failed
        """
        method = self.resolve_method()
        attempts = self.build_attempts(method)

        def on_failure(attempt: ClaimAttempt, error: Exception) -> Verdict:
            if attempt.final_for_venue:
                logger.warning(f"Claim attempt failed (pool={attempt.venue}): {error}")
            else:
                logger.debug(f"Claim attempt {attempt.label()} failed: {error}")
            return Verdict.CONTINUE

        async def execute(attempt: ClaimAttempt) -> Optional[str]:
            return await self._execute(attempt, state)

        async def accept(attempt: ClaimAttempt, signature: str) -> bool:
            if await self.had_no_rewards(signature):
                logger.info(f"Claim {attempt.label()} reported no fee to collect, trying next")
                return False
            return True

        outcome = await run_attempts(attempts, execute, on_failure, accept)
        if outcome.result is None:
            logger.error(f"{colors['RED']}Claim failed on all pools.{colors['RESET']}")
            return None

        winner = outcome.result
        logger.info(
            f"{colors['GREEN']}Claimed creator fees{colors['RESET']} "
            f"(method={method}, attempts={outcome.attempts_made}). "
            f"Claim Tx: {colors['CYAN']}{winner}{colors['RESET']}"
        )
        return winner

    async def _execute(self, attempt: ClaimAttempt, state: CycleState) -> Optional[str]:
        if attempt.method == "replay":
            blockhash = await self.solana.get_latest_blockhash()
            tx = await self.build_replay_transaction(state, blockhash)
            return await self.solana.send_transaction(tx)
        if attempt.method == "lightning":
            return await self.pumpportal.trade_lightning(attempt.body)
        raw = await self.pumpportal.trade_local(attempt.body)
        return await self.solana.send_transaction(self.solana.sign_versioned(raw))

    async def build_replay_transaction(self, state: CycleState, blockhash: Hash) -> VersionedTransaction:
        """
        Rebuild the reference claim transaction with a fresh blockhash.

        The raw reference transaction is fetched once and kept in the cycle
        state's replay cache.

        Raises:
            ValueError: If the reference transaction cannot be found
        """
        signature = self.config.reference_signature
        cache = state.replay_cache
        if cache is None or cache.signature != signature:
            raw = await self.solana.get_transaction_raw(signature)
            if not raw:
                raise ValueError("Replay claim: transaction not found")
            cache = ReplayCache(signature=signature, raw_tx=raw)
            state.replay_cache = cache
        original = VersionedTransaction.from_bytes(cache.raw_tx)
        message = with_blockhash(original.message, blockhash)
        return VersionedTransaction(message, [self.solana.wallet])

    async def had_no_rewards(self, signature: str) -> bool:
        """True if the claim transaction's logs say there was nothing to collect."""
        try:
            logs = await self.solana.get_transaction_logs(signature)
        except Exception as e:
            logger.debug(f"Could not fetch claim logs for {signature}: {e}")
            return False
        return any(marker in line for line in logs for marker in NO_REWARD_MARKERS)
