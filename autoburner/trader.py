"""
Buy execution: bonding-curve venue (PumpPortal) or aggregator (Jupiter).

The buy walks a spend-reduction ladder. Curve exhaustion flips the cycle
state's graduation flag and moves the rest of the ladder to Jupiter.
"""
import base64
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .amounts import LAMPORTS_PER_SOL, format_sol, format_usd, lamports_to_sol, sol_to_lamports
from .errors import AggregatorError, ErrorKind, to_burner_error
from .fallback import Verdict, run_attempts
from .jupiter_client import SOL_MINT, JupiterClient
from .pumpportal_client import PumpPortalClient
from .solana_client import SolanaClient
from .state import CycleState
from .utils import get_terminal_colors

colors = get_terminal_colors()
logger = logging.getLogger(__name__)

BUY_ROUTES = ("auto", "jupiter", "pump")

# Lamports removed from the spend on each retry, smallest first
BACKOFF_STEPS_LAMPORTS = [
    0,
    200_000,    # 0.0002 SOL
    500_000,    # 0.0005 SOL
    1_000_000,  # 0.001 SOL
    2_000_000,  # 0.002 SOL
]


@dataclass
class TradeConfig:
    """Buy configuration.

    buy_route: auto (curve until graduated, then Jupiter) | jupiter | pump
    pool: PumpPortal pool for curve buys
    slippage_pct: slippage in percent
    priority_fee: priority fee in SOL
    price_quote_lamports: quote size used for the venue check
    """
    buy_route: str = "auto"
    pool: str = "pump"
    slippage_pct: float = 1.0
    priority_fee: float = 0.0001
    price_quote_lamports: int = 100_000_000

    def __post_init__(self):
        self.buy_route = (self.buy_route or "auto").lower()
        if self.buy_route not in BUY_ROUTES:
            raise ValueError(f"Unknown buy route: {self.buy_route} (expected one of {', '.join(BUY_ROUTES)})")

    @property
    def slippage_bps(self) -> int:
        return max(1, round(self.slippage_pct * 100))

    @property
    def priority_fee_lamports(self) -> int:
        return sol_to_lamports(self.priority_fee)


@dataclass
class BuyAttempt:
    step: int
    amount: int

    def label(self) -> str:
        return f"step {self.step} ({lamports_to_sol(self.amount)} SOL)"


def ladder_amounts(spend: int, steps: Sequence[int] = BACKOFF_STEPS_LAMPORTS) -> List[BuyAttempt]:
    """
    Spend amounts for each ladder step, skipping steps that reach zero.

    Example: spend=1_000_000 -> 1_000_000, 800_000, 500_000
    """
    attempts = []
    for i, reduce_by in enumerate(steps):
        adjusted = spend - reduce_by
        if adjusted <= 0:
            continue
        attempts.append(BuyAttempt(step=i, amount=adjusted))
    return attempts


class SwapRouter:
    """Routes SOL -> token buys to the bonding curve or Jupiter."""

    def __init__(
        self,
        solana: SolanaClient,
        jupiter: JupiterClient,
        pumpportal: PumpPortalClient,
        mint: str,
        config: TradeConfig
    ):
        self.solana = solana
        self.jupiter = jupiter
        self.pumpportal = pumpportal
        self.mint = mint
        self.config = config

    def use_aggregator(self, state: CycleState) -> bool:
        route = self.config.buy_route
        return route == "jupiter" or (route == "auto" and state.venue_graduated)

    async def has_route(self) -> bool:
        """Venue check: can Jupiter route SOL -> token right now?"""
        return await self.jupiter.has_route(self.mint, self.config.price_quote_lamports)

    async def buy_via_jupiter(self, amount: int) -> str:
        """
        Quote, build, sign and submit a Jupiter swap.

        Raises:
            AggregatorError: NO_ROUTE if the quote has no route
        """
        quote = await self.jupiter.get_quote(SOL_MINT, self.mint, amount, self.config.slippage_bps)
        if not quote.has_route:
            raise AggregatorError("Jupiter quote returned no route", ErrorKind.NO_ROUTE)
        swap_tx = await self.jupiter.get_swap_transaction(
            quote,
            str(self.solana.pubkey),
            priority_fee_lamports=self.config.priority_fee_lamports
        )
        tx = self.solana.sign_versioned(base64.b64decode(swap_tx))
        return await self.solana.send_transaction(tx)

    async def buy_via_pump(self, amount: int) -> str:
        """Buy on the bonding curve through PumpPortal trade-local."""
        body = {
            "publicKey": str(self.solana.pubkey),
            "action": "buy",
            "mint": self.mint,
            "denominatedInSol": "true",
            "amount": lamports_to_sol(amount),
            "slippage": self.config.slippage_pct,
            "priorityFee": self.config.priority_fee,
            "pool": self.config.pool,
        }
        raw = await self.pumpportal.trade_local(body)
        return await self.solana.send_transaction(self.solana.sign_versioned(raw))

    async def buy(self, spend: int, state: CycleState, sol_usd: Optional[float] = None) -> Optional[str]:
        """
        Buy tokens for up to `spend` lamports, walking the backoff ladder.

        Args:
            spend: Lamports available for the buy
            state: Cycle state (graduation flag may be set here)
            sol_usd: SOL price for log lines

        Returns:
            Signature of the successful buy, or None
        """
        route = self.config.buy_route
        warned = False

        def warn_once(message: str):
            nonlocal warned
            if not warned:
                logger.warning(message)
                warned = True

        def on_failure(attempt: BuyAttempt, error: Exception) -> Verdict:
            kind = to_burner_error(error).kind
            if kind is ErrorKind.CURVE_EXHAUSTED:
                state.mark_graduated()
                if route == "pump":
                    warn_once("Bonding curve complete. Pump buy disabled by config.")
                    return Verdict.ABORT
                warn_once("Bonding curve complete. Switching to Jupiter buy.")
                return Verdict.CONTINUE
            if kind is ErrorKind.RELAY_REJECTED and route != "pump":
                state.mark_graduated()
                warn_once("Pump buy rejected. Switching to Jupiter buy.")
                return Verdict.CONTINUE
            if kind is ErrorKind.NO_ROUTE:
                logger.warning(f"No Jupiter route for this amount ({error}). Skipping buy this cycle.")
                return Verdict.ABORT
            if kind is ErrorKind.INSUFFICIENT_FUNDS:
                logger.warning("Buy failed (insufficient funds). Skipping buy this cycle.")
                return Verdict.ABORT
            logger.error(f"{colors['RED']}Buy failed: {error}{colors['RESET']}")
            return Verdict.ABORT

        async def execute(attempt: BuyAttempt) -> str:
            venue = "Jupiter" if self.use_aggregator(state) else "Pump"
            logger.debug(f"Buy {attempt.label()} via {venue}")
            if venue == "Jupiter":
                sig = await self.buy_via_jupiter(attempt.amount)
            else:
                sig = await self.buy_via_pump(attempt.amount)
            buy_sol = attempt.amount / LAMPORTS_PER_SOL
            buy_usd = buy_sol * sol_usd if sol_usd is not None else None
            logger.info(
                f"{colors['GREEN']}Bought {format_sol(buy_sol)} ({format_usd(buy_usd)}) via {venue}.{colors['RESET']} "
                f"{venue} Tx: {colors['CYAN']}{sig}{colors['RESET']}"
            )
            return sig

        outcome = await run_attempts(ladder_amounts(spend), execute, on_failure)
        if outcome.result is None:
            logger.info("Buy did not succeed after retries.")
        return outcome.result
