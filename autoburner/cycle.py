"""
Cycle orchestrator: claim -> treasury skim -> burn -> buy -> burn.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from .amounts import LAMPORTS_PER_SOL, format_sol, format_usd, lamports_to_sol, raw_to_ui
from .burner import BurnExecutor, BurnResult, Pricing
from .claimer import ClaimResolver
from .config import BurnerConfig
from .price_guard import PriceGuard
from .price_oracle import PriceOracle, PriceSignal, sol_usd, token_usd
from .solana_client import SolanaClient
from .state import CycleState
from .status import StatusReporter
from .token_accounts import MintInfo, TokenAccountManager
from .trader import SwapRouter
from .utils import get_terminal_colors

colors = get_terminal_colors()
logger = logging.getLogger(__name__)


class CycleOrchestrator:
    """
    Runs the claim/buy/burn loop for one mint.

    Each step that talks to the network is isolated: a failing step is
    logged and the cycle moves on. run_cycle() never raises.
    """

    def __init__(
        self,
        config: BurnerConfig,
        solana: SolanaClient,
        claimer: ClaimResolver,
        router: SwapRouter,
        accounts: TokenAccountManager,
        burner: BurnExecutor,
        oracle: PriceOracle,
        guard: PriceGuard,
        status: Optional[StatusReporter] = None,
        state: Optional[CycleState] = None
    ):
        self.config = config
        self.solana = solana
        self.claimer = claimer
        self.router = router
        self.accounts = accounts
        self.burner = burner
        self.oracle = oracle
        self.guard = guard
        self.status = status or StatusReporter(str(solana.pubkey), str(accounts.mint))
        self.state = state or CycleState()

    async def run_forever(self, max_cycles: Optional[int] = None):
        """
        Run a cycle, sleep the configured interval, repeat.

        Args:
            max_cycles: Stop after this many cycles (None = run until cancelled)
        """
        interval = self.config.interval_seconds
        ran = 0
        while True:
            await self.run_cycle(self.state)
            ran += 1
            if max_cycles is not None and ran >= max_cycles:
                return
            next_at = datetime.now() + timedelta(seconds=interval)
            logger.info(
                f"CYCLE #{self.state.cycle_count} done. Next cycle in {round(interval)}s "
                f"at {next_at.strftime('%H:%M:%S')}."
            )
            self.status.update(next=next_at.strftime('%H:%M:%S'))
            await asyncio.sleep(interval)

    async def run_cycle(self, state: CycleState) -> CycleState:
        """Run one full cycle. Errors are logged, never raised."""
        state.cycle_count += 1
        try:
            await self._run(state, state.cycle_count)
        except Exception as e:
            logger.error(f"{colors['RED']}Cycle failed: {e}{colors['RESET']}")
        return state

    async def _run(self, state: CycleState, cycle_id: int):
        cfg = self.config

        balance_before = await self.solana.get_balance()
        logger.info(f"CYCLE #{cycle_id} PRE-FLIGHT CHECK COMPLETE.")
        logger.info(f"SOL before claim: {lamports_to_sol(balance_before)}")
        logger.info(
            f"Buy route: {cfg.trade.buy_route}{' (graduated)' if state.venue_graduated else ''}"
        )
        self.status.update(sol=lamports_to_sol(balance_before), last_action="Cycle start")

        attempted = await self._claim_step(state, balance_before)

        balance_after = await self.solana.get_balance()
        claimed = balance_after - balance_before
        logger.info(f"SOL after claim: {lamports_to_sol(balance_after)} (claimed {lamports_to_sol(claimed)})")
        self.status.update(sol=lamports_to_sol(balance_after), claimed=lamports_to_sol(claimed))

        balance_after -= await self._skim_treasury(claimed)
        if attempted:
            state.record_claim(claimed, cfg.claim_cooldown_cycles)

        await self._burn("pre-buy")

        mint_info, ready, balance_after = await self._prepare_account(balance_after)
        signals = await self._collect_prices(mint_info)
        pricing = Pricing(token_usd=token_usd(signals), sol_usd=sol_usd(signals))
        self._report_prices(cycle_id, claimed, mint_info, pricing)

        if cfg.trade.buy_route == "auto" and not state.venue_graduated:
            await self._check_venue(state)

        ok, reason = self.guard.evaluate(signals)
        if not ok:
            logger.warning(f"Price guard blocked buy: {reason}")
        elif not ready:
            logger.warning("Token account not ready (rent/fees). Skipping buy this cycle.")
        else:
            await self._buy_step(state, cycle_id, balance_after, pricing)

        result = await self._burn("post-buy", pricing)
        if result is not None:
            self._report_burn(cycle_id, result, pricing)

    async def _claim_step(self, state: CycleState, balance: int) -> bool:
        """Returns True when a claim was attempted this cycle."""
        cfg = self.config
        if balance < cfg.claim_min_lamports:
            logger.warning(
                f"Skipping claim: balance {lamports_to_sol(balance)} below claim minimum "
                f"{lamports_to_sol(cfg.claim_min_lamports)} SOL."
            )
            return False
        if state.claim_cooldown > 0:
            logger.warning(f"Skipping claim: cooldown {state.claim_cooldown} cycles remaining.")
            state.claim_cooldown -= 1
            return False
        try:
            signature = await self.claimer.claim(state)
        except Exception as e:
            logger.error(f"{colors['RED']}Claim failed: {e}{colors['RESET']}")
            return True
        if signature:
            self.status.update(last_action="Claimed")
        return True

    async def _skim_treasury(self, claimed: int) -> int:
        """Send the treasury share of a positive claim. Returns lamports sent."""
        cfg = self.config
        if cfg.treasury_address is None:
            return 0
        share = treasury_share(claimed, cfg.treasury_bps)
        if share <= 0:
            return 0
        try:
            sig = await self.solana.transfer_lamports(cfg.treasury_address, share)
        except Exception as e:
            logger.warning(f"Treasury transfer failed: {e}")
            return 0
        logger.info(f"Treasury share {lamports_to_sol(share)} SOL sent. Tx: {colors['CYAN']}{sig}{colors['RESET']}")
        return share

    async def _burn(self, label: str, pricing: Optional[Pricing] = None) -> Optional[BurnResult]:
        try:
            return await self.burner.burn_all(pricing)
        except Exception as e:
            logger.error(f"{colors['RED']}Burn ({label}) failed: {e}{colors['RESET']}")
            return None

    async def _prepare_account(self, balance: int):
        """
        Fetch mint info and make sure the token account exists.

        Returns:
            (mint_info or None, ready, balance after any account creation)
        """
        try:
            program_id = await self.accounts.resolve_token_program()
            mint_info = await self.accounts.get_mint_info()
        except Exception as e:
            logger.warning(f"Mint info fetch failed: {e}")
            return None, False, balance

        account = await self.accounts.ensure_account(program_id, balance, self.config.reserve_lamports)
        if account.created:
            balance = await self.solana.get_balance()
        return mint_info, account.ready, balance

    async def _collect_prices(self, mint_info: Optional[MintInfo]) -> List[PriceSignal]:
        if mint_info is None:
            return []
        signals = await self.oracle.collect(mint_info.decimals)
        if signals:
            logger.info("Price signals:")
            for s in signals:
                note = f" ({s.note})" if s.note else ""
                logger.info(f"  {s.source}: {colors['YELLOW']}{format_usd(s.price)}{colors['RESET']}{note}")
        else:
            logger.info("Price signals: none available.")
        return signals

    def _report_prices(self, cycle_id: int, claimed: int, mint_info: Optional[MintInfo], pricing: Pricing):
        if mint_info is not None:
            supply = raw_to_ui(mint_info.supply, mint_info.decimals)
            logger.info(f"Tokens remaining (supply): {supply:,} (mint {self.accounts.mint})")

        claimed_sol = claimed / LAMPORTS_PER_SOL
        if pricing.sol_usd is not None:
            claimed_usd = claimed_sol * pricing.sol_usd
            logger.info(f"CYCLE #{cycle_id} claimed rewards: {format_sol(claimed_sol)} ({format_usd(claimed_usd)})")
            self.status.update(
                claimed=f"{format_sol(claimed_sol)} ({format_usd(claimed_usd)})",
                sol_usd=f"SOL: {format_usd(pricing.sol_usd)}",
            )
        else:
            logger.info(f"CYCLE #{cycle_id} claimed rewards: {format_sol(claimed_sol)} (USD n/a)")
            self.status.update(claimed=f"{format_sol(claimed_sol)} (USD n/a)")
        if pricing.token_usd is not None:
            self.status.update(token_usd=f"TOKEN: {format_usd(pricing.token_usd)}")

    async def _check_venue(self, state: CycleState):
        try:
            if await self.router.has_route():
                state.mark_graduated()
                logger.info("Aggregator route found; buys switch to Jupiter.")
        except Exception as e:
            logger.warning(f"Venue check failed: {e}")

    async def _buy_step(self, state: CycleState, cycle_id: int, balance: int, pricing: Pricing):
        cfg = self.config
        spend = max(0, balance - cfg.reserve_lamports)
        if spend <= 0 or spend < cfg.min_buy_lamports:
            logger.info(
                f"Spendable SOL {lamports_to_sol(spend)} is below minimum buy "
                f"{lamports_to_sol(cfg.min_buy_lamports)} SOL. Skipping buy. "
                f"Balance {lamports_to_sol(balance)}, reserve {lamports_to_sol(cfg.min_sol_keep)}, "
                f"buffer {lamports_to_sol(cfg.buy_fee_buffer)}."
            )
            return
        logger.info(f"CYCLE #{cycle_id} buying with {lamports_to_sol(spend)} SOL.")
        signature = await self.router.buy(spend, state, sol_usd=pricing.sol_usd)
        if signature:
            self.status.update(last_action="Bought")

    def _report_burn(self, cycle_id: int, result: BurnResult, pricing: Pricing):
        fields = {"burned": f"{result.tokens_burned:,} tokens", "last_action": "Burned"}
        if pricing.token_usd is not None and pricing.sol_usd:
            burned_usd = float(result.tokens_burned) * pricing.token_usd
            fields["burn_value"] = f"{format_sol(burned_usd / pricing.sol_usd)} ({format_usd(burned_usd)})"
        self.status.update(**fields)
        logger.info(f"CYCLE #{cycle_id} burn confirmed: {result.tokens_burned:,} tokens removed from circulation.")


def treasury_share(claimed: int, bps: int) -> int:
    """Lamports owed to the treasury for a claim (floor)."""
    if claimed <= 0 or bps <= 0:
        return 0
    return claimed * bps // 10_000
