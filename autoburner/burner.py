"""
Burns the wallet's full balance of the configured token.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from spl.token.instructions import BurnCheckedParams, burn_checked

from .amounts import format_sol, format_usd, raw_to_ui
from .token_accounts import TokenAccountManager
from .utils import get_terminal_colors

colors = get_terminal_colors()
logger = logging.getLogger(__name__)


@dataclass
class BurnResult:
    signature: str
    tokens_burned: Decimal


@dataclass
class Pricing:
    token_usd: Optional[float] = None
    sol_usd: Optional[float] = None


class BurnExecutor:
    """Destroys every token of the mint held in the wallet's associated account."""

    def __init__(self, accounts: TokenAccountManager):
        self.accounts = accounts
        self.solana = accounts.solana

    async def burn_all(self, pricing: Optional[Pricing] = None) -> Optional[BurnResult]:
        """
        Burn the exact on-chain balance of the associated token account.

        A missing account or a zero balance is a no-op, not an error.

        Args:
            pricing: Optional prices to log the burn value

        Returns:
            BurnResult, or None when there was nothing to burn
        """
        program_id = await self.accounts.resolve_token_program()
        ata = self.accounts.associated_address(program_id)

        amount = await self.accounts.get_token_balance(ata)
        if amount is None:
            logger.info("No token account to burn.")
            return None
        if amount == 0:
            logger.info("Token balance is zero; nothing to burn.")
            return None

        mint_info = await self.accounts.get_mint_info()
        ix = burn_checked(BurnCheckedParams(
            program_id=program_id,
            mint=self.accounts.mint,
            account=ata,
            owner=self.solana.pubkey,
            amount=amount,
            decimals=mint_info.decimals,
        ))
        sig = await self.solana.send_instructions([ix])

        burned = raw_to_ui(amount, mint_info.decimals)
        logger.info(f"{colors['GREEN']}BURN Burned {burned:,} tokens.{colors['RESET']}")
        if pricing and pricing.token_usd and pricing.sol_usd:
            burned_usd = float(burned) * pricing.token_usd
            burned_sol = burned_usd / pricing.sol_usd
            logger.info(f"BURN Burn value: {format_sol(burned_sol)} ({format_usd(burned_usd)}).")
        logger.info(f"Burn Tx: {colors['CYAN']}{sig}{colors['RESET']}")
        return BurnResult(signature=sig, tokens_burned=burned)
