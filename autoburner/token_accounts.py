"""
Token program resolution and associated token account lifecycle.
"""
import logging
import struct
from dataclasses import dataclass
from typing import Optional

from solders.pubkey import Pubkey
from spl.token.instructions import (
    create_idempotent_associated_token_account,
    get_associated_token_address,
)

from .amounts import lamports_to_sol
from .solana_client import SolanaClient
from .utils import get_terminal_colors

colors = get_terminal_colors()
logger = logging.getLogger(__name__)

TOKEN_PROGRAM = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
TOKEN_2022_PROGRAM = Pubkey.from_string("TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb")

# Base SPL token account size (same prefix layout for Token-2022 without extensions)
TOKEN_ACCOUNT_SIZE = 165

# Mint layout: COption<Pubkey> authority (36), supply u64, decimals u8
_MINT_SUPPLY_OFFSET = 36
_MINT_DECIMALS_OFFSET = 44
# Token account layout: mint (32), owner (32), amount u64
_ACCOUNT_AMOUNT_OFFSET = 64


@dataclass
class MintInfo:
    decimals: int
    supply: int


@dataclass
class TokenAccountStatus:
    """Associated token account readiness for the buy step."""
    address: Optional[Pubkey]
    exists: bool
    ready: bool
    created: bool = False
    error: Optional[str] = None


def parse_mint(data: bytes) -> MintInfo:
    """Parse supply and decimals from raw mint account data."""
    if len(data) < _MINT_DECIMALS_OFFSET + 1:
        raise ValueError(f"Mint account data too short ({len(data)} bytes)")
    supply = struct.unpack_from("<Q", data, _MINT_SUPPLY_OFFSET)[0]
    decimals = data[_MINT_DECIMALS_OFFSET]
    return MintInfo(decimals=decimals, supply=supply)


def parse_token_amount(data: bytes) -> int:
    """Parse the raw amount from token account data."""
    if len(data) < _ACCOUNT_AMOUNT_OFFSET + 8:
        raise ValueError(f"Token account data too short ({len(data)} bytes)")
    return struct.unpack_from("<Q", data, _ACCOUNT_AMOUNT_OFFSET)[0]


class TokenAccountManager:
    """Resolves the owning token program and manages the wallet's ATA for one mint."""

    def __init__(self, solana: SolanaClient, mint: Pubkey):
        self.solana = solana
        self.mint = mint

    async def resolve_token_program(self) -> Pubkey:
        """
        Determine whether the mint uses Token or Token-2022.

        Raises:
            ValueError: If the mint account does not exist
        """
        info = await self.solana.get_account_info(self.mint)
        if info is None:
            raise ValueError(f"Mint account not found: {self.mint}")
        if info.owner == TOKEN_2022_PROGRAM:
            return TOKEN_2022_PROGRAM
        return TOKEN_PROGRAM

    def associated_address(self, program_id: Pubkey) -> Pubkey:
        return get_associated_token_address(self.solana.pubkey, self.mint, program_id)

    async def get_mint_info(self) -> MintInfo:
        info = await self.solana.get_account_info(self.mint)
        if info is None:
            raise ValueError(f"Mint account not found: {self.mint}")
        return parse_mint(bytes(info.data))

    async def get_token_balance(self, address: Pubkey) -> Optional[int]:
        """
        Raw token balance of a token account.

        Returns:
            Amount in base units, or None if the account does not exist
        """
        info = await self.solana.get_account_info(address)
        if info is None:
            return None
        return parse_token_amount(bytes(info.data))

    async def ensure_account(self, program_id: Pubkey, balance: int, reserve_lamports: int) -> TokenAccountStatus:
        """
        Make sure the wallet's associated token account exists.

        Creation only happens when the wallet covers rent plus the reserve;
        otherwise the status is not ready and the buy is skipped this cycle.

        Args:
            program_id: Token program owning the mint
            balance: Current wallet balance in lamports
            reserve_lamports: Lamports that must remain after paying rent

        Returns:
            TokenAccountStatus
        """
        ata = self.associated_address(program_id)
        if await self.solana.get_account_info(ata) is not None:
            return TokenAccountStatus(address=ata, exists=True, ready=True)

        rent = await self.solana.get_minimum_balance_for_rent_exemption(TOKEN_ACCOUNT_SIZE)
        needed = rent + reserve_lamports
        if balance < needed:
            reason = (f"ATA rent not covered. Need {lamports_to_sol(needed)} SOL, "
                      f"have {lamports_to_sol(balance)}.")
            logger.warning(reason)
            return TokenAccountStatus(address=ata, exists=False, ready=False, error=reason)

        ix = create_idempotent_associated_token_account(
            self.solana.pubkey, self.solana.pubkey, self.mint, token_program_id=program_id
        )
        try:
            sig = await self.solana.send_instructions([ix])
        except Exception as e:
            logger.warning(f"ATA create failed: {e}")
            return TokenAccountStatus(address=ata, exists=False, ready=False, error=str(e))

        logger.info(f"{colors['GREEN']}Created token account (ATA).{colors['RESET']} Tx: {colors['CYAN']}{sig}{colors['RESET']}")
        return TokenAccountStatus(address=ata, exists=True, ready=True, created=True)
