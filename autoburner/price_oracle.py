"""
Price signal collection from independent sources.

Every source is queried on its own; a failing or empty source contributes no
signal and never fails the collection as a whole.
"""
import asyncio
import logging
from dataclasses import dataclass
from statistics import median
from typing import Any, Dict, List, Optional

import httpx

from .jupiter_client import JupiterClient

logger = logging.getLogger(__name__)

SOL_USD_SOURCE = "jupiter-sol-usd"


@dataclass
class PriceSignal:
    """One observed price in USD."""
    source: str
    price: float
    note: Optional[str] = None


class DexScreenerClient:
    """Async REST client for the DexScreener public API (no auth required)."""

    BASE_URL = "https://api.dexscreener.com"

    def __init__(self, timeout: float = 8.0):
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def get_token_price_usd(self, mint: str) -> Optional[float]:
        """
        Price of the most liquid Solana pair for a token.

        Returns:
            USD price, or None if no Solana pair reports one
        """
        response = await asyncio.wait_for(
            self.client.get("/latest/dex/search", params={"q": mint}), timeout=self.timeout
        )
        response.raise_for_status()
        data = response.json()
        pairs = data.get("pairs") if isinstance(data, dict) else None
        solana_pairs = [p for p in (pairs or []) if isinstance(p, dict) and p.get("chainId") == "solana"]
        if not solana_pairs:
            return None
        best = max(solana_pairs, key=_pair_liquidity_usd)
        price = float(best.get("priceUsd") or 0)
        return price or None

    async def close(self):
        await self.client.aclose()


def _pair_liquidity_usd(pair: Dict[str, Any]) -> float:
    liquidity = pair.get("liquidity") or {}
    try:
        return float(liquidity.get("usd") or 0)
    except (TypeError, ValueError):
        return 0.0


class BirdeyeClient:
    """Minimal Birdeye price client (requires an API key)."""

    BASE_URL = "https://public-api.birdeye.so"

    def __init__(self, api_key: Optional[str], timeout: float = 8.0):
        self.api_key = api_key or None
        self.timeout = timeout
        headers = {"Accept": "application/json", "x-chain": "solana"}
        if self.api_key:
            headers["X-API-KEY"] = self.api_key
        self.client = httpx.AsyncClient(base_url=self.BASE_URL, timeout=timeout, headers=headers)

    @property
    def enabled(self) -> bool:
        return self.api_key is not None

    async def get_token_price_usd(self, mint: str) -> Optional[float]:
        if not self.enabled:
            return None
        response = await asyncio.wait_for(
            self.client.get("/defi/price", params={"address": mint}), timeout=self.timeout
        )
        response.raise_for_status()
        data = response.json()
        value = float(((data or {}).get("data") or {}).get("value") or 0)
        return value or None

    async def close(self):
        await self.client.aclose()


class PriceOracle:
    """Collects SOL and token price signals for one mint."""

    def __init__(
        self,
        jupiter: JupiterClient,
        dexscreener: DexScreenerClient,
        birdeye: BirdeyeClient,
        mint: str,
        quote_lamports: int = 100_000_000
    ):
        self.jupiter = jupiter
        self.dexscreener = dexscreener
        self.birdeye = birdeye
        self.mint = mint
        self.quote_lamports = quote_lamports

    async def collect(self, decimals: int) -> List[PriceSignal]:
        """
        Query every source once.

        Args:
            decimals: Token decimals (for the Jupiter-derived token price)

        Returns:
            Between 0 and 4 signals
        """
        signals: List[PriceSignal] = []

        sol_usd = None
        try:
            sol_usd = await self.jupiter.get_sol_price_usdc()
            if sol_usd:
                signals.append(PriceSignal(SOL_USD_SOURCE, sol_usd, "SOL"))
        except Exception as e:
            logger.warning(f"Price: Jupiter SOL/USD failed: {e}")

        try:
            sol_per_token = await self.jupiter.get_token_price_in_sol(self.mint, decimals, self.quote_lamports)
            if sol_per_token and sol_usd:
                signals.append(PriceSignal("jupiter-token", sol_per_token * sol_usd, "SOL route"))
        except Exception as e:
            logger.warning(f"Price: Jupiter token quote failed: {e}")

        try:
            token_usd = await self.dexscreener.get_token_price_usd(self.mint)
            if token_usd:
                signals.append(PriceSignal("dexscreener", token_usd, "USD"))
        except Exception as e:
            logger.warning(f"Price: DexScreener failed: {e}")

        try:
            token_usd = await self.birdeye.get_token_price_usd(self.mint)
            if token_usd:
                signals.append(PriceSignal("birdeye", token_usd, "USD"))
        except Exception as e:
            logger.warning(f"Price: Birdeye failed: {e}")

        return signals

    async def close(self):
        await self.dexscreener.close()
        await self.birdeye.close()


def sol_usd(signals: List[PriceSignal]) -> Optional[float]:
    """SOL/USD price from the signal list, if collected."""
    for signal in signals:
        if signal.source == SOL_USD_SOURCE:
            return signal.price
    return None


def token_usd(signals: List[PriceSignal]) -> Optional[float]:
    """Median token price over the non-SOL signals."""
    prices = [s.price for s in signals if s.source != SOL_USD_SOURCE]
    if not prices:
        return None
    return median(prices)
