"""
Jupiter swap API: quotes, swap transactions and quote-derived prices.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from .errors import AggregatorError, ErrorKind, to_burner_error

logger = logging.getLogger(__name__)

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"  # price reference only
USDC_DECIMALS = 6


class RequestPacer:
    """
    Spaces Jupiter requests at least 1/rate seconds apart.

    The keyless Jupiter tier tolerates about one call per second.
    """

    def __init__(self, rate: float = 1.0):
        self.interval = 1.0 / rate if rate > 0 else 0.0
        self._next_slot = 0.0
        self._lock = asyncio.Lock()

    async def wait(self):
        async with self._lock:
            delay = self._next_slot - time.monotonic()
            if delay > 0:
                await asyncio.sleep(delay)
            self._next_slot = time.monotonic() + self.interval


@dataclass
class JupiterQuote:
    """A /swap/v1/quote answer; raw is echoed back to /swap."""
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    price_impact_pct: float
    route_plan: List[Dict[str, Any]]
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_route(self) -> bool:
        return bool(self.route_plan) and self.out_amount > 0


class JupiterClient:
    """Client for the Jupiter swap API (v1)."""

    DEFAULT_API_URL = "https://api.jup.ag"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 8.0,
        rate: float = 1.0,
        retries_429: int = 3,
        backoff: float = 1.0,
        backoff_cap: float = 30.0,
        base_url: Optional[str] = None
    ):
        """
        Args:
            api_key: Sent as the x-api-key header when set
            timeout: Per-request timeout in seconds
            rate: Requests per second (0 disables pacing)
            retries_429: Retries after a 429 before giving up
            backoff: First 429 backoff in seconds, doubled per retry
            backoff_cap: Upper bound for a single backoff
            base_url: Override for https://api.jup.ag
        """
        self.base_url = (base_url or self.DEFAULT_API_URL).rstrip("/")
        self.api_key = api_key or None
        self.timeout = timeout
        self.pacer = RequestPacer(rate)
        self.retries_429 = retries_429
        self.backoff = backoff
        self.backoff_cap = backoff_cap
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers={"x-api-key": self.api_key} if self.api_key else {},
        )

    def _backoff_seconds(self, response: httpx.Response, attempt: int) -> float:
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass
        return min(self.backoff * (2 ** attempt), self.backoff_cap)

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """
        Perform a request with rate limiting and 429 backoff.

        Raises:
            AggregatorError: NO_ROUTE for 400/404 route errors, TRANSIENT otherwise
        """
        url = f"{self.base_url}{path}"
        for attempt in range(self.retries_429 + 1):
            await self.pacer.wait()
            try:
                response = await asyncio.wait_for(
                    self.client.request(method, url, **kwargs), timeout=self.timeout
                )
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status == 429 and attempt < self.retries_429:
                    delay = self._backoff_seconds(e.response, attempt)
                    logger.warning(f"Jupiter 429, retry {attempt + 1}/{self.retries_429} in {delay:.1f}s")
                    await asyncio.sleep(delay)
                    continue
                kind = ErrorKind.NO_ROUTE if status in (400, 404) else ErrorKind.TRANSIENT
                raise AggregatorError(f"Jupiter HTTP {status}: {e.response.text}", kind) from e
            except AggregatorError:
                raise
            except Exception as e:
                raise to_burner_error(e, AggregatorError) from e
        raise AggregatorError("Jupiter rate limit retries exhausted", ErrorKind.TRANSIENT)

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 50
    ) -> JupiterQuote:
        """
        Get a quote for swapping tokens.

        Args:
            input_mint: Input token mint address
            output_mint: Output token mint address
            amount: Amount in smallest unit (lamports for SOL)
            slippage_bps: Slippage in basis points (1 bps = 0.01%)

        Returns:
            JupiterQuote (route_plan may be empty if Jupiter found nothing)
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": slippage_bps,
        }
        data = await self._request("GET", "/swap/v1/quote", params=params)
        quote = JupiterQuote(
            input_mint=data.get("inputMint", input_mint),
            output_mint=data.get("outputMint", output_mint),
            in_amount=int(data.get("inAmount", amount) or 0),
            out_amount=int(data.get("outAmount", 0) or 0),
            price_impact_pct=float(data.get("priceImpactPct", 0) or 0),
            route_plan=data.get("routePlan") or [],
            raw=data
        )
        logger.debug(f"Quote: {input_mint[:8]}... -> {output_mint[:8]}... "
                     f"in={quote.in_amount} out={quote.out_amount} "
                     f"impact={quote.price_impact_pct:.2f}%")
        return quote

    async def get_swap_transaction(
        self,
        quote: JupiterQuote,
        user_public_key: str,
        priority_fee_lamports: int = 0
    ) -> str:
        """
        Get a serialized swap transaction for a quote.

        Args:
            quote: Quote returned by get_quote (sent back verbatim)
            user_public_key: User's public key (base58)
            priority_fee_lamports: Max priority fee hint in lamports (0 = none)

        Returns:
            Base64-encoded VersionedTransaction

        Raises:
            AggregatorError: NO_ROUTE if Jupiter returned no transaction
        """
        payload: Dict[str, Any] = {
            "quoteResponse": quote.raw,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
            "dynamicSlippage": True,
        }
        if priority_fee_lamports > 0:
            payload["prioritizationFeeLamports"] = {
                "priorityLevelWithMaxLamports": {
                    "maxLamports": priority_fee_lamports,
                    "priorityLevel": "veryHigh",
                }
            }

        data = await self._request("POST", "/swap/v1/swap", json=payload)
        swap_transaction = data.get("swapTransaction") if isinstance(data, dict) else None
        if not swap_transaction:
            raise AggregatorError("Jupiter swap returned no transaction", ErrorKind.NO_ROUTE)
        return swap_transaction

    async def get_sol_price_usdc(self) -> Optional[float]:
        """
        Get SOL price in USDC from a 1 SOL quote.

        Returns:
            USDC per SOL, or None if the quote has no output
        """
        quote = await self.get_quote(SOL_MINT, USDC_MINT, 1_000_000_000, slippage_bps=50)
        if not quote.out_amount:
            return None
        return quote.out_amount / 10 ** USDC_DECIMALS

    async def get_token_price_in_sol(self, mint: str, decimals: int, amount_lamports: int) -> Optional[float]:
        """
        Derive SOL per token from a small SOL -> token quote.

        Args:
            mint: Token mint address
            decimals: Token decimals
            amount_lamports: Quote size in lamports

        Returns:
            SOL per token, or None if the quote has no output
        """
        quote = await self.get_quote(SOL_MINT, mint, amount_lamports, slippage_bps=50)
        out_tokens = quote.out_amount / 10 ** decimals
        in_sol = amount_lamports / 1_000_000_000
        if not out_tokens or not in_sol:
            return None
        return in_sol / out_tokens

    async def has_route(self, mint: str, amount_lamports: int) -> bool:
        """Check whether Jupiter can currently route SOL -> mint at all."""
        try:
            quote = await self.get_quote(SOL_MINT, mint, amount_lamports, slippage_bps=50)
        except AggregatorError as e:
            if e.kind is ErrorKind.NO_ROUTE:
                return False
            raise
        return quote.out_amount > 0

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
