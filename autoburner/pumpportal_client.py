"""
PumpPortal client for creator-fee claims and bonding-curve buys.

Two transports share one request body shape:
- trade-local: returns an unsigned serialized transaction we sign and submit
- lightning: keyed relay that signs and broadcasts itself, returns a signature
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .errors import ErrorKind, RelayError, classify_message, to_burner_error

logger = logging.getLogger(__name__)


class PumpPortalClient:
    """HTTP client for the PumpPortal trade API."""

    TRADE_LOCAL_URL = "https://pumpportal.fun/api/trade-local"
    TRADE_LIGHTNING_URL = "https://pumpportal.fun/api/trade"

    def __init__(self, api_key: Optional[str] = None, timeout: float = 8.0):
        self.api_key = api_key or None
        self.timeout = timeout
        self.client = httpx.AsyncClient(timeout=timeout)

    @staticmethod
    def _error_for(status: int, text: str) -> RelayError:
        message = f"PumpPortal error {status}: {text}"
        kind = classify_message(text)
        if kind is ErrorKind.TRANSIENT and status == 400:
            kind = ErrorKind.RELAY_REJECTED
        return RelayError(message, kind)

    async def trade_local(self, body: Dict[str, Any]) -> bytes:
        """
        Request an unsigned transaction for a trade/claim body.

        Args:
            body: Request body (publicKey, action, priorityFee, ...)

        Returns:
            Serialized VersionedTransaction bytes

        Raises:
            RelayError: On non-200 responses or transport failures
        """
        try:
            response = await asyncio.wait_for(
                self.client.post(self.TRADE_LOCAL_URL, json=body), timeout=self.timeout
            )
        except Exception as e:
            raise to_burner_error(e, RelayError) from e
        if response.status_code != 200:
            raise self._error_for(response.status_code, response.text)
        logger.debug(f"trade-local {body.get('action')}: {len(response.content)} bytes")
        return response.content

    async def trade_lightning(self, body: Dict[str, Any]) -> str:
        """
        Submit a body to the lightning relay, which broadcasts the transaction.

        Returns:
            Transaction signature reported by the relay

        Raises:
            RelayError: If no API key is configured, on HTTP errors, or if the
                response carries no signature
        """
        if not self.api_key:
            raise RelayError("Missing PUMPPORTAL_API_KEY for lightning transport", ErrorKind.PROGRAM_FATAL)
        try:
            response = await asyncio.wait_for(
                self.client.post(self.TRADE_LIGHTNING_URL, params={"api-key": self.api_key}, json=body),
                timeout=self.timeout
            )
        except Exception as e:
            raise to_burner_error(e, RelayError) from e
        try:
            data = response.json()
        except ValueError:
            data = None
        if response.status_code != 200:
            raise self._error_for(response.status_code, str(data if data is not None else response.text))
        signature = None
        if isinstance(data, dict):
            signature = data.get("signature") or data.get("txSignature") or data.get("result")
        if not signature:
            raise RelayError(f"PumpPortal lightning: missing signature {data}", ErrorKind.TRANSIENT)
        return str(signature)

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
