"""
Solana RPC client with multi-endpoint failover.
"""
import asyncio
import base64
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar, Union

import httpx
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction, VersionedTransaction
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts

from .errors import ErrorKind, LedgerError, classify_message, to_burner_error
from .utils import redact_url

logger = logging.getLogger(__name__)

T = TypeVar("T")

SignedTransaction = Union[Transaction, VersionedTransaction]


class RpcPool:
    """
    Round-robin pool of RPC connections.

    Every call starts on the active endpoint. Transient failures rotate to the
    next endpoint and retry, up to one attempt per endpoint. Terminal failures
    (ledger-state rejections) are raised on the spot without rotating.
    """

    def __init__(self, urls: Sequence[str], timeout: float = 8.0):
        if not urls:
            raise ValueError("No RPC URLs configured")
        self.urls = list(urls)
        self.timeout = timeout
        self._index = 0
        self.connections = [AsyncClient(url, commitment=Confirmed, timeout=timeout) for url in self.urls]
        self._http = httpx.AsyncClient(timeout=timeout)

    def __len__(self) -> int:
        return len(self.connections)

    def current(self) -> AsyncClient:
        return self.connections[self._index]

    def current_url(self) -> str:
        return self.urls[self._index]

    def rotate(self) -> None:
        """Advance to the next endpoint (wrapping)."""
        self._index = (self._index + 1) % len(self.connections)

    async def call(
        self,
        operation: Callable[[AsyncClient], Awaitable[T]],
        label: str = "rpc",
        timeout: Optional[float] = None
    ) -> T:
        """
        Run an operation against the pool with rotate-on-failure.

        Args:
            operation: Coroutine function taking an AsyncClient
            label: Operation name for debug logs
            timeout: Per-attempt timeout (defaults to pool timeout)

        Returns:
            Result of the first successful attempt

        Raises:
            LedgerError: Terminal error immediately, or the last transient error
        """
        limit = self.timeout if timeout is None else timeout
        last_error: Optional[LedgerError] = None
        for _ in range(len(self.connections)):
            conn = self.current()
            try:
                return await asyncio.wait_for(operation(conn), timeout=limit)
            except Exception as e:
                error = to_burner_error(e, LedgerError)
                if error.is_terminal:
                    raise error from e
                last_error = error
                logger.debug(
                    f"RPC {label} failed on {redact_url(self.current_url())}: {error} "
                    f"({error.kind.value}), rotating"
                )
                self.rotate()
        raise last_error

    async def rpc_request(self, method: str, params: List[Any]) -> Any:
        """
        Raw JSON-RPC call for methods used outside the typed client.

        Same rotate-on-failure policy as call(); a JSON-RPC error member
        counts as a failure.

        Returns:
            The "result" member of the response
        """
        last_error: Optional[LedgerError] = None
        for _ in range(len(self.connections)):
            url = self.current_url()
            try:
                response = await asyncio.wait_for(
                    self._http.post(url, json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params}),
                    timeout=self.timeout
                )
                data = response.json()
                if isinstance(data, dict) and data.get("error"):
                    message = data["error"].get("message") or "RPC error"
                    raise LedgerError(message, classify_message(message))
                return data.get("result") if isinstance(data, dict) else None
            except Exception as e:
                last_error = to_burner_error(e, LedgerError)
                logger.debug(f"RPC {method} failed on {redact_url(url)}: {last_error}, rotating")
                self.rotate()
        raise last_error

    async def close(self):
        """Close all connections."""
        for conn in self.connections:
            try:
                await conn.close()
            except Exception as e:
                logger.debug(f"Error closing RPC connection: {e}")
        await self._http.aclose()


class SolanaClient:
    """Typed ledger operations for the operating wallet, routed through an RpcPool."""

    def __init__(self, pool: RpcPool, wallet: Keypair, confirm_timeout: float = 60.0):
        self.pool = pool
        self.wallet = wallet
        self.confirm_timeout = confirm_timeout

    @property
    def pubkey(self) -> Pubkey:
        return self.wallet.pubkey()

    async def get_balance(self, pubkey: Optional[Pubkey] = None) -> int:
        """
        Get SOL balance in lamports.

        Args:
            pubkey: Public key (defaults to wallet)

        Returns:
            Balance in lamports
        """
        target = pubkey or self.pubkey
        resp = await self.pool.call(
            lambda conn: conn.get_balance(target, commitment=Confirmed),
            "getBalance"
        )
        return resp.value

    async def get_latest_blockhash(self) -> Hash:
        """Get a fresh blockhash for transaction building."""
        resp = await self.pool.call(
            lambda conn: conn.get_latest_blockhash(commitment=Confirmed),
            "getLatestBlockhash"
        )
        return resp.value.blockhash

    async def get_account_info(self, pubkey: Pubkey):
        """
        Get account info.

        Returns:
            solders Account, or None if the account does not exist
        """
        resp = await self.pool.call(
            lambda conn: conn.get_account_info(pubkey, commitment=Confirmed),
            "getAccountInfo"
        )
        return resp.value

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        resp = await self.pool.call(
            lambda conn: conn.get_minimum_balance_for_rent_exemption(size, commitment=Confirmed),
            "getMinimumBalanceForRentExemption"
        )
        return resp.value

    async def get_transaction_raw(self, signature: str) -> Optional[bytes]:
        """
        Fetch a historical transaction as raw wire bytes.

        Returns:
            Serialized transaction, or None if the node does not know it
        """
        result = await self.pool.rpc_request("getTransaction", [
            signature,
            {"encoding": "base64", "commitment": "confirmed", "maxSupportedTransactionVersion": 0}
        ])
        if not result:
            return None
        tx_field = result.get("transaction")
        raw = tx_field[0] if isinstance(tx_field, list) else tx_field
        if not raw:
            return None
        return base64.b64decode(raw)

    async def get_transaction_logs(self, signature: str) -> List[str]:
        """Fetch log messages of a confirmed transaction (empty if unknown)."""
        result = await self.pool.rpc_request("getTransaction", [
            signature,
            {"encoding": "jsonParsed", "commitment": "confirmed", "maxSupportedTransactionVersion": 0}
        ])
        meta = (result or {}).get("meta") or {}
        logs = meta.get("logMessages")
        if not isinstance(logs, list):
            return []
        return [line for line in logs if isinstance(line, str)]

    async def send_transaction(self, tx: SignedTransaction) -> str:
        """
        Submit an already signed transaction and wait for confirmation.

        Args:
            tx: Signed Transaction or VersionedTransaction

        Returns:
            Transaction signature (base58 string)

        Raises:
            LedgerError: If submission fails or the transaction lands with an error
        """
        opts = TxOpts(skip_preflight=False, preflight_commitment=Confirmed, max_retries=3)
        resp = await self.pool.call(
            lambda conn: conn.send_transaction(tx, opts=opts),
            "sendTransaction"
        )
        signature = resp.value
        await self.confirm_transaction(signature)
        return str(signature)

    async def confirm_transaction(self, signature: Union[str, Signature]) -> None:
        """
        Wait until a transaction is confirmed.

        Raises:
            LedgerError: Terminal error if the transaction landed with an error status
        """
        sig = Signature.from_string(signature) if isinstance(signature, str) else signature

        async def _confirm(conn: AsyncClient):
            resp = await conn.confirm_transaction(sig, commitment=Confirmed, sleep_seconds=0.5)
            statuses = resp.value or []
            status = statuses[0] if statuses else None
            if status is not None and status.err is not None:
                message = f"Transaction {sig} failed: {status.err}"
                kind = classify_message(message)
                if kind is ErrorKind.TRANSIENT:
                    kind = ErrorKind.PROGRAM_FATAL
                raise LedgerError(message, kind)
            return resp

        await self.pool.call(_confirm, "confirmTransaction", timeout=self.confirm_timeout)

    async def send_instructions(self, instructions: List[Instruction]) -> str:
        """
        Build, sign and submit a legacy transaction paid by the wallet.

        Returns:
            Confirmed transaction signature
        """
        blockhash = await self.get_latest_blockhash()
        message = Message(instructions, self.pubkey)
        tx = Transaction([self.wallet], message, blockhash)
        return await self.send_transaction(tx)

    async def transfer_lamports(self, destination: Pubkey, lamports: int) -> str:
        """Transfer SOL from the wallet to destination."""
        ix = transfer(TransferParams(from_pubkey=self.pubkey, to_pubkey=destination, lamports=lamports))
        return await self.send_instructions([ix])

    def sign_versioned(self, raw_tx: bytes) -> VersionedTransaction:
        """Deserialize a VersionedTransaction and sign it with the wallet."""
        unsigned = VersionedTransaction.from_bytes(raw_tx)
        return VersionedTransaction(unsigned.message, [self.wallet])

    async def close(self):
        """Close RPC connections."""
        await self.pool.close()
