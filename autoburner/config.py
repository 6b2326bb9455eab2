"""
Configuration loading from .env and the process environment.
"""
import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

import base58
import dotenv
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .amounts import sol_to_lamports
from .claimer import ClaimConfig
from .price_guard import PriceGuardConfig
from .trader import TradeConfig

logger = logging.getLogger(__name__)

SECRET_KEY_LENGTH = 64

_PLACEHOLDER = re.compile(r"\$\{([A-Z0-9_]+)\}")
_BYTE_LIST = re.compile(r"^\[?[\d,\s]+\]?$")


@dataclass
class BurnerConfig:
    """Runtime configuration for the auto-burner."""
    rpc_urls: List[str]
    wallet: Keypair
    mint: Pubkey
    claim: ClaimConfig
    trade: TradeConfig
    guard: PriceGuardConfig
    pumpportal_api_key: Optional[str] = None
    jupiter_api_key: Optional[str] = None
    birdeye_api_key: Optional[str] = None
    treasury_address: Optional[Pubkey] = None
    treasury_bps: int = 0
    interval_seconds: float = 180.0
    min_sol_keep: int = 0            # lamports
    buy_fee_buffer: int = 0          # lamports
    claim_min_lamports: int = 0
    claim_cooldown_cycles: int = 3
    min_buy_lamports: int = 500_000
    fetch_timeout: float = 8.0

    @property
    def reserve_lamports(self) -> int:
        """Lamports never spent on a buy."""
        return self.min_sol_keep + self.buy_fee_buffer


def expand_placeholders(value: str, env: Mapping[str, str]) -> str:
    """Replace ${VAR} with env[VAR] (empty string when unset)."""
    return _PLACEHOLDER.sub(lambda m: env.get(m.group(1), ""), value)


def parse_rpc_urls(env: Mapping[str, str]) -> List[str]:
    """
    Read RPC_URLS (comma separated) or RPC_URL.

    Raises:
        ValueError: If neither is set or no URL remains after expansion
    """
    raw = env.get("RPC_URLS") or env.get("RPC_URL") or ""
    if not raw:
        raise ValueError("Missing env var: RPC_URLS (or RPC_URL)")
    urls = [expand_placeholders(part.strip(), env) for part in raw.split(",")]
    urls = [url for url in urls if url]
    if not urls:
        raise ValueError("RPC_URLS contains no usable URL")
    return urls


def _parse_byte_array(secret: str) -> bytes:
    compact = re.sub(r"\s+", "", secret)
    normalized = compact if compact.startswith("[") else f"[{compact}]"
    try:
        values = json.loads(normalized)
    except json.JSONDecodeError:
        # Double-encoded JSON string, e.g. "\"[1,2,...]\""
        try:
            once = json.loads('"' + secret.replace('"', '\\"') + '"')
            once = re.sub(r"\s+", "", str(once))
            values = json.loads(once if once.startswith("[") else f"[{once}]")
        except json.JSONDecodeError as e:
            raise ValueError("Invalid wallet secret array JSON format") from e
    if not isinstance(values, list) or len(values) != SECRET_KEY_LENGTH:
        raise ValueError(f"Wallet secret array must contain exactly {SECRET_KEY_LENGTH} numbers")
    if not all(isinstance(n, int) and not isinstance(n, bool) and 0 <= n <= 255 for n in values):
        raise ValueError("Wallet secret array must contain bytes (0-255)")
    return bytes(values)


def parse_secret_key(raw: Optional[str], forced_format: str = "") -> bytes:
    """
    Parse a wallet secret given as base58 or as a JSON array of 64 bytes.

    Surrounding quotes (added by some env editors) are stripped.

    Args:
        raw: Secret as found in the environment
        forced_format: "json" to force byte-array parsing

    Returns:
        64-byte secret key

    Raises:
        ValueError: If the secret is empty or malformed
    """
    secret = str(raw or "").strip()
    if not secret:
        raise ValueError("Wallet secret is empty")
    if len(secret) >= 2 and secret[0] == secret[-1] and secret[0] in ("'", '"'):
        secret = secret[1:-1].strip()

    compact = re.sub(r"\s+", "", secret)
    looks_like_array = (
        compact.startswith("[")
        or re.fullmatch(r"\d+(,\d+)+", compact) is not None
        or (_BYTE_LIST.match(secret) is not None and "," in secret)
    )
    if forced_format.strip().lower() == "json" or looks_like_array:
        return _parse_byte_array(secret)

    try:
        decoded = base58.b58decode(secret)
    except ValueError as e:
        raise ValueError("Invalid wallet secret format. Use base58 or JSON byte array like [1,2,3,...].") from e
    if len(decoded) != SECRET_KEY_LENGTH:
        raise ValueError(f"Wallet secret base58 must decode to exactly {SECRET_KEY_LENGTH} bytes")
    return decoded


def load_wallet(env: Mapping[str, str]) -> Keypair:
    """Build the wallet keypair from WALLET_SECRET_KEY_BASE58."""
    secret = env.get("WALLET_SECRET_KEY_BASE58")
    if not secret:
        raise ValueError("Missing env var: WALLET_SECRET_KEY_BASE58")
    key_bytes = parse_secret_key(secret, env.get("WALLET_SECRET_KEY_FORMAT", ""))
    return Keypair.from_bytes(key_bytes)


def _number(env: Mapping[str, str], name: str, default: str) -> float:
    raw = env.get(name)
    value = raw if raw not in (None, "") else default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"Invalid number for {name}: {value!r}") from e


def _lamports(env: Mapping[str, str], name: str, default: str) -> int:
    raw = env.get(name)
    value = raw if raw not in (None, "") else default
    try:
        return sol_to_lamports(value)
    except ValueError as e:
        raise ValueError(f"Invalid SOL amount for {name}: {value!r}") from e


def build_config(env: Mapping[str, str]) -> BurnerConfig:
    """
    Build a BurnerConfig from an environment mapping.

    Raises:
        ValueError: On missing required keys or invalid values
    """
    rpc_urls = parse_rpc_urls(env)
    wallet = load_wallet(env)
    mint_str = env.get("MINT")
    if not mint_str:
        raise ValueError("Missing env var: MINT")
    mint = Pubkey.from_string(mint_str.strip())

    priority_fee = _number(env, "PRIORITY_FEE", "0.0001")
    slippage = _number(env, "SLIPPAGE", "1")
    pool = env.get("POOL") or "pump"
    fetch_timeout = _number(env, "FETCH_TIMEOUT_MS", "8000") / 1000

    claim = ClaimConfig(
        method=env.get("CLAIM_METHOD") or "auto",
        pool=pool,
        claim_pool=env.get("CLAIM_POOL") or None,
        reference_signature=env.get("CLAIM_REF_SIG") or "",
        priority_fee=priority_fee,
    )
    trade = TradeConfig(
        buy_route=env.get("BUY_ROUTE") or "auto",
        pool=pool,
        slippage_pct=slippage,
        priority_fee=priority_fee,
        price_quote_lamports=int(_number(env, "PRICE_QUOTE_SOL_LAMPORTS", "100000000")),
    )
    guard = PriceGuardConfig(
        mode=env.get("PRICE_GUARD_MODE") or "auto",
        max_deviation_pct=_number(env, "MAX_PRICE_DEVIATION_PCT", "15"),
    )

    treasury_raw = (env.get("CLAIM_TREASURY_ADDRESS") or "").strip()
    treasury_bps = int(_number(env, "CLAIM_TREASURY_BPS", "0"))
    if not 0 <= treasury_bps <= 10_000:
        raise ValueError(f"CLAIM_TREASURY_BPS must be between 0 and 10000, got {treasury_bps}")

    return BurnerConfig(
        rpc_urls=rpc_urls,
        wallet=wallet,
        mint=mint,
        claim=claim,
        trade=trade,
        guard=guard,
        pumpportal_api_key=env.get("PUMPPORTAL_API_KEY") or None,
        jupiter_api_key=env.get("JUPITER_API_KEY") or None,
        birdeye_api_key=env.get("BIRDEYE_API_KEY") or None,
        treasury_address=Pubkey.from_string(treasury_raw) if treasury_raw else None,
        treasury_bps=treasury_bps,
        interval_seconds=_number(env, "INTERVAL_MS", "180000") / 1000,
        min_sol_keep=_lamports(env, "MIN_SOL_KEEP", "0"),
        buy_fee_buffer=_lamports(env, "BUY_SOL_FEE_BUFFER", "0"),
        claim_min_lamports=_lamports(env, "CLAIM_MIN_SOL", "0"),
        claim_cooldown_cycles=int(_number(env, "CLAIM_COOLDOWN_CYCLES", "3")),
        min_buy_lamports=_lamports(env, "MIN_BUY_SOL", "0.0005"),
        fetch_timeout=fetch_timeout,
    )


def load_config(env_path: Optional[Path] = None) -> BurnerConfig:
    """Load .env (if present) into the process environment and build the config."""
    env_path = env_path or Path(__file__).parent.parent / '.env'
    if env_path.exists():
        dotenv.load_dotenv(env_path)
    else:
        logger.warning(f".env file not found at {env_path}")
    return build_config(os.environ)
