"""
Main entry point for the auto-burner.
"""
import asyncio
import logging
import sys

from .burner import BurnExecutor
from .claimer import ClaimResolver
from .config import BurnerConfig, load_config
from .cycle import CycleOrchestrator
from .jupiter_client import JupiterClient
from .price_guard import PriceGuard
from .price_oracle import BirdeyeClient, DexScreenerClient, PriceOracle
from .pumpportal_client import PumpPortalClient
from .solana_client import RpcPool, SolanaClient
from .status import LogBuffer, StatusReporter
from .token_accounts import TokenAccountManager
from .trader import SwapRouter
from .utils import redact_url

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler('autoburner.log')
    ]
)
logger = logging.getLogger(__name__)

# In-memory tail of the log for the dashboard bridge
log_buffer = LogBuffer()
logging.getLogger().addHandler(log_buffer)


def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict):
    error = context.get("exception")
    message = str(error) if error else context.get("message", "unknown error")
    logger.error(f"Unhandled error in background task: {message}")


def build_orchestrator(config: BurnerConfig, status: StatusReporter) -> CycleOrchestrator:
    """Wire clients and components for one configured mint."""
    mint = str(config.mint)
    pool = RpcPool(config.rpc_urls, timeout=config.fetch_timeout)
    solana = SolanaClient(pool, config.wallet)
    jupiter = JupiterClient(api_key=config.jupiter_api_key, timeout=config.fetch_timeout)
    pumpportal = PumpPortalClient(api_key=config.pumpportal_api_key, timeout=config.fetch_timeout)
    oracle = PriceOracle(
        jupiter,
        DexScreenerClient(timeout=config.fetch_timeout),
        BirdeyeClient(config.birdeye_api_key, timeout=config.fetch_timeout),
        mint,
        quote_lamports=config.trade.price_quote_lamports
    )
    accounts = TokenAccountManager(solana, config.mint)
    return CycleOrchestrator(
        config=config,
        solana=solana,
        claimer=ClaimResolver(solana, pumpportal, mint, config.claim),
        router=SwapRouter(solana, jupiter, pumpportal, mint, config.trade),
        accounts=accounts,
        burner=BurnExecutor(accounts),
        oracle=oracle,
        guard=PriceGuard(config.guard),
        status=status,
    )


async def close_orchestrator(orchestrator: CycleOrchestrator):
    """Close every HTTP/RPC client held by the orchestrator."""
    closers = [
        orchestrator.solana.close,
        orchestrator.router.jupiter.close,
        orchestrator.router.pumpportal.close,
        orchestrator.oracle.close,
    ]
    for close in closers:
        try:
            await close()
        except Exception as e:
            logger.debug(f"Error closing client: {e}")


async def main(mode: str = "loop"):
    """
    Run the burner.

    Args:
        mode: "loop" (run forever) or "once" (single cycle)
    """
    asyncio.get_running_loop().set_exception_handler(_handle_loop_exception)

    config = load_config()
    status = StatusReporter(str(config.wallet.pubkey()), str(config.mint))

    logger.info("Starting auto-burner")
    logger.info(f"Wallet: {config.wallet.pubkey()}")
    logger.info(f"Mint: {config.mint}")
    logger.info(f"RPCs: {len(config.rpc_urls)} (active {redact_url(config.rpc_urls[0])})")
    logger.info(f"Interval: {config.interval_seconds:.0f}s")
    logger.info(f"Buy route: {config.trade.buy_route}")

    orchestrator = build_orchestrator(config, status)
    try:
        if mode == "once":
            await orchestrator.run_forever(max_cycles=1)
        else:
            await orchestrator.run_forever()
    finally:
        await close_orchestrator(orchestrator)


if __name__ == "__main__":
    asyncio.run(main())
