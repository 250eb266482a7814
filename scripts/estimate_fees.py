#!/usr/bin/env python3
"""
Print the current network fee of a transfer.

Usage:
    python -m scripts.estimate_fees --chain base --kind native
    python -m scripts.estimate_fees --chain solana
"""

import argparse
import asyncio
import sys

from loguru import logger
from solana.rpc.async_api import AsyncClient

from app.config.constants import BLOCKCHAIN_TIMEOUT
from app.config.settings import settings
from app.services.chains.networks import resolve_chain, supported_chains
from app.services.container import build_evm_clients
from app.services.transactions.fees import FeeEstimator, FeeKind
from app.utils.exceptions import UnsupportedChainError


logger.remove()
logger.add(sys.stderr, level="WARNING")


async def estimate(chain: str, kind: FeeKind) -> int:
    """Estimate and print one fee."""
    evm_clients = build_evm_clients(settings)
    solana = AsyncClient(settings.solana_rpc_url, timeout=BLOCKCHAIN_TIMEOUT)
    estimator = FeeEstimator(evm_clients, solana)
    try:
        fee = await estimator.estimate(chain, kind)
    except UnsupportedChainError as e:
        logger.error(str(e))
        return 1
    finally:
        await solana.close()
        for client in evm_clients.values():
            await client.provider.disconnect()

    suffix = " (fallback, RPC unavailable)" if fee.is_fallback else ""
    print(f"{fee.chain} {kind.value} transfer: {fee}{suffix}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Estimate a transfer fee")
    parser.add_argument(
        "--chain", required=True, help=f"One of: {', '.join(supported_chains())}"
    )
    parser.add_argument(
        "--kind",
        choices=[kind.value for kind in FeeKind],
        default=FeeKind.NATIVE.value,
        help="Native coin or token transfer",
    )
    args = parser.parse_args()
    chain = resolve_chain(args.chain)
    if not chain:
        parser.error(f"unsupported chain: {args.chain}")
    sys.exit(asyncio.run(estimate(chain, FeeKind(args.kind))))


if __name__ == "__main__":
    main()
