"""Operator CLI for read-only checks.

Usage:
    python -m swaptx networks
    python -m swaptx balances --network ETHEREUM_MAINNET --address 0x...
    python -m swaptx estimate-fee --network OPTIMISM_MAINNET --asset USDC \\
        --account 0x... --destination 0x... [--owner 0x...] [--amount 1.5]
"""

import argparse
import asyncio
import logging
import sys
from decimal import Decimal
from typing import Optional

from swaptx.balances import BalanceResolver
from swaptx.classifier import classify
from swaptx.config import get_settings
from swaptx.errors import SwapTxError
from swaptx.gas import REPRESENTATIVE_SEQUENCE_NUMBER, GasDispatcher
from swaptx.networks import Network, get_all_networks, get_network
from swaptx.rpc import RpcPool

logger = logging.getLogger(__name__)


def _require_network(name: str) -> Network:
    network = get_network(name)
    if network is None:
        raise SystemExit(f"Unknown network: {name}")
    return network


def cmd_networks(args: argparse.Namespace) -> int:
    for network in get_all_networks():
        assets = ", ".join(a.symbol for a in network.assets if a.is_active)
        print(
            f"{network.internal_name:<20} {network.display_name:<18} "
            f"{network.fee_strategy.value:<14} multicall={'yes' if network.has_multicall else 'no':<4} "
            f"{assets}"
        )
    return 0


async def cmd_balances(args: argparse.Namespace) -> int:
    network = _require_network(args.network)
    resolver = BalanceResolver(RpcPool())

    native = await resolver.get_native_balance(args.address, network)
    if native:
        print(f"{native.token:<8} {native.amount}")
    else:
        print(f"{network.native_currency:<8} (unavailable)")

    try:
        report = await resolver.get_balances(args.address, network)
    except SwapTxError as e:
        print(f"Token balances unavailable: {e}", file=sys.stderr)
        return 1

    for balance in report.balances:
        print(f"{balance.token:<8} {balance.amount}")
    for failure in report.failures:
        print(f"{failure.token:<8} (failed: {failure.error})")
    return 0


async def cmd_estimate_fee(args: argparse.Namespace) -> int:
    network = _require_network(args.network)
    asset = network.get_asset(args.asset)
    if asset is None:
        raise SystemExit(f"Unknown asset {args.asset} on {network.internal_name}")

    dispatcher = GasDispatcher(RpcPool())
    try:
        estimate = await dispatcher.resolve_gas(
            network,
            asset,
            account=args.account,
            destination=args.destination,
            ultimate_owner=args.owner or args.account,
            amount=args.amount,
            sequence_number=args.sequence_number,
        )
    except SwapTxError as e:
        classified = classify(e)
        print(f"Fee estimate failed ({classified.reason.value}): {classified.message}", file=sys.stderr)
        return 1

    print(f"Fee: {estimate.fee} {estimate.token} ({estimate.strategy.value})")
    if estimate.details:
        d = estimate.details
        print(f"  gas limit:          {d.gas_limit}")
        print(f"  gas price:          {d.gas_price} gwei")
        if d.max_fee_per_gas is not None:
            print(f"  max fee per gas:    {d.max_fee_per_gas} gwei")
            print(f"  max priority fee:   {d.max_priority_fee_per_gas} gwei")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="swaptx", description="Swap transfer fee and balance checks")
    sub = parser.add_subparsers(dest="command", required=True)

    networks = sub.add_parser("networks", help="List configured networks")
    networks.set_defaults(func=cmd_networks)

    balances = sub.add_parser("balances", help="Show native and token balances")
    balances.add_argument("--network", required=True)
    balances.add_argument("--address", required=True)
    balances.set_defaults(func=cmd_balances)

    fee = sub.add_parser("estimate-fee", help="Estimate the network fee of a transfer")
    fee.add_argument("--network", required=True)
    fee.add_argument("--asset", required=True)
    fee.add_argument("--account", required=True, help="Signer address")
    fee.add_argument("--destination", required=True, help="Deposit address")
    fee.add_argument("--owner", help="Swap destination owner (defaults to account)")
    fee.add_argument("--amount", type=Decimal, default=Decimal("0"))
    fee.add_argument("--sequence-number", type=int, default=REPRESENTATIVE_SEQUENCE_NUMBER)
    fee.set_defaults(func=cmd_estimate_fee)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    args = build_parser().parse_args(argv)
    result = args.func(args)
    if asyncio.iscoroutine(result):
        result = asyncio.run(result)
    return result
