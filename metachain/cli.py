import argparse
import asyncio
import json
import logging
import os
from dataclasses import replace

from .config import IndexerConfig
from .indexer import Indexer
from .rpc import RpcChain
from .store import BlockStore
from .wallet import Wallet


def parse_amount(text: str) -> int:
    try:
        val = int(text)
    except ValueError as exc:
        raise SystemExit(f"Invalid amount: {text}") from exc
    if val <= 0:
        raise SystemExit("Amount must be > 0")
    return val


def _load_config(args: argparse.Namespace) -> IndexerConfig:
    try:
        config = IndexerConfig.from_env(args.data_dir)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc
    if getattr(args, "start_height", None) is not None:
        config = replace(config, start_height=args.start_height)
    if getattr(args, "rpc", None):
        config = replace(config, rpc_url=args.rpc)
    return config


async def _run_indexer(config: IndexerConfig) -> None:
    store = BlockStore(config.block_db_path)
    node = RpcChain(
        config.rpc_url,
        token=config.rpc_token,
        timeout=config.rpc_timeout,
        poll_interval=config.poll_interval,
    )
    indexer = Indexer(node, store, config)
    try:
        await asyncio.gather(node.run(), indexer.run())
    finally:
        store.close()


def cmd_run(args: argparse.Namespace) -> None:
    config = _load_config(args)
    logging.getLogger(__name__).info(
        "Indexing %s from height %d into %s", config.rpc_url, config.start_height, config.block_db_path
    )
    try:
        asyncio.run(_run_indexer(config))
    except KeyboardInterrupt:
        pass


def cmd_create_wallet(args: argparse.Namespace) -> None:
    wallet = Wallet.create()
    dir_name = os.path.dirname(args.wallet)
    if dir_name:
        os.makedirs(dir_name, exist_ok=True)
    wallet.save(args.wallet)
    print("Wallet created")
    print("Address:", wallet.address)


def cmd_address(args: argparse.Namespace) -> None:
    wallet = Wallet.load(args.wallet)
    print(wallet.address)


def cmd_burn(args: argparse.Namespace) -> None:
    config = _load_config(args)
    wallet = Wallet.load(args.wallet)
    tx = wallet.burn_tx(
        args.burn_address or config.burn_address,
        parse_amount(args.amount),
        prefix=config.opcode_prefix,
        fee=args.fee,
        validity_start_height=args.validity_start_height,
    )
    print(json.dumps({"txid": tx.txid, "tx": tx.to_dict()}, indent=2))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="metachain")
    p.add_argument("--data-dir", default=None)
    p.add_argument("--log-level", default=os.getenv("METACHAIN_LOG_LEVEL", "INFO"))
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("run", help="index a node over JSON-RPC and replay protocol commands")
    s.add_argument("--rpc", help="node JSON-RPC url")
    s.add_argument("--start-height", type=int)
    s.set_defaults(func=cmd_run)

    s = sub.add_parser("create-wallet")
    s.add_argument("--wallet", required=True)
    s.set_defaults(func=cmd_create_wallet)

    s = sub.add_parser("address")
    s.add_argument("--wallet", required=True)
    s.set_defaults(func=cmd_address)

    s = sub.add_parser("burn", help="print a signed burn transaction")
    s.add_argument("--wallet", required=True)
    s.add_argument("--amount", required=True, help="value in the smallest unit")
    s.add_argument("--burn-address")
    s.add_argument("--fee", type=int, default=0)
    s.add_argument("--validity-start-height", type=int, default=0)
    s.set_defaults(func=cmd_burn)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    logging.basicConfig(
        level=str(args.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
