from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from datetime import datetime, timezone

from ingestion.redemption_rate.source import ERC4626RpcSource
from oracle_relay.exceptions.core import ConfigError, FatalError
from oracle_relay.runtime.relay import Relay
from oracle_relay.submission.loader import SubmitterLoader
from oracle_relay.utils.config import RelayConfig, load_config
from oracle_relay.utils.logger import get_logger, init_logging, log_error, log_info

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2

logger = get_logger(__name__)


def _make_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"relay-{ts}-{uuid.uuid4().hex[:6]}"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="run_relay",
        description="Relay ERC-4626 redemption rates into a CosmWasm oracle contract.",
    )
    p.add_argument("-c", "--config", required=True, help="path to the relay JSON config")
    p.add_argument("--logging", default="configs/logging.json", help="path to the logging profiles JSON")
    p.add_argument("--profile", default=None, help="logging profile (defaults to the file's active_profile)")
    p.add_argument("--dry-run", action="store_true", help="log set_price messages instead of broadcasting")
    return p


def build_relay(cfg: RelayConfig, *, dry_run: bool = False) -> Relay:
    source = ERC4626RpcSource(rpc_url=cfg.ethereum_rpc_url)
    submitter = SubmitterLoader.from_config(cfg, dry_run=dry_run)
    # resolve the wallet up front so a bad key fails before the first tick
    address = getattr(submitter, "address", None)
    if callable(address):
        address()
    return Relay(cfg=cfg, source=source, submitter=submitter)


async def _run(cfg: RelayConfig, *, dry_run: bool) -> None:
    relay = build_relay(cfg, dry_run=dry_run)
    await relay.run()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if not args.config:
        print("config file path is required", file=sys.stderr)
        return EXIT_CONFIG

    init_logging(args.logging, run_id=_make_run_id(), mode=args.profile)

    try:
        cfg = load_config(args.config)
    except ConfigError as exc:
        log_error(logger, "relay.config_error", path=args.config, err=str(exc))
        return EXIT_CONFIG

    log_info(logger, "relay.config_loaded", path=args.config, assets=len(cfg.assets), dry_run=args.dry_run)

    try:
        asyncio.run(_run(cfg, dry_run=args.dry_run))
    except ConfigError as exc:
        log_error(logger, "relay.config_error", path=args.config, err=str(exc))
        return EXIT_CONFIG
    except FatalError:
        # already reported as relay.fatal_error
        return EXIT_FATAL
    except Exception as exc:
        log_error(logger, "relay.fatal_error", err_type=type(exc).__name__, err=str(exc))
        return EXIT_FATAL
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
