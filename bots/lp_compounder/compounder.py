#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""LP Compounder: harvest farm rewards, convert them to LP and restake, on an optimal schedule.

Usage::

    python compounder.py --config config.json            # run until SIGINT/SIGTERM
    python compounder.py --config config.json --once     # one cycle now
    python compounder.py --config config.json --print-status
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from dotenv import load_dotenv

from chain import ChainClient
from config import DEFAULT_CONFIG_PATH, CompounderSettings
from constants import EXIT_RUN_LOCKED
from cycle_state import CycleState, state_path
from factory import verify_pair
from farms import build_farm, parse_farm_symbols
from logging_config import configure_logging, get_logger, instance_log_path
from notify import TelegramNotifier
from orchestrator import CompoundingOrchestrator
from retry_policy import RetryConfig
from router import build_router
from run_lock import RunLockError, acquire_run_lock
from scheduler import Scheduler
from snapshot import SnapshotBoard, load_snapshot, snapshot_path
from terminate import TerminateSignal
from token_asset import ERC20Token
from tx_errors import FatalConfigError

logger = get_logger(__name__)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Auto-compound an LP farm position or show the current status.",
    )
    parser.add_argument(
        "--config",
        dest="config",
        default=str(DEFAULT_CONFIG_PATH),
        help="Path of the JSON settings file (default: %(default)s)",
    )
    parser.add_argument(
        "--print-status",
        action="store_true",
        help="Print the last published snapshot and exit",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single compounding cycle now and exit",
    )
    return parser.parse_args(argv)


def _fmt_ts(ts: Optional[float]) -> str:
    if not ts:
        return "n/a"
    return datetime.fromtimestamp(float(ts)).isoformat(sep=" ", timespec="seconds")


def _fmt_value(entry: Optional[Dict[str, Any]]) -> str:
    if not entry:
        return "n/a"
    parts = []
    for key in ("value", "chain_value", "fiat_value"):
        unit = entry.get(key) or {}
        if unit.get("symbol"):
            parts.append(f"{unit.get('value')} {unit.get('symbol')}")
    return " | ".join(parts) or "n/a"


def print_status(
    settings: Optional[CompounderSettings],
    snapshot: Optional[Dict[str, Any]],
    *,
    config_path: Path,
    config_error: Optional[str] = None,
) -> None:
    print("📊 LP Compounder - current status")
    if config_error:
        print(f"• Config: {config_path} (⚠️ {config_error})")
    else:
        print(f"• Config: {config_path}")

    if settings is not None:
        print(f"• Instance: {settings.name} | farm {settings.farm.farm_type} pool {settings.farm.pool_id}")
        strategy = "zap" if settings.liquidity_pool.zap else (
            "tax free" if settings.liquidity_pool.tax_free else "swap + add liquidity"
        )
        print(f"• Strategy: {strategy} | slippage {settings.liquidity_pool.slippage}%")

    if snapshot is None:
        print("• No snapshot published yet")
        return

    scheduler = snapshot.get("scheduler") or {}
    print(
        f"• Scheduler: {scheduler.get('state', 'n/a')} | last status {scheduler.get('last_status') or 'n/a'}"
    )
    print(f"  └─ Last compound: {_fmt_ts(scheduler.get('last_compound_at'))}"
          f" ({scheduler.get('last_duration_seconds', 0)}s)")
    print(f"  └─ Next compound: {_fmt_ts(scheduler.get('next_run_at'))}")
    print(f"  └─ Txn count {scheduler.get('txn_count', 0)} | gas/txn {scheduler.get('gas_cost_per_txn', 0)} wei")

    estimate = snapshot.get("yield")
    if estimate:
        print(
            f"• APR {estimate['apr']}% | optimal APY {estimate['optimal_apy']}%"
            f" | {estimate['optimal_compounds_per_year']} compounds/year"
        )

    position = snapshot.get("position")
    if position:
        print(f"• Deposit: {_fmt_value(position.get('deposit'))}")
        print(f"  └─ {_fmt_value(position.get('underlying_a'))}")
        print(f"  └─ {_fmt_value(position.get('underlying_b'))}")
        print(f"• Pending reward: {_fmt_value(position.get('pending_reward'))}")

    logs = snapshot.get("recent_logs") or []
    if logs:
        print("• Recent log:")
        for line in logs[-10:]:
            print(f"  {line}")


def build_scheduler(settings: CompounderSettings, terminate: TerminateSignal) -> Scheduler:
    """Wire chain client, tokens, router, farm and orchestrator for one instance."""
    chain = ChainClient.from_settings(settings)
    logger.info("Connected to chain %s as %s", chain.chain_id, chain.address)

    pool = settings.liquidity_pool
    symbol_a, symbol_b, symbol_reward = parse_farm_symbols(settings.farm.farm_type)
    reward = ERC20Token(chain, settings.farm.reward_contract, settings.farm.reward_decimals, symbol_reward)
    token_a = ERC20Token(chain, pool.token_a, pool.token_a_decimals, symbol_a)
    token_b = ERC20Token(chain, pool.token_b, pool.token_b_decimals, symbol_b)
    lp = ERC20Token(chain, pool.lp, pool.lp_decimals, f"{symbol_a}-{symbol_b} LP")

    verify_pair(chain, pool.factory, token_a.address, token_b.address, lp.address)

    board = SnapshotBoard(settings.name, snapshot_path(settings.data_dir, settings.name))
    router = build_router(chain, settings, reward, token_a, token_b, lp)
    farm = build_farm(chain, settings, router, board)

    orchestrator = CompoundingOrchestrator(
        farm,
        router,
        reward,
        CycleState(last_process_txn_count=router.default_txn_count),
        terminate,
        retry=RetryConfig(max_retries=settings.max_retries, delay_seconds=settings.retry_delay_seconds),
        dev_fee_address=settings.dev_fee_address,
        dev_fee_percent=settings.dev_fee_percent,
        gas_symbol=settings.gas_symbol,
    )
    return Scheduler(
        orchestrator,
        farm,
        state_path(settings.data_dir, settings.name),
        terminate,
        board=board,
        notifier=TelegramNotifier(settings.telegram),
        instance_name=settings.name,
    )


def _run(args: argparse.Namespace) -> None:
    config_path = Path(args.config).expanduser()

    if args.print_status:
        settings: Optional[CompounderSettings] = None
        config_error: Optional[str] = None
        try:
            settings = CompounderSettings.load(config_path)
        except FatalConfigError as exc:
            config_error = str(exc)
        snapshot = None
        if settings is not None:
            snapshot = load_snapshot(snapshot_path(settings.data_dir, settings.name))
        print_status(settings, snapshot, config_path=config_path, config_error=config_error)
        return

    settings = CompounderSettings.load(config_path)
    configure_logging(
        level="DEBUG" if settings.log_all else logging.getLevelName(logging.getLogger().level),
        log_file=instance_log_path(settings.log_dir, settings.name),
        retention_days=settings.log_retention_days,
    )
    logger.info("Starting instance %s: %s", settings.name, settings.describe())

    terminate = TerminateSignal()
    terminate.install_handlers()

    with acquire_run_lock(settings.data_dir, settings.name):
        scheduler = build_scheduler(settings, terminate)
        if args.once:
            report = scheduler.run_once()
            logger.info("Single cycle finished: %s", report.summary())
        else:
            scheduler.run_forever()


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)

    load_dotenv()

    try:
        _run(args)
    except FatalConfigError as exc:
        logger.critical("%s (exit code %d)", exc, exc.exit_code)
        logging.shutdown()
        sys.exit(exc.exit_code)
    except RunLockError as exc:
        logger.error("⚠️ %s", exc)
        logging.shutdown()
        sys.exit(EXIT_RUN_LOCKED)


if __name__ == "__main__":
    main()
