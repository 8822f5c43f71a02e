#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Immutable snapshots for the reporting surface.

Producers build a complete frozen object and publish it by replacing a single
reference on :class:`SnapshotBoard`; readers therefore never observe a
partially recomputed position or estimate.
"""

from __future__ import annotations

import json
import os
import time
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

from logging_config import recent_logs
from yield_model import YieldEstimate

ZERO = Decimal(0)


@dataclass(frozen=True)
class ValueUnit:
    value: Decimal = ZERO
    symbol: str = ""


@dataclass(frozen=True)
class TokenValue:
    """One amount seen in token units, chain-native units and fiat units."""

    value: ValueUnit = field(default_factory=ValueUnit)
    chain_value: ValueUnit = field(default_factory=ValueUnit)
    fiat_value: ValueUnit = field(default_factory=ValueUnit)

    @classmethod
    def of(
        cls,
        amount: Decimal,
        symbol: str,
        native_price: Decimal,
        native_symbol: str,
        fiat_price: Decimal,
        fiat_symbol: str = "USD",
    ) -> "TokenValue":
        chain_amount = amount * native_price
        return cls(
            value=ValueUnit(amount, symbol),
            chain_value=ValueUnit(chain_amount, native_symbol),
            fiat_value=ValueUnit(chain_amount * fiat_price, fiat_symbol),
        )


@dataclass(frozen=True)
class Position:
    deposit: TokenValue
    underlying_a: TokenValue
    underlying_b: TokenValue
    pending_reward: TokenValue
    reward_unit: TokenValue
    token_a_unit: TokenValue
    token_b_unit: TokenValue
    updated_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class SchedulerSnapshot:
    state: str
    last_compound_at: Optional[float] = None
    last_duration_seconds: float = 0.0
    next_run_at: Optional[float] = None
    gas_cost_per_txn: int = 0
    txn_count: int = 0
    last_status: Optional[str] = None
    updated_at: float = field(default_factory=time.time)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class SnapshotBoard:
    """Latest published snapshots of one instance."""

    def __init__(self, instance_name: str, path: Optional[Path] = None):
        self.instance_name = instance_name
        self.path = path
        self.position: Optional[Position] = None
        self.estimate: Optional[YieldEstimate] = None
        self.scheduler: Optional[SchedulerSnapshot] = None

    def publish_position(self, position: Position) -> None:
        self.position = position

    def publish_estimate(self, estimate: YieldEstimate) -> None:
        self.estimate = estimate

    def publish_scheduler(self, snapshot: SchedulerSnapshot) -> None:
        self.scheduler = snapshot
        self.flush()

    def view(self, log_lines: int = 50) -> Dict[str, Any]:
        # Read each reference once so the view is built from published objects only
        position, estimate, scheduler = self.position, self.estimate, self.scheduler
        return _jsonable({
            "instance": self.instance_name,
            "position": asdict(position) if position else None,
            "yield": asdict(estimate) if estimate else None,
            "scheduler": asdict(scheduler) if scheduler else None,
            "recent_logs": recent_logs.lines(log_lines),
        })

    def flush(self) -> None:
        """Write the view atomically to ``path`` for out-of-process readers."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(self.view(), indent=2), encoding="utf-8")
        os.replace(tmp, self.path)


def snapshot_path(base_dir: Path, instance_name: str) -> Path:
    return base_dir / f"snapshot_{instance_name}.json"


def load_snapshot(path: Path) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return None
