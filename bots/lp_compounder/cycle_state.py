#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Rolling cycle state and its 16-byte on-disk record.

Record layout (little-endian, signed)::

    int64 last compound time (unix seconds) | int64 last cycle duration (100ns ticks)

A missing or wrong-length file means there is no prior state and the first
cycle runs immediately.
"""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from constants import DEFAULT_TXN_COUNT, TICKS_PER_SECOND
from logging_config import get_logger

logger = get_logger(__name__)

RECORD = struct.Struct("<qq")
RECORD_SIZE = RECORD.size


@dataclass(frozen=True)
class CycleRecord:
    timestamp: int
    duration_ticks: int

    @property
    def duration_seconds(self) -> float:
        return self.duration_ticks / TICKS_PER_SECOND

    @classmethod
    def from_seconds(cls, timestamp: float, duration_seconds: float) -> "CycleRecord":
        return cls(
            timestamp=int(timestamp),
            duration_ticks=int(round(duration_seconds * TICKS_PER_SECOND)),
        )


def encode_record(record: CycleRecord) -> bytes:
    return RECORD.pack(record.timestamp, record.duration_ticks)


def decode_record(data: bytes) -> Optional[CycleRecord]:
    if len(data) != RECORD_SIZE:
        return None
    timestamp, ticks = RECORD.unpack(data)
    return CycleRecord(timestamp=timestamp, duration_ticks=ticks)


def state_path(base_dir: Path, instance_name: str) -> Path:
    return base_dir / f"state_{instance_name}"


def load_record(path: Path) -> Optional[CycleRecord]:
    """Read the record; anything unreadable counts as no prior state."""
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("Cannot read cycle state %s: %s", path, exc)
        return None
    record = decode_record(data)
    if record is None:
        logger.warning("Ignoring cycle state %s: expected %d bytes, got %d", path, RECORD_SIZE, len(data))
    return record


def save_record(path: Path, record: CycleRecord) -> None:
    """Write the record atomically (temp file + replace)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("wb") as fh:
        fh.write(encode_record(record))
        fh.flush()
        os.fsync(fh.fileno())
    os.replace(tmp, path)


@dataclass
class CycleState:
    """State carried from one cycle to the next, owned by the scheduler."""

    estimated_gas_cost_per_txn: int = 0
    last_process_txn_count: int = DEFAULT_TXN_COUNT
    last_compound_timestamp: Optional[float] = None
    last_process_duration: float = 0.0

    def gas_reserve(self) -> int:
        """Native amount reserved for the next cycle's transactions (wei)."""
        return self.estimated_gas_cost_per_txn * self.last_process_txn_count

    def restore(self, record: Optional[CycleRecord]) -> bool:
        """Adopt a persisted record; return True if it marks a past compound."""
        if record is None or record.timestamp <= 0:
            return False
        self.last_compound_timestamp = float(record.timestamp)
        self.last_process_duration = record.duration_seconds
        return True

    def to_record(self) -> CycleRecord:
        return CycleRecord.from_seconds(
            self.last_compound_timestamp or 0.0,
            self.last_process_duration,
        )
