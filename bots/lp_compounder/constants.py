#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Global constants for the LP compounder.

Keeps the protocol constants (fee rate, retry budget, default transaction
counts) in one place so the orchestrator, scheduler and yield model agree.
"""

from decimal import Decimal

# === Time Constants ===
SECONDS_PER_YEAR = 31_536_000

# Idle loop: recompute gas/yield every 5 minutes, tick once per second
IDLE_RECOMPUTE_SECONDS = 300
IDLE_TICK_SECONDS = 1.0

# Durations in the cycle-state record are stored as 100ns ticks
TICKS_PER_SECOND = 10_000_000

# Receipt polling interval while a transaction is in flight
RECEIPT_POLL_SECONDS = 1.0

# Seconds per block used for per-block emission farms
BLOCK_TIME_SECONDS = 3

# === Retry Constants ===
MAX_RETRIES = 20
RETRY_DELAY_SECONDS = 5.0

# === Fee Constants ===
DEV_FEE_PERCENT = Decimal("1.0")
DEV_ADDRESS = "0x9172ff7884cefed19327adace9c470ef1796105c"

# === Ethereum Constants ===
WEI_PER_ETHER = 10**18
WEI_PER_GWEI = 10**9

# Wrapped-native withdrawals emit a Transfer to the zero address
BURN_ADDRESS = "0x0000000000000000000000000000000000000000"

# Smallest reward amount (base units) worth continuing a cycle with
REWARD_EPSILON = 1

# Gas limit headroom applied on top of estimate_gas
GAS_LIMIT_MULTIPLIER = Decimal("1.2")

# === Allowance Policy ===
# Skip approve while allowance covers twice the amount, otherwise approve 5x
APPROVE_SKIP_FACTOR = 2
APPROVE_FACTOR = 5

# === Liquidity Constants ===
# Minimum amounts accepted by addLiquidity, as percentage of desired
LIQUIDITY_MIN_PERCENT = 50

# Tax-free liquidity scales desired amounts down to absorb transfer tax
TAX_FREE_DESIRED_PERCENT = 95

# The tax office only supports pairs against TOMB
TOMB_TOKEN = "0x6c021ae822bea943b2e66552bde1d2696a53fbb7"

# === Transaction Count Defaults ===
# Seed for gas reserve sizing before a cycle has been measured
DEFAULT_TXN_COUNT = 8
TAX_FREE_TXN_COUNT = 9
ZAP_TXN_COUNT = 12

# The tax office transfers both tokens in before minting, accounted as two
TAX_FREE_TXNS_PER_ATTEMPT = 2

# A zap call is accounted as swap + swap + add liquidity
ZAP_TXNS_PER_ATTEMPT = 3

# === Yield Model ===
# Compounding more often than the idle recompute cadence is never scheduled
MAX_COMPOUNDS_PER_YEAR = SECONDS_PER_YEAR // IDLE_RECOMPUTE_SECONDS

# Precision used for Decimal valuation math
DECIMAL_PRECISION = 50

# === Exit Codes ===
EXIT_INVALID_SETTINGS = 2
EXIT_WALLET_MISMATCH = 3
EXIT_FARM_MISCONFIGURED = 4
EXIT_PAIR_CHECK_FAILED = 5
EXIT_SETTINGS_MISSING = 11
EXIT_RUN_LOCKED = 12
