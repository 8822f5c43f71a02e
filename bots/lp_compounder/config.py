#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Instance settings: JSON file with ``${ENV}`` placeholders.

The private key is never stored in the file; ``wallet.private_key_env`` names
the environment variable (usually provided through ``.env``) that holds it.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from constants import (
    DEV_ADDRESS,
    DEV_FEE_PERCENT,
    EXIT_INVALID_SETTINGS,
    EXIT_SETTINGS_MISSING,
    MAX_RETRIES,
    RETRY_DELAY_SECONDS,
    WEI_PER_GWEI,
)
from input_validation import (
    normalize_address,
    validate_decimals,
    validate_ethereum_address,
    validate_instance_name,
    validate_non_negative,
    validate_percentage,
)
from tx_errors import FatalConfigError

BASE_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG_PATH = BASE_DIR / "config.json"

MIN_SLIPPAGE = Decimal("0.1")
TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
FALSE_STRINGS = frozenset({"false", "0", "no", "off", ""})


def _resolve_env(value: Any) -> Any:
    """Expand ``${VAR}`` recursively; unresolved placeholders become ''."""
    if isinstance(value, str):
        resolved = os.path.expandvars(value)
        if resolved.startswith("${") and resolved.endswith("}"):
            return ""
        return resolved
    if isinstance(value, dict):
        return {k: _resolve_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env(v) for v in value]
    return value


def _decimal(raw: Dict[str, Any], key: str, default: str) -> Decimal:
    value = raw.get(key, default)
    if value in (None, ""):
        value = default
    return Decimal(str(value))


def _int(raw: Dict[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    if value in (None, ""):
        return default
    return int(value)


def _bool(raw: Dict[str, Any], key: str, default: bool) -> bool:
    """Flags may arrive as strings once ``${VAR}`` placeholders are expanded."""
    value = raw.get(key, default)
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    raise ValueError(f"{key} must be a boolean, got {value!r}")


def _telegram(raw: Dict[str, Any]) -> Dict[str, Any]:
    conf = dict(raw)
    conf["enabled"] = _bool(conf, "enabled", False)
    return conf


def _optional_address(raw: Dict[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


@dataclass
class WalletSettings:
    address: str
    private_key_env: str = "COMPOUNDER_PRIVATE_KEY"

    def private_key(self) -> str:
        key = os.getenv(self.private_key_env, "").strip()
        if not key:
            raise FatalConfigError(
                f"Private key missing: set {self.private_key_env}",
                exit_code=EXIT_INVALID_SETTINGS,
            )
        return key


@dataclass
class LiquidityPoolSettings:
    token_a: str
    token_b: str
    lp: str
    factory: str
    router: str
    token_a_decimals: int = 18
    token_b_decimals: int = 18
    lp_decimals: int = 18
    slippage: Decimal = Decimal("1.0")
    token_a_offset: Decimal = Decimal("0")
    token_b_offset: Decimal = Decimal("0")
    zap: Optional[str] = None
    tax_free: Optional[str] = None


@dataclass
class FarmSettings:
    farm_type: str
    farm_contract: str
    reward_contract: str
    reward_decimals: int = 18
    pool_id: int = 0
    process_all_rewards: bool = False


@dataclass
class CompounderSettings:
    name: str
    rpc_url: str
    weth_contract: str
    wallet: WalletSettings
    liquidity_pool: LiquidityPoolSettings
    farm: FarmSettings
    rpc_timeout: int = 120
    gas_price_offset_gwei: Decimal = Decimal("0")
    fixed_gas_price_gwei: Decimal = Decimal("0")
    min_gas_price_gwei: Decimal = Decimal("0")
    gas_symbol: str = "ETH"
    usd_contract: Optional[str] = None
    usd_decimals: int = 6
    dev_fee_address: str = DEV_ADDRESS
    dev_fee_percent: Decimal = DEV_FEE_PERCENT
    max_retries: int = MAX_RETRIES
    retry_delay_seconds: float = RETRY_DELAY_SECONDS
    log_all: bool = False
    log_retention_days: int = 30
    data_dir: Path = BASE_DIR
    log_dir: Path = BASE_DIR / "logs"
    telegram: Dict[str, object] = field(default_factory=dict)

    @staticmethod
    def load(path: Path) -> "CompounderSettings":
        """Load and validate settings.

        Raises:
            FatalConfigError: exit code 11 when the file is missing,
                2 when it cannot be parsed or fails validation
        """
        if not path.exists():
            raise FatalConfigError(f"Settings file not found: {path}", exit_code=EXIT_SETTINGS_MISSING)
        try:
            with path.open(encoding="utf-8") as fh:
                raw = json.load(fh)
        except json.JSONDecodeError as exc:
            raise FatalConfigError(f"Invalid JSON in {path}: {exc}", exit_code=EXIT_INVALID_SETTINGS) from exc
        try:
            settings = CompounderSettings.from_dict(_resolve_env(raw), base_dir=path.parent)
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise FatalConfigError(f"Invalid settings in {path}: {exc!r}", exit_code=EXIT_INVALID_SETTINGS) from exc
        settings.validate()
        return settings.normalized()

    @staticmethod
    def from_dict(raw: Dict[str, Any], base_dir: Path = BASE_DIR) -> "CompounderSettings":
        wallet_raw = raw["wallet"]
        pool_raw = raw["liquidity_pool"]
        farm_raw = raw["farm"]
        dev_raw = raw.get("dev_fee") or {}
        retry_raw = raw.get("retry") or {}

        data_dir = Path(raw.get("data_dir") or base_dir).expanduser()
        log_dir = Path(raw.get("log_dir") or data_dir / "logs").expanduser()

        return CompounderSettings(
            name=str(raw["name"]).strip(),
            rpc_url=str(raw["rpc_url"]).strip(),
            rpc_timeout=_int(raw, "rpc_timeout", 120),
            weth_contract=str(raw["weth_contract"]).strip(),
            usd_contract=_optional_address(raw, "usd_contract"),
            usd_decimals=_int(raw, "usd_decimals", 6),
            gas_price_offset_gwei=_decimal(raw, "gas_price_offset_gwei", "0"),
            fixed_gas_price_gwei=_decimal(raw, "fixed_gas_price_gwei", "0"),
            min_gas_price_gwei=_decimal(raw, "min_gas_price_gwei", "0"),
            gas_symbol=str(raw.get("gas_symbol") or "ETH"),
            wallet=WalletSettings(
                address=str(wallet_raw["address"]).strip(),
                private_key_env=str(wallet_raw.get("private_key_env") or "COMPOUNDER_PRIVATE_KEY"),
            ),
            liquidity_pool=LiquidityPoolSettings(
                token_a=str(pool_raw["token_a"]).strip(),
                token_b=str(pool_raw["token_b"]).strip(),
                lp=str(pool_raw["lp"]).strip(),
                factory=str(pool_raw["factory"]).strip(),
                router=str(pool_raw["router"]).strip(),
                token_a_decimals=_int(pool_raw, "token_a_decimals", 18),
                token_b_decimals=_int(pool_raw, "token_b_decimals", 18),
                lp_decimals=_int(pool_raw, "lp_decimals", 18),
                slippage=_decimal(pool_raw, "slippage", "1.0"),
                token_a_offset=_decimal(pool_raw, "token_a_offset", "0"),
                token_b_offset=_decimal(pool_raw, "token_b_offset", "0"),
                zap=_optional_address(pool_raw, "zap"),
                tax_free=_optional_address(pool_raw, "tax_free"),
            ),
            farm=FarmSettings(
                farm_type=str(farm_raw["farm_type"]).strip(),
                farm_contract=str(farm_raw["farm_contract"]).strip(),
                reward_contract=str(farm_raw["reward_contract"]).strip(),
                reward_decimals=_int(farm_raw, "reward_decimals", 18),
                pool_id=_int(farm_raw, "pool_id", 0),
                process_all_rewards=_bool(farm_raw, "process_all_rewards", False),
            ),
            dev_fee_address=str(dev_raw.get("address") or DEV_ADDRESS).strip(),
            dev_fee_percent=_decimal(dev_raw, "percent", str(DEV_FEE_PERCENT)),
            max_retries=_int(retry_raw, "max_retries", MAX_RETRIES),
            retry_delay_seconds=float(retry_raw.get("delay_seconds", RETRY_DELAY_SECONDS)),
            log_all=_bool(raw, "log_all", False),
            log_retention_days=_int(raw, "log_retention_days", 30),
            data_dir=data_dir,
            log_dir=log_dir,
            telegram=_telegram(raw.get("telegram") or {}),
        )

    def validation_errors(self) -> List[str]:
        errors: List[str] = []
        if not validate_instance_name(self.name):
            errors.append(f"name '{self.name}' must be 1-64 chars of [A-Za-z0-9._-]")
        if not self.rpc_url:
            errors.append("rpc_url is required")
        if self.rpc_timeout <= 0:
            errors.append("rpc_timeout must be positive")

        addresses = {
            "weth_contract": self.weth_contract,
            "wallet.address": self.wallet.address,
            "liquidity_pool.token_a": self.liquidity_pool.token_a,
            "liquidity_pool.token_b": self.liquidity_pool.token_b,
            "liquidity_pool.lp": self.liquidity_pool.lp,
            "liquidity_pool.factory": self.liquidity_pool.factory,
            "liquidity_pool.router": self.liquidity_pool.router,
            "farm.farm_contract": self.farm.farm_contract,
            "farm.reward_contract": self.farm.reward_contract,
            "dev_fee.address": self.dev_fee_address,
        }
        optional = {
            "usd_contract": self.usd_contract,
            "liquidity_pool.zap": self.liquidity_pool.zap,
            "liquidity_pool.tax_free": self.liquidity_pool.tax_free,
        }
        addresses.update({k: v for k, v in optional.items() if v is not None})
        for label, value in addresses.items():
            if not validate_ethereum_address(value):
                errors.append(f"{label} is not a valid address: {value!r}")

        for label, value in {
            "gas_price_offset_gwei": self.gas_price_offset_gwei,
            "fixed_gas_price_gwei": self.fixed_gas_price_gwei,
            "min_gas_price_gwei": self.min_gas_price_gwei,
        }.items():
            if not validate_non_negative(value):
                errors.append(f"{label} must be >= 0")

        pool = self.liquidity_pool
        if not validate_percentage(pool.slippage, minimum=MIN_SLIPPAGE, maximum=Decimal("100")):
            errors.append(f"liquidity_pool.slippage must be between {MIN_SLIPPAGE} and 100")
        for label, value in {
            "liquidity_pool.token_a_offset": pool.token_a_offset,
            "liquidity_pool.token_b_offset": pool.token_b_offset,
        }.items():
            if not validate_percentage(value, minimum=Decimal("-100"), maximum=Decimal("1000")):
                errors.append(f"{label} must be between -100 and 1000")
        if not validate_percentage(self.dev_fee_percent):
            errors.append("dev_fee.percent must be between 0 and 100")

        for label, value in {
            "liquidity_pool.token_a_decimals": pool.token_a_decimals,
            "liquidity_pool.token_b_decimals": pool.token_b_decimals,
            "liquidity_pool.lp_decimals": pool.lp_decimals,
            "farm.reward_decimals": self.farm.reward_decimals,
            "usd_decimals": self.usd_decimals,
        }.items():
            if not validate_decimals(value):
                errors.append(f"{label} must be an integer between 0 and 36")

        if self.farm.pool_id < 0:
            errors.append("farm.pool_id must be >= 0")
        if self.max_retries < 1:
            errors.append("retry.max_retries must be >= 1")
        if self.retry_delay_seconds < 0:
            errors.append("retry.delay_seconds must be >= 0")
        return errors

    def validate(self) -> None:
        errors = self.validation_errors()
        if errors:
            raise FatalConfigError(
                "Invalid settings:\n  " + "\n  ".join(errors),
                exit_code=EXIT_INVALID_SETTINGS,
            )

    def normalized(self) -> "CompounderSettings":
        """Return a copy with every address checksummed."""
        def opt(address: Optional[str]) -> Optional[str]:
            return normalize_address(address) if address else None

        pool = self.liquidity_pool
        return replace(
            self,
            weth_contract=normalize_address(self.weth_contract),
            usd_contract=opt(self.usd_contract),
            dev_fee_address=normalize_address(self.dev_fee_address),
            wallet=replace(self.wallet, address=normalize_address(self.wallet.address)),
            liquidity_pool=replace(
                pool,
                token_a=normalize_address(pool.token_a),
                token_b=normalize_address(pool.token_b),
                lp=normalize_address(pool.lp),
                factory=normalize_address(pool.factory),
                router=normalize_address(pool.router),
                zap=opt(pool.zap),
                tax_free=opt(pool.tax_free),
            ),
            farm=replace(
                self.farm,
                farm_contract=normalize_address(self.farm.farm_contract),
                reward_contract=normalize_address(self.farm.reward_contract),
            ),
            telegram=dict(self.telegram),
        )

    def gas_price_policy(self) -> "GasPricePolicy":
        return GasPricePolicy(
            fixed_wei=_gwei_to_wei(self.fixed_gas_price_gwei),
            offset_wei=_gwei_to_wei(self.gas_price_offset_gwei),
            floor_wei=_gwei_to_wei(self.min_gas_price_gwei),
        )

    def describe(self) -> Dict[str, object]:
        """Settings summary safe to log (no secrets)."""
        return {
            "name": self.name,
            "farm_type": self.farm.farm_type,
            "farm": self.farm.farm_contract,
            "pool_id": self.farm.pool_id,
            "lp": self.liquidity_pool.lp,
            "router": self.liquidity_pool.router,
            "zap": self.liquidity_pool.zap,
            "tax_free": self.liquidity_pool.tax_free,
            "wallet": self.wallet.address,
            "slippage": str(self.liquidity_pool.slippage),
            "rpc_timeout": self.rpc_timeout,
        }


def _gwei_to_wei(value: Decimal) -> int:
    return int(value * WEI_PER_GWEI)


@dataclass(frozen=True)
class GasPricePolicy:
    """Fixed override if set, otherwise ``max(live + offset, floor)``."""

    fixed_wei: int = 0
    offset_wei: int = 0
    floor_wei: int = 0

    def resolve(self, live_wei: int) -> int:
        if self.fixed_wei > 0:
            return self.fixed_wei
        return max(live_wei + self.offset_wei, self.floor_wei)
