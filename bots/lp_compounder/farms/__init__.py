"""Farm registry keyed by the configured farm type."""

from __future__ import annotations

from typing import Dict, Type

from constants import EXIT_FARM_MISCONFIGURED
from tx_errors import FatalConfigError

from .base import Farm, RewardCheck, parse_farm_symbols
from .moma import MomaFarm
from .tomb import TombFarm
from .yel import YelFarm

FARM_TYPES: Dict[str, Type[Farm]] = {
    cls.farm_type: cls for cls in (YelFarm, TombFarm, MomaFarm)
}


def get_farm_class(farm_type: str) -> Type[Farm]:
    cls = FARM_TYPES.get(farm_type)
    if cls is None:
        supported = ", ".join(sorted(FARM_TYPES))
        raise FatalConfigError(
            f"Invalid farm type '{farm_type}' (supported: {supported})",
            exit_code=EXIT_FARM_MISCONFIGURED,
        )
    return cls


def build_farm(chain, settings, router, board=None) -> Farm:
    return get_farm_class(settings.farm.farm_type)(chain, settings, router, board)


__all__ = [
    "FARM_TYPES",
    "Farm",
    "MomaFarm",
    "RewardCheck",
    "TombFarm",
    "YelFarm",
    "build_farm",
    "get_farm_class",
    "parse_farm_symbols",
]
