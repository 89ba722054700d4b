"""
Stock breakdown: express a base-unit stock count in a product's larger units
"""
import math
from decimal import Decimal
from typing import Iterable

from models import UnitConversion

BASE_UNIT_LABEL = "Base Unit"


def _ordered(conversions: Iterable[UnitConversion]) -> list[UnitConversion]:
    return sorted(conversions, key=lambda c: (-Decimal(c.conversion_factor), c.unit_name))


def breakdown(total_stock_in_base: int, conversions: Iterable[UnitConversion], truncate_factor: bool = False) -> list[tuple[int, str]]:
    """Greedy decomposition of ``total_stock_in_base`` over the given units, largest first.

    17 pieces with units Dozen (12) and Pcs (1) gives ``[(1, "Dozen"), (5, "Pcs")]``.
    The decomposition is only guaranteed to be exact when the factors are
    nested multiples of each other (1, 12, 144 ...).

    With ``truncate_factor`` the remainder is taken modulo the factor cut down
    to an integer, which matches figures produced by older releases for
    fractional factors.
    """
    units = _ordered(conversions)
    if not units:
        return [(total_stock_in_base, BASE_UNIT_LABEL)]

    parts: list[tuple[int, str]] = []
    remainder = Decimal(total_stock_in_base)
    for unit in units:
        factor = Decimal(unit.conversion_factor)
        if factor <= 0:
            continue
        count = math.floor(remainder / factor)
        if count > 0:
            parts.append((count, unit.unit_name))
            whole_factor = int(factor)
            if truncate_factor and whole_factor > 0:
                remainder %= whole_factor
            else:
                remainder -= count * factor

    if not parts and remainder == 0:
        base = next((u for u in units if u.conversion_factor == 1), None)
        return [(0, base.unit_name if base is not None else BASE_UNIT_LABEL)]
    return parts


def format_breakdown(parts: list[tuple[int, str]]) -> str:
    if not parts:
        return "-"
    return ", ".join(f"{count} {name}" for count, name in parts)
