"""
Per-product unit conversions
"""
from collections import defaultdict
from decimal import Decimal, ROUND_FLOOR
from typing import Iterable, Optional

from models import UnitConversion


class UnitConversionTable:
    """Index over the global list of unit conversions, keyed by product id.

    Lookups never raise: a missing unit resolves to factor 1, i.e. the
    product's base unit.
    """

    def __init__(self, conversions: Iterable[UnitConversion]) -> None:
        self._by_product: dict[int, list[UnitConversion]] = defaultdict(list)
        self._by_barcode: dict[str, UnitConversion] = {}
        for conversion in conversions:
            self._by_product[conversion.product_id].append(conversion)
            if conversion.barcode:
                # first one wins; duplicates are reported by analysis.duplicate_barcodes
                self._by_barcode.setdefault(conversion.barcode, conversion)

    def conversions_for(self, product_id: int) -> list[UnitConversion]:
        return list(self._by_product.get(product_id, []))

    def factor_of(self, product_id: int, unit_id: Optional[int]) -> Decimal:
        if unit_id is not None:
            for conversion in self._by_product.get(product_id, []):
                if conversion.unit_id == unit_id:
                    return Decimal(conversion.conversion_factor)
        return Decimal(1)

    def base_unit_of(self, product_id: int) -> Optional[UnitConversion]:
        for conversion in self._by_product.get(product_id, []):
            if conversion.is_base_unit:
                return conversion
        return None

    def find_by_barcode(self, barcode: str) -> Optional[UnitConversion]:
        return self._by_barcode.get(barcode)

    def to_base(self, product_id: int, unit_id: Optional[int], quantity: int) -> int:
        """Quantity expressed in ``unit_id`` converted to whole base units."""
        amount = Decimal(quantity) * self.factor_of(product_id, unit_id)
        return int(amount.to_integral_value(rounding=ROUND_FLOOR))
