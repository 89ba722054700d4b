"""
Catalog data-quality checks
"""
from collections import defaultdict
from decimal import Decimal
from typing import Any, Iterable

from models import Product, UnitConversion


def _names(products: Iterable[Product]) -> dict[int, str]:
    return {p.product_id: p.name for p in products}


def products_without_units(products: list[Product], conversions: list[UnitConversion]) -> list[Product]:
    with_units = {c.product_id for c in conversions}
    return [p for p in products if p.product_id not in with_units]


def units_without_barcode(products: list[Product], conversions: list[UnitConversion]) -> list[dict[str, Any]]:
    names = _names(products)
    return [
        {"product_name": names.get(c.product_id), "unit_name": c.unit_name}
        for c in conversions
        if not (c.barcode or "").strip()
    ]


def duplicate_barcodes(products: list[Product], conversions: list[UnitConversion]) -> list[dict[str, Any]]:
    names = _names(products)
    groups: dict[str, list[UnitConversion]] = defaultdict(list)
    for c in conversions:
        if (c.barcode or "").strip():
            groups[c.barcode].append(c)
    return [
        {"product_name": names.get(c.product_id), "unit_name": c.unit_name, "barcode": c.barcode}
        for barcode, group in groups.items()
        if len(group) > 1
        for c in group
    ]


def units_without_price(products: list[Product], conversions: list[UnitConversion], min_price: Decimal = Decimal(100)) -> list[dict[str, Any]]:
    """Sellable units whose selling price is missing or below ``min_price``."""
    names = _names(products)
    return [
        {"product_name": names.get(c.product_id), "unit_name": c.unit_name}
        for c in conversions
        if not c.is_stock_only and (c.selling_price or 0) < min_price
    ]


def analyze_catalog(products: list[Product], conversions: list[UnitConversion], min_price: Decimal = Decimal(100)) -> dict[str, list]:
    return {
        "no_units": products_without_units(products, conversions),
        "no_barcode": units_without_barcode(products, conversions),
        "duplicate_barcodes": duplicate_barcodes(products, conversions),
        "no_price": units_without_price(products, conversions, min_price),
    }
