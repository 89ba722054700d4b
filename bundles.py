"""
Bundle stock derivation and low-stock evaluation

Both passes work on an in-memory snapshot of the catalog and only write the
derived fields: ``Product.stock`` for bundles and ``Product.is_low_on_stock``.
Bad data (missing components, non-positive quantities, cycles) resolves to
zero stock or the base unit instead of raising.
"""
import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Iterable, Union

from models import Product, UnitConversion
from units import UnitConversionTable

ProductIndex = Mapping[int, Product]
Conversions = Union[UnitConversionTable, Iterable[UnitConversion]]

_VISITING = 1
_DONE = 2


def index_products(all_products: Union[Iterable[Product], ProductIndex]) -> ProductIndex:
    if isinstance(all_products, Mapping):
        return all_products
    return {p.product_id: p for p in all_products}


def _as_table(conversions: Conversions) -> UnitConversionTable:
    if isinstance(conversions, UnitConversionTable):
        return conversions
    return UnitConversionTable(conversions)


def recalculate_bundle_stock(bundle: Product, all_products: Union[Iterable[Product], ProductIndex]) -> None:
    """Set a bundle's stock to the number of complete bundles its components allow.

    Components are taken at their current stock; a component that is itself a
    bundle must already be up to date (see ``recalculate_all_bundles``).
    """
    if not bundle.is_bundle:
        return
    if not bundle.components:
        bundle.stock = 0
        return

    index = index_products(all_products)
    possible_counts = []
    for component in bundle.components:
        product = index.get(component.component_product_id)
        quantity = Decimal(component.quantity_per_bundle)
        if product is None or quantity <= 0:
            bundle.stock = 0
            return
        possible_counts.append(math.floor(Decimal(product.stock) / quantity))
    bundle.stock = min(possible_counts)


def recalculate_all_bundles(all_products: Iterable[Product]) -> list[int]:
    """Recompute every bundle, inner bundles before the bundles that contain them.

    Returns the ids of bundles that were forced to zero because they sit on,
    or depend on, a bundle cycle.
    """
    products = list(all_products)
    index = index_products(products)
    state: dict[int, int] = {}
    stack: list[int] = []
    broken: set[int] = set()

    def visit(bundle: Product) -> bool:
        pid = bundle.product_id
        if state.get(pid) == _DONE:
            return pid not in broken
        if state.get(pid) == _VISITING:
            broken.update(stack[stack.index(pid):])
            return False

        state[pid] = _VISITING
        stack.append(pid)
        ok = True
        for component in bundle.components:
            inner = index.get(component.component_product_id)
            if inner is not None and inner.is_bundle and not visit(inner):
                ok = False
        stack.pop()
        state[pid] = _DONE

        if ok and pid not in broken:
            recalculate_bundle_stock(bundle, index)
            return True
        broken.add(pid)
        bundle.stock = 0
        return False

    for product in products:
        if product.is_bundle:
            visit(product)
    return sorted(broken)


def low_stock_threshold(product: Product, conversions: Conversions) -> Decimal:
    """Warning level of ``product`` expressed in base units."""
    factor = _as_table(conversions).factor_of(product.product_id, product.warning_stock_unit_id)
    return Decimal(product.warning_stock_level) * factor


def evaluate_low_stock(product: Product, conversions: Conversions) -> bool:
    product.is_low_on_stock = product.stock < low_stock_threshold(product, conversions)
    return product.is_low_on_stock


def update_low_stock(all_products: Iterable[Product], conversions: Conversions) -> list[Product]:
    table = _as_table(conversions)
    return [p for p in all_products if evaluate_low_stock(p, table)]


def invalid_components(bundle: Product, all_products: Union[Iterable[Product], ProductIndex]) -> list[int]:
    """Component ids of ``bundle`` that do not resolve or have a non-positive quantity."""
    index = index_products(all_products)
    return [
        c.component_product_id
        for c in bundle.components
        if c.component_product_id not in index or Decimal(c.quantity_per_bundle) <= 0
    ]
