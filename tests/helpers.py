"""In-memory catalog builders for tests."""

from decimal import Decimal

from models import BundleComponent, Product, UnitConversion


def make_product(product_id, stock=0, name=None, **kwargs):
    return Product(product_id=product_id, name=name or f"Product {product_id}", stock=stock, **kwargs)


def make_bundle(product_id, *components, name=None):
    """Bundle from ``(component_id, quantity_per_bundle)`` pairs."""
    return Product(
        product_id=product_id,
        name=name or f"Bundle {product_id}",
        is_bundle=True,
        components=[BundleComponent(cid, Decimal(str(qty))) for cid, qty in components],
    )


def make_conversion(product_id, unit_id, name, factor, **kwargs):
    return UnitConversion(product_id=product_id, unit_id=unit_id, unit_name=name,
                          conversion_factor=Decimal(str(factor)), **kwargs)
