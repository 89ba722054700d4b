"""Tests for catalog data-quality checks."""

from decimal import Decimal

import pytest
from analysis import analyze_catalog, duplicate_barcodes, products_without_units, units_without_barcode, units_without_price
from helpers import make_conversion, make_product


@pytest.fixture
def catalog():
    products = [make_product(1, name="Soap"), make_product(2, name="Candle"), make_product(3, name="Orphan")]
    conversions = [
        make_conversion(1, 10, "Pcs", 1, barcode="111", selling_price=Decimal(500)),
        make_conversion(1, 11, "Dozen", 12, barcode="222", selling_price=Decimal(50)),
        make_conversion(2, 10, "Pcs", 1, barcode="222", selling_price=Decimal(300)),
        make_conversion(2, 12, "Box", 24, is_stock_only=True),
    ]
    return products, conversions


def test_products_without_units(catalog):
    products, conversions = catalog
    assert [p.name for p in products_without_units(products, conversions)] == ["Orphan"]


def test_units_without_barcode(catalog):
    assert units_without_barcode(*catalog) == [{"product_name": "Candle", "unit_name": "Box"}]


def test_duplicate_barcodes(catalog):
    rows = duplicate_barcodes(*catalog)
    assert {(r["product_name"], r["unit_name"]) for r in rows} == {("Soap", "Dozen"), ("Candle", "Pcs")}
    assert all(r["barcode"] == "222" for r in rows)


def test_stock_only_units_need_no_price(catalog):
    assert units_without_price(*catalog) == [{"product_name": "Soap", "unit_name": "Dozen"}]


def test_price_floor_is_configurable(catalog):
    assert units_without_price(*catalog, min_price=Decimal(10)) == []


def test_analyze_catalog_runs_every_check(catalog):
    result = analyze_catalog(*catalog)
    assert set(result) == {"no_units", "no_barcode", "duplicate_barcodes", "no_price"}
    assert len(result["duplicate_barcodes"]) == 2
