"""Tests for per-product unit conversion lookups."""

from decimal import Decimal

import pytest
from helpers import make_conversion
from units import UnitConversionTable


@pytest.fixture
def table():
    return UnitConversionTable([
        make_conversion(1, 10, "Pcs", 1),
        make_conversion(1, 11, "Dozen", 12, barcode="8991001"),
        make_conversion(2, 10, "Pcs", 1),
        make_conversion(2, 12, "Pack", "1.5"),
    ])


class TestConversionsFor:
    def test_filters_by_product(self, table):
        names = [c.unit_name for c in table.conversions_for(1)]
        assert names == ["Pcs", "Dozen"]

    def test_unknown_product_has_no_units(self, table):
        assert table.conversions_for(99) == []

    def test_returns_a_copy(self, table):
        table.conversions_for(1).clear()
        assert len(table.conversions_for(1)) == 2


class TestFactorOf:
    def test_matching_unit(self, table):
        assert table.factor_of(1, 11) == Decimal(12)

    def test_fractional_factor(self, table):
        assert table.factor_of(2, 12) == Decimal("1.5")

    def test_unit_of_another_product_falls_back_to_one(self, table):
        """A unit defined only for product 2 means nothing for product 1."""
        assert table.factor_of(1, 12) == 1

    def test_missing_unit_falls_back_to_one(self, table):
        assert table.factor_of(1, 999) == 1
        assert table.factor_of(999, 11) == 1

    def test_no_unit_falls_back_to_one(self, table):
        assert table.factor_of(1, None) == 1


class TestLookups:
    def test_base_unit_of(self, table):
        assert table.base_unit_of(1).unit_name == "Pcs"
        assert table.base_unit_of(99) is None

    def test_find_by_barcode(self, table):
        assert table.find_by_barcode("8991001").unit_name == "Dozen"
        assert table.find_by_barcode("nope") is None

    def test_to_base(self, table):
        assert table.to_base(1, 11, 3) == 36
        assert table.to_base(1, None, 7) == 7

    def test_to_base_rounds_fractions_down(self, table):
        assert table.to_base(2, 12, 2) == 3
        assert table.to_base(2, 12, 3) == 4
