"""Tests for bundle stock derivation and low-stock evaluation."""

from decimal import Decimal

from bundles import (
    evaluate_low_stock,
    index_products,
    invalid_components,
    low_stock_threshold,
    recalculate_all_bundles,
    recalculate_bundle_stock,
    update_low_stock,
)
from helpers import make_bundle, make_conversion, make_product
from units import UnitConversionTable


class TestRecalculateBundleStock:
    def test_non_bundle_is_untouched(self):
        product = make_product(1, stock=7)
        recalculate_bundle_stock(product, [product])
        assert product.stock == 7

    def test_bundle_without_components_has_no_stock(self):
        bundle = make_bundle(10)
        bundle.stock = 4
        recalculate_bundle_stock(bundle, [bundle])
        assert bundle.stock == 0

    def test_scarcest_component_wins(self):
        products = [make_product(1, stock=10), make_product(2, stock=9)]
        bundle = make_bundle(10, (1, 2), (2, 3))
        recalculate_bundle_stock(bundle, products + [bundle])
        assert bundle.stock == 3

    def test_partial_bundles_are_not_counted(self):
        products = [make_product(1, stock=7)]
        bundle = make_bundle(10, (1, 2))
        recalculate_bundle_stock(bundle, products)
        assert bundle.stock == 3

    def test_fractional_quantity(self):
        products = [make_product(1, stock=5)]
        bundle = make_bundle(10, (1, "0.5"))
        recalculate_bundle_stock(bundle, products)
        assert bundle.stock == 10

    def test_missing_component_caps_bundle_at_zero(self):
        products = [make_product(1, stock=100)]
        bundle = make_bundle(10, (1, 1), (99, 1))
        recalculate_bundle_stock(bundle, products)
        assert bundle.stock == 0

    def test_non_positive_quantity_caps_bundle_at_zero(self):
        products = [make_product(1, stock=100), make_product(2, stock=100)]
        for bad in (0, -1):
            bundle = make_bundle(10, (1, 1), (2, bad))
            bundle.stock = 50
            recalculate_bundle_stock(bundle, products)
            assert bundle.stock == 0

    def test_accepts_prebuilt_index(self):
        index = index_products([make_product(1, stock=12)])
        bundle = make_bundle(10, (1, 4))
        recalculate_bundle_stock(bundle, index)
        assert bundle.stock == 3

    def test_idempotent(self):
        products = [make_product(1, stock=10), make_product(2, stock=4)]
        bundle = make_bundle(10, (1, 3), (2, 1))
        recalculate_bundle_stock(bundle, products)
        first = bundle.stock
        recalculate_bundle_stock(bundle, products)
        assert bundle.stock == first == 3


class TestRecalculateAllBundles:
    def test_flat_bundles(self):
        products = [make_product(1, stock=10), make_bundle(10, (1, 5)), make_bundle(11, (1, 1))]
        assert recalculate_all_bundles(products) == []
        assert [p.stock for p in products] == [10, 2, 10]

    def test_nested_bundle_uses_fresh_inner_stock(self):
        """The outer bundle comes first in the list but still sees the inner bundle's new stock."""
        outer = make_bundle(20, (10, 2))
        inner = make_bundle(10, (1, 2))
        inner.stock = 999
        products = [outer, inner, make_product(1, stock=20)]

        assert recalculate_all_bundles(products) == []
        assert inner.stock == 10
        assert outer.stock == 5

    def test_cycle_zeroes_members_and_dependents(self):
        a = make_bundle(10, (11, 1))
        b = make_bundle(11, (10, 1))
        dependent = make_bundle(12, (10, 1))
        healthy = make_bundle(13, (1, 1))
        for bundle in (a, b, dependent):
            bundle.stock = 5
        products = [dependent, a, b, healthy, make_product(1, stock=3)]

        assert recalculate_all_bundles(products) == [10, 11, 12]
        assert a.stock == b.stock == dependent.stock == 0
        assert healthy.stock == 3

    def test_self_reference(self):
        bundle = make_bundle(10, (10, 1))
        assert recalculate_all_bundles([bundle]) == [10]
        assert bundle.stock == 0

    def test_idempotent(self):
        products = [make_product(1, stock=9), make_bundle(10, (1, 2)), make_bundle(20, (10, 2))]
        recalculate_all_bundles(products)
        first = [p.stock for p in products]
        recalculate_all_bundles(products)
        assert [p.stock for p in products] == first == [9, 4, 2]


class TestLowStock:
    def conversions(self):
        return [make_conversion(1, 100, "Pcs", 1), make_conversion(1, 101, "Pack", 3)]

    def test_below_converted_threshold(self):
        product = make_product(1, stock=5, warning_stock_level=2, warning_stock_unit_id=101)
        assert evaluate_low_stock(product, self.conversions()) is True
        assert product.is_low_on_stock is True

    def test_above_converted_threshold(self):
        product = make_product(1, stock=10, warning_stock_level=2, warning_stock_unit_id=101)
        assert evaluate_low_stock(product, self.conversions()) is False
        assert product.is_low_on_stock is False

    def test_at_threshold_is_not_low(self):
        product = make_product(1, stock=6, warning_stock_level=2, warning_stock_unit_id=101)
        assert evaluate_low_stock(product, self.conversions()) is False

    def test_unknown_warning_unit_uses_base_units(self):
        product = make_product(1, stock=1, warning_stock_level=2, warning_stock_unit_id=555)
        assert low_stock_threshold(product, self.conversions()) == 2
        assert evaluate_low_stock(product, self.conversions()) is True

    def test_product_without_units(self):
        product = make_product(7, stock=0, warning_stock_level=1)
        assert evaluate_low_stock(product, []) is True

    def test_accepts_table(self):
        table = UnitConversionTable(self.conversions())
        product = make_product(1, stock=5, warning_stock_level=2, warning_stock_unit_id=101)
        assert low_stock_threshold(product, table) == Decimal(6)
        assert evaluate_low_stock(product, table) is True

    def test_flag_follows_stock_changes(self):
        product = make_product(1, stock=5, warning_stock_level=2, warning_stock_unit_id=101)
        evaluate_low_stock(product, self.conversions())
        product.stock = 10
        evaluate_low_stock(product, self.conversions())
        assert product.is_low_on_stock is False

    def test_update_low_stock_returns_low_products(self):
        low = make_product(1, stock=5, warning_stock_level=2, warning_stock_unit_id=101)
        fine = make_product(2, stock=5, warning_stock_level=2)
        assert update_low_stock([low, fine], self.conversions()) == [low]
        assert fine.is_low_on_stock is False


def test_invalid_components():
    products = [make_product(1, stock=1)]
    bundle = make_bundle(10, (1, 1), (1, 0), (99, 2))
    assert invalid_components(bundle, products) == [1, 99]
