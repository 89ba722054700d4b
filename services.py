"""
Business logic layer for the Inventory Management System
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from analysis import analyze_catalog
from breakdown import breakdown
from bundles import invalid_components, low_stock_threshold, recalculate_all_bundles, update_low_stock
from dao import BundleLinkDAO, ConversionDAO, ProductDAO, PurchaseDAO, ToDoDAO, UnitDAO
from db import Database, utc_now_iso
from models import Product, ToDoItem, Unit, UnitConversion
from settings import DEFAULTS
from units import UnitConversionTable

logger = logging.getLogger(__name__)

_EDITABLE_PRODUCT_FIELDS = {"name", "cost_price", "warning_stock_level", "warning_stock_unit_id", "alternate_names"}


def _to_decimal(value: Any, label: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{label} must be a number") from None


@dataclass
class CatalogSnapshot:
    """Products and conversions as loaded from the store, with derived fields filled in."""

    products: list[Product]
    conversions: list[UnitConversion]
    table: UnitConversionTable
    low_stock: list[Product] = field(default_factory=list)
    cyclic_bundles: list[int] = field(default_factory=list)

    def product(self, product_id: int) -> Optional[Product]:
        return next((p for p in self.products if p.product_id == product_id), None)


def low_stock_notice(products: Iterable[Product], limit: int = 10) -> Optional[str]:
    """Warning text naming at most ``limit`` low-stock products, or None when there are none."""
    low = [p for p in products if p.is_low_on_stock]
    if not low:
        return None
    lines = ["Warning! The following products are low on stock:", ""]
    lines += [f"- {p.name}" for p in low[:limit]]
    if len(low) > limit:
        lines.append("...and more.")
    return "\n".join(lines)


class InventoryService:
    def __init__(self, db: Database, settings: Optional[dict[str, Any]] = None) -> None:
        self.db = db
        self.settings = dict(DEFAULTS)
        self.settings.update(settings or {})
        self.units = UnitDAO(db)
        self.products = ProductDAO(db)
        self.conversions = ConversionDAO(db)
        self.links = BundleLinkDAO(db)
        self.purchases = PurchaseDAO(db)
        self.todos = ToDoDAO(db)

    @property
    def min_selling_price(self) -> Decimal:
        return Decimal(str(self.settings["min_selling_price"]))

    # Snapshot
    def load_all_products(self) -> list[Product]:
        return self.products.load_all_products()

    def load_all_unit_conversions(self) -> list[UnitConversion]:
        return self.conversions.load_all()

    def load_catalog(self, warn: bool = True) -> CatalogSnapshot:
        """Reload the whole catalog and recompute bundle stock and low-stock flags.

        Bundle problems are logged as warnings, or at debug level when ``warn`` is false.
        """
        level = logging.WARNING if warn else logging.DEBUG
        products = self.load_all_products()
        conversions = self.load_all_unit_conversions()
        table = UnitConversionTable(conversions)

        for bundle in products:
            if not bundle.is_bundle:
                continue
            if not bundle.components:
                logger.log(level, "Bundle %r has no components", bundle.name)
            bad = invalid_components(bundle, products)
            if bad:
                logger.log(level, "Bundle %r has invalid components %s; its stock is 0", bundle.name, bad)

        cyclic = recalculate_all_bundles(products)
        if cyclic:
            logger.log(level, "Bundles %s form or depend on a cycle; their stock is 0", cyclic)
        low = update_low_stock(products, table)
        return CatalogSnapshot(products, conversions, table, low, cyclic)

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.load_catalog(warn=False).product(product_id)

    def _require_product(self, product_id: int) -> dict[str, Any]:
        row = self.products.get_row(product_id)
        if row is None:
            raise ValueError("Product not found")
        return row

    # Units
    def add_unit(self, name: str, default_warning_threshold: Optional[int] = None) -> int:
        if not name or not name.strip():
            raise ValueError("Unit name cannot be empty")
        if default_warning_threshold is None:
            default_warning_threshold = int(self.settings["default_warning_threshold"])
        if default_warning_threshold < 0:
            raise ValueError("Default warning threshold cannot be negative")
        if self.units.get_by_name(name.strip()) is not None:
            raise ValueError("Unit already exists")
        return self.units.create(name.strip(), default_warning_threshold)

    def update_unit(self, unit_id: int, name: str, default_warning_threshold: int) -> None:
        if self.units.get_by_id(unit_id) is None:
            raise ValueError("Unit not found")
        if not name or not name.strip():
            raise ValueError("Unit name cannot be empty")
        if default_warning_threshold < 0:
            raise ValueError("Default warning threshold cannot be negative")
        existing = self.units.get_by_name(name.strip())
        if existing is not None and existing.unit_id != unit_id:
            raise ValueError("Unit already exists")
        self.units.update(unit_id, name.strip(), default_warning_threshold)

    def list_units(self) -> list[Unit]:
        return self.units.list_all()

    # Products
    def add_product(self, name: str, cost_price: Any = None, alternate_names: Optional[str] = None,
                    base_unit_id: Optional[int] = None, warning_stock_level: Optional[int] = None,
                    warning_stock_unit_id: Optional[int] = None) -> int:
        if not name or not name.strip():
            raise ValueError("Product name cannot be empty")
        name = name.strip()
        cost = _to_decimal(cost_price, "Cost price")
        if cost is not None and cost < 0:
            raise ValueError("Cost price cannot be negative")
        if self.products.name_taken(name):
            raise ValueError("Product name already exists")

        base_unit = None
        if base_unit_id is not None:
            base_unit = self.units.get_by_id(base_unit_id)
            if base_unit is None:
                raise ValueError("Unit not found")
        if warning_stock_level is None:
            warning_stock_level = base_unit.default_warning_threshold if base_unit else 0
        if warning_stock_level < 0:
            raise ValueError("Warning stock level cannot be negative")
        if warning_stock_unit_id is None and base_unit is not None:
            warning_stock_unit_id = base_unit.unit_id
        elif warning_stock_unit_id is not None and self.units.get_by_id(warning_stock_unit_id) is None:
            raise ValueError("Unit not found")

        with self.db.transaction() as cursor:
            product_id = self.products.create(name, cost, warning_stock_level, warning_stock_unit_id,
                                              alternate_names or None, cursor=cursor)
            if base_unit is not None:
                # price comes later through save_conversion
                self.conversions.upsert(product_id, base_unit.unit_id, Decimal(1), None, None, None, True, cursor=cursor)
        logger.info("Product %r added (id=%s)", name, product_id)
        return product_id

    def update_product(self, product_id: int, **fields: Any) -> None:
        self._require_product(product_id)
        if "stock" in fields:
            raise ValueError("Stock is changed through stock intake, not product edits")
        unknown = set(fields) - _EDITABLE_PRODUCT_FIELDS
        if unknown:
            raise ValueError(f"Unknown product fields: {', '.join(sorted(unknown))}")
        if "name" in fields:
            if not fields["name"] or not fields["name"].strip():
                raise ValueError("Product name cannot be empty")
            fields["name"] = fields["name"].strip()
            if self.products.name_taken(fields["name"], exclude_id=product_id):
                raise ValueError("Product name is already used by another product")
        if "cost_price" in fields:
            fields["cost_price"] = _to_decimal(fields["cost_price"], "Cost price")
            if fields["cost_price"] is not None and fields["cost_price"] < 0:
                raise ValueError("Cost price cannot be negative")
        if "warning_stock_level" in fields and fields["warning_stock_level"] is not None and fields["warning_stock_level"] < 0:
            raise ValueError("Warning stock level cannot be negative")
        if fields.get("warning_stock_unit_id") is not None and self.units.get_by_id(fields["warning_stock_unit_id"]) is None:
            raise ValueError("Unit not found")
        self.products.update(product_id, **fields)

    def delete_product(self, product_id: int) -> None:
        self._require_product(product_id)
        users = self.links.bundles_using(product_id)
        if users:
            names = ", ".join(b["name"] for b in users)
            raise ValueError(f"Product is a component of bundle(s): {names}")
        if self.purchases.has_history(product_id):
            raise ValueError("Product has purchase history and cannot be deleted")
        with self.db.transaction() as cursor:
            self.conversions.delete_for_product(product_id, cursor=cursor)
            self.links.delete_for_bundle(product_id, cursor=cursor)
            self.products.delete(product_id, cursor=cursor)
        logger.info("Product %s deleted", product_id)

    def duplicate_product(self, product_id: int) -> int:
        """Copy a product with its units (without barcodes and stock); returns the new id."""
        original = self._require_product(product_id)
        name = f"{original['name']} (Copy)"
        suffix = 2
        while self.products.name_taken(name):
            name = f"{original['name']} (Copy {suffix})"
            suffix += 1
        links = [row for row in self.links.list_all() if row["bundle_product_id"] == product_id]
        with self.db.transaction() as cursor:
            new_id = self.products.create(
                name,
                _to_decimal(original["cost_price"], "Cost price"),
                original["warning_stock_level"],
                original["warning_stock_unit_id"],
                original["alternate_names"],
                bool(original["is_bundle"]),
                cursor=cursor,
            )
            self.conversions.copy_to(product_id, new_id, cursor=cursor)
            for link in links:
                self.links.create(new_id, link["component_product_id"], Decimal(str(link["quantity_per_bundle"])), cursor=cursor)
        logger.info("Product %s duplicated as %r (id=%s)", product_id, name, new_id)
        return new_id

    def search_products(self, term: Optional[str], snapshot: Optional[CatalogSnapshot] = None) -> list[Product]:
        """Case-insensitive match on name, alternate names or any unit barcode."""
        snapshot = snapshot or self.load_catalog()
        if not term or not term.strip():
            return list(snapshot.products)
        needle = term.strip().lower()
        by_barcode = {c.product_id for c in snapshot.conversions if c.barcode and needle in c.barcode.lower()}
        return [
            p for p in snapshot.products
            if needle in p.name.lower() or needle in (p.alternate_names or "").lower() or p.product_id in by_barcode
        ]

    def find_by_barcode(self, barcode: str, snapshot: Optional[CatalogSnapshot] = None) -> Optional[tuple[Product, UnitConversion]]:
        """Product and unit a scanned barcode belongs to, or None when nothing matches."""
        barcode = (barcode or "").strip()
        if not barcode:
            return None
        snapshot = snapshot or self.load_catalog(warn=False)
        conversion = snapshot.table.find_by_barcode(barcode)
        if conversion is None:
            return None
        product = snapshot.product(conversion.product_id)
        return (product, conversion) if product is not None else None

    # Unit conversions
    def list_conversions(self, product_id: int) -> list[UnitConversion]:
        return self.conversions.list_for_product(product_id)

    def save_conversion(self, product_id: int, unit_id: int, factor: Any, selling_price: Any = None,
                        cost_price: Any = None, barcode: Optional[str] = None, is_stock_only: bool = False) -> int:
        self._require_product(product_id)
        if self.units.get_by_id(unit_id) is None:
            raise ValueError("Unit not found")
        factor = _to_decimal(factor, "Conversion factor")
        if factor is None or factor <= 0:
            raise ValueError("Conversion factor must be positive")

        price = None
        if not is_stock_only:
            price = _to_decimal(selling_price, "Selling price")
            if price is None or price < self.min_selling_price:
                raise ValueError(f"Selling price must be at least {self.min_selling_price} for units that are sold")
        cost = _to_decimal(cost_price, "Cost price")
        if cost is not None and cost < 0:
            raise ValueError("Cost price cannot be negative")
        barcode = (barcode or "").strip() or None

        existing = self.conversions.list_for_product(product_id)
        current = next((c for c in existing if c.unit_id == unit_id), None)
        other_base = next((c for c in existing if c.is_base_unit and c.unit_id != unit_id), None)
        if factor == 1 and other_base is not None:
            raise ValueError(f"Product already has a base unit ({other_base.unit_name})")
        if current is not None and current.is_base_unit and factor != 1:
            raise ValueError("The base unit must keep a factor of 1")
        if barcode is not None:
            for c in self.conversions.load_all():
                if c.barcode == barcode and not (c.product_id == product_id and c.unit_id == unit_id):
                    raise ValueError("Barcode already in use")

        conversion_id = self.conversions.upsert(product_id, unit_id, factor, price, cost, barcode, is_stock_only)
        logger.info("Unit %s saved for product %s with factor %s", unit_id, product_id, factor)
        return current.conversion_id if current is not None else conversion_id

    def remove_conversion(self, conversion_id: int) -> None:
        conversion = self.conversions.get_by_id(conversion_id)
        if conversion is None:
            raise ValueError("Unit conversion not found")
        if conversion.is_base_unit:
            raise ValueError("The base unit (factor 1) cannot be removed")
        self.conversions.delete(conversion_id)

    # Bundles
    def create_bundle(self, name: str, selling_price: Any, components: Iterable[tuple[int, Any]],
                      barcode: Optional[str] = None) -> int:
        """Create a bundle product, its "Pcs" base unit and its component links in one go."""
        if not name or not name.strip():
            raise ValueError("Bundle name cannot be empty")
        name = name.strip()
        price = _to_decimal(selling_price, "Selling price")
        if price is None or price < self.min_selling_price:
            raise ValueError(f"Selling price must be at least {self.min_selling_price}")

        merged: dict[int, Decimal] = {}
        for component_id, quantity in components:
            qty = _to_decimal(quantity, "Quantity per bundle")
            if qty is None or qty <= 0:
                raise ValueError("Quantity per bundle must be positive")
            self._require_product(component_id)
            merged[component_id] = merged.get(component_id, Decimal(0)) + qty
        if not merged:
            raise ValueError("A bundle needs at least one component")
        if self.products.name_taken(name):
            raise ValueError("Product name already exists")
        barcode = (barcode or "").strip() or None
        if barcode is not None and any(c.barcode == barcode for c in self.conversions.load_all()):
            raise ValueError("Barcode already in use")

        pcs = self.units.get_by_name("Pcs")
        pcs_id = pcs.unit_id if pcs is not None else self.units.create("Pcs", int(self.settings["default_warning_threshold"]))

        with self.db.transaction() as cursor:
            bundle_id = self.products.create(name, None, 0, pcs_id, None, is_bundle=True, cursor=cursor)
            self.conversions.upsert(bundle_id, pcs_id, Decimal(1), price, None, barcode, False, cursor=cursor)
            for component_id, qty in merged.items():
                self.links.create(bundle_id, component_id, qty, cursor=cursor)
        logger.info("Bundle %r created (id=%s) with %d component(s)", name, bundle_id, len(merged))
        return bundle_id

    # Stock intake
    def _base_quantity(self, product: dict[str, Any], quantity: int, unit_id: Optional[int], table: UnitConversionTable) -> int:
        if product["is_bundle"]:
            raise ValueError("Bundle stock is derived and cannot be adjusted")
        if quantity <= 0:
            raise ValueError("Quantity must be positive")
        if unit_id is not None and not any(c.unit_id == unit_id for c in table.conversions_for(product["id"])):
            raise ValueError("Unit is not defined for this product")
        return table.to_base(product["id"], unit_id, quantity)

    def add_stock(self, product_id: int, quantity: int, unit_id: Optional[int] = None) -> int:
        """Add ``quantity`` of ``unit_id`` (base unit when None); returns the base units added."""
        product = self._require_product(product_id)
        table = UnitConversionTable(self.conversions.list_for_product(product_id))
        base_quantity = self._base_quantity(product, quantity, unit_id, table)
        self.products.add_stock(product_id, base_quantity)
        logger.info("Added %s base unit(s) to product %s", base_quantity, product_id)
        return base_quantity

    def record_purchase(self, items: list[dict[str, Any]], supplier_name: Optional[str] = None,
                        purchased_at_iso: Optional[str] = None) -> int:
        """Store a purchase and raise stock; each item has product_id, quantity, cost_price and optional unit_id."""
        if not items:
            raise ValueError("A purchase needs at least one item")
        table = UnitConversionTable(self.conversions.load_all())
        prepared = []
        total = Decimal(0)
        for item in items:
            product = self._require_product(item.get("product_id"))
            quantity = int(item.get("quantity") or 0)
            cost = _to_decimal(item.get("cost_price"), "Cost price")
            if cost is None or cost <= 0:
                raise ValueError("Cost price must be positive")
            unit_id = item.get("unit_id")
            base_quantity = self._base_quantity(product, quantity, unit_id, table)
            prepared.append((product["id"], unit_id, quantity, base_quantity, cost))
            total += cost * quantity

        with self.db.transaction() as cursor:
            purchase_id = self.purchases.create(purchased_at_iso or utc_now_iso(), (supplier_name or "").strip() or None,
                                                total, cursor=cursor)
            for product_id, unit_id, quantity, base_quantity, cost in prepared:
                self.purchases.add_detail(purchase_id, product_id, unit_id, quantity, base_quantity, cost, cursor=cursor)
                self.products.add_stock(product_id, base_quantity, cursor=cursor)
        logger.info("Purchase %s recorded with %d item(s), total %s", purchase_id, len(prepared), total)
        return purchase_id

    def list_recent_purchases(self, limit: int = 50) -> list[dict[str, Any]]:
        return self.purchases.list_recent(limit)

    # Reports
    def stock_breakdown(self, product_id: int, snapshot: Optional[CatalogSnapshot] = None) -> list[tuple[int, str]]:
        snapshot = snapshot or self.load_catalog()
        product = snapshot.product(product_id)
        if product is None:
            raise ValueError("Product not found")
        return breakdown(product.stock, snapshot.table.conversions_for(product_id))

    def report_low_stock(self, snapshot: Optional[CatalogSnapshot] = None) -> list[dict[str, Any]]:
        snapshot = snapshot or self.load_catalog()
        return [
            {
                "product": p,
                "stock": p.stock,
                "threshold": low_stock_threshold(p, snapshot.table),
                "breakdown": breakdown(p.stock, snapshot.table.conversions_for(p.product_id)),
            }
            for p in snapshot.low_stock
        ]

    def low_stock_notice(self, snapshot: Optional[CatalogSnapshot] = None) -> Optional[str]:
        snapshot = snapshot or self.load_catalog()
        return low_stock_notice(snapshot.products, int(self.settings["low_stock_preview_limit"]))

    def analyze_catalog(self, snapshot: Optional[CatalogSnapshot] = None) -> dict[str, list]:
        snapshot = snapshot or self.load_catalog()
        return analyze_catalog(snapshot.products, snapshot.conversions, self.min_selling_price)

    # To-do list
    def add_todo(self, product_id: int, task_type: str, description: str = "") -> int:
        self._require_product(product_id)
        if not task_type or not task_type.strip():
            raise ValueError("Task type cannot be empty")
        return self.todos.create(product_id, task_type.strip(), description or "")

    def list_open_todos(self, product_id: Optional[int] = None) -> list[ToDoItem]:
        return self.todos.list_open(product_id)

    def complete_todo(self, todo_id: int) -> None:
        if self.todos.get_by_id(todo_id) is None:
            raise ValueError("To-do item not found")
        self.todos.complete(todo_id)
