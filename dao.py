"""
Data Access Layer for the Inventory Management System

Write methods take an optional cursor so that several of them can share one
transaction (see ``Database.transaction``).
"""
import logging
from decimal import Decimal
from typing import Any, Optional

from db import Database, utc_now_iso
from models import BundleComponent, Product, ToDoItem, Unit, UnitConversion

logger = logging.getLogger(__name__)


def _dec(value) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


class _BaseDAO:
    def __init__(self, db: Database) -> None:
        self.db = db

    def _run(self, sql: str, params=(), cursor=None) -> int:
        if cursor is None:
            return self.db.execute(sql, params)
        cursor.execute(sql, params)
        return cursor.lastrowid


class UnitDAO(_BaseDAO):
    def create(self, name: str, default_warning_threshold: int) -> int:
        return self._run(
            "INSERT INTO units (name, default_warning_threshold) VALUES (?, ?)",
            (name, default_warning_threshold),
        )

    def update(self, unit_id: int, name: str, default_warning_threshold: int) -> None:
        self._run(
            "UPDATE units SET name = ?, default_warning_threshold = ? WHERE id = ?",
            (name, default_warning_threshold, unit_id),
        )

    def list_all(self) -> list[Unit]:
        rows = self.db.query_all("SELECT id, name, default_warning_threshold FROM units ORDER BY name COLLATE NOCASE")
        return [Unit(r["id"], r["name"], r["default_warning_threshold"]) for r in rows]

    def get_by_id(self, unit_id: int) -> Optional[Unit]:
        row = self.db.query_one("SELECT id, name, default_warning_threshold FROM units WHERE id = ?", (unit_id,))
        return Unit(row["id"], row["name"], row["default_warning_threshold"]) if row else None

    def get_by_name(self, name: str) -> Optional[Unit]:
        row = self.db.query_one("SELECT id, name, default_warning_threshold FROM units WHERE name = ?", (name,))
        return Unit(row["id"], row["name"], row["default_warning_threshold"]) if row else None


class ProductDAO(_BaseDAO):
    def create(self, name: str, cost_price: Optional[Decimal], warning_stock_level: int, warning_stock_unit_id: Optional[int],
               alternate_names: Optional[str], is_bundle: bool = False, cursor=None) -> int:
        now = utc_now_iso()
        return self._run(
            """
            INSERT INTO products (name, cost_price, stock, warning_stock_level, warning_stock_unit_id,
                                  alternate_names, is_bundle, created_at, updated_at)
            VALUES (?, ?, 0, ?, ?, ?, ?, ?, ?)
            """,
            (name, cost_price, warning_stock_level, warning_stock_unit_id, alternate_names, int(is_bundle), now, now),
            cursor,
        )

    def update(self, product_id: int, cursor=None, **fields: Any) -> None:
        if not fields:
            return
        fields["updated_at"] = utc_now_iso()
        columns = ", ".join([f"{key} = ?" for key in fields.keys()])
        params = list(fields.values()) + [product_id]
        self._run(f"UPDATE products SET {columns} WHERE id = ?", params, cursor)

    def delete(self, product_id: int, cursor=None) -> None:
        self._run("DELETE FROM products WHERE id = ?", (product_id,), cursor)

    def get_row(self, product_id: int) -> Optional[dict[str, Any]]:
        return self.db.query_one("SELECT * FROM products WHERE id = ?", (product_id,))

    def name_taken(self, name: str, exclude_id: Optional[int] = None) -> bool:
        row = self.db.query_one(
            "SELECT COUNT(1) AS n FROM products WHERE name = ? AND id != ?",
            (name, exclude_id if exclude_id is not None else -1),
        )
        return bool(row and row["n"])

    def add_stock(self, product_id: int, delta: int, cursor=None) -> None:
        self._run(
            "UPDATE products SET stock = stock + ?, updated_at = ? WHERE id = ?",
            (int(delta), utc_now_iso(), product_id),
            cursor,
        )

    def load_all_products(self) -> list[Product]:
        """Every product, ordered by name, with bundle components attached."""
        rows = self.db.query_all(
            """
            SELECT p.id, p.name, p.stock, p.cost_price, p.warning_stock_level, p.warning_stock_unit_id,
                   p.alternate_names, p.is_bundle,
                   EXISTS (SELECT 1 FROM todo_items t WHERE t.product_id = p.id AND t.is_completed = 0) AS has_todo
            FROM products p
            ORDER BY p.name COLLATE NOCASE
            """
        )
        products = [
            Product(
                product_id=r["id"],
                name=r["name"],
                stock=int(r["stock"]),
                cost_price=_dec(r["cost_price"]),
                is_bundle=bool(r["is_bundle"]),
                warning_stock_level=int(r["warning_stock_level"]),
                warning_stock_unit_id=r["warning_stock_unit_id"],
                alternate_names=r["alternate_names"] or "",
                has_todo=bool(r["has_todo"]),
            )
            for r in rows
        ]
        by_id = {p.product_id: p for p in products}
        for link in BundleLinkDAO(self.db).list_all():
            bundle = by_id.get(link["bundle_product_id"])
            if bundle is None:
                logger.warning("Link %s points at missing bundle %s", link["id"], link["bundle_product_id"])
                continue
            bundle.components.append(
                BundleComponent(
                    component_product_id=link["component_product_id"],
                    quantity_per_bundle=_dec(link["quantity_per_bundle"]),
                    component_name=link["component_name"] or "",
                    link_id=link["id"],
                )
            )
        return products


class ConversionDAO(_BaseDAO):
    _SELECT = """
        SELECT c.id, c.product_id, c.unit_id, u.name AS unit_name, c.conversion_factor, c.selling_price,
               c.cost_price, c.barcode, c.is_stock_only
        FROM product_unit_conversions c
        JOIN units u ON u.id = c.unit_id
    """

    @staticmethod
    def _to_model(r: dict[str, Any]) -> UnitConversion:
        return UnitConversion(
            conversion_id=r["id"],
            product_id=r["product_id"],
            unit_id=r["unit_id"],
            unit_name=r["unit_name"],
            conversion_factor=_dec(r["conversion_factor"]),
            selling_price=_dec(r["selling_price"]),
            cost_price=_dec(r["cost_price"]),
            barcode=r["barcode"],
            is_stock_only=bool(r["is_stock_only"]),
        )

    def upsert(self, product_id: int, unit_id: int, factor: Decimal, selling_price: Optional[Decimal],
               cost_price: Optional[Decimal], barcode: Optional[str], is_stock_only: bool, cursor=None) -> int:
        return self._run(
            """
            INSERT INTO product_unit_conversions
                (product_id, unit_id, conversion_factor, selling_price, cost_price, barcode, is_stock_only)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (product_id, unit_id) DO UPDATE SET
                conversion_factor = excluded.conversion_factor,
                selling_price = excluded.selling_price,
                cost_price = excluded.cost_price,
                barcode = excluded.barcode,
                is_stock_only = excluded.is_stock_only
            """,
            (product_id, unit_id, factor, selling_price, cost_price, barcode, int(is_stock_only)),
            cursor,
        )

    def delete(self, conversion_id: int) -> None:
        self._run("DELETE FROM product_unit_conversions WHERE id = ?", (conversion_id,))

    def delete_for_product(self, product_id: int, cursor=None) -> None:
        self._run("DELETE FROM product_unit_conversions WHERE product_id = ?", (product_id,), cursor)

    def copy_to(self, source_product_id: int, target_product_id: int, cursor=None) -> None:
        # barcodes stay with the original product
        self._run(
            """
            INSERT INTO product_unit_conversions
                (product_id, unit_id, conversion_factor, selling_price, cost_price, barcode, is_stock_only)
            SELECT ?, unit_id, conversion_factor, selling_price, cost_price, NULL, is_stock_only
            FROM product_unit_conversions
            WHERE product_id = ?
            """,
            (target_product_id, source_product_id),
            cursor,
        )

    def get_by_id(self, conversion_id: int) -> Optional[UnitConversion]:
        row = self.db.query_one(self._SELECT + " WHERE c.id = ?", (conversion_id,))
        return self._to_model(row) if row else None

    def list_for_product(self, product_id: int) -> list[UnitConversion]:
        rows = self.db.query_all(self._SELECT + " WHERE c.product_id = ? ORDER BY c.conversion_factor", (product_id,))
        return [self._to_model(r) for r in rows]

    def load_all(self) -> list[UnitConversion]:
        return [self._to_model(r) for r in self.db.query_all(self._SELECT)]


class BundleLinkDAO(_BaseDAO):
    def create(self, bundle_product_id: int, component_product_id: int, quantity_per_bundle: Decimal, cursor=None) -> int:
        return self._run(
            "INSERT INTO product_links (bundle_product_id, component_product_id, quantity_per_bundle) VALUES (?, ?, ?)",
            (bundle_product_id, component_product_id, quantity_per_bundle),
            cursor,
        )

    def delete_for_bundle(self, bundle_product_id: int, cursor=None) -> None:
        self._run("DELETE FROM product_links WHERE bundle_product_id = ?", (bundle_product_id,), cursor)

    def bundles_using(self, component_product_id: int) -> list[dict[str, Any]]:
        return self.db.query_all(
            """
            SELECT DISTINCT b.id, b.name
            FROM product_links pl
            JOIN products b ON b.id = pl.bundle_product_id
            WHERE pl.component_product_id = ?
            ORDER BY b.name COLLATE NOCASE
            """,
            (component_product_id,),
        )

    def list_all(self) -> list[dict[str, Any]]:
        return self.db.query_all(
            """
            SELECT pl.id, pl.bundle_product_id, pl.component_product_id, pl.quantity_per_bundle,
                   p.name AS component_name
            FROM product_links pl
            LEFT JOIN products p ON p.id = pl.component_product_id
            ORDER BY pl.id
            """
        )


class PurchaseDAO(_BaseDAO):
    def create(self, purchased_at_iso: str, supplier_name: Optional[str], total_amount: Decimal, cursor=None) -> int:
        return self._run(
            "INSERT INTO purchases (purchased_at, supplier_name, total_amount) VALUES (?, ?, ?)",
            (purchased_at_iso, supplier_name, total_amount),
            cursor,
        )

    def add_detail(self, purchase_id: int, product_id: int, unit_id: Optional[int], quantity: int, base_quantity: int,
                   cost_price: Decimal, cursor=None) -> int:
        return self._run(
            """
            INSERT INTO purchase_details (purchase_id, product_id, unit_id, quantity, base_quantity, cost_price)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (purchase_id, product_id, unit_id, quantity, base_quantity, cost_price),
            cursor,
        )

    def has_history(self, product_id: int) -> bool:
        row = self.db.query_one("SELECT COUNT(1) AS n FROM purchase_details WHERE product_id = ?", (product_id,))
        return bool(row and row["n"])

    def list_recent(self, limit: int = 50) -> list[dict[str, Any]]:
        return self.db.query_all(
            """
            SELECT pu.id, pu.purchased_at, pu.supplier_name, pu.total_amount, COUNT(d.id) AS item_count
            FROM purchases pu
            LEFT JOIN purchase_details d ON d.purchase_id = pu.id
            GROUP BY pu.id
            ORDER BY pu.purchased_at DESC
            LIMIT ?
            """,
            (limit,),
        )


class ToDoDAO(_BaseDAO):
    def create(self, product_id: int, task_type: str, description: str) -> int:
        return self._run(
            "INSERT INTO todo_items (product_id, task_type, description, created_at) VALUES (?, ?, ?, ?)",
            (product_id, task_type, description, utc_now_iso()),
        )

    def complete(self, todo_id: int) -> None:
        self._run("UPDATE todo_items SET is_completed = 1 WHERE id = ?", (todo_id,))

    def get_by_id(self, todo_id: int) -> Optional[dict[str, Any]]:
        return self.db.query_one("SELECT * FROM todo_items WHERE id = ?", (todo_id,))

    def list_open(self, product_id: Optional[int] = None) -> list[ToDoItem]:
        sql = """
            SELECT t.id, t.product_id, p.name AS product_name, t.task_type, t.description, t.created_at, t.is_completed
            FROM todo_items t
            JOIN products p ON p.id = t.product_id
            WHERE t.is_completed = 0
            """
        params: tuple = ()
        if product_id is not None:
            sql += " AND t.product_id = ?"
            params = (product_id,)
        rows = self.db.query_all(sql + " ORDER BY t.created_at DESC, t.id DESC", params)
        return [
            ToDoItem(r["id"], r["product_id"], r["product_name"], r["task_type"], r["description"], r["created_at"],
                     bool(r["is_completed"]))
            for r in rows
        ]
