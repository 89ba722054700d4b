import sqlite3
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Iterator, Optional

sqlite3.register_adapter(Decimal, str)


def _get_app_dir() -> Path:
    if getattr(sys, "frozen", False):  # PyInstaller onefile
        return Path(sys.executable).parent
    return Path(__file__).parent


class Database:
    """Database helper class for SQLite operations"""

    def __init__(self, db_path: Optional[str] = None):
        # Default to inventory.db in app directory
        if db_path is None:
            self.db_path = str(_get_app_dir() / "inventory.db")
        else:
            self.db_path = str(db_path)

    def _connect(self):
        """Create database connection with row factory"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def init_db(self):
        """Initialize database tables if they don't exist"""
        with self._connect() as conn:
            cursor = conn.cursor()

            # Unit catalog shared by all products
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS units (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    default_warning_threshold INTEGER NOT NULL DEFAULT 5
                );
            """)

            # Products table; stock is kept in base units
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS products (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    cost_price REAL,
                    stock INTEGER NOT NULL DEFAULT 0,
                    warning_stock_level INTEGER NOT NULL DEFAULT 0,
                    warning_stock_unit_id INTEGER,
                    alternate_names TEXT,
                    is_bundle INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (warning_stock_unit_id) REFERENCES units(id) ON DELETE SET NULL
                );
            """)

            # Unit conversions per product
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS product_unit_conversions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    product_id INTEGER NOT NULL,
                    unit_id INTEGER NOT NULL,
                    conversion_factor REAL NOT NULL,
                    selling_price REAL,
                    cost_price REAL,
                    barcode TEXT,
                    is_stock_only INTEGER NOT NULL DEFAULT 0,
                    UNIQUE (product_id, unit_id),
                    FOREIGN KEY (product_id) REFERENCES products(id) ON DELETE CASCADE,
                    FOREIGN KEY (unit_id) REFERENCES units(id) ON DELETE RESTRICT
                );
            """)

            # Bundle recipes
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS product_links (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    bundle_product_id INTEGER NOT NULL,
                    component_product_id INTEGER NOT NULL,
                    quantity_per_bundle REAL NOT NULL,
                    FOREIGN KEY (bundle_product_id) REFERENCES products(id) ON DELETE CASCADE,
                    FOREIGN KEY (component_product_id) REFERENCES products(id) ON DELETE RESTRICT
                );
            """)

            # Purchases table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS purchases (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    purchased_at TEXT NOT NULL,
                    supplier_name TEXT,
                    total_amount REAL NOT NULL DEFAULT 0
                );
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS purchase_details (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    purchase_id INTEGER NOT NULL,
                    product_id INTEGER NOT NULL,
                    unit_id INTEGER,
                    quantity INTEGER NOT NULL,
                    base_quantity INTEGER NOT NULL,
                    cost_price REAL NOT NULL,
                    FOREIGN KEY (purchase_id) REFERENCES purchases(id) ON DELETE CASCADE,
                    FOREIGN KEY (product_id) REFERENCES products(id) ON DELETE RESTRICT
                );
            """)

            # To-do items attached to products
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS todo_items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    product_id INTEGER NOT NULL,
                    task_type TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY (product_id) REFERENCES products(id) ON DELETE CASCADE
                );
            """)

            # Create indexes for better performance
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_conversions_product_id ON product_unit_conversions(product_id);")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_conversions_barcode ON product_unit_conversions(barcode);")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_links_bundle_id ON product_links(bundle_product_id);")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_purchase_details_purchase_id ON purchase_details(purchase_id);")

            # Every bundle gets a "Pcs" base unit
            cursor.execute("INSERT OR IGNORE INTO units (name, default_warning_threshold) VALUES ('Pcs', 5);")

            conn.commit()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """Cursor whose statements commit together, or roll back on error"""
        conn = self._connect()
        try:
            with conn:
                yield conn.cursor()
        finally:
            conn.close()

    def execute(self, sql, params=()):
        """Execute SQL and return last row id"""
        with self.transaction() as cursor:
            cursor.execute(sql, params)
            return cursor.lastrowid

    def query_all(self, sql, params=()):
        """Query and return all rows as list of dicts"""
        with self.transaction() as cursor:
            cursor.execute(sql, params)
            return [dict(row) for row in cursor.fetchall()]

    def query_one(self, sql, params=()):
        """Query and return single row as dict, or None"""
        with self.transaction() as cursor:
            cursor.execute(sql, params)
            row = cursor.fetchone()
            return dict(row) if row else None


def utc_now_iso():
    """Get current UTC time as ISO string"""
    return datetime.now(timezone.utc).isoformat()
