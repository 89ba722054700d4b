"""
Console UI for the Inventory Management System
"""
import csv
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from breakdown import breakdown, format_breakdown
from services import CatalogSnapshot, InventoryService
from settings import get_currency, load_settings, save_settings


def prompt_int(message: str, allow_empty: bool = False) -> Optional[int]:
    while True:
        raw = input(message).strip()
        if allow_empty and raw == "":
            return None
        try:
            return int(raw)
        except ValueError:
            print("Enter a valid integer.")


def prompt_float(message: str, allow_empty: bool = False) -> Optional[float]:
    while True:
        raw = input(message).strip()
        if allow_empty and raw == "":
            return None
        try:
            return float(raw)
        except ValueError:
            print("Enter a valid number.")


def prompt_str(message: str, allow_empty: bool = False) -> Optional[str]:
    while True:
        raw = input(message).strip()
        if allow_empty or raw != "":
            return raw if raw != "" else None
        print("This field cannot be empty.")


def pause() -> None:
    input("Press Enter to continue...")


def confirm(message: str) -> bool:
    answer = input(f"{message} [y/N]: ").strip().lower()
    return answer in ("y", "yes")


def format_currency(value) -> str:
    if value is None:
        return "-"
    return f"{get_currency()}{float(value):,.2f}"


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def export_csv(filename: str, headers: list[str], rows: list[list[object]]) -> Path:
    export_dir = Path(__file__).with_name("exports")
    ensure_dir(export_dir)
    export_path = export_dir / filename
    with export_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(headers)
        writer.writerows(rows)
    return export_path


def stock_text(snapshot: CatalogSnapshot, product) -> str:
    if product.is_bundle:
        return f"Virtual stock: {product.stock}"
    return format_breakdown(breakdown(product.stock, snapshot.table.conversions_for(product.product_id)))


def print_products_table(snapshot: CatalogSnapshot, products=None) -> None:
    products = snapshot.products if products is None else products
    if not products:
        print("No products found.")
        return
    print("ID  | Name                           | Bundle | Stock (base) | Breakdown                      | Low | To-do")
    print("----+---------------------------------+--------+--------------+--------------------------------+----+------")
    for p in products:
        print(
            f"{p.product_id:>3} | {p.name[:31]:<31} | {'yes' if p.is_bundle else '':<6} | {p.stock:>12} | "
            f"{stock_text(snapshot, p)[:30]:<30} | {'!' if p.is_low_on_stock else '':<3} | {'*' if p.has_todo else ''}"
        )


def print_units(service: InventoryService) -> None:
    units = service.list_units()
    if not units:
        print("No units defined.")
        return
    print("ID  | Unit                 | Default warning")
    print("----+----------------------+----------------")
    for u in units:
        print(f"{u.unit_id:>3} | {u.name[:20]:<20} | {u.default_warning_threshold:>15}")


def print_conversions(service: InventoryService, product_id: int) -> None:
    conversions = service.list_conversions(product_id)
    if not conversions:
        print("No units for this product.")
        return
    print("ID  | Unit                 | Factor   | Price        | Cost         | Barcode         | Stock only")
    print("----+----------------------+----------+--------------+--------------+-----------------+-----------")
    for c in conversions:
        print(
            f"{c.conversion_id:>3} | {c.unit_name[:20]:<20} | {str(c.conversion_factor):>8} | "
            f"{format_currency(c.selling_price):>12} | {format_currency(c.cost_price):>12} | "
            f"{(c.barcode or '')[:15]:<15} | {'yes' if c.is_stock_only else ''}"
        )


def manage_products(service: InventoryService) -> None:
    while True:
        print("\n-- Manage Products --")
        print("1) List products")
        print("2) Add product")
        print("3) Update product")
        print("4) Delete product")
        print("5) Duplicate product")
        print("6) Search products (name, alternate name, barcode)")
        print("7) Show product details")
        print("0) Back")
        choice = input("Choose an option: ").strip()
        if choice == "1":
            print_products_table(service.load_catalog(warn=False))
            pause()
        elif choice == "2":
            name = prompt_str("Name: ")
            cost = prompt_float("Cost price (optional): ", allow_empty=True)
            alt = prompt_str("Alternate names (optional): ", allow_empty=True)
            print_units(service)
            unit_id = prompt_int("Base unit ID (optional): ", allow_empty=True)
            try:
                service.add_product(name or "", cost, alt, unit_id)
                print("Product added.")
            except Exception as e:
                print(f"Error: {e}")
            pause()
        elif choice == "3":
            print_products_table(service.load_catalog(warn=False))
            pid = prompt_int("Product ID to update: ")
            if pid is None:
                continue
            name = prompt_str("New name (optional): ", allow_empty=True)
            cost = prompt_float("New cost price (optional): ", allow_empty=True)
            alt = prompt_str("New alternate names (optional): ", allow_empty=True)
            level = prompt_int("New warning stock level (optional): ", allow_empty=True)
            print_units(service)
            warn_unit = prompt_int("Warning level unit ID (optional): ", allow_empty=True)
            fields = {}
            if name is not None:
                fields["name"] = name
            if cost is not None:
                fields["cost_price"] = cost
            if alt is not None:
                fields["alternate_names"] = alt
            if level is not None:
                fields["warning_stock_level"] = level
            if warn_unit is not None:
                fields["warning_stock_unit_id"] = warn_unit
            try:
                service.update_product(pid, **fields)
                print("Product updated.")
            except Exception as e:
                print(f"Error: {e}")
            pause()
        elif choice == "4":
            print_products_table(service.load_catalog(warn=False))
            pid = prompt_int("Product ID to delete: ")
            if pid is None:
                continue
            if not confirm("Are you sure you want to delete this product and all its units?"):
                print("Cancelled.")
                pause()
                continue
            try:
                service.delete_product(pid)
                print("Product deleted.")
            except Exception as e:
                print(f"Error: {e}")
            pause()
        elif choice == "5":
            pid = prompt_int("Product ID to duplicate: ")
            try:
                new_id = service.duplicate_product(pid or 0)
                print(f"Product duplicated (new ID {new_id}).")
            except Exception as e:
                print(f"Error: {e}")
            pause()
        elif choice == "6":
            q = prompt_str("Search: ", allow_empty=True)
            snapshot = service.load_catalog(warn=False)
            print_products_table(snapshot, service.search_products(q, snapshot))
            pause()
        elif choice == "7":
            pid = prompt_int("Product ID: ")
            snapshot = service.load_catalog(warn=False)
            product = snapshot.product(pid or 0)
            if product is None:
                print("Product not found.")
            else:
                print(f"\n{product.name}  (cost {format_currency(product.cost_price)})")
                print(f"Stock: {stock_text(snapshot, product)}")
                if product.is_bundle:
                    for c in product.components:
                        print(f"  - {c.quantity_per_bundle} x {c.component_name or c.component_product_id}")
                print(f"Warning level: {product.warning_stock_level}  Low on stock: {'yes' if product.is_low_on_stock else 'no'}")
                print_conversions(service, product.product_id)
                todos = service.list_open_todos(product.product_id)
                if todos:
                    print("Open tasks:")
                    for t in todos:
                        print(f"  [{t.todo_id}] {t.created_at[:16]} {t.task_type}: {t.description}")
            pause()
        elif choice == "0":
            return
        else:
            print("Invalid option.")


def manage_units(service: InventoryService) -> None:
    while True:
        print("\n-- Units & Conversions --")
        print("1) List units")
        print("2) Add unit")
        print("3) Edit unit")
        print("4) Show units of a product")
        print("5) Add/update product unit")
        print("6) Remove product unit")
        print("0) Back")
        choice = input("Choose an option: ").strip()
        if choice == "1":
            print_units(service)
            pause()
        elif choice == "2":
            name = prompt_str("Unit name: ")
            threshold = prompt_int("Default warning threshold (optional): ", allow_empty=True)
            try:
                service.add_unit(name or "", threshold)
                print("Unit added.")
            except Exception as e:
                print(f"Error: {e}")
            pause()
        elif choice == "3":
            print_units(service)
            uid = prompt_int("Unit ID to edit: ")
            name = prompt_str("Unit name: ")
            threshold = prompt_int("Default warning threshold: ")
            try:
                service.update_unit(uid or 0, name or "", threshold or 0)
                print("Unit saved.")
            except Exception as e:
                print(f"Error: {e}")
            pause()
        elif choice == "4":
            pid = prompt_int("Product ID: ")
            print_conversions(service, pid or 0)
            pause()
        elif choice == "5":
            pid = prompt_int("Product ID: ")
            print_units(service)
            uid = prompt_int("Unit ID: ")
            factor = prompt_float("Base units per this unit: ")
            stock_only = confirm("Stock only (not sold in this unit)?")
            price = None if stock_only else prompt_float("Selling price: ")
            cost = prompt_float("Cost price (optional): ", allow_empty=True)
            barcode = prompt_str("Barcode (optional): ", allow_empty=True)
            try:
                service.save_conversion(pid or 0, uid or 0, factor, price, cost, barcode, stock_only)
                print("Unit saved.")
            except Exception as e:
                print(f"Error: {e}")
            pause()
        elif choice == "6":
            pid = prompt_int("Product ID: ")
            print_conversions(service, pid or 0)
            cid = prompt_int("Conversion ID to remove: ")
            if not confirm("Remove this unit?"):
                print("Cancelled.")
                pause()
                continue
            try:
                service.remove_conversion(cid or 0)
                print("Unit removed.")
            except Exception as e:
                print(f"Error: {e}")
            pause()
        elif choice == "0":
            return
        else:
            print("Invalid option.")


def create_bundle(service: InventoryService) -> None:
    snapshot = service.load_catalog(warn=False)
    print_products_table(snapshot, [p for p in snapshot.products if not p.is_bundle])
    name = prompt_str("Bundle name: ")
    price = prompt_float("Selling price: ")
    barcode = prompt_str("Barcode (optional): ", allow_empty=True)
    components = []
    print("Add components (empty product ID to finish).")
    while True:
        pid = prompt_int("Component product ID: ", allow_empty=True)
        if pid is None:
            break
        qty = prompt_float("Quantity per bundle: ")
        components.append((pid, qty))
    try:
        service.create_bundle(name or "", price, components, barcode)
        print("Bundle saved.")
    except Exception as e:
        print(f"Error: {e}")
    pause()


def add_stock(service: InventoryService) -> None:
    print_products_table(service.load_catalog(warn=False))
    pid = prompt_int("Product ID: ")
    print_conversions(service, pid or 0)
    uid = prompt_int("Unit ID (Enter for base unit): ", allow_empty=True)
    qty = prompt_int("Quantity: ")
    try:
        added = service.add_stock(pid or 0, qty or 0, uid)
        print(f"Stock added ({added} base unit(s)).")
    except Exception as e:
        print(f"Error: {e}")
    pause()


def record_purchase(service: InventoryService) -> None:
    supplier = prompt_str("Supplier name (optional): ", allow_empty=True)
    snapshot = service.load_catalog(warn=False)
    items = []
    print("Add items by barcode or product ID (empty to finish).")
    while True:
        entry = prompt_str("Barcode or product ID: ", allow_empty=True)
        if entry is None:
            break
        uid = None
        match = service.find_by_barcode(entry, snapshot)
        if match is not None:
            product, conversion = match
            pid, uid = product.product_id, conversion.unit_id
            print(f"{product.name} ({conversion.unit_name})")
        elif entry.isdigit() and snapshot.product(int(entry)) is not None:
            pid = int(entry)
            print_conversions(service, pid)
            base = snapshot.table.base_unit_of(pid)
            label = base.unit_name if base is not None else "base unit"
            uid = prompt_int(f"Unit ID (Enter for {label}): ", allow_empty=True)
        else:
            print("No product with that barcode or ID.")
            continue
        qty = prompt_int("Quantity: ")
        cost = prompt_float("Cost price per unit: ")
        items.append({"product_id": pid, "unit_id": uid, "quantity": qty, "cost_price": cost})
    try:
        service.record_purchase(items, supplier)
        print("Purchase recorded and stock updated.")
    except Exception as e:
        print(f"Error: {e}")
    pause()


def reports_menu(service: InventoryService) -> None:
    while True:
        print("\n-- Reports --")
        print("1) Stock levels")
        print("2) Low stock items")
        print("3) Catalog check")
        print("4) Recent purchases")
        print("5) Export stock to CSV")
        print("6) Export low stock to CSV")
        print("0) Back")
        choice = input("Choose an option: ").strip()
        if choice == "1":
            print_products_table(service.load_catalog())
            pause()
        elif choice == "2":
            low = service.report_low_stock()
            if not low:
                print("No low stock items.")
            else:
                print("ID  | Name                           | Stock | Threshold | Breakdown")
                print("----+---------------------------------+-------+-----------+------------------------------")
                for r in low:
                    p = r["product"]
                    print(f"{p.product_id:>3} | {p.name[:31]:<31} | {r['stock']:>5} | {str(r['threshold']):>9} | {format_breakdown(r['breakdown'])}")
            pause()
        elif choice == "3":
            result = service.analyze_catalog()
            print(f"\nProducts without units ({len(result['no_units'])}):")
            for p in result["no_units"]:
                print(f"  - {p.name}")
            print(f"Units without barcode ({len(result['no_barcode'])}):")
            for r in result["no_barcode"]:
                print(f"  - {r['product_name']} / {r['unit_name']}")
            print(f"Duplicate barcodes ({len(result['duplicate_barcodes'])}):")
            for r in result["duplicate_barcodes"]:
                print(f"  - {r['barcode']}: {r['product_name']} / {r['unit_name']}")
            print(f"Units without a valid price ({len(result['no_price'])}):")
            for r in result["no_price"]:
                print(f"  - {r['product_name']} / {r['unit_name']}")
            pause()
        elif choice == "4":
            purchases = service.list_recent_purchases()
            if not purchases:
                print("No purchases yet.")
            else:
                print("Date & Time (UTC)        | Supplier             | Items | Total")
                print("-------------------------+----------------------+-------+-------------")
                for p in purchases:
                    print(f"{p['purchased_at'][:23]:<23} | {(p.get('supplier_name') or '')[:20]:<20} | {p['item_count']:>5} | {format_currency(p['total_amount']):>11}")
            pause()
        elif choice == "5":
            snapshot = service.load_catalog()
            rows = [[p.product_id, p.name, int(p.is_bundle), p.stock, stock_text(snapshot, p), p.warning_stock_level, int(p.is_low_on_stock)]
                    for p in snapshot.products]
            path = export_csv("stock_levels.csv", ["id", "name", "is_bundle", "stock", "breakdown", "warning_stock_level", "is_low_on_stock"], rows)
            print(f"Exported to {path}")
            pause()
        elif choice == "6":
            low = service.report_low_stock()
            rows = [[r["product"].product_id, r["product"].name, r["stock"], str(r["threshold"]), format_breakdown(r["breakdown"])] for r in low]
            path = export_csv("low_stock.csv", ["id", "name", "stock", "threshold", "breakdown"], rows)
            print(f"Exported to {path}")
            pause()
        elif choice == "0":
            return
        else:
            print("Invalid option.")


def todo_menu(service: InventoryService) -> None:
    while True:
        print("\n-- To-Do List --")
        print("1) Open tasks")
        print("2) Add task for a product")
        print("3) Complete task")
        print("0) Back")
        choice = input("Choose an option: ").strip()
        if choice == "1":
            todos = service.list_open_todos()
            if not todos:
                print("No open tasks.")
            for t in todos:
                print(f"{t.todo_id:>3} | {t.created_at[:16]} | {t.product_name[:25]:<25} | {t.task_type[:15]:<15} | {t.description}")
            pause()
        elif choice == "2":
            pid = prompt_int("Product ID: ")
            task_type = prompt_str("Task type (e.g. Check price, Restock): ")
            desc = prompt_str("Description (optional): ", allow_empty=True)
            try:
                service.add_todo(pid or 0, task_type or "", desc or "")
                print("Task added.")
            except Exception as e:
                print(f"Error: {e}")
            pause()
        elif choice == "3":
            tid = prompt_int("Task ID: ")
            try:
                service.complete_todo(tid or 0)
                print("Task completed.")
            except Exception as e:
                print(f"Error: {e}")
            pause()
        elif choice == "0":
            return
        else:
            print("Invalid option.")


def utilities_menu(service: InventoryService) -> None:
    while True:
        print("\n-- Utilities --")
        print("1) Backup database")
        print("2) Change currency symbol")
        print("0) Back")
        choice = input("Choose an option: ").strip()
        if choice == "1":
            db_file = Path(service.db.db_path)
            if not db_file.exists():
                print("Database file not found.")
                pause()
                continue
            backups_dir = db_file.with_name("backups")
            ensure_dir(backups_dir)
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
            backup_path = backups_dir / f"inventory_{timestamp}.db"
            shutil.copy2(db_file, backup_path)
            print(f"Backup created: {backup_path}")
            pause()
        elif choice == "2":
            settings = load_settings()
            print(f"Current currency symbol: {settings['currency']}")
            new_symbol = input("Enter new currency symbol (e.g., Rp, $, €, £): ").strip()
            if new_symbol:
                settings["currency"] = new_symbol
                save_settings(settings)
                print("Currency updated.")
            else:
                print("No change.")
            pause()
        elif choice == "0":
            return
        else:
            print("Invalid option.")


def run(service: InventoryService) -> None:
    notice = service.low_stock_notice()
    if notice:
        print(notice)
    while True:
        print("\n== Inventory Management System ==")
        print("1) Manage Products")
        print("2) Units & Conversions")
        print("3) Create Bundle")
        print("4) Add Stock")
        print("5) Record Purchase")
        print("6) Reports")
        print("7) To-Do List")
        print("8) Utilities")
        print("0) Exit")
        choice = input("Choose an option: ").strip()
        if choice == "1":
            manage_products(service)
        elif choice == "2":
            manage_units(service)
        elif choice == "3":
            create_bundle(service)
        elif choice == "4":
            add_stock(service)
        elif choice == "5":
            record_purchase(service)
        elif choice == "6":
            reports_menu(service)
        elif choice == "7":
            todo_menu(service)
        elif choice == "8":
            utilities_menu(service)
        elif choice == "0":
            print("Goodbye!")
            return
        else:
            print("Invalid option.")
