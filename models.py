"""
Data model for the Inventory Management System
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


@dataclass
class BundleComponent:
    """One line of a bundle recipe, pointing at its component product by id."""

    component_product_id: int
    quantity_per_bundle: Decimal
    component_name: str = ""
    link_id: Optional[int] = None


@dataclass
class Product:
    product_id: int
    name: str
    stock: int = 0
    cost_price: Optional[Decimal] = None
    is_bundle: bool = False
    warning_stock_level: int = 0
    warning_stock_unit_id: Optional[int] = None
    alternate_names: str = ""
    components: list[BundleComponent] = field(default_factory=list)
    has_todo: bool = False
    is_low_on_stock: bool = False


@dataclass
class UnitConversion:
    product_id: int
    unit_id: int
    unit_name: str
    conversion_factor: Decimal
    conversion_id: Optional[int] = None
    selling_price: Optional[Decimal] = None
    cost_price: Optional[Decimal] = None
    barcode: Optional[str] = None
    is_stock_only: bool = False

    @property
    def is_base_unit(self) -> bool:
        return self.conversion_factor == 1


@dataclass
class Unit:
    unit_id: int
    name: str
    default_warning_threshold: int = 5


@dataclass
class ToDoItem:
    todo_id: int
    product_id: int
    product_name: str
    task_type: str
    description: str
    created_at: str
    is_completed: bool = False
