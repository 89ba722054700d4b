"""Shared fixtures: a throwaway SQLite store and a service over it."""

import pytest
from db import Database
from services import InventoryService


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "inventory.db")
    database.init_db()
    return database


@pytest.fixture
def service(db):
    return InventoryService(db)


@pytest.fixture
def units(service):
    """Unit ids of a small unit catalog: Pcs (seeded), Dozen and Box."""
    return {
        "Pcs": service.units.get_by_name("Pcs").unit_id,
        "Dozen": service.add_unit("Dozen", 2),
        "Box": service.add_unit("Box", 1),
    }
