# tests/conftest.py
from decimal import Decimal

import pytest

from costing import CostCategory, CostItem, CostSubElement, EstimateLineItem, Unit
from api.local_store import LocalEstimateStore


@pytest.fixture
def slab_item():
    # materialTotal 315, management 30, contractor 60 at quantity 3
    return CostItem(
        id=100,
        sub_element_id=10,
        unit_id=1,
        material_cost=Decimal("100"),
        management_cost=Decimal("10"),
        contractor_cost=Decimal("20"),
        is_contractor_required=True,
        waste_factor=Decimal("1.05"),
        code="SUB-001",
        description="Concrete slab",
    )


@pytest.fixture
def categories():
    return {
        1: CostCategory(id=1, name="Substructure", sort_order=1),
        2: CostCategory(id=2, name="Finishes", sort_order=5),
    }


@pytest.fixture
def sub_elements():
    return {
        10: CostSubElement(id=10, category_id=1, name="Foundations"),
        20: CostSubElement(id=20, category_id=2, name="Wall finishes"),
        21: CostSubElement(id=21, category_id=2, name="Floor finishes"),
    }


@pytest.fixture
def unit_m2():
    return Unit(id=1, code="m2", name="Square metre")


@pytest.fixture
def make_line():
    def _make(line_id, cost_item_id, quantity, override=None, project_id=1):
        return EstimateLineItem(
            id=line_id,
            project_id=project_id,
            cost_item_id=cost_item_id,
            quantity=Decimal(str(quantity)),
            unit_cost_override=None if override is None else Decimal(str(override)),
        )
    return _make


def seed_catalog(store):
    store.insert("cost_categories", {"id": 1, "name": "Substructure", "sort_order": 1, "code": "SUB"})
    store.insert("cost_categories", {"id": 2, "name": "Finishes", "sort_order": 5, "code": "FIN"})
    store.insert("cost_sub_elements", {"id": 10, "category_id": 1, "name": "Foundations"})
    store.insert("cost_sub_elements", {"id": 20, "category_id": 2, "name": "Wall finishes"})
    store.insert("units", {"id": 1, "code": "m2", "name": "Square metre", "unit_type": "area"})
    store.insert("units", {"id": 2, "code": "m", "name": "Metre", "unit_type": "length"})
    store.insert("cost_items", {
        "id": 100, "sub_element_id": 10, "unit_id": 1,
        "material_cost": "100", "management_cost": "10", "contractor_cost": "20",
        "is_contractor_required": True, "waste_factor": "1.05",
        "code": "SUB-001", "description": "Concrete slab", "database_type": "standard_uk",
    })
    store.insert("cost_items", {
        "id": 200, "sub_element_id": 20, "unit_id": 2,
        "material_cost": "12.50", "management_cost": "0", "contractor_cost": "0",
        "is_contractor_required": False, "waste_factor": "1",
        "code": "FIN-001", "description": "Skirting board", "database_type": "standard_uk",
    })
    store.insert("cost_items", {
        "id": 300, "sub_element_id": 20, "unit_id": 2,
        "material_cost": "8", "management_cost": "1", "contractor_cost": "0",
        "is_contractor_required": False, "waste_factor": "1",
        "code": "WIT-001", "description": "Reclaimed skirting", "database_type": "witness",
    })


@pytest.fixture
def store(tmp_path):
    store = LocalEstimateStore(str(tmp_path / "estimates.json"))
    seed_catalog(store)
    store.insert("projects", {
        "id": 1, "name": "Community Hall", "floor_area_m2": "50",
        "contingency_percentage": "10", "database_type": "standard_uk",
    })
    return store


@pytest.fixture
def client(store):
    from fastapi.testclient import TestClient
    from api.main import app, get_store

    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
