"""
Local JSON-file estimate store.

Used for development and tests when Supabase is not configured. All
tables live in one JSON file that is rewritten after every change.
Rows keep insertion order, which is the order line items are listed in.
"""

import json
import logging
import os
from decimal import Decimal
from typing import Any, Dict, List, Optional

from costing import (
    ActualCostRecord,
    CostCategory,
    CostItem,
    CostSubElement,
    EstimateLineItem,
    Project,
    Unit,
)

from api.config import DEFAULT_DATABASE_TYPE, ESTIMATE_DATA_FILE

logger = logging.getLogger(__name__)

TABLES = (
    "cost_categories",
    "cost_sub_elements",
    "units",
    "cost_items",
    "projects",
    "project_estimates",
    "project_actuals",
)


def _encode(value: Any) -> Any:
    """Decimals are stored as strings so no precision is lost."""
    if isinstance(value, Decimal):
        return str(value)
    return value


class LocalEstimateStore:
    """Estimate store with JSON file persistence."""

    def __init__(self, data_file: Optional[str] = None):
        self.data_file = data_file or ESTIMATE_DATA_FILE
        self.tables: Dict[str, List[Dict[str, Any]]] = {name: [] for name in TABLES}
        self._load_from_file()

    def _load_from_file(self):
        """Load tables from the JSON file if it exists."""
        if not os.path.exists(self.data_file):
            return
        with open(self.data_file, "r") as f:
            data = json.load(f)
        for name in TABLES:
            self.tables[name] = data.get(name, [])
        logger.info("Loaded estimate data from %s", self.data_file)

    def _save_to_file(self):
        with open(self.data_file, "w") as f:
            json.dump(self.tables, f, indent=2)

    # =========================================================================
    # Generic row access
    # =========================================================================

    def _find(self, table: str, row_id: int) -> Optional[Dict[str, Any]]:
        for row in self.tables[table]:
            if row["id"] == row_id:
                return row
        return None

    def _next_id(self, table: str) -> int:
        return max((row["id"] for row in self.tables[table]), default=0) + 1

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row, assigning an id when none is given."""
        record = {key: _encode(value) for key, value in row.items()}
        if record.get("id") is None:
            record["id"] = self._next_id(table)
        self.tables[table].append(record)
        self._save_to_file()
        return record

    def _update(self, table: str, row_id: int, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row = self._find(table, row_id)
        if row is None:
            return None
        for key, value in changes.items():
            row[key] = _encode(value)
        self._save_to_file()
        return row

    def _delete(self, table: str, row_id: int) -> bool:
        row = self._find(table, row_id)
        if row is None:
            return False
        self.tables[table].remove(row)
        self._save_to_file()
        return True

    # =========================================================================
    # Catalog lookups
    # =========================================================================

    def get_cost_item(self, cost_item_id: int, database_type: Optional[str] = None) -> Optional[CostItem]:
        row = self._find("cost_items", cost_item_id)
        if row is None:
            return None
        if database_type and row.get("database_type", DEFAULT_DATABASE_TYPE) != database_type:
            return None
        return CostItem.from_row(row)

    def get_category(self, category_id: int) -> Optional[CostCategory]:
        row = self._find("cost_categories", category_id)
        return CostCategory.from_row(row) if row else None

    def get_sub_element(self, sub_element_id: int) -> Optional[CostSubElement]:
        row = self._find("cost_sub_elements", sub_element_id)
        return CostSubElement.from_row(row) if row else None

    def get_unit(self, unit_id: int) -> Optional[Unit]:
        row = self._find("units", unit_id)
        return Unit.from_row(row) if row else None

    def get_project(self, project_id: int) -> Optional[Project]:
        row = self._find("projects", project_id)
        if row is None:
            return None
        return Project.from_row({"database_type": DEFAULT_DATABASE_TYPE, **row})

    # =========================================================================
    # Estimate line items
    # =========================================================================

    def list_line_items(self, project_id: int) -> List[EstimateLineItem]:
        return [
            EstimateLineItem.from_row(row)
            for row in self.tables["project_estimates"]
            if row["project_id"] == project_id
        ]

    def get_line_item(self, line_id: int) -> Optional[EstimateLineItem]:
        row = self._find("project_estimates", line_id)
        return EstimateLineItem.from_row(row) if row else None

    def add_line_item(
        self,
        project_id: int,
        cost_item_id: int,
        quantity: Decimal,
        unit_cost_override: Optional[Decimal] = None,
        notes: str = "",
    ) -> EstimateLineItem:
        row = self.insert("project_estimates", {
            "project_id": project_id,
            "cost_item_id": cost_item_id,
            "quantity": quantity,
            "unit_cost_override": unit_cost_override,
            "notes": notes,
        })
        return EstimateLineItem.from_row(row)

    def update_line_item(self, line_id: int, **changes) -> Optional[EstimateLineItem]:
        row = self._update("project_estimates", line_id, changes)
        return EstimateLineItem.from_row(row) if row else None

    def delete_line_item(self, line_id: int) -> bool:
        return self._delete("project_estimates", line_id)

    # =========================================================================
    # Actual cost records
    # =========================================================================

    def list_actuals(self, project_id: int) -> List[ActualCostRecord]:
        return [
            ActualCostRecord.from_row(row)
            for row in self.tables["project_actuals"]
            if row["project_id"] == project_id
        ]

    def get_actual(self, actual_id: int) -> Optional[ActualCostRecord]:
        row = self._find("project_actuals", actual_id)
        return ActualCostRecord.from_row(row) if row else None

    def add_actual(self, project_id: int, cost_item_id: int, **fields) -> ActualCostRecord:
        row = self.insert("project_actuals", {
            "project_id": project_id,
            "cost_item_id": cost_item_id,
            **fields,
        })
        return ActualCostRecord.from_row(row)

    def update_actual(self, actual_id: int, **changes) -> Optional[ActualCostRecord]:
        row = self._update("project_actuals", actual_id, changes)
        return ActualCostRecord.from_row(row) if row else None

    def delete_actual(self, actual_id: int) -> bool:
        return self._delete("project_actuals", actual_id)
