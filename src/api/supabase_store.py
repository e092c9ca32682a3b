"""
Supabase Estimate Store

Reads the cost catalog, projects, estimate line items and actual cost
records from Supabase tables and returns engine model objects.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from supabase import create_client, Client

from costing import (
    ActualCostRecord,
    CostCategory,
    CostItem,
    CostSubElement,
    EstimateLineItem,
    Project,
    Unit,
)

from api.config import DEFAULT_DATABASE_TYPE, SUPABASE_SERVICE_KEY, SUPABASE_URL

logger = logging.getLogger(__name__)

# Initialize Supabase client (will be None if no service key)
supabase: Optional[Client] = None


def get_supabase_client() -> Optional[Client]:
    """Get or create Supabase client."""
    global supabase
    if supabase is None and SUPABASE_SERVICE_KEY and SUPABASE_URL:
        supabase = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return supabase


def _payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """Decimals go over the wire as strings; Postgres numeric parses them exactly."""
    return {key: str(value) if isinstance(value, Decimal) else value for key, value in data.items()}


class SupabaseEstimateStore:
    """Estimate store backed by Supabase database."""

    def __init__(self, client: Optional[Client] = None):
        self.client = client or get_supabase_client()
        if not self.client:
            raise RuntimeError("Supabase client not initialized. Check SUPABASE_URL and SUPABASE_SERVICE_KEY.")

    def _get_row(self, table: str, row_id: int, **filters) -> Optional[Dict[str, Any]]:
        query = self.client.table(table).select("*").eq("id", row_id)
        for column, value in filters.items():
            query = query.eq(column, value)
        result = query.limit(1).execute()
        return result.data[0] if result.data else None

    def _list_rows(self, table: str, project_id: int) -> List[Dict[str, Any]]:
        # id order is insertion order
        result = self.client.table(table).select("*").eq("project_id", project_id).order("id").execute()
        return result.data or []

    # =========================================================================
    # Catalog lookups
    # =========================================================================

    def get_cost_item(self, cost_item_id: int, database_type: Optional[str] = None) -> Optional[CostItem]:
        filters = {"database_type": database_type} if database_type else {}
        row = self._get_row("cost_items", cost_item_id, **filters)
        return CostItem.from_row(row) if row else None

    def get_category(self, category_id: int) -> Optional[CostCategory]:
        row = self._get_row("cost_categories", category_id)
        return CostCategory.from_row(row) if row else None

    def get_sub_element(self, sub_element_id: int) -> Optional[CostSubElement]:
        row = self._get_row("cost_sub_elements", sub_element_id)
        return CostSubElement.from_row(row) if row else None

    def get_unit(self, unit_id: int) -> Optional[Unit]:
        row = self._get_row("units", unit_id)
        return Unit.from_row(row) if row else None

    def get_project(self, project_id: int) -> Optional[Project]:
        row = self._get_row("projects", project_id)
        if row is None:
            return None
        return Project.from_row({**row, "database_type": row.get("database_type") or DEFAULT_DATABASE_TYPE})

    # =========================================================================
    # Estimate line items
    # =========================================================================

    def list_line_items(self, project_id: int) -> List[EstimateLineItem]:
        return [EstimateLineItem.from_row(row) for row in self._list_rows("project_estimates", project_id)]

    def get_line_item(self, line_id: int) -> Optional[EstimateLineItem]:
        row = self._get_row("project_estimates", line_id)
        return EstimateLineItem.from_row(row) if row else None

    def add_line_item(
        self,
        project_id: int,
        cost_item_id: int,
        quantity: Decimal,
        unit_cost_override: Optional[Decimal] = None,
        notes: str = "",
    ) -> EstimateLineItem:
        data = _payload({
            "project_id": project_id,
            "cost_item_id": cost_item_id,
            "quantity": quantity,
            "unit_cost_override": unit_cost_override,
            "notes": notes,
        })
        result = self.client.table("project_estimates").insert(data).execute()
        return EstimateLineItem.from_row(result.data[0])

    def update_line_item(self, line_id: int, **changes) -> Optional[EstimateLineItem]:
        if not changes:
            return self.get_line_item(line_id)
        result = self.client.table("project_estimates").update(_payload(changes)).eq("id", line_id).execute()
        return EstimateLineItem.from_row(result.data[0]) if result.data else None

    def delete_line_item(self, line_id: int) -> bool:
        result = self.client.table("project_estimates").delete().eq("id", line_id).execute()
        return bool(result.data)

    # =========================================================================
    # Actual cost records
    # =========================================================================

    def list_actuals(self, project_id: int) -> List[ActualCostRecord]:
        return [ActualCostRecord.from_row(row) for row in self._list_rows("project_actuals", project_id)]

    def get_actual(self, actual_id: int) -> Optional[ActualCostRecord]:
        row = self._get_row("project_actuals", actual_id)
        return ActualCostRecord.from_row(row) if row else None

    def add_actual(self, project_id: int, cost_item_id: int, **fields) -> ActualCostRecord:
        data = _payload({"project_id": project_id, "cost_item_id": cost_item_id, **fields})
        result = self.client.table("project_actuals").insert(data).execute()
        return ActualCostRecord.from_row(result.data[0])

    def update_actual(self, actual_id: int, **changes) -> Optional[ActualCostRecord]:
        if not changes:
            return self.get_actual(actual_id)
        result = self.client.table("project_actuals").update(_payload(changes)).eq("id", actual_id).execute()
        return ActualCostRecord.from_row(result.data[0]) if result.data else None

    def delete_actual(self, actual_id: int) -> bool:
        result = self.client.table("project_actuals").delete().eq("id", actual_id).execute()
        return bool(result.data)
