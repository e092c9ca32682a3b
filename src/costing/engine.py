"""
Estimation pipeline.

Loads a project's line items and the catalog entries they reference
through a store, then runs resolver -> aggregator -> totals. A line with
a dangling catalog reference is left out of the totals and reported in
``EstimateResult.skipped`` instead of failing the whole project.

The store is any object providing:

    get_project(project_id) -> Project | None
    list_line_items(project_id) -> list[EstimateLineItem]   (insertion order)
    list_actuals(project_id) -> list[ActualCostRecord]
    get_cost_item(cost_item_id, database_type=None) -> CostItem | None
    get_sub_element(sub_element_id) -> CostSubElement | None
    get_category(category_id) -> CostCategory | None
    get_unit(unit_id) -> Unit | None
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from .actuals import compare_project_actuals
from .aggregator import aggregate
from .errors import CatalogReferenceError, ProjectNotFoundError
from .models import (
    ActualsComparison,
    CostCategory,
    CostItem,
    CostSubElement,
    EstimateResult,
    Project,
    ResolvedLine,
    SkippedLine,
    Unit,
)
from .resolver import resolve_line
from .totals import compute_totals

logger = logging.getLogger(__name__)


class CatalogSnapshot:
    """
    Read-through cache of catalog lookups for one computation.

    Created per call and thrown away afterwards, so edits to the catalog
    are visible on the next request. Misses are cached too.
    """

    def __init__(self, store: Any, database_type: Optional[str] = None):
        self.store = store
        self.database_type = database_type
        self.cost_items: Dict[int, Optional[CostItem]] = {}
        self.sub_elements: Dict[int, Optional[CostSubElement]] = {}
        self.categories: Dict[int, Optional[CostCategory]] = {}
        self.units: Dict[int, Optional[Unit]] = {}

    def get_cost_item(self, cost_item_id: int) -> Optional[CostItem]:
        if cost_item_id not in self.cost_items:
            self.cost_items[cost_item_id] = self.store.get_cost_item(
                cost_item_id, database_type=self.database_type
            )
        return self.cost_items[cost_item_id]

    def get_sub_element(self, sub_element_id: int) -> Optional[CostSubElement]:
        if sub_element_id not in self.sub_elements:
            self.sub_elements[sub_element_id] = self.store.get_sub_element(sub_element_id)
        return self.sub_elements[sub_element_id]

    def get_category(self, category_id: int) -> Optional[CostCategory]:
        if category_id not in self.categories:
            self.categories[category_id] = self.store.get_category(category_id)
        return self.categories[category_id]

    def get_unit(self, unit_id: int) -> Optional[Unit]:
        if unit_id not in self.units:
            self.units[unit_id] = self.store.get_unit(unit_id)
        return self.units[unit_id]

    def found(self, cache: Dict[int, Any]) -> Dict[int, Any]:
        """Only the entries that resolved."""
        return {key: value for key, value in cache.items() if value is not None}


def _load_project(store: Any, project_id: int) -> Project:
    project = store.get_project(project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)
    return project


def resolve_project_lines(
    project_id: int,
    store: Any,
    catalog: CatalogSnapshot,
) -> Tuple[List[ResolvedLine], List[SkippedLine]]:
    """Resolve every stored line of a project, collecting dangling ones."""
    resolved: List[ResolvedLine] = []
    skipped: List[SkippedLine] = []

    for line in store.list_line_items(project_id):
        item = catalog.get_cost_item(line.cost_item_id)
        sub_element = catalog.get_sub_element(item.sub_element_id) if item else None
        category = catalog.get_category(sub_element.category_id) if sub_element else None
        try:
            if item is not None and sub_element is None:
                raise CatalogReferenceError(
                    f"Sub-element {item.sub_element_id} not found for cost item {item.id}",
                    cost_item_id=item.id,
                    estimate_line_item_id=line.id,
                )
            if sub_element is not None and category is None:
                raise CatalogReferenceError(
                    f"Category {sub_element.category_id} not found for sub-element {sub_element.id}",
                    cost_item_id=line.cost_item_id,
                    estimate_line_item_id=line.id,
                )
            unit = catalog.get_unit(item.unit_id) if item else None
            resolved.append(resolve_line(line, item, sub_element, unit))
        except CatalogReferenceError as e:
            logger.warning("Skipping estimate line %s in project %s: %s", line.id, project_id, e)
            skipped.append(SkippedLine(
                estimate_line_item_id=line.id,
                cost_item_id=line.cost_item_id,
                reason=str(e),
            ))

    return resolved, skipped


def calculate_project_total(
    project_id: int,
    store: Any,
    database_type: Optional[str] = None,
) -> EstimateResult:
    """
    Compute the estimate totals of a project.

    Args:
        project_id: Project to compute
        store: Data-access collaborator (see module docstring)
        database_type: Catalog partition; defaults to the project's own

    Returns:
        EstimateResult with totals and skipped lines

    Raises:
        ProjectNotFoundError: unknown project
        EstimateValidationError: a stored quantity/override or the
            project's contingency is invalid
    """
    project = _load_project(store, project_id)
    catalog = CatalogSnapshot(store, database_type or project.database_type)

    resolved, skipped = resolve_project_lines(project_id, store, catalog)
    rollups = aggregate(
        resolved,
        catalog.found(catalog.categories),
        catalog.found(catalog.sub_elements),
    )
    totals = compute_totals(
        rollups,
        project.contingency_percentage,
        project.floor_area_m2,
        project_id=project.id,
    )

    logger.debug(
        "Project %s estimate: %d lines, %d skipped, grand total %s",
        project_id, len(resolved), len(skipped), totals.grand_total,
    )
    return EstimateResult(totals=totals, skipped=tuple(skipped))


def calculate_project_actuals(
    project_id: int,
    store: Any,
    database_type: Optional[str] = None,
) -> ActualsComparison:
    """Compute estimate totals, actual totals and per-line variance."""
    project = _load_project(store, project_id)
    catalog = CatalogSnapshot(store, database_type or project.database_type)

    resolved, skipped = resolve_project_lines(project_id, store, catalog)
    estimate = compute_totals(
        aggregate(resolved, catalog.found(catalog.categories), catalog.found(catalog.sub_elements)),
        project.contingency_percentage,
        project.floor_area_m2,
        project_id=project.id,
    )

    actuals = store.list_actuals(project_id)
    # Warm the cache for actuals booked against items with no estimate line
    for record in actuals:
        item = catalog.get_cost_item(record.cost_item_id)
        if item is not None:
            sub_element = catalog.get_sub_element(item.sub_element_id)
            catalog.get_unit(item.unit_id)
            if sub_element is not None:
                catalog.get_category(sub_element.category_id)

    comparison = compare_project_actuals(
        resolved,
        estimate,
        actuals,
        cost_items=catalog.found(catalog.cost_items),
        categories=catalog.found(catalog.categories),
        sub_elements=catalog.found(catalog.sub_elements),
        contingency_percentage=project.contingency_percentage,
        floor_area_m2=project.floor_area_m2,
        project_id=project.id,
        units=catalog.found(catalog.units),
    )
    if skipped:
        comparison = replace(comparison, skipped=tuple(skipped) + comparison.skipped)
    return comparison
