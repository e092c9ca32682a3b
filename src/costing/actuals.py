"""
Actuals comparator: estimated vs. recorded cost, per line and per project.

Project level actual totals go through the same aggregator and totals
calculator as the estimate, so contingency and floor-area rules apply to
both sides identically.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .aggregator import aggregate
from .errors import CatalogReferenceError, EstimateValidationError
from .models import (
    ActualCostRecord,
    ActualsComparison,
    CostCategory,
    CostItem,
    CostSubElement,
    ProjectEstimateTotals,
    ResolvedLine,
    SkippedLine,
    Unit,
    VarianceRecord,
    VarianceStatus,
)
from .money import HUNDRED, ZERO, Number, quantize_money
from .totals import compute_totals

logger = logging.getLogger(__name__)


def compare_actuals(
    estimate: ResolvedLine,
    actual: Optional[ActualCostRecord],
    category: str = "",
) -> VarianceRecord:
    """
    Compare one resolved estimate line with its recorded actual cost.

    A missing actual yields a record whose actual/variance fields are None.
    """
    if actual is None:
        return VarianceRecord(
            estimate_line_item_id=estimate.estimate_line_item_id,
            description=estimate.description,
            estimated=estimate.line_total,
            category=category,
        )

    variance = actual.actual_cost - estimate.line_total
    variance_percent = None
    if estimate.line_total != 0:
        variance_percent = quantize_money(variance / estimate.line_total * HUNDRED)

    if variance > 0:
        status = VarianceStatus.OVER
    elif variance < 0:
        status = VarianceStatus.UNDER
    else:
        status = VarianceStatus.ON_TARGET

    return VarianceRecord(
        estimate_line_item_id=estimate.estimate_line_item_id,
        description=estimate.description,
        estimated=estimate.line_total,
        actual=actual.actual_cost,
        variance=variance,
        variance_percent=variance_percent,
        status=status,
        category=category,
        variance_reason=actual.variance_reason,
    )


def _combine(records: List[ActualCostRecord]) -> ActualCostRecord:
    """Fold several records for the same line into one."""
    if len(records) == 1:
        return records[0]
    first = records[0]
    dates = [r.completed_date for r in records if r.completed_date]
    reasons = [r.variance_reason for r in records if r.variance_reason]
    return ActualCostRecord(
        id=first.id,
        project_id=first.project_id,
        cost_item_id=first.cost_item_id,
        actual_quantity=sum((r.actual_quantity for r in records), ZERO),
        actual_cost=sum((r.actual_cost for r in records), ZERO),
        estimate_line_item_id=first.estimate_line_item_id,
        variance_reason="; ".join(reasons),
        completed_date=max(dates) if dates else None,
    )


def match_actuals(
    lines: Sequence[ResolvedLine],
    actuals: Sequence[ActualCostRecord],
) -> Tuple[Dict[int, ActualCostRecord], List[ActualCostRecord]]:
    """
    Attach actual records to estimate lines.

    A record naming its estimate line goes to that line. Otherwise it goes
    to the first line (store order) with the same cost item. Several
    records on one line are summed.

    Returns:
        (combined record per estimate line id, records that matched no line)
    """
    line_ids = {line.estimate_line_item_id for line in lines}
    first_line_for_item: Dict[int, int] = {}
    for line in lines:
        first_line_for_item.setdefault(line.cost_item_id, line.estimate_line_item_id)

    matched: Dict[int, List[ActualCostRecord]] = {}
    unmatched: List[ActualCostRecord] = []
    for record in actuals:
        if record.estimate_line_item_id is not None and record.estimate_line_item_id in line_ids:
            target = record.estimate_line_item_id
        else:
            target = first_line_for_item.get(record.cost_item_id)
        if target is None:
            unmatched.append(record)
        else:
            matched.setdefault(target, []).append(record)

    return {line_id: _combine(records) for line_id, records in matched.items()}, unmatched


def resolve_actual(
    record: ActualCostRecord,
    item: Optional[CostItem],
    sub_element: Optional[CostSubElement] = None,
    unit: Optional[Unit] = None,
    estimate_line_item_id: Optional[int] = None,
) -> ResolvedLine:
    """
    Turn an actual cost record into a resolved line.

    The line total is the recorded cost. Contractor and management parts
    are re-derived from catalog rates at the actual quantity, material is
    the remainder.
    """
    if item is None:
        raise CatalogReferenceError(
            f"Cost item {record.cost_item_id} not found for actual cost record {record.id}",
            cost_item_id=record.cost_item_id,
            estimate_line_item_id=estimate_line_item_id,
        )
    if record.actual_quantity is None or record.actual_quantity <= 0:
        raise EstimateValidationError(
            f"Actual cost record {record.id}: actual quantity must be positive"
        )
    if record.actual_cost is None or record.actual_cost < 0:
        raise EstimateValidationError(
            f"Actual cost record {record.id}: actual cost cannot be negative"
        )

    management_total = item.management_cost * record.actual_quantity
    contractor_total = (
        item.contractor_cost * record.actual_quantity if item.is_contractor_required else ZERO
    )
    return ResolvedLine(
        estimate_line_item_id=estimate_line_item_id,
        cost_item_id=item.id,
        sub_element_id=item.sub_element_id,
        category_id=sub_element.category_id if sub_element else None,
        description=item.description or item.code,
        unit_code=unit.code if unit else "",
        quantity=record.actual_quantity,
        material_total=record.actual_cost - management_total - contractor_total,
        management_total=management_total,
        contractor_total=contractor_total,
        line_total=record.actual_cost,
    )


def compare_project_actuals(
    lines: Sequence[ResolvedLine],
    estimate: ProjectEstimateTotals,
    actuals: Sequence[ActualCostRecord],
    cost_items: Mapping[int, Optional[CostItem]],
    categories: Mapping[int, CostCategory],
    sub_elements: Mapping[int, CostSubElement],
    contingency_percentage: Number,
    floor_area_m2: Optional[Number] = None,
    project_id: Optional[int] = None,
    units: Optional[Mapping[int, Unit]] = None,
) -> ActualsComparison:
    """
    Compare a project's estimate with its recorded actuals.

    Args:
        lines: Resolved estimate lines in store order
        estimate: Totals computed from ``lines``
        actuals: All actual cost records of the project
        cost_items / categories / sub_elements / units: Catalog lookups by id
        contingency_percentage, floor_area_m2: Same project parameters as the estimate

    Returns:
        ActualsComparison
    """
    units = units or {}
    combined, unmatched = match_actuals(lines, actuals)
    category_names = {cid: category.name for cid, category in categories.items()}

    variance_lines = []
    actual_lines: List[ResolvedLine] = []
    skipped: List[SkippedLine] = []

    for line in lines:
        record = combined.get(line.estimate_line_item_id)
        variance_lines.append(
            compare_actuals(line, record, category_names.get(line.category_id, ""))
        )
        if record is not None:
            item = cost_items.get(line.cost_item_id)
            sub_element = sub_elements.get(item.sub_element_id) if item else None
            unit = units.get(item.unit_id) if item else None
            actual_lines.append(
                resolve_actual(record, item, sub_element, unit, line.estimate_line_item_id)
            )

    # Work recorded against no estimate line still counts toward the actual total
    for record in unmatched:
        item = cost_items.get(record.cost_item_id)
        sub_element = sub_elements.get(item.sub_element_id) if item else None
        if item is None or sub_element is None or sub_element.category_id not in categories:
            logger.warning(
                "Skipping actual cost record %s: dangling cost item %s",
                record.id, record.cost_item_id,
            )
            skipped.append(SkippedLine(
                estimate_line_item_id=None,
                cost_item_id=record.cost_item_id,
                reason=f"Cost item {record.cost_item_id} not found in catalog",
                actual_cost_record_id=record.id,
            ))
            continue
        actual_lines.append(resolve_actual(record, item, sub_element, units.get(item.unit_id)))

    actual_totals = compute_totals(
        aggregate(actual_lines, categories, sub_elements),
        contingency_percentage,
        floor_area_m2,
        project_id=project_id,
    )

    dates = [r.completed_date for r in actuals if r.completed_date]
    return ActualsComparison(
        project_id=project_id,
        lines=tuple(variance_lines),
        estimate=estimate,
        actual=actual_totals,
        unmatched_actuals=tuple(unmatched),
        skipped=tuple(skipped),
        completion_date=max(dates) if dates else None,
    )
