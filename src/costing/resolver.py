"""
Line item resolver: prices one estimate line against its catalog entry.
"""

from typing import Optional

from .errors import CatalogReferenceError, EstimateValidationError
from .models import CostItem, CostSubElement, EstimateLineItem, ResolvedLine, Unit
from .money import ZERO


def resolve_line(
    line: EstimateLineItem,
    item: Optional[CostItem],
    sub_element: Optional[CostSubElement] = None,
    unit: Optional[Unit] = None,
) -> ResolvedLine:
    """
    Compute the monetary line for an estimate line item.

    Args:
        line: The stored estimate line
        item: Catalog entry referenced by ``line.cost_item_id`` (None if deleted)
        sub_element: Sub-element of the cost item, supplies the category
        unit: Unit of measure, supplies the display code

    Returns:
        ResolvedLine with unrounded component totals

    Raises:
        CatalogReferenceError: the cost item no longer exists
        EstimateValidationError: quantity <= 0 or a negative override
    """
    if item is None:
        raise CatalogReferenceError(
            f"Cost item {line.cost_item_id} not found for estimate line {line.id}",
            cost_item_id=line.cost_item_id,
            estimate_line_item_id=line.id,
        )
    if line.quantity is None or line.quantity <= 0:
        raise EstimateValidationError(
            f"Estimate line {line.id}: quantity must be positive, got {line.quantity}"
        )
    if line.unit_cost_override is not None and line.unit_cost_override < 0:
        raise EstimateValidationError(
            f"Estimate line {line.id}: unit cost override cannot be negative"
        )

    # An override of 0 is a real price, only None falls back to the catalog
    unit_cost = line.unit_cost_override if line.unit_cost_override is not None else item.material_cost

    material_total = unit_cost * line.quantity * item.waste_factor
    management_total = item.management_cost * line.quantity
    contractor_total = item.contractor_cost * line.quantity if item.is_contractor_required else ZERO

    return ResolvedLine(
        estimate_line_item_id=line.id,
        cost_item_id=item.id,
        sub_element_id=item.sub_element_id,
        category_id=sub_element.category_id if sub_element else None,
        description=item.description or item.code,
        unit_code=unit.code if unit else "",
        quantity=line.quantity,
        material_total=material_total,
        management_total=management_total,
        contractor_total=contractor_total,
        line_total=material_total + management_total + contractor_total,
    )
