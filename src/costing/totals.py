"""
Project totals calculator.

Line and category values stay unrounded all the way up. Rounding
(ROUND_HALF_EVEN, 2 places) happens on the project level figures only,
so many small lines never compound rounding drift. The subtotal is
rounded before contingency is applied, so grand_total is exactly
subtotal + contingency_amount.
"""

from typing import Optional, Sequence

from .errors import EstimateValidationError
from .models import CategoryRollup, ProjectEstimateTotals
from .money import HUNDRED, ZERO, Number, quantize_money, to_decimal


def compute_totals(
    rollups: Sequence[CategoryRollup],
    contingency_percentage: Number,
    floor_area_m2: Optional[Number] = None,
    project_id: Optional[int] = None,
) -> ProjectEstimateTotals:
    """
    Combine category rollups into project totals.

    Args:
        rollups: Output of ``aggregate``
        contingency_percentage: Contingency in percent (10 = 10%), must be >= 0
        floor_area_m2: Gross floor area; None, 0 or negative disables normalization
        project_id: Echoed into the result for consumers

    Returns:
        ProjectEstimateTotals
    """
    contingency_percentage = to_decimal(contingency_percentage, "contingency_percentage")
    if contingency_percentage is None or contingency_percentage < 0:
        raise EstimateValidationError(
            f"contingency_percentage must be >= 0, got {contingency_percentage}"
        )
    floor_area = to_decimal(floor_area_m2, "floor_area_m2")

    subtotal = quantize_money(sum((rollup.category_total for rollup in rollups), ZERO))
    contingency_amount = quantize_money(subtotal * contingency_percentage / HUNDRED)
    grand_total = subtotal + contingency_amount

    cost_per_floor_area = None
    if floor_area is not None and floor_area > 0:
        cost_per_floor_area = quantize_money(grand_total / floor_area)

    # Splits come from the line components, lineTotal cannot be decomposed
    contractor_total = ZERO
    volunteer_total = ZERO
    for rollup in rollups:
        for line in rollup.line_items:
            contractor_total += line.contractor_total
            volunteer_total += line.management_total

    return ProjectEstimateTotals(
        subtotal=subtotal,
        contingency_percentage=contingency_percentage,
        contingency_amount=contingency_amount,
        grand_total=grand_total,
        cost_per_floor_area=cost_per_floor_area,
        contractor_cost_total=quantize_money(contractor_total),
        volunteer_cost_total=quantize_money(volunteer_total),
        categories=tuple(rollups),
        project_id=project_id,
        floor_area_m2=floor_area,
    )
