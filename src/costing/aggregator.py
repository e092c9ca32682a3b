"""
Rollup aggregator: groups resolved lines into category rollups.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from .errors import CatalogReferenceError
from .models import CategoryRollup, CostCategory, CostSubElement, ResolvedLine, SubElementRollup
from .money import ZERO


def _sub_element_rollups(
    lines: List[ResolvedLine],
    sub_elements: Mapping[int, CostSubElement],
) -> tuple:
    totals: Dict[int, Decimal] = {}
    counts: Dict[int, int] = {}
    for line in lines:
        # dicts keep first-seen order
        totals[line.sub_element_id] = totals.get(line.sub_element_id, ZERO) + line.line_total
        counts[line.sub_element_id] = counts.get(line.sub_element_id, 0) + 1

    rollups = []
    for sub_element_id, total in totals.items():
        sub_element = sub_elements.get(sub_element_id)
        rollups.append(SubElementRollup(
            sub_element_id=sub_element_id,
            sub_element_name=sub_element.name if sub_element else "",
            line_count=counts[sub_element_id],
            sub_element_total=total,
        ))
    return tuple(rollups)


def aggregate(
    lines: Iterable[ResolvedLine],
    categories: Mapping[int, CostCategory],
    sub_elements: Optional[Mapping[int, CostSubElement]] = None,
) -> List[CategoryRollup]:
    """
    Group resolved lines by category and sum their totals.

    Categories are ordered by ``sort_order`` then id. Lines keep the
    order they were given in. Categories without lines are not emitted.
    """
    sub_elements = sub_elements or {}
    grouped: Dict[int, List[ResolvedLine]] = {}

    for line in lines:
        if line.category_id is None or line.category_id not in categories:
            raise CatalogReferenceError(
                f"Category {line.category_id} not found for estimate line {line.estimate_line_item_id}",
                cost_item_id=line.cost_item_id,
                estimate_line_item_id=line.estimate_line_item_id,
            )
        grouped.setdefault(line.category_id, []).append(line)

    ordered_ids = sorted(grouped, key=lambda cid: (categories[cid].sort_order, cid))

    rollups = []
    for category_id in ordered_ids:
        members = grouped[category_id]
        rollups.append(CategoryRollup(
            category_id=category_id,
            category_name=categories[category_id].name,
            line_items=tuple(members),
            category_total=sum((line.line_total for line in members), ZERO),
            sub_elements=_sub_element_rollups(members, sub_elements),
        ))
    return rollups
