# tests/test_actuals.py
from decimal import Decimal

import pytest

from costing import (
    ActualCostRecord,
    CostItem,
    VarianceStatus,
    aggregate,
    compare_actuals,
    compare_project_actuals,
    compute_totals,
    match_actuals,
    resolve_line,
)


def actual(record_id, cost_item_id, cost, quantity="1", line_id=None, completed=None, reason=""):
    return ActualCostRecord(
        id=record_id,
        project_id=1,
        cost_item_id=cost_item_id,
        actual_quantity=Decimal(quantity),
        actual_cost=Decimal(cost),
        estimate_line_item_id=line_id,
        variance_reason=reason,
        completed_date=completed,
    )


@pytest.fixture
def skirting_item():
    return CostItem(id=200, sub_element_id=20, unit_id=2, material_cost=Decimal("12.50"),
                    description="Skirting board")


@pytest.fixture
def slab_line(slab_item, sub_elements, make_line):
    return resolve_line(make_line(1, 100, 3), slab_item, sub_elements[10])


def test_over_budget(slab_line):
    record = compare_actuals(slab_line, actual(1, 100, "450", reason="Price rise"), "Substructure")

    assert record.estimated == Decimal("405.00")
    assert record.actual == Decimal("450")
    assert record.variance == Decimal("45.00")
    assert record.variance_percent == Decimal("11.11")
    assert record.status is VarianceStatus.OVER
    assert record.category == "Substructure"
    assert record.variance_reason == "Price rise"


def test_under_budget(slab_line):
    record = compare_actuals(slab_line, actual(1, 100, "364.50"))

    assert record.variance == Decimal("-40.50")
    assert record.variance_percent == Decimal("-10.00")
    assert record.status is VarianceStatus.UNDER


def test_on_target(slab_line):
    record = compare_actuals(slab_line, actual(1, 100, "405"))

    assert record.variance == 0
    assert record.status is VarianceStatus.ON_TARGET
    assert record.status.value == "on-target"


def test_no_actual_is_not_zero_variance(slab_line):
    record = compare_actuals(slab_line, None)

    assert record.estimated == Decimal("405.00")
    assert record.actual is None
    assert record.variance is None
    assert record.variance_percent is None
    assert record.status is None


def test_zero_estimate_has_no_percent(sub_elements, make_line):
    free = CostItem(id=5, sub_element_id=10, unit_id=1, material_cost=Decimal("0"))
    line = resolve_line(make_line(1, 5, 2), free, sub_elements[10])

    record = compare_actuals(line, actual(1, 5, "20"))

    assert record.variance == Decimal("20")
    assert record.variance_percent is None
    assert record.status is VarianceStatus.OVER


def test_match_actuals(slab_item, skirting_item, sub_elements, make_line):
    lines = [
        resolve_line(make_line(1, 100, 1), slab_item, sub_elements[10]),
        resolve_line(make_line(2, 100, 1), slab_item, sub_elements[10]),
        resolve_line(make_line(3, 200, 1), skirting_item, sub_elements[20]),
    ]
    records = [
        actual(11, 100, "10", line_id=2),
        actual(12, 100, "5", completed="2026-03-01", reason="Extra pour"),
        actual(13, 100, "7", quantity="2", completed="2026-04-01"),
        actual(14, 999, "1"),
        actual(15, 200, "3", line_id=42),
    ]

    matched, unmatched = match_actuals(lines, records)

    assert matched[2].actual_cost == Decimal("10")
    assert matched[1].actual_cost == Decimal("12")
    assert matched[1].actual_quantity == Decimal("3")
    assert matched[1].completed_date == "2026-04-01"
    assert matched[1].variance_reason == "Extra pour"
    assert matched[3].id == 15
    assert [r.id for r in unmatched] == [14]


def test_project_actual_totals(slab_item, skirting_item, slab_line, categories, sub_elements):
    estimate = compute_totals(aggregate([slab_line], categories, sub_elements), 10, 50)
    records = [
        actual(1, 100, "500", quantity="3", completed="2026-05-02"),
        actual(2, 200, "20", quantity="2", completed="2026-05-10"),
        actual(3, 999, "99"),
    ]

    comparison = compare_project_actuals(
        [slab_line],
        estimate,
        records,
        cost_items={100: slab_item, 200: skirting_item},
        categories=categories,
        sub_elements=sub_elements,
        contingency_percentage=10,
        floor_area_m2=50,
        project_id=1,
    )

    assert comparison.estimate.grand_total == Decimal("445.50")
    assert comparison.actual.subtotal == Decimal("520.00")
    assert comparison.actual.contingency_amount == Decimal("52.00")
    assert comparison.actual.grand_total == Decimal("572.00")
    assert comparison.actual.cost_per_floor_area == Decimal("11.44")
    assert comparison.actual.contractor_cost_total == Decimal("60.00")
    assert [c.category_name for c in comparison.actual.categories] == ["Substructure", "Finishes"]

    assert len(comparison.lines) == 1
    assert comparison.lines[0].variance == Decimal("95.00")
    assert [r.id for r in comparison.unmatched_actuals] == [2, 3]
    assert [s.actual_cost_record_id for s in comparison.skipped] == [3]
    assert comparison.completion_date == "2026-05-10"
    assert comparison.has_actuals


def test_project_without_actuals(slab_item, slab_line, categories, sub_elements):
    estimate = compute_totals(aggregate([slab_line], categories, sub_elements), 10)

    comparison = compare_project_actuals(
        [slab_line], estimate, [],
        cost_items={100: slab_item},
        categories=categories,
        sub_elements=sub_elements,
        contingency_percentage=10,
    )

    assert not comparison.has_actuals
    assert comparison.actual.grand_total == 0
    assert comparison.actual.categories == ()
    assert comparison.lines[0].actual is None
    assert comparison.completion_date is None
