# tests/test_totals.py
from decimal import Decimal

import pytest

from costing import CostItem, EstimateValidationError, aggregate, compute_totals, resolve_line


@pytest.fixture
def slab_rollups(slab_item, categories, sub_elements, make_line):
    line = resolve_line(make_line(1, 100, 3), slab_item, sub_elements[10])
    return aggregate([line], categories, sub_elements)


def test_single_line_project(slab_rollups):
    totals = compute_totals(slab_rollups, 10)

    assert totals.subtotal == Decimal("405.00")
    assert totals.contingency_amount == Decimal("40.50")
    assert totals.grand_total == Decimal("445.50")
    assert totals.contractor_cost_total == Decimal("60.00")
    assert totals.volunteer_cost_total == Decimal("30.00")


def test_money_fields_have_two_places(slab_rollups):
    totals = compute_totals(slab_rollups, 10, floor_area_m2=7)

    for value in (totals.subtotal, totals.contingency_amount, totals.grand_total,
                  totals.cost_per_floor_area):
        assert value.as_tuple().exponent == -2


def test_contingency_uses_bankers_rounding(categories, sub_elements, make_line):
    # 0.25 * 10% = 0.025 -> 0.02, 0.35 * 10% = 0.035 -> 0.04
    cheap = CostItem(id=1, sub_element_id=10, unit_id=1, material_cost=Decimal("0.25"))
    rollups = aggregate([resolve_line(make_line(1, 1, 1), cheap, sub_elements[10])], categories)
    assert compute_totals(rollups, 10).contingency_amount == Decimal("0.02")

    dearer = CostItem(id=1, sub_element_id=10, unit_id=1, material_cost=Decimal("0.35"))
    rollups = aggregate([resolve_line(make_line(1, 1, 1), dearer, sub_elements[10])], categories)
    assert compute_totals(rollups, 10).contingency_amount == Decimal("0.04")


def test_no_per_line_rounding_drift(categories, sub_elements, make_line):
    item = CostItem(id=1, sub_element_id=10, unit_id=1, material_cost=Decimal("0.005"))
    lines = [resolve_line(make_line(i, 1, 1), item, sub_elements[10]) for i in range(1, 4)]

    totals = compute_totals(aggregate(lines, categories), 0)

    # 3 x 0.005 = 0.015 -> 0.02; rounding each line first would give 0.00
    assert totals.subtotal == Decimal("0.02")


@pytest.mark.parametrize("floor_area", [None, 0, -5])
def test_cost_per_floor_area_needs_positive_area(slab_rollups, floor_area):
    assert compute_totals(slab_rollups, 10, floor_area).cost_per_floor_area is None


def test_cost_per_floor_area(slab_rollups):
    assert compute_totals(slab_rollups, 10, Decimal("50")).cost_per_floor_area == Decimal("8.91")


def test_zero_contingency(slab_rollups):
    totals = compute_totals(slab_rollups, 0)

    assert totals.contingency_amount == 0
    assert totals.grand_total == totals.subtotal


def test_negative_contingency_rejected(slab_rollups):
    with pytest.raises(EstimateValidationError):
        compute_totals(slab_rollups, -1)


def test_empty_project_is_zero(categories):
    totals = compute_totals(aggregate([], categories), 10, 100)

    assert totals.categories == ()
    assert totals.subtotal == 0
    assert totals.grand_total == 0
    assert totals.cost_per_floor_area == Decimal("0.00")


def test_subtotal_equals_sum_of_categories(slab_item, categories, sub_elements, make_line):
    skirting = CostItem(id=2, sub_element_id=20, unit_id=2, material_cost=Decimal("12.345"))
    lines = [
        resolve_line(make_line(1, 100, 3), slab_item, sub_elements[10]),
        resolve_line(make_line(2, 2, 7), skirting, sub_elements[20]),
    ]
    rollups = aggregate(lines, categories, sub_elements)
    totals = compute_totals(rollups, Decimal("12.5"))

    exact = sum(r.category_total for r in rollups)
    assert totals.subtotal == exact.quantize(Decimal("0.01"))
    assert sum(len(r.line_items) for r in rollups) == 2


def test_idempotent(slab_rollups):
    assert compute_totals(slab_rollups, 10, 50) == compute_totals(slab_rollups, 10, 50)


def test_grand_total_is_sum_of_published_figures(categories, sub_elements, make_line):
    item = CostItem(id=1, sub_element_id=10, unit_id=1, material_cost=Decimal("0.125"))
    rollups = aggregate([resolve_line(make_line(1, 1, 1), item, sub_elements[10])], categories)

    totals = compute_totals(rollups, 8)

    assert totals.subtotal == Decimal("0.12")
    assert totals.contingency_amount == Decimal("0.01")
    assert totals.grand_total == totals.subtotal + totals.contingency_amount
