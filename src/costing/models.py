"""
Data model for the cost aggregation engine.

Catalog and store records (CostItem, EstimateLineItem, ...) are plain
dataclasses built from database rows. Computed values (ResolvedLine,
CategoryRollup, ProjectEstimateTotals) are frozen: they are recomputed
on every request and never edited in place.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import EstimateValidationError
from .money import ZERO, to_decimal

DEFAULT_DATABASE_TYPE = "standard_uk"
DEFAULT_CONTINGENCY_PERCENTAGE = Decimal("10")


class UnitType(str, Enum):
    AREA = "area"
    LENGTH = "length"
    COUNT = "count"
    TIME = "time"


class VarianceStatus(str, Enum):
    """Outcome of an estimate vs. actual comparison."""
    OVER = "over"
    UNDER = "under"
    ON_TARGET = "on-target"


# ============================================================================
# Catalog
# ============================================================================

@dataclass
class CostCategory:
    """Top level of the rollup hierarchy."""
    id: int
    name: str
    sort_order: int = 0
    code: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CostCategory":
        return cls(
            id=int(row["id"]),
            name=row.get("name") or "",
            sort_order=int(row.get("sort_order") or 0),
            code=row.get("code") or "",
        )


@dataclass
class CostSubElement:
    id: int
    category_id: int
    name: str
    sort_order: int = 0
    code: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CostSubElement":
        return cls(
            id=int(row["id"]),
            category_id=int(row["category_id"]),
            name=row.get("name") or "",
            sort_order=int(row.get("sort_order") or 0),
            code=row.get("code") or "",
        )


@dataclass
class Unit:
    id: int
    code: str
    name: str = ""
    unit_type: UnitType = UnitType.COUNT

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Unit":
        return cls(
            id=int(row["id"]),
            code=row.get("code") or "",
            name=row.get("name") or "",
            unit_type=UnitType(row.get("unit_type") or UnitType.COUNT.value),
        )


@dataclass
class CostItem:
    """
    A catalog entry priced per unit.

    The waste factor applies to the material component only; management
    and contractor costs are charged on the net quantity.
    """
    id: int
    sub_element_id: int
    unit_id: int
    material_cost: Decimal
    management_cost: Decimal = ZERO
    contractor_cost: Decimal = ZERO
    is_contractor_required: bool = False
    waste_factor: Decimal = Decimal("1.0")
    code: str = ""
    description: str = ""
    volunteer_hours_estimated: Optional[Decimal] = None
    database_type: str = DEFAULT_DATABASE_TYPE

    def __post_init__(self):
        self.material_cost = to_decimal(self.material_cost, "material_cost")
        self.management_cost = to_decimal(self.management_cost, "management_cost")
        self.contractor_cost = to_decimal(self.contractor_cost, "contractor_cost")
        self.waste_factor = to_decimal(self.waste_factor, "waste_factor")
        if self.waste_factor is None or self.waste_factor < 1:
            raise EstimateValidationError(
                f"Cost item {self.id}: waste_factor must be >= 1.0, got {self.waste_factor}"
            )
        self.volunteer_hours_estimated = to_decimal(
            self.volunteer_hours_estimated, "volunteer_hours_estimated"
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CostItem":
        return cls(
            id=int(row["id"]),
            sub_element_id=int(row["sub_element_id"]),
            unit_id=int(row["unit_id"]),
            material_cost=row.get("material_cost") or 0,
            management_cost=row.get("management_cost") or 0,
            contractor_cost=row.get("contractor_cost") or 0,
            is_contractor_required=bool(row.get("is_contractor_required")),
            waste_factor=1 if row.get("waste_factor") is None else row["waste_factor"],
            code=row.get("code") or "",
            description=row.get("description") or "",
            volunteer_hours_estimated=row.get("volunteer_hours_estimated"),
            database_type=row.get("database_type") or DEFAULT_DATABASE_TYPE,
        )


# ============================================================================
# Project data
# ============================================================================

@dataclass
class Project:
    """Project metadata the engine needs."""
    id: int
    name: str = ""
    floor_area_m2: Optional[Decimal] = None
    contingency_percentage: Decimal = DEFAULT_CONTINGENCY_PERCENTAGE
    database_type: str = DEFAULT_DATABASE_TYPE

    def __post_init__(self):
        self.floor_area_m2 = to_decimal(self.floor_area_m2, "floor_area_m2")
        self.contingency_percentage = to_decimal(
            self.contingency_percentage, "contingency_percentage"
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Project":
        contingency = row.get("contingency_percentage")
        return cls(
            id=int(row["id"]),
            name=row.get("name") or "",
            floor_area_m2=row.get("floor_area_m2"),
            contingency_percentage=(
                DEFAULT_CONTINGENCY_PERCENTAGE if contingency is None else contingency
            ),
            database_type=row.get("database_type") or DEFAULT_DATABASE_TYPE,
        )


@dataclass
class EstimateLineItem:
    """A quantity of one catalog item attached to a project."""
    id: int
    project_id: int
    cost_item_id: int
    quantity: Decimal
    unit_cost_override: Optional[Decimal] = None
    notes: str = ""

    def __post_init__(self):
        self.quantity = to_decimal(self.quantity, "quantity")
        self.unit_cost_override = to_decimal(self.unit_cost_override, "unit_cost_override")

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "EstimateLineItem":
        return cls(
            id=int(row["id"]),
            project_id=int(row["project_id"]),
            cost_item_id=int(row["cost_item_id"]),
            quantity=row["quantity"],
            unit_cost_override=row.get("unit_cost_override"),
            notes=row.get("notes") or "",
        )


@dataclass
class ActualCostRecord:
    """Recorded cost of completed work."""
    id: int
    project_id: int
    cost_item_id: int
    actual_quantity: Decimal
    actual_cost: Decimal
    estimate_line_item_id: Optional[int] = None
    variance_reason: str = ""
    completed_date: Optional[str] = None

    def __post_init__(self):
        self.actual_quantity = to_decimal(self.actual_quantity, "actual_quantity")
        self.actual_cost = to_decimal(self.actual_cost, "actual_cost")

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ActualCostRecord":
        line_id = row.get("estimate_line_item_id")
        return cls(
            id=int(row["id"]),
            project_id=int(row["project_id"]),
            cost_item_id=int(row["cost_item_id"]),
            actual_quantity=row["actual_quantity"],
            actual_cost=row["actual_cost"],
            estimate_line_item_id=int(line_id) if line_id is not None else None,
            variance_reason=row.get("variance_reason") or "",
            completed_date=row.get("completed_date"),
        )


# ============================================================================
# Computed values
# ============================================================================

@dataclass(frozen=True)
class ResolvedLine:
    """One line item joined to its catalog entry and priced."""
    estimate_line_item_id: Optional[int]
    cost_item_id: int
    sub_element_id: int
    category_id: Optional[int]
    description: str
    unit_code: str
    quantity: Decimal
    material_total: Decimal
    management_total: Decimal
    contractor_total: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class SubElementRollup:
    sub_element_id: int
    sub_element_name: str
    line_count: int
    sub_element_total: Decimal


@dataclass(frozen=True)
class CategoryRollup:
    category_id: int
    category_name: str
    line_items: Tuple[ResolvedLine, ...]
    category_total: Decimal
    sub_elements: Tuple[SubElementRollup, ...] = ()


@dataclass(frozen=True)
class ProjectEstimateTotals:
    """Project level summary; money fields are rounded to 2 places."""
    subtotal: Decimal
    contingency_percentage: Decimal
    contingency_amount: Decimal
    grand_total: Decimal
    cost_per_floor_area: Optional[Decimal]
    contractor_cost_total: Decimal
    volunteer_cost_total: Decimal
    categories: Tuple[CategoryRollup, ...]
    project_id: Optional[int] = None
    floor_area_m2: Optional[Decimal] = None


@dataclass(frozen=True)
class SkippedLine:
    """A line excluded from totals because its catalog reference dangles."""
    estimate_line_item_id: Optional[int]
    cost_item_id: int
    reason: str
    actual_cost_record_id: Optional[int] = None


@dataclass(frozen=True)
class EstimateResult:
    totals: ProjectEstimateTotals
    skipped: Tuple[SkippedLine, ...] = ()


@dataclass(frozen=True)
class VarianceRecord:
    """
    Estimated vs. actual cost for one line.

    ``actual``, ``variance``, ``variance_percent`` and ``status`` are None
    when no actual cost has been recorded, so "no data" never reads as
    "zero variance".
    """
    estimate_line_item_id: Optional[int]
    description: str
    estimated: Decimal
    actual: Optional[Decimal] = None
    variance: Optional[Decimal] = None
    variance_percent: Optional[Decimal] = None
    status: Optional[VarianceStatus] = None
    category: str = ""
    variance_reason: str = ""


@dataclass(frozen=True)
class ActualsComparison:
    """Per-line variance plus estimated and actual project totals."""
    project_id: int
    lines: Tuple[VarianceRecord, ...]
    estimate: ProjectEstimateTotals
    actual: ProjectEstimateTotals
    unmatched_actuals: Tuple[ActualCostRecord, ...] = ()
    skipped: Tuple[SkippedLine, ...] = ()
    completion_date: Optional[str] = None

    @property
    def has_actuals(self) -> bool:
        return any(line.actual is not None for line in self.lines) or bool(self.unmatched_actuals)


@dataclass
class ReportData:
    """Flat report structure consumed by the CSV, JSON and PDF exporters."""
    project_id: int
    project_name: str
    estimated_costs: Dict[str, Optional[Decimal]]
    line_items: List[Dict[str, Any]] = field(default_factory=list)
    actual_costs: Optional[Dict[str, Optional[Decimal]]] = None
    completion_date: Optional[str] = None
    notes: Optional[str] = None
