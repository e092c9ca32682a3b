from .errors import CostingError, EstimateValidationError, CatalogReferenceError, ProjectNotFoundError
from .models import CostCategory, CostSubElement, CostItem, Unit, UnitType, Project, EstimateLineItem, ActualCostRecord, ResolvedLine, CategoryRollup, SubElementRollup, ProjectEstimateTotals, SkippedLine, EstimateResult, VarianceRecord, VarianceStatus, ActualsComparison, ReportData
from .money import to_decimal, quantize_money, format_money
from .resolver import resolve_line
from .aggregator import aggregate
from .totals import compute_totals
from .actuals import compare_actuals, match_actuals, resolve_actual, compare_project_actuals
from .engine import CatalogSnapshot, calculate_project_total, calculate_project_actuals
from .report import build_report_data, report_to_csv, report_to_dict, report_to_json
