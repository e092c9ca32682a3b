"""
Report builder: flattens estimate and actuals results for export.

The CSV layout is sectioned (header, cost summary, breakdown, line
items, notes) rather than tabular, so it is written row by row.
"""

import csv
import io
import json
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .models import ActualsComparison, EstimateResult, Project, ProjectEstimateTotals, ReportData
from .money import format_money


def _cost_summary(totals: ProjectEstimateTotals) -> Dict[str, Optional[Decimal]]:
    return {
        "subtotal": totals.subtotal,
        "contingency": totals.contingency_amount,
        "grand_total": totals.grand_total,
        "cost_per_floor_area": totals.cost_per_floor_area,
    }


def build_report_data(
    project: Project,
    estimate: EstimateResult,
    comparison: Optional[ActualsComparison] = None,
    notes: Optional[str] = None,
) -> ReportData:
    """
    Build the flat report for a project.

    Line items come in category order. When a comparison with recorded
    actuals is given, each line carries its actual cost and variance.
    """
    variance_by_line = {}
    actual_costs = None
    completion_date = None
    if comparison is not None and comparison.has_actuals:
        variance_by_line = {v.estimate_line_item_id: v for v in comparison.lines}
        actual_costs = _cost_summary(comparison.actual)
        completion_date = comparison.completion_date

    line_items: List[Dict[str, Any]] = []
    for category in estimate.totals.categories:
        for line in category.line_items:
            variance = variance_by_line.get(line.estimate_line_item_id)
            line_items.append({
                "estimate_line_item_id": line.estimate_line_item_id,
                "description": line.description,
                "category": category.category_name,
                "quantity": str(line.quantity),
                "unit": line.unit_code,
                "estimated": line.line_total,
                "actual": variance.actual if variance else None,
                "variance": variance.variance if variance else None,
                "variance_percent": variance.variance_percent if variance else None,
                "status": variance.status.value if variance and variance.status else None,
            })

    return ReportData(
        project_id=project.id,
        project_name=project.name,
        estimated_costs=_cost_summary(estimate.totals),
        line_items=line_items,
        actual_costs=actual_costs,
        completion_date=completion_date,
        notes=notes,
    )


def _money(value: Optional[Decimal]) -> str:
    return format_money(value) if value is not None else ""


def report_to_csv(report: ReportData) -> str:
    """Render a report as CSV with every cell quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")

    writer.writerow(["Project Cost Report"])
    writer.writerow([""])
    writer.writerow(["Project Name", report.project_name])
    writer.writerow(["Project ID", str(report.project_id)])
    if report.completion_date:
        writer.writerow(["Completion Date", report.completion_date])

    estimated = report.estimated_costs
    writer.writerow([""])
    writer.writerow(["Cost Summary"])
    writer.writerow(["", "Estimated", _money(estimated["grand_total"])])
    if report.actual_costs:
        actual = report.actual_costs
        writer.writerow(["", "Actual", _money(actual["grand_total"])])
        writer.writerow(["", "Variance", _money(actual["grand_total"] - estimated["grand_total"])])

    writer.writerow([""])
    writer.writerow(["Cost Breakdown"])
    writer.writerow(["Subtotal", _money(estimated["subtotal"])])
    writer.writerow(["Contingency", _money(estimated["contingency"])])
    writer.writerow(["Grand Total", _money(estimated["grand_total"])])
    if estimated.get("cost_per_floor_area") is not None:
        writer.writerow(["Cost per m2", _money(estimated["cost_per_floor_area"])])

    writer.writerow([""])
    writer.writerow(["Line Items"])
    writer.writerow(["Description", "Category", "Estimated", "Actual", "Variance"])
    for item in report.line_items:
        writer.writerow([
            item["description"],
            item["category"],
            _money(item["estimated"]),
            _money(item["actual"]),
            _money(item["variance"]),
        ])

    if report.notes:
        writer.writerow([""])
        writer.writerow(["Notes", report.notes])

    return buffer.getvalue()


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return format_money(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def report_to_dict(report: ReportData) -> Dict[str, Any]:
    return {
        "project_id": report.project_id,
        "project_name": report.project_name,
        "estimated_costs": _jsonable(report.estimated_costs),
        "actual_costs": _jsonable(report.actual_costs),
        "line_items": _jsonable(report.line_items),
        "completion_date": report.completion_date,
        "notes": report.notes,
    }


def report_to_json(report: ReportData) -> str:
    return json.dumps(report_to_dict(report), indent=2)
