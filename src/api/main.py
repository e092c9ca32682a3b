"""
Project Estimator - FastAPI Backend API

Endpoints for project estimate line items, estimate summaries, actual
cost records, variance reports and report exports. All cost figures are
computed by the ``costing`` engine on every read.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from costing import (
    CatalogReferenceError,
    EstimateResult,
    EstimateValidationError,
    ProjectNotFoundError,
    VarianceStatus,
    build_report_data,
    calculate_project_actuals,
    calculate_project_total,
    format_money,
    quantize_money,
    report_to_csv,
    report_to_dict,
)

from api.config import API_VERSION, CORS_ORIGINS, LOG_LEVEL, SUPABASE_SERVICE_KEY
from api.pdf_generator import EstimateReportGenerator

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("estimator")

# Initialize FastAPI app
app = FastAPI(
    title="Project Estimator API",
    description="Project cost estimates, rollups and estimate vs. actual variance",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

pdf_generator = EstimateReportGenerator()

_store = None


def get_store():
    """Supabase store when a service key is configured, local JSON store otherwise."""
    global _store
    if _store is None:
        if SUPABASE_SERVICE_KEY:
            from api.supabase_store import SupabaseEstimateStore
            _store = SupabaseEstimateStore()
        else:
            from api.local_store import LocalEstimateStore
            _store = LocalEstimateStore()
        logger.info("Using %s", type(_store).__name__)
    return _store


# ============================================================================
# Error handling
# ============================================================================

@app.exception_handler(ProjectNotFoundError)
async def project_not_found_handler(request: Request, exc: ProjectNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(EstimateValidationError)
async def validation_error_handler(request: Request, exc: EstimateValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(CatalogReferenceError)
async def catalog_reference_handler(request: Request, exc: CatalogReferenceError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ============================================================================
# Pydantic Models
# ============================================================================

# Money goes over the wire as a string with exactly two fraction digits
Money = Annotated[Decimal, PlainSerializer(format_money, return_type=str, when_used="json")]


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str


class EstimateLineCreate(BaseModel):
    cost_item_id: int = Field(gt=0)
    quantity: Decimal = Field(gt=0)
    unit_cost_override: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=500)


class EstimateLineUpdate(BaseModel):
    quantity: Optional[Decimal] = Field(default=None, gt=0)
    unit_cost_override: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=500)


class EstimateLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    cost_item_id: int
    quantity: Decimal
    unit_cost_override: Optional[Money] = None
    notes: str = ""
    line_total: Optional[Money] = None


class ResolvedLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    estimate_line_item_id: Optional[int]
    cost_item_id: int
    sub_element_id: int
    description: str
    unit_code: str
    quantity: Decimal
    material_total: Money
    management_total: Money
    contractor_total: Money
    line_total: Money


class SubElementRollupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sub_element_id: int
    sub_element_name: str
    line_count: int
    sub_element_total: Money


class CategoryRollupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category_id: int
    category_name: str
    line_items: List[ResolvedLineResponse]
    sub_elements: List[SubElementRollupResponse]
    category_total: Money


class ProjectEstimateTotalsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: Optional[int] = None
    floor_area_m2: Optional[Decimal] = None
    subtotal: Money
    contingency_percentage: Decimal
    contingency_amount: Money
    grand_total: Money
    cost_per_floor_area: Optional[Money] = None
    contractor_cost_total: Money
    volunteer_cost_total: Money
    categories: List[CategoryRollupResponse]


class SkippedLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    estimate_line_item_id: Optional[int]
    cost_item_id: int
    reason: str
    actual_cost_record_id: Optional[int] = None


class EstimatesListResponse(BaseModel):
    project_id: int
    estimate_count: int
    estimates: List[EstimateLineResponse]
    totals: Optional[ProjectEstimateTotalsResponse] = None


class EstimateSummaryResponse(BaseModel):
    project_id: int
    project_name: str
    estimate: ProjectEstimateTotalsResponse
    skipped_lines: List[SkippedLineResponse]


class ActualCreate(BaseModel):
    cost_item_id: int = Field(gt=0)
    estimate_line_item_id: Optional[int] = Field(default=None, gt=0)
    actual_quantity: Decimal = Field(gt=0)
    actual_cost: Decimal = Field(ge=0)
    variance_reason: Optional[str] = Field(default=None, max_length=500)
    completed_date: date


class ActualUpdate(BaseModel):
    actual_quantity: Optional[Decimal] = Field(default=None, gt=0)
    actual_cost: Optional[Decimal] = Field(default=None, ge=0)
    variance_reason: Optional[str] = Field(default=None, max_length=500)
    completed_date: Optional[date] = None


class ActualResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    cost_item_id: int
    estimate_line_item_id: Optional[int] = None
    actual_quantity: Decimal
    actual_cost: Money
    variance_reason: str = ""
    completed_date: Optional[str] = None


class VarianceLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    estimate_line_item_id: Optional[int]
    description: str
    category: str
    estimated: Money
    actual: Optional[Money] = None
    variance: Optional[Money] = None
    variance_percent: Optional[Decimal] = None
    status: Optional[VarianceStatus] = None
    variance_reason: str = ""


class VarianceReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: int
    lines: List[VarianceLineResponse]
    estimate: ProjectEstimateTotalsResponse
    actual: ProjectEstimateTotalsResponse
    unmatched_actuals: List[ActualResponse]
    skipped: List[SkippedLineResponse]
    completion_date: Optional[str] = None
    variance: Money
    variance_percent: Optional[Decimal] = None
    status: VarianceStatus


# ============================================================================
# Helpers
# ============================================================================

def _require_project(store, project_id: int):
    project = store.get_project(project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)
    return project


def _require_line_item(store, project_id: int, line_id: int):
    line = store.get_line_item(line_id)
    if line is None or line.project_id != project_id:
        raise HTTPException(status_code=404, detail="Estimate not found")
    return line


def _require_actual(store, project_id: int, actual_id: int):
    actual = store.get_actual(actual_id)
    if actual is None or actual.project_id != project_id:
        raise HTTPException(status_code=404, detail="Actual cost record not found")
    return actual


def _line_totals(result) -> dict:
    """Line total per estimate line id, taken from a fresh computation."""
    return {
        line.estimate_line_item_id: line.line_total
        for category in result.totals.categories
        for line in category.line_items
    }


def _line_response(line, line_total: Optional[Decimal] = None) -> EstimateLineResponse:
    response = EstimateLineResponse.model_validate(line)
    response.line_total = line_total
    return response


def _saved_line_response(project_id: int, store, line) -> EstimateLineResponse:
    """Response for a line that has already been written; totals are best effort."""
    try:
        result = calculate_project_total(project_id, store)
    except EstimateValidationError as e:
        logger.warning("Could not calculate totals for project %s: %s", project_id, e)
        return _line_response(line)
    return _line_response(line, _line_totals(result).get(line.id))


def _safe_filename(name: str, suffix: str) -> str:
    safe_name = "".join(c for c in name if c.isalnum() or c in (' ', '-', '_')).rstrip()
    return f"{safe_name or 'project'}_report.{suffix}"


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now().isoformat(),
        version=API_VERSION
    )


@app.get("/api/v1/projects/{project_id}/estimates", response_model=EstimatesListResponse)
def list_estimates(
    project_id: int,
    database_type: Optional[str] = Query(None),
    store=Depends(get_store),
):
    """
    Get all estimate lines of a project with the computed totals.

    Totals are null (and a warning is logged) when they cannot be computed.
    """
    _require_project(store, project_id)
    lines = store.list_line_items(project_id)

    totals = None
    line_totals = {}
    try:
        result = calculate_project_total(project_id, store, database_type)
        totals = ProjectEstimateTotalsResponse.model_validate(result.totals)
        line_totals = _line_totals(result)
    except EstimateValidationError as e:
        logger.warning("Could not calculate totals for project %s: %s", project_id, e)

    return EstimatesListResponse(
        project_id=project_id,
        estimate_count=len(lines),
        estimates=[_line_response(line, line_totals.get(line.id)) for line in lines],
        totals=totals,
    )


@app.get("/api/v1/projects/{project_id}/estimates/{line_id}", response_model=EstimateLineResponse)
def get_estimate(project_id: int, line_id: int, store=Depends(get_store)):
    """Get one estimate line."""
    _require_project(store, project_id)
    return _line_response(_require_line_item(store, project_id, line_id))


@app.post("/api/v1/projects/{project_id}/estimates", response_model=EstimateLineResponse, status_code=201)
def create_estimate(project_id: int, request: EstimateLineCreate, store=Depends(get_store)):
    """Add a cost item to a project estimate."""
    project = _require_project(store, project_id)

    if store.get_cost_item(request.cost_item_id, database_type=project.database_type) is None:
        raise HTTPException(status_code=404, detail="Cost item not found")

    line = store.add_line_item(
        project_id=project_id,
        cost_item_id=request.cost_item_id,
        quantity=request.quantity,
        unit_cost_override=request.unit_cost_override,
        notes=request.notes or "",
    )
    logger.info("Estimate line %s added to project %s: cost item %s x%s",
                line.id, project_id, line.cost_item_id, line.quantity)

    return _saved_line_response(project_id, store, line)


@app.put("/api/v1/projects/{project_id}/estimates/{line_id}", response_model=EstimateLineResponse)
def update_estimate(
    project_id: int,
    line_id: int,
    request: EstimateLineUpdate,
    store=Depends(get_store),
):
    """Update quantity, unit cost override or notes of an estimate line."""
    _require_project(store, project_id)
    _require_line_item(store, project_id, line_id)

    changes = {}
    if request.quantity is not None:
        changes["quantity"] = request.quantity
    # An explicit null clears the override
    if "unit_cost_override" in request.model_fields_set:
        changes["unit_cost_override"] = request.unit_cost_override
    if request.notes is not None:
        changes["notes"] = request.notes

    line = store.update_line_item(line_id, **changes)
    logger.info("Estimate line %s updated in project %s", line_id, project_id)

    return _saved_line_response(project_id, store, line)


@app.delete("/api/v1/projects/{project_id}/estimates/{line_id}")
def delete_estimate(project_id: int, line_id: int, store=Depends(get_store)):
    """Delete an estimate line."""
    _require_project(store, project_id)
    _require_line_item(store, project_id, line_id)

    if not store.delete_line_item(line_id):
        raise HTTPException(status_code=500, detail="Failed to delete estimate")

    logger.info("Estimate line %s deleted from project %s", line_id, project_id)
    return {"success": True, "message": "Estimate deleted successfully"}


@app.get("/api/v1/projects/{project_id}/estimate-summary", response_model=EstimateSummaryResponse)
def estimate_summary(
    project_id: int,
    database_type: Optional[str] = Query(None),
    store=Depends(get_store),
):
    """Complete estimate calculation with the category breakdown and skipped lines."""
    project = _require_project(store, project_id)
    result = calculate_project_total(project_id, store, database_type)

    return EstimateSummaryResponse(
        project_id=project.id,
        project_name=project.name,
        estimate=ProjectEstimateTotalsResponse.model_validate(result.totals),
        skipped_lines=[SkippedLineResponse.model_validate(s) for s in result.skipped],
    )


# ============================================================================
# Actual cost records
# ============================================================================

@app.get("/api/v1/projects/{project_id}/actuals", response_model=List[ActualResponse])
def list_actuals(project_id: int, store=Depends(get_store)):
    _require_project(store, project_id)
    return [ActualResponse.model_validate(a) for a in store.list_actuals(project_id)]


@app.post("/api/v1/projects/{project_id}/actuals", response_model=ActualResponse, status_code=201)
def create_actual(project_id: int, request: ActualCreate, store=Depends(get_store)):
    """Record the actual cost of completed work."""
    project = _require_project(store, project_id)

    if store.get_cost_item(request.cost_item_id, database_type=project.database_type) is None:
        raise HTTPException(status_code=404, detail="Cost item not found")
    if request.estimate_line_item_id is not None:
        _require_line_item(store, project_id, request.estimate_line_item_id)

    actual = store.add_actual(
        project_id,
        request.cost_item_id,
        estimate_line_item_id=request.estimate_line_item_id,
        actual_quantity=request.actual_quantity,
        actual_cost=request.actual_cost,
        variance_reason=request.variance_reason or "",
        completed_date=request.completed_date.isoformat(),
    )
    logger.info("Actual cost %s recorded for project %s", actual.id, project_id)
    return ActualResponse.model_validate(actual)


@app.put("/api/v1/projects/{project_id}/actuals/{actual_id}", response_model=ActualResponse)
def update_actual(
    project_id: int,
    actual_id: int,
    request: ActualUpdate,
    store=Depends(get_store),
):
    _require_project(store, project_id)
    _require_actual(store, project_id, actual_id)

    changes = {}
    if request.actual_quantity is not None:
        changes["actual_quantity"] = request.actual_quantity
    if request.actual_cost is not None:
        changes["actual_cost"] = request.actual_cost
    if request.variance_reason is not None:
        changes["variance_reason"] = request.variance_reason
    if request.completed_date is not None:
        changes["completed_date"] = request.completed_date.isoformat()

    actual = store.update_actual(actual_id, **changes)
    logger.info("Actual cost %s updated in project %s", actual_id, project_id)
    return ActualResponse.model_validate(actual)


@app.delete("/api/v1/projects/{project_id}/actuals/{actual_id}")
def delete_actual(project_id: int, actual_id: int, store=Depends(get_store)):
    _require_project(store, project_id)
    _require_actual(store, project_id, actual_id)

    if not store.delete_actual(actual_id):
        raise HTTPException(status_code=500, detail="Failed to delete actual cost record")

    logger.info("Actual cost %s deleted from project %s", actual_id, project_id)
    return {"success": True, "message": "Actual cost record deleted successfully"}


@app.get("/api/v1/projects/{project_id}/variance", response_model=VarianceReportResponse)
def variance_report(
    project_id: int,
    database_type: Optional[str] = Query(None),
    store=Depends(get_store),
):
    """
    Estimated vs. actual cost per line and for the whole project.

    Lines without a recorded actual report null actual and variance.
    """
    comparison = calculate_project_actuals(project_id, store, database_type)

    variance = comparison.actual.grand_total - comparison.estimate.grand_total
    variance_percent = None
    if comparison.estimate.grand_total != 0:
        variance_percent = quantize_money(variance / comparison.estimate.grand_total * 100)
    if variance > 0:
        status = VarianceStatus.OVER
    elif variance < 0:
        status = VarianceStatus.UNDER
    else:
        status = VarianceStatus.ON_TARGET

    return VarianceReportResponse(
        project_id=comparison.project_id,
        lines=[VarianceLineResponse.model_validate(v) for v in comparison.lines],
        estimate=ProjectEstimateTotalsResponse.model_validate(comparison.estimate),
        actual=ProjectEstimateTotalsResponse.model_validate(comparison.actual),
        unmatched_actuals=[ActualResponse.model_validate(a) for a in comparison.unmatched_actuals],
        skipped=[SkippedLineResponse.model_validate(s) for s in comparison.skipped],
        completion_date=comparison.completion_date,
        variance=variance,
        variance_percent=variance_percent,
        status=status,
    )


# ============================================================================
# Report exports
# ============================================================================

def _build_report(project_id: int, store, database_type: Optional[str], notes: Optional[str]):
    project = _require_project(store, project_id)
    comparison = calculate_project_actuals(project_id, store, database_type)
    # One read feeds the whole export
    estimate = EstimateResult(
        totals=comparison.estimate,
        skipped=tuple(s for s in comparison.skipped if s.actual_cost_record_id is None),
    )
    return project, estimate, build_report_data(project, estimate, comparison, notes=notes)


@app.get("/api/v1/projects/{project_id}/report.json")
def report_json(
    project_id: int,
    database_type: Optional[str] = Query(None),
    notes: Optional[str] = Query(None, max_length=2000),
    store=Depends(get_store),
):
    _, _, report = _build_report(project_id, store, database_type, notes)
    return JSONResponse(content=report_to_dict(report))


@app.get("/api/v1/projects/{project_id}/report.csv")
def report_csv(
    project_id: int,
    database_type: Optional[str] = Query(None),
    notes: Optional[str] = Query(None, max_length=2000),
    store=Depends(get_store),
):
    project, _, report = _build_report(project_id, store, database_type, notes)
    return Response(
        content=report_to_csv(report),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{_safe_filename(project.name, "csv")}"'
        },
    )


@app.get("/api/v1/projects/{project_id}/report.pdf")
def report_pdf(
    project_id: int,
    database_type: Optional[str] = Query(None),
    notes: Optional[str] = Query(None, max_length=2000),
    store=Depends(get_store),
):
    """
    Generate a PDF report of the estimate (and actuals when recorded).

    Returns: PDF file as a downloadable stream
    """
    project, estimate, report = _build_report(project_id, store, database_type, notes)
    pdf_buffer = pdf_generator.generate_report(report, estimate.totals)

    return StreamingResponse(
        pdf_buffer,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{_safe_filename(project.name, "pdf")}"'
        }
    )


# ============================================================================
# Run server
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
