"""Search, job status and results endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import Field, ValidationError

from src.core.schemas import Category, SearchCriteria, WireModel
from src.jobs.engine import JobEngine, generate_job_id

logger = logging.getLogger(__name__)

EXAMPLE_AREAS = "bushwick, soho, tribeca, williamsburg"


def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None),
    api_key: str | None = Query(default=None, alias="apiKey"),
) -> None:
    """Accept the key from the X-API-Key header or the apiKey query parameter."""
    expected = request.app.state.api_key
    provided = x_api_key or api_key
    if not expected or provided != expected:
        raise HTTPException(
            status_code=401,
            detail={
                "error": "Unauthorized",
                "message": "Valid API key required in X-API-Key header",
            },
        )


router = APIRouter(prefix="/api", dependencies=[Depends(require_api_key)], tags=["search"])


class SmartSearchRequest(WireModel):
    """Request body for smart and full searches (camelCase on the wire)."""

    neighborhood: str | None = None
    property_type: Category = "rental"
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: float | None = Field(default=None, ge=0)
    min_price: int | None = Field(default=None, ge=0)
    max_price: int | None = Field(default=None, ge=0)
    undervaluation_threshold: int | None = Field(default=None, ge=1, le=100)
    max_results: int = Field(default=1, ge=1)
    no_fee: bool = False
    doorman: bool = False
    elevator: bool = False
    laundry: bool = False
    private_outdoor_space: bool = False
    washer_dryer: bool = False
    dishwasher: bool = False
    property_types: list[str] = Field(default_factory=list)

    def to_criteria(self, max_results_cap: int, default_threshold: int) -> SearchCriteria:
        amenities = frozenset(
            name for name, wanted in (
                ("doorman", self.doorman),
                ("elevator", self.elevator),
                ("laundry", self.laundry),
                ("private_outdoor_space", self.private_outdoor_space),
                ("washer_dryer", self.washer_dryer),
                ("dishwasher", self.dishwasher),
            ) if wanted
        )
        return SearchCriteria(
            area=self.neighborhood or "",
            category=self.property_type,
            bedrooms=self.bedrooms,
            bathrooms=self.bathrooms,
            min_price=self.min_price,
            max_price=self.max_price,
            no_fee=self.no_fee,
            amenities=amenities,
            property_types=tuple(self.property_types),
            desired_count=min(self.max_results, max_results_cap),
            threshold=self.undervaluation_threshold or default_threshold,
        )


def _bad_request(message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Bad Request", "message": message, **extra},
    )


def _parse_request(payload: dict[str, Any] | None, cap: int, default_threshold: int) -> SearchCriteria | JSONResponse:
    """Validate a request body into criteria, or return the 400 response."""
    payload = payload or {}
    if not payload.get("neighborhood"):
        return _bad_request("neighborhood parameter is required", example=EXAMPLE_AREAS)
    try:
        body = SmartSearchRequest.model_validate(payload)
        return body.to_criteria(cap, default_threshold)
    except ValidationError as e:
        logger.info("Rejected search request: %s", e.errors(include_url=False))
        return _bad_request(
            "Invalid search parameters",
            details=e.errors(include_url=False, include_context=False),
        )


def _start(request: Request, criteria: SearchCriteria) -> str:
    engine: JobEngine = request.app.state.engine
    job_id = generate_job_id()
    engine.start(job_id, criteria)
    return job_id


@router.post("/search/smart")
async def smart_search(request: Request, payload: dict[str, Any] | None = Body(default=None)):
    tuning = request.app.state.settings.search
    parsed = _parse_request(payload, tuning.max_results_cap, tuning.default_threshold)
    if isinstance(parsed, JSONResponse):
        return parsed

    job_id = _start(request, parsed)
    return JSONResponse(
        status_code=202,
        content={
            "success": True,
            "data": {
                "jobId": job_id,
                "status": "started",
                "message": f"Smart search started for {payload['neighborhood']}",
                "parameters": parsed.model_dump(mode="json", by_alias=True),
                "checkStatusUrl": f"/api/jobs/{job_id}",
                "getResultsUrl": f"/api/results/{job_id}",
            },
        },
    )


@router.post("/trigger/full-search")
async def trigger_full_search(request: Request, payload: dict[str, Any] | None = Body(default=None)):
    tuning = request.app.state.settings.search
    parsed = _parse_request(payload, tuning.trigger_max_results_cap, tuning.default_threshold)
    if isinstance(parsed, JSONResponse):
        return parsed

    job_id = _start(request, parsed)
    return JSONResponse(
        status_code=202,
        content={
            "success": True,
            "data": {
                "jobId": job_id,
                "status": "started",
                "message": f"Full API search started for {payload['neighborhood']}",
                "parameters": parsed.model_dump(mode="json", by_alias=True),
                "checkStatusUrl": f"/api/jobs/{job_id}",
                "getResultsUrl": f"/api/results/{job_id}",
                "source": "railway_function_fallback",
            },
        },
    )


@router.get("/jobs/{job_id}")
async def job_status(request: Request, job_id: str) -> dict[str, Any]:
    job = request.app.state.engine.store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail={"error": "Not Found", "message": "Job ID not found"})
    return {"success": True, "data": job.status_view().model_dump(mode="json", by_alias=True)}


@router.get("/results/{job_id}")
async def job_results(request: Request, job_id: str) -> dict[str, Any]:
    result = request.app.state.engine.store.get_result(job_id)
    if result is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "Not Found", "message": "Results not found for this job ID"},
        )
    return {"success": True, "data": result.model_dump(mode="json", by_alias=True)}


@router.get("/cache/stats")
async def cache_stats() -> dict[str, Any]:
    return {
        "success": True,
        "data": {
            "total_requests": 0,
            "cache_only_requests": 0,
            "cache_hit_rate": 0,
            "avg_processing_time_ms": 0,
            "note": "Listing cache disabled",
        },
    }
