from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query

from site_feasibility.config import settings
from site_feasibility.engine.feasibility import calculate_feasibility
from site_feasibility.engine.geometry import GeodeticGeometry
from site_feasibility.engine.massing import generate_massing
from site_feasibility.engine.profiles import default_settings
from site_feasibility.engine.sensitivity import run_sensitivity
from site_feasibility.engine.site import site_metrics_from_geojson
from site_feasibility.models.schemas import (
    CalculationResult,
    DensityProfile,
    FeasibilityRequest,
    MassingRequest,
    SensitivityResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _run_feasibility(request: FeasibilityRequest) -> CalculationResult:
    try:
        density = default_settings(request.profile, **request.overrides)
        return calculate_feasibility(
            request.site, density,
            custom_fsr=request.custom_fsr,
            custom_hob=request.custom_hob,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/profiles")
async def list_profiles():
    """Default assumptions for every density profile."""
    return {p.value: default_settings(p).model_dump(mode="json") for p in DensityProfile}


@router.post("/feasibility", response_model=CalculationResult)
async def feasibility(request: FeasibilityRequest):
    """Residual land value for a site under one density profile."""
    return _run_feasibility(request)


@router.post("/sensitivity", response_model=SensitivityResponse)
async def sensitivity(request: FeasibilityRequest):
    """Feasibility plus the social / affordable housing impact sweep."""
    result = _run_feasibility(request)
    return SensitivityResponse(feasibility=result, sensitivity=run_sensitivity(result))


@router.post("/massing")
async def massing(
    request: MassingRequest,
    output: str = Query("result", pattern="^(result|geojson)$"),
):
    """Building footprints for a GeoJSON site (lon/lat).

    Without ``target_gfa`` the target is the GFA of a feasibility run on
    the site geometry with the requested profile, FSR and HOB.  A
    ``road_boundary`` line switches the width test to depth from the road.
    """
    backend = GeodeticGeometry()
    constraints = request.constraints or settings.default_constraints()

    try:
        target_gfa = request.target_gfa
        if target_gfa is None:
            metrics = site_metrics_from_geojson(
                request.site, fsr=request.fsr, hob=request.hob, backend=backend,
            )
            density = default_settings(
                request.profile, floor_to_floor_height=constraints.floor_to_floor_height,
            )
            target_gfa = calculate_feasibility(metrics, density).gfa
            logger.info("Massing target GFA from feasibility: %.0f m²", target_gfa)

        result = generate_massing(
            request.site, target_gfa, constraints=constraints, hob=request.hob,
            backend=backend, road_boundary=request.road_boundary,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if output == "geojson":
        return result.to_feature_collection()
    return result
