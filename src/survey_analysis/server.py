"""FastAPI server for survey analysis."""

from __future__ import annotations

import csv
import io
import logging
from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from .config import ELEVATION_RASTER, OUTLIER_Z_THRESHOLD, PROFILE_SPACING_M
from .elevation import ElevationService, GeonorgeElevationClient, RasterElevationSource, describe_epsg
from .incline import analyze_incline
from .lids import match_lids
from .models import (
    Coordinate,
    InclineResult,
    LidReport,
    OutlierReport,
    ProfilePoint,
    SurveyDataset,
    ValidationReport,
    ZValidationReport,
)
from .outliers import detect_outliers
from .overcover import analyze_overcover
from .profile import generate_profile_points
from .terrain import TerrainCache, TerrainScheduler
from .validation import ValidationSchema, load_schema, validate_dataset
from .z_validation import analyze_z_values

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await _close_terrain(app)


app = FastAPI(title="Survey Analysis", version="0.1.0", lifespan=lifespan)


class ProfileRequest(BaseModel):
    coordinates: list[Coordinate]


@lru_cache(maxsize=4)
def _raster_source(path: str) -> RasterElevationSource:
    # the DEM is read into memory once per path
    return RasterElevationSource(path)


def get_elevation_service() -> ElevationService:
    if ELEVATION_RASTER:
        return _raster_source(ELEVATION_RASTER)
    return GeonorgeElevationClient()


@lru_cache(maxsize=1)
def get_schema() -> ValidationSchema:
    return load_schema()


@app.post("/profile")
async def profile_line(
    body: ProfileRequest,
    spacing: float = Query(PROFILE_SPACING_M, gt=0),
    format: str = Query("csv", pattern="^(csv|json)$"),
):
    """Sample a polyline into evenly spaced profile points."""
    points = generate_profile_points(body.coordinates, spacing)
    if format == "json":
        return points
    return _profile_to_csv_response(points)


@app.post("/lids", response_model=LidReport)
async def lid_control(dataset: SurveyDataset) -> LidReport:
    """Match lids to the chambers that need them."""
    return match_lids(dataset.points)


@app.post("/validate", response_model=ValidationReport)
async def validate(dataset: SurveyDataset, schema: ValidationSchema = Depends(get_schema)) -> ValidationReport:
    """Validate feature attributes against the rule schema."""
    return validate_dataset(dataset, schema)


@app.post("/incline", response_model=list[InclineResult])
async def incline(dataset: SurveyDataset) -> list[InclineResult]:
    """Check fall, backfall and missing heights of gravity pipes."""
    return analyze_incline(dataset.lines)


@app.post("/z-values", response_model=ZValidationReport)
async def z_values(dataset: SurveyDataset) -> ZValidationReport:
    """List features with missing or zero heights."""
    return analyze_z_values(dataset)


@app.post("/outliers", response_model=OutlierReport)
async def outliers(dataset: SurveyDataset, threshold: float = Query(OUTLIER_Z_THRESHOLD, gt=0)) -> OutlierReport:
    """Find features far from the rest of the dataset."""
    return detect_outliers(dataset, threshold)


@app.post("/terrain")
async def load_terrain(
    dataset: SurveyDataset,
    request: Request,
    service: ElevationService = Depends(get_elevation_service),
):
    """Start fetching terrain profiles for every line of the dataset.

    Replaces any previously loaded dataset. The terrain cache is shared across
    datasets for the lifetime of the process.
    """
    epsg = dataset.epsg
    crs_name, is_projected = describe_epsg(epsg)
    if crs_name is None:
        raise HTTPException(status_code=400, detail=f"Unknown EPSG code: {epsg}")
    if not is_projected:
        logger.warning("EPSG:%d (%s) is not projected; profile distances are in degrees", epsg, crs_name)

    await _close_terrain(request.app)
    cache = getattr(request.app.state, "terrain_cache", None)
    if cache is None:
        cache = request.app.state.terrain_cache = TerrainCache()

    scheduler = TerrainScheduler(dataset.lines, epsg, service, cache=cache)
    queued = scheduler.enqueue_all()
    request.app.state.terrain = scheduler
    scheduler.start()

    return {
        "epsg": epsg,
        "crs_name": crs_name,
        "line_count": len(dataset.lines),
        "queued": queued,
        "statuses": scheduler.statuses(),
    }


@app.post("/terrain/lines/{line_index}/promote")
async def promote_line(line_index: int, request: Request):
    """Fetch this line next, ahead of everything still waiting."""
    scheduler = _scheduler(request, line_index)
    promoted = scheduler.promote(line_index)
    scheduler.start()
    status = scheduler.status(line_index)
    return {"line_index": line_index, "promoted": promoted, "status": status.status if status else None}


@app.get("/terrain/lines/{line_index}")
async def line_terrain(
    line_index: int,
    request: Request,
    min_overcover: float | None = Query(None, ge=0),
):
    """Fetch status and terrain profile of one line, optionally with an overcover check."""
    scheduler = _scheduler(request, line_index)
    status = scheduler.status(line_index)
    if status is None:
        return {"line_index": line_index, "status": None}

    result = status.model_dump()
    if min_overcover is not None and status.status == "done":
        result["overcover"] = analyze_overcover(status.points, status.points, min_overcover).model_dump()
    return result


@app.get("/terrain/stats")
async def terrain_stats(request: Request):
    scheduler = _scheduler(request)
    stats = scheduler.stats.snapshot(cache_size=len(scheduler.cache))
    stats["statuses"] = scheduler.statuses()
    stats["pending"] = scheduler.pending()
    return stats


def _scheduler(request: Request, line_index: int | None = None) -> TerrainScheduler:
    scheduler: TerrainScheduler | None = getattr(request.app.state, "terrain", None)
    if scheduler is None:
        raise HTTPException(status_code=404, detail="No dataset loaded for terrain fetching")
    if line_index is not None and not 0 <= line_index < len(scheduler.lines):
        raise HTTPException(status_code=404, detail=f"Unknown line index: {line_index}")
    return scheduler


async def _close_terrain(app: FastAPI) -> None:
    scheduler: TerrainScheduler | None = getattr(app.state, "terrain", None)
    if scheduler is None:
        return
    app.state.terrain = None
    await scheduler.aclose()
    close = getattr(scheduler.service, "aclose", None)
    if close is not None:
        await close()


def _profile_to_csv_response(points: list[ProfilePoint]) -> StreamingResponse:
    """Convert profile points to a streaming CSV response."""
    fieldnames = ["dist", "x", "y", "z", "is_vertex", "vertex_index"]

    def generate():
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=fieldnames)
        writer.writeheader()
        yield buf.getvalue()
        buf.seek(0)
        buf.truncate(0)

        for point in points:
            writer.writerow(point.model_dump(include=set(fieldnames)))
            yield buf.getvalue()
            buf.seek(0)
            buf.truncate(0)

    return StreamingResponse(
        generate(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=profile_points.csv"},
    )
