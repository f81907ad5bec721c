"""Pydantic data models for survey analysis."""

from __future__ import annotations

import logging
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import DEFAULT_EPSG, TYPE_CODE_FIELD

logger = logging.getLogger(__name__)

Scalar = Union[str, float, int, None]

TerrainStatus = Literal["queued", "loading", "done", "error"]


def is_blank(value: Scalar) -> bool:
    """True for a missing attribute value: ``None`` or the empty string."""
    return value is None or value == ""


class Coordinate(BaseModel):
    """A survey coordinate in the dataset's reference system."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float | None = None


class _Feature(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    coordinates: list[Coordinate] = Field(default_factory=list)
    attributes: dict[str, Scalar] = Field(default_factory=dict)
    type_code: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _type_code_from_attributes(cls, data):
        if isinstance(data, dict) and data.get("type_code") is None:
            code = (data.get("attributes") or {}).get(TYPE_CODE_FIELD)
            if not is_blank(code):
                data = {**data, "type_code": str(code)}
        return data


class PointFeature(_Feature):
    """A point object (chamber, lid, valve...) from the parsed survey."""

    @property
    def position(self) -> Coordinate | None:
        return self.coordinates[0] if self.coordinates else None


class LineFeature(_Feature):
    """A line object (pipe, cable...) from the parsed survey."""


class SurveyDataset(BaseModel):
    """Parsed survey: header plus point and line features."""

    header: dict[str, Any] = Field(default_factory=dict)
    points: list[PointFeature] = Field(default_factory=list)
    lines: list[LineFeature] = Field(default_factory=list)

    @property
    def epsg(self) -> int:
        """EPSG code from the ``COSYS_EPSG`` header, else ``DEFAULT_EPSG``."""
        raw = self.header.get("COSYS_EPSG")
        if raw is None or raw == "":
            return DEFAULT_EPSG
        try:
            value = float(raw)
        except (TypeError, ValueError):
            value = None
        if value is None or not value.is_integer():
            logger.warning("Unusable COSYS_EPSG header %r, falling back to EPSG:%d", raw, DEFAULT_EPSG)
            return DEFAULT_EPSG
        return int(value)


class ProfilePoint(BaseModel):
    """A sampled point along a line, ``dist`` measured from the first vertex."""

    x: float
    y: float
    z: float | None = None
    dist: float
    is_vertex: bool
    vertex_index: int | None = None


class TerrainSample(BaseModel):
    """Elevation service answer for one coordinate."""

    z: float | None = None
    terrain_type: str | None = None
    source: str | None = None


class TerrainProfilePoint(ProfilePoint):
    """A profile point joined with the terrain sampled beneath it."""

    terrain_z: float | None = None
    terrain_type: str | None = None
    source: str | None = None


class LineTerrain(BaseModel):
    """Fetch state of one line's terrain profile."""

    line_index: int
    status: TerrainStatus
    message: str | None = None
    points: list[TerrainProfilePoint] = Field(default_factory=list)


class OvercoverWarning(BaseModel):
    dist: float
    pipe_z: float
    terrain_z: float
    overcover: float
    required: float


class OvercoverResult(BaseModel):
    """Cover depth between a pipe profile and the terrain above it."""

    has_data: bool
    warnings: list[OvercoverWarning] = Field(default_factory=list)
    min_overcover: float | None = None
    max_overcover: float | None = None
    avg_overcover: float | None = None


class LidReference(BaseModel):
    point_index: int
    feature_id: str
    coordinate: Coordinate
    distance: float


class LidMatch(BaseModel):
    """Outcome for one point that requires a lid."""

    point_index: int
    feature_id: str
    type_code: str
    status: Literal["ok", "error"]
    message: str
    coordinate: Coordinate | None = None
    tolerance: float | None = None
    lid: LidReference | None = None


class OrphanLid(BaseModel):
    """A lid that no chamber selected as its nearest match."""

    point_index: int
    feature_id: str
    coordinate: Coordinate | None = None
    status: Literal["orphan"] = "orphan"
    message: str = "Lid has no matching chamber"


class LidSummary(BaseModel):
    total: int
    ok: int
    missing: int
    lid_count: int
    orphan_count: int


class LidReport(BaseModel):
    results: list[LidMatch]
    orphans: list[OrphanLid]
    summary: LidSummary


class AcceptableValue(BaseModel):
    value: Scalar
    description: str | None = None


class ValidationRule(BaseModel):
    """Declarative attribute rule loaded from the validation schema."""

    model_config = ConfigDict(populate_by_name=True)

    field_key: str = Field(alias="fieldKey")
    required: str = "optional"
    acceptable_values: list[AcceptableValue] = Field(default_factory=list, alias="acceptableValues")

    @field_validator("acceptable_values", mode="before")
    @classmethod
    def _wrap_scalars(cls, values):
        if values is None:
            return []
        return [v if isinstance(v, (dict, AcceptableValue)) else {"value": v} for v in values]


class FieldError(BaseModel):
    """A single rule violation on one feature attribute."""

    feature_id: str
    field: str
    message: str
    severity: Literal["error", "warning"] = "error"


class ValidationStats(BaseModel):
    total_points: int
    total_lines: int
    total_errors: int


class ValidationReport(BaseModel):
    valid: bool
    errors: list[FieldError]
    stats: ValidationStats


class InclineSegment(BaseModel):
    """One vertex-to-vertex segment, incline in per mille along the assumed flow."""

    index: int
    start_dist: float
    end_dist: float
    start_z: float
    end_z: float
    length: float
    incline: float
    is_backfall: bool


class MinInclineRule(BaseModel):
    min_permille: float
    label: str


class InclineDetails(BaseModel):
    start_z: float
    end_z: float
    length: float
    incline: float
    delta_z: float
    is_digitized_backwards: bool
    has_local_backfall: bool
    min_incline_rule: MinInclineRule
    segments: list[InclineSegment] = Field(default_factory=list)


class InclineResult(BaseModel):
    """Fall check of one gravity pipe."""

    line_index: int
    feature_id: str
    status: Literal["ok", "warning", "error"]
    message: str
    is_critical: bool = False
    details: InclineDetails | None = None


class MissingZ(BaseModel):
    """A feature with one or more coordinates lacking a usable z."""

    index: int
    feature_id: str
    label: str
    missing_indices: list[int]
    total_coords: int


class ZValidationSummary(BaseModel):
    total_points: int
    total_lines: int
    total_point_coords: int
    total_line_coords: int
    missing_point_objects: int
    missing_line_objects: int
    missing_point_coords: int
    missing_line_coords: int


class ZValidationReport(BaseModel):
    summary: ZValidationSummary
    missing_points: list[MissingZ]
    missing_lines: list[MissingZ]


class Outlier(BaseModel):
    kind: Literal["point", "line"]
    index: int
    feature_id: str
    type_code: str | None = None
    x: float
    y: float
    distance: float
    z_score: float


class OutlierSummary(BaseModel):
    total_objects: int
    outlier_count: int
    threshold: float
    mean_distance: float | None = None
    std_dev: float | None = None


class OutlierReport(BaseModel):
    outliers: list[Outlier]
    centroid: Coordinate | None = None
    summary: OutlierSummary
