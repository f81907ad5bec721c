"""Survey analysis: pipe profiles, terrain fetching, lid control, attribute validation and quality checks."""

from .elevation import ElevationService, ElevationServiceError, GeonorgeElevationClient, RasterElevationSource
from .incline import analyze_incline
from .lids import match_lids, surface_heights
from .models import (
    Coordinate,
    FieldError,
    LineFeature,
    PointFeature,
    ProfilePoint,
    SurveyDataset,
    TerrainProfilePoint,
    TerrainSample,
    ValidationRule,
)
from .outliers import detect_outliers
from .overcover import analyze_overcover
from .profile import generate_profile_points, line_length
from .terrain import TerrainCache, TerrainScheduler
from .validation import ValidationSchema, load_schema, validate_dataset, validate_feature
from .z_validation import analyze_z_values

__all__ = [
    "Coordinate",
    "ElevationService",
    "ElevationServiceError",
    "FieldError",
    "GeonorgeElevationClient",
    "LineFeature",
    "PointFeature",
    "ProfilePoint",
    "RasterElevationSource",
    "SurveyDataset",
    "TerrainCache",
    "TerrainProfilePoint",
    "TerrainSample",
    "TerrainScheduler",
    "ValidationRule",
    "ValidationSchema",
    "analyze_incline",
    "analyze_overcover",
    "analyze_z_values",
    "detect_outliers",
    "generate_profile_points",
    "line_length",
    "load_schema",
    "match_lids",
    "surface_heights",
    "validate_dataset",
    "validate_feature",
]
