"""Height completeness: every point and line vertex should carry a non-zero z."""

from __future__ import annotations

import math
from typing import Sequence

from .models import LineFeature, MissingZ, PointFeature, SurveyDataset, ZValidationReport, ZValidationSummary, is_blank

LABEL_FIELDS = ("S_FCODE", "Tema", "FCODE", "Type", "objekttypenavn", "OBJEKTTYPENAVN")


def is_valid_z(z: float | None) -> bool:
    # z = 0 counts as missing
    return z is not None and math.isfinite(z) and z != 0


def feature_label(feature: PointFeature | LineFeature) -> str:
    for key in LABEL_FIELDS:
        value = feature.attributes.get(key)
        if not is_blank(value):
            return str(value)
    return "Unknown"


def _scan(features: Sequence[PointFeature | LineFeature]) -> tuple[list[MissingZ], int, int]:
    missing: list[MissingZ] = []
    total_coords = 0
    missing_coords = 0

    for index, feature in enumerate(features):
        total_coords += len(feature.coordinates)
        bad = [i for i, c in enumerate(feature.coordinates) if not is_valid_z(c.z)]
        if bad:
            missing_coords += len(bad)
            missing.append(
                MissingZ(
                    index=index,
                    feature_id=feature.id,
                    label=feature_label(feature),
                    missing_indices=bad,
                    total_coords=len(feature.coordinates),
                )
            )
    return missing, total_coords, missing_coords


def analyze_z_values(dataset: SurveyDataset) -> ZValidationReport:
    """List the points and lines with coordinates whose z is missing or zero."""
    missing_points, point_coords, missing_point_coords = _scan(dataset.points)
    missing_lines, line_coords, missing_line_coords = _scan(dataset.lines)

    return ZValidationReport(
        summary=ZValidationSummary(
            total_points=len(dataset.points),
            total_lines=len(dataset.lines),
            total_point_coords=point_coords,
            total_line_coords=line_coords,
            missing_point_objects=len(missing_points),
            missing_line_objects=len(missing_lines),
            missing_point_coords=missing_point_coords,
            missing_line_coords=missing_line_coords,
        ),
        missing_points=missing_points,
        missing_lines=missing_lines,
    )
