"""Incline (fall) of gravity pipes: backfall, low fall and missing heights.

Flow direction is taken from the end heights, so a pipe digitized uphill is
not reported as backfall. Inclines are in per mille.
"""

from __future__ import annotations

import math
import re
from typing import Mapping, Sequence

from .config import BACKFALL_TOLERANCE_M, GRAVITY_CODES, PRESSURE_MARKERS, TYPE_CODE_FIELD
from .models import (
    InclineDetails,
    InclineResult,
    InclineSegment,
    LineFeature,
    MinInclineRule,
    Scalar,
    is_blank,
)

DIMENSION_FIELDS = ("Dimensjon", "Dim")


def _attribute(attributes: Mapping[str, Scalar], keys: Sequence[str]) -> Scalar:
    for key in keys:
        value = attributes.get(key)
        if not is_blank(value):
            return value
    return None


def is_gravity_pipe(line: LineFeature) -> bool:
    """Sewage, storm water and combined pipes, excluding pressure lines."""
    code = _attribute(line.attributes, ("Tema", TYPE_CODE_FIELD))
    if code is None:
        return False
    code = str(code).upper()
    if not any(g in code for g in GRAVITY_CODES):
        return False
    return not any(p in code for p in PRESSURE_MARKERS)


def min_incline(line: LineFeature) -> MinInclineRule:
    """Minimum fall by pipe dimension (mm): 10 below 200, 4 up to 315, else 2."""
    raw = _attribute(line.attributes, DIMENSION_FIELDS)
    match = re.search(r"\d+", str(raw)) if raw is not None else None
    dim = int(match.group()) if match else 0

    if dim <= 0:
        return MinInclineRule(min_permille=4, label="unknown dimension")
    if dim < 200:
        return MinInclineRule(min_permille=10, label="< 200 mm")
    if dim <= 315:
        return MinInclineRule(min_permille=4, label="200-315 mm")
    return MinInclineRule(min_permille=2, label="> 315 mm")


def _has_z(z: float | None) -> bool:
    return z is not None and math.isfinite(z)


def analyze_line_incline(line: LineFeature, line_index: int) -> InclineResult:
    coords = line.coordinates

    if not all(_has_z(c.z) for c in coords):
        return InclineResult(
            line_index=line_index,
            feature_id=line.id,
            status="error",
            message="Missing Z coordinates on one or more vertices",
            is_critical=True,
        )

    dists = [0.0]
    for p1, p2 in zip(coords, coords[1:]):
        dists.append(dists[-1] + math.hypot(p2.x - p1.x, p2.y - p1.y))
    length = dists[-1]

    start_z, end_z = coords[0].z, coords[-1].z
    backwards = start_z < end_z
    total_drop = abs(start_z - end_z)
    incline = total_drop / length * 1000 if length > 0 else 0.0

    segments: list[InclineSegment] = []
    for i, (p1, p2) in enumerate(zip(coords, coords[1:])):
        seg_len = dists[i + 1] - dists[i]
        drop = p2.z - p1.z if backwards else p1.z - p2.z
        segments.append(
            InclineSegment(
                index=i,
                start_dist=dists[i],
                end_dist=dists[i + 1],
                start_z=p1.z,
                end_z=p2.z,
                length=seg_len,
                incline=drop / seg_len * 1000 if seg_len > 0 else 0.0,
                is_backfall=drop < -BACKFALL_TOLERANCE_M,
            )
        )

    rule = min_incline(line)
    has_backfall = any(s.is_backfall for s in segments)
    if has_backfall:
        status, message = "warning", "Backfall detected"
    elif incline < rule.min_permille:
        status, message = "warning", f"Low incline ({incline:.2f}‰ < {rule.min_permille:g}‰)"
    else:
        status, message = "ok", "OK"

    return InclineResult(
        line_index=line_index,
        feature_id=line.id,
        status=status,
        message=message,
        details=InclineDetails(
            start_z=start_z,
            end_z=end_z,
            length=length,
            incline=round(incline, 2),
            delta_z=-total_drop if backwards else total_drop,
            is_digitized_backwards=backwards,
            has_local_backfall=has_backfall,
            min_incline_rule=rule,
            segments=segments,
        ),
    )


def analyze_incline(lines: Sequence[LineFeature]) -> list[InclineResult]:
    """Check every gravity pipe with at least two vertices; other lines are skipped."""
    return [
        analyze_line_incline(line, i)
        for i, line in enumerate(lines)
        if is_gravity_pipe(line) and len(line.coordinates) >= 2
    ]
