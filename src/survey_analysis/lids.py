"""Lid control: every chamber-like point should have a lid (LOK) above it.

Matching is by 2D proximity. The tolerance grows with the physical size of
both features, so large chambers with off-centre lids still match.
"""

from __future__ import annotations

import math
from typing import Sequence

from .config import (
    BASE_TOLERANCE_M,
    DIAMETER_FIELDS,
    LID_CODE,
    MAX_RADIUS_M,
    MIN_RADIUS_M,
    REQUIRES_LID,
)
from .models import (
    Coordinate,
    LidMatch,
    LidReference,
    LidReport,
    LidSummary,
    OrphanLid,
    PointFeature,
    is_blank,
)


def _distance_2d(p1: Coordinate, p2: Coordinate) -> float:
    return math.hypot(p1.x - p2.x, p1.y - p2.y)


def _diameter_value(feature: PointFeature) -> float | None:
    for key in DIAMETER_FIELDS:
        raw = feature.attributes.get(key)
        if is_blank(raw):
            continue
        try:
            value = float(raw)
        except (TypeError, ValueError):
            continue
        if math.isfinite(value) and value > 0:
            return value
    return None


def feature_radius(feature: PointFeature) -> float:
    """Physical radius in metres from the first usable diameter attribute.

    Values above 10 are taken as millimetres, anything else as metres. The
    result is clamped to ``[MIN_RADIUS_M, MAX_RADIUS_M]``; features without a
    usable diameter get ``MIN_RADIUS_M``.
    """
    value = _diameter_value(feature)
    if value is None:
        return MIN_RADIUS_M
    diameter_m = value / 1000 if value > 10 else value
    return min(max(diameter_m / 2, MIN_RADIUS_M), MAX_RADIUS_M)


def match_tolerance(point: PointFeature, lid: PointFeature) -> float:
    return max(BASE_TOLERANCE_M, feature_radius(point) + feature_radius(lid))


def match_lids(points: Sequence[PointFeature]) -> LidReport:
    """Find the nearest lid within tolerance for every point that requires one.

    Each required point is matched independently: one lid may be the match of
    several chambers. Lids chosen by no chamber are reported as orphans.
    """
    lids = [(i, p) for i, p in enumerate(points) if p.type_code == LID_CODE]

    results: list[LidMatch] = []
    used: set[int] = set()

    for index, point in enumerate(points):
        if point.type_code not in REQUIRES_LID:
            continue

        coord = point.position
        best: LidReference | None = None
        best_tolerance: float | None = None

        if coord is not None:
            for lid_index, lid in lids:
                lid_coord = lid.position
                if lid_coord is None:
                    continue
                tolerance = match_tolerance(point, lid)
                dist = _distance_2d(coord, lid_coord)
                if dist <= tolerance and (best is None or dist < best.distance):
                    best = LidReference(
                        point_index=lid_index, feature_id=lid.id, coordinate=lid_coord, distance=dist
                    )
                    best_tolerance = tolerance

        if best is not None:
            used.add(best.point_index)
            results.append(
                LidMatch(
                    point_index=index,
                    feature_id=point.id,
                    type_code=point.type_code,
                    status="ok",
                    message=f"Lid found ({best.distance:.2f} m away)",
                    coordinate=coord,
                    tolerance=best_tolerance,
                    lid=best,
                )
            )
        else:
            results.append(
                LidMatch(
                    point_index=index,
                    feature_id=point.id,
                    type_code=point.type_code,
                    status="error",
                    message="Missing lid",
                    coordinate=coord,
                )
            )

    orphans = [
        OrphanLid(point_index=i, feature_id=lid.id, coordinate=lid.position)
        for i, lid in lids
        if i not in used
    ]
    ok = sum(1 for r in results if r.status == "ok")
    summary = LidSummary(
        total=len(results),
        ok=ok,
        missing=len(results) - ok,
        lid_count=len(lids),
        orphan_count=len(orphans),
    )
    return LidReport(results=results, orphans=orphans, summary=summary)


def surface_heights(report: LidReport) -> dict[int, float]:
    """Map of chamber point index to the z of its matched lid, where the lid has one."""
    return {
        r.point_index: r.lid.coordinate.z
        for r in report.results
        if r.lid is not None and r.lid.coordinate.z is not None
    }
