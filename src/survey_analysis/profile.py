"""Profile point generation along line centerlines."""

import math
from typing import Sequence

from .models import Coordinate, ProfilePoint

MIN_SEGMENT_LENGTH = 1e-4


def _distance_2d(p1: Coordinate, p2: Coordinate) -> float:
    return math.hypot(p2.x - p1.x, p2.y - p1.y)


def _vertex(coord: Coordinate, dist: float, index: int) -> ProfilePoint:
    return ProfilePoint(x=coord.x, y=coord.y, z=coord.z, dist=dist, is_vertex=True, vertex_index=index)


def _step_count(length: float, spacing: float) -> int:
    # nearest whole number of equal sub-steps, e.g. 10 at spacing 3 -> 3 steps of 3.33
    return max(1, math.floor(length / spacing + 0.5))


def line_length(vertices: Sequence[Coordinate]) -> float:
    """Total 2D length of a polyline."""
    return sum(_distance_2d(vertices[i - 1], vertices[i]) for i in range(1, len(vertices)))


def generate_profile_points(vertices: Sequence[Coordinate], spacing: float) -> list[ProfilePoint]:
    """Sample a polyline into evenly spaced profile points.

    Each segment is divided into the nearest whole number of equal sub-steps
    so that every original vertex is reproduced exactly, flagged with its
    index. A sub-step is always shorter than ``1.5 * spacing``; on segments of
    at least ``1.5 * spacing`` it lies within ``[0.75, 1.25] * spacing``. Z is
    interpolated only where both segment ends carry one. Segments shorter than
    ``MIN_SEGMENT_LENGTH`` are treated as duplicate points and not sampled.
    """
    if spacing <= 0:
        raise ValueError(f"spacing must be positive, got {spacing}")
    if not vertices:
        return []

    points = [_vertex(vertices[0], 0.0, 0)]
    cumulative = 0.0

    for i in range(1, len(vertices)):
        p1, p2 = vertices[i - 1], vertices[i]
        length = _distance_2d(p1, p2)

        if length >= MIN_SEGMENT_LENGTH:
            steps = _step_count(length, spacing)
            has_z = p1.z is not None and p2.z is not None
            for k in range(1, steps):
                t = k / steps
                points.append(
                    ProfilePoint(
                        x=p1.x + (p2.x - p1.x) * t,
                        y=p1.y + (p2.y - p1.y) * t,
                        z=p1.z + (p2.z - p1.z) * t if has_z else None,
                        dist=cumulative + length * t,
                        is_vertex=False,
                    )
                )
        cumulative += length
        points.append(_vertex(p2, cumulative, i))

    return points


def terrain_query_points(profile: Sequence[ProfilePoint]) -> list[Coordinate]:
    """Plan coordinates to send to the elevation service, one per profile point."""
    return [Coordinate(x=p.x, y=p.y) for p in profile]
