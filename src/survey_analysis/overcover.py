"""Overcover (soil cover above a pipe) from a pipe profile and its terrain profile."""

from typing import Sequence

from .models import OvercoverResult, OvercoverWarning, ProfilePoint, TerrainProfilePoint

DEFAULT_MIN_OVERCOVER_M = 2.0


def analyze_overcover(
    pipe_points: Sequence[ProfilePoint],
    terrain_points: Sequence[TerrainProfilePoint],
    min_overcover: float = DEFAULT_MIN_OVERCOVER_M,
) -> OvercoverResult:
    """Compare each pipe point with the terrain point closest to it along the line.

    Points where the pipe lies below terrain but with less than
    ``min_overcover`` of cover are reported as warnings. Negative overcover
    (pipe above terrain) enters the statistics but is not flagged.
    """
    terrain = [t for t in terrain_points if t.terrain_z is not None]
    if not terrain or not pipe_points:
        return OvercoverResult(has_data=False)

    warnings: list[OvercoverWarning] = []
    values: list[float] = []

    for pp in pipe_points:
        if pp.z is None:
            continue
        closest = min(terrain, key=lambda t: abs(t.dist - pp.dist))
        overcover = closest.terrain_z - pp.z
        values.append(overcover)

        if 0 <= overcover < min_overcover:
            warnings.append(
                OvercoverWarning(
                    dist=pp.dist,
                    pipe_z=pp.z,
                    terrain_z=closest.terrain_z,
                    overcover=overcover,
                    required=min_overcover,
                )
            )

    if not values:
        return OvercoverResult(has_data=False)

    return OvercoverResult(
        has_data=True,
        warnings=warnings,
        min_overcover=min(values),
        max_overcover=max(values),
        avg_overcover=sum(values) / len(values),
    )
