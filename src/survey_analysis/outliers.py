"""Spatial outliers: features unusually far from the centroid of the dataset."""

from __future__ import annotations

import math
import statistics

from .config import OUTLIER_Z_THRESHOLD
from .models import Coordinate, LineFeature, Outlier, OutlierReport, OutlierSummary, PointFeature, SurveyDataset


def detect_outliers(dataset: SurveyDataset, threshold: float = OUTLIER_Z_THRESHOLD) -> OutlierReport:
    """Flag features whose distance to the centroid has a z-score above ``threshold``.

    Points are placed at their position, lines at their first vertex. Fewer
    than three placed features give no outliers. Results are sorted by
    z-score, most distant first.
    """
    placed: list[tuple[str, int, PointFeature | LineFeature]] = []
    for index, point in enumerate(dataset.points):
        if point.coordinates:
            placed.append(("point", index, point))
    for index, line in enumerate(dataset.lines):
        if line.coordinates:
            placed.append(("line", index, line))

    if len(placed) < 3:
        return OutlierReport(
            outliers=[],
            summary=OutlierSummary(total_objects=len(placed), outlier_count=0, threshold=threshold),
        )

    coords = [feature.coordinates[0] for _, _, feature in placed]
    centroid = Coordinate(
        x=statistics.fmean(c.x for c in coords),
        y=statistics.fmean(c.y for c in coords),
    )
    distances = [math.hypot(c.x - centroid.x, c.y - centroid.y) for c in coords]
    mean = statistics.fmean(distances)
    std_dev = statistics.pstdev(distances, mu=mean)

    outliers: list[Outlier] = []
    for (kind, index, feature), coord, distance in zip(placed, coords, distances):
        z_score = (distance - mean) / std_dev if std_dev > 0 else 0.0
        if z_score > threshold:
            outliers.append(
                Outlier(
                    kind=kind,
                    index=index,
                    feature_id=feature.id,
                    type_code=feature.type_code,
                    x=coord.x,
                    y=coord.y,
                    distance=distance,
                    z_score=z_score,
                )
            )
    outliers.sort(key=lambda o: o.z_score, reverse=True)

    return OutlierReport(
        outliers=outliers,
        centroid=centroid,
        summary=OutlierSummary(
            total_objects=len(placed),
            outlier_count=len(outliers),
            threshold=threshold,
            mean_distance=mean,
            std_dev=std_dev,
        ),
    )
