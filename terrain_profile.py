"""Fetch the terrain profile of one pipe in a parsed survey dataset: export CSV and plot it.

The dataset is the JSON produced by the survey file parser
(``{"header": {...}, "points": [...], "lines": [...]}``).
"""

import argparse
import asyncio
import csv
import logging
from pathlib import Path

from survey_analysis import SurveyDataset, TerrainScheduler, analyze_overcover, line_length
from survey_analysis.config import ELEVATION_RASTER, LOG_LEVEL, PROFILE_SPACING_M
from survey_analysis.elevation import GeonorgeElevationClient, RasterElevationSource, describe_epsg
from survey_analysis.plot import plot_terrain_profile


def export_csv(points, path: Path) -> None:
    """Write terrain profile points to a CSV file."""
    rows = [p.model_dump() for p in points]
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)
    print(f"CSV exported: {path}")


async def fetch_line(dataset: SurveyDataset, line_index: int, spacing: float):
    service = RasterElevationSource(ELEVATION_RASTER) if ELEVATION_RASTER else GeonorgeElevationClient()
    scheduler = TerrainScheduler(dataset.lines, dataset.epsg, service, spacing=spacing)
    scheduler.promote(line_index)
    try:
        await scheduler.drain()
    finally:
        if isinstance(service, GeonorgeElevationClient):
            await service.aclose()
    return scheduler


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("dataset", type=Path, help="parsed survey dataset (JSON)")
    parser.add_argument("--line", type=int, default=0, help="line index to profile")
    parser.add_argument("--spacing", type=float, default=PROFILE_SPACING_M, help="profile spacing in metres")
    parser.add_argument("--min-overcover", type=float, default=2.0)
    parser.add_argument("--out", type=Path, default=Path("."))
    args = parser.parse_args()

    logging.basicConfig(level=LOG_LEVEL)

    dataset = SurveyDataset.model_validate_json(args.dataset.read_text(encoding="utf-8"))
    crs_name, _ = describe_epsg(dataset.epsg)
    print(f"Loaded {len(dataset.points):,} points and {len(dataset.lines):,} lines")
    print(f"CRS: EPSG:{dataset.epsg} ({crs_name or 'unknown'})\n")

    scheduler = asyncio.run(fetch_line(dataset, args.line, args.spacing))
    status = scheduler.status(args.line)
    if status is None or status.status != "done":
        message = status.message if status else "not fetched"
        raise SystemExit(f"Terrain fetch failed for line {args.line}: {message}")

    points = status.points
    sampled = [p for p in points if p.terrain_z is not None]
    print(f"Line length:   {line_length(dataset.lines[args.line].coordinates):,.1f} m")
    print(f"Profile:       {len(points):,} points, {len(sampled):,} with terrain")

    overcover = analyze_overcover(points, points, args.min_overcover)
    if overcover.has_data:
        print(f"Overcover:     {overcover.min_overcover:.2f} m  to  {overcover.max_overcover:.2f} m")
        print(f"Warnings:      {len(overcover.warnings):,} points below {args.min_overcover} m")
    print(f"Stats:         {scheduler.stats.snapshot(len(scheduler.cache))}\n")

    export_csv(points, args.out / f"line_{args.line}_terrain.csv")
    plot_path = plot_terrain_profile(
        points,
        args.out / f"line_{args.line}_terrain.png",
        title=f"Terrain Profile: line {args.line} (EPSG:{dataset.epsg})",
    )
    print(f"Plot saved: {plot_path}")


if __name__ == "__main__":
    main()
