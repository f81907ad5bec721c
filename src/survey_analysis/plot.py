"""Pipe vs. terrain profile plot."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from .models import TerrainProfilePoint  # noqa: E402


def plot_terrain_profile(
    points: Sequence[TerrainProfilePoint],
    path: str | Path,
    title: str = "Pipe Terrain Profile",
) -> Path:
    """Plot pipe elevation and terrain surface along the line and save as PNG."""
    path = Path(path)
    dist = [p.dist for p in points]
    pipe_z = [p.z for p in points]
    terrain_z = [p.terrain_z for p in points]

    fig, ax = plt.subplots(figsize=(14, 5))
    # None values break the lines into gaps
    ax.plot(dist, [float("nan") if z is None else z for z in terrain_z],
            color="sienna", linewidth=1.2, label="Terrain")
    ax.plot(dist, [float("nan") if z is None else z for z in pipe_z],
            color="steelblue", linewidth=1.0, label="Pipe")

    vertices = [p for p in points if p.is_vertex and p.z is not None]
    if vertices:
        ax.scatter([p.dist for p in vertices], [p.z for p in vertices], s=12, color="steelblue", zorder=3)

    ax.set_xlabel("Distance along line (m)")
    ax.set_ylabel("Elevation (m)")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    ax.legend()
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    return path
