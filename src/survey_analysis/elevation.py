"""Terrain elevation sources: the Geonorge Høydedata web service and local DEM rasters.

Every source answers ``fetch(points, epsg)`` with one :class:`TerrainSample`
(or ``None`` for a miss) per requested point, in request order.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol, Sequence

import httpx
import rasterio
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError
from rasterio.transform import rowcol

from .config import ELEVATION_API_URL
from .models import Coordinate, ProfilePoint, TerrainSample

logger = logging.getLogger(__name__)


class ElevationServiceError(Exception):
    """The elevation source failed or returned an unusable answer."""


class ElevationService(Protocol):
    """Port for terrain height lookups."""

    async def fetch(
        self, points: Sequence[Coordinate | ProfilePoint], epsg: int
    ) -> list[TerrainSample | None]:
        ...


def describe_epsg(epsg: int) -> tuple[str | None, bool | None]:
    """Return (crs_name, is_projected) for an EPSG code, or (None, None) if unknown."""
    try:
        crs = CRS.from_epsg(epsg)
    except CRSError:
        return None, None
    return crs.name, crs.is_projected


class GeonorgeElevationClient:
    """Async client for ``GET /punkt`` of the Geonorge Høydedata API."""

    def __init__(
        self,
        base_url: str = ELEVATION_API_URL,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch(
        self, points: Sequence[Coordinate | ProfilePoint], epsg: int
    ) -> list[TerrainSample | None]:
        if not points:
            return []

        punkter = json.dumps([[p.x, p.y] for p in points])
        try:
            response = await self._client.get(
                f"{self.base_url}/punkt",
                params={"koordsys": epsg, "punkter": punkter},
            )
        except httpx.HTTPError as exc:
            logger.warning("Elevation request failed: %s", exc)
            raise ElevationServiceError(f"Elevation request failed: {exc}") from exc

        if not response.is_success:
            raise ElevationServiceError(
                f"Elevation API error: {response.status_code} {response.reason_phrase}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ElevationServiceError("Elevation API returned invalid JSON") from exc

        answers = data.get("punkter") if isinstance(data, dict) else None
        if not isinstance(answers, list):
            raise ElevationServiceError("Elevation API response has no 'punkter' list")

        samples: list[TerrainSample | None] = []
        for i in range(len(points)):
            p = answers[i] if i < len(answers) else None
            if not isinstance(p, dict):
                samples.append(None)
                continue
            samples.append(
                TerrainSample(
                    z=p.get("z"),
                    terrain_type=p.get("terreng") or None,
                    source=p.get("datakilde") or None,
                )
            )
        return samples

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class RasterElevationSource:
    """Samples terrain heights from a single-band DEM raster (e.g. GeoTIFF)."""

    def __init__(self, raster_path: str | Path):
        self.raster_path = Path(raster_path)
        with rasterio.open(self.raster_path) as ds:
            self._band = ds.read(1)
            self._nodata = ds.nodata
            self._transform = ds.transform
            self._crs = ds.crs
        self._transformers: dict[int, Transformer | None] = {}

    def _transformer(self, epsg: int) -> Transformer | None:
        """Transformer from the request EPSG to the raster CRS (None when identical)."""
        if epsg not in self._transformers:
            raster_epsg = self._crs.to_epsg() if self._crs else None
            if raster_epsg is None or raster_epsg == epsg:
                self._transformers[epsg] = None
            else:
                self._transformers[epsg] = Transformer.from_crs(
                    f"EPSG:{epsg}", f"EPSG:{raster_epsg}", always_xy=True
                )
        return self._transformers[epsg]

    def sample(self, points: Sequence[Coordinate | ProfilePoint], epsg: int) -> list[TerrainSample | None]:
        xs = [p.x for p in points]
        ys = [p.y for p in points]
        transformer = self._transformer(epsg)
        if transformer is not None:
            xs, ys = transformer.transform(xs, ys)

        samples: list[TerrainSample | None] = []
        rows, cols = rowcol(self._transform, xs, ys)
        for row, col in zip(rows, cols):
            if 0 <= row < self._band.shape[0] and 0 <= col < self._band.shape[1]:
                val = float(self._band[row, col])
                if self._nodata is not None and val == self._nodata:
                    samples.append(None)
                else:
                    samples.append(TerrainSample(z=val, source=self.raster_path.name))
            else:
                samples.append(None)
        logger.debug("Sampled %d points from %s", len(samples), self.raster_path.name)
        return samples

    async def fetch(
        self, points: Sequence[Coordinate | ProfilePoint], epsg: int
    ) -> list[TerrainSample | None]:
        if not points:
            return []
        return await asyncio.to_thread(self.sample, points, epsg)
