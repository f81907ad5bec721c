import asyncio

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin

from survey_analysis.elevation import ElevationServiceError
from survey_analysis.models import Coordinate, LineFeature, PointFeature, SurveyDataset, TerrainSample


class FakeElevationService:
    """In-memory elevation source: z = 100 + x / 10, one line per y band of 100 m."""

    def __init__(self, fail_lines=(), gate: asyncio.Event | None = None, miss_x=()):
        self.calls: list[list[Coordinate]] = []
        self.fail_lines = set(fail_lines)
        self.miss_x = set(miss_x)
        self.gate = gate
        self.started = asyncio.Event()

    @property
    def lines_fetched(self) -> list[int]:
        order: list[int] = []
        for call in self.calls:
            line = int(call[0].y // 100)
            if not order or order[-1] != line:
                order.append(line)
        return order

    async def fetch(self, points, epsg):
        self.calls.append(list(points))
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if int(points[0].y // 100) in self.fail_lines:
            raise ElevationServiceError("Elevation API error: 500 Internal Server Error")
        return [
            None if p.x in self.miss_x else TerrainSample(z=100 + p.x / 10, terrain_type="Vei", source="DTM1")
            for p in points
        ]


def make_line(index: int, length: float = 10.0, **attributes) -> LineFeature:
    """Straight east-west line on its own 100 m band so its index can be read back from y."""
    y = index * 100.0
    return LineFeature(
        id=f"L{index}",
        coordinates=[Coordinate(x=0.0, y=y, z=50.0), Coordinate(x=length, y=y, z=49.0)],
        attributes=attributes,
    )


def make_point(fid: str, x: float, y: float, fcode: str, z: float | None = None, **attributes) -> PointFeature:
    return PointFeature(
        id=fid,
        coordinates=[Coordinate(x=x, y=y, z=z)],
        attributes={"S_FCODE": fcode, **attributes},
    )


@pytest.fixture
def fake_service():
    return FakeElevationService()


@pytest.fixture
def survey_dataset():
    return SurveyDataset(
        header={"COSYS_EPSG": 25832},
        points=[
            make_point("P1", 0.0, 0.0, "KUM", z=10.0, **{"Bredde (diameter)": 1000}),
            make_point("P2", 0.2, 0.1, "LOK", z=12.5, **{"Bredde (diameter)": 650}),
            make_point("P3", 50.0, 50.0, "SLU"),
            make_point("P4", 80.0, 80.0, "LOK"),
        ],
        lines=[
            make_line(0, Dimensjon=160, Material="PE"),
            make_line(1, length=4.0, Dimensjon=200, Material="PVC"),
        ],
    )


@pytest.fixture
def dem_path(tmp_path):
    """2x2 GeoTIFF in EPSG:25832 with one nodata cell, origin (1000, 2000), 1 m cells."""
    path = tmp_path / "dem.tif"
    data = np.array([[10.0, 20.0], [30.0, -9999.0]], dtype="float32")
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=2,
        width=2,
        count=1,
        dtype="float32",
        crs="EPSG:25832",
        transform=from_origin(1000.0, 2000.0, 1.0, 1.0),
        nodata=-9999.0,
    ) as dst:
        dst.write(data, 1)
    return path
