"""Tests for lid (LOK) control."""

import pytest

from conftest import make_point
from survey_analysis import PointFeature, match_lids, surface_heights
from survey_analysis.lids import feature_radius, match_tolerance

DIAMETER = "Bredde (diameter)"


class TestRadius:
    @pytest.mark.parametrize(
        "attributes, expected",
        [
            ({DIAMETER: 1600}, 0.8),
            ({DIAMETER: 1.6}, 0.8),
            ({"Bredde": "1000"}, 0.5),
            ({"Dimensjon": 800}, 0.4),
            ({DIAMETER: 200}, 0.3),
            ({DIAMETER: 10_000}, 1.5),
            ({DIAMETER: 10}, 1.5),
            ({DIAMETER: "stor"}, 0.3),
            ({DIAMETER: ""}, 0.3),
            ({DIAMETER: 0}, 0.3),
            ({}, 0.3),
        ],
    )
    def test_feature_radius(self, attributes, expected):
        assert feature_radius(make_point("P", 0, 0, "KUM", **attributes)) == pytest.approx(expected)

    def test_first_usable_field_wins(self):
        point = make_point("P", 0, 0, "KUM", **{DIAMETER: "", "Bredde": 1200, "Dimensjon": 600})
        assert feature_radius(point) == pytest.approx(0.6)

    def test_tolerance_floor(self):
        assert match_tolerance(make_point("K", 0, 0, "KUM"), make_point("L", 0, 0, "LOK")) == 1.0

    def test_tolerance_scales_with_size(self):
        chamber = make_point("K", 0, 0, "KUM", **{DIAMETER: 2000})
        lid = make_point("L", 0, 0, "LOK", **{DIAMETER: 800})
        assert match_tolerance(chamber, lid) == pytest.approx(1.4)


class TestMatching:
    def test_identical_coordinates_match(self):
        report = match_lids([make_point("K", 5, 5, "KUM"), make_point("L", 5, 5, "LOK")])
        result = report.results[0]
        assert result.status == "ok"
        assert result.lid.feature_id == "L"
        assert result.lid.distance == 0
        assert report.orphans == []

    def test_missing_lid(self):
        report = match_lids([make_point("K", 0, 0, "KUM"), make_point("L", 1.2, 0, "LOK")])
        result = report.results[0]
        assert result.status == "error"
        assert result.message == "Missing lid"
        assert result.lid is None
        assert [o.feature_id for o in report.orphans] == ["L"]

    def test_large_chamber_extends_tolerance(self):
        points = [
            make_point("K", 0, 0, "KUM", **{DIAMETER: 2000}),
            make_point("L", 1.2, 0, "LOK", **{DIAMETER: 600}),
        ]
        result = match_lids(points).results[0]
        assert result.status == "ok"
        assert result.tolerance == pytest.approx(1.3)

    def test_clamped_radius_bounds_tolerance(self):
        chamber = {DIAMETER: 10_000}
        near = match_lids([make_point("K", 0, 0, "KUM", **chamber), make_point("L", 1.7, 0, "LOK")])
        far = match_lids([make_point("K", 0, 0, "KUM", **chamber), make_point("L", 1.9, 0, "LOK")])
        assert near.results[0].status == "ok"
        assert far.results[0].status == "error"

    def test_nearest_lid_selected(self):
        points = [
            make_point("K", 0, 0, "KUM"),
            make_point("L1", 0.8, 0, "LOK"),
            make_point("L2", 0, 0.3, "LOK"),
            make_point("L3", 0.5, 0.5, "LOK"),
        ]
        report = match_lids(points)
        assert report.results[0].lid.feature_id == "L2"
        assert report.results[0].lid.point_index == 2
        assert sorted(o.feature_id for o in report.orphans) == ["L1", "L3"]

    def test_shared_lid_matches_both_chambers(self):
        points = [
            make_point("K1", -0.4, 0, "KUM"),
            make_point("K2", 0.4, 0, "SLU"),
            make_point("L", 0, 0, "LOK"),
        ]
        report = match_lids(points)
        assert [r.status for r in report.results] == ["ok", "ok"]
        assert [r.lid.feature_id for r in report.results] == ["L", "L"]
        assert report.orphans == []

    def test_only_required_types_checked(self):
        points = [
            make_point("V", 0, 0, "KRN"),
            make_point("S", 10, 0, "SAN"),
            make_point("G", 20, 0, "SLS"),
            make_point("L", 20, 0.2, "LOK"),
        ]
        report = match_lids(points)
        assert [(r.feature_id, r.status) for r in report.results] == [("S", "error"), ("G", "ok")]
        assert report.summary.model_dump() == {
            "total": 2,
            "ok": 1,
            "missing": 1,
            "lid_count": 1,
            "orphan_count": 0,
        }

    def test_point_without_coordinates_is_missing(self):
        points = [
            PointFeature(id="K", attributes={"S_FCODE": "KUM"}),
            make_point("L", 0, 0, "LOK"),
        ]
        report = match_lids(points)
        assert report.results[0].status == "error"
        assert report.results[0].coordinate is None
        assert report.summary.orphan_count == 1

    def test_empty_dataset(self):
        report = match_lids([])
        assert report.results == []
        assert report.summary.total == 0

    def test_dataset_fixture(self, survey_dataset):
        report = match_lids(survey_dataset.points)
        by_id = {r.feature_id: r for r in report.results}
        assert by_id["P1"].status == "ok"
        assert by_id["P1"].lid.feature_id == "P2"
        assert by_id["P3"].status == "error"
        assert [o.feature_id for o in report.orphans] == ["P4"]


class TestSurfaceHeights:
    def test_lid_z_per_chamber(self, survey_dataset):
        report = match_lids(survey_dataset.points)
        assert surface_heights(report) == {0: 12.5}

    def test_lid_without_z_skipped(self):
        report = match_lids([make_point("K", 0, 0, "KUM", z=3.0), make_point("L", 0, 0, "LOK")])
        assert surface_heights(report) == {}
