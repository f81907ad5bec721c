"""Tests for dataset model helpers."""

import logging

import pytest

from survey_analysis import SurveyDataset


class TestDatasetEpsg:
    @pytest.mark.parametrize("raw, expected", [(25833, 25833), ("25833", 25833), ("25833.0", 25833), (4326.0, 4326)])
    def test_header_value(self, raw, expected, caplog):
        with caplog.at_level(logging.WARNING, logger="survey_analysis.models"):
            assert SurveyDataset(header={"COSYS_EPSG": raw}).epsg == expected
        assert caplog.records == []

    def test_missing_header_uses_default_silently(self, caplog):
        with caplog.at_level(logging.WARNING, logger="survey_analysis.models"):
            assert SurveyDataset().epsg == 25832
            assert SurveyDataset(header={"COSYS_EPSG": ""}).epsg == 25832
        assert caplog.records == []

    @pytest.mark.parametrize("raw", ["UTM32", "25832.5", [25832]])
    def test_unusable_header_warns(self, raw, caplog):
        with caplog.at_level(logging.WARNING, logger="survey_analysis.models"):
            assert SurveyDataset(header={"COSYS_EPSG": raw}).epsg == 25832
        assert len(caplog.records) == 1
        assert "COSYS_EPSG" in caplog.records[0].getMessage()
