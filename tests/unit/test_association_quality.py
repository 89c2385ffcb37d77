"""Unit tests for pre-fit data quality checks."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from omicswas.association.quality import (
    check_columns,
    check_data_quality,
    check_variance,
    variation_summary,
)
from omicswas.errors import DataValidationError, MissingColumnError, ZeroVarianceError


@pytest.fixture
def df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "x": [1.0, 2.0, 3.0, 4.0, 5.0],
            "const": [5.0, 5.0, 5.0, 5.0, 5.0],
            "group": ["a", "b", "a", "b", "a"],
            "one_level": ["a", "a", "a", "a", "a"],
            "flag": [True, False, True, True, False],
            "partial": [1.0, np.nan, 1.0, 2.0, np.nan],
        }
    )


@pytest.mark.unit
class TestCheckColumns:
    """Column presence."""

    def test_all_present(self, df):
        check_columns(df, ["x", "group"])

    def test_lists_every_missing_name(self, df):
        with pytest.raises(MissingColumnError) as exc_info:
            check_columns(df, ["x", "bmi", "smoking", "bmi"])
        assert exc_info.value.columns == ["bmi", "smoking"]
        assert "bmi, smoking" in str(exc_info.value)

    def test_is_data_validation_error(self, df):
        with pytest.raises(DataValidationError):
            check_columns(df, ["nope"])


@pytest.mark.unit
class TestVariation:
    """Variance and level counts among complete cases."""

    def test_numeric_variance(self, df):
        summary = variation_summary(df, ["x"])
        assert summary["x"] == pytest.approx(2.5)

    def test_categorical_levels(self, df):
        summary = variation_summary(df, ["group", "one_level", "flag"])
        assert summary["group"] == 1.0
        assert summary["one_level"] == 0.0
        assert summary["flag"] == 1.0

    def test_complete_cases_only(self, df):
        """Rows with a missing value in any requested column are dropped first."""
        summary = variation_summary(df, ["x", "partial"])
        assert summary["partial"] == pytest.approx(np.var([1.0, 1.0, 2.0], ddof=1))

    def test_constant_after_dropping_missing(self):
        """A column constant among complete cases is flagged even if it varies overall."""
        data = pd.DataFrame({"cov": [1.0, np.nan, 3.0], "feat": [7.0, 8.0, 9.0], "y": [4.0, 4.0, 4.0]})
        data.loc[1, "y"] = 10.0
        with pytest.raises(ZeroVarianceError) as exc_info:
            check_variance(data, ["cov", "feat", "y"])
        assert exc_info.value.columns == ["y"]

    def test_lists_all_zero_variance_columns(self, df):
        with pytest.raises(ZeroVarianceError) as exc_info:
            check_variance(df, ["x", "const", "one_level"])
        assert exc_info.value.columns == ["const", "one_level"]
        assert "const, one_level" in str(exc_info.value)

    def test_single_complete_case_is_flagged(self):
        data = pd.DataFrame({"a": [1.0, np.nan], "b": [2.0, 3.0]})
        with pytest.raises(ZeroVarianceError):
            check_variance(data, ["a", "b"])

    @pytest.mark.parametrize("value", [0.1, 1.7, -3.3])
    def test_inexact_float_constant_is_flagged(self, df, value):
        data = df.assign(const=value)
        assert variation_summary(data, ["x", "const"])["const"] == 0.0
        with pytest.raises(ZeroVarianceError) as exc_info:
            check_variance(data, ["x", "const"])
        assert exc_info.value.columns == ["const"]


@pytest.mark.unit
class TestCheckDataQuality:
    """Combined check."""

    def test_missing_column_checked_before_variance(self, df):
        with pytest.raises(MissingColumnError):
            check_data_quality(df, ["const", "absent"])

    def test_variance_check_can_be_disabled(self, df):
        check_data_quality(df, ["x", "const"], test_data_quality=False)

    def test_dataset_unchanged(self, df):
        before = df.copy()
        with pytest.raises(ZeroVarianceError):
            check_data_quality(df, ["x", "const"])
        pd.testing.assert_frame_equal(df, before)
