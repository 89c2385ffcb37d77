"""
Unit tests for GLMFitter.

Estimates must equal a direct statsmodels formula fit of the same model.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
import statsmodels.formula.api as smf

from omicswas.association.formula import build_model_spec
from omicswas.association.models._utils import encode_binary, find_term
from omicswas.association.models.glm import GLMFitter
from omicswas.errors import FeatureFitError


@pytest.mark.unit
class TestGLMFitterGaussian:
    """Linear regression."""

    def test_matches_statsmodels_ols(self, cross_sectional_df):
        spec = build_model_spec("met_1", "met_1", "pfas", covariates=["age", "sex"])
        result = GLMFitter(conf_int=True).fit(spec, cross_sectional_df)

        ref = smf.ols("met_1 ~ age + sex + pfas", data=cross_sectional_df).fit()
        assert result.estimate == pytest.approx(ref.params["pfas"])
        assert result.se == pytest.approx(ref.bse["pfas"])
        assert result.test_statistic == pytest.approx(ref.tvalues["pfas"])
        assert result.p_value == pytest.approx(ref.pvalues["pfas"])
        assert result.conf_low == pytest.approx(ref.conf_int().loc["pfas", 0])
        assert result.conf_high == pytest.approx(ref.conf_int().loc["pfas", 1])
        assert result.n_obs == 100
        assert result.success

    def test_outcome_direction(self, cross_sectional_df):
        """The feature as predictor: coefficient of the feature is reported."""
        spec = build_model_spec("met_1", "pfas", "met_1", covariates=["age"])
        result = GLMFitter().fit(spec, cross_sectional_df)
        ref = smf.ols("pfas ~ age + met_1", data=cross_sectional_df).fit()
        assert result.estimate == pytest.approx(ref.params["met_1"])

    def test_no_ci_by_default(self, cross_sectional_df):
        spec = build_model_spec("met_2", "met_2", "pfas")
        result = GLMFitter().fit(spec, cross_sectional_df)
        assert result.conf_low is None
        assert result.conf_high is None

    def test_confidence_level(self, cross_sectional_df):
        spec = build_model_spec("met_1", "met_1", "pfas")
        narrow = GLMFitter(confidence_level=0.8, conf_int=True).fit(spec, cross_sectional_df)
        wide = GLMFitter(confidence_level=0.99, conf_int=True).fit(spec, cross_sectional_df)
        assert wide.conf_low < narrow.conf_low < narrow.estimate < narrow.conf_high < wide.conf_high

    def test_complete_cases(self, cross_sectional_df):
        df = cross_sectional_df.copy()
        df.loc[:9, "age"] = np.nan
        spec = build_model_spec("met_1", "met_1", "pfas", covariates=["age"])
        result = GLMFitter().fit(spec, df)
        assert result.n_obs == 90

    def test_non_identifier_names(self, cross_sectional_df):
        df = cross_sectional_df.rename(columns={"met_1": "met-1", "pfas": "PFAS (ng/mL)"})
        spec = build_model_spec("met-1", "met-1", "PFAS (ng/mL)")
        result = GLMFitter().fit(spec, df)
        ref = smf.ols("met_1 ~ pfas", data=cross_sectional_df).fit()
        assert result.estimate == pytest.approx(ref.params["pfas"])

    def test_keyword_column_name(self, cross_sectional_df):
        df = cross_sectional_df.rename(columns={"pfas": "class"})
        result = GLMFitter().fit(build_model_spec("met_1", "met_1", "class"), df)
        ref = smf.ols("met_1 ~ pfas", data=cross_sectional_df).fit()
        assert result.estimate == pytest.approx(ref.params["pfas"])

    def test_does_not_modify_input(self, cross_sectional_df):
        before = cross_sectional_df.copy()
        spec = build_model_spec("met_1", "disease", "met_1")
        GLMFitter(family="binomial").fit(spec, cross_sectional_df)
        pd.testing.assert_frame_equal(cross_sectional_df, before)


@pytest.mark.unit
class TestGLMFitterBinomial:
    """Logistic regression."""

    def test_matches_statsmodels_logit(self, cross_sectional_df):
        spec = build_model_spec("met_1", "disease", "met_1", covariates=["age"])
        result = GLMFitter(family="binomial").fit(spec, cross_sectional_df)
        ref = smf.logit("disease ~ age + met_1", data=cross_sectional_df).fit(disp=False)
        assert result.estimate == pytest.approx(ref.params["met_1"], rel=1e-5)
        assert result.se == pytest.approx(ref.bse["met_1"], rel=1e-5)
        assert 0.0 <= result.p_value <= 1.0

    def test_string_outcome_encoded(self, cross_sectional_df):
        df = cross_sectional_df.copy()
        df["status"] = np.where(df["disease"] == 1, "case", "control")
        spec = build_model_spec("met_1", "status", "met_1")
        result = GLMFitter(family="binomial").fit(spec, df)
        ref = smf.logit("disease ~ met_1", data=cross_sectional_df).fit(disp=False)
        # 'control' sorts after 'case', so control is the modelled level
        assert result.estimate == pytest.approx(-ref.params["met_1"], rel=1e-5)

    def test_non_binary_outcome_fails(self, cross_sectional_df):
        spec = build_model_spec("met_2", "age", "met_2")
        with pytest.raises(FeatureFitError):
            GLMFitter(family="binomial").fit(spec, cross_sectional_df)


@pytest.mark.unit
class TestFitterUtils:
    """Binary encoding and coefficient lookup."""

    def test_encode_bool(self):
        assert list(encode_binary(pd.Series([True, False]), "f")) == [1.0, 0.0]

    def test_encode_categorical_uses_category_order(self):
        values = pd.Series(pd.Categorical(["ctrl", "case", "ctrl"], categories=["ctrl", "case"]))
        assert list(encode_binary(values, "f")) == [0.0, 1.0, 0.0]

    def test_encode_rejects_numeric_not_01(self):
        with pytest.raises(FeatureFitError):
            encode_binary(pd.Series([1, 2, 1], name="y"), "f")

    def test_find_term_exact_and_dummy(self):
        assert find_term(["Intercept", "age", "pfas"], "pfas", "f") == 2
        assert find_term(["Intercept", "sex[T.M]"], "sex", "f") == 1

    def test_find_term_missing_or_ambiguous(self):
        with pytest.raises(FeatureFitError, match="not found"):
            find_term(["Intercept", "age"], "pfas", "f")
        with pytest.raises(FeatureFitError, match="expands"):
            find_term(["Intercept", "grp[T.b]", "grp[T.c]"], "grp", "f")
