"""Unit tests for MixedFitter (random-intercept models)."""

from __future__ import annotations

import numpy as np
import pytest
import statsmodels.formula.api as smf

from omicswas.association.formula import build_model_spec
from omicswas.association.models.mixed import MixedFitter
from omicswas.errors import FeatureFitError


@pytest.mark.unit
class TestMixedFitterGaussian:
    """REML linear mixed models."""

    def test_matches_statsmodels_mixedlm(self, repeated_df):
        spec = build_model_spec("met_1", "met_1", "exposure", covariates=["visit"], groups="subject")
        result = MixedFitter(conf_int=True).fit(spec, repeated_df)

        ref = smf.mixedlm(
            "met_1 ~ visit + exposure", data=repeated_df, groups=repeated_df["subject"]
        ).fit(reml=True)
        assert result.estimate == pytest.approx(ref.fe_params["exposure"], rel=1e-4)
        assert result.se == pytest.approx(ref.bse_fe["exposure"], rel=1e-3)
        assert result.conf_low < result.estimate < result.conf_high
        assert result.n_obs == len(repeated_df)
        assert result.formula == "met_1 ~ visit + exposure + (1 | subject)"

    def test_detects_association(self, repeated_df):
        spec = build_model_spec("met_1", "met_1", "exposure", groups="subject")
        result = MixedFitter().fit(spec, repeated_df)
        assert result.estimate == pytest.approx(1.2, abs=0.2)
        assert result.p_value < 1e-6
        assert result.conf_low is None

    def test_requires_groups(self, repeated_df):
        spec = build_model_spec("met_1", "met_1", "exposure")
        with pytest.raises(FeatureFitError, match="grouping"):
            MixedFitter().fit(spec, repeated_df)


@pytest.mark.unit
class TestMixedFitterBinomial:
    """Variational Bayes logistic mixed models."""

    def test_binary_outcome(self, repeated_df):
        df = repeated_df.copy()
        df["high"] = (df["met_1"] > df["met_1"].median()).astype(int)
        spec = build_model_spec("high", "high", "exposure", groups="subject")
        result = MixedFitter(family="binomial", conf_int=True).fit(spec, df)

        assert result.success
        assert result.estimate > 0
        assert np.isfinite(result.se) and result.se > 0
        assert 0.0 <= result.p_value <= 1.0
        assert result.conf_low < result.estimate < result.conf_high
