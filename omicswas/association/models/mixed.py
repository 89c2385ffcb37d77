# File: omicswas/association/models/mixed.py
# Location: omicswas/omicswas/association/models/mixed.py
"""
Mixed-effects models for repeated measures, one per feature.

Each subject (``spec.groups``) gets a random intercept.

- gaussian: linear mixed model fitted by REML (statsmodels MixedLM).
  Non-convergence raises FeatureFitError.
- binomial: logistic mixed model fitted by variational Bayes
  (statsmodels BinomialBayesMixedGLM) with the subject intercepts as a
  variance component. The statistic is the posterior mean divided by the
  posterior standard deviation, with a two-sided normal p-value and a
  normal interval.
"""

from __future__ import annotations

import logging
import warnings

import numpy as np
import pandas as pd

from omicswas.association.base import Family, FitResult, ModelFitter, ModelSpec, ModelVariant
from omicswas.association.formula import quote_term
from omicswas.association.models._utils import (
    check_finite,
    encode_binary,
    find_term,
    fixed_formula,
    working_frame,
)
from omicswas.errors import FeatureFitError

logger = logging.getLogger("omicswas")


class MixedFitter(ModelFitter):
    """
    Random-intercept mixed model for one feature.

    Parameters
    ----------
    family : Family or str
        "gaussian" (MixedLM) or "binomial" (BinomialBayesMixedGLM).
    confidence_level : float
        Level of the confidence interval.
    conf_int : bool
        Whether to compute the confidence interval.
    """

    def __init__(
        self,
        family: Family | str = Family.GAUSSIAN,
        confidence_level: float = 0.95,
        conf_int: bool = False,
    ) -> None:
        self.family = Family.parse(family)
        self.confidence_level = confidence_level
        self.conf_int = conf_int

    @property
    def variant(self) -> ModelVariant:
        """Registry key."""
        return ModelVariant.MIXED

    def fit(self, spec: ModelSpec, data: pd.DataFrame) -> FitResult:
        """Fit ``spec`` with a random intercept per ``spec.groups``."""
        if spec.groups is None:
            raise FeatureFitError(spec.feature, "mixed model requires a grouping variable")

        frame = working_frame(spec, data)
        if self.family is Family.GAUSSIAN:
            estimate, se, statistic, p_value, ci = self._fit_lmm(spec, frame)
        else:
            estimate, se, statistic, p_value, ci = self._fit_glmm(spec, frame)
        check_finite(spec.feature, estimate=estimate, se=se, statistic=statistic, p_value=p_value)

        conf_low = conf_high = None
        if self.conf_int:
            conf_low, conf_high = ci

        return FitResult(
            feature=spec.feature,
            var_name=spec.var_name,
            estimate=estimate,
            se=se,
            test_statistic=statistic,
            p_value=p_value,
            conf_low=conf_low,
            conf_high=conf_high,
            n_obs=len(frame),
            formula=spec.formula,
        )

    def _fit_lmm(self, spec: ModelSpec, frame: pd.DataFrame):
        import statsmodels.formula.api as smf

        model = smf.mixedlm(fixed_formula(spec), data=frame, groups=frame[spec.groups])
        with warnings.catch_warnings(record=True):
            warnings.simplefilter("always")
            result = model.fit(reml=True)
        if not getattr(result, "converged", True):
            raise FeatureFitError(spec.feature, "linear mixed model did not converge")

        # Fixed effects come first in params/bse/tvalues/pvalues
        idx = find_term(model.exog_names, spec.term, spec.feature)
        estimate = float(np.asarray(result.fe_params)[idx])
        se = float(np.asarray(result.bse_fe)[idx])
        statistic = float(np.asarray(result.tvalues)[idx])
        p_value = float(np.asarray(result.pvalues)[idx])
        ci = np.asarray(result.conf_int(alpha=1.0 - self.confidence_level))
        return estimate, se, statistic, p_value, (float(ci[idx, 0]), float(ci[idx, 1]))

    def _fit_glmm(self, spec: ModelSpec, frame: pd.DataFrame):
        from scipy.stats import norm
        from statsmodels.genmod.bayes_mixed_glm import BinomialBayesMixedGLM

        frame[spec.outcome] = encode_binary(frame[spec.outcome], spec.feature)
        vc_formulas = {"subject": f"0 + C({quote_term(spec.groups)})"}
        model = BinomialBayesMixedGLM.from_formula(fixed_formula(spec), vc_formulas, frame)
        with warnings.catch_warnings(record=True):
            warnings.simplefilter("always")
            result = model.fit_vb()

        idx = find_term(model.exog_names, spec.term, spec.feature)
        estimate = float(np.asarray(result.fe_mean)[idx])
        se = float(np.asarray(result.fe_sd)[idx])
        statistic = estimate / se
        p_value = float(2.0 * norm.sf(abs(statistic)))
        z_val = norm.ppf(1.0 - (1.0 - self.confidence_level) / 2.0)
        return estimate, se, statistic, p_value, (estimate - z_val * se, estimate + z_val * se)
