# File: omicswas/association/models/glm.py
# Location: omicswas/omicswas/association/models/glm.py
"""
Linear and logistic regression per feature.

Gaussian models are fitted by ordinary least squares (statsmodels OLS),
binomial models by logistic maximum likelihood (statsmodels Logit). The
coefficient of the predictor of interest is extracted by its term name.

Convergence
-----------
statsmodels Logit does not raise on non-convergence. The fitter checks
``result.mle_retvals["converged"]`` and raises FeatureFitError when the
optimizer did not converge. Standard errors above 100 are logged as a
likely separation but the estimate is still reported, matching R ``glm``.

Confidence intervals
--------------------
Wald intervals from ``result.conf_int(alpha)``, only when requested.
"""

from __future__ import annotations

import logging
import warnings

import numpy as np
import pandas as pd

from omicswas.association.base import Family, FitResult, ModelFitter, ModelSpec, ModelVariant
from omicswas.association.models._utils import (
    check_finite,
    encode_binary,
    find_term,
    fixed_formula,
    working_frame,
)
from omicswas.errors import FeatureFitError

logger = logging.getLogger("omicswas")

# BSE threshold above which separation is assumed
_SEPARATION_BSE_THRESHOLD = 100.0


class GLMFitter(ModelFitter):
    """
    Ordinary (gaussian) or logistic (binomial) regression for one feature.

    Parameters
    ----------
    family : Family or str
        "gaussian" or "binomial".
    confidence_level : float
        Level of the Wald confidence interval.
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
        return ModelVariant.GLM

    def _fit_model(self, spec: ModelSpec, frame: pd.DataFrame):
        import statsmodels.formula.api as smf

        formula = fixed_formula(spec)
        if self.family is Family.GAUSSIAN:
            return smf.ols(formula, data=frame).fit()

        frame[spec.outcome] = encode_binary(frame[spec.outcome], spec.feature)
        with warnings.catch_warnings(record=True):
            warnings.simplefilter("always")
            result = smf.logit(formula, data=frame).fit(disp=False, maxiter=100)
        if not bool(result.mle_retvals.get("converged", True)):
            raise FeatureFitError(spec.feature, "logistic regression did not converge")
        return result

    def fit(self, spec: ModelSpec, data: pd.DataFrame) -> FitResult:
        """Fit ``spec`` and return the predictor's coefficient statistics."""
        frame = working_frame(spec, data)
        result = self._fit_model(spec, frame)

        idx = find_term(result.model.exog_names, spec.term, spec.feature)
        estimate = float(np.asarray(result.params)[idx])
        se = float(np.asarray(result.bse)[idx])
        statistic = float(np.asarray(result.tvalues)[idx])
        p_value = float(np.asarray(result.pvalues)[idx])
        check_finite(spec.feature, estimate=estimate, se=se, statistic=statistic, p_value=p_value)

        if self.family is Family.BINOMIAL and se > _SEPARATION_BSE_THRESHOLD:
            logger.debug(f"Feature {spec.feature}: SE={se:.1f} suggests separation")

        conf_low = conf_high = None
        if self.conf_int:
            ci = np.asarray(result.conf_int(alpha=1.0 - self.confidence_level))
            conf_low, conf_high = float(ci[idx, 0]), float(ci[idx, 1])

        return FitResult(
            feature=spec.feature,
            var_name=spec.var_name,
            estimate=estimate,
            se=se,
            test_statistic=statistic,
            p_value=p_value,
            conf_low=conf_low,
            conf_high=conf_high,
            n_obs=int(result.nobs),
            formula=spec.formula,
        )
