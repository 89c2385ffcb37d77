# File: omicswas/association/models/clogit.py
# Location: omicswas/omicswas/association/models/clogit.py
"""
Conditional logistic regression for matched case-control sets.

The conditional likelihood of a matched design equals the partial
likelihood of a stratified proportional hazards model in which every
subject is observed at the same time, cases are events, controls are
censored, and each matched set is a stratum. The tie-handling method
selects how tied events within a set are treated:

``efron`` (default) / ``breslow`` / ``approximate``
    Stratified statsmodels PHReg with the requested tie approximation
    (``approximate`` is Breslow).
``exact``
    statsmodels ConditionalLogit with the matched set as groups, i.e. the
    exact conditional likelihood.

The feature's coefficient is extracted by term name, so covariates may
appear anywhere in the formula.
"""

from __future__ import annotations

import logging
import warnings

import numpy as np
import pandas as pd

from omicswas.association.base import FitResult, ModelFitter, ModelSpec, ModelVariant
from omicswas.association.models._utils import (
    check_finite,
    encode_binary,
    find_term,
    fixed_formula,
    working_frame,
)
from omicswas.errors import FeatureFitError, InvalidConfigurationError

logger = logging.getLogger("omicswas")

CLOGIT_METHODS = ("efron", "breslow", "approximate", "exact")

# Synthetic follow-up time column; every subject shares the same value
_TIME_COLUMN = "_omicswas_time"


class ConditionalLogitFitter(ModelFitter):
    """
    Conditional logistic regression for one feature in a matched design.

    Parameters
    ----------
    method : str
        Likelihood method: "efron", "breslow", "approximate" or "exact".
    confidence_level : float
        Level of the Wald confidence interval.
    conf_int : bool
        Whether to compute the confidence interval.
    """

    def __init__(
        self,
        method: str = "efron",
        confidence_level: float = 0.95,
        conf_int: bool = False,
    ) -> None:
        if method not in CLOGIT_METHODS:
            raise InvalidConfigurationError(
                f"Unknown conditional likelihood method '{method}'. "
                f"Choose one of: {', '.join(CLOGIT_METHODS)}",
                option="method",
            )
        self.method = method
        self.confidence_level = confidence_level
        self.conf_int = conf_int

    @property
    def variant(self) -> ModelVariant:
        """Registry key."""
        return ModelVariant.CLOGIT

    def _fit_model(self, spec: ModelSpec, frame: pd.DataFrame):
        status = encode_binary(frame[spec.outcome], spec.feature)
        if status.sum() == 0:
            raise FeatureFitError(spec.feature, "no cases among complete cases")

        if self.method == "exact":
            from statsmodels.discrete.conditional_models import ConditionalLogit

            frame[spec.outcome] = status
            model = ConditionalLogit.from_formula(
                fixed_formula(spec).replace("~", "~ 0 +", 1),
                data=frame,
                groups=frame[spec.strata].to_numpy(),
            )
            result = model.fit(disp=False)
            converged = result.mle_retvals.get("converged", True)
        else:
            from statsmodels.duration.hazard_regression import PHReg

            ties = "breslow" if self.method == "approximate" else self.method
            frame[_TIME_COLUMN] = 1.0
            model = PHReg.from_formula(
                fixed_formula(spec, lhs=_TIME_COLUMN),
                data=frame,
                status=status.to_numpy(),
                strata=frame[spec.strata].to_numpy(),
                ties=ties,
            )
            result = model.fit()
            converged = getattr(result, "converged", True)

        if not converged:
            raise FeatureFitError(spec.feature, "conditional likelihood did not converge")
        return model, result

    def fit(self, spec: ModelSpec, data: pd.DataFrame) -> FitResult:
        """Fit ``spec`` stratified on ``spec.strata``."""
        if spec.strata is None:
            raise FeatureFitError(spec.feature, "conditional logistic model requires strata")

        frame = working_frame(spec, data)
        with warnings.catch_warnings(record=True):
            warnings.simplefilter("always")
            model, result = self._fit_model(spec, frame)

        idx = find_term(model.exog_names, spec.term, spec.feature)
        estimate = float(np.asarray(result.params)[idx])
        se = float(np.asarray(result.bse)[idx])
        statistic = float(np.asarray(result.tvalues)[idx])
        p_value = float(np.asarray(result.pvalues)[idx])
        check_finite(spec.feature, estimate=estimate, se=se, statistic=statistic, p_value=p_value)

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
            n_obs=len(frame),
            formula=spec.formula,
        )
