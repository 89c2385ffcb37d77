# File: omicswas/association/models/qgcomp.py
# Location: omicswas/omicswas/association/models/qgcomp.py
"""
Quantile g-computation for exposure mixtures, one omics feature at a time.

Each feature is the outcome of a conditional model

    feature ~ covariates + exposure_1 + ... + exposure_k

in which every exposure has been replaced by its quantile index 0..q-1
(``pandas.qcut`` on the feature's complete cases, duplicate edges dropped).
With ``q=None`` the exposures enter unchanged, which is required for
exposures that are already 0/1.

psi, the joint effect of raising every exposure by one quantile, is
estimated in one of two ways:

Default
    psi is the sum of the exposure coefficients; its standard error,
    statistic, p-value and interval come from the linear contrast on the
    fitted model (``result.t_test``).
Bootstrap
    psi is the slope of a marginal structural model fitted to
    counterfactual predictions in which all exposures are set jointly to
    each intervention value; its standard error is the standard deviation
    of psi over ``n_boot`` row resamples. The random generator is seeded
    with ``seed`` for every fit, so each feature sees the same resamples.

Every exposure's own coefficient in the conditional model is reported as an
extra ``<exposure>_coef`` column. A confidence interval for psi is always
reported.
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
from omicswas.errors import FeatureFitError, InvalidConfigurationError

logger = logging.getLogger("omicswas")

# Raw exposures with more distinct pooled values than this use quartiles as
# intervention values in the marginal structural model
_MAX_RAW_INTERVENTION_VALUES = 10


def quantize(frame: pd.DataFrame, exposures: list[str], q: int) -> pd.DataFrame:
    """
    Replace each exposure with its quantile index (0 = lowest bin).

    Returns a copy; ``frame`` is not modified.
    """
    out = frame.copy()
    for exp in exposures:
        out[exp] = pd.qcut(out[exp], q, labels=False, duplicates="drop").astype(float)
    return out


def intervention_values(frame: pd.DataFrame, exposures: list[str], q: int | None) -> np.ndarray:
    """Values every exposure is jointly set to in the marginal structural model."""
    if q is not None:
        return np.arange(q, dtype=float)
    pooled = np.unique(frame[exposures].to_numpy(dtype=float).ravel())
    if len(pooled) <= _MAX_RAW_INTERVENTION_VALUES:
        return pooled
    return np.quantile(pooled, [0.25, 0.5, 0.75])


def is_dichotomous(values: pd.Series) -> bool:
    """True when a column has at most two distinct non-missing values."""
    return values.dropna().nunique() <= 2


class QgcompFitter(ModelFitter):
    """
    Quantile g-computation of a mixture's joint effect on one feature.

    Parameters
    ----------
    family : Family or str
        Family of the conditional model: "gaussian" (OLS) or "binomial"
        (logistic; psi on the log-odds scale).
    q : int or None
        Number of quantile bins per exposure. None uses raw exposures.
    confidence_level : float
        Level of the interval for psi.
    bootstrap : bool
        Use the bootstrap marginal structural model estimator.
    n_boot : int
        Bootstrap resamples.
    seed : int or None
        Seed for the bootstrap resampling generator.
    """

    def __init__(
        self,
        family: Family | str = Family.GAUSSIAN,
        q: int | None = 4,
        confidence_level: float = 0.95,
        bootstrap: bool = False,
        n_boot: int = 200,
        seed: int | None = 125,
    ) -> None:
        if q is not None and (isinstance(q, bool) or not isinstance(q, (int, np.integer)) or q < 2):
            raise InvalidConfigurationError(
                f"q must be an integer >= 2 or None, got {q!r}", option="q"
            )
        if bootstrap and n_boot < 2:
            raise InvalidConfigurationError(
                f"n_boot must be at least 2 for the bootstrap estimator, got {n_boot}",
                option="n_boot",
            )
        self.family = Family.parse(family)
        self.q = None if q is None else int(q)
        self.confidence_level = confidence_level
        self.bootstrap = bootstrap
        self.n_boot = n_boot
        self.seed = seed

    @property
    def variant(self) -> ModelVariant:
        """Registry key."""
        return ModelVariant.QGCOMP

    def column_labels(self) -> dict[str, str]:
        """psi naming for the mixture effect."""
        return {"estimate": "psi", "conf_low": "lcl_psi", "conf_high": "ucl_psi"}

    def prepare(self, feature_count: int) -> None:
        """Log the estimator in use."""
        estimator = f"bootstrap ({self.n_boot} resamples)" if self.bootstrap else "linear contrast"
        logger.info(
            f"Quantile g-computation: q={self.q}, family={self.family.value}, "
            f"{estimator}, {feature_count} features"
        )

    def _fit_conditional(self, spec: ModelSpec, frame: pd.DataFrame):
        import statsmodels.formula.api as smf

        formula = fixed_formula(spec)
        with warnings.catch_warnings(record=True):
            warnings.simplefilter("always")
            if self.family is Family.GAUSSIAN:
                return smf.ols(formula, data=frame).fit()
            result = smf.logit(formula, data=frame).fit(disp=False, maxiter=100)
        if not bool(result.mle_retvals.get("converged", True)):
            raise FeatureFitError(spec.feature, "conditional logistic model did not converge")
        return result

    def _msm_psi(self, spec: ModelSpec, frame: pd.DataFrame, values: np.ndarray) -> float:
        """Slope of the marginal structural model fitted to counterfactual predictions."""
        import statsmodels.api as sm

        result = self._fit_conditional(spec, frame)
        exposures = list(spec.predictors)
        preds = []
        for value in values:
            counterfactual = frame.copy()
            counterfactual[exposures] = value
            preds.append(np.asarray(result.predict(counterfactual), dtype=float))
        y = np.concatenate(preds)
        x = sm.add_constant(np.repeat(values, len(frame)))

        with warnings.catch_warnings(record=True):
            warnings.simplefilter("always")
            if self.family is Family.GAUSSIAN:
                msm = sm.OLS(y, x).fit()
            else:
                msm = sm.GLM(y, x, family=sm.families.Binomial()).fit()
        return float(np.asarray(msm.params)[1])

    def _bootstrap(self, spec: ModelSpec, frame: pd.DataFrame, values: np.ndarray):
        from scipy.stats import norm

        psi = self._msm_psi(spec, frame, values)
        rng = np.random.default_rng(self.seed)
        n = len(frame)
        boot = np.empty(self.n_boot, dtype=float)
        for b in range(self.n_boot):
            sample = frame.iloc[rng.integers(0, n, size=n)].reset_index(drop=True)
            boot[b] = self._msm_psi(spec, sample, values)

        se = float(np.std(boot, ddof=1))
        statistic = psi / se
        p_value = float(2.0 * norm.sf(abs(statistic)))
        z_val = norm.ppf(1.0 - (1.0 - self.confidence_level) / 2.0)
        return psi, se, statistic, p_value, psi - z_val * se, psi + z_val * se

    def fit(self, spec: ModelSpec, data: pd.DataFrame) -> FitResult:
        """Fit the mixture model for ``spec.feature``."""
        exposures = list(spec.predictors)
        frame = working_frame(spec, data)
        if self.q is not None:
            frame = quantize(frame, exposures, self.q)
        if self.family is Family.BINOMIAL:
            frame[spec.outcome] = encode_binary(frame[spec.outcome], spec.feature)

        result = self._fit_conditional(spec, frame)
        names = result.model.exog_names
        positions = [find_term(names, term, spec.feature) for term in spec.terms]
        params = np.asarray(result.params)
        extra = {f"{exp}_coef": float(params[pos]) for exp, pos in zip(exposures, positions)}

        if self.bootstrap:
            values = intervention_values(frame, exposures, self.q)
            psi, se, statistic, p_value, conf_low, conf_high = self._bootstrap(spec, frame, values)
        else:
            contrast = np.zeros(len(names))
            contrast[positions] = 1.0
            test = result.t_test(contrast)
            psi = float(np.asarray(test.effect).ravel()[0])
            se = float(np.asarray(test.sd).ravel()[0])
            statistic = float(np.asarray(test.tvalue).ravel()[0])
            p_value = float(np.asarray(test.pvalue).ravel()[0])
            ci = np.asarray(test.conf_int(alpha=1.0 - self.confidence_level))
            conf_low, conf_high = float(ci[0, 0]), float(ci[0, 1])

        check_finite(spec.feature, psi=psi, se=se, statistic=statistic, p_value=p_value)
        return FitResult(
            feature=spec.feature,
            var_name=spec.var_name,
            estimate=psi,
            se=se,
            test_statistic=statistic,
            p_value=p_value,
            conf_low=float(conf_low),
            conf_high=float(conf_high),
            n_obs=len(frame),
            formula=spec.formula,
            extra=extra,
        )
