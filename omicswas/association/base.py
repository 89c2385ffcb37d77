# File: omicswas/association/base.py
# Location: omicswas/omicswas/association/base.py
"""
Core abstractions for the per-feature association framework.

Defines the closed set of model variants and families, the ModelSpec value
object built once per feature, the FitResult record every fitter returns,
the OwasConfig dataclass shared by the engine, and the ModelFitter abstract
base class all model variants implement.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

import pandas as pd

from omicswas.association.correction import alpha_from_confidence
from omicswas.errors import InvalidConfigurationError

logger = logging.getLogger("omicswas")

CORRECTION_METHODS = ("fdr", "bonferroni")
FAILED_PVALUE_POLICIES = ("exclude", "count")


class Family(str, Enum):
    """Error distribution of the per-feature model."""

    GAUSSIAN = "gaussian"
    BINOMIAL = "binomial"

    @classmethod
    def parse(cls, value: str | Family) -> Family:
        """Return the Family for ``value`` or raise InvalidConfigurationError."""
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(f.value for f in cls)
            raise InvalidConfigurationError(
                f"Family '{value}' is not supported. Choose one of: {allowed}", option="family"
            ) from None


class ModelVariant(str, Enum):
    """Model variants; each maps to exactly one ModelFitter implementation."""

    GLM = "glm"
    MIXED = "mixed"
    CLOGIT = "clogit"
    QGCOMP = "qgcomp"


@dataclass(frozen=True)
class ModelSpec:
    """
    Model specification for a single feature.

    Fields
    ------
    feature : str
        Omics feature this model belongs to (row identity in the output).
    outcome : str
        Response column.
    predictors : tuple of str
        Predictor(s) of interest. One element for single-predictor variants;
        every mixture exposure for quantile g-computation.
    terms : tuple of str
        Coefficient label of each predictor as the solver names it, aligned
        with ``predictors``. Fitters extract coefficients by these names.
    formula : str
        Full model formula, including any ``strata()`` term. Reported in the
        output table.
    rhs : str
        Fixed-effects right-hand side of the formula (no strata term).
    covariates : tuple of str
        Adjustment covariates, in the order they appear in the formula.
    strata : str | None
        Matched-set column for conditional logistic models.
    groups : str | None
        Grouping column for random intercepts in mixed models.
    var_name : str | None
        Variable of interest when a call tests several of them.
    """

    feature: str
    outcome: str
    predictors: tuple[str, ...]
    terms: tuple[str, ...]
    formula: str
    rhs: str
    covariates: tuple[str, ...] = ()
    strata: str | None = None
    groups: str | None = None
    var_name: str | None = None

    @property
    def predictor(self) -> str:
        """The single predictor of interest."""
        return self.predictors[0]

    @property
    def term(self) -> str:
        """Coefficient label of the single predictor of interest."""
        return self.terms[0]

    @property
    def columns(self) -> list[str]:
        """Every dataset column the model reads, without duplicates."""
        cols = [self.outcome, *self.covariates, *self.predictors]
        if self.strata is not None:
            cols.append(self.strata)
        if self.groups is not None:
            cols.append(self.groups)
        return list(dict.fromkeys(cols))


@dataclass
class FitResult:
    """
    Normalized statistics from fitting one model for one feature.

    Fields
    ------
    feature : str
        Feature tested.
    var_name : str | None
        Variable of interest (multi-variable calls only).
    estimate : float | None
        Coefficient of the predictor of interest (log-odds for logistic and
        conditional logistic models; psi for quantile g-computation).
    se : float | None
        Standard error of the estimate.
    test_statistic : float | None
        t or z statistic reported by the solver.
    p_value : float | None
        Raw (uncorrected) p-value.
    conf_low, conf_high : float | None
        Confidence interval bounds. None unless intervals were requested.
    n_obs : int | None
        Complete cases used by the fit.
    success : bool
        False when the fit failed; every numeric field is then None.
    error : str | None
        Failure reason when ``success`` is False.
    formula : str
        Model formula for this feature.
    corrected_p_value : float | None
        Multiple-testing-corrected p-value, populated by the engine after
        every feature has been fitted.
    extra : dict
        Variant-specific output columns (e.g. per-exposure mixture
        coefficients). Written to the table as-is.
    """

    feature: str
    var_name: str | None
    estimate: float | None
    se: float | None
    test_statistic: float | None
    p_value: float | None
    conf_low: float | None = None
    conf_high: float | None = None
    n_obs: int | None = None
    success: bool = True
    error: str | None = None
    formula: str = ""
    corrected_p_value: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failed(cls, spec: ModelSpec, reason: str) -> FitResult:
        """Build the failure record for ``spec``; all statistics stay missing."""
        return cls(
            feature=spec.feature,
            var_name=spec.var_name,
            estimate=None,
            se=None,
            test_statistic=None,
            p_value=None,
            success=False,
            error=reason,
            formula=spec.formula,
        )


@dataclass
class OwasConfig:
    """
    Configuration shared by every OWAS entry point.

    Fields
    ------
    confidence_level : float
        Confidence level for intervals and the marginal significance
        threshold (alpha = 1 - confidence_level). Default: 0.95.
    conf_int : bool
        Compute confidence intervals for the estimates. Default: False.
    test_data_quality : bool
        Check that every analysed variable varies among complete cases
        before fitting. Default: True.
    correction_method : str
        "fdr" (Benjamini-Hochberg) or "bonferroni". Default: "fdr".
    failed_pvalue_policy : str
        How failed fits enter the correction. "exclude" leaves them out of
        the number of tests (R ``p.adjust`` behaviour); "count" counts them
        as tests with p = 1. Default: "exclude".
    n_workers : int
        Worker processes for the per-feature loop. 1 = sequential,
        -1 = os.cpu_count(). Default: 1.
    """

    confidence_level: float = 0.95
    conf_int: bool = False
    test_data_quality: bool = True
    correction_method: str = "fdr"
    failed_pvalue_policy: str = "exclude"
    n_workers: int = 1

    @property
    def alpha(self) -> float:
        """Significance level matching ``confidence_level``."""
        return alpha_from_confidence(self.confidence_level)

    @classmethod
    def from_dict(cls, cfg: dict[str, Any]) -> OwasConfig:
        """Build a config from a loaded JSON dict, ignoring unrelated keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in cfg.items() if k in known})

    def validate(self) -> None:
        """Raise InvalidConfigurationError for out-of-range or unknown options."""
        if not 0.0 < float(self.confidence_level) < 1.0:
            raise InvalidConfigurationError(
                f"confidence_level must be between 0 and 1 (exclusive), got {self.confidence_level}",
                option="confidence_level",
            )
        if self.correction_method not in CORRECTION_METHODS:
            raise InvalidConfigurationError(
                f"Unknown correction method '{self.correction_method}'. "
                f"Choose one of: {', '.join(CORRECTION_METHODS)}",
                option="correction_method",
            )
        if self.failed_pvalue_policy not in FAILED_PVALUE_POLICIES:
            raise InvalidConfigurationError(
                f"Unknown failed_pvalue_policy '{self.failed_pvalue_policy}'. "
                f"Choose one of: {', '.join(FAILED_PVALUE_POLICIES)}",
                option="failed_pvalue_policy",
            )
        if self.n_workers == 0 or self.n_workers < -1:
            raise InvalidConfigurationError(
                f"n_workers must be a positive integer or -1, got {self.n_workers}",
                option="n_workers",
            )


class ModelFitter(ABC):
    """
    Abstract base class for all per-feature model fitters.

    Subclasses wrap one family of statistical models and are registered in
    the fitter registry under a ModelVariant. Each fitter handles a single
    feature at a time; the engine handles iteration, failure isolation and
    correction.

    Methods
    -------
    variant : ModelVariant (property)
        Registry key of this fitter.
    fit(spec, data) -> FitResult
        Fit the model described by ``spec`` and return its statistics.
        May raise; the engine turns any exception into a failed FitResult.
    column_labels() -> dict
        Output relabelling applied by the presenter.
    """

    @property
    @abstractmethod
    def variant(self) -> ModelVariant:
        """Registry key for this fitter."""
        ...

    @abstractmethod
    def fit(self, spec: ModelSpec, data: pd.DataFrame) -> FitResult:
        """
        Fit one model.

        Parameters
        ----------
        spec : ModelSpec
            Model specification for a single feature.
        data : pd.DataFrame
            Full dataset. Must not be modified; fitters work on a copy.

        Returns
        -------
        FitResult
            Statistics for the predictor of interest.

        Raises
        ------
        FeatureFitError
            When the model cannot be fitted (non-convergence, degenerate
            outcome, coefficient not estimable).
        """
        ...

    def column_labels(self) -> dict[str, str]:
        """
        Output column relabelling for this variant.

        Default keeps the generic names (estimate, conf_low, conf_high).
        """
        return {}

    def prepare(self, feature_count: int) -> None:  # noqa: B027
        """
        Called by the engine before the per-feature loop.

        Default is a no-op. Subclasses override to emit run-level warnings.
        """
