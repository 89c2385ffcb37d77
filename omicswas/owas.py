# File: omicswas/owas.py
# Location: omicswas/omicswas/owas.py
"""
Omics-wide association study entry points.

Each function validates its options, checks the dataset, builds one
ModelSpec per feature (per variable x feature for several variables of
interest), and hands the specs to OwasEngine with the matching fitter:

- owas()        linear or logistic regression
- owas_mixed()  random-intercept mixed models for repeated measures
- owas_clogit() conditional logistic regression for matched case-control sets
- owas_qgcomp() quantile g-computation of an exposure mixture

All of them return a pandas DataFrame with one row per model, FDR-adjusted
p-values computed over the whole table, and a marginal significance label
based on the unadjusted p-values.
"""

import logging
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Union

import pandas as pd

from .association.base import Family, ModelSpec, ModelVariant, OwasConfig
from .association.engine import OwasEngine
from .association.formula import build_mixture_spec, build_model_spec
from .association.models import create_fitter
from .association.models.qgcomp import is_dichotomous
from .association.quality import check_columns, check_data_quality, check_variance
from .errors import InvalidConfigurationError

logger = logging.getLogger("omicswas")

DIRECTIONS = ("exposure", "outcome")


def _as_list(names: Union[str, Iterable[str], None]) -> List[str]:
    if names is None:
        return []
    if isinstance(names, str):
        return [names]
    return list(names)


def _resolve_config(config: Optional[OwasConfig], **overrides) -> OwasConfig:
    """Per-call keyword arguments override the config; None means 'keep'."""
    cfg = replace(config or OwasConfig(), **{k: v for k, v in overrides.items() if v is not None})
    cfg.validate()
    return cfg


def _require(names: List[str], option: str) -> None:
    if not names:
        raise InvalidConfigurationError(f"At least one name is required for '{option}'", option)


def _check_direction(var_exposure_or_outcome: str) -> None:
    if var_exposure_or_outcome not in DIRECTIONS:
        raise InvalidConfigurationError(
            f"var_exposure_or_outcome must be 'exposure' or 'outcome', "
            f"got '{var_exposure_or_outcome}'",
            option="var_exposure_or_outcome",
        )


def _check_data(df: pd.DataFrame, required: Sequence[str], cfg: OwasConfig) -> None:
    if cfg.test_data_quality:
        check_variance(df, required)


def _variable_specs(
    variables: List[str],
    omics: List[str],
    covars: List[str],
    var_exposure_or_outcome: str,
    groups: Optional[str] = None,
) -> List[ModelSpec]:
    """One spec per variable x feature, variable-major."""
    specs = []
    for var in variables:
        for feature in omics:
            if var_exposure_or_outcome == "exposure":
                outcome, predictor = feature, var
            else:
                outcome, predictor = var, feature
            specs.append(
                build_model_spec(
                    feature=feature,
                    outcome=outcome,
                    predictor=predictor,
                    covariates=covars,
                    groups=groups,
                    var_name=var,
                )
            )
    return specs


def owas(
    df: pd.DataFrame,
    var: Union[str, Sequence[str]],
    omics: Sequence[str],
    covars: Optional[Sequence[str]] = None,
    var_exposure_or_outcome: str = "exposure",
    family: str = "gaussian",
    confidence_level: Optional[float] = None,
    conf_int: Optional[bool] = None,
    test_data_quality: Optional[bool] = None,
    config: Optional[OwasConfig] = None,
) -> pd.DataFrame:
    """
    Omics-wide association study with linear or logistic regression.

    Parameters
    ----------
    df : pd.DataFrame
        Dataset; not modified.
    var : str or sequence of str
        Variable(s) of interest.
    omics : sequence of str
        Omics feature columns, tested one at a time.
    covars : sequence of str, optional
        Adjustment covariates.
    var_exposure_or_outcome : str
        "exposure": ``feature ~ covars + var``. "outcome":
        ``var ~ covars + feature``.
    family : str
        "gaussian" (linear) or "binomial" (logistic; estimates are log odds).
    confidence_level : float, optional
        Confidence level for intervals and the marginal threshold
        (default 0.95, i.e. alpha 0.05).
    conf_int : bool, optional
        Compute Wald confidence intervals (default False).
    test_data_quality : bool, optional
        Check for zero-variance variables among complete cases
        (default True).
    config : OwasConfig, optional
        Correction method, failed-fit policy and worker count.

    Returns
    -------
    pd.DataFrame
        var_name, feature_name, estimate, se, test_statistic, p_value,
        [conf_low, conf_high], adjusted_pval, threshold, n_obs,
        fit_success, fit_error, formula.
    """
    variables, omics, covars = _as_list(var), _as_list(omics), _as_list(covars)
    _require(variables, "var")
    _check_direction(var_exposure_or_outcome)
    family = Family.parse(family)
    cfg = _resolve_config(
        config,
        confidence_level=confidence_level,
        conf_int=conf_int,
        test_data_quality=test_data_quality,
    )

    required = variables + omics + covars
    check_data_quality(df, required, cfg.test_data_quality)

    specs = _variable_specs(variables, omics, covars, var_exposure_or_outcome)
    fitter = create_fitter(
        ModelVariant.GLM,
        family=family,
        confidence_level=cfg.confidence_level,
        conf_int=cfg.conf_int,
    )
    return OwasEngine(fitter, cfg).run(specs, df)


def owas_mixed(
    df: pd.DataFrame,
    var: Union[str, Sequence[str]],
    omics: Sequence[str],
    groups: str,
    covars: Optional[Sequence[str]] = None,
    var_exposure_or_outcome: str = "exposure",
    family: str = "gaussian",
    confidence_level: Optional[float] = None,
    conf_int: Optional[bool] = None,
    test_data_quality: Optional[bool] = None,
    config: Optional[OwasConfig] = None,
) -> pd.DataFrame:
    """
    Omics-wide association study for repeated measures.

    Same as :func:`owas`, with a random intercept for every level of
    ``groups`` (e.g. subject ID). Gaussian models use REML linear mixed
    models; binomial models use a variational Bayes logistic mixed model.

    Returns
    -------
    pd.DataFrame
        Same columns as :func:`owas`.
    """
    variables, omics, covars = _as_list(var), _as_list(omics), _as_list(covars)
    _require(variables, "var")
    _check_direction(var_exposure_or_outcome)
    family = Family.parse(family)
    cfg = _resolve_config(
        config,
        confidence_level=confidence_level,
        conf_int=conf_int,
        test_data_quality=test_data_quality,
    )

    required = variables + omics + covars + [groups]
    check_data_quality(df, required, cfg.test_data_quality)

    specs = _variable_specs(variables, omics, covars, var_exposure_or_outcome, groups=groups)
    fitter = create_fitter(
        ModelVariant.MIXED,
        family=family,
        confidence_level=cfg.confidence_level,
        conf_int=cfg.conf_int,
    )
    return OwasEngine(fitter, cfg).run(specs, df)


def owas_clogit(
    df: pd.DataFrame,
    cc_status: str,
    cc_set: str,
    omics: Sequence[str],
    covars: Optional[Sequence[str]] = None,
    confidence_level: Optional[float] = None,
    conf_int: Optional[bool] = None,
    method: str = "efron",
    test_data_quality: Optional[bool] = None,
    config: Optional[OwasConfig] = None,
) -> pd.DataFrame:
    """
    Omics-wide association study for matched case-control studies.

    Fits ``cc_status ~ covars + feature + strata(cc_set)`` by conditional
    logistic regression for every feature.

    Parameters
    ----------
    df : pd.DataFrame
        Dataset; not modified.
    cc_status : str
        Case-control status column: 0/1, or two levels with the first
        (category order, else sorted order) as the control group.
    cc_set : str
        Matched set column.
    omics : sequence of str
        Omics feature columns.
    covars : sequence of str, optional
        Adjustment covariates.
    confidence_level : float, optional
        Default 0.95.
    conf_int : bool, optional
        Compute Wald confidence intervals (default False).
    method : str
        "efron" (default), "breslow", "approximate" or "exact".
    test_data_quality : bool, optional
        Default True.
    config : OwasConfig, optional
        Correction method, failed-fit policy and worker count.

    Returns
    -------
    pd.DataFrame
        feature_name, estimate (log odds), se, test_statistic, p_value,
        [conf_low, conf_high], adjusted_pval, threshold, n_obs,
        fit_success, fit_error, formula.
    """
    omics, covars = _as_list(omics), _as_list(covars)
    cfg = _resolve_config(
        config,
        confidence_level=confidence_level,
        conf_int=conf_int,
        test_data_quality=test_data_quality,
    )
    fitter = create_fitter(
        ModelVariant.CLOGIT,
        method=method,
        confidence_level=cfg.confidence_level,
        conf_int=cfg.conf_int,
    )

    required = [cc_status, cc_set] + omics + covars
    check_columns(df, required)
    n_levels = df[cc_status].dropna().nunique()
    if n_levels > 2:
        raise InvalidConfigurationError(
            f"Case-control status '{cc_status}' must be dichotomous, found {n_levels} values",
            option="cc_status",
        )
    _check_data(df, required, cfg)

    specs = [
        build_model_spec(
            feature=feature,
            outcome=cc_status,
            predictor=feature,
            covariates=covars,
            strata=cc_set,
        )
        for feature in omics
    ]
    return OwasEngine(fitter, cfg).run(specs, df)


def owas_qgcomp(
    df: pd.DataFrame,
    expnms: Sequence[str],
    omics: Sequence[str],
    covars: Optional[Sequence[str]] = None,
    q: Optional[int] = 4,
    confidence_level: Optional[float] = None,
    family: str = "gaussian",
    bootstrap: bool = False,
    n_boot: int = 200,
    seed: Optional[int] = 125,
    test_data_quality: Optional[bool] = None,
    config: Optional[OwasConfig] = None,
) -> pd.DataFrame:
    """
    Omics-wide association study of an exposure mixture by quantile g-computation.

    Every feature is modelled as ``feature ~ covars + exposures``, with the
    exposures quantised into ``q`` bins. psi is the change in the feature
    for a simultaneous one-quantile increase in every exposure.

    Parameters
    ----------
    df : pd.DataFrame
        Dataset; not modified.
    expnms : sequence of str
        Mixture exposure columns.
    omics : sequence of str
        Omics feature columns (model outcomes).
    covars : sequence of str, optional
        Adjustment covariates.
    q : int or None
        Quantile bins per exposure (default 4). None keeps exposures
        unchanged and is required when exposures are dichotomous.
    confidence_level : float, optional
        Default 0.95.
    family : str
        "gaussian" (default) or "binomial" for binary features.
    bootstrap : bool
        Use the bootstrap marginal structural model estimator (slower).
    n_boot : int
        Bootstrap resamples (default 200).
    seed : int, optional
        Bootstrap seed (default 125).
    test_data_quality : bool, optional
        Default True.
    config : OwasConfig, optional
        Correction method, failed-fit policy and worker count.

    Returns
    -------
    pd.DataFrame
        feature_name, psi, se, test_statistic, p_value, lcl_psi, ucl_psi,
        one ``<exposure>_coef`` column per exposure, adjusted_pval,
        threshold, n_obs, fit_success, fit_error, formula.

    Raises
    ------
    InvalidConfigurationError
        If ``q`` is not None and an exposure is dichotomous, or ``q`` /
        ``n_boot`` are out of range.
    """
    exposures, omics, covars = _as_list(expnms), _as_list(omics), _as_list(covars)
    _require(exposures, "expnms")
    cfg = _resolve_config(
        config,
        confidence_level=confidence_level,
        test_data_quality=test_data_quality,
    )
    fitter = create_fitter(
        ModelVariant.QGCOMP,
        family=family,
        q=q,
        confidence_level=cfg.confidence_level,
        bootstrap=bootstrap,
        n_boot=n_boot,
        seed=seed,
    )

    required = exposures + omics + covars
    check_columns(df, required)
    if q is not None:
        dichotomous = [exp for exp in exposures if is_dichotomous(df[exp])]
        if dichotomous:
            raise InvalidConfigurationError(
                f"Exposure(s) {', '.join(dichotomous)} are dichotomous; "
                "set q=None to use them without quantisation",
                option="q",
            )
    _check_data(df, required, cfg)

    specs = [build_mixture_spec(feature, exposures, covars) for feature in omics]
    return OwasEngine(fitter, cfg).run(specs, df)
