# File: omicswas/association/engine.py
# Location: omicswas/omicswas/association/engine.py
"""
OwasEngine: per-feature fitting loop shared by every OWAS entry point.

The engine takes one ModelFitter and a list of ModelSpecs (one per feature,
or per variable x feature), fits every spec, applies a single round of
multiple testing correction over the full p-value column, and returns a
DataFrame with one row per spec in input order.

Failure isolation:
  Any exception raised while fitting one spec is caught at the feature
  boundary and turned into a failed FitResult (statistics missing,
  ``fit_error`` set). The batch never aborts on a per-feature failure.

Parallel execution:
  With ``n_workers != 1`` specs are fitted in a ProcessPoolExecutor. The
  dataset and fitter are sent once per worker through the pool initializer;
  ``executor.map`` returns results in input order, so output order does not
  depend on completion order. Correction runs only after every fit.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from typing import Any

import pandas as pd

from omicswas.association.base import FitResult, ModelFitter, ModelSpec, OwasConfig
from omicswas.association.correction import (
    SIGNIFICANT,
    apply_correction,
    significance_threshold,
)
from omicswas.association.presenter import (
    CI_COLUMNS,
    STAT_COLUMNS,
    format_results,
    result_columns,
)
from omicswas.errors import FeatureFitError

logger = logging.getLogger("omicswas")

# Per-process state for pool workers: (fitter, dataset)
_WORKER_STATE: dict[str, Any] = {}


def fit_one(fitter: ModelFitter, spec: ModelSpec, data: pd.DataFrame) -> FitResult:
    """
    Fit one spec, converting any exception into a failed FitResult.

    Returns
    -------
    FitResult
        ``success=False`` with the failure reason when the fit raised.
    """
    try:
        result = fitter.fit(spec, data)
    except FeatureFitError as exc:
        reason = exc.reason
    except Exception as exc:
        reason = f"{type(exc).__name__}: {exc}"
    else:
        logger.debug(f"Feature {spec.feature} | {spec.formula}: p={result.p_value}")
        return result

    logger.warning(f"Feature {spec.feature}: model fit failed ({reason}), reporting NA")
    return FitResult.failed(spec, reason)


def _worker_initializer(fitter: ModelFitter, data: pd.DataFrame) -> None:
    """Pin BLAS threads to 1 and keep the fitter and dataset for this worker."""
    os.environ["OPENBLAS_NUM_THREADS"] = "1"
    os.environ["MKL_NUM_THREADS"] = "1"
    os.environ["OMP_NUM_THREADS"] = "1"
    _WORKER_STATE["fitter"] = fitter
    _WORKER_STATE["data"] = data


def _fit_worker(spec: ModelSpec) -> FitResult:
    return fit_one(_WORKER_STATE["fitter"], spec, _WORKER_STATE["data"])


class OwasEngine:
    """
    Runs one fitter over every feature and assembles the result table.

    Usage
    -----
    >>> fitter = GLMFitter(family="binomial")
    >>> engine = OwasEngine(fitter, OwasConfig())
    >>> result_df = engine.run(specs, df)

    Parameters
    ----------
    fitter : ModelFitter
        Fitter applied to every spec.
    config : OwasConfig
        Correction, threshold and parallelism options.
    """

    def __init__(self, fitter: ModelFitter, config: OwasConfig | None = None) -> None:
        self._fitter = fitter
        self._config = config or OwasConfig()

    def _n_workers(self, n_specs: int) -> int:
        n_workers = self._config.n_workers
        if n_workers == 1 or n_specs < 2:
            return 1
        actual = (os.cpu_count() or 1) if n_workers == -1 else n_workers
        # Don't over-provision workers for small feature sets
        if n_specs < actual * 2:
            actual = max(1, n_specs // 2)
        return actual

    def fit_all(self, specs: Sequence[ModelSpec], data: pd.DataFrame) -> list[FitResult]:
        """
        Fit every spec; one FitResult per spec, in input order.

        Never raises for per-feature failures.
        """
        n_workers = self._n_workers(len(specs))
        if n_workers == 1:
            return [fit_one(self._fitter, spec, data) for spec in specs]

        import concurrent.futures

        logger.info(f"Parallel OWAS: {n_workers} workers for {len(specs)} models")
        with concurrent.futures.ProcessPoolExecutor(
            max_workers=n_workers,
            initializer=_worker_initializer,
            initargs=(self._fitter, data),
        ) as executor:
            return list(executor.map(_fit_worker, specs))

    def correct(self, results: list[FitResult]) -> None:
        """Populate ``corrected_p_value`` over the full p-value column, in place."""
        corrected = apply_correction(
            [r.p_value for r in results],
            self._config.correction_method,
            self._config.failed_pvalue_policy,
        )
        for result, corr_p in zip(results, corrected):
            result.corrected_p_value = None if pd.isna(corr_p) else float(corr_p)

    def to_frame(self, results: list[FitResult]) -> pd.DataFrame:
        """Build the formatted result table from corrected FitResults."""
        conf_int = self._config.conf_int or any(
            r.conf_low is not None for r in results if r.success
        )
        labels = self._fitter.column_labels()
        has_var = any(r.var_name is not None for r in results)

        extra_columns: list[str] = []
        for r in results:
            extra_columns.extend(k for k in r.extra if k not in extra_columns)

        thresholds = significance_threshold(
            [r.p_value for r in results], self._config.confidence_level
        )
        rows = []
        for result, label in zip(results, thresholds):
            row: dict[str, Any] = {}
            if has_var:
                row["var_name"] = result.var_name
            row.update(
                {
                    "feature_name": result.feature,
                    "estimate": result.estimate,
                    "se": result.se,
                    "test_statistic": result.test_statistic,
                    "p_value": result.p_value,
                    "conf_low": result.conf_low,
                    "conf_high": result.conf_high,
                }
            )
            for key in extra_columns:
                row[key] = result.extra.get(key)
            row.update(
                {
                    "adjusted_pval": result.corrected_p_value,
                    "threshold": label,
                    "n_obs": result.n_obs,
                    "fit_success": result.success,
                    "fit_error": result.error,
                    "formula": result.formula,
                }
            )
            rows.append(row)

        columns = result_columns(True, extra_columns)
        if not has_var:
            columns.remove("var_name")
        df = pd.DataFrame(rows, columns=columns)

        # None -> NaN in numeric columns, even when every fit failed
        for col in STAT_COLUMNS + CI_COLUMNS + extra_columns + ["adjusted_pval"]:
            df[col] = df[col].astype(float)
        df["n_obs"] = df["n_obs"].astype("Int64")
        df["fit_success"] = df["fit_success"].astype(bool)

        return format_results(df, conf_int=conf_int, labels=labels)

    def run(self, specs: Sequence[ModelSpec], data: pd.DataFrame) -> pd.DataFrame:
        """
        Fit every spec and return the corrected, formatted result table.

        Parameters
        ----------
        specs : sequence of ModelSpec
            One spec per output row, in output order.
        data : pd.DataFrame
            Dataset shared by every fit (read-only).

        Returns
        -------
        pd.DataFrame
            One row per spec; see presenter for the column layout.
        """
        if not specs:
            logger.warning("No features provided to OwasEngine.")
            return self.to_frame([])

        logger.info(
            f"OWAS ({self._fitter.variant.value}): fitting {len(specs)} models "
            f"on {len(data)} observations"
        )
        self._fitter.prepare(len(specs))

        results = self.fit_all(specs, data)
        self.correct(results)
        result_df = self.to_frame(results)

        n_failed = sum(not r.success for r in results)
        n_sig = int((result_df["threshold"] == SIGNIFICANT).sum())
        logger.info(
            f"OWAS complete: {len(results)} models, {n_sig} significant "
            f"(p < {self._config.alpha:g}), {n_failed} failed"
        )
        if n_failed:
            logger.warning(f"{n_failed}/{len(results)} model fits failed; see 'fit_error' column")
        return result_df
