# File: omicswas/association/correction.py
# Location: omicswas/omicswas/association/correction.py
"""
Multiple testing correction and marginal significance labels.

Provides:
- apply_correction(): wrapper around statsmodels multipletests for FDR
  (Benjamini-Hochberg) or Bonferroni correction over one full column of
  p-values, with an explicit policy for p-values of failed fits.
- significance_threshold(): "Significant"/"Non-significant" labels from
  the raw (unadjusted) p-values.
"""

from __future__ import annotations

import logging

import numpy as np
import statsmodels.stats.multitest as smm

from omicswas.errors import InvalidConfigurationError

logger = logging.getLogger("omicswas")

SIGNIFICANT = "Significant"
NON_SIGNIFICANT = "Non-significant"


def apply_correction(
    pvals: list[float | None] | np.ndarray,
    method: str = "fdr",
    failed_pvalue_policy: str = "exclude",
) -> np.ndarray:
    """
    Apply multiple testing correction to a full column of p-values.

    Parameters
    ----------
    pvals : list of float or np.ndarray
        Raw p-values in [0, 1]. None/NaN marks a failed fit.
    method : str
        Correction method: "fdr" (Benjamini-Hochberg, default) or
        "bonferroni". Any other value is treated as "fdr".
    failed_pvalue_policy : str
        "exclude" (default): failed fits are left out of the number of
        tests, as R ``p.adjust`` does with NA. "count": failed fits count
        as tests with p = 1.

    Returns
    -------
    np.ndarray
        Corrected p-values in the same order as input; NaN where the input
        was missing, whatever the policy.

    Raises
    ------
    InvalidConfigurationError
        If ``failed_pvalue_policy`` is not "exclude" or "count".
    """
    if failed_pvalue_policy not in ("exclude", "count"):
        raise InvalidConfigurationError(
            f"Unknown failed_pvalue_policy '{failed_pvalue_policy}'. Choose 'exclude' or 'count'",
            option="failed_pvalue_policy",
        )

    pvals_array = np.array([np.nan if p is None else p for p in pvals], dtype=float)
    corrected = np.full(len(pvals_array), np.nan)
    valid = ~np.isnan(pvals_array)

    if not valid.any():
        return corrected

    smm_method = "bonferroni" if method == "bonferroni" else "fdr_bh"
    if failed_pvalue_policy == "count":
        filled = np.where(valid, pvals_array, 1.0)
        corrected[valid] = smm.multipletests(filled, method=smm_method)[1][valid]
    else:
        corrected[valid] = smm.multipletests(pvals_array[valid], method=smm_method)[1]

    n_failed = int((~valid).sum())
    if n_failed:
        logger.debug(
            f"Correction ({smm_method}): {n_failed} failed fit(s) "
            f"{'counted as p=1' if failed_pvalue_policy == 'count' else 'excluded'}"
        )
    return corrected


def alpha_from_confidence(confidence_level: float) -> float:
    """
    Significance level for ``confidence_level``.

    Rounded to 12 decimals so that 1 - 0.95 compares equal to 0.05.
    """
    return round(1.0 - confidence_level, 12)


def significance_threshold(
    pvals: list[float | None] | np.ndarray,
    confidence_level: float = 0.95,
) -> list[str | None]:
    """
    Marginal significance label per raw p-value.

    A p-value is "Significant" iff it is strictly below
    ``alpha = 1 - confidence_level``; missing p-values get None.
    """
    alpha = alpha_from_confidence(confidence_level)
    labels: list[str | None] = []
    for p in pvals:
        if p is None or np.isnan(p):
            labels.append(None)
        else:
            labels.append(SIGNIFICANT if p < alpha else NON_SIGNIFICANT)
    return labels
