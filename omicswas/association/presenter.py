# File: omicswas/association/presenter.py
# Location: omicswas/omicswas/association/presenter.py
"""
Final column layout of OWAS result tables.

Column order (columns absent from a given table are skipped):

  var_name, feature_name               identity
  estimate, se, test_statistic,        statistics
  p_value, conf_low, conf_high
  <variant extras>                     e.g. per-exposure mixture coefficients
  adjusted_pval, threshold             correction and marginal significance
  n_obs, fit_success, fit_error        diagnostics
  formula                              always last

Plotting and other consumers rely on ``feature_name``, ``p_value``,
``adjusted_pval``, the effect columns and ``threshold`` keeping their names.
"""

from __future__ import annotations

import pandas as pd

IDENTITY_COLUMNS = ["var_name", "feature_name"]
STAT_COLUMNS = ["estimate", "se", "test_statistic", "p_value"]
CI_COLUMNS = ["conf_low", "conf_high"]
CORRECTION_COLUMNS = ["adjusted_pval", "threshold"]
DIAGNOSTIC_COLUMNS = ["n_obs", "fit_success", "fit_error"]
FORMULA_COLUMN = "formula"


def result_columns(conf_int: bool, extra_columns: list[str] | None = None) -> list[str]:
    """Full column schema, before relabelling."""
    cols = IDENTITY_COLUMNS + STAT_COLUMNS
    if conf_int:
        cols = cols + CI_COLUMNS
    return cols + list(extra_columns or []) + CORRECTION_COLUMNS + DIAGNOSTIC_COLUMNS + [
        FORMULA_COLUMN
    ]


def format_results(
    df: pd.DataFrame,
    conf_int: bool,
    labels: dict[str, str] | None = None,
) -> pd.DataFrame:
    """
    Reorder and relabel a raw result table.

    Parameters
    ----------
    df : pd.DataFrame
        Rows built by the engine.
    conf_int : bool
        Keep the confidence interval columns.
    labels : dict, optional
        Column renames applied last (e.g. ``{"estimate": "psi"}``).

    Returns
    -------
    pd.DataFrame
        Table in the documented column order.
    """
    known = set(IDENTITY_COLUMNS + STAT_COLUMNS + CI_COLUMNS + CORRECTION_COLUMNS)
    known.update(DIAGNOSTIC_COLUMNS + [FORMULA_COLUMN])
    extras = [c for c in df.columns if c not in known]

    ordered = [c for c in result_columns(conf_int, extras) if c in df.columns]
    out = df.loc[:, ordered].reset_index(drop=True)
    if labels:
        out = out.rename(columns=labels)
    return out
