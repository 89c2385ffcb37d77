# File: omicswas/association/quality.py
# Location: omicswas/omicswas/association/quality.py
"""
Pre-fit data quality checks.

Every entry point runs these checks before the first model is fitted:

- every requested name must be a column of the dataset (MissingColumnError
  lists all missing names at once);
- optionally, every column must vary among the complete cases of the
  analysed columns (ZeroVarianceError lists all constant columns).

The variation measure is the sample variance for numeric columns and the
number of distinct values minus one for anything else. A column with a
measure that is not strictly positive cannot support a regression
coefficient.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import pandas as pd

from omicswas.errors import MissingColumnError, ZeroVarianceError

logger = logging.getLogger("omicswas")


def _unique(names: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(names))


def check_columns(df: pd.DataFrame, required: Sequence[str]) -> None:
    """
    Verify that every required name is a column of ``df``.

    Raises
    ------
    MissingColumnError
        Listing every missing name, in request order.
    """
    present = set(df.columns)
    missing = [name for name in _unique(required) if name not in present]
    if missing:
        raise MissingColumnError(missing)


def _is_numeric(series: pd.Series) -> bool:
    return pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series)


def variation_summary(df: pd.DataFrame, columns: Sequence[str]) -> pd.Series:
    """
    Variation measure per column among complete cases across ``columns``.

    Parameters
    ----------
    df : pd.DataFrame
        Dataset (not modified).
    columns : sequence of str
        Columns to summarise; rows with a missing value in any of them are
        dropped first.

    Returns
    -------
    pd.Series
        Indexed by column name. Sample variance (ddof=1) for numeric
        columns, distinct values minus one otherwise. Variance is NaN when
        fewer than two complete cases remain.
    """
    cols = _unique(columns)
    complete = df.loc[:, cols].dropna()
    logger.debug(f"Data quality: {len(complete)}/{len(df)} complete cases across {len(cols)} columns")

    measures = {}
    for col in cols:
        values = complete[col]
        if _is_numeric(values):
            # A single repeated float leaves rounding residue in var()
            if values.nunique() < 2:
                measures[col] = 0.0 if len(values) > 1 else float("nan")
            else:
                measures[col] = float(values.var())
        else:
            measures[col] = float(values.nunique() - 1)
    return pd.Series(measures, dtype=float)


def check_variance(df: pd.DataFrame, columns: Sequence[str]) -> None:
    """
    Verify that every column varies among complete cases.

    Raises
    ------
    ZeroVarianceError
        Listing every column whose variation measure is not strictly
        positive.
    """
    summary = variation_summary(df, columns)
    zero_var = [col for col, measure in summary.items() if not measure > 0]
    if zero_var:
        raise ZeroVarianceError(zero_var)


def check_data_quality(
    df: pd.DataFrame,
    required: Sequence[str],
    test_data_quality: bool = True,
) -> None:
    """
    Run the pre-fit checks for one analysis call.

    Column presence is always checked; the variance check only runs when
    ``test_data_quality`` is True.
    """
    check_columns(df, required)
    if test_data_quality:
        check_variance(df, required)
    else:
        logger.debug("Data quality: variance check disabled")
