# File: omicswas/association/models/_utils.py
# Location: omicswas/omicswas/association/models/_utils.py
"""
Shared utilities for model fitter implementations.

Working-frame construction, binary outcome encoding and coefficient lookup
by term name live here so every fitter treats data and results the same way.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
import pandas as pd

from omicswas.association.base import ModelSpec
from omicswas.association.formula import quote_term
from omicswas.errors import FeatureFitError

logger = logging.getLogger("omicswas")


def working_frame(spec: ModelSpec, data: pd.DataFrame) -> pd.DataFrame:
    """
    Copy of the columns ``spec`` reads, restricted to complete cases.

    Raises
    ------
    FeatureFitError
        If no complete case remains.
    """
    frame = data.loc[:, spec.columns].dropna().copy()
    if frame.empty:
        raise FeatureFitError(spec.feature, "no complete cases for model variables")
    return frame


def fixed_formula(spec: ModelSpec, lhs: str | None = None) -> str:
    """Fixed-effects formula of ``spec``, optionally with a replacement response."""
    return f"{lhs or quote_term(spec.outcome)} ~ {spec.rhs}"


def encode_binary(values: pd.Series, feature: str) -> pd.Series:
    """
    Encode a two-level outcome as 0/1 floats.

    Numeric columns already coded 0/1 are returned as floats. Other
    two-level columns use their first level as the reference (0): category
    order for categoricals, sorted order otherwise.

    Raises
    ------
    FeatureFitError
        If the column does not have exactly two levels, or is numeric but
        not coded 0/1.
    """
    if pd.api.types.is_bool_dtype(values):
        return values.astype(float)

    if pd.api.types.is_numeric_dtype(values):
        levels = set(np.unique(values.to_numpy()))
        if not levels <= {0, 1}:
            raise FeatureFitError(
                feature,
                f"binary outcome '{values.name}' must be coded 0/1, found {sorted(levels)}",
            )
        return values.astype(float)

    if isinstance(values.dtype, pd.CategoricalDtype):
        levels = [lvl for lvl in values.cat.categories if lvl in set(values)]
    else:
        levels = sorted(values.unique(), key=str)
    if len(levels) != 2:
        raise FeatureFitError(
            feature,
            f"binary outcome '{values.name}' must have exactly 2 levels, found {len(levels)}",
        )
    return (values == levels[1]).astype(float)


def find_term(names: Sequence[str], term: str, feature: str) -> int:
    """
    Position of the coefficient labelled ``term`` in ``names``.

    Accepts the exact label, or a single treatment-coded dummy
    ``term[T.level]`` when the predictor is a two-level categorical.

    Raises
    ------
    FeatureFitError
        If the term is absent (dropped as collinear, for example) or expands
        into several dummy coefficients.
    """
    names = list(names)
    if term in names:
        return names.index(term)

    dummies = [i for i, name in enumerate(names) if name.startswith(f"{term}[")]
    if len(dummies) == 1:
        return dummies[0]
    if len(dummies) > 1:
        raise FeatureFitError(
            feature,
            f"predictor '{term}' expands into {len(dummies)} coefficients; "
            "use a two-level or numeric predictor",
        )
    raise FeatureFitError(feature, f"coefficient '{term}' not found in fitted model")


def check_finite(feature: str, **stats: float) -> None:
    """Raise FeatureFitError if any statistic is NaN or infinite."""
    bad = [name for name, value in stats.items() if not np.isfinite(value)]
    if bad:
        raise FeatureFitError(feature, f"non-finite {', '.join(bad)} (singular or degenerate fit)")
