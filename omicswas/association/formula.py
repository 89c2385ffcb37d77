# File: omicswas/association/formula.py
# Location: omicswas/omicswas/association/formula.py
"""
Per-feature model formulas.

Formulas have the shape ``outcome ~ cov1 + cov2 + predictor [+ strata(set)]``:
covariates come first, the predictor(s) of interest after them, and the
stratification term last. Alongside the formula the builder returns the
coefficient label of each predictor so fitters can extract results by name
instead of by row position.

Names are not validated here. A name the formula parser cannot resolve
surfaces later as a per-feature fit failure.
"""

from __future__ import annotations

import keyword
from collections.abc import Sequence

from omicswas.association.base import ModelSpec


def quote_term(name: str) -> str:
    """
    Return ``name`` as a formula term.

    Valid Python identifiers that are not keywords are used unchanged;
    anything else (dashes, dots, leading digits, ``class``) is wrapped in
    ``Q("...")``.

    Examples
    --------
    >>> quote_term("cg00000029")
    'cg00000029'
    >>> quote_term("PC(16:0/18:1)")
    'Q("PC(16:0/18:1)")'
    """
    if name.isidentifier() and not keyword.iskeyword(name):
        return name
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'Q("{escaped}")'


def build_formula(
    outcome: str,
    predictors: str | Sequence[str],
    covariates: Sequence[str] | None = None,
    strata: str | None = None,
) -> tuple[str, str, tuple[str, ...]]:
    """
    Build the formula for one model.

    Parameters
    ----------
    outcome : str
        Response column.
    predictors : str or sequence of str
        Predictor(s) of interest, placed after the covariates.
    covariates : sequence of str, optional
        Adjustment covariates, in order.
    strata : str, optional
        Matched-set column; appended last as ``strata(<name>)``.

    Returns
    -------
    formula : str
        Full formula, e.g. ``"case ~ age + sex + cg01 + strata(set_id)"``.
    rhs : str
        Right-hand side without the strata term, e.g. ``"age + sex + cg01"``.
    terms : tuple of str
        Coefficient label of each predictor.
    """
    if isinstance(predictors, str):
        predictors = [predictors]
    terms = tuple(quote_term(p) for p in predictors)
    rhs = " + ".join([quote_term(c) for c in covariates or []] + list(terms))
    formula = f"{quote_term(outcome)} ~ {rhs}"
    if strata is not None:
        formula += f" + strata({quote_term(strata)})"
    return formula, rhs, terms


def build_model_spec(
    feature: str,
    outcome: str,
    predictor: str,
    covariates: Sequence[str] | None = None,
    strata: str | None = None,
    groups: str | None = None,
    var_name: str | None = None,
) -> ModelSpec:
    """Build the single-predictor ModelSpec for one feature."""
    formula, rhs, terms = build_formula(outcome, predictor, covariates, strata)
    if groups is not None:
        formula += f" + (1 | {quote_term(groups)})"
    return ModelSpec(
        feature=feature,
        outcome=outcome,
        predictors=(predictor,),
        terms=terms,
        formula=formula,
        rhs=rhs,
        covariates=tuple(covariates or ()),
        strata=strata,
        groups=groups,
        var_name=var_name,
    )


def build_mixture_spec(
    feature: str,
    exposures: Sequence[str],
    covariates: Sequence[str] | None = None,
) -> ModelSpec:
    """Build the mixture ModelSpec for one feature: ``feature ~ covariates + exposures``."""
    formula, rhs, terms = build_formula(feature, exposures, covariates)
    return ModelSpec(
        feature=feature,
        outcome=feature,
        predictors=tuple(exposures),
        terms=terms,
        formula=formula,
        rhs=rhs,
        covariates=tuple(covariates or ()),
    )
