# File: omicswas/association/models/__init__.py
# Location: omicswas/omicswas/association/models/__init__.py
"""
Model fitter implementations.

Fitters are loaded lazily so that statsmodels submodules are only imported
when a specific fitter is actually used.
"""

from __future__ import annotations

from omicswas.association.base import ModelFitter, ModelVariant


def get_fitter_class(variant: ModelVariant | str) -> type[ModelFitter]:
    """
    Return the fitter class registered for ``variant``.

    Raises
    ------
    ValueError
        If ``variant`` is not a ModelVariant value.
    """
    variant = ModelVariant(variant)
    if variant is ModelVariant.GLM:
        from omicswas.association.models.glm import GLMFitter

        return GLMFitter
    if variant is ModelVariant.MIXED:
        from omicswas.association.models.mixed import MixedFitter

        return MixedFitter
    if variant is ModelVariant.CLOGIT:
        from omicswas.association.models.clogit import ConditionalLogitFitter

        return ConditionalLogitFitter
    from omicswas.association.models.qgcomp import QgcompFitter

    return QgcompFitter


def create_fitter(variant: ModelVariant | str, **options) -> ModelFitter:
    """Instantiate the fitter for ``variant`` with the given options."""
    return get_fitter_class(variant)(**options)


def __getattr__(name: str) -> object:
    if name == "GLMFitter":
        return get_fitter_class(ModelVariant.GLM)
    if name == "MixedFitter":
        return get_fitter_class(ModelVariant.MIXED)
    if name == "ConditionalLogitFitter":
        return get_fitter_class(ModelVariant.CLOGIT)
    if name == "QgcompFitter":
        return get_fitter_class(ModelVariant.QGCOMP)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "ConditionalLogitFitter",
    "GLMFitter",
    "MixedFitter",
    "QgcompFitter",
    "create_fitter",
    "get_fitter_class",
]
