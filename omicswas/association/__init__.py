# File: omicswas/association/__init__.py
# Location: omicswas/omicswas/association/__init__.py
"""
omicswas.association: per-feature regression framework.

Every OWAS entry point builds one ModelSpec per feature and runs a single
ModelFitter over all of them through OwasEngine, which isolates per-feature
failures, applies multiple testing correction over the full p-value column
and formats the result table.

Public API
----------
ModelFitter   : Abstract base class for all model variants
ModelSpec     : Per-feature model specification
FitResult     : Per-feature statistics
OwasConfig    : Configuration dataclass shared by every entry point
OwasEngine    : Orchestrator: fits, corrects, returns DataFrame
Family        : gaussian / binomial
ModelVariant  : glm / mixed / clogit / qgcomp
apply_correction : Standalone FDR/Bonferroni correction function
"""

from omicswas.association.base import (
    Family,
    FitResult,
    ModelFitter,
    ModelSpec,
    ModelVariant,
    OwasConfig,
)
from omicswas.association.correction import apply_correction, significance_threshold
from omicswas.association.engine import OwasEngine

__all__ = [
    "Family",
    "FitResult",
    "ModelFitter",
    "ModelSpec",
    "ModelVariant",
    "OwasConfig",
    "OwasEngine",
    "apply_correction",
    "significance_threshold",
]
