# File: omicswas/__init__.py
# Location: omicswas/omicswas/__init__.py

"""
omicswas Package.

This package provides omics-wide association studies: one regression model
per omics feature against an exposure or outcome of interest, collected into
a single result table with FDR-adjusted p-values.
"""

from .owas import owas, owas_clogit, owas_mixed, owas_qgcomp
from .version import __version__

__all__ = ["__version__", "owas", "owas_clogit", "owas_mixed", "owas_qgcomp"]
