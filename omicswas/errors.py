# File: omicswas/errors.py
# Location: omicswas/omicswas/errors.py
"""
Exception hierarchy for omics-wide association analyses.

Fatal errors (missing columns, zero-variance columns, contradictory options)
are raised before any model is fitted and abort the whole call.
FeatureFitError is local to one feature: fitters raise it, the engine
catches it and reports the failure in the result table.
"""

from typing import Dict, List, Optional, Sequence


class OwasError(Exception):
    """Base exception for all omicswas errors."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        """Initialize omicswas error.

        Parameters
        ----------
        message : str
            Error message
        details : dict, optional
            Additional error details
        """
        super().__init__(message)
        self.details = details or {}


class DataValidationError(OwasError):
    """Raised when the input dataset fails a pre-fit check."""

    def __init__(self, message: str, columns: Sequence[str]):
        """Initialize data validation error."""
        super().__init__(message, {"columns": list(columns)})
        self.columns: List[str] = list(columns)

    def __reduce__(self):
        """Custom pickling so the error survives process pool boundaries."""
        return (self.__class__, (self.columns,))


class MissingColumnError(DataValidationError):
    """Raised when requested variables are not columns of the dataset."""

    def __init__(self, columns: Sequence[str]):
        """Initialize missing column error."""
        message = f"Variable(s) not found in data: {', '.join(columns)}. Check column names."
        super().__init__(message, columns)


class ZeroVarianceError(DataValidationError):
    """Raised when variables have no variation among complete cases."""

    def __init__(self, columns: Sequence[str]):
        """Initialize zero variance error."""
        message = (
            "The following variables have zero variance for complete cases: "
            f"{', '.join(columns)}. Please remove before analysis."
        )
        super().__init__(message, columns)


class InvalidConfigurationError(OwasError):
    """Raised when analysis options are invalid or contradict each other."""

    def __init__(self, message: str, option: Optional[str] = None):
        """Initialize invalid configuration error."""
        super().__init__(message, {"option": option})
        self.option = option

    def __reduce__(self):
        """Custom pickling so the error survives process pool boundaries."""
        return (self.__class__, (str(self), self.option))


class FeatureFitError(OwasError):
    """Raised when the model for a single feature cannot be fitted."""

    def __init__(self, feature: str, reason: str):
        """Initialize feature fit error."""
        super().__init__(f"Feature '{feature}': {reason}", {"feature": feature})
        self.feature = feature
        self.reason = reason

    def __reduce__(self):
        """Custom pickling so the error survives process pool boundaries."""
        return (self.__class__, (self.feature, self.reason))
