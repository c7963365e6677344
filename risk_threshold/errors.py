# risk_threshold/errors.py
"""
Error taxonomy for the threshold optimization pipeline.

Data-shape errors (InsufficientDataError, ResamplingError,
InsufficientSamplesError) abort a run immediately. Per-fold convergence
problems are reported as sklearn's ConvergenceWarning and never abort.
NoValidThresholdError is terminal: every fold failed to produce a cost.
"""

from typing import Dict, List, Optional

# Re-exported so callers can filter on a single warning class
from sklearn.exceptions import ConvergenceWarning

__all__ = [
    "ThresholdPipelineError",
    "InsufficientDataError",
    "ResamplingError",
    "InsufficientSamplesError",
    "NoValidThresholdError",
    "ConfigurationError",
    "ConvergenceWarning",
]


class ThresholdPipelineError(Exception):
    """Base class for errors that stop a pipeline run."""

    def context(self) -> Dict[str, object]:
        """Row/column/fold details that triggered the error, for reporting."""
        return {}


class InsufficientDataError(ThresholdPipelineError):
    """A required statistic is undefined (e.g. an all-missing column)."""

    def __init__(self, message: str, column: Optional[str] = None):
        super().__init__(message)
        self.column = column

    def context(self) -> Dict[str, object]:
        return {"column": self.column} if self.column is not None else {}


class ResamplingError(InsufficientDataError):
    """Minority oversampling is impossible with the available samples."""

    def __init__(self, message: str, n_minority: int):
        super().__init__(message)
        self.n_minority = n_minority

    def context(self) -> Dict[str, object]:
        return {"n_minority": self.n_minority}


class InsufficientSamplesError(ThresholdPipelineError):
    """Stratified splitting is infeasible: a class has fewer members than folds."""

    def __init__(self, message: str, class_counts: Dict[int, int], n_folds: int):
        super().__init__(message)
        self.class_counts = class_counts
        self.n_folds = n_folds

    def context(self) -> Dict[str, object]:
        return {"class_counts": self.class_counts, "n_folds": self.n_folds}


class NoValidThresholdError(ThresholdPipelineError):
    """Every fold was excluded from the cost matrix; no threshold can be chosen."""

    def __init__(self, message: str, failed_folds: Optional[List[int]] = None):
        super().__init__(message)
        self.failed_folds = list(failed_folds or [])

    def context(self) -> Dict[str, object]:
        return {"failed_folds": self.failed_folds}


class ConfigurationError(ValueError):
    """Invalid pipeline configuration values."""
