# risk_threshold/resample.py
"""
Conditional minority-class oversampling.

SMOTE runs only when the positive class is rare (prevalence strictly below
the trigger). Mild imbalance is left untouched so the calibrated
probabilities keep reflecting the natural class balance.
"""

# Standard library imports
import logging
from dataclasses import dataclass
from typing import Tuple

# Third-party imports
import numpy as np
import pandas as pd
from imblearn.over_sampling import SMOTE

# Local imports
from risk_threshold.errors import ResamplingError

logger = logging.getLogger(__name__)


@dataclass
class ResampleReport:
    """What the resampler did to the data."""
    resampled: bool
    prevalence: float
    n_before: int
    n_after: int
    minority_before: int
    minority_after: int

    @property
    def minority_ratio_after(self) -> float:
        majority = self.n_after - self.minority_after
        return self.minority_after / majority if majority else float("inf")


class ConditionalResampler:
    """
    Rebalance (X, y) with SMOTE only when minority prevalence is below a floor.

    Args:
        minority_trigger: Resample when count(y=1)/N < minority_trigger
        target_ratio: Minority:majority ratio after oversampling
        k_neighbors: Nearest minority neighbours used for interpolation
            (capped at n_minority - 1)
        seed: Random seed for SMOTE

    Example:
        >>> resampler = ConditionalResampler(seed=42)
        >>> X_r, y_r = resampler.fit_resample(X, y)
        >>> resampler.report_.resampled
        True
    """

    def __init__(
        self,
        minority_trigger: float = 0.05,
        target_ratio: float = 0.5,
        k_neighbors: int = 5,
        seed: int = 42,
    ):
        self.minority_trigger = minority_trigger
        self.target_ratio = target_ratio
        self.k_neighbors = k_neighbors
        self.seed = seed
        self.report_ = None

    def fit_resample(self, X: pd.DataFrame, y: pd.Series) -> Tuple[pd.DataFrame, pd.Series]:
        """
        Return a rebalanced copy of (X, y), or the inputs themselves.

        Raises:
            ResamplingError: If resampling is triggered with fewer than two
                minority samples
        """
        y_arr = np.asarray(y).astype(int)
        n = len(y_arr)
        n_minority = int((y_arr == 1).sum())
        prevalence = n_minority / n if n else 0.0

        # Equality with the trigger does not resample
        if prevalence >= self.minority_trigger:
            logger.info(
                f"Minority prevalence {prevalence:.4f} >= {self.minority_trigger}; "
                "skipping resampling"
            )
            self.report_ = ResampleReport(False, prevalence, n, n, n_minority, n_minority)
            return X, y

        if n_minority < 2:
            raise ResamplingError(
                f"Resampling needs at least 2 minority samples to interpolate, got {n_minority}",
                n_minority=n_minority,
            )

        n_majority = n - n_minority
        if n_majority == 0 or n_minority / n_majority >= self.target_ratio:
            self.report_ = ResampleReport(False, prevalence, n, n, n_minority, n_minority)
            return X, y

        smote = SMOTE(
            sampling_strategy=self.target_ratio,
            k_neighbors=min(self.k_neighbors, n_minority - 1),
            random_state=self.seed,
        )
        X_r, y_r = smote.fit_resample(X, y_arr)

        X_r = pd.DataFrame(X_r, columns=getattr(X, "columns", None)).reset_index(drop=True)
        y_r = pd.Series(np.asarray(y_r).astype(int), name=getattr(y, "name", None))

        minority_after = int((y_r == 1).sum())
        self.report_ = ResampleReport(
            True, prevalence, n, len(y_r), n_minority, minority_after
        )
        logger.info(
            f"Minority prevalence {prevalence:.4f} < {self.minority_trigger}; "
            f"SMOTE grew minority {n_minority} -> {minority_after} "
            f"(ratio {self.report_.minority_ratio_after:.3f})"
        )
        return X_r, y_r
