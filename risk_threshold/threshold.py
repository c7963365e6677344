# risk_threshold/threshold.py
"""
Threshold Selection by Expected Misclassification Cost.

Unlike F1 tuning, the decision threshold here minimizes business cost:
every candidate cutoff on a fixed grid is applied to each fold's held-out
calibrated probabilities, the resulting costs fill a T×K cost matrix, and
the threshold with the lowest mean cost across folds wins.

Decision Rule:
    prediction = 1 (risky) if probability >= threshold, else 0 (benign)

Aggregation Rules:
    - A fold that failed to produce probabilities contributes NaN to its
      column and is excluded from the mean (not propagated)
    - Ties on mean cost resolve to the SMALLEST threshold, which catches
      more true positives under the FN-heavy cost asymmetry
    - If no threshold has any valid fold, NoValidThresholdError is raised

Usage Example:
    from risk_threshold.threshold import ThresholdSelector

    selector = ThresholdSelector(fp_weight=1.0, fn_weight=10.0)
    best_t, best_cost, cost_matrix, mean_costs = selector.evaluate(
        y, oof_probabilities, fold_ids, failed_folds=[]
    )
"""

# Standard library imports
import logging
from typing import Iterable, Optional, Tuple

# Third-party imports
import numpy as np
import pandas as pd

# Local imports
from risk_threshold.cost import misclassification_cost
from risk_threshold.errors import NoValidThresholdError

logger = logging.getLogger(__name__)


# ============================================================================
# THRESHOLD GRID
# ============================================================================

def threshold_grid(start: float = 0.01, stop: float = 0.99, num: int = 100) -> np.ndarray:
    """
    Evenly spaced, strictly increasing candidate thresholds inside (0, 1).

    Args:
        start: First threshold (exclusive lower bound 0)
        stop: Last threshold (exclusive upper bound 1)
        num: Number of grid points

    Returns:
        np.ndarray: Shape (num,)

    Raises:
        ValueError: If an endpoint is outside the open interval (0, 1), the
            grid is empty, or start >= stop for a multi-point grid
    """
    if num < 1:
        raise ValueError(f"Threshold grid needs at least one point, got {num}")
    if not (0.0 < start < 1.0 and 0.0 < stop < 1.0):
        raise ValueError(f"Threshold grid endpoints must lie in (0, 1), got [{start}, {stop}]")
    if num > 1 and start >= stop:
        raise ValueError(f"Threshold grid must be increasing, got start={start} stop={stop}")
    return np.linspace(start, stop, num)


# ============================================================================
# COST MATRIX
# ============================================================================

def build_cost_matrix(
    grid: np.ndarray,
    y_true,
    probabilities,
    fold_ids,
    failed_folds: Optional[Iterable[int]] = None,
    fp_weight: float = 1.0,
    fn_weight: float = 10.0,
) -> pd.DataFrame:
    """
    Compute the T×K cost matrix.

    Cell (t, k) is the total cost of thresholding fold k's held-out
    probabilities at grid[t]. Columns of failed folds are left NaN.

    Args:
        grid: Candidate thresholds (T,)
        y_true: 0/1 labels for all rows (N,)
        probabilities: Out-of-fold probability per row (N,)
        fold_ids: Fold id per row (N,)
        failed_folds: Fold ids to exclude
        fp_weight: Cost of one false positive
        fn_weight: Cost of one false negative

    Returns:
        pd.DataFrame: index = threshold, columns = fold id
    """
    y_true = np.asarray(y_true).astype(int)
    probabilities = np.asarray(probabilities, dtype=float)
    fold_ids = np.asarray(fold_ids)
    failed = set(int(k) for k in (failed_folds or []))
    folds = [int(k) for k in np.unique(fold_ids)]

    matrix = np.full((len(grid), len(folds)), np.nan)

    # Fill fold by fold; a fold's column is written once
    for j, k in enumerate(folds):
        if k in failed:
            continue
        mask = fold_ids == k
        y_fold = y_true[mask]
        p_fold = probabilities[mask]
        if not np.all(np.isfinite(p_fold)):
            logger.warning(f"Fold {k}: missing held-out probabilities, excluding from cost matrix")
            continue
        for i, t in enumerate(grid):
            y_pred = (p_fold >= t).astype(int)
            matrix[i, j] = misclassification_cost(y_fold, y_pred, fp_weight, fn_weight)

    return pd.DataFrame(
        matrix,
        index=pd.Index(np.asarray(grid, dtype=float), name="threshold"),
        columns=pd.Index(folds, name="fold"),
    )


# ============================================================================
# SELECTION
# ============================================================================

def mean_cost_per_threshold(cost_matrix: pd.DataFrame) -> pd.Series:
    """Row mean across folds, skipping excluded (NaN) folds."""
    return cost_matrix.mean(axis=1, skipna=True)


def select_threshold(cost_matrix: pd.DataFrame) -> Tuple[float, float]:
    """
    Pick the threshold with minimum mean cost; ties go to the smallest threshold.

    Args:
        cost_matrix: T×K matrix from build_cost_matrix

    Returns:
        Tuple[float, float]: (selected threshold, its mean cost)

    Raises:
        NoValidThresholdError: If every row is entirely NaN

    Example:
        >>> m = pd.DataFrame([[5.0, 5.0], [3.0, 3.0], [3.0, 3.0]], index=[0.2, 0.4, 0.6])
        >>> select_threshold(m)
        (0.4, 3.0)
    """
    means = mean_cost_per_threshold(cost_matrix)
    valid = means.dropna()
    if valid.empty:
        failed = [int(c) for c in cost_matrix.columns if cost_matrix[c].isna().all()]
        raise NoValidThresholdError(
            "Every fold was excluded from the cost matrix; no threshold can be selected",
            failed_folds=failed,
        )

    best_cost = valid.min()
    # Explicit tie-break rather than relying on iteration order
    best_threshold = valid.index[valid == best_cost].min()
    return float(best_threshold), float(best_cost)


class ThresholdSelector:
    """
    Sweep a threshold grid over out-of-fold probabilities and pick the argmin.

    Args:
        fp_weight: Cost of one false positive
        fn_weight: Cost of one false negative
        grid_start / grid_stop / grid_points: Grid definition
    """

    def __init__(
        self,
        fp_weight: float = 1.0,
        fn_weight: float = 10.0,
        grid_start: float = 0.01,
        grid_stop: float = 0.99,
        grid_points: int = 100,
    ):
        self.fp_weight = fp_weight
        self.fn_weight = fn_weight
        self.grid = threshold_grid(grid_start, grid_stop, grid_points)

    def evaluate(
        self,
        y_true,
        probabilities,
        fold_ids,
        failed_folds: Optional[Iterable[int]] = None,
    ) -> Tuple[float, float, pd.DataFrame, pd.Series]:
        """
        Build the cost matrix and select the threshold.

        Returns:
            Tuple of (threshold, mean cost, cost matrix, mean cost per threshold)
        """
        cost_matrix = build_cost_matrix(
            self.grid, y_true, probabilities, fold_ids,
            failed_folds=failed_folds,
            fp_weight=self.fp_weight,
            fn_weight=self.fn_weight,
        )
        threshold, cost = select_threshold(cost_matrix)
        n_valid = int(cost_matrix.notna().any(axis=0).sum())
        logger.info(
            f"Selected threshold {threshold:.3f} with mean cost {cost:.2f} "
            f"over {n_valid}/{cost_matrix.shape[1]} folds"
        )
        return threshold, cost, cost_matrix, mean_cost_per_threshold(cost_matrix)
