# risk_threshold/scoring.py
"""
Per-fold calibrated scoring.

For each fold k a brand-new base classifier wrapped in a sigmoid (Platt)
calibrator is trained on every row outside fold k, then used to score the
rows of fold k. Nothing is shared between folds: the model is created
inside score_fold, so folds can run in parallel worker processes.

Why calibrate?
    The cost sweep thresholds a *probability*. Raw logistic or boosted-tree
    scores are not guaranteed to be calibrated, so a sigmoid is fitted on
    internal folds of the training partition.

Failure handling:
    - Solver did not converge: logged, re-emitted as one ConvergenceWarning
      for the fold, and the best-effort probabilities are kept
    - Any other fitting/scoring error: the fold is marked failed and its
      rows keep NaN probabilities; the run continues
"""

# Standard library imports
import logging
import warnings
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

# Third-party imports
import numpy as np
from joblib import Parallel, delayed
from sklearn.calibration import CalibratedClassifierCV
from sklearn.linear_model import LogisticRegression
from xgboost import XGBClassifier

# Local imports
from risk_threshold.errors import ConvergenceWarning
from risk_threshold.folds import iter_folds

logger = logging.getLogger(__name__)


# ============================================================================
# MODEL FACTORY
# ============================================================================

def build_base_estimator(
    kind: str = "logistic",
    max_iter: int = 1000,
    seed: int = 42,
    scale_pos_weight: float = 1.0,
):
    """
    Create an unfitted base classifier.

    Args:
        kind: "logistic" (default) or "xgboost"
        max_iter: Iteration budget for the logistic solver
        seed: Random seed for stochastic estimators
        scale_pos_weight: Negative/positive ratio for XGBoost

    Returns:
        An unfitted sklearn-compatible classifier with predict_proba
    """
    if kind == "logistic":
        return LogisticRegression(max_iter=max_iter, random_state=seed)
    if kind == "xgboost":
        return XGBClassifier(
            n_estimators=200,                   # Number of boosting rounds
            max_depth=6,                        # Maximum tree depth
            learning_rate=0.1,                  # Step size shrinkage (eta)
            eval_metric="logloss",
            scale_pos_weight=scale_pos_weight,  # Handle class imbalance
            random_state=seed,
            verbosity=0,
        )
    raise ValueError(f"Unknown base estimator: {kind!r}")


def build_calibrated_model(
    y_train: np.ndarray,
    base_estimator: str = "logistic",
    calibration_cv: int = 3,
    max_iter: int = 1000,
    seed: int = 42,
) -> CalibratedClassifierCV:
    """Wrap a fresh base classifier in a sigmoid calibrator."""
    neg = int((y_train == 0).sum())
    pos = int((y_train == 1).sum())
    base = build_base_estimator(
        base_estimator,
        max_iter=max_iter,
        seed=seed,
        scale_pos_weight=neg / (pos + 1e-9),
    )
    return CalibratedClassifierCV(base, method="sigmoid", cv=calibration_cv)


def fit_with_convergence_check(model, X, y) -> bool:
    """
    Fit model, capturing solver convergence warnings.

    Returns:
        bool: False if any ConvergenceWarning was raised during fitting
    """
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", ConvergenceWarning)
        model.fit(X, y)

    converged = True
    for w in caught:
        if issubclass(w.category, ConvergenceWarning):
            converged = False
        else:
            warnings.warn(w.message, w.category)
    return converged


# ============================================================================
# FOLD SCORING
# ============================================================================

@dataclass
class FoldScore:
    """Held-out probabilities of one fold."""
    fold: int
    test_index: np.ndarray
    probabilities: Optional[np.ndarray]
    n_train: int
    converged: bool = True
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.probabilities is None


def score_fold(
    X: np.ndarray,
    y: np.ndarray,
    fold_ids: np.ndarray,
    fold: int,
    model_params: Dict[str, Any],
) -> FoldScore:
    """
    Train on every row outside `fold` and score the rows inside it.

    Args:
        X: Feature matrix (N, M)
        y: 0/1 labels (N,)
        fold_ids: Fold id per row (N,)
        fold: Held-out fold id
        model_params: Keyword arguments for build_calibrated_model

    Returns:
        FoldScore: probabilities is None when the fold failed
    """
    X = np.asarray(X, dtype=float)
    y = np.asarray(y).astype(int)
    fold_ids = np.asarray(fold_ids)

    train_idx = np.flatnonzero(fold_ids != fold)
    test_idx = np.flatnonzero(fold_ids == fold)

    try:
        model = build_calibrated_model(y[train_idx], **model_params)
        converged = fit_with_convergence_check(model, X[train_idx], y[train_idx])
        proba = model.predict_proba(X[test_idx])[:, 1]
    except Exception as e:
        logger.exception(f"Fold {fold}: scoring failed, excluding fold from cost matrix")
        return FoldScore(fold, test_idx, None, len(train_idx), converged=False, error=str(e))

    if not np.all(np.isfinite(proba)):
        logger.error(f"Fold {fold}: non-finite probabilities, excluding fold from cost matrix")
        return FoldScore(
            fold, test_idx, None, len(train_idx), converged=converged,
            error="non-finite probabilities",
        )

    if not converged:
        logger.warning(
            f"Fold {fold}: solver did not converge within its iteration budget; "
            "using best-effort coefficients"
        )
        warnings.warn(
            f"Fold {fold}: classifier did not converge; using best-effort fit",
            ConvergenceWarning,
        )

    return FoldScore(fold, test_idx, proba, len(train_idx), converged=converged)


class CalibratedScorer:
    """
    Produce out-of-fold calibrated probabilities for every row.

    Args:
        base_estimator: "logistic" or "xgboost"
        calibration_cv: Internal folds for the sigmoid calibrator
        max_iter: Logistic regression iteration budget
        seed: Random seed for stochastic estimators
        n_jobs: Number of folds scored in parallel (joblib)

    Example:
        >>> scorer = CalibratedScorer()
        >>> scores = scorer.score_all(X, y, fold_ids)
        >>> oof = scorer.out_of_fold(scores, len(y))
    """

    def __init__(
        self,
        base_estimator: str = "logistic",
        calibration_cv: int = 3,
        max_iter: int = 1000,
        seed: int = 42,
        n_jobs: int = 1,
    ):
        self.base_estimator = base_estimator
        self.calibration_cv = calibration_cv
        self.max_iter = max_iter
        self.seed = seed
        self.n_jobs = n_jobs

    @property
    def model_params(self) -> Dict[str, Any]:
        return {
            "base_estimator": self.base_estimator,
            "calibration_cv": self.calibration_cv,
            "max_iter": self.max_iter,
            "seed": self.seed,
        }

    def score_fold(self, X, y, fold_ids, fold: int) -> FoldScore:
        return score_fold(X, y, fold_ids, fold, self.model_params)

    def score_all(self, X, y, fold_ids) -> List[FoldScore]:
        """Score every fold; results are ordered by fold id."""
        X_arr = np.asarray(X, dtype=float)
        y_arr = np.asarray(y).astype(int)
        folds = [k for k, _, _ in iter_folds(fold_ids)]

        logger.info(f"Scoring {len(folds)} folds with calibrated {self.base_estimator} (n_jobs={self.n_jobs})")
        if self.n_jobs == 1:
            scores = [score_fold(X_arr, y_arr, fold_ids, k, self.model_params) for k in folds]
        else:
            scores = Parallel(n_jobs=self.n_jobs)(
                delayed(score_fold)(X_arr, y_arr, fold_ids, k, self.model_params) for k in folds
            )
        return sorted(scores, key=lambda s: s.fold)

    @staticmethod
    def out_of_fold(scores: List[FoldScore], n_samples: int) -> np.ndarray:
        """Assemble held-out probabilities into one vector (NaN for failed folds)."""
        oof = np.full(n_samples, np.nan)
        for s in scores:
            if not s.failed:
                oof[s.test_index] = s.probabilities
        return oof

    def fit_final(self, X, y) -> CalibratedClassifierCV:
        """Fit the calibrated model on all rows (used for serving)."""
        y_arr = np.asarray(y).astype(int)
        model = build_calibrated_model(y_arr, **self.model_params)
        if not fit_with_convergence_check(model, X, y_arr):
            logger.warning("Final model did not converge; using best-effort coefficients")
        return model
