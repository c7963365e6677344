# risk_threshold/cost.py
"""Asymmetric misclassification cost."""

from typing import Dict

import numpy as np


def confusion_counts(y_true, y_pred) -> Dict[str, int]:
    """
    Return TN, FP, FN, TP counts for binary labels.

    Counts are taken directly from the label vectors, so an absent class or
    an empty vector simply yields zeros.
    """
    y_true = np.asarray(y_true).astype(int)
    y_pred = np.asarray(y_pred).astype(int)
    if y_true.shape != y_pred.shape:
        raise ValueError(
            f"y_true and y_pred must have equal length, got {len(y_true)} and {len(y_pred)}"
        )
    return {
        "tn": int(((y_true == 0) & (y_pred == 0)).sum()),
        "fp": int(((y_true == 0) & (y_pred == 1)).sum()),
        "fn": int(((y_true == 1) & (y_pred == 0)).sum()),
        "tp": int(((y_true == 1) & (y_pred == 1)).sum()),
    }


def misclassification_cost(
    y_true,
    y_pred,
    fp_weight: float = 1.0,
    fn_weight: float = 10.0,
) -> float:
    """
    Total business cost of a prediction vector.

        cost = fp_weight * FP + fn_weight * FN

    A missed positive (FN) defaults to 10x the cost of a false alarm (FP).

    Example:
        >>> misclassification_cost([0, 1, 1, 0], [1, 0, 1, 0])
        11.0
    """
    counts = confusion_counts(y_true, y_pred)
    return float(fp_weight * counts["fp"] + fn_weight * counts["fn"])
