# risk_threshold/report.py
"""
Reporting helpers for a finished threshold-optimization run.

Display conventions:
    - Threshold shown with 3 decimals        (e.g. 0.137)
    - Cost shown as a rounded currency value (e.g. $1,240)

Outputs written by save_reports():
    - cost_matrix.csv: T×K cost matrix (threshold × fold)
    - fold_metrics.csv: per-fold sizes, convergence and cost at the chosen threshold
    - oof_predictions.csv: out-of-fold probability, fold id and decision per row
    - plots/cost_curve.png: mean cost vs threshold with per-fold spread
    - plots/confusion_matrix.png: pooled out-of-fold confusion matrix
"""

# Standard library imports
import logging
import os
from typing import Dict, List

# Third-party imports
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

# Local imports
from risk_threshold.cost import confusion_counts, misclassification_cost

logger = logging.getLogger(__name__)


# ============================================================================
# FORMATTING
# ============================================================================

def format_threshold(threshold: float) -> str:
    return f"{threshold:.3f}"


def format_cost(cost: float) -> str:
    return f"${int(round(cost)):,}"


def format_summary(result) -> str:
    """One-line, fixed-precision summary of the selected operating point."""
    return (
        f"Selected threshold: {format_threshold(result.threshold)} | "
        f"Expected cost per fold: {format_cost(result.expected_cost)}"
    )


# ============================================================================
# TABLES
# ============================================================================

def fold_metrics(result) -> pd.DataFrame:
    """
    Per-fold diagnostics at the selected threshold.

    Columns: fold, n_train, n_test, positives, converged, failed, error,
    fp, fn, cost
    """
    y = np.asarray(result.y).astype(int)
    rows: List[Dict] = []
    for s in result.fold_scores:
        y_fold = y[s.test_index]
        row = {
            "fold": s.fold,
            "n_train": s.n_train,
            "n_test": len(s.test_index),
            "positives": int(y_fold.sum()),
            "converged": s.converged,
            "failed": s.failed,
            "error": s.error,
            "fp": np.nan,
            "fn": np.nan,
            "cost": np.nan,
        }
        if not s.failed:
            y_pred = (s.probabilities >= result.threshold).astype(int)
            counts = confusion_counts(y_fold, y_pred)
            row["fp"] = counts["fp"]
            row["fn"] = counts["fn"]
            row["cost"] = misclassification_cost(
                y_fold, y_pred, result.config.fp_weight, result.config.fn_weight
            )
        rows.append(row)
    return pd.DataFrame(rows)


def oof_predictions(result) -> pd.DataFrame:
    """Out-of-fold probability, fold id and decision for every row."""
    proba = result.probabilities
    decision = np.where(np.isfinite(proba), (proba >= result.threshold).astype(float), np.nan)
    return pd.DataFrame({
        "fold": result.fold_ids,
        "y_true": np.asarray(result.y).astype(int),
        "y_proba": proba,
        "y_pred": decision,
    })


# ============================================================================
# PLOTTING FUNCTIONS
# ============================================================================

def plot_cost_curve(
    cost_matrix: pd.DataFrame,
    threshold: float,
    out_path: str,
) -> None:
    """
    Plot mean cost across folds against the threshold grid.

    The shaded band spans the per-fold min/max; the dashed line marks the
    selected threshold.
    """
    thresholds = cost_matrix.index.values
    mean_cost = cost_matrix.mean(axis=1, skipna=True).values

    plt.figure(figsize=(7, 4.5))
    plt.fill_between(
        thresholds,
        cost_matrix.min(axis=1, skipna=True).values,
        cost_matrix.max(axis=1, skipna=True).values,
        alpha=0.2, label="Fold range",
    )
    plt.plot(thresholds, mean_cost, linewidth=2, label="Mean cost")
    plt.axvline(threshold, linestyle="--", color="gray",
                label=f"Selected = {format_threshold(threshold)}")

    plt.xlabel("Threshold")
    plt.ylabel("Misclassification cost")
    plt.title("Expected Cost vs Threshold")
    plt.legend(loc="upper right")
    plt.grid(alpha=0.3)
    plt.tight_layout()

    plt.savefig(out_path, dpi=150)
    plt.close()


def plot_confusion(cm: np.ndarray, out_path: str) -> None:
    """
    Save a confusion matrix heatmap.

    Layout:
        [[TN, FP],
         [FN, TP]]
    """
    plt.figure(figsize=(4, 4))
    plt.imshow(cm, cmap=plt.cm.Blues, interpolation="nearest")
    plt.title("Confusion Matrix")
    plt.colorbar()

    ticks = np.arange(cm.shape[0])
    plt.xticks(ticks, ticks)
    plt.yticks(ticks, ticks)
    plt.xlabel("Predicted label")
    plt.ylabel("True label")

    # White text on dark cells, black on light
    thresh = cm.max() / 2.0
    for i in range(cm.shape[0]):
        for j in range(cm.shape[1]):
            plt.text(
                j, i, format(cm[i, j], "d"),
                ha="center", va="center",
                color="white" if cm[i, j] > thresh else "black",
                fontsize=14, fontweight="bold",
            )

    plt.tight_layout()
    plt.savefig(out_path, dpi=150)
    plt.close()


# ============================================================================
# ARTIFACTS
# ============================================================================

def save_reports(result, out_dir: str = "artifacts", plots: bool = True) -> Dict[str, str]:
    """
    Write cost matrix, fold metrics, out-of-fold predictions and plots.

    Returns:
        Dict[str, str]: artifact name -> path
    """
    os.makedirs(out_dir, exist_ok=True)
    paths = {
        "cost_matrix": os.path.join(out_dir, "cost_matrix.csv"),
        "fold_metrics": os.path.join(out_dir, "fold_metrics.csv"),
        "oof_predictions": os.path.join(out_dir, "oof_predictions.csv"),
    }

    result.cost_matrix.to_csv(paths["cost_matrix"])
    fold_metrics(result).to_csv(paths["fold_metrics"], index=False)
    oof = oof_predictions(result)
    oof.to_csv(paths["oof_predictions"], index=False)

    if plots:
        plots_dir = os.path.join(out_dir, "plots")
        os.makedirs(plots_dir, exist_ok=True)

        paths["cost_curve"] = os.path.join(plots_dir, "cost_curve.png")
        plot_cost_curve(result.cost_matrix, result.threshold, paths["cost_curve"])

        scored = oof.dropna(subset=["y_pred"])
        counts = confusion_counts(scored["y_true"], scored["y_pred"])
        cm = np.array([[counts["tn"], counts["fp"]], [counts["fn"], counts["tp"]]])
        paths["confusion_matrix"] = os.path.join(plots_dir, "confusion_matrix.png")
        plot_confusion(cm, paths["confusion_matrix"])

    logger.info(f"Saved reports to {out_dir}/")
    return paths
