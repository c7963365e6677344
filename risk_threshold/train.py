# risk_threshold/train.py
"""
Threshold Optimization Pipeline for the Account-Risk Scorer.

This script implements the complete workflow:
- Data loading and label encoding
- Feature preprocessing (median impute, zero-variance drop, standardize)
- Conditional SMOTE oversampling when positives are rare
- Stratified K-Fold cross-validation with sigmoid-calibrated probabilities
- Cost-based threshold sweep and selection
- Final calibrated model trained on the full dataset for serving

The threshold is chosen to minimize expected business cost, where a missed
positive (false negative) is weighted far more heavily than a false alarm.

Usage:
    # Default business settings (FN costs 10x FP, 10 folds)
    python -m risk_threshold.train --data-path data/accounts.csv

    # Custom settings from a JSON file, with a CLI override
    python -m risk_threshold.train --data-path data/accounts.csv \
        --config configs/risk.json --n-folds 5

Output Files:
    - models/pipeline.joblib: Preprocessor + calibrated classifier
    - models/threshold.json: Selected threshold and its expected cost
    - artifacts/cost_matrix.csv, fold_metrics.csv, oof_predictions.csv
    - artifacts/plots/cost_curve.png, confusion_matrix.png

Example:
    >>> from risk_threshold.train import run_pipeline
    >>> result = run_pipeline(X, y)
    >>> print(f"Best threshold: {result.threshold:.3f}")
"""

# Standard library imports
import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

# Third-party imports
import joblib
import numpy as np
import pandas as pd
from sklearn.pipeline import Pipeline

# Local imports
from risk_threshold.config import PipelineConfig, build_config, load_config
from risk_threshold.data_prep import (
    FeaturePreprocessor,
    load_dataset,
    missing_value_count,
    prepare_features_and_target,
)
from risk_threshold.errors import ConfigurationError, ThresholdPipelineError
from risk_threshold.folds import FoldAssigner
from risk_threshold.report import format_cost, format_summary, format_threshold, save_reports
from risk_threshold.resample import ConditionalResampler, ResampleReport
from risk_threshold.scoring import CalibratedScorer, FoldScore
from risk_threshold.threshold import ThresholdSelector

logger = logging.getLogger(__name__)


# ============================================================================
# RESULT CONTAINER
# ============================================================================

@dataclass
class PipelineResult:
    """Everything produced by one run; discarded once reported."""
    threshold: float
    expected_cost: float
    cost_matrix: pd.DataFrame
    mean_costs: pd.Series
    fold_ids: np.ndarray
    probabilities: np.ndarray
    fold_scores: List[FoldScore]
    X: pd.DataFrame
    y: pd.Series
    resample_report: ResampleReport
    preprocessor: FeaturePreprocessor
    config: PipelineConfig

    @property
    def failed_folds(self) -> List[int]:
        return [s.fold for s in self.fold_scores if s.failed]

    @property
    def unconverged_folds(self) -> List[int]:
        return [s.fold for s in self.fold_scores if not s.failed and not s.converged]


# ============================================================================
# MAIN PIPELINE
# ============================================================================

def run_pipeline(
    X_raw: pd.DataFrame,
    y: pd.Series,
    config: Optional[PipelineConfig] = None,
) -> PipelineResult:
    """
    Select the cost-minimizing threshold for (X_raw, y).

    Pipeline Flow:
        X_raw → FeaturePreprocessor → ConditionalResampler (maybe)
              → FoldAssigner → CalibratedScorer (per fold)
              → ThresholdSelector → (threshold, mean cost)

    Args:
        X_raw: Numeric feature matrix, may contain NaN
        y: 0/1 labels aligned with X_raw
        config: Pipeline configuration (defaults if None)

    Returns:
        PipelineResult

    Raises:
        InsufficientDataError: All-missing column or no usable feature
        ResamplingError: Resampling triggered with < 2 minority samples
        InsufficientSamplesError: A class has fewer members than folds
        NoValidThresholdError: Every fold failed
    """
    config = config or PipelineConfig()
    logger.info(
        f"Cost weights FP={config.fp_weight:g}, FN={config.fn_weight:g} "
        f"(FN:FP ratio {config.cost_ratio:g})"
    )
    y = pd.Series(np.asarray(y).astype(int), name=getattr(y, "name", None))

    if len(X_raw) != len(y):
        raise ValueError(f"Features and target lengths must match: {len(X_raw)} vs {len(y)}")

    # ========================================================================
    # STEP 1: FEATURE PREPROCESSING
    # ========================================================================
    n_missing = missing_value_count(X_raw)
    if n_missing:
        logger.info(f"Imputing {n_missing} missing values with column medians")
    preprocessor = FeaturePreprocessor()
    X = preprocessor.fit_transform(X_raw).reset_index(drop=True)

    # ========================================================================
    # STEP 2: CONDITIONAL RESAMPLING
    # ========================================================================
    resampler = ConditionalResampler(
        minority_trigger=config.minority_trigger,
        target_ratio=config.target_ratio,
        k_neighbors=config.smote_k_neighbors,
        seed=config.seed,
    )
    X_r, y_r = resampler.fit_resample(X, y)

    # ========================================================================
    # STEP 3: STRATIFIED FOLD ASSIGNMENT
    # ========================================================================
    fold_ids = FoldAssigner(n_folds=config.n_folds, seed=config.seed).assign(X_r, y_r)

    # ========================================================================
    # STEP 4: CALIBRATED OUT-OF-FOLD SCORING
    # ========================================================================
    scorer = CalibratedScorer(
        base_estimator=config.base_estimator,
        calibration_cv=config.calibration_cv,
        max_iter=config.max_iter,
        seed=config.seed,
        n_jobs=config.n_jobs,
    )
    fold_scores = scorer.score_all(X_r, y_r, fold_ids)
    probabilities = scorer.out_of_fold(fold_scores, len(y_r))
    failed = [s.fold for s in fold_scores if s.failed]
    if failed:
        logger.warning(f"Folds excluded from cost aggregation: {failed}")

    # ========================================================================
    # STEP 5: COST SWEEP AND SELECTION
    # ========================================================================
    selector = ThresholdSelector(
        fp_weight=config.fp_weight,
        fn_weight=config.fn_weight,
        grid_start=config.grid_start,
        grid_stop=config.grid_stop,
        grid_points=config.grid_points,
    )
    threshold, cost, cost_matrix, mean_costs = selector.evaluate(
        y_r, probabilities, fold_ids, failed_folds=failed
    )

    return PipelineResult(
        threshold=threshold,
        expected_cost=cost,
        cost_matrix=cost_matrix,
        mean_costs=mean_costs,
        fold_ids=fold_ids,
        probabilities=probabilities,
        fold_scores=fold_scores,
        X=X_r,
        y=y_r,
        resample_report=resampler.report_,
        preprocessor=preprocessor,
        config=config,
    )


def build_serving_pipeline(result: PipelineResult) -> Pipeline:
    """
    Train the final calibrated model on all (resampled) rows.

    Why train on full data after CV?
    - CV was only used to choose the threshold
    - The served model should learn from every available row
    """
    scorer = CalibratedScorer(
        base_estimator=result.config.base_estimator,
        calibration_cv=result.config.calibration_cv,
        max_iter=result.config.max_iter,
        seed=result.config.seed,
    )
    model = scorer.fit_final(result.X, result.y)
    return Pipeline([
        ("preprocessor", result.preprocessor.pipeline_),  # Same fitted transform as CV
        ("model", model),
    ])


def threshold_payload(result: PipelineResult) -> Dict[str, Any]:
    """JSON-serializable description of the selected operating point."""
    return {
        "threshold": result.threshold,
        "expected_cost": result.expected_cost,
        "fp_weight": result.config.fp_weight,
        "fn_weight": result.config.fn_weight,
        "n_folds": result.config.n_folds,
        "failed_folds": result.failed_folds,
        "resampled": result.resample_report.resampled,
        "n_samples": int(len(result.y)),
        "features": result.preprocessor.feature_names_,
    }


def run_training(
    data_path: str,
    config: Optional[PipelineConfig] = None,
    model_out_path: str = "models/pipeline.joblib",
    threshold_out_path: str = "models/threshold.json",
    out_dir: str = "artifacts",
    plots: bool = True,
) -> Dict[str, Any]:
    """
    Load a CSV, select the threshold, fit the serving model and save everything.

    Returns:
        Dict with keys 'result', 'threshold', 'expected_cost', 'pipeline_path',
        'threshold_path', 'reports'
    """
    config = config or PipelineConfig()

    os.makedirs(os.path.dirname(model_out_path) or ".", exist_ok=True)
    os.makedirs(os.path.dirname(threshold_out_path) or ".", exist_ok=True)

    df = load_dataset(data_path)
    X, y = prepare_features_and_target(
        df,
        label_column=config.label_column,
        benign_label=config.benign_label,
        id_column=config.id_column,
    )

    result = run_pipeline(X, y, config)

    pipeline = build_serving_pipeline(result)
    joblib.dump(pipeline, model_out_path)
    logger.info(f"Saved final pipeline to: {model_out_path}")

    with open(threshold_out_path, "w") as fh:
        json.dump(threshold_payload(result), fh, indent=2)
    logger.info(f"Saved selected threshold to: {threshold_out_path}")

    reports = save_reports(result, out_dir, plots=plots)

    return {
        "result": result,
        "threshold": result.threshold,
        "expected_cost": result.expected_cost,
        "pipeline_path": model_out_path,
        "threshold_path": threshold_out_path,
        "reports": reports,
    }


# ============================================================================
# COMMAND-LINE INTERFACE
# ============================================================================

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments; unset options fall back to the config file/defaults."""
    parser = argparse.ArgumentParser(
        description="Select a cost-minimizing decision threshold with calibrated cross-validation"
    )

    parser.add_argument("--data-path", type=str, required=True, help="Path to raw CSV dataset")
    parser.add_argument("--config", type=str, default=None, help="JSON file with configuration overrides")

    # Output paths
    parser.add_argument("--model-out", type=str, default="models/pipeline.joblib",
                        help="Output path for the serving pipeline (default: models/pipeline.joblib)")
    parser.add_argument("--threshold-out", type=str, default="models/threshold.json",
                        help="Output path for the threshold JSON (default: models/threshold.json)")
    parser.add_argument("--out-dir", type=str, default="artifacts",
                        help="Directory for reports and plots (default: artifacts)")
    parser.add_argument("--no-plots", action="store_true", help="Skip plot generation")

    # Dataset layout
    parser.add_argument("--label-column", type=str, default=None, help="Label column name")
    parser.add_argument("--benign-label", type=str, default=None, help="Label value meaning benign")
    id_group = parser.add_mutually_exclusive_group()
    id_group.add_argument("--id-column", type=str, default=None, help="Identifier column to drop")
    id_group.add_argument("--no-id-column", action="store_true",
                          help="Dataset has no identifier column; keep every non-label column")

    # Pipeline settings
    parser.add_argument("--n-folds", type=int, default=None, help="Number of CV folds (default: 10)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed (default: 42)")
    parser.add_argument("--minority-trigger", type=float, default=None,
                        help="Resample when prevalence is below this (default: 0.05)")
    parser.add_argument("--target-ratio", type=float, default=None,
                        help="Minority:majority ratio after resampling (default: 0.5)")
    parser.add_argument("--fp-weight", type=float, default=None, help="False positive cost (default: 1)")
    parser.add_argument("--fn-weight", type=float, default=None, help="False negative cost (default: 10)")
    parser.add_argument("--grid-points", type=int, default=None, help="Threshold grid size (default: 100)")
    parser.add_argument("--base-estimator", choices=["logistic", "xgboost"], default=None,
                        help="Base classifier (default: logistic)")
    parser.add_argument("--max-iter", type=int, default=None, help="Logistic regression iterations")
    parser.add_argument("--n-jobs", type=int, default=None, help="Folds scored in parallel")

    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    config = load_config(
        args.config,
        label_column=args.label_column,
        benign_label=args.benign_label,
        id_column=args.id_column,
        n_folds=args.n_folds,
        seed=args.seed,
        minority_trigger=args.minority_trigger,
        target_ratio=args.target_ratio,
        fp_weight=args.fp_weight,
        fn_weight=args.fn_weight,
        grid_points=args.grid_points,
        base_estimator=args.base_estimator,
        max_iter=args.max_iter,
        n_jobs=args.n_jobs,
    )
    if args.no_id_column:
        # None means "unset" to load_config, so clear the column explicitly
        config = build_config({**config.model_dump(), "id_column": None})
    return config


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = parse_args(argv)

    try:
        config = config_from_args(args)
        outcome = run_training(
            data_path=args.data_path,
            config=config,
            model_out_path=args.model_out,
            threshold_out_path=args.threshold_out,
            out_dir=args.out_dir,
            plots=not args.no_plots,
        )
    except ConfigurationError as e:
        logger.error(f"ConfigurationError: {e}")
        return 2
    except ThresholdPipelineError as e:
        logger.error(f"{type(e).__name__}: {e} | context={e.context()}")
        return 1

    result = outcome["result"]
    print(format_summary(result))
    if result.unconverged_folds:
        print(f"Folds with best-effort (unconverged) fits: {result.unconverged_folds}")
    logger.info(
        f"Threshold {format_threshold(outcome['threshold'])}, "
        f"expected cost {format_cost(outcome['expected_cost'])}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
