# risk_threshold/data_prep.py
"""
Data Preprocessing Module for the Account-Risk Threshold Optimizer.

This module handles everything between the raw tabular dataset and the
feature matrix consumed by resampling and cross-validation:
- Label encoding (benign sentinel → 0, every other value → 1)
- Identifier removal and numeric coercion of feature columns
- Median imputation of missing values
- Removal of zero-variance features
- Feature standardization (z-score)

The three numeric stages are order-sensitive and run as a single
scikit-learn Pipeline so the exact same transformation can be embedded in
the final served model.

Usage Example:
    from risk_threshold.data_prep import (
        load_dataset,
        prepare_features_and_target,
        FeaturePreprocessor,
    )

    df = load_dataset("data/accounts.csv")
    X, y = prepare_features_and_target(df, label_column="label", benign_label="benign")

    preprocessor = FeaturePreprocessor()
    X_clean = preprocessor.fit_transform(X)
"""

# Standard library imports
import logging
from typing import Any, List, Optional, Tuple

# Third-party imports
import numpy as np
import pandas as pd

# Scikit-learn imports for preprocessing pipeline
from sklearn.feature_selection import VarianceThreshold
from sklearn.impute import SimpleImputer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

# Local imports
from risk_threshold.errors import InsufficientDataError

logger = logging.getLogger(__name__)


# ============================================================================
# DATASET LOADING
# ============================================================================

def load_dataset(path: str) -> pd.DataFrame:
    """Read the raw CSV dataset."""
    logger.info(f"Loading data from: {path}")
    df = pd.read_csv(path)
    logger.info(f"Loaded data: {len(df)} rows, {df.shape[1]} columns")
    return df


# ============================================================================
# LABEL ENCODING
# ============================================================================
# The label column holds a known "benign" sentinel; every other value is a
# positive (risky) case. The mapping is fixed here and never changes later.

def encode_labels(values: pd.Series, benign_label: Any) -> pd.Series:
    """
    Encode a label column as 0 (benign) / 1 (everything else).

    Args:
        values: Raw label column
        benign_label: Sentinel value meaning "benign"

    Returns:
        pd.Series: Integer labels with the same index and name as the input

    Example:
        >>> encode_labels(pd.Series(["benign", "ransom", "benign"]), "benign").tolist()
        [0, 1, 0]

    Notes:
        Encoding an already-encoded vector with benign_label=0 is a no-op,
        so the step is safe to apply twice.
    """
    values = pd.Series(values)

    # "0" from the command line should match a numeric label column
    if isinstance(benign_label, str) and pd.api.types.is_numeric_dtype(values):
        try:
            benign_label = float(benign_label)
        except ValueError:
            pass

    encoded = (values != benign_label).astype(int)
    encoded.name = values.name
    return encoded


# ============================================================================
# DATA PREPARATION
# ============================================================================

def prepare_features_and_target(
    df: pd.DataFrame,
    label_column: str = "label",
    benign_label: Any = "benign",
    id_column: Optional[str] = "id",
) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Split a raw dataset into a numeric feature matrix X and binary labels y.

    Processing Steps:
        Input DataFrame
            ↓
        Remove identifier column (not predictive)
            ↓
        Encode label column (benign → 0, others → 1)
            ↓
        Coerce remaining columns to numeric (unparseable cells → NaN)
            ↓
        Return (X, y)

    Args:
        df: Raw DataFrame as loaded from CSV
        label_column: Name of the label column
        benign_label: Sentinel value meaning "benign"
        id_column: Identifier column to drop (None to keep all columns)

    Returns:
        Tuple of:
            - X (DataFrame): Numeric features, may contain NaN
            - y (Series): 0/1 labels aligned with X

    Raises:
        InsufficientDataError: If the label column is missing or no feature
            column remains
    """
    # Work on a copy to avoid modifying the caller's DataFrame
    df = df.copy()

    if label_column not in df.columns:
        raise InsufficientDataError(
            f"Label column '{label_column}' not found in dataset", column=label_column
        )

    # Step 1: Drop identifier column
    if id_column is not None and id_column in df.columns:
        df = df.drop(columns=[id_column])

    # Step 2: Separate and encode target
    y = encode_labels(df[label_column], benign_label)
    X = df.drop(columns=[label_column])

    if X.shape[1] == 0:
        raise InsufficientDataError("Dataset has no feature columns")

    # Step 3: Every remaining column is a numeric feature
    X = X.apply(pd.to_numeric, errors="coerce").astype(float)

    logger.info(
        f"Prepared {len(X)} samples, {X.shape[1]} features, "
        f"{int(y.sum())} positives ({y.mean():.2%})"
    )
    return X, y


# ============================================================================
# FEATURE PREPROCESSOR
# ============================================================================

def get_preprocessor() -> Pipeline:
    """
    Build the numeric preprocessing pipeline.

    Pipeline Flow:
        Raw Features → [Median Impute] → [Drop Zero Variance] → [Standardize]

    Returns:
        Pipeline: Unfitted scikit-learn pipeline producing pandas output
    """
    pipeline = Pipeline(
        steps=[
            # Median is robust to the heavy tails of account features
            ("imputer", SimpleImputer(strategy="median")),

            # threshold=0.0 keeps only columns with strictly positive variance
            ("variance", VarianceThreshold(threshold=0.0)),

            # Result: Mean=0, StdDev=1 for each remaining feature
            ("scaler", StandardScaler()),
        ]
    )
    pipeline.set_output(transform="pandas")
    return pipeline


class FeaturePreprocessor:
    """
    Median imputation, zero-variance filtering and standardization.

    The stages run in a fixed order; each consumes the previous stage's
    output. Labels are never consulted.

    Attributes (after fit):
        pipeline_: Fitted scikit-learn Pipeline
        feature_names_: Columns kept after variance filtering
        dropped_columns_: Columns removed as zero-variance
    """

    def __init__(self):
        self.pipeline_: Optional[Pipeline] = None
        self.feature_names_: List[str] = []
        self.dropped_columns_: List[str] = []

    def fit_transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """
        Fit all stages on X and return the transformed matrix.

        Raises:
            InsufficientDataError: If a column is entirely missing (undefined
                median) or every column has zero variance
        """
        X = pd.DataFrame(X).rename(columns=str)

        # Median is undefined for a fully missing column
        all_missing = X.columns[X.isna().all(axis=0)]
        if len(all_missing) > 0:
            raise InsufficientDataError(
                f"Column '{all_missing[0]}' is entirely missing; median is undefined",
                column=str(all_missing[0]),
            )

        # Only NaN counts as missing; infinities are bad input
        non_finite = X.columns[np.isinf(X.to_numpy(dtype=float)).any(axis=0)]
        if len(non_finite) > 0:
            raise InsufficientDataError(
                f"Column '{non_finite[0]}' contains infinite values",
                column=str(non_finite[0]),
            )

        # Same check VarianceThreshold makes, done up front for a clear error
        imputed = X.fillna(X.median())
        if not (imputed.var(axis=0, ddof=0) > 0).any():
            raise InsufficientDataError(
                f"No feature with non-zero variance among {list(X.columns)}"
            )

        pipeline = get_preprocessor()
        X_out = pipeline.fit_transform(X)

        self.pipeline_ = pipeline
        self.feature_names_ = list(X_out.columns)
        self.dropped_columns_ = [c for c in X.columns if c not in set(self.feature_names_)]

        if self.dropped_columns_:
            logger.warning(f"Dropped zero-variance columns: {self.dropped_columns_}")
        logger.info(
            f"Preprocessed features: kept {len(self.feature_names_)} of {X.shape[1]} columns"
        )
        return X_out

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """Apply the fitted stages to new data."""
        if self.pipeline_ is None:
            raise RuntimeError("FeaturePreprocessor is not fitted")
        X = pd.DataFrame(X).rename(columns=str)
        return self.pipeline_.transform(X)


def missing_value_count(X: pd.DataFrame) -> int:
    """Total number of missing cells."""
    return int(np.isnan(np.asarray(X, dtype=float)).sum())
