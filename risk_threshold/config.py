# risk_threshold/config.py
"""
Pipeline Configuration for the Cost-Sensitive Threshold Optimizer.

All tunable constants of the pipeline live in a single validated pydantic
model. Defaults reproduce the documented business setup:

    - Resample only when minority prevalence is below 5%
    - Oversample the minority class up to a 1:2 minority:majority ratio
    - 10 stratified, shuffled folds with a fixed seed
    - False negatives cost 10x a false positive
    - 100 candidate thresholds evenly spaced over [0.01, 0.99]

Values can be overridden from a JSON file and then from keyword arguments
(the CLI passes its flags this way), so the precedence is:

    defaults  <  JSON file  <  explicit overrides

Usage Example:
    from risk_threshold.config import load_config

    config = load_config("configs/risk.json", n_folds=5)
    print(config.fn_weight / config.fp_weight)
"""

# Standard library imports
import json
import os
from typing import Any, Dict, Literal, Optional

# Third-party imports
from pydantic import BaseModel, Field, ValidationError, model_validator

# Local imports
from risk_threshold.errors import ConfigurationError


# ============================================================================
# CONFIGURATION MODEL
# ============================================================================

class PipelineConfig(BaseModel):
    """
    Validated configuration for one threshold-optimization run.

    Attributes:
        label_column: Name of the label column in the raw dataset
        benign_label: Sentinel value of the label column meaning "benign" (encoded 0)
        id_column: Identifier column, dropped before modelling
        minority_trigger: Resample only when prevalence is strictly below this
        target_ratio: Minority:majority ratio reached by oversampling
        smote_k_neighbors: Nearest minority neighbours used for interpolation
        n_folds: Number of stratified folds (K)
        seed: Seed for resampling, fold shuffling and stochastic estimators
        fp_weight: Cost of one false positive
        fn_weight: Cost of one false negative
        grid_start / grid_stop / grid_points: Threshold grid definition
        base_estimator: "logistic" or "xgboost"
        calibration_cv: Internal folds of the sigmoid calibrator
        max_iter: Iteration budget of the logistic regression solver
        n_jobs: Folds scored in parallel (1 = sequential)
    """
    # Dataset layout
    label_column: str = Field("label", min_length=1, description="Label column name")
    benign_label: Any = Field("benign", description="Label value encoded as 0")
    id_column: Optional[str] = Field("id", description="Identifier column excluded from features")

    # Resampling
    minority_trigger: float = Field(0.05, gt=0, lt=1, description="Prevalence below which SMOTE runs")
    target_ratio: float = Field(0.5, gt=0, le=1, description="Minority:majority ratio after SMOTE")
    smote_k_neighbors: int = Field(5, ge=1, description="SMOTE nearest neighbours")

    # Cross-validation
    n_folds: int = Field(10, ge=2, description="Number of stratified folds")
    seed: int = Field(42, ge=0, description="Random seed")

    # Costs
    fp_weight: float = Field(1.0, ge=0, description="Cost of a false positive")
    fn_weight: float = Field(10.0, ge=0, description="Cost of a false negative")

    # Threshold grid
    grid_start: float = Field(0.01, gt=0, lt=1, description="First candidate threshold")
    grid_stop: float = Field(0.99, gt=0, lt=1, description="Last candidate threshold")
    grid_points: int = Field(100, ge=1, description="Number of candidate thresholds")

    # Model
    base_estimator: Literal["logistic", "xgboost"] = Field("logistic", description="Base classifier")
    calibration_cv: int = Field(3, ge=2, description="Folds used by the sigmoid calibrator")
    max_iter: int = Field(1000, ge=1, description="Logistic regression iteration budget")
    n_jobs: int = Field(1, description="Parallel fold workers (-1 = all cores)")

    @model_validator(mode="after")
    def _check_grid(self) -> "PipelineConfig":
        if self.grid_points > 1 and self.grid_start >= self.grid_stop:
            raise ValueError("grid_start must be smaller than grid_stop")
        if self.fp_weight == 0 and self.fn_weight == 0:
            raise ValueError("at least one of fp_weight / fn_weight must be positive")
        return self

    @property
    def cost_ratio(self) -> float:
        """FN:FP weight ratio (inf when false positives are free)."""
        if self.fp_weight == 0:
            return float("inf")
        return self.fn_weight / self.fp_weight


# ============================================================================
# LOADING
# ============================================================================

def build_config(values: Dict[str, Any]) -> PipelineConfig:
    """Validate a mapping into a PipelineConfig, raising ConfigurationError."""
    try:
        return PipelineConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(path: Optional[str] = None, **overrides: Any) -> PipelineConfig:
    """
    Build a configuration from defaults, an optional JSON file and overrides.

    Overrides whose value is None are ignored so argparse namespaces can be
    passed through without clobbering file values.

    Args:
        path: Optional JSON file with a flat mapping of PipelineConfig fields
        **overrides: Field values taking precedence over the file

    Returns:
        PipelineConfig: Validated configuration

    Raises:
        ConfigurationError: If the file is missing/malformed or a value is invalid
    """
    values: Dict[str, Any] = {}

    if path is not None:
        if not os.path.exists(path):
            raise ConfigurationError(f"Config file not found: {path}")
        try:
            with open(path, "r") as fh:
                file_values = json.load(fh)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Config file {path} is not valid JSON: {e}") from e
        if not isinstance(file_values, dict):
            raise ConfigurationError(f"Config file {path} must contain a JSON object")
        values.update(file_values)

    values.update({k: v for k, v in overrides.items() if v is not None})
    return build_config(values)
