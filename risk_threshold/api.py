# risk_threshold/api.py
"""
FastAPI Inference Service for the Account-Risk Scorer.

Serves the calibrated model trained by risk_threshold.train together with
the cost-optimal threshold selected by cross-validation.

Core Endpoints:
    1. GET  /health          - Model and threshold loading status
    2. GET  /threshold       - Selected threshold, expected cost and cost weights
    3. POST /predict         - Score a single account
    4. POST /predict/batch   - Score up to 1000 accounts

Run locally:
    uvicorn risk_threshold.api:app --reload

Artifact paths default to models/pipeline.joblib and models/threshold.json
and can be changed with the RISK_THRESHOLD_MODEL_PATH and
RISK_THRESHOLD_THRESHOLD_PATH environment variables.

Notes:
    - Missing or null features are imputed with the training medians
    - Decision rule: "risk" if probability >= threshold, else "benign"
"""

# Standard library imports
import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

# Third-party imports
import joblib
import numpy as np
import pandas as pd

# FastAPI imports
from fastapi import FastAPI, HTTPException, status

# Pydantic for data validation
from pydantic import BaseModel, Field

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================================================
# PYDANTIC MODELS FOR REQUEST/RESPONSE VALIDATION
# ============================================================================

class AccountFeatures(BaseModel):
    """
    Feature values for one account.

    Keys must match the training feature names; absent or null values are
    imputed by the model's median imputer.
    """
    features: Dict[str, Optional[float]] = Field(..., description="Feature name -> value")

    class Config:
        json_schema_extra = {
            "example": {"features": {"logins_24h": 3, "failed_payments_30d": 0, "account_age_days": 412}}
        }


class BatchAccountFeatures(BaseModel):
    """Batch scoring request (1-1000 accounts)."""
    accounts: List[AccountFeatures] = Field(
        ...,
        min_length=1,
        max_length=1000,
        description="Accounts to score (max 1000)"
    )


class PredictionResponse(BaseModel):
    risk_probability: float = Field(..., description="Calibrated probability of the risky class")
    decision: str = Field(..., description="'risk' or 'benign'")
    threshold: float = Field(..., description="Cost-optimal threshold used")
    margin: float = Field(..., description="Probability minus threshold")
    timestamp: str = Field(..., description="Prediction timestamp (ISO format)")


class BatchPredictionResponse(BaseModel):
    predictions: List[PredictionResponse]
    total_processed: int
    timestamp: str


class HealthResponse(BaseModel):
    status: str = Field(..., description="API status (healthy/unhealthy)")
    model_loaded: bool
    threshold_loaded: bool
    model_path: str
    threshold_path: str
    timestamp: str


class ThresholdResponse(BaseModel):
    threshold: float
    expected_cost: Optional[float] = None
    fp_weight: Optional[float] = None
    fn_weight: Optional[float] = None
    features: List[str] = []


# ============================================================================
# FASTAPI APPLICATION INITIALIZATION
# ============================================================================

app = FastAPI(
    title="Account Risk Threshold API",
    description="Calibrated account-risk scoring at a cost-optimal decision threshold",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)


# ============================================================================
# GLOBAL VARIABLES
# ============================================================================
# Loaded once at startup and reused for all predictions

MODEL = None            # Fitted pipeline (preprocessor + calibrated classifier)
THRESHOLD = None        # Cost-optimal threshold
THRESHOLD_INFO: Dict[str, Any] = {}
FEATURE_COLUMNS: Optional[List[str]] = None

MODEL_PATH = os.environ.get("RISK_THRESHOLD_MODEL_PATH", "models/pipeline.joblib")
THRESHOLD_PATH = os.environ.get("RISK_THRESHOLD_THRESHOLD_PATH", "models/threshold.json")


def load_artifacts(model_path: str = MODEL_PATH, threshold_path: str = THRESHOLD_PATH) -> None:
    """
    Load the serving pipeline and threshold into the module globals.

    Raises:
        FileNotFoundError: If either artifact is missing
    """
    global MODEL, THRESHOLD, THRESHOLD_INFO, FEATURE_COLUMNS, MODEL_PATH, THRESHOLD_PATH

    logger.info(f"Loading pipeline from: {model_path}")
    if not os.path.exists(model_path):
        raise FileNotFoundError(f"Model file not found: {model_path}")
    model = joblib.load(model_path)

    logger.info(f"Loading threshold from: {threshold_path}")
    if not os.path.exists(threshold_path):
        raise FileNotFoundError(f"Threshold file not found: {threshold_path}")
    with open(threshold_path, "r") as f:
        info = json.load(f)

    MODEL = model
    THRESHOLD_INFO = info
    THRESHOLD = float(info["threshold"])
    FEATURE_COLUMNS = [str(c) for c in getattr(model, "feature_names_in_", info.get("features", []))]
    MODEL_PATH, THRESHOLD_PATH = model_path, threshold_path

    logger.info(f"✓ Model loaded, threshold {THRESHOLD:.3f}, {len(FEATURE_COLUMNS)} features")


# ============================================================================
# STARTUP EVENT HANDLER
# ============================================================================

@app.on_event("startup")
async def startup_load():
    """Load artifacts at startup; the API reports unhealthy if they are missing."""
    try:
        load_artifacts(MODEL_PATH, THRESHOLD_PATH)
    except FileNotFoundError as e:
        logger.error(f"✗ {e}")
        logger.error("Run 'python -m risk_threshold.train' first to generate the artifacts")


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def predict_frame(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Score rows of a feature frame against the loaded threshold."""
    # Order columns as in training; absent features become NaN and are imputed
    df = df.reindex(columns=FEATURE_COLUMNS).astype(float)
    probabilities = MODEL.predict_proba(df)[:, 1]

    now = datetime.now().isoformat()
    return [
        {
            "risk_probability": round(float(p), 4),
            "decision": "risk" if p >= THRESHOLD else "benign",
            "threshold": THRESHOLD,
            "margin": round(float(p - THRESHOLD), 4),
            "timestamp": now,
        }
        for p in probabilities
    ]


def _require_model() -> None:
    if MODEL is None or THRESHOLD is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Model not loaded"
        )


def _to_frame(accounts: List[AccountFeatures]) -> pd.DataFrame:
    known = set(FEATURE_COLUMNS)
    for account in accounts:
        if not known.intersection(account.features):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"No known features supplied; expected some of {FEATURE_COLUMNS}"
            )
    rows = [{k: (np.nan if v is None else v) for k, v in a.features.items()} for a in accounts]
    return pd.DataFrame(rows)


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["Monitoring"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy" if MODEL is not None and THRESHOLD is not None else "unhealthy",
        "model_loaded": MODEL is not None,
        "threshold_loaded": THRESHOLD is not None,
        "model_path": MODEL_PATH,
        "threshold_path": THRESHOLD_PATH,
        "timestamp": datetime.now().isoformat()
    }


@app.get("/threshold", response_model=ThresholdResponse, tags=["Model"])
async def get_threshold():
    """Selected operating point and the cost weights it was optimized for"""
    _require_model()
    return {
        "threshold": THRESHOLD,
        "expected_cost": THRESHOLD_INFO.get("expected_cost"),
        "fp_weight": THRESHOLD_INFO.get("fp_weight"),
        "fn_weight": THRESHOLD_INFO.get("fn_weight"),
        "features": FEATURE_COLUMNS,
    }


@app.post("/predict", response_model=PredictionResponse, tags=["Prediction"])
async def predict(account: AccountFeatures):
    """Score a single account"""
    _require_model()
    df = _to_frame([account])
    try:
        return predict_frame(df)[0]
    except ValueError as e:
        logger.error(f"Prediction error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Prediction failed: {str(e)}"
        )


@app.post("/predict/batch", response_model=BatchPredictionResponse, tags=["Prediction"])
async def predict_batch(batch: BatchAccountFeatures):
    """Score a batch of accounts"""
    _require_model()
    df = _to_frame(batch.accounts)
    try:
        predictions = predict_frame(df)
    except ValueError as e:
        logger.error(f"Batch prediction error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Batch prediction failed: {str(e)}"
        )
    logger.info(f"Scored batch of {len(predictions)} accounts")
    return {
        "predictions": predictions,
        "total_processed": len(predictions),
        "timestamp": datetime.now().isoformat()
    }
