"""
FastAPI serving endpoint for the churn model.

This module provides a REST API for model inference with input validation,
error handling and health monitoring.

Key Features:
- Input realignment to the raw columns seen during training
- Categorical validation against the telco option sets
- Batch prediction support (max 1000 customers)
- Health and model info endpoints

The saved pipeline carries its own preprocessing, so requests only need the
clean telco schema; ``input_columns.txt`` fixes the column order.
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from contextlib import asynccontextmanager
import pandas as pd
import numpy as np
import yaml
import logging
import uvicorn
from pathlib import Path
from typing import Dict, List, Optional, Any
from datetime import datetime
import time
import os

from churnml.pipeline.preprocessing import TELCO_CATEGORIES
from churnml.serving.artifacts import ModelArtifacts, load_model_artifacts

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 1000

# Loaded once at startup, read-only afterwards
artifacts: Optional[ModelArtifacts] = None


class PredictionError(ValueError):
    """Request data the loaded model cannot score."""


class CustomerData(BaseModel):
    """Input schema for one customer in the clean telco schema."""

    customer_id: Optional[str] = Field(None, description="Customer identifier (not used by the model)")
    female: int = Field(..., ge=0, le=1, description="Female indicator (0 or 1)")
    senior_citizen: int = Field(..., ge=0, le=1, description="Senior citizen indicator (0 or 1)")
    partner: int = Field(..., ge=0, le=1, description="Partner indicator (0 or 1)")
    dependents: int = Field(..., ge=0, le=1, description="Dependents indicator (0 or 1)")
    tenure: float = Field(..., ge=0, description="Customer tenure in months")
    phone_service: int = Field(..., ge=0, le=1, description="Phone service indicator (0 or 1)")
    paperless_billing: int = Field(..., ge=0, le=1, description="Paperless billing indicator (0 or 1)")
    monthly_charges: float = Field(..., ge=0, description="Monthly charges")
    total_charges: Optional[float] = Field(None, ge=0, description="Total charges (blank for new customers)")
    multiple_lines: str = Field(..., description="No, No phone service, Yes")
    internet_service: str = Field(..., description="DSL, Fiber optic, No")
    online_security: str = Field(..., description="No, No internet service, Yes")
    online_backup: str = Field(..., description="No, No internet service, Yes")
    device_protection: str = Field(..., description="No, No internet service, Yes")
    tech_support: str = Field(..., description="No, No internet service, Yes")
    streaming_tv: str = Field(..., description="No, No internet service, Yes")
    streaming_movies: str = Field(..., description="No, No internet service, Yes")
    contract: str = Field(..., description="Month-to-month, One year, Two year")
    payment_method: str = Field(..., description="Bank transfer, Credit card, Electronic check, Mailed check")

    @field_validator(*TELCO_CATEGORIES.keys())
    @classmethod
    def validate_option(cls, v, info):
        """Validate categorical fields against their option sets."""
        options = TELCO_CATEGORIES[info.field_name]
        if v not in options:
            raise ValueError(f"{info.field_name} must be one of {options}")
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "customer_id": "7590-VHVEG",
                "female": 1,
                "senior_citizen": 0,
                "partner": 1,
                "dependents": 0,
                "tenure": 1,
                "phone_service": 0,
                "paperless_billing": 1,
                "monthly_charges": 29.85,
                "total_charges": 29.85,
                "multiple_lines": "No phone service",
                "internet_service": "DSL",
                "online_security": "No",
                "online_backup": "Yes",
                "device_protection": "No",
                "tech_support": "No",
                "streaming_tv": "No",
                "streaming_movies": "No",
                "contract": "Month-to-month",
                "payment_method": "Electronic check"
            }
        }
    }


class PredictionResponse(BaseModel):
    """Response schema for predictions."""

    customer_id: Optional[str] = Field(None, description="Customer identifier")
    churn: str = Field(..., description="Predicted churn label (Yes/No)")
    prediction: int = Field(..., ge=0, le=1, description="Binary prediction (0/1)")
    probability: float = Field(..., ge=0, le=1, description="Churn probability")
    confidence: str = Field(..., description="Confidence level")
    timestamp: str = Field(..., description="Prediction timestamp")
    model_version: str = Field(..., description="Model version")


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str = Field(..., description="Service status")
    model_loaded: bool = Field(..., description="Whether model is loaded")
    timestamp: str = Field(..., description="Health check timestamp")
    uptime_seconds: float = Field(..., description="Service uptime in seconds")


class BatchPredictionRequest(BaseModel):
    """Batch prediction request schema."""

    customers: List[CustomerData] = Field(..., description="List of customer data")


class BatchPredictionResponse(BaseModel):
    """Batch prediction response schema."""

    predictions: List[PredictionResponse] = Field(..., description="List of predictions")
    total_processed: int = Field(..., description="Total number of customers processed")
    processing_time_seconds: float = Field(..., description="Total processing time")


# Global startup time for uptime calculation
startup_time = time.time()


def load_serving_config(path: str = './config/serving_config.yaml') -> Dict[str, Any]:
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    return {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the artifact directory once on startup."""
    global artifacts
    logger.info("Starting Churn Prediction API...")
    model_dir = os.getenv('MODEL_DIR', './models')
    try:
        artifacts = load_model_artifacts(model_dir)
    except FileNotFoundError as e:
        artifacts = None
        logger.error(f"No model available, prediction endpoints will return 503: {e}")
    logger.info("API startup completed")
    yield
    artifacts = None
    logger.info("API shutdown completed")


def create_app() -> FastAPI:
    """Create FastAPI application."""
    api_config = load_serving_config().get('api', {})

    app = FastAPI(
        title=api_config.get('title', 'Churn Prediction API'),
        description=api_config.get('description', 'Binary classification of customer churn'),
        version=api_config.get('version', '1.0.0'),
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


app = create_app()


def preprocess_input(customers: List[CustomerData]) -> pd.DataFrame:
    """Build a frame in the training column order."""
    df = pd.DataFrame([c.model_dump(exclude={'customer_id'}) for c in customers])

    if artifacts is not None and artifacts.input_columns:
        missing = [col for col in artifacts.input_columns if col not in df.columns]
        if missing:
            logger.info(f"Filling {len(missing)} missing inputs for imputation: {missing[:5]}")
        df = df.reindex(columns=artifacts.input_columns)
    else:
        logger.warning("No input_columns available - prediction may fail due to column mismatch")

    return df


def get_confidence_level(probability: float) -> str:
    """Determine confidence level based on probability."""
    if probability < 0.2 or probability > 0.8:
        return "High"
    elif probability < 0.4 or probability > 0.6:
        return "Medium"
    else:
        return "Low"


def _json_safe(metrics: Dict[str, Any]) -> Dict[str, Any]:
    """Replace NaN/inf (AUCs on a single-class test split) with None."""
    return {
        k: None if isinstance(v, float) and not np.isfinite(v) else v
        for k, v in metrics.items()
    }


def _require_model() -> ModelArtifacts:
    if artifacts is None:
        raise HTTPException(status_code=503, detail="Model not loaded")
    return artifacts


def _predict_frame(loaded: ModelArtifacts, customers: List[CustomerData]) -> List[PredictionResponse]:
    df = preprocess_input(customers)
    probabilities = loaded.model.predict_proba(df)[:, 1]
    predictions = (probabilities >= loaded.threshold).astype(int)
    timestamp = datetime.now().isoformat()

    return [
        PredictionResponse(
            customer_id=customer.customer_id,
            churn="Yes" if pred == 1 else "No",
            prediction=int(pred),
            probability=float(np.clip(proba, 0.0, 1.0)),
            confidence=get_confidence_level(float(proba)),
            timestamp=timestamp,
            model_version=loaded.algorithm,
        )
        for customer, proba, pred in zip(customers, probabilities, predictions)
    ]


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    uptime = time.time() - startup_time

    return HealthResponse(
        status="healthy" if artifacts is not None else "unhealthy",
        model_loaded=artifacts is not None,
        timestamp=datetime.now().isoformat(),
        uptime_seconds=uptime
    )


@app.post("/predict", response_model=PredictionResponse)
async def predict(customer: CustomerData):
    """Make prediction for a single customer."""
    loaded = _require_model()

    try:
        start_time = time.time()
        response = _predict_frame(loaded, [customer])[0]
        logger.info(f"Prediction for {customer.customer_id or 'anonymous customer'}: "
                    f"prob={response.probability:.3f}, churn={response.churn}, "
                    f"time={time.time() - start_time:.3f}s")
        return response

    except ValueError as e:
        logger.warning(f"Rejected prediction input: {e}")
        raise PredictionError(str(e)) from e
    except Exception as e:
        logger.error(f"Prediction error for {customer.customer_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Prediction failed: {str(e)}")


@app.post("/predict/batch", response_model=BatchPredictionResponse)
async def predict_batch(request: BatchPredictionRequest):
    """Make predictions for multiple customers."""
    loaded = _require_model()

    if len(request.customers) > MAX_BATCH_SIZE:
        raise HTTPException(status_code=400, detail=f"Batch size too large (max {MAX_BATCH_SIZE})")

    try:
        start_time = time.time()
        predictions = _predict_frame(loaded, request.customers) if request.customers else []
        processing_time = time.time() - start_time

        logger.info(f"Batch prediction completed: {len(predictions)} customers "
                    f"in {processing_time:.3f}s")

        return BatchPredictionResponse(
            predictions=predictions,
            total_processed=len(predictions),
            processing_time_seconds=processing_time
        )

    except ValueError as e:
        logger.warning(f"Rejected prediction input: {e}")
        raise PredictionError(str(e)) from e
    except Exception as e:
        logger.error(f"Batch prediction error: {e}")
        raise HTTPException(status_code=500, detail=f"Batch prediction failed: {str(e)}")


@app.get("/model/info")
async def model_info():
    """Get model information."""
    loaded = _require_model()

    return {
        "model_type": type(loaded.model).__name__,
        "algorithm": loaded.algorithm,
        "threshold": loaded.threshold,
        "input_columns": loaded.input_columns,
        "feature_names": loaded.feature_names,
        "total_features": len(loaded.feature_names),
        "metrics": _json_safe(loaded.metrics),
    }


@app.exception_handler(PredictionError)
async def prediction_error_handler(request: Request, exc: PredictionError):
    """Handle inputs rejected during prediction."""
    return JSONResponse(
        status_code=400,
        content={"detail": f"Validation error: {str(exc)}"}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


def main():
    """Main function to run the API server."""
    logging.basicConfig(level=logging.INFO)
    server_config = load_serving_config().get('serving', {})

    uvicorn.run(
        "churnml.serving.api:app",
        host=server_config.get('host', '0.0.0.0'),
        port=server_config.get('port', 8000),
        reload=server_config.get('reload', False),
        workers=server_config.get('workers', 1)
    )


if __name__ == "__main__":
    main()
