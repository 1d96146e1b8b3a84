from __future__ import annotations

from predictnow.config.settings import PredictNowSettings, get_settings
from predictnow.core.models import (
    Job,
    JobCreationResult,
    ModelResponse,
    Performance,
    PredictResult,
    Progress,
    TrainingResult,
    TrainingStatus,
    TrainModelResponse,
)
from predictnow.core.parameters import (
    Analysis,
    BacktestParameters,
    Boost,
    FeatureSelection,
    LivePredictionParameters,
    Mode,
    ModelParameters,
    ModelType,
    PortfolioParameters,
)
from predictnow.core.predictnow_client import PredictNowClient
from predictnow.core.weights import weights_frame

__all__ = [
    "PredictNowClient",
    "PredictNowSettings",
    "get_settings",
    "Job",
    "JobCreationResult",
    "ModelResponse",
    "Performance",
    "PredictResult",
    "Progress",
    "TrainingResult",
    "TrainingStatus",
    "TrainModelResponse",
    "Analysis",
    "BacktestParameters",
    "Boost",
    "FeatureSelection",
    "LivePredictionParameters",
    "Mode",
    "ModelParameters",
    "ModelType",
    "PortfolioParameters",
    "weights_frame",
]
