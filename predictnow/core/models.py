from __future__ import annotations

import json
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from pydantic import Field, PrivateAttr, field_validator

from predictnow.core.wire import WireModel, as_text, coerce

SUCCESS_STATUS = "SUCCESS"
COMPLETED_STATE = "COMPLETED"

_EMPTY_JSON = "{}"


class Performance(WireModel):
    portfolio_return: float = Field(0.0, alias="return")
    risk: float = 0.0
    sharpe_ratio: float = Field(0.0, alias="sharpe")
    cagr: float = Field(0.0, alias="CAGR")
    ulcer_index: float = Field(0.0, alias="UI")
    ulcer_performance_index: float = Field(0.0, alias="UPI")
    max_drawdown: float = Field(0.0, alias="MaxDD")

    @field_validator("*", mode="before")
    @classmethod
    def _missing_metric(cls, value: Any) -> Any:
        return 0.0 if value is None else value


class Progress(WireModel):
    step: int = -1
    message: str = Field("", alias="progress")

    @classmethod
    def null(cls, message: str = "") -> "Progress":
        result = cls(message=message)
        result._diagnostic = message
        return result

    @field_validator("message", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return as_text(value)

    @field_validator("step", mode="before")
    @classmethod
    def _step(cls, value: Any) -> Any:
        return -1 if value is None else value


class Job(WireModel):
    id: str = Field("", alias="cpo_job_id")
    status: str = Field("", alias="cpo_job_status")
    performance: Performance = Field(default_factory=lambda: Performance.null(""), alias="cpo_result")
    progress: Progress = Field(default_factory=lambda: Progress.null(""), alias="progress")

    @classmethod
    def null(cls, message: str = "") -> "Job":
        result = cls(progress=Progress.null(message))
        result._diagnostic = message
        return result

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS_STATUS

    @field_validator("id", "status", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return as_text(value)

    # cpo_result and progress arrive as objects, JSON text, or sentinel strings.
    @field_validator("performance", mode="before")
    @classmethod
    def _performance(cls, value: Any) -> Performance:
        return coerce(Performance, value)

    @field_validator("progress", mode="before")
    @classmethod
    def _progress(cls, value: Any) -> Progress:
        return coerce(Progress, value, keep_text=True)


class JobCreationResult(WireModel):
    id: str = Field("", alias="task_id")
    message: str = ""

    @classmethod
    def null(cls, message: str = "") -> "JobCreationResult":
        result = cls(message=message)
        result._diagnostic = message
        return result

    @property
    def submitted(self) -> bool:
        return bool(self.id)

    @field_validator("id", "message", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return as_text(value)

    def __str__(self) -> str:
        if self.is_null and self.diagnostic:
            return self.diagnostic
        return f"{self.message}: Id {self.id}"


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ValueError(f"Timestamp out of range: {value!r}") from exc
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    # Flask-style RFC 1123 dates, e.g. "Tue, 05 Mar 2024 10:00:00 GMT"
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None


class TrainingStatus(WireModel):
    timestamp: datetime | None = Field(None, alias="datetime")
    current: int = 0
    total: int = 0
    result: str = ""
    state: str = "PROGRESS"
    status: str = ""

    @classmethod
    def null(cls, message: str = "") -> "TrainingStatus":
        result = cls(status=message)
        result._diagnostic = message
        return result

    @property
    def completed(self) -> bool:
        return (self.state or "").upper() == COMPLETED_STATE

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value: Any) -> datetime | None:
        return _parse_timestamp(value)

    @field_validator("current", "total", mode="before")
    @classmethod
    def _counter(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("result", "state", "status", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return as_text(value)

    def __str__(self) -> str:
        if self.is_null and self.diagnostic:
            return self.diagnostic
        stamp = "-"
        if self.timestamp is not None:
            moment = self.timestamp
            if moment.tzinfo is None:
                moment = moment.replace(tzinfo=timezone.utc)
            stamp = moment.astimezone(timezone.utc).isoformat()
        text = f"{stamp}: {self.state} ({self.current}/{self.total}) | {self.status}"
        if self.result.strip():
            text += f" | Result: {self.result}"
        return text


class TrainingResult(WireModel):
    """Artifacts of a finished training, or the status of one still running.

    ``completed`` is true exactly when no TrainingStatus is attached.
    """

    lab_test: str = Field("", alias="lab_test_")
    feature_importance: str = _EMPTY_JSON
    performance_metrics: str = _EMPTY_JSON
    predicted_prob_cv: str = Field(_EMPTY_JSON, alias="predicted_prob_cv_")
    predicted_prob_test: str = Field(_EMPTY_JSON, alias="predicted_prob_test_")
    predicted_targets_cv: str = Field(_EMPTY_JSON, alias="predicted_targets_cv_")
    predicted_targets_test: str = Field(_EMPTY_JSON, alias="predicted_targets_test_")
    eda_describe: str = ""

    _training_status: TrainingStatus | None = PrivateAttr(default=None)

    @classmethod
    def from_status(cls, training_status: TrainingStatus) -> "TrainingResult":
        result = cls()
        result._training_status = training_status
        return result

    @classmethod
    def null(cls, message: str = "") -> "TrainingResult":
        result = cls.from_status(TrainingStatus.null(message))
        result._diagnostic = message
        return result

    @property
    def training_status(self) -> TrainingStatus | None:
        return self._training_status

    @property
    def completed(self) -> bool:
        return self._training_status is None

    @field_validator("*", mode="before")
    @classmethod
    def _artifact(cls, value: Any) -> str:
        return as_text(value)

    def __str__(self) -> str:
        if self._training_status is not None:
            return str(self._training_status)
        return super().__str__()


class PredictResult(WireModel):
    exploratory_data_analysis: str = Field("", alias="eda")
    filename: str = ""
    labels: str = ""
    objective: str = ""
    probability_calibration: str = Field("", alias="prob_calib")
    probabilities: str = ""
    title: str = ""
    too_many_nulls_list: list[str] = Field(default_factory=list)

    @field_validator(
        "exploratory_data_analysis",
        "filename",
        "labels",
        "objective",
        "probability_calibration",
        "probabilities",
        "title",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> str:
        return as_text(value)

    @field_validator("too_many_nulls_list", mode="before")
    @classmethod
    def _columns(cls, value: Any) -> Any:
        if value is None or value == "":
            return []
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                try:
                    return json.loads(text)
                except RecursionError as exc:
                    raise ValueError("too_many_nulls_list is nested too deeply") from exc
                except ValueError:
                    pass
            return [value]
        return value


class ModelResponse(WireModel):
    model_name: str = ""
    message: str = ""
    success: bool = False

    @classmethod
    def null(cls, message: str = "") -> "ModelResponse":
        result = cls(message=message)
        result._diagnostic = message
        return result


class TrainModelResponse(WireModel):
    model_name: str = ""
    train_id: str = ""
    message: str = ""
    success: bool = False

    @classmethod
    def null(cls, message: str = "") -> "TrainModelResponse":
        result = cls(message=message)
        result._diagnostic = message
        return result

    @field_validator("model_name", "train_id", "message", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return as_text(value)
