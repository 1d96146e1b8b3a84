from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import Field, ValidationInfo, field_serializer, field_validator

from predictnow.core.wire import WireModel

_YES = "yes"
_NO = "no"


class YesNoValueError(ValueError):
    """A yes/no wire flag carried a token other than ``yes`` or ``no``."""

    def __init__(self, field: str, value: Any) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Not expected value for {field}: {value!r}")


def parse_yes_no(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        token = value.strip().lower()
        if token == _YES:
            return True
        if token == _NO:
            return False
    raise YesNoValueError(field, value)


def yes_no(value: bool) -> str:
    return _YES if value else _NO


def _number_token(value: Any) -> str:
    """Shortest text form of a number: ``0.2``, ``1``."""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, (int, float)):
        number = float(value)
        if number.is_integer():
            return str(int(number))
        return repr(number)
    return str(value).strip()


class ParametersModel(WireModel):
    @classmethod
    def null(cls, message: str = ""):
        blanks = {name: None for name, field in cls.model_fields.items() if field.is_required()}
        result = cls.model_construct(**blanks)
        result._diagnostic = message
        return result

    def __str__(self) -> str:
        if self.is_null:
            return self.diagnostic or ""
        return super().__str__()


class PortfolioParameters(ParametersModel):
    """Description of a portfolio optimization request.

    ``user_id`` is never supplied by the caller: the client injects its own
    identity with :meth:`with_user` when it builds each request.
    """

    user_id: str = Field("", alias="email")
    name: str = Field(alias="project_name")
    returns_file: str
    constraint_file: str
    max_cash: float
    rebalancing_period_unit: str
    rebalancing_period: int
    rebalance_on: str
    training_data_size: int
    evaluation_metric: str
    feature_file: str | None = None
    skip_pnow_feature: str | None = Field(None, alias="skip_PNow_feature")

    def with_user(self, user_id: str) -> "PortfolioParameters":
        return self.model_copy(update={"user_id": user_id})

    def portfolio_values(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in PortfolioParameters.model_fields}


def _to_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    return value


class BacktestParameters(PortfolioParameters):
    training_start_date: date
    training_end_date: date
    sampling_proportion: float | None = None
    debug: str | None = None

    @classmethod
    def from_portfolio(
        cls,
        portfolio: PortfolioParameters,
        user_id: str,
        training_start_date: date,
        training_end_date: date,
        sampling_proportion: float | None = None,
        debug: str | None = None,
    ) -> "BacktestParameters":
        values = portfolio.portfolio_values()
        values.update(
            user_id=user_id,
            training_start_date=training_start_date,
            training_end_date=training_end_date,
            sampling_proportion=sampling_proportion,
            debug=debug,
        )
        return cls(**values)

    @field_validator("training_start_date", "training_end_date", mode="before")
    @classmethod
    def _date(cls, value: Any) -> Any:
        return _to_date(value)


class LivePredictionParameters(PortfolioParameters):
    rebalance_date: date
    next_rebalance_date: date | None = None
    market_days: int | None = Field(None, alias="n_days")
    debug: str | None = None

    @classmethod
    def from_portfolio(
        cls,
        portfolio: PortfolioParameters,
        user_id: str,
        rebalance_date: date,
        next_rebalance_date: date | None = None,
        market_days: int | None = None,
        debug: str | None = None,
    ) -> "LivePredictionParameters":
        values = portfolio.portfolio_values()
        values.update(
            user_id=user_id,
            rebalance_date=rebalance_date,
            next_rebalance_date=next_rebalance_date,
            market_days=market_days,
            debug=debug,
        )
        return cls(**values)

    @field_validator("rebalance_date", "next_rebalance_date", mode="before")
    @classmethod
    def _date(cls, value: Any) -> Any:
        return _to_date(value)


class Mode(str, Enum):
    TRAIN = "Train"
    LIVE = "Live"


class ModelType(str, Enum):
    CLASSIFICATION = "Classification"
    REGRESSION = "Regression"


class FeatureSelection(str, Enum):
    NONE = "None"
    SHAP = "Shap"
    CMDA = "CMDA"


class Analysis(str, Enum):
    NONE = "None"
    SMALL = "Small"


class Boost(str, Enum):
    DART = "Dart"
    GBDT = "Gbdt"


class ModelParameters(ParametersModel):
    mode: Mode
    model_type: ModelType = Field(alias="type")
    feature_selection: FeatureSelection
    analysis: Analysis
    boost: Boost
    testsize: str
    timeseries: bool
    probability_calibration: bool = Field(alias="prob_calib")
    exploratory_data_analysis: bool = Field(alias="eda")
    weights: str
    custom_weights: str = ""
    random_seed: str = "1"

    @field_validator("testsize", "random_seed", mode="before")
    @classmethod
    def _number(cls, value: Any) -> str:
        return _number_token(value)

    @field_validator("timeseries", "probability_calibration", "exploratory_data_analysis", mode="before")
    @classmethod
    def _flag(cls, value: Any, info: ValidationInfo) -> bool:
        field = cls.model_fields[info.field_name]
        return parse_yes_no(value, field.alias or info.field_name)

    @field_serializer("timeseries", "probability_calibration", "exploratory_data_analysis")
    def _serialize_flag(self, value: bool) -> str:
        return yes_no(value)
