from __future__ import annotations

import asyncio
import logging
from datetime import date
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import quote
from uuid import uuid4

import httpx
from pydantic import ValidationError

from predictnow.auth.access_gate import AccessGate
from predictnow.config.settings import PredictNowSettings, get_settings
from predictnow.core.codec import Weights, decode_weights, decoder, encode, shape_decoder
from predictnow.core.models import (
    Job,
    JobCreationResult,
    ModelResponse,
    Performance,
    PredictResult,
    TrainingResult,
    TrainingStatus,
    TrainModelResponse,
)
from predictnow.core.parameters import (
    BacktestParameters,
    LivePredictionParameters,
    ModelParameters,
    PortfolioParameters,
    yes_no,
)
from predictnow.core.polling import SleepFn, poll_until
from predictnow.core.transport import ServiceTransport

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _form(**fields: Any) -> dict[str, tuple[None, str]]:
    # multipart/form-data fields without a file part
    return {name: (None, str(value)) for name, value in fields.items()}


class PredictNowClient:
    """Async REST client for the PredictNow CPO and CAI services.

    Every public operation checks the access gate first and returns a value in
    all normal failure cases: a null variant, an empty collection, ``False`` or
    a descriptive string. Use it as an async context manager, or call
    :meth:`close`, to release both connection pools.
    """

    def __init__(
        self,
        settings: Optional[PredictNowSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.user_id = self.settings.user_id.strip()
        self._sleep = sleep
        timeout = self.settings.request_timeout_seconds
        self._cpo = ServiceTransport("CPO", self.settings.cpo_url, timeout, transport)
        self._cai = ServiceTransport("CAI", self.settings.cai_url, timeout, transport)

        problem = self._configuration_problem()
        if problem:
            self._gate = AccessGate.closed(problem)
        else:
            self._gate = AccessGate(
                self.user_id,
                verify=self.settings.verify_user,
                roster_url=self.settings.roster_url,
                timeout=timeout,
                transport=transport,
            )

    def _configuration_problem(self) -> str:
        if not self._cpo.is_configured:
            return "CPO endpoint URL is not configured"
        if not self.user_id:
            return "user identification is blank"
        return ""

    async def __aenter__(self) -> "PredictNowClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._cpo.close()
        await self._cai.close()

    async def _denied(self) -> str:
        if await self._gate.is_open():
            return ""
        return self._gate.denial_message

    async def connected(self) -> bool:
        """Whether the CPO endpoint answers with a decodable map."""
        if await self._denied():
            return False
        result = await self._cpo.request("GET", "/", shape_decoder(dict[str, Any]))
        return result.success

    # Files

    async def list_returns_files(self) -> list[str]:
        return await self._list_files("return")

    async def list_constraint_files(self) -> list[str]:
        return await self._list_files("constraint")

    async def list_features_files(self) -> list[str]:
        return await self._list_files("feature")

    async def upload_returns_file(self, filename: PathLike) -> str:
        return await self._upload_file(filename, "Returns")

    async def upload_constraint_file(self, filename: PathLike) -> str:
        return await self._upload_file(filename, "Constraint")

    async def upload_features_file(self, filename: PathLike) -> str:
        return await self._upload_file(filename, "features")

    async def _list_files(self, file_type: str) -> list[str]:
        if await self._denied():
            return []
        result = await self._cpo.request(
            "GET",
            f"list-{file_type}-files/{quote(self.user_id, safe='@')}",
            shape_decoder(dict[str, Optional[list[str]]]),
        )
        if not result.success:
            return []
        return [name for names in result.value.values() if names for name in names]

    async def _upload_file(self, filename: PathLike, file_type: str) -> str:
        denied = await self._denied()
        if denied:
            return denied
        path = Path(filename).expanduser().resolve()
        if not path.is_file():
            return f"{path} does not exist"

        try:
            with path.open("rb") as stream:
                result = await self._cpo.request(
                    "POST",
                    "upload-data",
                    shape_decoder(dict[str, Any]),
                    data={"email": self.user_id, "type": file_type},
                    files={"file": (path.name, stream)},
                )
        except OSError as exc:
            return f"{path} could not be read: {exc}"

        if not result.success:
            return result.message
        message = result.value.get("message")
        if message is None:
            return f"The content of the response is invalid: {self._cpo.url_for('upload-data')}"
        return str(message)

    # CPO jobs

    async def run_in_sample_backtest(
        self,
        portfolio_parameters: PortfolioParameters,
        training_start_date: date,
        training_end_date: date,
        sampling_proportion: float,
        debug: Optional[str] = None,
    ) -> JobCreationResult:
        """Submit an in-sample backtest; ``sampling_proportion`` is the fraction of base strategies kept."""
        return await self._run_backtest(
            "run-insample-backtest",
            portfolio_parameters,
            training_start_date,
            training_end_date,
            sampling_proportion,
            debug,
        )

    async def run_out_of_sample_backtest(
        self,
        portfolio_parameters: PortfolioParameters,
        training_start_date: date,
        training_end_date: date,
        debug: Optional[str] = None,
    ) -> JobCreationResult:
        return await self._run_backtest(
            "run-oos-backtest",
            portfolio_parameters,
            training_start_date,
            training_end_date,
            None,
            debug,
        )

    async def run_live_prediction(
        self,
        portfolio_parameters: PortfolioParameters,
        rebalance_date: date,
        next_rebalance_date: Optional[date] = None,
        market_days: Optional[int] = None,
        debug: Optional[str] = None,
    ) -> JobCreationResult:
        denied = await self._denied()
        if denied:
            return JobCreationResult.null(denied)
        try:
            request = LivePredictionParameters.from_portfolio(
                portfolio_parameters,
                self.user_id,
                rebalance_date,
                next_rebalance_date,
                market_days,
                debug,
            )
        except ValidationError as exc:
            return JobCreationResult.null(f"Invalid live prediction parameters: {exc}")
        return await self._submit("run-live-prediction", request)

    async def _run_backtest(
        self,
        resource: str,
        portfolio_parameters: PortfolioParameters,
        training_start_date: date,
        training_end_date: date,
        sampling_proportion: Optional[float],
        debug: Optional[str],
    ) -> JobCreationResult:
        denied = await self._denied()
        if denied:
            return JobCreationResult.null(denied)
        try:
            request = BacktestParameters.from_portfolio(
                portfolio_parameters,
                self.user_id,
                training_start_date,
                training_end_date,
                sampling_proportion,
                debug,
            )
        except ValidationError as exc:
            return JobCreationResult.null(f"Invalid backtest parameters: {exc}")
        return await self._submit(resource, request)

    async def _submit(self, resource: str, request: PortfolioParameters) -> JobCreationResult:
        result = await self._cpo.request("POST", resource, decoder(JobCreationResult), json=encode(request))
        if not result.success:
            return JobCreationResult.null(result.message)
        logger.info("Submitted CPO job %s via %s", result.value.id, resource)
        return result.value

    async def get_job_for_id(self, job_id: str) -> Job:
        denied = await self._denied()
        if denied:
            return Job.null(denied)
        if not (job_id or "").strip():
            return Job.null("Job id is blank")
        result = await self._cpo.request(
            "GET",
            f"get-cpo-job-status/{quote(job_id.strip(), safe='')}",
            decoder(Job),
        )
        return result.value if result.success else Job.null(result.message)

    async def wait_for_job(
        self,
        job: Union[str, JobCreationResult],
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
    ) -> Job:
        """Poll a CPO job until it reports SUCCESS or the attempt budget runs out.

        Returns the last observed job either way; a pending status after the
        final attempt means the job is still running or failed remotely.
        """
        if isinstance(job, JobCreationResult):
            if not job.submitted:
                return Job.null(job.diagnostic or job.message or "Job was not submitted")
            job_id = job.id
        else:
            job_id = job

        denied = await self._denied()
        if denied:
            return Job.null(denied)
        return await poll_until(
            lambda: self.get_job_for_id(job_id),
            lambda observed: observed.succeeded,
            max_attempts=self.settings.poll_max_attempts if max_attempts is None else max_attempts,
            interval=self.settings.poll_interval_seconds if interval is None else interval,
            sleep=self._sleep,
            label=f"CPO job {job_id}",
        )

    # CPO results

    async def get_backtest_performance(
        self,
        portfolio_parameters: PortfolioParameters,
        training_start_date: date,
        training_end_date: date,
        debug: Optional[str] = None,
    ) -> Performance:
        denied = await self._denied()
        if denied:
            return Performance.null(denied)
        try:
            request = BacktestParameters.from_portfolio(
                portfolio_parameters, self.user_id, training_start_date, training_end_date, debug=debug
            )
        except ValidationError as exc:
            return Performance.null(f"Invalid backtest parameters: {exc}")
        result = await self._cpo.request(
            "POST", "get-backtest-performance", decoder(Performance), json=encode(request)
        )
        return result.value if result.success else Performance.null(result.message)

    async def get_backtest_weights(
        self,
        portfolio_parameters: PortfolioParameters,
        training_start_date: date,
        training_end_date: date,
        debug: Optional[str] = None,
    ) -> Weights:
        if await self._denied():
            return {}
        try:
            request = BacktestParameters.from_portfolio(
                portfolio_parameters, self.user_id, training_start_date, training_end_date, debug=debug
            )
        except ValidationError as exc:
            logger.error("Invalid backtest parameters: %s", exc)
            return {}
        result = await self._cpo.request("POST", "get-backtest-weights", decode_weights, json=encode(request))
        return result.value if result.success else {}

    async def get_live_prediction_weights(
        self,
        portfolio_parameters: PortfolioParameters,
        rebalance_date: date,
        market_days: Optional[int] = None,
        debug: Optional[str] = None,
    ) -> Weights:
        if await self._denied():
            return {}
        try:
            request = LivePredictionParameters.from_portfolio(
                portfolio_parameters, self.user_id, rebalance_date, market_days=market_days, debug=debug
            )
        except ValidationError as exc:
            logger.error("Invalid live prediction parameters: %s", exc)
            return {}
        result = await self._cpo.request(
            "POST", "get-live-prediction-weights", decode_weights, json=encode(request)
        )
        return result.value if result.success else {}

    # CAI models

    async def create_model(
        self,
        model_name: str,
        model_parameters: ModelParameters,
        hyp_dict: Optional[dict[str, Any]] = None,
    ) -> ModelResponse:
        denied = await self._denied()
        if denied:
            return ModelResponse.null(denied)
        body = {
            "params": encode(model_parameters),
            "model_name": model_name,
            "username": self.user_id,
            "hyp_dict": hyp_dict or {},
        }
        result = await self._cai.request("POST", "/models", decoder(ModelResponse), json=body)
        return result.value if result.success else ModelResponse.null(result.message)

    async def train_model(self, model_name: str, filename: PathLike, label: str) -> TrainModelResponse:
        """Upload a training file for ``model_name``; the returned ``train_id`` tracks the training."""
        denied = await self._denied()
        if denied:
            return TrainModelResponse.null(denied)
        path = Path(filename).expanduser().resolve()
        if not path.is_file():
            return TrainModelResponse.null(f"{path} does not exist")

        train_id = f"train_{uuid4().hex[:12]}"
        try:
            with path.open("rb") as stream:
                result = await self._cai.request(
                    "POST",
                    "/trainings",
                    decoder(TrainModelResponse),
                    data={
                        "username": self.user_id,
                        "email": self.user_id,
                        "model_name": model_name,
                        "train_id": train_id,
                        "label": label,
                    },
                    files={"file": (path.name, stream)},
                )
        except OSError as exc:
            return TrainModelResponse.null(f"{path} could not be read: {exc}")

        if not result.success:
            return TrainModelResponse.null(result.message)
        response = result.value
        if not response.train_id:
            response = response.model_copy(update={"train_id": train_id})
        return response

    async def get_training_status(self, train_id: str) -> TrainingStatus:
        denied = await self._denied()
        if denied:
            return TrainingStatus.null(denied)
        result = await self._cai.request(
            "GET",
            "/get_status",
            decoder(TrainingStatus),
            params={"username": self.user_id, "train_id": train_id},
        )
        return result.value if result.success else TrainingStatus.null(result.message)

    async def get_training_result(self, model_name: str, train_id: str) -> TrainingResult:
        """Training artifacts once training completed, otherwise the current status."""
        denied = await self._denied()
        if denied:
            return TrainingResult.null(denied)
        status = await self.get_training_status(train_id)
        if not status.completed:
            return TrainingResult.from_status(status)
        result = await self._cai.request(
            "POST",
            "/get_result",
            decoder(TrainingResult),
            files=_form(username=self.user_id, model_name=model_name),
        )
        return result.value if result.success else TrainingResult.null(result.message)

    async def wait_for_training(
        self,
        train_id: str,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
    ) -> TrainingStatus:
        denied = await self._denied()
        if denied:
            return TrainingStatus.null(denied)
        return await poll_until(
            lambda: self.get_training_status(train_id),
            lambda observed: observed.completed,
            max_attempts=self.settings.poll_max_attempts if max_attempts is None else max_attempts,
            interval=self.settings.poll_interval_seconds if interval is None else interval,
            sleep=self._sleep,
            label=f"CAI training {train_id}",
        )

    async def predict(
        self,
        model_name: str,
        filename: PathLike,
        exploratory_data_analysis: bool = False,
        probability_calibration: bool = False,
    ) -> PredictResult:
        denied = await self._denied()
        if denied:
            return PredictResult.null(denied)
        path = Path(filename).expanduser().resolve()
        if not path.is_file():
            return PredictResult.null(f"{path} does not exist")

        try:
            with path.open("rb") as stream:
                result = await self._cai.request(
                    "POST",
                    "/predictions",
                    decoder(PredictResult),
                    data={
                        "username": self.user_id,
                        "model_name": model_name,
                        "eda": yes_no(exploratory_data_analysis),
                        "prob_calib": yes_no(probability_calibration),
                    },
                    files={"file": (path.name, stream)},
                )
        except OSError as exc:
            return PredictResult.null(f"{path} could not be read: {exc}")
        return result.value if result.success else PredictResult.null(result.message)
