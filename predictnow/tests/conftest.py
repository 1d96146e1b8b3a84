from __future__ import annotations

import sys
from pathlib import Path

import pytest


# Ensure `import predictnow...` works even when pytest is launched from `predictnow/`.
REPO_ROOT = Path(__file__).resolve().parents[2]
repo_root_str = str(REPO_ROOT)
if repo_root_str not in sys.path:
    sys.path.insert(0, repo_root_str)


@pytest.fixture
def fake_service():
    from predictnow.tests.mocks.fake_service import FakePredictNowService

    return FakePredictNowService()


@pytest.fixture
def settings():
    from predictnow.config.settings import PredictNowSettings
    from predictnow.tests.mocks.fake_service import CAI_URL, CPO_URL, ROSTER_URL

    return PredictNowSettings(
        cpo_url=CPO_URL,
        cai_url=CAI_URL,
        user_id="alice@example.com",
        roster_url=ROSTER_URL,
        verify_user=True,
        request_timeout_seconds=5.0,
        poll_interval_seconds=60.0,
        poll_max_attempts=5,
    )


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_client(settings, fake_service, sleeps):
    from predictnow.core.predictnow_client import PredictNowClient

    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    def _factory(**overrides):
        cfg = settings.model_copy(update=overrides)
        return PredictNowClient(cfg, transport=fake_service.transport(), sleep=_sleep)

    return _factory


@pytest.fixture
def portfolio():
    from predictnow.core.parameters import PortfolioParameters

    return PortfolioParameters(
        name="Demo_Project_20231211",
        returns_file="ETF_return.csv",
        constraint_file="ETF_constrain.csv",
        max_cash=1.0,
        rebalancing_period_unit="month",
        rebalancing_period=1,
        rebalance_on="first",
        training_data_size=3,
        evaluation_metric="sharpe",
    )


@pytest.fixture
def data_files(tmp_path: Path) -> dict[str, Path]:
    files = {
        "returns": tmp_path / "ETF_return.csv",
        "constraint": tmp_path / "ETF_constrain.csv",
        "features": tmp_path / "Random_Feature.csv",
    }
    files["returns"].write_text("date,SPY,TLT\n2019-01-02,0.01,-0.002\n", encoding="utf-8")
    files["constraint"].write_text("symbol,min,max\nSPY,0,1\nTLT,0,1\n", encoding="utf-8")
    files["features"].write_text("date,vix\n2019-01-02,23.2\n", encoding="utf-8")
    return files
