from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class PredictNowSettings(BaseModel):
    cpo_url: str = ""
    cai_url: str = ""
    user_id: str = ""
    roster_url: str = ""
    verify_user: bool = True
    request_timeout_seconds: float = Field(30.0, gt=0)
    poll_interval_seconds: float = Field(60.0, ge=0)
    poll_max_attempts: int = Field(5, ge=1)


_TRUE_TOKENS = {"1", "true", "yes", "on"}


def _env(name: str, legacy_name: str | None = None) -> str | None:
    val = os.getenv(name)
    if val is not None:
        return val
    if legacy_name:
        return os.getenv(legacy_name)
    return None


def _flag(raw: str | None) -> bool | None:
    if raw is None:
        return None
    return raw.strip().lower() in _TRUE_TOKENS


def settings_path() -> Path:
    override = _env("PREDICTNOW_SETTINGS_PATH")
    if override:
        return Path(override)
    return Path.cwd() / "config" / "settings.yaml"


def load_settings(path: Path | None = None) -> PredictNowSettings:
    source = path or settings_path()
    payload: dict[str, Any] = {}
    if source.exists():
        payload = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
    cfg = payload.get("predictnow", {}) if isinstance(payload, dict) else {}
    if not isinstance(cfg, dict):
        cfg = {}

    disable_verification = _flag(_env("PREDICTNOW_DISABLE_USER_VERIFICATION"))
    verify_user = (
        not disable_verification
        if disable_verification is not None
        else bool(cfg.get("verify_user", True))
    )
    return PredictNowSettings(
        cpo_url=(
            _env("PREDICTNOW_CPO_URL", "PREDICTNOW-BASEURL")
            or cfg.get("cpo_url", "")
        ),
        cai_url=_env("PREDICTNOW_CAI_URL") or cfg.get("cai_url", ""),
        user_id=(
            _env("PREDICTNOW_USER_EMAIL", "PREDICTNOW-USER-EMAIL")
            or cfg.get("user_id", "")
        ),
        roster_url=_env("PREDICTNOW_ROSTER_URL") or cfg.get("roster_url", ""),
        verify_user=verify_user,
        request_timeout_seconds=float(
            _env("PREDICTNOW_REQUEST_TIMEOUT_SECONDS")
            or cfg.get("request_timeout_seconds", 30.0)
        ),
        poll_interval_seconds=float(
            _env("PREDICTNOW_POLL_INTERVAL_SECONDS")
            or cfg.get("poll_interval_seconds", 60.0)
        ),
        poll_max_attempts=int(
            _env("PREDICTNOW_POLL_MAX_ATTEMPTS")
            or cfg.get("poll_max_attempts", 5)
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> PredictNowSettings:
    return load_settings()
