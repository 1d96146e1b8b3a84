from __future__ import annotations

from predictnow.config.settings import PredictNowSettings, get_settings, load_settings

__all__ = [
    "PredictNowSettings",
    "get_settings",
    "load_settings",
]
