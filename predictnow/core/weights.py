from __future__ import annotations

from typing import Mapping

import pandas as pd


def weights_frame(weights: Mapping) -> pd.DataFrame:
    """Portfolio weights as a DataFrame: one row per rebalance date, one column per symbol."""
    if not weights:
        return pd.DataFrame()
    frame = pd.DataFrame.from_dict(dict(weights), orient="index")
    frame.index = pd.to_datetime(frame.index)
    frame.index.name = "date"
    return frame.sort_index().sort_index(axis=1)
