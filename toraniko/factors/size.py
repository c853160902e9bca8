"""Size style factor: negated log market cap (small-minus-big convention)."""

from __future__ import annotations

from typing import Dict

import numpy as np
import pandas as pd

from ..constants import MKT_CAP_COL
from .base import FactorConfig, StyleFactor
from .registry import register_factor_class


@register_factor_class("size")
class SizeFactor(StyleFactor):
    """Smaller assets score higher.

    With ``trailing_days > 1`` the log cap is averaged over the trailing window
    using exponential decay, which smooths out short-lived price moves.
    """

    name = "size"

    def __init__(self, config: FactorConfig = None, mkt_cap_col: str = MKT_CAP_COL, **kwargs):
        self.mkt_cap_col = mkt_cap_col
        self.value_columns = (mkt_cap_col,)
        super().__init__(config=config, **kwargs)

    def _compute(
        self,
        frames: Dict[str, pd.DataFrame],
        universe: pd.Index,
        config: FactorConfig,
        target_date: pd.Timestamp,
    ) -> pd.Series:
        caps = self.trailing_window(frames[self.mkt_cap_col], config, target_date)
        caps = caps.reindex(columns=universe)
        log_caps = np.log(caps.where(caps > 0))
        raw = -self.decayed_mean(log_caps, config)
        return self.finalize(raw, universe, config)
