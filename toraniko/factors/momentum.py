#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Momentum style factor.

Raw momentum is the exponentially decayed mean of log returns over
``trailing_days`` periods, ending ``lag`` periods before the target date so
the most recent (short-term reversal) month is excluded:

    mom_i = sum_t w_t * log(1 + r_{i,t}) / sum_t w_t,   t in [T-lag-window+1, T-lag]

with w_t = 0.5^((T-lag-t)/half_life). The raw values are winsorized and
cross-sectionally standardized.
"""

from __future__ import annotations

from typing import Dict

import numpy as np
import pandas as pd

from ..constants import ASSET_RETURNS_COL
from .base import FactorConfig, StyleFactor
from .registry import register_factor_class


@register_factor_class("momentum")
class MomentumFactor(StyleFactor):
    """Decayed, lagged cumulative log return."""

    name = "momentum"

    def __init__(self, config: FactorConfig = None, returns_col: str = ASSET_RETURNS_COL, **kwargs):
        self.returns_col = returns_col
        self.value_columns = (returns_col,)
        super().__init__(config=config, **kwargs)

    def _compute(
        self,
        frames: Dict[str, pd.DataFrame],
        universe: pd.Index,
        config: FactorConfig,
        target_date: pd.Timestamp,
    ) -> pd.Series:
        returns = frames[self.returns_col]
        window = self.trailing_window(returns, config, target_date)
        window = window.reindex(columns=universe)
        # returns at or below -100% have no log; treat as missing
        log_returns = np.log1p(window.where(window > -1.0))
        raw = self.decayed_mean(log_returns, config)
        return self.finalize(raw, universe, config)
