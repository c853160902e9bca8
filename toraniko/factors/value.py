#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Value style factor.

Composite of book-to-price, sales-to-price and cash-flow-to-price:

1. take each ratio's latest observation inside the trailing window (ending
   ``lag`` periods before the target date, so fundamentals can be reported
   with a delay);
2. winsorize and standardize each ratio cross-sectionally;
3. combine with the component weights, averaging over the ratios available
   for each asset;
4. standardize the composite.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

import numpy as np
import pandas as pd

from ..constants import VALUE_FEATURE_COLUMNS
from ..exceptions import InsufficientDataError, InvalidConfigError
from .base import FactorConfig, StyleFactor, standardize_scores
from .registry import register_factor_class

logger = logging.getLogger(__name__)


@register_factor_class("value")
class ValueFactor(StyleFactor):
    """Weighted composite of valuation ratios."""

    name = "value"
    value_columns = VALUE_FEATURE_COLUMNS

    def __init__(
        self,
        config: FactorConfig = None,
        component_weights: Optional[Mapping[str, float]] = None,
        **kwargs,
    ):
        if component_weights is None:
            component_weights = {col: 1.0 for col in VALUE_FEATURE_COLUMNS}
        unknown = set(component_weights) - set(VALUE_FEATURE_COLUMNS)
        if unknown:
            raise InvalidConfigError(f"unknown value components: {sorted(unknown)}")
        if any((not np.isfinite(w)) or w < 0 for w in component_weights.values()):
            raise InvalidConfigError("value component weights must be finite and non-negative")
        if sum(component_weights.values()) <= 0:
            raise InvalidConfigError("value component weights must not all be zero")
        self.component_weights = dict(component_weights)
        self.value_columns = tuple(c for c in VALUE_FEATURE_COLUMNS if c in self.component_weights)
        super().__init__(config=config, **kwargs)

    def _compute(
        self,
        frames: Dict[str, pd.DataFrame],
        universe: pd.Index,
        config: FactorConfig,
        target_date: pd.Timestamp,
    ) -> pd.Series:
        zscores = {}
        for col in self.value_columns:
            window = self.trailing_window(frames[col], config, target_date).reindex(columns=universe)
            latest = window.ffill().iloc[-1].replace([np.inf, -np.inf], np.nan).dropna()
            try:
                zscores[col] = standardize_scores(latest, config.winsor_factor, col)
            except InsufficientDataError as exc:
                logger.debug("value component %s unavailable on %s: %s", col, target_date.date(), exc)

        if not zscores:
            raise InsufficientDataError(f"{self.name}: no valuation ratio available on {target_date.date()}")

        components = pd.DataFrame(zscores).reindex(universe)
        weights = pd.Series({col: self.component_weights[col] for col in components.columns})
        present = components.notna()
        weight_sum = present.mul(weights, axis=1).sum(axis=1)
        composite = components.fillna(0.0).mul(weights, axis=1).sum(axis=1) / weight_sum.where(weight_sum > 0)

        # Final standardization of the composite (no second winsorization)
        return self.finalize(composite, universe, config.with_overrides(winsor_factor=0.0))
