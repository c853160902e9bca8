#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Panel preprocessing pipeline

Chains pure DataFrame -> DataFrame steps and evaluates them eagerly, once,
when ``run`` is called. Typical use before scoring and estimation:

```python
prepared = (
    PanelPipeline("features")
    .fill(["book_price", "sales_price", "cf_price"])
    .smooth(["book_price", "sales_price", "cf_price"], window_size=60)
    .top_n(n=3000, rank_var="market_cap", group_vars=["date"])
    .run(raw_panel)
)
```
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Callable, List, Optional, Sequence, Tuple

import pandas as pd

from ..constants import DATE_COL, SYMBOL_COL
from ..exceptions import InvalidConfigError, SchemaMismatchError
from .panel_ops import fill_features, smooth_features, top_n_by_group

logger = logging.getLogger(__name__)

PanelTransform = Callable[[pd.DataFrame], pd.DataFrame]


class PanelPipeline:
    """Ordered sequence of named panel transforms.

    Builder methods return the pipeline itself so steps can be chained.
    """

    def __init__(self, name: str = "PanelPipeline"):
        self.name = name
        self.steps: List[Tuple[str, PanelTransform]] = []

    def __len__(self) -> int:
        return len(self.steps)

    def __repr__(self) -> str:
        return f"PanelPipeline(name='{self.name}', steps={self.step_names()})"

    def step_names(self) -> List[str]:
        return [name for name, _ in self.steps]

    def then(self, func: PanelTransform, name: Optional[str] = None) -> "PanelPipeline":
        """Append an arbitrary ``DataFrame -> DataFrame`` step."""
        if not callable(func):
            raise InvalidConfigError(f"pipeline step must be callable, got {type(func).__name__}")
        step_name = name or getattr(func, "__name__", None) or type(func).__name__
        self.steps.append((step_name, func))
        return self

    def fill(self, features: Sequence[str], sort_col: str = DATE_COL, over_col: str = SYMBOL_COL) -> "PanelPipeline":
        return self.then(
            partial(fill_features, features=list(features), sort_col=sort_col, over_col=over_col),
            name="fill_features",
        )

    def smooth(
        self,
        features: Sequence[str],
        window_size: int,
        sort_col: str = DATE_COL,
        over_col: str = SYMBOL_COL,
    ) -> "PanelPipeline":
        if isinstance(window_size, bool) or int(window_size) != window_size or window_size < 1:
            raise InvalidConfigError(f"window_size must be a positive integer, got {window_size!r}")
        return self.then(
            partial(
                smooth_features,
                features=list(features),
                window_size=window_size,
                sort_col=sort_col,
                over_col=over_col,
            ),
            name="smooth_features",
        )

    def top_n(self, n: int, rank_var: str, group_vars: Sequence[str] = (DATE_COL,), filter: bool = True) -> "PanelPipeline":
        return self.then(
            partial(top_n_by_group, n=n, rank_var=rank_var, group_vars=list(group_vars), filter=filter),
            name="top_n_by_group",
        )

    def run(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply every step in order and return the final panel.

        Raises:
            SchemaMismatchError: ``df`` or a step's output is not a DataFrame
        """
        if not isinstance(df, pd.DataFrame):
            raise SchemaMismatchError(f"{self.name}: expected a pandas DataFrame, got {type(df).__name__}")

        logger.debug("running pipeline '%s' with %d steps on %d rows", self.name, len(self.steps), len(df))
        result = df
        for i, (step_name, func) in enumerate(self.steps, start=1):
            logger.debug("step %d/%d: %s", i, len(self.steps), step_name)
            result = func(result)
            if not isinstance(result, pd.DataFrame):
                raise SchemaMismatchError(
                    f"{self.name}: step '{step_name}' returned {type(result).__name__}, expected a DataFrame"
                )
        logger.debug("pipeline '%s' finished, %d rows", self.name, len(result))
        return result
