"""User-defined style factors backed by a plain callable."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Optional

import pandas as pd

from ..exceptions import InvalidConfigError, SchemaMismatchError
from .base import FactorConfig, StyleFactor

ScoreFunction = Callable[[pd.DataFrame, FactorConfig, pd.Timestamp], pd.Series]

_HISTORY = "history"


class CustomFactor(StyleFactor):
    """Wrap ``func(history, config, target_date) -> pd.Series`` as a style factor.

    ``history`` is the long panel restricted to rows dated on or before the
    target date. The callable returns raw scores indexed by asset; they are
    restricted to the assets present on the target date and, unless
    ``standardize=False``, winsorized and standardized like the built-in
    factors. The callable may raise ``InsufficientDataError`` to skip a date.
    """

    def __init__(
        self,
        name: str,
        func: ScoreFunction,
        config: Optional[FactorConfig] = None,
        required_columns: Iterable[str] = (),
        standardize: bool = True,
        **kwargs,
    ):
        if not callable(func):
            raise InvalidConfigError(f"custom factor '{name}' needs a callable, got {type(func).__name__}")
        self.func = func
        self.standardize = standardize
        self.value_columns = tuple(required_columns)
        super().__init__(config=config, name=name, **kwargs)

    def _prepare(self, data: pd.DataFrame) -> pd.DataFrame:
        if not isinstance(data, pd.DataFrame):
            raise SchemaMismatchError(f"{self.name}: expected a pandas DataFrame, got {type(data).__name__}")
        missing = [c for c in self.required_columns if c not in data.columns]
        if missing:
            raise SchemaMismatchError(f"{self.name}: missing required columns {missing}")
        data = data.copy()
        data[self.date_col] = pd.to_datetime(data[self.date_col])
        return data

    def _pivot(self, data: pd.DataFrame) -> Dict[str, pd.DataFrame]:
        # Keep the long layout; a sorted date index lets the base class slice history with .loc
        indexed = data.set_index(self.date_col, drop=False).sort_index(kind="mergesort")
        indexed.index.name = None
        return {_HISTORY: indexed}

    def _compute(self, frames, universe, config, target_date) -> pd.Series:
        history = frames[_HISTORY].reset_index(drop=True)
        raw = self.func(history, config, target_date)
        if not isinstance(raw, pd.Series):
            raise SchemaMismatchError(
                f"custom factor '{self.name}' must return a pandas Series, got {type(raw).__name__}"
            )
        if self.standardize:
            return self.finalize(raw, universe, config)
        return raw.reindex(universe).dropna()
