#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Style factor abstraction.

A style factor turns the history of a panel up to a target date into one
score per asset for that date. Implementations only provide ``_compute``;
this base class takes care of validation, pivoting the long panel into
date x asset frames, trailing-window slicing and the common
winsorize-then-standardize finish.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..constants import DATE_COL, FACTOR_PARAMS, SCORE_SUFFIX, SYMBOL_COL
from ..exceptions import InsufficientDataError, InvalidConfigError, SchemaMismatchError
from ..math.cross_section import center, winsorize
from ..math.weights import exp_weights

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FactorConfig:
    """Per-factor parameters.

    Attributes:
        trailing_days: Length of the trailing window (rows of history)
        half_life: Exponential decay half-life inside the window
        lag: Number of most recent periods skipped before the window ends
        winsor_factor: Winsorization fraction applied to the raw scores
        min_periods: Minimum non-missing observations an asset needs inside the
            window; defaults to half the window
    """

    trailing_days: int = 1
    half_life: float = 1.0
    lag: int = 0
    winsor_factor: float = 0.01
    min_periods: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.trailing_days, bool) or int(self.trailing_days) != self.trailing_days or self.trailing_days <= 0:
            raise InvalidConfigError(f"trailing_days must be a positive integer, got {self.trailing_days!r}")
        if not np.isfinite(self.half_life) or self.half_life <= 0:
            raise InvalidConfigError(f"half_life must be positive, got {self.half_life!r}")
        if isinstance(self.lag, bool) or int(self.lag) != self.lag or self.lag < 0:
            raise InvalidConfigError(f"lag must be a non-negative integer, got {self.lag!r}")
        if not np.isfinite(self.winsor_factor) or not (0.0 <= self.winsor_factor < 0.5):
            raise InvalidConfigError(f"winsor_factor must be in [0, 0.5), got {self.winsor_factor!r}")
        if self.min_periods is not None and not (1 <= self.min_periods <= self.trailing_days):
            raise InvalidConfigError(
                f"min_periods must be between 1 and trailing_days ({self.trailing_days}), got {self.min_periods!r}"
            )

    @property
    def effective_min_periods(self) -> int:
        if self.min_periods is not None:
            return int(self.min_periods)
        return max(1, math.ceil(self.trailing_days / 2))

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "FactorConfig":
        known = set(cls.__dataclass_fields__)
        unknown = set(params) - known
        if unknown:
            raise InvalidConfigError(f"unknown factor config keys: {sorted(unknown)}")
        return cls(**dict(params))

    @classmethod
    def defaults_for(cls, factor_name: str) -> "FactorConfig":
        return cls.from_dict(FACTOR_PARAMS.get(factor_name, {}))

    def with_overrides(self, **changes) -> "FactorConfig":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def standardize_scores(raw: pd.Series, winsor_factor: float, name: str) -> pd.Series:
    """Winsorize then center/standardize a raw cross-section of scores."""
    raw = raw.dropna()
    values = winsorize(raw.to_numpy(dtype=float), winsor_factor)
    values = center(values, standardize=True)
    return pd.Series(values, index=raw.index, name=name)


class StyleFactor(ABC):
    """Base class of every style factor.

    Subclasses set ``name`` and ``value_columns`` and implement ``_compute``.
    """

    name: str = ""
    value_columns: tuple[str, ...] = ()

    def __init__(
        self,
        config: Optional[FactorConfig] = None,
        name: Optional[str] = None,
        date_col: str = DATE_COL,
        symbol_col: str = SYMBOL_COL,
    ):
        if name is not None:
            self.name = name
        if not self.name:
            raise InvalidConfigError(f"{type(self).__name__} needs a non-empty name")
        self.config = config if config is not None else FactorConfig.defaults_for(self.name)
        if not isinstance(self.config, FactorConfig):
            raise InvalidConfigError(f"config must be a FactorConfig, got {type(self.config).__name__}")
        self.date_col = date_col
        self.symbol_col = symbol_col

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, config={self.config!r})"

    @property
    def score_col(self) -> str:
        return f"{self.name}{SCORE_SUFFIX}"

    @property
    def required_columns(self) -> tuple[str, ...]:
        return (self.date_col, self.symbol_col) + tuple(self.value_columns)

    # ------------------------------------------------------------------
    # Public capability
    # ------------------------------------------------------------------

    def compute_scores(self, history: pd.DataFrame, config: FactorConfig, target_date) -> pd.Series:
        """Scores for ``target_date`` computed from ``history`` (rows up to that date).

        Returns:
            Series indexed by asset, named ``<name>_score``

        Raises:
            InsufficientDataError: No asset has enough history for the window
            SchemaMismatchError: ``history`` lacks a required column
        """
        data = self._prepare(history)
        target = pd.Timestamp(target_date)
        frames = self._pivot(data[data[self.date_col] <= target])
        return self._score_date(frames, self._universe(data, target), config, target)

    def score(self, history: pd.DataFrame, target_date) -> pd.Series:
        return self.compute_scores(history, self.config, target_date)

    def compute_panel(self, data: pd.DataFrame, dates: Optional[Iterable] = None) -> pd.DataFrame:
        """Evaluate the factor on every date (or the given ``dates``).

        Dates without enough history are skipped and logged.

        Returns:
            Long DataFrame ``date | symbol | <name>_score``
        """
        data = self._prepare(data)
        frames = self._pivot(data)
        all_dates = pd.DatetimeIndex(sorted(data[self.date_col].unique()))
        targets = all_dates if dates is None else pd.DatetimeIndex(pd.to_datetime(list(dates)))
        members = data.groupby(self.date_col)[self.symbol_col].unique()

        pieces: List[pd.DataFrame] = []
        skipped = 0
        for target in targets:
            if target not in members.index:
                logger.debug("%s: no rows on %s, skipped", self.name, target.date())
                skipped += 1
                continue
            history = {col: frame.loc[:target] for col, frame in frames.items()}
            try:
                scores = self._score_date(history, pd.Index(members.loc[target]), self.config, target)
            except InsufficientDataError as exc:
                logger.debug("%s: %s skipped (%s)", self.name, target.date(), exc)
                skipped += 1
                continue
            pieces.append(
                pd.DataFrame(
                    {
                        self.date_col: target,
                        self.symbol_col: scores.index,
                        self.score_col: scores.to_numpy(),
                    }
                )
            )

        if skipped:
            logger.info("%s: %d of %d dates skipped for insufficient data", self.name, skipped, len(targets))
        if not pieces:
            return pd.DataFrame(columns=[self.date_col, self.symbol_col, self.score_col])
        return pd.concat(pieces, ignore_index=True)

    # ------------------------------------------------------------------
    # Helpers for implementations
    # ------------------------------------------------------------------

    @abstractmethod
    def _compute(
        self,
        frames: Dict[str, pd.DataFrame],
        universe: pd.Index,
        config: FactorConfig,
        target_date: pd.Timestamp,
    ) -> pd.Series:
        """Return the final scores for the assets in ``universe``.

        ``frames`` maps every value column to a date x asset frame holding the
        history up to and including ``target_date``.
        """

    def _score_date(self, frames, universe, config, target_date) -> pd.Series:
        scores = self._compute(frames, universe, config, target_date)
        scores.name = self.score_col
        scores.index.name = self.symbol_col
        return scores

    def _prepare(self, data: pd.DataFrame) -> pd.DataFrame:
        if not isinstance(data, pd.DataFrame):
            raise SchemaMismatchError(f"{self.name}: expected a pandas DataFrame, got {type(data).__name__}")
        missing = [c for c in self.required_columns if c not in data.columns]
        if missing:
            raise SchemaMismatchError(f"{self.name}: missing required columns {missing}")
        data = data[list(self.required_columns)].copy()
        data[self.date_col] = pd.to_datetime(data[self.date_col])
        if data.duplicated([self.date_col, self.symbol_col]).any():
            raise SchemaMismatchError(f"{self.name}: duplicate ({self.date_col}, {self.symbol_col}) rows")
        for col in self.value_columns:
            try:
                data[col] = pd.to_numeric(data[col])
            except (TypeError, ValueError) as exc:
                raise SchemaMismatchError(f"{self.name}: column '{col}' is not numeric") from exc
        return data

    def _pivot(self, data: pd.DataFrame) -> Dict[str, pd.DataFrame]:
        return {
            col: data.pivot(index=self.date_col, columns=self.symbol_col, values=col).sort_index()
            for col in self.value_columns
        }

    def _universe(self, data: pd.DataFrame, target: pd.Timestamp) -> pd.Index:
        return pd.Index(data.loc[data[self.date_col] == target, self.symbol_col].unique())

    @staticmethod
    def trailing_window(frame: pd.DataFrame, config: FactorConfig, target_date: pd.Timestamp) -> pd.DataFrame:
        """Rows of ``frame`` inside the trailing window ending ``lag`` rows before the target.

        Raises:
            InsufficientDataError: The lag reaches past the start of the history
        """
        if target_date not in frame.index:
            raise InsufficientDataError(f"no observations on {target_date}")
        end = frame.index.get_loc(target_date) + 1 - config.lag
        if end <= 0:
            raise InsufficientDataError(f"lag of {config.lag} exceeds the {end + config.lag} periods of history")
        start = max(0, end - config.trailing_days)
        return frame.iloc[start:end]

    @staticmethod
    def decayed_mean(window: pd.DataFrame, config: FactorConfig) -> pd.Series:
        """Exponentially weighted mean per column, renormalized over available rows.

        Columns with fewer than ``min_periods`` observations come back as NaN.
        """
        weights = exp_weights(config.trailing_days, config.half_life)[-len(window):]
        present = window.notna().to_numpy()
        values = np.where(present, window.to_numpy(dtype=float), 0.0)
        w = weights[:, None] * present
        wsum = w.sum(axis=0)
        with np.errstate(invalid="ignore", divide="ignore"):
            mean = (values * weights[:, None]).sum(axis=0) / wsum
        counts = present.sum(axis=0)
        mean = np.where(counts >= config.effective_min_periods, mean, np.nan)
        return pd.Series(mean, index=window.columns)

    def finalize(self, raw: pd.Series, universe: pd.Index, config: FactorConfig) -> pd.Series:
        raw = raw.reindex(universe).replace([np.inf, -np.inf], np.nan).dropna()
        if raw.empty:
            raise InsufficientDataError(f"{self.name}: no asset has enough history")
        return standardize_scores(raw, config.winsor_factor, self.score_col)


def merge_score_panels(
    panels: Sequence[pd.DataFrame],
    date_col: str = DATE_COL,
    symbol_col: str = SYMBOL_COL,
) -> pd.DataFrame:
    """Outer-join several ``date | symbol | <score>`` panels into one wide panel."""
    panels = [p for p in panels if p is not None]
    if not panels:
        return pd.DataFrame(columns=[date_col, symbol_col])
    merged = panels[0]
    for panel in panels[1:]:
        merged = merged.merge(panel, on=[date_col, symbol_col], how="outer")
    return merged.sort_values([date_col, symbol_col]).reset_index(drop=True)
