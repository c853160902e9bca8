#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Value types shared across the package.

Panels themselves are long-format ``pd.DataFrame`` objects; the types here
describe single cross-sections and the estimator's output bundle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .constants import DATE_COL, FACTOR_COL, FACTOR_RETURN_COL, MKT_FACTOR_COL
from .exceptions import SchemaMismatchError

AssetId = str
FactorName = str

# Cross-section arrays: one row per asset (exposures: asset x factor)
Returns = np.ndarray
Exposures = np.ndarray
Weights = np.ndarray


@dataclass(frozen=True)
class MarketCapWeights:
    """Market caps of one cross-section with their derived weight views."""

    raw: Weights
    normalized: Weights
    sqrt_weights: Weights

    @classmethod
    def from_raw(cls, raw) -> "MarketCapWeights":
        raw = np.asarray(raw, dtype=float).ravel()
        if raw.size and (not np.all(np.isfinite(raw)) or np.any(raw <= 0)):
            raise SchemaMismatchError("market caps must be finite and strictly positive")
        total = float(raw.sum())
        normalized = raw / total if total > 0 else raw.copy()
        return cls(raw=raw, normalized=normalized, sqrt_weights=np.sqrt(raw))

    def __len__(self) -> int:
        return int(self.raw.size)

    def sector_participation(self, sector_matrix: np.ndarray) -> np.ndarray:
        """Share of total market cap held by each sector column."""
        sector_matrix = np.asarray(sector_matrix, dtype=float)
        if sector_matrix.shape[0] != self.raw.size:
            raise SchemaMismatchError(
                f"sector matrix has {sector_matrix.shape[0]} rows, expected {self.raw.size}"
            )
        return self.normalized @ sector_matrix


@dataclass(frozen=True)
class DateFactorReturns:
    """Factor returns estimated for a single date."""

    date: pd.Timestamp
    market: float
    sectors: Tuple[Tuple[str, float], ...]
    styles: Tuple[Tuple[str, float], ...]

    def get(self, name: FactorName) -> Optional[float]:
        if name == MKT_FACTOR_COL:
            return self.market
        for n, value in self.sectors + self.styles:
            if n == name:
                return value
        return None

    def factor_names(self) -> List[FactorName]:
        return [MKT_FACTOR_COL] + [n for n, _ in self.sectors] + [n for n, _ in self.styles]

    def as_dict(self) -> Dict[FactorName, float]:
        return {name: self.get(name) for name in self.factor_names()}


@dataclass
class FactorModelResult:
    """Output of a full estimation run.

    Attributes:
        factor_returns: Wide frame indexed by date; columns are market, sectors, styles
        residual_returns: Long frame ``date | symbol | res_asset_returns``
        style_exposures: Long frame ``date | symbol | <style cols>`` holding the
            style exposures the style returns were fitted on (the
            sector-orthogonalized scores when styles are residualized)
        diagnostics: Frame indexed by date with n_obs, r2, rmse, constraint_error
        failures: Dates that could not be estimated, mapped to the reason
    """

    factor_returns: pd.DataFrame
    residual_returns: pd.DataFrame
    style_exposures: pd.DataFrame = field(default_factory=pd.DataFrame)
    diagnostics: pd.DataFrame = field(default_factory=pd.DataFrame)
    failures: Dict[pd.Timestamp, str] = field(default_factory=dict)

    @property
    def dates(self) -> List[pd.Timestamp]:
        return list(self.factor_returns.index)

    def to_long(self) -> pd.DataFrame:
        """Melt factor returns into ``date | factor | factor_return`` rows."""
        if self.factor_returns.empty:
            return pd.DataFrame(columns=[DATE_COL, FACTOR_COL, FACTOR_RETURN_COL])
        index_name = self.factor_returns.index.name or DATE_COL
        long_df = (
            self.factor_returns.reset_index()
            .melt(id_vars=index_name, var_name=FACTOR_COL, value_name=FACTOR_RETURN_COL)
            .dropna(subset=[FACTOR_RETURN_COL])
            .rename(columns={index_name: DATE_COL})
        )
        return long_df.sort_values([DATE_COL, FACTOR_COL]).reset_index(drop=True)
