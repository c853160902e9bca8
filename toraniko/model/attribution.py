"""Return attribution for a single asset.

Decomposes an asset's return over the estimated period into

    market + sum_k sum_t exposure_k,t * factor_return_k,t + cum_residual

over the dates on which the model estimated the asset, which adds up to the
asset's realized return exactly. Each contribution also reports the average
exposure and the cumulative factor return behind it. Presentation
(printing, formatting) is left to the caller; ``to_frame`` gives a tidy table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd

from ..constants import DATE_COL, SYMBOL_COL
from ..exceptions import InsufficientDataError, SchemaMismatchError
from ..types import AssetId, FactorModelResult, FactorName

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FactorContribution:
    factor: FactorName
    exposure: float
    factor_return: float
    contribution: float


@dataclass
class AttributionResult:
    """Factor decomposition of one asset's return over a period."""

    symbol: AssetId
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    total_return: float
    market_contribution: float
    sector_contributions: List[FactorContribution] = field(default_factory=list)
    style_contributions: List[FactorContribution] = field(default_factory=list)
    idiosyncratic_contribution: float = 0.0
    r_squared: float = 0.0

    def factor_explained_return(self) -> float:
        """Return explained by market, sector and style factors."""
        return (
            self.market_contribution
            + sum(c.contribution for c in self.sector_contributions)
            + sum(c.contribution for c in self.style_contributions)
        )

    def to_frame(self) -> pd.DataFrame:
        """One row per component: ``component | kind | exposure | factor_return | contribution``."""
        rows = [
            {
                "component": "market",
                "kind": "market",
                "exposure": 1.0,
                "factor_return": self.market_contribution,
                "contribution": self.market_contribution,
            }
        ]
        for kind, contributions in (("sector", self.sector_contributions), ("style", self.style_contributions)):
            rows.extend(
                {
                    "component": c.factor,
                    "kind": kind,
                    "exposure": c.exposure,
                    "factor_return": c.factor_return,
                    "contribution": c.contribution,
                }
                for c in contributions
            )
        rows.append(
            {
                "component": "idiosyncratic",
                "kind": "residual",
                "exposure": np.nan,
                "factor_return": np.nan,
                "contribution": self.idiosyncratic_contribution,
            }
        )
        return pd.DataFrame(rows, columns=["component", "kind", "exposure", "factor_return", "contribution"])


def _exposure_history(
    panel: Optional[pd.DataFrame],
    symbol: AssetId,
    factors: List[FactorName],
    dates: pd.DatetimeIndex,
    date_col: str,
    symbol_col: str,
    name: str,
) -> pd.DataFrame:
    """Date-indexed exposures of ``symbol`` on ``dates``; missing rows count as zero."""
    if panel is None or not factors:
        return pd.DataFrame(index=dates, dtype=float)
    missing = [c for c in [date_col, symbol_col] + list(factors) if c not in panel.columns]
    if missing:
        raise SchemaMismatchError(f"`{name}` is missing required columns {missing}")
    rows = panel.loc[panel[symbol_col] == symbol, [date_col] + list(factors)]
    rows = rows.assign(**{date_col: pd.to_datetime(rows[date_col])}).set_index(date_col)
    return rows.astype(float).reindex(dates).fillna(0.0)


def compute_attribution(
    symbol: AssetId,
    result: FactorModelResult,
    sector_df: pd.DataFrame,
    date_col: str = DATE_COL,
    symbol_col: str = SYMBOL_COL,
) -> AttributionResult:
    """Attribute ``symbol``'s return to the factors of an estimated model.

    Style exposures are read from ``result.style_exposures``, so they are the
    scores the style returns were actually fitted on.

    Args:
        symbol: Asset to analyze
        result: Output of ``FactorReturnsEstimator.estimate``
        sector_df: Sector indicators used in the estimation

    Returns:
        AttributionResult over the dates on which the asset has a residual

    Raises:
        InsufficientDataError: The asset has no residual in ``result``
    """
    residuals = result.residual_returns
    res_col = [c for c in residuals.columns if c not in (date_col, symbol_col)]
    if len(res_col) != 1:
        raise SchemaMismatchError(f"residual returns must have exactly one value column, got {res_col}")
    own = residuals[residuals[symbol_col] == symbol]
    if own.empty:
        raise InsufficientDataError(f"no residual returns for symbol '{symbol}'")

    dates = pd.DatetimeIndex(pd.to_datetime(own[date_col]).unique()).sort_values()
    factor_returns = result.factor_returns.reindex(dates)
    cum_returns = factor_returns.sum(axis=0, min_count=1).fillna(0.0)

    exposures_df = result.style_exposures
    market_col = factor_returns.columns[0]
    sector_cols = [c for c in factor_returns.columns if c in set(sector_df.columns)]
    style_cols = [c for c in factor_returns.columns if c in set(exposures_df.columns)]

    sector_history = _exposure_history(sector_df, symbol, sector_cols, dates, date_col, symbol_col, "sector_df")
    style_history = _exposure_history(
        exposures_df, symbol, style_cols, dates, date_col, symbol_col, "style_exposures"
    )

    def contributions(history: pd.DataFrame, cols: List[FactorName]) -> List[FactorContribution]:
        out = []
        for col in cols:
            contribution = float((history[col] * factor_returns[col].fillna(0.0)).sum())
            out.append(FactorContribution(col, float(history[col].mean()), float(cum_returns[col]), contribution))
        return out

    market = float(cum_returns[market_col])
    sectors = contributions(sector_history, sector_cols)
    styles = contributions(style_history, style_cols)
    idio = float(own[res_col[0]].sum())

    explained = market + sum(c.contribution for c in sectors) + sum(c.contribution for c in styles)
    total = explained + idio
    # Share of the total explained by factors, capped at 1
    r_squared = min(abs(explained / total), 1.0) if abs(total) > 1e-10 else 0.0

    logger.debug("attribution for %s over %d dates: total=%.6f explained=%.6f", symbol, len(dates), total, explained)
    return AttributionResult(
        symbol=symbol,
        start_date=dates[0],
        end_date=dates[-1],
        total_return=total,
        market_contribution=market,
        sector_contributions=sectors,
        style_contributions=styles,
        idiosyncratic_contribution=idio,
        r_squared=r_squared,
    )
