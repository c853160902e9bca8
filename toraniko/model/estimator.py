#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Estimate daily factor returns via sector-constrained cross-sectional WLS.

Inputs (long panels keyed by date + symbol):
  - asset returns          | date | symbol | asset_returns |
  - market caps            | date | symbol | market_cap |
  - sector membership      | date | symbol | <one-hot sector columns> |
  - style scores           | date | symbol | <style score columns> |

Method, per date:
  - Winsorize returns (optional)
  - WLS with market-cap weights (linear or sqrt)
  - Sector returns constrained to net to zero weighted by market-cap
    participation, via re-parameterization (see ``toraniko.math.linalg``)
  - Styles optionally orthogonalized to the sector dummies

Outputs:
  - factor returns, one row per successfully estimated date
  - residual (specific) returns, one row per symbol per date
  - style exposures as fitted (sector-orthogonalized when residualizing),
    one row per symbol per date
  - diagnostics (n_obs, r2, rmse, constraint error) and a failure ledger

Dates are independent and are estimated on a thread pool; the output is
always restored to date order.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..constants import (
    ASSET_RETURNS_COL,
    CONSTRAINT_TOLERANCE,
    DATE_COL,
    DEFAULT_MAX_CONDITION,
    DEFAULT_WINSOR_FACTOR,
    MKT_CAP_COL,
    MKT_FACTOR_COL,
    RES_RET_COL,
    SYMBOL_COL,
)
from ..exceptions import (
    EstimationError,
    InsufficientDataError,
    InvalidConfigError,
    RankDeficientError,
    SchemaMismatchError,
)
from ..math.cross_section import winsorize
from ..math.linalg import constrained_wls
from ..types import DateFactorReturns, Exposures, FactorModelResult, MarketCapWeights, Returns

logger = logging.getLogger(__name__)

WEIGHT_TRANSFORMS = ("linear", "sqrt")


@dataclass(frozen=True)
class EstimatorConfig:
    """Configuration of the factor-return estimator."""

    # Winsorization fraction applied to each date's returns before fitting (None = off)
    winsor_factor: Optional[float] = DEFAULT_WINSOR_FACTOR

    # Orthogonalize style scores against the sector dummies before fitting
    residualize_styles: bool = True

    # Regression weights from market cap: "linear" (cap share) or "sqrt" (Barra sqrt-cap)
    weight_transform: str = "linear"

    # Minimum members a sector needs on a date for that date to be estimated
    min_sector_members: int = 1

    # Largest acceptable condition number of the weighted design
    max_condition: float = DEFAULT_MAX_CONDITION

    # Column names
    date_col: str = DATE_COL
    symbol_col: str = SYMBOL_COL
    asset_returns_col: str = ASSET_RETURNS_COL
    mkt_cap_col: str = MKT_CAP_COL
    mkt_factor_col: str = MKT_FACTOR_COL
    res_ret_col: str = RES_RET_COL

    def __post_init__(self):
        if self.winsor_factor is not None:
            if not np.isfinite(self.winsor_factor) or not (0.0 <= self.winsor_factor < 0.5):
                raise InvalidConfigError(f"winsor_factor must be None or in [0, 0.5), got {self.winsor_factor!r}")
        if not isinstance(self.residualize_styles, (bool, np.bool_)):
            raise InvalidConfigError(f"residualize_styles must be a bool, got {self.residualize_styles!r}")
        if self.weight_transform not in WEIGHT_TRANSFORMS:
            raise InvalidConfigError(f"weight_transform must be one of {WEIGHT_TRANSFORMS}, got {self.weight_transform!r}")
        if isinstance(self.min_sector_members, bool) or int(self.min_sector_members) != self.min_sector_members or self.min_sector_members < 1:
            raise InvalidConfigError(f"min_sector_members must be a positive integer, got {self.min_sector_members!r}")
        if not np.isfinite(self.max_condition) or self.max_condition <= 1:
            raise InvalidConfigError(f"max_condition must be a finite number > 1, got {self.max_condition!r}")

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "EstimatorConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(params) - known
        if unknown:
            raise InvalidConfigError(f"unknown estimator config keys: {sorted(unknown)}")
        return cls(**dict(params))

    @property
    def key_cols(self) -> List[str]:
        return [self.date_col, self.symbol_col]


@dataclass
class DateEstimate:
    """Result of one cross-sectional regression."""

    date: pd.Timestamp
    factor_returns: DateFactorReturns
    symbols: np.ndarray
    residuals: Returns
    # Style columns as they entered the design (n x styles)
    style_exposures: Exposures
    diagnostics: Dict[str, float] = field(default_factory=dict)


class FactorReturnsEstimator:
    """Market + sector + style factor returns for every date in a panel."""

    def __init__(self, config: Optional[EstimatorConfig] = None, max_workers: Optional[int] = None):
        self.config = config if config is not None else EstimatorConfig()
        if not isinstance(self.config, EstimatorConfig):
            raise InvalidConfigError(f"config must be an EstimatorConfig, got {type(self.config).__name__}")
        if max_workers is not None and (int(max_workers) != max_workers or max_workers < 1):
            raise InvalidConfigError(f"max_workers must be a positive integer, got {max_workers!r}")
        self.max_workers = int(max_workers) if max_workers is not None else (os.cpu_count() or 1)

    @classmethod
    def from_settings(cls, config_manager=None) -> "FactorReturnsEstimator":
        """Build an estimator from the user configuration file / environment."""
        from ..common.config_manager import ConfigManager

        manager = config_manager or ConfigManager()
        return cls(config=manager.get_estimator_config(), max_workers=manager.get_max_workers())

    # ------------------------------------------------------------------
    # Input validation
    # ------------------------------------------------------------------

    def _validate_panel(self, df: pd.DataFrame, name: str, value_cols: Sequence[str]) -> pd.DataFrame:
        if not isinstance(df, pd.DataFrame):
            raise SchemaMismatchError(f"`{name}` must be a pandas DataFrame, got {type(df).__name__}")
        cfg = self.config
        missing = [c for c in cfg.key_cols + list(value_cols) if c not in df.columns]
        if missing:
            raise SchemaMismatchError(f"`{name}` is missing required columns {missing}")

        out = df[cfg.key_cols + list(value_cols)].copy()
        try:
            out[cfg.date_col] = pd.to_datetime(out[cfg.date_col])
        except (TypeError, ValueError) as exc:
            raise SchemaMismatchError(f"`{name}` column '{cfg.date_col}' cannot be parsed as dates") from exc

        duplicated = out.duplicated(cfg.key_cols)
        if duplicated.any():
            raise SchemaMismatchError(
                f"`{name}` has {int(duplicated.sum())} duplicate ({cfg.date_col}, {cfg.symbol_col}) rows"
            )
        for col in value_cols:
            try:
                out[col] = pd.to_numeric(out[col]).astype(float)
            except (TypeError, ValueError) as exc:
                raise SchemaMismatchError(f"`{name}` column '{col}' is not numeric") from exc
        return out

    def _value_columns(self, df: pd.DataFrame, name: str) -> List[str]:
        if not isinstance(df, pd.DataFrame):
            raise SchemaMismatchError(f"`{name}` must be a pandas DataFrame, got {type(df).__name__}")
        for col in self.config.key_cols:
            if col not in df.columns:
                raise SchemaMismatchError(f"`{name}` must have a '{col}' column")
        return sorted(str(c) for c in df.columns if c not in self.config.key_cols)

    def _check_one_hot(self, sector_df: pd.DataFrame, sector_cols: Sequence[str]) -> None:
        values = sector_df[list(sector_cols)].to_numpy(dtype=float)
        bad_values = ~np.isin(values, (0.0, 1.0))
        if bad_values.any():
            raise SchemaMismatchError(
                f"`sector_df` indicators must be 0 or 1; {int(bad_values.any(axis=1).sum())} rows violate this"
            )
        row_sums = values.sum(axis=1)
        bad_rows = row_sums != 1.0
        if bad_rows.any():
            raise SchemaMismatchError(
                f"`sector_df` must mark exactly one sector per row; {int(bad_rows.sum())} rows do not"
            )

    def _check_market_caps(self, mkt_cap_df: pd.DataFrame) -> None:
        caps = mkt_cap_df[self.config.mkt_cap_col]
        invalid = caps.notna() & ~(caps > 0)
        if invalid.any():
            raise SchemaMismatchError(
                f"`mkt_cap_df` has {int(invalid.sum())} non-positive market caps"
            )

    # ------------------------------------------------------------------
    # Per-date estimation
    # ------------------------------------------------------------------

    def estimate_date(
        self,
        date,
        frame: pd.DataFrame,
        sector_cols: Sequence[str],
        style_cols: Sequence[str],
    ) -> DateEstimate:
        """Estimate one cross-section.

        Args:
            date: The date being estimated
            frame: Joined rows for that date (returns, cap, sectors, styles), no NaNs
            sector_cols: Sector indicator columns
            style_cols: Style score columns

        Raises:
            InsufficientDataError: No observations
            RankDeficientError: Too few assets, an undersized sector, or an
                ill-conditioned design
        """
        cfg = self.config
        date = pd.Timestamp(date)
        n = len(frame)
        if n == 0:
            raise InsufficientDataError(f"no complete observations on {date.date()}")

        y_raw = frame[cfg.asset_returns_col].to_numpy(dtype=float)
        caps = MarketCapWeights.from_raw(frame[cfg.mkt_cap_col].to_numpy(dtype=float))

        sectors_all = frame[list(sector_cols)].to_numpy(dtype=float)
        members = sectors_all.sum(axis=0)
        present = members > 0
        present_names = [name for name, keep in zip(sector_cols, present) if keep]
        for name, count in zip(present_names, members[present]):
            if count < cfg.min_sector_members:
                raise RankDeficientError(
                    f"sector '{name}' has {int(count)} member(s) on {date.date()}, "
                    f"need at least {cfg.min_sector_members}"
                )
        sectors = sectors_all[:, present]
        styles = frame[list(style_cols)].to_numpy(dtype=float).reshape(n, len(style_cols))

        n_params = 1 + (sectors.shape[1] - 1) + styles.shape[1]
        if n < 2:
            raise RankDeficientError(f"a single asset on {date.date()} cannot identify a cross-section")
        if n < n_params:
            raise RankDeficientError(f"{n} assets for {n_params} free parameters on {date.date()}")

        y = winsorize(y_raw, cfg.winsor_factor) if cfg.winsor_factor is not None else y_raw
        if cfg.weight_transform == "sqrt":
            weights = caps.sqrt_weights / caps.sqrt_weights.sum()
        else:
            weights = caps.normalized
        participation = caps.sector_participation(sectors)

        try:
            fit = constrained_wls(
                y,
                weights,
                sectors,
                styles,
                sector_weights=participation,
                residualize_styles=cfg.residualize_styles,
                max_condition=cfg.max_condition,
            )
        except RankDeficientError as exc:
            raise RankDeficientError(f"{date.date()}: {exc}") from exc

        # Residuals are measured against realized (not winsorized) returns
        residuals = y_raw - fit.fitted

        constraint_error = float(abs(participation @ fit.sector_returns))
        scale = max(1.0, float(np.abs(participation * fit.sector_returns).sum()))
        if constraint_error > CONSTRAINT_TOLERANCE * scale:
            logger.warning(
                "Sector constraint check not close to 0: %.6e (date=%s)", constraint_error, date.date()
            )

        factor_returns = DateFactorReturns(
            date=date,
            market=fit.market_return,
            sectors=tuple(zip(present_names, (float(v) for v in fit.sector_returns))),
            styles=tuple(zip(style_cols, (float(v) for v in fit.style_returns))),
        )
        diagnostics = {
            "n_obs": n,
            "n_sectors": len(present_names),
            "r2": fit.r_squared,
            "rmse": fit.rmse,
            "constraint_error": constraint_error,
        }
        return DateEstimate(
            date=date,
            factor_returns=factor_returns,
            symbols=frame[cfg.symbol_col].to_numpy(),
            residuals=residuals,
            style_exposures=fit.style_exposures,
            diagnostics=diagnostics,
        )

    # ------------------------------------------------------------------
    # Full panel
    # ------------------------------------------------------------------

    def _join(
        self,
        returns_df: pd.DataFrame,
        mkt_cap_df: pd.DataFrame,
        sector_df: pd.DataFrame,
        style_df: Optional[pd.DataFrame],
    ) -> Tuple[pd.DataFrame, List[str], List[str], pd.DatetimeIndex]:
        cfg = self.config
        sector_cols = self._value_columns(sector_df, "sector_df")
        style_cols = [] if style_df is None else self._value_columns(style_df, "style_df")
        if not sector_cols:
            raise SchemaMismatchError("`sector_df` must have at least one sector column")

        reserved = {cfg.asset_returns_col, cfg.mkt_cap_col}
        clashes = (set(sector_cols) & set(style_cols)) | ((set(sector_cols) | set(style_cols)) & reserved)
        if clashes:
            raise SchemaMismatchError(f"column names used by more than one panel: {sorted(clashes)}")
        if cfg.mkt_factor_col in set(sector_cols) | set(style_cols):
            raise SchemaMismatchError(f"'{cfg.mkt_factor_col}' is reserved for the market factor")

        returns = self._validate_panel(returns_df, "returns_df", [cfg.asset_returns_col])
        caps = self._validate_panel(mkt_cap_df, "mkt_cap_df", [cfg.mkt_cap_col])
        sectors = self._validate_panel(sector_df, "sector_df", sector_cols)
        self._check_market_caps(caps)
        self._check_one_hot(sectors, sector_cols)

        joined = returns.merge(caps, on=cfg.key_cols).merge(sectors, on=cfg.key_cols)
        if style_df is not None:
            styles = self._validate_panel(style_df, "style_df", style_cols)
            joined = joined.merge(styles, on=cfg.key_cols)

        required = [cfg.asset_returns_col, cfg.mkt_cap_col] + style_cols
        complete = joined[required].notna().all(axis=1) & np.isfinite(joined[required]).all(axis=1)
        dropped = int((~complete).sum())
        if dropped:
            logger.warning("Dropped %d joined rows with missing returns, caps or style scores", dropped)
        joined = joined[complete].sort_values(cfg.key_cols, kind="mergesort").reset_index(drop=True)

        all_dates = pd.DatetimeIndex(sorted(returns[cfg.date_col].unique()))
        return joined, sector_cols, style_cols, all_dates

    def estimate(
        self,
        returns_df: pd.DataFrame,
        mkt_cap_df: pd.DataFrame,
        sector_df: pd.DataFrame,
        style_df: Optional[pd.DataFrame] = None,
    ) -> FactorModelResult:
        """Estimate factor and residual returns for every date.

        Args:
            returns_df: ``date | symbol | asset_returns``
            mkt_cap_df: ``date | symbol | market_cap``
            sector_df: ``date | symbol | <sector indicators>``
            style_df: ``date | symbol | <style scores>`` (None for a market + sector model)

        Returns:
            FactorModelResult; dates that failed are listed in ``failures`` and
            are absent from every output frame

        Raises:
            SchemaMismatchError: An input panel is malformed
        """
        cfg = self.config
        joined, sector_cols, style_cols, all_dates = self._join(returns_df, mkt_cap_df, sector_df, style_df)

        groups = {date: frame for date, frame in joined.groupby(cfg.date_col, sort=True)}
        failures: Dict[pd.Timestamp, str] = {}
        for date in all_dates:
            if date not in groups:
                failures[pd.Timestamp(date)] = f"no complete observations on {pd.Timestamp(date).date()}"
        if failures:
            logger.info("%d dates have no complete observations after joining the panels", len(failures))

        tasks = list(groups.items())
        logger.info(
            "Estimating %d dates (%d sectors, %d styles) with %d worker(s)",
            len(tasks), len(sector_cols), len(style_cols), min(self.max_workers, max(len(tasks), 1)),
        )
        results = self._run_tasks(tasks, sector_cols, style_cols, failures)
        estimates = [r for r in results if r is not None]

        result = self._assemble(estimates, sector_cols, style_cols, failures)
        logger.info(
            "Estimated %d of %d dates (%d failed)",
            len(estimates), len(all_dates), len(result.failures),
        )
        return result

    def _run_tasks(
        self,
        tasks: List[Tuple[pd.Timestamp, pd.DataFrame]],
        sector_cols: Sequence[str],
        style_cols: Sequence[str],
        failures: Dict[pd.Timestamp, str],
    ) -> List[Optional[DateEstimate]]:
        # Results land in a pre-sized list by date position, never by completion order
        results: List[Optional[DateEstimate]] = [None] * len(tasks)

        def record_failure(date, exc: EstimationError) -> None:
            failures[pd.Timestamp(date)] = str(exc)
            logger.warning("Skipping %s: %s", pd.Timestamp(date).date(), exc)

        if self.max_workers == 1 or len(tasks) <= 1:
            for idx, (date, frame) in enumerate(tasks):
                try:
                    results[idx] = self.estimate_date(date, frame, sector_cols, style_cols)
                except EstimationError as exc:
                    record_failure(date, exc)
            return results

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self.estimate_date, date, frame.copy(), sector_cols, style_cols): idx
                for idx, (date, frame) in enumerate(tasks)
            }
            try:
                for future in as_completed(futures):
                    idx = futures[future]
                    try:
                        results[idx] = future.result()
                    except EstimationError as exc:
                        record_failure(tasks[idx][0], exc)
            except BaseException:
                for future in futures:
                    future.cancel()
                raise
        return results

    def _assemble(
        self,
        estimates: List[DateEstimate],
        sector_cols: Sequence[str],
        style_cols: Sequence[str],
        failures: Dict[pd.Timestamp, str],
    ) -> FactorModelResult:
        cfg = self.config
        factor_cols = [cfg.mkt_factor_col] + list(sector_cols) + list(style_cols)
        index = pd.DatetimeIndex([e.date for e in estimates], name=cfg.date_col)

        rows = []
        for est in estimates:
            row = est.factor_returns.as_dict()
            row[cfg.mkt_factor_col] = row.pop(MKT_FACTOR_COL)
            rows.append(row)
        factor_returns = pd.DataFrame(rows, index=index, columns=factor_cols, dtype=float)

        if estimates:
            residual_returns = pd.concat(
                [
                    pd.DataFrame(
                        {cfg.date_col: est.date, cfg.symbol_col: est.symbols, cfg.res_ret_col: est.residuals}
                    )
                    for est in estimates
                ],
                ignore_index=True,
            )
        else:
            residual_returns = pd.DataFrame(columns=[cfg.date_col, cfg.symbol_col, cfg.res_ret_col])

        style_exposures = self._assemble_exposures(estimates, style_cols)
        diagnostics = pd.DataFrame([e.diagnostics for e in estimates], index=index)
        ordered_failures = {date: failures[date] for date in sorted(failures)}

        return FactorModelResult(
            factor_returns=factor_returns,
            residual_returns=residual_returns,
            style_exposures=style_exposures,
            diagnostics=diagnostics,
            failures=ordered_failures,
        )

    def _assemble_exposures(self, estimates: List[DateEstimate], style_cols: Sequence[str]) -> pd.DataFrame:
        cfg = self.config
        columns = [cfg.date_col, cfg.symbol_col] + list(style_cols)
        if not estimates:
            return pd.DataFrame(columns=columns)
        pieces = []
        for est in estimates:
            piece = pd.DataFrame(est.style_exposures, columns=list(style_cols), dtype=float)
            piece.insert(0, cfg.symbol_col, est.symbols)
            piece.insert(0, cfg.date_col, est.date)
            pieces.append(piece)
        return pd.concat(pieces, ignore_index=True)[columns]


def estimate_factor_returns(
    returns_df: pd.DataFrame,
    mkt_cap_df: pd.DataFrame,
    sector_df: pd.DataFrame,
    style_df: Optional[pd.DataFrame] = None,
    winsor_factor: Optional[float] = DEFAULT_WINSOR_FACTOR,
    residualize_styles: bool = True,
    max_workers: Optional[int] = None,
    **config_kwargs,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Functional shortcut returning ``(factor_returns, residual_returns)``.

    Extra keyword arguments are forwarded to ``EstimatorConfig``.
    """
    config = EstimatorConfig(winsor_factor=winsor_factor, residualize_styles=residualize_styles, **config_kwargs)
    result = FactorReturnsEstimator(config, max_workers=max_workers).estimate(
        returns_df, mkt_cap_df, sector_df, style_df
    )
    return result.factor_returns, result.residual_returns
