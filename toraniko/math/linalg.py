#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Weighted least squares and the sector-constrained cross-sectional regression.

The factor model for one date is

    r = 1 * f_mkt + S @ f_sec + Z @ f_sty + u

where ``S`` holds one-hot sector dummies and ``Z`` style scores. Because every
row of ``S`` sums to one, the sector columns span the market column and the
unconstrained system is rank-deficient by exactly one. The Barra resolution
imposes

    sum_k s_k * f_sec[k] = 0

with ``s_k`` the participation (weight share) of sector k, and enforces it by
eliminating the last sector:

    f_sec[K] = -sum_{k<K} (s_k / s_K) * f_sec[k]
    r = 1 * f_mkt + sum_{k<K} (S_k - (s_k / s_K) * S_K) * f_sec[k] + Z @ f_sty + u

The reduced system is full rank; back-substitution recovers ``f_sec[K]`` so
the constraint holds to floating-point precision.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..constants import DEFAULT_MAX_CONDITION
from ..exceptions import RankDeficientError, SchemaMismatchError


@dataclass(frozen=True)
class WlsResult:
    coefficients: np.ndarray
    residuals: np.ndarray
    fitted: np.ndarray
    r_squared: float
    rmse: float
    condition_number: float


@dataclass(frozen=True)
class ConstrainedWlsResult:
    market_return: float
    sector_returns: np.ndarray
    style_returns: np.ndarray
    residuals: np.ndarray
    fitted: np.ndarray
    r_squared: float
    rmse: float
    sector_weights: np.ndarray
    # Style columns actually used in the design (residualized when requested)
    style_exposures: np.ndarray

    @property
    def factor_returns(self) -> np.ndarray:
        """Market, sector and style returns concatenated in that order."""
        return np.concatenate([[self.market_return], self.sector_returns, self.style_returns])


def _as_matrix(x, name: str, n_rows: int) -> np.ndarray:
    x = np.asarray(x, dtype=float)
    if x.ndim == 1:
        x = x.reshape(-1, 1)
    if x.ndim != 2:
        raise SchemaMismatchError(f"{name} must be 2-dimensional, got {x.ndim} dimensions")
    if x.shape[0] != n_rows:
        raise SchemaMismatchError(f"{name} has {x.shape[0]} rows, expected {n_rows}")
    return x


def _weighted_fit_stats(y: np.ndarray, resid: np.ndarray, w: np.ndarray) -> tuple[float, float]:
    wsum = float(w.sum())
    if wsum <= 0:
        return float("nan"), float("nan")
    ybar = float(np.sum(w * y) / wsum)
    sse = float(np.sum(w * resid ** 2))
    sst = float(np.sum(w * (y - ybar) ** 2))
    r2 = float(1.0 - sse / sst) if sst > 0 else float("nan")
    rmse = float(np.sqrt(sse / wsum))
    return r2, rmse


def weighted_least_squares(
    y,
    x,
    weights,
    max_condition: float = DEFAULT_MAX_CONDITION,
) -> WlsResult:
    """Solve min_b sum_i w_i * (y_i - x_i @ b)^2.

    Rows of ``x`` and ``y`` are scaled by sqrt(w) and the transformed system is
    solved through a QR decomposition, which avoids squaring the condition
    number the way explicit normal equations do.

    Args:
        y: Response vector (n,)
        x: Design matrix (n, p)
        weights: Non-negative observation weights (n,)
        max_condition: Largest acceptable condition number of the weighted design

    Returns:
        WlsResult with coefficients, residuals y - x @ b, fitted values and weighted R²

    Raises:
        SchemaMismatchError: Shapes disagree or inputs are not finite
        RankDeficientError: Fewer weighted observations than regressors, or the
            weighted design is singular / ill-conditioned
    """
    y = np.asarray(y, dtype=float).ravel()
    n = y.shape[0]
    x = _as_matrix(x, "design matrix", n)
    w = np.asarray(weights, dtype=float).ravel()
    if w.shape[0] != n:
        raise SchemaMismatchError(f"weights have length {w.shape[0]}, expected {n}")

    p = x.shape[1]
    if p == 0:
        raise SchemaMismatchError("design matrix has no columns")
    if not (np.all(np.isfinite(y)) and np.all(np.isfinite(x))):
        raise SchemaMismatchError("response and design matrix must be finite")
    if not np.all(np.isfinite(w)) or np.any(w < 0):
        raise SchemaMismatchError("weights must be finite and non-negative")

    n_eff = int(np.count_nonzero(w > 0))
    if n_eff < p:
        raise RankDeficientError(f"{n_eff} weighted observations for {p} regressors")

    sqrt_w = np.sqrt(w)
    xw = x * sqrt_w[:, None]
    yw = y * sqrt_w

    q, r = np.linalg.qr(xw)
    singular_values = np.linalg.svd(r, compute_uv=False)
    if singular_values[-1] <= 0 or not np.isfinite(singular_values[0]):
        raise RankDeficientError("weighted design matrix is singular")
    cond = float(singular_values[0] / singular_values[-1])
    if not np.isfinite(cond) or cond > max_condition:
        raise RankDeficientError(f"weighted design matrix is ill-conditioned (cond={cond:.3e})")

    coef = np.linalg.solve(r, q.T @ yw)
    fitted = x @ coef
    resid = y - fitted
    r2, rmse = _weighted_fit_stats(y, resid, w)

    return WlsResult(
        coefficients=coef,
        residuals=resid,
        fitted=fitted,
        r_squared=r2,
        rmse=rmse,
        condition_number=cond,
    )


def residualize_against(
    columns,
    basis,
    weights,
    max_condition: float = DEFAULT_MAX_CONDITION,
) -> np.ndarray:
    """Weighted projection residuals of each column on ``basis``.

    Each column z is replaced by z - basis @ b where b is the WLS fit of z on
    ``basis``; the result is weighted-orthogonal to every basis column.
    """
    basis = np.asarray(basis, dtype=float)
    columns = _as_matrix(columns, "columns", basis.shape[0])
    out = np.empty_like(columns)
    for j in range(columns.shape[1]):
        out[:, j] = weighted_least_squares(columns[:, j], basis, weights, max_condition).residuals
    return out


def constrained_wls(
    y,
    weights,
    sector_matrix,
    style_matrix=None,
    sector_weights: Optional[np.ndarray] = None,
    residualize_styles: bool = False,
    max_condition: float = DEFAULT_MAX_CONDITION,
) -> ConstrainedWlsResult:
    """Market + sector + style regression with the sector sum-to-zero constraint.

    Args:
        y: Asset returns for one date (n,)
        weights: Regression weights (n,)
        sector_matrix: One-hot sector dummies of the sectors present (n, K)
        style_matrix: Style scores (n, m); None or zero columns for no styles
        sector_weights: Participation s_k used in the constraint. Defaults to the
            share of ``weights`` held by each sector.
        residualize_styles: Orthogonalize styles against the sector dummies first
        max_condition: Passed through to the WLS solver

    Returns:
        ConstrainedWlsResult; ``sector_returns @ sector_weights`` is zero
    """
    y = np.asarray(y, dtype=float).ravel()
    n = y.shape[0]
    w = np.asarray(weights, dtype=float).ravel()
    if w.shape[0] != n:
        raise SchemaMismatchError(f"weights have length {w.shape[0]}, expected {n}")

    sectors = _as_matrix(sector_matrix, "sector matrix", n)
    n_sectors = sectors.shape[1]
    if n_sectors == 0:
        raise SchemaMismatchError("at least one sector column is required")

    if style_matrix is None:
        styles = np.zeros((n, 0))
    else:
        styles = _as_matrix(style_matrix, "style matrix", n)

    if sector_weights is None:
        wsum = float(w.sum())
        if wsum <= 0:
            raise RankDeficientError("weights sum to zero")
        s = (w @ sectors) / wsum
    else:
        s = np.asarray(sector_weights, dtype=float).ravel()
        if s.shape[0] != n_sectors:
            raise SchemaMismatchError(f"sector_weights have length {s.shape[0]}, expected {n_sectors}")
    if not np.all(np.isfinite(s)) or np.any(s <= 0):
        raise RankDeficientError("every sector in the design needs positive participation")

    if residualize_styles and styles.shape[1] > 0:
        styles = residualize_against(styles, sectors, w, max_condition)

    # Change of variables eliminating the last sector
    ratio = s[:-1] / s[-1]
    reduced_sectors = sectors[:, :-1] - np.outer(sectors[:, -1], ratio)
    design = np.hstack([np.ones((n, 1)), reduced_sectors, styles])

    result = weighted_least_squares(y, design, w, max_condition)
    coef = result.coefficients

    g = coef[1:n_sectors]
    ref_return = -float(s[:-1] @ g) / s[-1]
    sector_returns = np.concatenate([g, [ref_return]])
    style_returns = coef[n_sectors:]

    return ConstrainedWlsResult(
        market_return=float(coef[0]),
        sector_returns=sector_returns,
        style_returns=style_returns,
        residuals=result.residuals,
        fitted=result.fitted,
        r_squared=result.r_squared,
        rmse=result.rmse,
        sector_weights=s,
        style_exposures=styles,
    )
