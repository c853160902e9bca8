#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Cross-sectional transforms

Two flavours are provided:

- array functions operating on one date's vector of values across assets
  (``center``, ``normalize``, ``winsorize``, ``percentile_mask``);
- panel functions operating on a long DataFrame, applying the same transform
  separately within each date (``*_xsection``).

Notes
-----
Percentiles always use linear interpolation between order statistics
(numpy ``method="linear"``, which is also the pandas ``quantile`` default), so
array and panel versions agree bit for bit. NaN inputs stay NaN and are
ignored by every statistic.
"""

from __future__ import annotations

from typing import Iterable, Optional

import numpy as np
import pandas as pd

from ..constants import DATE_COL
from ..exceptions import InsufficientDataError, InvalidConfigError


def _validate_winsor_factor(p: float) -> float:
    if p is None or not np.isfinite(p) or p < 0.0 or p >= 0.5:
        raise InvalidConfigError(f"winsorization fraction must be in [0, 0.5), got {p!r}")
    return float(p)


# =============================================================================
# Array transforms (one cross-section)
# =============================================================================

def winsorize(values, p: float) -> np.ndarray:
    """Clip values to the [p, 1-p] percentile range.

    Parameters
    ----------
    values : array-like
        One cross-section
    p : float
        Tail fraction in [0, 0.5); 0 leaves the data untouched

    Returns
    -------
    np.ndarray
        Same-length array. Values strictly inside the bounds are unchanged.
    """
    p = _validate_winsor_factor(p)
    data = np.asarray(values, dtype=float).copy()
    if p == 0.0 or data.size == 0:
        return data

    valid = data[np.isfinite(data)]
    if valid.size == 0:
        return data

    lo, hi = np.quantile(valid, [p, 1.0 - p], method="linear")
    finite = np.isfinite(data)
    data[finite] = np.clip(data[finite], lo, hi)
    return data


def percentile_mask(values, low: float, high: float) -> np.ndarray:
    """Boolean mask selecting values inside the [low, high] percentile bounds.

    NaN entries are never selected.
    """
    if not (0.0 <= low <= high <= 1.0):
        raise InvalidConfigError(f"percentile bounds must satisfy 0 <= low <= high <= 1, got ({low}, {high})")
    data = np.asarray(values, dtype=float)
    finite = np.isfinite(data)
    if not finite.any():
        return np.zeros(data.shape, dtype=bool)

    lo, hi = np.quantile(data[finite], [low, high], method="linear")
    return finite & (data >= lo) & (data <= hi)


def center(values, weights=None, standardize: bool = False) -> np.ndarray:
    """Subtract the (optionally weighted) cross-sectional mean.

    Parameters
    ----------
    values : array-like
        One cross-section
    weights : array-like, optional
        Non-negative weights; entries with missing weight are ignored
    standardize : bool
        Also divide by the (weighted) standard deviation. A zero standard
        deviation leaves the vector centered only.

    Raises
    ------
    InsufficientDataError
        Fewer than two usable values
    """
    data = np.asarray(values, dtype=float)
    mask = np.isfinite(data)

    if weights is not None:
        w = np.asarray(weights, dtype=float)
        if w.shape != data.shape:
            raise InvalidConfigError(f"weights shape {w.shape} does not match values shape {data.shape}")
        if np.any(w[np.isfinite(w)] < 0):
            raise InvalidConfigError("weights must be non-negative")
        mask &= np.isfinite(w) & (w > 0)

    if int(mask.sum()) < 2:
        raise InsufficientDataError(f"center requires at least 2 values, got {int(mask.sum())}")

    xv = data[mask]
    if weights is None:
        mean = float(xv.mean())
        std = float(xv.std(ddof=1))
    else:
        wv = w[mask]
        mean = float(np.average(xv, weights=wv))
        std = float(np.sqrt(np.average((xv - mean) ** 2, weights=wv)))

    centered = data - mean
    if standardize and np.isfinite(std) and std > 0:
        return centered / std
    return centered


def normalize(
    values,
    lower: float = -1.0,
    upper: float = 1.0,
    winsor_factor: Optional[float] = None,
) -> np.ndarray:
    """Rescale a cross-section into ``[lower, upper]`` by its min and max.

    Constant input maps to zeros. With ``winsor_factor`` the vector is
    winsorized before the range is measured.
    """
    if not (np.isfinite(lower) and np.isfinite(upper)) or lower >= upper:
        raise InvalidConfigError(f"normalize range must satisfy lower < upper, got ({lower}, {upper})")

    data = np.asarray(values, dtype=float)
    if winsor_factor is not None:
        data = winsorize(data, winsor_factor)
    else:
        data = data.copy()

    finite = np.isfinite(data)
    if not finite.any():
        return data

    lo = float(data[finite].min())
    hi = float(data[finite].max())
    span = hi - lo
    if span == 0:
        return np.where(finite, 0.0, data)

    return (data - lo) / span * (upper - lower) + lower


# =============================================================================
# Panel transforms (per-date cross-sections of a long DataFrame)
# =============================================================================

def center_xsection(
    df: pd.DataFrame,
    target_col: str,
    over_col: str = DATE_COL,
    standardize: bool = False,
) -> pd.Series:
    """Center (and optionally standardize) ``target_col`` within each ``over_col`` group.

    Groups with a single value come back as NaN when standardizing.
    """
    grouped = df.groupby(over_col)[target_col]
    centered = df[target_col] - grouped.transform("mean")
    if not standardize:
        return centered

    std = grouped.transform("std")
    result = centered / std.where(std > 0)
    # zero-dispersion dates stay centered rather than becoming inf
    return result.where(~(std == 0), centered)


def norm_xsection(
    df: pd.DataFrame,
    target_col: str,
    over_col: str = DATE_COL,
    lower: float = -1.0,
    upper: float = 1.0,
) -> pd.Series:
    """Min-max scale ``target_col`` into ``[lower, upper]`` within each group."""
    if lower >= upper:
        raise InvalidConfigError(f"normalize range must satisfy lower < upper, got ({lower}, {upper})")
    grouped = df.groupby(over_col)[target_col]
    lo = grouped.transform("min")
    span = grouped.transform("max") - lo
    scaled = (df[target_col] - lo) / span.where(span != 0) * (upper - lower) + lower
    return scaled.where(span != 0, 0.0).where(df[target_col].notna())


def winsorize_xsection(
    df: pd.DataFrame,
    data_cols: Iterable[str],
    group_col: str = DATE_COL,
    percentile: float = 0.05,
) -> pd.DataFrame:
    """Winsorize each of ``data_cols`` separately within every ``group_col`` group.

    Returns a copy of ``df``.
    """
    p = _validate_winsor_factor(percentile)
    out = df.copy()
    if p == 0.0:
        return out

    grouped = out.groupby(group_col)
    for col in data_cols:
        lo = grouped[col].transform(lambda s: s.quantile(p))
        hi = grouped[col].transform(lambda s: s.quantile(1.0 - p))
        out[col] = out[col].clip(lower=lo, upper=hi)
    return out


def percentiles_xsection(
    df: pd.DataFrame,
    target_col: str,
    over_col: str = DATE_COL,
    lower_pct: float = 0.1,
    upper_pct: float = 0.9,
    fill_val: float = 0.0,
) -> pd.Series:
    """Keep values in the tails of each cross-section and fill the middle.

    Values strictly below the ``lower_pct`` percentile or strictly above the
    ``upper_pct`` percentile are kept; everything in between becomes
    ``fill_val``. Useful for building long/short tail portfolios.
    """
    if not (0.0 <= lower_pct <= upper_pct <= 1.0):
        raise InvalidConfigError(
            f"percentile bounds must satisfy 0 <= lower <= upper <= 1, got ({lower_pct}, {upper_pct})"
        )
    grouped = df.groupby(over_col)[target_col]
    lo = grouped.transform(lambda s: s.quantile(lower_pct))
    hi = grouped.transform(lambda s: s.quantile(upper_pct))
    x = df[target_col]
    in_tail = (x < lo) | (x > hi)
    return x.where(in_tail | x.isna(), fill_val)
