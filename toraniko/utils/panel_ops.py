#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Panel preprocessing operations

Pure functions over long-format panels (one row per date + asset). Every
function returns a new DataFrame and leaves its input untouched.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from ..constants import DATE_COL, SYMBOL_COL
from ..exceptions import InvalidConfigError, SchemaMismatchError


def _require_columns(df: pd.DataFrame, columns: Iterable[str], func: str) -> None:
    if not isinstance(df, pd.DataFrame):
        raise SchemaMismatchError(f"{func}: expected a pandas DataFrame, got {type(df).__name__}")
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise SchemaMismatchError(f"{func}: missing columns {missing}")


def fill_features(
    df: pd.DataFrame,
    features: Sequence[str],
    sort_col: str = DATE_COL,
    over_col: str = SYMBOL_COL,
) -> pd.DataFrame:
    """Forward-fill ``features`` within each ``over_col`` group in ``sort_col`` order.

    Features are cast to float and infinities are treated as missing before
    filling. Leading gaps stay NaN.

    Args:
        df: Long panel
        features: Columns to fill
        sort_col: Ordering column (typically the date)
        over_col: Partition column (typically the asset)

    Returns:
        Copy of ``df`` sorted by ``sort_col`` with filled features
    """
    features = list(features)
    _require_columns(df, features + [sort_col, over_col], "fill_features")

    out = df.sort_values(sort_col, kind="mergesort").copy()
    for feat in features:
        try:
            out[feat] = pd.to_numeric(out[feat]).astype(float).replace([np.inf, -np.inf], np.nan)
        except (TypeError, ValueError) as exc:
            raise SchemaMismatchError(f"fill_features: column '{feat}' is not numeric") from exc
    out[features] = out.groupby(over_col, sort=False)[features].ffill()
    return out


def smooth_features(
    df: pd.DataFrame,
    features: Sequence[str],
    window_size: int,
    sort_col: str = DATE_COL,
    over_col: str = SYMBOL_COL,
) -> pd.DataFrame:
    """Replace ``features`` by their trailing rolling mean over ``window_size`` rows per group.

    The window needs a single observation (``min_periods=1``) so the first
    rows of each asset are averaged over what is available.
    """
    if isinstance(window_size, bool) or int(window_size) != window_size or window_size < 1:
        raise InvalidConfigError(f"window_size must be a positive integer, got {window_size!r}")
    features = list(features)
    _require_columns(df, features + [sort_col, over_col], "smooth_features")

    out = df.sort_values(sort_col, kind="mergesort").copy()
    grouped = out.groupby(over_col, sort=False)
    for feat in features:
        out[feat] = grouped[feat].transform(lambda s: s.rolling(int(window_size), min_periods=1).mean())
    return out


def top_n_by_group(
    df: pd.DataFrame,
    n: int,
    rank_var: str,
    group_vars: Sequence[str],
    filter: bool = True,
) -> pd.DataFrame:
    """Top ``n`` rows by descending ``rank_var`` within each group.

    Args:
        df: Long panel
        n: Rows kept per group
        rank_var: Ranking column; larger is better, ties keep input order
        group_vars: Grouping columns (e.g. ``["date"]`` for a daily universe)
        filter: Return only the selected rows; otherwise return every row with
            a boolean ``rank_mask`` column

    Returns:
        New DataFrame
    """
    if isinstance(n, bool) or int(n) != n or n < 0:
        raise InvalidConfigError(f"n must be a non-negative integer, got {n!r}")
    group_vars = list(group_vars)
    _require_columns(df, group_vars + [rank_var], "top_n_by_group")

    rank = df.groupby(group_vars, sort=False)[rank_var].rank(method="first", ascending=False)
    mask = rank <= n
    if filter:
        return (
            df[mask]
            .sort_values(group_vars + [rank_var], ascending=[True] * len(group_vars) + [False], kind="mergesort")
            .reset_index(drop=True)
        )
    out = df.copy()
    out["rank_mask"] = mask.to_numpy()
    return out
