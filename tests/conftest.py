#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Shared pytest configuration

Synthetic long-format panels for the factor model tests.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from toraniko.common.config_manager import (  # noqa: E402
    ENV_CONFIG_PATH,
    ENV_MAX_WORKERS,
    ENV_RESIDUALIZE_STYLES,
    ENV_WINSOR_FACTOR,
    ConfigManager,
)


# ===== Panels =====


SECTORS = ("energy", "health", "tech")


def _build_model_panel(n_assets=24, n_dates=8, seed=7, noise=1e-4):
    """Returns generated from a known market + sector + style model."""
    rng = np.random.default_rng(seed)
    symbols = [f"S{i:02d}" for i in range(n_assets)]
    dates = pd.bdate_range("2024-01-02", periods=n_dates)
    sector_of = {s: SECTORS[i % len(SECTORS)] for i, s in enumerate(symbols)}
    base_caps = rng.uniform(1e9, 5e10, n_assets)
    mom = rng.normal(size=n_assets)
    val = rng.normal(size=n_assets)

    true_market = rng.normal(0.0, 0.01, n_dates)
    true_sectors = rng.normal(0.0, 0.005, (n_dates, len(SECTORS)))
    true_styles = rng.normal(0.0, 0.003, (n_dates, 2))

    returns, caps, sectors, styles = [], [], [], []
    for t, date in enumerate(dates):
        cap_t = base_caps * np.exp(rng.normal(0.0, 0.01, n_assets))
        for i, sym in enumerate(symbols):
            k = SECTORS.index(sector_of[sym])
            r = (
                true_market[t]
                + true_sectors[t, k]
                + true_styles[t, 0] * mom[i]
                + true_styles[t, 1] * val[i]
                + rng.normal(0.0, noise)
            )
            returns.append({"date": date, "symbol": sym, "asset_returns": r})
            caps.append({"date": date, "symbol": sym, "market_cap": cap_t[i]})
            row = {"date": date, "symbol": sym}
            row.update({name: 1 if name == sector_of[sym] else 0 for name in SECTORS})
            sectors.append(row)
            styles.append({"date": date, "symbol": sym, "mom_score": mom[i], "val_score": val[i]})

    return {
        "returns_df": pd.DataFrame(returns),
        "mkt_cap_df": pd.DataFrame(caps),
        "sector_df": pd.DataFrame(sectors),
        "style_df": pd.DataFrame(styles),
        "dates": dates,
        "symbols": symbols,
        "true_market": pd.Series(true_market, index=dates),
        "true_sectors": pd.DataFrame(true_sectors, index=dates, columns=list(SECTORS)),
        "true_styles": pd.DataFrame(true_styles, index=dates, columns=["mom_score", "val_score"]),
    }


@pytest.fixture
def model_panel():
    """24 assets in 3 sectors over 8 dates with two style scores."""
    return _build_model_panel()


@pytest.fixture
def tiny_panel():
    """3 assets, 2 sectors (A: S1, S2; B: S3), equal caps, one style, one date."""
    date = pd.Timestamp("2024-03-01")
    symbols = ["S1", "S2", "S3"]
    return {
        "returns_df": pd.DataFrame(
            {"date": date, "symbol": symbols, "asset_returns": [0.010, -0.004, 0.021]}
        ),
        "mkt_cap_df": pd.DataFrame({"date": date, "symbol": symbols, "market_cap": [1e9, 1e9, 1e9]}),
        "sector_df": pd.DataFrame({"date": date, "symbol": symbols, "A": [1, 1, 0], "B": [0, 0, 1]}),
        "style_df": pd.DataFrame({"date": date, "symbol": symbols, "mom_score": [0.5, -0.3, 1.2]}),
    }


@pytest.fixture
def feature_history():
    """Long panel with returns, caps and valuation ratios for factor scoring."""
    rng = np.random.default_rng(11)
    dates = pd.bdate_range("2024-01-02", periods=40)
    symbols = [f"A{i}" for i in range(8)]
    rows = []
    for i, sym in enumerate(symbols):
        cap = 1e9 * (i + 1)
        for date in dates:
            rows.append(
                {
                    "date": date,
                    "symbol": sym,
                    "asset_returns": 0.001 * (i - 3) + rng.normal(0.0, 0.002),
                    "market_cap": cap * (1.0 + rng.normal(0.0, 0.001)),
                    "book_price": 0.2 + 0.1 * i,
                    "sales_price": 0.5 + 0.05 * i,
                    "cf_price": 0.1 + 0.02 * i,
                }
            )
    return pd.DataFrame(rows)


# ===== Configuration =====


@pytest.fixture
def clean_config_env(monkeypatch, tmp_path):
    """Point the config manager at an empty temp location and clear overrides."""
    for name in (ENV_WINSOR_FACTOR, ENV_RESIDUALIZE_STYLES, ENV_MAX_WORKERS):
        monkeypatch.delenv(name, raising=False)
    config_path = tmp_path / "config.json"
    monkeypatch.setenv(ENV_CONFIG_PATH, str(config_path))
    manager = ConfigManager()
    manager.reload_config()
    yield config_path
    monkeypatch.undo()
    manager.reload_config()
