#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Tests for the factor registry and user-defined factors."""

import numpy as np
import pandas as pd
import pytest

from toraniko.exceptions import (
    DuplicateFactorError,
    InsufficientDataError,
    InvalidConfigError,
    SchemaMismatchError,
    UnknownFactorError,
)
from toraniko.factors import (
    CustomFactor,
    FactorConfig,
    FactorRegistry,
    MomentumFactor,
    SizeFactor,
    StyleFactor,
    create_factor,
    default_registry,
    get_factor_class,
    register_factor_class,
    registered_factor_classes,
)


def mean_return(history, config, target_date):
    return history.groupby("symbol")["asset_returns"].mean()


SMALL_CONFIGS = {
    "momentum": FactorConfig(trailing_days=10, half_life=3.0, lag=2, winsor_factor=0.0),
    "size": FactorConfig(winsor_factor=0.0),
    "value": FactorConfig(winsor_factor=0.0),
}


class TestFactorClassCatalogue:
    def test_builtins_registered(self):
        classes = registered_factor_classes()
        assert {"momentum", "size", "value"} <= set(classes)
        assert get_factor_class("size") is SizeFactor

    def test_create_factor_with_config(self):
        config = FactorConfig(trailing_days=30, half_life=10.0)
        factor = create_factor("momentum", config)
        assert isinstance(factor, MomentumFactor)
        assert factor.config is config

    def test_unknown_class(self):
        with pytest.raises(UnknownFactorError):
            create_factor("no_such_factor")
        with pytest.raises(LookupError):
            get_factor_class("no_such_factor")

    def test_conflicting_class_name(self):
        @register_factor_class("catalogue_conflict")
        class First(StyleFactor):
            name = "catalogue_conflict"

            def _compute(self, frames, universe, config, target_date):
                return pd.Series(dtype=float)

        with pytest.raises(DuplicateFactorError):

            @register_factor_class("catalogue_conflict")
            class Second(First):
                pass


class TestFactorRegistry:
    def test_default_registry(self):
        registry = default_registry()
        assert registry.names() == ["momentum", "size", "value"]
        assert len(registry) == 3
        assert "size" in registry

    def test_default_registry_with_configs(self):
        registry = default_registry(SMALL_CONFIGS)
        assert registry.get("momentum").config.trailing_days == 10

    def test_unknown_name(self):
        registry = FactorRegistry()
        with pytest.raises(UnknownFactorError):
            registry.get("beta")
        with pytest.raises(UnknownFactorError):
            registry.unregister("beta")

    def test_duplicate_name_fails(self):
        registry = FactorRegistry([SizeFactor()])
        with pytest.raises(DuplicateFactorError):
            registry.register(SizeFactor(FactorConfig(winsor_factor=0.02)))

    def test_replace_last_write_wins(self):
        registry = FactorRegistry([SizeFactor()])
        replacement = SizeFactor(FactorConfig(winsor_factor=0.02))
        registry.register(replacement, replace=True)
        assert registry.get("size") is replacement
        assert len(registry) == 1

    def test_register_under_alias(self):
        registry = FactorRegistry()
        factor = MomentumFactor(SMALL_CONFIGS["momentum"])
        registry.register(factor, name="short_momentum")
        assert registry.get("short_momentum") is factor

    def test_register_rejects_non_factor(self):
        with pytest.raises(InvalidConfigError):
            FactorRegistry().register(lambda df: df)

    def test_unregister(self):
        registry = default_registry()
        removed = registry.unregister("value")
        assert removed.name == "value"
        assert registry.names() == ["momentum", "size"]

    def test_compute_style_scores(self, feature_history):
        registry = default_registry(SMALL_CONFIGS)
        scores = registry.compute_style_scores(feature_history)

        assert list(scores.columns) == ["date", "symbol", "momentum_score", "size_score", "value_score"]
        last = scores[scores["date"] == feature_history["date"].max()]
        assert last[["momentum_score", "size_score", "value_score"]].notna().all().all()
        # momentum needs lag + min_periods rows of history
        first = scores[scores["date"] == feature_history["date"].min()]
        assert first["momentum_score"].isna().all()
        assert first["size_score"].notna().all()

    def test_compute_selected_names(self, feature_history):
        registry = default_registry(SMALL_CONFIGS)
        scores = registry.compute_style_scores(feature_history, names=["size"])
        assert list(scores.columns) == ["date", "symbol", "size_score"]


class TestCustomFactor:
    def test_register_custom(self, feature_history):
        registry = FactorRegistry()
        registry.register_custom("avg_ret", mean_return, config=FactorConfig(winsor_factor=0.0),
                                 required_columns=["asset_returns"])
        target = feature_history["date"].max()
        scores = registry.get("avg_ret").score(feature_history, target)

        raw = feature_history.groupby("symbol")["asset_returns"].mean()
        expected = (raw - raw.mean()) / raw.std(ddof=1)
        np.testing.assert_allclose(scores.reindex(expected.index).to_numpy(), expected.to_numpy())
        assert scores.name == "avg_ret_score"

    def test_history_ends_at_target(self, feature_history):
        seen = []

        def latest_date(history, config, target_date):
            seen.append((history["date"].max(), target_date))
            return history.groupby("symbol")["asset_returns"].last()

        factor = CustomFactor("latest", latest_date, required_columns=["asset_returns"], standardize=False)
        dates = sorted(feature_history["date"].unique())[5:8]
        panel = factor.compute_panel(feature_history, dates=dates)

        assert len(seen) == 3
        assert all(max_date == target for max_date, target in seen)
        assert set(panel["date"]) == set(pd.DatetimeIndex(dates))

    def test_unstandardized_scores_raw(self, feature_history):
        factor = CustomFactor("raw_ret", mean_return, required_columns=["asset_returns"], standardize=False)
        target = feature_history["date"].max()
        scores = factor.score(feature_history, target)
        expected = feature_history.groupby("symbol")["asset_returns"].mean()
        np.testing.assert_allclose(scores.reindex(expected.index).to_numpy(), expected.to_numpy())
        assert scores.name == "raw_ret_score"
        assert scores.index.name == "symbol"

    def test_callable_runs_through_compute_hook(self, feature_history):
        targets = []

        class Recording(CustomFactor):
            def _compute(self, frames, universe, config, target_date):
                targets.append(target_date)
                return super()._compute(frames, universe, config, target_date)

        factor = Recording("rec", mean_return, required_columns=["asset_returns"])
        dates = sorted(feature_history["date"].unique())[-2:]
        panel = factor.compute_panel(feature_history, dates=dates)

        assert targets == list(pd.DatetimeIndex(dates))
        assert list(panel.columns) == ["date", "symbol", "rec_score"]

    def test_callable_may_skip_dates(self, feature_history):
        cutoff = feature_history["date"].sort_values().unique()[10]

        def late_only(history, config, target_date):
            if target_date < cutoff:
                raise InsufficientDataError("not enough history")
            return mean_return(history, config, target_date)

        factor = CustomFactor("late", late_only, required_columns=["asset_returns"])
        panel = factor.compute_panel(feature_history)
        assert panel["date"].min() == cutoff

    def test_non_series_result(self, feature_history):
        factor = CustomFactor("bad", lambda h, c, t: h, required_columns=["asset_returns"])
        with pytest.raises(SchemaMismatchError):
            factor.score(feature_history, feature_history["date"].max())

    def test_requires_callable(self):
        with pytest.raises(InvalidConfigError):
            CustomFactor("bad", "not callable")

    def test_missing_required_column(self, feature_history):
        factor = CustomFactor("needs_volume", mean_return, required_columns=["volume"])
        with pytest.raises(SchemaMismatchError):
            factor.score(feature_history, feature_history["date"].max())
