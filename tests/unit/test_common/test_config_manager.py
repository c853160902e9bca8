#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Tests for the configuration manager."""

import json
import logging

import pytest

from toraniko.common.config_manager import (
    ENV_MAX_WORKERS,
    ENV_RESIDUALIZE_STYLES,
    ENV_WINSOR_FACTOR,
    ConfigManager,
)
from toraniko.exceptions import InvalidConfigError
from toraniko.factors import FactorConfig
from toraniko.model import EstimatorConfig, FactorReturnsEstimator


def _write(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")


class TestConfigManager:
    def test_singleton(self):
        assert ConfigManager() is ConfigManager()

    def test_missing_file_gives_defaults(self, clean_config_env):
        manager = ConfigManager()
        assert manager.get_estimator_config() == EstimatorConfig()
        assert manager.get_factor_configs() == {}
        assert manager.get_max_workers() is None

    def test_reads_file(self, clean_config_env):
        _write(
            clean_config_env,
            {
                "estimator": {"winsor_factor": 0.1, "residualize_styles": False, "weight_transform": "sqrt"},
                "factors": {"momentum": {"trailing_days": 60, "half_life": 20}},
                "execution": {"max_workers": 3},
            },
        )
        manager = ConfigManager()
        manager.reload_config()

        estimator_config = manager.get_estimator_config()
        assert estimator_config.winsor_factor == 0.1
        assert estimator_config.residualize_styles is False
        assert estimator_config.weight_transform == "sqrt"
        assert manager.get_max_workers() == 3

        momentum = manager.get_factor_configs()["momentum"]
        assert momentum.trailing_days == 60
        assert momentum.half_life == 20
        # untouched fields keep the factor's defaults
        assert momentum.lag == FactorConfig.defaults_for("momentum").lag

    def test_cached_until_reload(self, clean_config_env):
        manager = ConfigManager()
        _write(clean_config_env, {"estimator": {"winsor_factor": 0.2}})
        assert manager.get_estimator_config().winsor_factor == 0.05

        manager.reload_config()
        assert manager.get_estimator_config().winsor_factor == 0.2

    def test_env_overrides(self, clean_config_env, monkeypatch):
        _write(clean_config_env, {"estimator": {"winsor_factor": 0.2, "residualize_styles": True}})
        monkeypatch.setenv(ENV_WINSOR_FACTOR, "none")
        monkeypatch.setenv(ENV_RESIDUALIZE_STYLES, "false")
        monkeypatch.setenv(ENV_MAX_WORKERS, "2")
        manager = ConfigManager()
        manager.reload_config()

        config = manager.get_estimator_config()
        assert config.winsor_factor is None
        assert config.residualize_styles is False
        assert manager.get_max_workers() == 2

    def test_invalid_env_value(self, clean_config_env, monkeypatch):
        monkeypatch.setenv(ENV_RESIDUALIZE_STYLES, "maybe")
        with pytest.raises(InvalidConfigError):
            ConfigManager().reload_config()

    def test_invalid_file_value(self, clean_config_env):
        _write(clean_config_env, {"estimator": {"winsor_factor": 0.7}})
        manager = ConfigManager()
        manager.reload_config()
        with pytest.raises(InvalidConfigError):
            manager.get_estimator_config()

    def test_invalid_max_workers(self, clean_config_env):
        _write(clean_config_env, {"execution": {"max_workers": 0}})
        manager = ConfigManager()
        manager.reload_config()
        with pytest.raises(InvalidConfigError):
            manager.get_max_workers()

    def test_unknown_keys_ignored_with_warning(self, clean_config_env, caplog):
        _write(clean_config_env, {"estimator": {"winsor_factor": 0.1, "colour": "blue"}, "plotting": {}})
        manager = ConfigManager()
        with caplog.at_level(logging.WARNING, logger="toraniko.common.config_manager"):
            manager.reload_config()
            config = manager.get_estimator_config()

        assert config.winsor_factor == 0.1
        messages = " ".join(record.getMessage() for record in caplog.records)
        assert "plotting" in messages
        assert "colour" in messages

    def test_malformed_file_falls_back_to_defaults(self, clean_config_env):
        clean_config_env.write_text("{not json", encoding="utf-8")
        manager = ConfigManager()
        manager.reload_config()
        assert manager.get_estimator_config() == EstimatorConfig()

    def test_estimator_from_settings(self, clean_config_env):
        _write(clean_config_env, {"estimator": {"min_sector_members": 2}, "execution": {"max_workers": 1}})
        ConfigManager().reload_config()

        estimator = FactorReturnsEstimator.from_settings()
        assert estimator.config.min_sector_members == 2
        assert estimator.max_workers == 1
