"""Tests for FactorConfig."""

import pytest

from toraniko.constants import FACTOR_PARAMS
from toraniko.exceptions import InvalidConfigError
from toraniko.factors import FactorConfig


class TestFactorConfig:
    def test_defaults(self):
        config = FactorConfig()
        assert config.trailing_days == 1
        assert config.lag == 0
        assert config.effective_min_periods == 1

    def test_defaults_for_known_factor(self):
        config = FactorConfig.defaults_for("momentum")
        assert config.trailing_days == FACTOR_PARAMS["momentum"]["trailing_days"]
        assert config.half_life == FACTOR_PARAMS["momentum"]["half_life"]
        assert config.lag == FACTOR_PARAMS["momentum"]["lag"]

    def test_defaults_for_unknown_factor_is_plain_default(self):
        assert FactorConfig.defaults_for("liquidity") == FactorConfig()

    def test_effective_min_periods(self):
        assert FactorConfig(trailing_days=5).effective_min_periods == 3
        assert FactorConfig(trailing_days=5, min_periods=5).effective_min_periods == 5

    def test_round_trip_dict(self):
        config = FactorConfig(trailing_days=20, half_life=5.0, lag=2, winsor_factor=0.02)
        assert FactorConfig.from_dict(config.to_dict()) == config

    def test_with_overrides_is_new_instance(self):
        config = FactorConfig(trailing_days=10)
        changed = config.with_overrides(lag=3)
        assert changed.lag == 3
        assert config.lag == 0

    @pytest.mark.parametrize(
        "params",
        [
            {"trailing_days": 0},
            {"trailing_days": 2.5},
            {"half_life": 0.0},
            {"half_life": -2.0},
            {"lag": -1},
            {"winsor_factor": 0.5},
            {"winsor_factor": -0.01},
            {"trailing_days": 5, "min_periods": 6},
        ],
    )
    def test_invalid_values(self, params):
        with pytest.raises(InvalidConfigError):
            FactorConfig(**params)

    def test_unknown_key(self):
        with pytest.raises(InvalidConfigError):
            FactorConfig.from_dict({"trailing_days": 5, "window": 3})

    def test_invalid_config_is_value_error(self):
        with pytest.raises(ValueError):
            FactorConfig(half_life=0)
