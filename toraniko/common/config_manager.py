import json
import logging
import os
from threading import Lock
from typing import Any, Dict, Optional

import appdirs

from ..exceptions import InvalidConfigError

logger = logging.getLogger(__name__)

# Recognized top-level sections of config.json
KNOWN_SECTIONS = ("estimator", "factors", "execution")

ENV_CONFIG_PATH = "TORANIKO_CONFIG"
ENV_WINSOR_FACTOR = "TORANIKO_WINSOR_FACTOR"
ENV_RESIDUALIZE_STYLES = "TORANIKO_RESIDUALIZE_STYLES"
ENV_MAX_WORKERS = "TORANIKO_MAX_WORKERS"

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_STRINGS:
        return True
    if value in _FALSE_STRINGS:
        return False
    raise InvalidConfigError(f"{name} must be a boolean (true/false), got {raw!r}")


def _parse_optional_float(name: str, raw: str) -> Optional[float]:
    if raw.strip().lower() in ("", "none", "null"):
        return None
    try:
        return float(raw)
    except ValueError:
        raise InvalidConfigError(f"{name} must be a number or 'none', got {raw!r}") from None


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise InvalidConfigError(f"{name} must be an integer, got {raw!r}") from None


class ConfigManager:
    """Model configuration manager - singleton.

    Settings come from a JSON file (``TORANIKO_CONFIG`` or
    ``<user config dir>/toraniko/config.json``) with environment variable
    overrides layered on top. The merged result is cached until
    ``reload_config`` is called.

    config.json layout::

        {
          "estimator": {"winsor_factor": 0.05, "residualize_styles": true, ...},
          "factors":   {"momentum": {"trailing_days": 504, "half_life": 126, ...}},
          "execution": {"max_workers": 8}
        }
    """

    _instance = None
    _lock = Lock()

    APP_NAME = "toraniko"

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(ConfigManager, cls).__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.config_dir = appdirs.user_config_dir(self.APP_NAME)
        self._config_cache = None
        self._config_loaded = False
        self._cache_lock = Lock()

        self._initialized = True

    @property
    def config_file(self) -> str:
        return os.environ.get(ENV_CONFIG_PATH) or os.path.join(self.config_dir, "config.json")

    def load_config(self) -> Dict[str, Any]:
        """Load the configuration file plus environment overrides (cached)."""
        with self._cache_lock:
            if self._config_loaded and self._config_cache is not None:
                logger.debug("Configuration served from cache.")
                return self._config_cache

            config_file = self.config_file
            config_data: Dict[str, Any] = {}
            if os.path.exists(config_file):
                logger.info(f"Loading settings from {config_file}")
                try:
                    with open(config_file, "r", encoding="utf-8") as f:
                        config_data = json.load(f)
                except (OSError, ValueError) as e:
                    logger.warning(f"Failed to read config file {config_file}: {e}; using defaults")
                    config_data = {}
                if not isinstance(config_data, dict):
                    logger.warning(f"Config file {config_file} does not hold a JSON object; using defaults")
                    config_data = {}
            else:
                logger.debug(f"Config file {config_file} not found; using defaults and environment")

            for key in sorted(set(config_data) - set(KNOWN_SECTIONS)):
                logger.warning(f"Ignoring unknown config section '{key}'")

            final_config = {section: dict(config_data.get(section) or {}) for section in KNOWN_SECTIONS}
            self._apply_env_overrides(final_config)

            self._config_cache = final_config
            self._config_loaded = True
            logger.debug(f"Configuration loaded and cached: {final_config}")
            return self._config_cache

    def reload_config(self) -> Dict[str, Any]:
        """Drop the cache and load again."""
        logger.info("Reloading configuration...")
        with self._cache_lock:
            self._config_cache = None
            self._config_loaded = False
        return self.load_config()

    @staticmethod
    def _apply_env_overrides(config: Dict[str, Any]) -> None:
        if ENV_WINSOR_FACTOR in os.environ:
            config["estimator"]["winsor_factor"] = _parse_optional_float(
                ENV_WINSOR_FACTOR, os.environ[ENV_WINSOR_FACTOR]
            )
            logger.info(f"winsor_factor overridden from {ENV_WINSOR_FACTOR}")
        if ENV_RESIDUALIZE_STYLES in os.environ:
            config["estimator"]["residualize_styles"] = _parse_bool(
                ENV_RESIDUALIZE_STYLES, os.environ[ENV_RESIDUALIZE_STYLES]
            )
            logger.info(f"residualize_styles overridden from {ENV_RESIDUALIZE_STYLES}")
        if ENV_MAX_WORKERS in os.environ:
            config["execution"]["max_workers"] = _parse_int(ENV_MAX_WORKERS, os.environ[ENV_MAX_WORKERS])
            logger.info(f"max_workers overridden from {ENV_MAX_WORKERS}")

    def get_estimator_config(self):
        """Build an ``EstimatorConfig`` from the ``estimator`` section.

        Raises:
            InvalidConfigError: A value is outside its valid domain
        """
        from ..model.estimator import EstimatorConfig

        section = dict(self.load_config()["estimator"])
        known = set(EstimatorConfig.__dataclass_fields__)
        for key in sorted(set(section) - known):
            logger.warning(f"Ignoring unknown estimator setting '{key}'")
            section.pop(key)
        return EstimatorConfig.from_dict(section)

    def get_factor_configs(self) -> Dict[str, Any]:
        """``{factor name: FactorConfig}``; missing fields fall back to the factor's defaults."""
        from ..factors.base import FactorConfig

        configs = {}
        known = set(FactorConfig.__dataclass_fields__)
        for name, params in self.load_config()["factors"].items():
            if not isinstance(params, dict):
                raise InvalidConfigError(f"factor settings for '{name}' must be an object, got {params!r}")
            params = dict(params)
            for key in sorted(set(params) - known):
                logger.warning(f"Ignoring unknown setting '{key}' for factor '{name}'")
                params.pop(key)
            configs[name] = FactorConfig.defaults_for(name).with_overrides(**params)
        return configs

    def get_max_workers(self) -> Optional[int]:
        """Thread pool size for per-date estimation; None means one per CPU."""
        value = self.load_config()["execution"].get("max_workers")
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise InvalidConfigError(f"max_workers must be a positive integer, got {value!r}")
        return value


# Global configuration manager instance
_config_manager = ConfigManager()


def load_config() -> Dict[str, Any]:
    return _config_manager.load_config()


def reload_config() -> Dict[str, Any]:
    return _config_manager.reload_config()


def get_estimator_config():
    return _config_manager.get_estimator_config()


def get_factor_configs() -> Dict[str, Any]:
    return _config_manager.get_factor_configs()
