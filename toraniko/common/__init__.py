from .config_manager import ConfigManager, get_estimator_config, get_factor_configs, load_config, reload_config

__all__ = ["ConfigManager", "load_config", "reload_config", "get_estimator_config", "get_factor_configs"]
