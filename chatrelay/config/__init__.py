"""Configuration module for chatrelay."""

from chatrelay.config.loader import get_config_path, load_config, save_config
from chatrelay.config.schema import BackendConfig, Config, StreamingConfig, TelegramConfig

__all__ = [
    "Config",
    "TelegramConfig",
    "BackendConfig",
    "StreamingConfig",
    "load_config",
    "save_config",
    "get_config_path",
]
