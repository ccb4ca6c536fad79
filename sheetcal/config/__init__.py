from .loader import ConfigError, SyncConfig, load_config

__all__ = ["ConfigError", "SyncConfig", "load_config"]
