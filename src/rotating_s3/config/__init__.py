from .config import ConfigError, StreamConfig

__all__ = ["StreamConfig", "ConfigError"]
