"""Configuration loading and validation."""

from .models import (
    # Enums
    FilterMatch,
    LogLevel,
    # Config models
    AppConfig,
    KnackConfig,
    ThrottleConfig,
    RetryConfig,
    CacheConfig,
    EmailConfig,
    ProxyConfig,
    ProfileFieldMap,
    StaffFieldMap,
    LoggingConfig,
)
from .loader import (
    ConfigError,
    build_app_config,
    load_app_config,
    validate_config_file,
)

__all__ = [
    # Enums
    "FilterMatch",
    "LogLevel",
    # Config models
    "AppConfig",
    "KnackConfig",
    "ThrottleConfig",
    "RetryConfig",
    "CacheConfig",
    "EmailConfig",
    "ProxyConfig",
    "ProfileFieldMap",
    "StaffFieldMap",
    "LoggingConfig",
    # Loaders
    "ConfigError",
    "build_app_config",
    "load_app_config",
    "validate_config_file",
]
