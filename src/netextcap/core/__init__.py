"""Core module - configuration, exceptions, and utilities."""

from .config import Config, ExtcapConfig, get_config, set_config
from .exceptions import (
    CapabilityQueryError,
    ChannelError,
    DependencyError,
    NetExtcapError,
    ProbeError,
    ValidationError,
)
from .utils import (
    is_executable,
    is_windows,
    list_executables,
    parse_extra_args,
    setup_logging,
)

__all__ = [
    "Config",
    "ExtcapConfig",
    "get_config",
    "set_config",
    "NetExtcapError",
    "ProbeError",
    "CapabilityQueryError",
    "ChannelError",
    "DependencyError",
    "ValidationError",
    "is_executable",
    "is_windows",
    "list_executables",
    "parse_extra_args",
    "setup_logging",
]
