"""Configuration management for netextcap."""

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_HELPER_DIR = Path.home() / ".netextcap" / "extcap"


@dataclass
class ExtcapConfig:
    """Helper discovery and capture channel configuration."""

    helper_dir: Path = field(default_factory=lambda: DEFAULT_HELPER_DIR)
    pipe_prefix: str = "netextcap_extcap"
    pipe_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    pipe_max_instances: int = 5
    pipe_buffer_size: int = 65536  # 64KB, both directions
    pipe_timeout_ms: int = 300

    def __post_init__(self) -> None:
        if isinstance(self.helper_dir, str):
            self.helper_dir = Path(self.helper_dir)
        if isinstance(self.pipe_dir, str):
            self.pipe_dir = Path(self.pipe_dir)


@dataclass
class Config:
    """Main configuration for netextcap."""

    extcap: ExtcapConfig = field(default_factory=ExtcapConfig)
    verbose: bool = False

    @classmethod
    def from_file(cls, path: Path) -> "Config":
        """Load configuration from JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()
        if "verbose" in data:
            config.verbose = data["verbose"]

        if "extcap" in data:
            for key, value in data["extcap"].items():
                if hasattr(config.extcap, key):
                    setattr(config.extcap, key, value)
            # Re-run path coercion for values loaded as strings
            config.extcap.__post_init__()

        return config

    def save(self, path: Path) -> None:
        """Save configuration to JSON file."""
        data = {
            "verbose": self.verbose,
            "extcap": {
                "helper_dir": str(self.extcap.helper_dir),
                "pipe_prefix": self.extcap.pipe_prefix,
                "pipe_dir": str(self.extcap.pipe_dir),
                "pipe_max_instances": self.extcap.pipe_max_instances,
                "pipe_buffer_size": self.extcap.pipe_buffer_size,
                "pipe_timeout_ms": self.extcap.pipe_timeout_ms,
            },
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(data, f, indent=2)


_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        config_path = Path(os.environ.get("NETEXTCAP_CONFIG", ".netextcap.json"))
        _config = Config.from_file(config_path)
        helper_dir = os.environ.get("NETEXTCAP_HELPER_DIR")
        if helper_dir:
            _config.extcap.helper_dir = Path(helper_dir)
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
