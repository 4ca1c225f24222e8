"""Configuration loader with multi-source support."""

import toml
import os
from pathlib import Path
from typing import Dict, Any, Optional
import platformdirs
from pydantic import ValidationError

from ..errors import ConfigurationError
from ..logging_config import get_logger
from .schema import Config

logger = get_logger(__name__)


class ConfigLoader:
    """Loads configuration from multiple sources with priority."""

    def __init__(self, app_name: str = "pipejoin", defaults_path: Optional[Path] = None) -> None:
        self.app_name = app_name
        self.defaults_path = defaults_path or Path(__file__).parent / "defaults.toml"
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from all sources."""
        # 1. Start with defaults (shipped with the package)
        config_dict = self._load_defaults()

        # 2. Merge system config
        system_config = self._load_system_config()
        if system_config:
            config_dict = self._deep_merge(config_dict, system_config)

        # 3. Merge user config
        user_config = self._load_user_config()
        if user_config:
            config_dict = self._deep_merge(config_dict, user_config)

        # 4. Override with environment variables
        config_dict = self._apply_env_overrides(config_dict)

        # 5. Validate and create Config object
        try:
            self._config = Config(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid {self.app_name} configuration: {e}", app_name=self.app_name
            ) from e

        return self._config

    def _read_toml(self, path: Path) -> Dict[str, Any]:
        try:
            return toml.load(path)
        except toml.TomlDecodeError as e:
            raise ConfigurationError(f"Malformed config file {path}: {e}", path=str(path)) from e

    def _load_defaults(self) -> Dict[str, Any]:
        """Load default configuration shipped with the package."""
        if self.defaults_path.exists():
            return self._read_toml(self.defaults_path)

        logger.debug(f"Defaults not found at {self.defaults_path}, using schema defaults")
        return {}

    def _load_system_config(self) -> Optional[Dict[str, Any]]:
        """Load system-wide configuration."""
        if os.name == "nt":  # Windows
            system_path = (
                Path(os.environ.get("PROGRAMDATA", "C:\\ProgramData"))
                / self.app_name
                / "config.toml"
            )
        else:  # Linux/Mac
            system_path = Path(f"/etc/{self.app_name}/config.toml")

        if system_path.exists():
            return self._read_toml(system_path)

        return None

    def _load_user_config(self) -> Optional[Dict[str, Any]]:
        """Load user-specific configuration."""
        user_config_dir = platformdirs.user_config_dir(appname=self.app_name, appauthor=False)
        user_config_path = Path(user_config_dir) / "config.toml"

        if user_config_path.exists():
            logger.debug(f"Loading user config from {user_config_path}")
            return self._read_toml(user_config_path)

        return None

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Override config with environment variables."""
        # Environment variables format: PIPEJOIN_SECTION_KEY
        prefix = f"{self.app_name.upper().replace('-', '_')}_"

        for env_key, env_value in os.environ.items():
            if not env_key.startswith(prefix):
                continue

            # PIPEJOIN_PIPELINE_TRACE_VALUES -> pipeline.trace_values
            key_path = env_key[len(prefix):].lower().split("_", 1)
            if len(key_path) != 2:
                continue

            section, final_key = key_path
            current = config.setdefault(section, {})
            if not isinstance(current, dict):
                raise ConfigurationError(
                    f"Environment override {env_key} targets non-section '{section}'",
                    env_key=env_key,
                )
            current[final_key] = self._convert_env_value(env_value)

        return config

    def _convert_env_value(self, value: str) -> Any:
        """Convert string environment variable to appropriate type."""
        # Boolean
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        # Number
        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        # String
        return value

    def save_user_config(self, config: Config) -> Path:
        """Save user configuration."""
        user_config_dir = platformdirs.user_config_dir(appname=self.app_name, appauthor=False)
        user_config_path = Path(user_config_dir) / "config.toml"

        # Ensure directory exists
        user_config_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = config.model_dump(exclude_none=True)
        with open(user_config_path, "w") as f:
            toml.dump(config_dict, f)
        return user_config_path

    @property
    def config(self) -> Config:
        """Get loaded configuration."""
        if self._config is None:
            self._config = self.load()
        return self._config


# Global instance
_loader = ConfigLoader()


def get_config() -> Config:
    """Get global configuration instance."""
    return _loader.config


def reload_config() -> Config:
    """Reload configuration from all sources."""
    return _loader.load()
