"""
Configuration loading for dbtool.
"""

import os
import re
from typing import Any, Optional

import yaml

from .exceptions import ConfigurationError

DEFAULT_SELF_UPDATE = {
    'organization': 'webdevops',
    'repository': 'dbtool',
    'asset_template': 'dbtool-%OS%-%ARCH%',
}

CONNECTION_KEYS = ('hostname', 'port', 'user', 'password', 'docker', 'ssh')


class ConfigLoader:
    """Loads configuration from an optional YAML file."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.config = self._load_config() if config_path else {}

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self.config_path, 'r') as f:
            config = yaml.safe_load(f) or {}

        if not isinstance(config, dict):
            raise ConfigurationError(f"Configuration file '{self.config_path}' must contain a mapping")

        return self._resolve_env_vars(config)

    def _resolve_env_vars(self, obj: Any) -> Any:
        """Recursively resolve environment variables in config."""
        if isinstance(obj, str):
            matches = self.ENV_VAR_PATTERN.findall(obj)
            for match in matches:
                env_value = os.environ.get(match, '')
                obj = obj.replace(f'${{{match}}}', env_value)
            return obj
        elif isinstance(obj, dict):
            return {k: self._resolve_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._resolve_env_vars(item) for item in obj]
        return obj

    def get_connection_settings(self) -> dict[str, Optional[str]]:
        """Get connection defaults, values stringified."""
        section = self.config.get('connection') or {}
        unknown = set(section) - set(CONNECTION_KEYS)
        if unknown:
            raise ConfigurationError(f"Unknown connection setting(s): {', '.join(sorted(unknown))}")
        return {
            key: str(section[key]) if section.get(key) not in (None, '') else None
            for key in CONNECTION_KEYS
        }

    def get_self_update_settings(self) -> dict[str, Any]:
        """Get self-update settings merged over the built-in defaults."""
        settings = dict(DEFAULT_SELF_UPDATE)
        settings.update(self.config.get('self_update') or {})
        return settings

    def get_logging_settings(self) -> dict[str, Any]:
        """Get logging settings."""
        return dict(self.config.get('logging') or {})
