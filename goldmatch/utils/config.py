from typing import Dict, Any, Optional, Union, Type, TypeVar
from pathlib import Path
import json
import os

import yaml

from ..exceptions import ConfigurationError

T = TypeVar('T')

ENV_PREFIX = "GOLDMATCH"


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` onto a copy of ``base``."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class ConfigManager:
    """Loads resolution configuration from YAML files and the environment.

    Values from ``GOLDMATCH__``-prefixed environment variables override
    file values; nested keys are separated by ``__`` and values are JSON
    decoded when possible, e.g. ``GOLDMATCH__blocking__max_bucket_size=80``.
    """

    def __init__(
        self,
        config_dir: Optional[Union[str, Path]] = None,
        env_prefix: str = ENV_PREFIX,
        environ: Optional[Dict[str, str]] = None
    ):
        self.config_dir = Path(config_dir) if config_dir else Path.cwd() / "config"
        self.env_prefix = env_prefix
        self.environ = os.environ if environ is None else environ
        self._cache: Dict[str, Dict[str, Any]] = {}

    def load_yaml(self, path: Union[str, Path]) -> Dict[str, Any]:
        """Load a YAML configuration file.

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to load config file {path}: {str(e)}",
                details={"path": str(path)}
            )
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {path} must contain a mapping",
                details={"path": str(path)}
            )
        return data

    def get_config(self, name: str) -> Dict[str, Any]:
        """Load ``<config_dir>/<name>.yaml`` (or ``.yml``) with caching."""
        if name in self._cache:
            return self._cache[name]

        config_file = self.config_dir / f"{name}.yaml"
        if not config_file.exists():
            config_file = self.config_dir / f"{name}.yml"
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {name}")

        config = self.load_yaml(config_file)
        self._cache[name] = config
        return config

    def load(
        self,
        source: Union[str, Path, Dict[str, Any]],
        config_class: Optional[Type[T]] = None,
        apply_env: bool = True
    ) -> Union[Dict[str, Any], T]:
        """Load a configuration with environment overrides applied.

        Args:
            source: Path to a YAML file or an already loaded dictionary
            config_class: Optional class with ``from_dict`` to instantiate
            apply_env: Whether to apply environment overrides

        Returns:
            Configuration dictionary or instance
        """
        data = dict(source) if isinstance(source, dict) else self.load_yaml(source)
        if apply_env:
            data = deep_merge(data, self.get_env_config())
        if config_class is None:
            return data
        return config_class.from_dict(data)

    def merge_configs(
        self,
        base: Union[str, Dict[str, Any]],
        override: Union[str, Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Merge two configurations given by name or as dictionaries."""
        if isinstance(base, str):
            base = self.get_config(base)
        if isinstance(override, str):
            override = self.get_config(override)
        return deep_merge(base, override)

    def save_config(self, config: Dict[str, Any], path: Union[str, Path]) -> None:
        """Write a configuration dictionary as YAML."""
        try:
            with open(path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {str(e)}")

    def get_env_config(self, separator: str = "__") -> Dict[str, Any]:
        """Nested configuration built from prefixed environment variables."""
        config: Dict[str, Any] = {}
        marker = f"{self.env_prefix}{separator}"

        for key, value in sorted(self.environ.items()):
            if not key.startswith(marker):
                continue
            parts = [p.lower() for p in key[len(marker):].split(separator) if p]
            if not parts:
                continue

            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                pass

            current = config
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = value

        return config
