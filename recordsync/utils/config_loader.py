"""Configuration loader for the record synchronizer."""

import os
import re
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from recordsync.exceptions import ConfigurationError
from recordsync.models.config import AppConfig, SyncConfig

log = structlog.stdlib.get_logger()

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Above these values the loader warns but still accepts the configuration
LARGE_BATCH_SIZE = 10_000
SHORT_POLL_INTERVAL = 1.0


class ConfigLoader:
    """Loads and validates configuration from YAML files and environment variables."""

    def __init__(self, config_dir: str | Path | None = None) -> None:
        self._config_dir = (
            Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        )

    def load_config(self, config_path: str | None = None) -> AppConfig:
        """Load configuration from a YAML file with ${VAR} substitution.

        Args:
            config_path: Path to the YAML file. If None, uses
                config/<RECORDSYNC_ENV>.yaml, falling back to config/default.yaml

        Returns:
            AppConfig: Validated application configuration

        Raises:
            ConfigurationError: If the file is missing, unparsable or invalid
        """
        if config_path is None:
            config_path = self._get_default_config_path()

        log.info("loading_configuration", config_path=config_path)

        config_dict = self._load_yaml_file(config_path)
        config_dict = self._substitute_env_vars(config_dict)

        try:
            app_config = AppConfig(**config_dict)
        except ValidationError as e:
            log.error("configuration_validation_failed", error=str(e))
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        log.info("configuration_loaded_successfully", config_path=config_path)
        return app_config

    def _get_default_config_path(self) -> str:
        env = os.getenv("RECORDSYNC_ENV", "default")
        config_file = self._config_dir / f"{env}.yaml"

        if not config_file.exists():
            config_file = self._config_dir / "default.yaml"

        if not config_file.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_file}. "
                f"Create config/default.yaml or set RECORDSYNC_ENV to a valid environment."
            )

        return str(config_file)

    def _load_yaml_file(self, config_path: str) -> dict[str, Any]:
        try:
            with open(config_path, "r") as f:
                config_dict = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Configuration file not found: {config_path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file {config_path}: {e}") from e

        if config_dict is None:
            raise ConfigurationError(f"Configuration file is empty: {config_path}")
        if not isinstance(config_dict, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        log.debug("yaml_file_loaded", config_path=config_path)
        return config_dict

    def _substitute_env_vars(self, config: Any) -> Any:
        """Recursively substitute ${VAR} and ${VAR:-default} in string values.

        Raises:
            ConfigurationError: If a variable without default is not set
        """
        if isinstance(config, dict):
            return {key: self._substitute_env_vars(value) for key, value in config.items()}
        elif isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        elif isinstance(config, str):
            return _ENV_VAR_PATTERN.sub(self._resolve_env_var, config)
        else:
            return config

    @staticmethod
    def _resolve_env_var(match: re.Match) -> str:
        var_name, default = match.group(1), match.group(2)
        env_value = os.getenv(var_name)
        if env_value is not None:
            return env_value
        if default is not None:
            return default
        raise ConfigurationError(
            f"Required environment variable not set: {var_name}. "
            f"Please set {var_name} in your environment."
        )

    def validate_config(self, config: AppConfig) -> list[str]:
        """Return warnings for settings that are valid but probably unintended.

        Pydantic rejects outright invalid values when the model is built.
        """
        warnings = validate_sync_config(config.sync)

        if config.retry.base_delay > config.retry.max_delay:
            warnings.append(
                f"retry.base_delay ({config.retry.base_delay}) exceeds "
                f"retry.max_delay ({config.retry.max_delay}); every delay will be capped"
            )

        if warnings:
            log.warning("configuration_validation_warnings", warnings=warnings)

        return warnings


def validate_sync_config(config: SyncConfig) -> list[str]:
    warnings = []

    if config.batch_size > LARGE_BATCH_SIZE:
        warnings.append(
            f"sync.batch_size ({config.batch_size}) is above {LARGE_BATCH_SIZE}; "
            f"pages this large lose the memory bound of a safe sync"
        )

    if config.poll_interval < SHORT_POLL_INTERVAL:
        warnings.append(
            f"sync.poll_interval ({config.poll_interval}s) is below {SHORT_POLL_INTERVAL}s"
        )

    if config.max_concurrency > config.batch_size:
        warnings.append(
            f"sync.max_concurrency ({config.max_concurrency}) exceeds sync.batch_size "
            f"({config.batch_size}); a page never has that many upserts in flight"
        )

    return warnings
