"""Configuration loader for the call-log sync pipeline."""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml
from pydantic import ValidationError

from callsync.models.config import AppConfig

log = structlog.stdlib.get_logger()

ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class ConfigLoader:
    """Loads and validates configuration from YAML files and environment variables."""

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """
        Initialize the ConfigLoader.

        Args:
            config_dir: Directory searched for ``<APP_ENV>.yaml``. Defaults to ./config
                        at the repository root.
        """
        self._config_dir = config_dir or Path(__file__).parent.parent.parent / "config"

    def load_config(self, config_path: Optional[str] = None) -> AppConfig:
        """Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to the configuration YAML file. If None, uses the
                         file selected by APP_ENV

        Returns:
            AppConfig: Validated application configuration

        Raises:
            ConfigurationError: If configuration is missing, unparsable or invalid
        """
        # Determine config file path
        if config_path is None:
            config_path = self._get_default_config_path()

        log.info("loading_configuration", config_path=config_path)

        # Load YAML file
        config_dict = self._load_yaml_file(config_path)

        # Substitute environment variables
        config_dict = self._substitute_env_vars(config_dict)

        # Validate and create AppConfig
        try:
            app_config = AppConfig(**config_dict)
        except ValidationError as e:
            log.error("configuration_validation_failed", error=str(e))
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        log.info(
            "configuration_loaded_successfully",
            has_remote_target=app_config.has_remote_target(),
            data_dir=str(app_config.storage.data_dir),
        )
        return app_config

    def _get_default_config_path(self) -> str:
        env = os.getenv("APP_ENV", "default")
        config_file = self._config_dir / f"{env}.yaml"

        if not config_file.exists():
            # Fall back to default.yaml
            config_file = self._config_dir / "default.yaml"

        if not config_file.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_file}. "
                f"Please create config/default.yaml or set APP_ENV to a valid environment."
            )

        return str(config_file)

    def _load_yaml_file(self, config_path: str) -> Dict[str, Any]:
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
            raise ConfigurationError(
                f"Configuration file must contain a mapping at top level: {config_path}"
            )

        log.debug("yaml_file_loaded", config_path=config_path)
        return config_dict

    def _substitute_env_vars(self, config: Any) -> Any:
        """Recursively substitute ``${VAR_NAME}`` references.

        Raises:
            ConfigurationError: If a referenced environment variable is not set
        """
        if isinstance(config, dict):
            return {key: self._substitute_env_vars(value) for key, value in config.items()}
        if isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        if isinstance(config, str):
            return self._substitute_env_var_in_string(config)
        return config

    def _substitute_env_var_in_string(self, value: str) -> str:
        for var_name in ENV_VAR_PATTERN.findall(value):
            env_value = os.getenv(var_name)
            if env_value is None:
                raise ConfigurationError(
                    f"Required environment variable not set: {var_name}. "
                    f"Please set {var_name} in your environment or .env file."
                )
            value = value.replace(f"${{{var_name}}}", env_value)

        return value

    def validate_config(self, config: AppConfig) -> list[str]:
        """Check cross-field settings and return any warnings.

        Args:
            config: Application configuration to validate

        Returns:
            List of warning messages (empty if no warnings)
        """
        warnings = []

        # Check the mirror is a separate file from the primary snapshot
        if config.storage.resolved_mirror_path.resolve() == config.storage.primary_path.resolve():
            warnings.append(
                f"storage.mirror_path ({config.storage.resolved_mirror_path}) must differ "
                f"from the primary snapshot ({config.storage.primary_path})"
            )

        # Check new entries have somewhere to go
        if not config.has_remote_target() and not config.lifecycle.sync_without_remote:
            warnings.append(
                "webhook.url is not set: new entries will not be uploaded and copies "
                "will not be reconciled"
            )

        if warnings:
            log.warning("configuration_validation_warnings", warnings=warnings)

        return warnings
