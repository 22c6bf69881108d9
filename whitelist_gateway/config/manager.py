"""Configuration manager."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import ValidationError
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from .models import GatewayConfig

logger = logging.getLogger(__name__)

CONFIG_HEADER = (
    "# whitelist-gateway configuration\n"
    "# Missing keys are filled in with defaults on startup\n\n"
)


class ConfigManager:
    def __init__(self, config_path: str):
        self.config_path = Path(config_path)

    def load_config(self) -> GatewayConfig:
        """Load and validate configuration."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "r") as f:
                config_data = yaml.safe_load(f) or {}

            # Expand environment variables
            config_data = self._expand_env_vars(config_data)

            # Validate against schema
            return GatewayConfig(**config_data)

        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML syntax: {e}")
        except ValidationError as e:
            raise ValueError(f"Configuration validation failed: {e}")

    def ensure_config(self) -> GatewayConfig:
        """Create the file or fill in missing keys with defaults, then load it."""
        data: Dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML syntax: {e}")

        if not isinstance(data, dict):
            raise ValueError(f"Configuration root must be a mapping: {self.config_path}")

        defaults = GatewayConfig().model_dump(exclude_none=True)
        if self._fill_defaults(data, defaults) or not self.config_path.exists():
            self._write(data)
            logger.info(f"Configuration file written: {self.config_path}")

        return self.load_config()

    def validate_config(self) -> List[str]:
        """Validate configuration and return any issues."""
        issues = []

        try:
            config = self.load_config()

            try:
                make_url(config.database.sqlalchemy_url())
            except ArgumentError as e:
                issues.append(f"Database URL is invalid: {e}")

            try:
                config.messages.request_created.format(
                    timeout=config.timeouts.request_timeout
                )
            except (KeyError, IndexError) as e:
                issues.append(f"Message request_created has an unknown placeholder: {e}")

        except Exception as e:
            issues.append(f"Configuration error: {e}")

        return issues

    def _fill_defaults(self, data: Dict[str, Any], defaults: Dict[str, Any]) -> bool:
        """Add missing keys from defaults in place. Returns True if anything changed."""
        changed = False

        for section, section_defaults in defaults.items():
            if not isinstance(data.get(section), dict):
                data[section] = dict(section_defaults)
                logger.info(f"Added default configuration section: {section}")
                changed = True
                continue

            for key, value in section_defaults.items():
                if key not in data[section]:
                    data[section][key] = value
                    logger.info(f"Added missing configuration key: {section}.{key}")
                    changed = True

        return changed

    def _write(self, data: Dict[str, Any]) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w") as f:
            f.write(CONFIG_HEADER)
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, indent=2)

    def _expand_env_vars(self, data: Any) -> Any:
        """Recursively expand environment variables in configuration."""
        if isinstance(data, dict):
            return {k: self._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [self._expand_env_vars(item) for item in data]
        elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
            env_var = data[2:-1]
            return os.getenv(env_var, data)
        else:
            return data
