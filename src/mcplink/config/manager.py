"""
Configuration Manager - Settings for the MCP bridge.

Handles YAML/JSON configuration with environment overrides.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

from mcplink.config.models import BridgeConfig, parse_config


class ConfigManager:
    """
    Configuration manager for mcplink.

    Features:
    - YAML/JSON configuration files
    - Environment variable overrides
    - Default values
    - Validated `BridgeConfig` view of the `mcp` section
    """

    DEFAULT_CONFIG = {
        "app": {
            "name": "mcplink",
            "debug": False,
            "log_level": "INFO",
        },
        "mcp": {
            "defaults": {
                "trust": "untrusted",
                "timeout": 30000,
                "retries": 2,
                "maxResultChars": 50000,
            },
            "servers": {},
        },
    }

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to configuration file
        """
        self._config_path = Path(config_path) if config_path else Path("config.yaml")
        self._config: Dict[str, Any] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._config_path

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> None:
        """Load configuration from file."""
        self._config = self._deep_copy(self.DEFAULT_CONFIG)

        if self._config_path.exists():
            try:
                content = self._config_path.read_text(encoding="utf-8")

                if self._config_path.suffix in [".yaml", ".yml"]:
                    file_config = yaml.safe_load(content) or {}
                else:
                    file_config = json.loads(content)

                if not isinstance(file_config, dict):
                    raise ValueError("top-level configuration must be a mapping")

                self._deep_merge(self._config, file_config)
                logger.info(f"Configuration loaded from {self._config_path}")

            except Exception as e:
                logger.warning(f"Failed to load config: {e}, using defaults")
        else:
            await self.save()
            logger.info("Created default configuration file")

        self._apply_env_overrides()

        self._loaded = True

    async def save(self) -> None:
        """Save configuration to file."""
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)

            if self._config_path.suffix in [".yaml", ".yml"]:
                content = yaml.safe_dump(self._config, default_flow_style=False, sort_keys=False)
            else:
                content = json.dumps(self._config, indent=2)

            self._config_path.write_text(content, encoding="utf-8")
            logger.debug(f"Configuration saved to {self._config_path}")

        except Exception as e:
            logger.error(f"Failed to save config: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Dot-notation key (e.g., "mcp.defaults.retries")
            default: Default value if not found

        Returns:
            Configuration value
        """
        parts = key.split(".")
        value = self._config

        for part in parts:
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key: Dot-notation key
            value: Value to set
        """
        parts = key.split(".")
        config = self._config

        for part in parts[:-1]:
            if not isinstance(config.get(part), dict):
                config[part] = {}
            config = config[part]

        config[parts[-1]] = value

    def bridge_config(self) -> BridgeConfig:
        """
        Validated view of the `mcp` section.

        Raises:
            pydantic.ValidationError: if a server entry is malformed.
        """
        return parse_config(self.get("mcp", {}))

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        env_mappings = {
            "MCPLINK_DEBUG": ("app.debug", lambda x: x.lower() == "true"),
            "MCPLINK_LOG_LEVEL": ("app.log_level", lambda x: x.upper()),
            "MCPLINK_TRUST": ("mcp.defaults.trust", lambda x: x.lower()),
            "MCPLINK_RETRIES": ("mcp.defaults.retries", int),
            "MCPLINK_TIMEOUT_MS": ("mcp.defaults.timeout", int),
            "MCPLINK_MAX_RESULT_CHARS": ("mcp.defaults.maxResultChars", int),
        }

        for env_var, (config_key, converter) in env_mappings.items():
            value = os.getenv(env_var)
            if value:
                try:
                    self.set(config_key, converter(value))
                    logger.debug(f"Applied env override: {env_var}")
                except Exception as e:
                    logger.warning(f"Failed to apply {env_var}: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Deep merge override into base dict."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _deep_copy(self, obj: Any) -> Any:
        """Deep copy a dictionary."""
        if isinstance(obj, dict):
            return {k: self._deep_copy(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._deep_copy(item) for item in obj]
        return obj
