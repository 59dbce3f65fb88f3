"""Configuration - validated endpoint models and the file-backed manager."""

from mcplink.config.manager import ConfigManager
from mcplink.config.models import (
    BridgeConfig,
    Defaults,
    EndpointConfig,
    ToolFilter,
    TransportKind,
    TrustLevel,
    parse_config,
)

__all__ = [
    "BridgeConfig",
    "ConfigManager",
    "Defaults",
    "EndpointConfig",
    "ToolFilter",
    "TransportKind",
    "TrustLevel",
    "parse_config",
]
