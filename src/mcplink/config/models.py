"""
Configuration models (Pydantic).

These models define the `mcp` section of the configuration file:

    mcp:
      defaults:
        trust: untrusted
        timeout: 30000
        retries: 2
        maxResultChars: 50000
      servers:
        filesystem:
          command: npx
          args: ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"]
          trust: trusted
        search:
          url: https://example.com/mcp
          headers: {Authorization: "Bearer ..."}
          toolFilter: {deny: ["delete_index"]}
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TrustLevel(str, Enum):
    """Declared sensitivity posture for an endpoint's output."""
    TRUSTED = "trusted"
    UNTRUSTED = "untrusted"
    SANITIZE = "sanitize"


class TransportKind(str, Enum):
    """Transport used to reach an endpoint."""
    STDIO = "stdio"
    HTTP = "http"
    SSE = "sse"
    AUTO = "auto"


class ToolFilter(BaseModel):
    model_config = ConfigDict(frozen=True)

    allow: Optional[List[str]] = None
    deny: Optional[List[str]] = None

    def passes(self, name: str) -> bool:
        if self.deny and name in self.deny:
            return False
        if self.allow:
            return name in self.allow
        return True


class Defaults(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    trust: TrustLevel = TrustLevel.UNTRUSTED
    timeout_ms: int = Field(default=30_000, gt=0, alias="timeout")
    retries: int = Field(default=2, ge=0)
    max_result_chars: int = Field(default=50_000, gt=0, alias="maxResultChars")


class EndpointConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    enabled: bool = True
    transport: TransportKind = TransportKind.AUTO
    command: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    url: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    trust: TrustLevel = TrustLevel.UNTRUSTED
    max_result_chars: int = Field(default=50_000, gt=0, alias="maxResultChars")
    timeout_ms: int = Field(default=30_000, gt=0, alias="timeout")
    tool_filter: Optional[ToolFilter] = Field(default=None, alias="toolFilter")

    @field_validator("command", "url")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def with_defaults(self, defaults: Defaults) -> "EndpointConfig":
        """Fill fields the server entry did not set from the global defaults."""
        update: Dict[str, Any] = {}
        for field_name in ("trust", "max_result_chars", "timeout_ms"):
            if field_name not in self.model_fields_set:
                update[field_name] = getattr(defaults, field_name)
        return self.model_copy(update=update) if update else self


class BridgeConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    servers: Dict[str, EndpointConfig] = Field(default_factory=dict)
    defaults: Defaults = Field(default_factory=Defaults)

    @property
    def enabled_servers(self) -> Dict[str, EndpointConfig]:
        return {name: cfg for name, cfg in self.servers.items() if cfg.enabled}


def parse_config(raw: Optional[Mapping[str, Any]]) -> BridgeConfig:
    """
    Validate a raw `{servers, defaults}` mapping into a BridgeConfig.

    Per-server trust, timeout and max result size fall back to `defaults`
    when the server entry leaves them out.

    Raises:
        pydantic.ValidationError: if any entry is malformed.
    """
    raw = dict(raw or {})
    defaults = Defaults.model_validate(raw.get("defaults") or {})

    servers: Dict[str, EndpointConfig] = {}
    for name, server_raw in (raw.get("servers") or {}).items():
        cfg = EndpointConfig.model_validate(server_raw or {})
        servers[str(name)] = cfg.with_defaults(defaults)

    return BridgeConfig(servers=servers, defaults=defaults)
