import json

import pytest
from pydantic import ValidationError

from mcplink.config.manager import ConfigManager
from mcplink.config.models import EndpointConfig, ToolFilter, TransportKind, TrustLevel, parse_config


def test_servers_inherit_unset_fields_from_defaults():
    cfg = parse_config(
        {
            "defaults": {"trust": "sanitize", "timeout": 5000, "retries": 1, "maxResultChars": 100},
            "servers": {
                "fs": {"command": "npx", "args": ["-y", "server-fs"]},
                "web": {"url": "https://web.example/mcp", "trust": "trusted", "timeout": 900},
            },
        }
    )

    fs = cfg.servers["fs"]
    assert fs.trust == TrustLevel.SANITIZE
    assert fs.timeout_ms == 5000
    assert fs.max_result_chars == 100
    assert fs.args == ["-y", "server-fs"]

    web = cfg.servers["web"]
    assert web.trust == TrustLevel.TRUSTED
    assert web.timeout_ms == 900
    assert web.max_result_chars == 100
    assert cfg.defaults.retries == 1


def test_builtin_defaults():
    cfg = parse_config({"servers": {"fs": {"command": "npx"}}})
    fs = cfg.servers["fs"]
    assert cfg.defaults.retries == 2
    assert fs.trust == TrustLevel.UNTRUSTED
    assert fs.timeout_ms == 30_000
    assert fs.max_result_chars == 50_000
    assert fs.transport == TransportKind.AUTO
    assert fs.enabled is True


def test_empty_config_and_disabled_servers():
    assert parse_config(None).servers == {}
    cfg = parse_config({"servers": {"a": {"command": "x"}, "b": {"command": "y", "enabled": False}, "c": None}})
    assert set(cfg.servers) == {"a", "b", "c"}
    assert set(cfg.enabled_servers) == {"a", "c"}


def test_tool_filter_alias_and_semantics():
    cfg = parse_config({"servers": {"fs": {"command": "x", "toolFilter": {"allow": ["a", "b"], "deny": ["b"]}}}})
    f = cfg.servers["fs"].tool_filter
    assert isinstance(f, ToolFilter)
    assert f.passes("a") is True
    assert f.passes("b") is False
    assert f.passes("c") is False
    assert ToolFilter().passes("anything") is True
    assert ToolFilter(allow=[]).passes("anything") is True


@pytest.mark.parametrize(
    "server",
    [
        {"command": "x", "trust": "maybe"},
        {"command": "x", "transport": "carrier-pigeon"},
        {"command": "x", "timeout": 0},
        {"command": "x", "maxResultChars": -1},
    ],
)
def test_invalid_server_entries_are_rejected(server):
    with pytest.raises(ValidationError):
        parse_config({"servers": {"bad": server}})


def test_negative_retries_rejected():
    with pytest.raises(ValidationError):
        parse_config({"defaults": {"retries": -1}})


def test_endpoint_config_is_frozen_and_blank_fields_are_none():
    cfg = EndpointConfig(command="  ", url="")
    assert cfg.command is None
    assert cfg.url is None
    with pytest.raises(ValidationError):
        cfg.command = "npx"


@pytest.mark.asyncio
async def test_config_manager_loads_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "\n".join(
            [
                "app:",
                "  log_level: DEBUG",
                "mcp:",
                "  defaults:",
                "    trust: trusted",
                "  servers:",
                "    fs:",
                "      command: npx",
                "      args: ['-y', '@modelcontextprotocol/server-filesystem', '/tmp']",
                "    search:",
                "      url: https://search.example/mcp",
                "      headers: {Authorization: 'Bearer t'}",
                "",
            ]
        ),
        encoding="utf-8",
    )

    manager = ConfigManager(str(path))
    await manager.load()

    assert manager.loaded
    assert manager.get("app.log_level") == "DEBUG"
    assert manager.get("app.name") == "mcplink"
    assert manager.get("mcp.defaults.retries") == 2
    assert manager.get("missing.key", "fallback") == "fallback"

    bridge = manager.bridge_config()
    assert set(bridge.servers) == {"fs", "search"}
    assert bridge.servers["fs"].trust == TrustLevel.TRUSTED
    assert bridge.servers["search"].headers == {"Authorization": "Bearer t"}


@pytest.mark.asyncio
async def test_config_manager_loads_json_and_writes_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"mcp": {"servers": {"fs": {"command": "npx"}}}}), encoding="utf-8")
    manager = ConfigManager(str(path))
    await manager.load()
    assert list(manager.bridge_config().servers) == ["fs"]

    missing = tmp_path / "nested" / "fresh.yaml"
    fresh = ConfigManager(str(missing))
    await fresh.load()
    assert missing.exists()
    assert fresh.bridge_config().servers == {}


@pytest.mark.asyncio
async def test_config_manager_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("MCPLINK_TRUST", "SANITIZE")
    monkeypatch.setenv("MCPLINK_RETRIES", "5")
    monkeypatch.setenv("MCPLINK_TIMEOUT_MS", "1234")
    monkeypatch.setenv("MCPLINK_MAX_RESULT_CHARS", "not-a-number")

    manager = ConfigManager(str(tmp_path / "config.yaml"))
    await manager.load()

    defaults = manager.bridge_config().defaults
    assert defaults.trust == TrustLevel.SANITIZE
    assert defaults.retries == 5
    assert defaults.timeout_ms == 1234
    assert defaults.max_result_chars == 50_000


@pytest.mark.asyncio
async def test_config_manager_set_feeds_bridge_config(tmp_path):
    manager = ConfigManager(str(tmp_path / "config.yaml"))
    await manager.load()

    manager.set("mcp.servers.fs", {"command": "npx"})
    manager.set("mcp.defaults.trust", "sanitize")
    bridge = manager.bridge_config()
    assert bridge.servers["fs"].trust == TrustLevel.SANITIZE

    manager.set("extra.nested.value", 3)
    assert manager.get("extra.nested.value") == 3
