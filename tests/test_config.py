from __future__ import annotations

from pathlib import Path

import pytest

from hjbridge.config import ConfigError, load_config, parse_config

_YAML = """
gateway:
  host: 192.168.1.50
  port: 8000
  username: admin
  password: secret
  zkid: "0001"
  device_count: 8
  heartbeat_interval: 30
http_server:
  host: 127.0.0.1
  port: 9090
home_assistant:
  host: ha.local
  port: 8123
  token: yaml-token
devices:
  curtains:
    3: living_room_curtain
  lights:
    "5": kitchen_light
logging:
  level: debug
  file: bridge.log
"""


def test_load_config_reads_every_section(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HJB_LOG_LEVEL", raising=False)
    monkeypatch.delenv("HJB_HA_TOKEN", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(_YAML, encoding="utf-8")

    config = load_config(path)

    assert config.gateway.host == "192.168.1.50"
    assert config.gateway.port == 8000
    assert config.gateway.zkid == "0001"
    assert config.gateway.device_count == 8
    assert config.gateway.heartbeat_interval == 30.0
    assert config.gateway.reconnect_delay == 10.0
    assert config.http_server.port == 9090
    assert config.home_assistant.base_url == "http://ha.local:8123"
    assert config.devices.curtains == {"3": "living_room_curtain"}
    assert config.devices.lights == {"5": "kitchen_light"}
    assert config.home_assistant.token == "yaml-token"
    assert config.logging.level == "debug"
    assert config.logging.file == "bridge.log"


def test_env_overrides_token_and_log_level() -> None:
    raw = {"gateway": {"host": "gw", "port": 1}, "home_assistant": {"token": "from-yaml"}, "logging": {"level": "info"}}

    config = parse_config(raw, env={"HJB_HA_TOKEN": "from-env", "HJB_LOG_LEVEL": "warning"})

    assert config.home_assistant.token == "from-env"
    assert config.logging.level == "warning"


def test_defaults_for_optional_sections() -> None:
    config = parse_config({"gateway": {"host": "gw", "port": 1}}, env={})

    assert config.http_server.port == 8080
    assert config.home_assistant.entity_domain == "switch"
    assert config.devices.curtains == {}
    assert config.logging.file is None


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"gateway": {"port": 1}},
        {"gateway": {"host": "gw"}},
        {"gateway": {"host": "gw", "port": "eighty"}},
        {"gateway": {"host": "gw", "port": 1, "heartbeat_interval": 0}},
        {"gateway": "gw:1"},
        {"gateway": {"host": "gw", "port": 1}, "devices": {"lights": ["5"]}},
    ],
)
def test_invalid_config_is_rejected(raw: dict) -> None:
    with pytest.raises(ConfigError):
        parse_config(raw, env={})


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yaml")


def test_invalid_yaml_raises(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("gateway: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)
