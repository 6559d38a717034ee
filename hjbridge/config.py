from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_CONFIG_PATH = "config.yaml"
RECONNECT_DELAY_S = 10.0


class ConfigError(ValueError):
    """Raised when the bridge configuration cannot be loaded."""


@dataclass(frozen=True, slots=True)
class GatewayConfig:
    host: str
    port: int
    username: str = ""
    password: str = ""
    zkid: str = ""
    device_count: int = 0
    heartbeat_interval: float = 30.0
    reconnect_delay: float = RECONNECT_DELAY_S
    connect_timeout: float = 10.0


@dataclass(frozen=True, slots=True)
class HttpServerConfig:
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass(frozen=True, slots=True)
class HomeAssistantConfig:
    host: str = "localhost"
    port: int = 8123
    token: str = ""
    entity_domain: str = "switch"
    timeout_s: float = 10.0

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


@dataclass(frozen=True, slots=True)
class DevicesConfig:
    curtains: dict[str, str] = field(default_factory=dict)
    lights: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    level: str = "info"
    file: str | None = None


@dataclass(frozen=True, slots=True)
class BridgeConfig:
    gateway: GatewayConfig
    http_server: HttpServerConfig = field(default_factory=HttpServerConfig)
    home_assistant: HomeAssistantConfig = field(default_factory=HomeAssistantConfig)
    devices: DevicesConfig = field(default_factory=DevicesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def config_path_from_env() -> str:
    return os.environ.get("HJB_CONFIG", "").strip() or DEFAULT_CONFIG_PATH


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{name}' must be a mapping")
    return value


def _as_int(section: str, key: str, value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{section}.{key} must be an integer, got {value!r}") from exc


def _as_float(section: str, key: str, value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{section}.{key} must be a number, got {value!r}") from exc
    if result <= 0:
        raise ConfigError(f"{section}.{key} must be positive")
    return result


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _device_map(section: str, value: Any) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"devices.{section} must be a mapping of node id to entity id")
    # YAML turns bare node ids like `5:` into ints.
    return {str(node_id): str(entity_id) for node_id, entity_id in value.items() if entity_id is not None}


def parse_config(raw: Mapping[str, Any], *, env: Mapping[str, str] | None = None) -> BridgeConfig:
    env = os.environ if env is None else env

    gw = _section(raw, "gateway")
    if not gw.get("host"):
        raise ConfigError("gateway.host is required")
    if gw.get("port") is None:
        raise ConfigError("gateway.port is required")
    gateway = GatewayConfig(
        host=str(gw["host"]),
        port=_as_int("gateway", "port", gw.get("port"), 0),
        username=_as_str(gw.get("username")),
        password=_as_str(gw.get("password")),
        zkid=_as_str(gw.get("zkid")),
        device_count=max(0, _as_int("gateway", "device_count", gw.get("device_count"), 0)),
        heartbeat_interval=_as_float("gateway", "heartbeat_interval", gw.get("heartbeat_interval"), 30.0),
        reconnect_delay=_as_float("gateway", "reconnect_delay", gw.get("reconnect_delay"), RECONNECT_DELAY_S),
        connect_timeout=_as_float("gateway", "connect_timeout", gw.get("connect_timeout"), 10.0),
    )

    http = _section(raw, "http_server")
    http_server = HttpServerConfig(
        host=_as_str(http.get("host"), "0.0.0.0"),
        port=_as_int("http_server", "port", http.get("port"), 8080),
    )

    ha = _section(raw, "home_assistant")
    home_assistant = HomeAssistantConfig(
        host=_as_str(ha.get("host"), "localhost"),
        port=_as_int("home_assistant", "port", ha.get("port"), 8123),
        token=env.get("HJB_HA_TOKEN", "").strip() or _as_str(ha.get("token")),
        entity_domain=_as_str(ha.get("entity_domain"), "switch"),
        timeout_s=_as_float("home_assistant", "timeout", ha.get("timeout"), 10.0),
    )

    dev = _section(raw, "devices")
    devices = DevicesConfig(
        curtains=_device_map("curtains", dev.get("curtains")),
        lights=_device_map("lights", dev.get("lights")),
    )

    lg = _section(raw, "logging")
    logging_cfg = LoggingConfig(
        level=env.get("HJB_LOG_LEVEL", "").strip() or _as_str(lg.get("level"), "info"),
        file=_as_str(lg.get("file")) or None,
    )

    return BridgeConfig(
        gateway=gateway,
        http_server=http_server,
        home_assistant=home_assistant,
        devices=devices,
        logging=logging_cfg,
    )


def load_config(path: str | Path | None = None) -> BridgeConfig:
    """Read and validate the YAML configuration file."""

    p = Path(path if path is not None else config_path_from_env())
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config file {p}: {exc}") from exc

    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {p}: {exc}") from exc

    if not isinstance(raw, Mapping):
        raise ConfigError(f"{p} must contain a mapping at the top level")
    return parse_config(raw)
