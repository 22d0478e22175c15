"""Bridge configuration for pymijia."""

from __future__ import annotations

import configparser
import dataclasses
import os
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pymijia.exceptions import MijiaConfigError
from pymijia.publisher import DEFAULT_BASE_TOPIC

DEFAULT_CONFIG_PATH = "/etc/pymijia.ini"


def _ini_bool(value: str, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise MijiaConfigError(f"Invalid boolean for {key}: {value!r}")


def _ini_number(value: str, key: str, kind: type[int] | type[float]) -> Any:
    try:
        return kind(value.strip())
    except ValueError as exc:
        raise MijiaConfigError(f"Invalid number for {key}: {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class BrokerConfig:
    """MQTT broker connection settings.

    Parameters
    ----------
    host : str
        Broker host name.
    port : int
        Broker port.  Defaults to the MQTT-over-TLS port.
    username, password : str or None
        Optional credentials.
    tls : bool
        Connect with TLS using the system CA store.
    client_id : str
        MQTT client identifier.
    keepalive : int
        Keep-alive interval in seconds.
    base_topic : str
        Prefix for every published topic.
    connect_timeout : float
        Seconds to wait for the broker to acknowledge the connection.
    """

    host: str
    port: int = 8883
    username: str | None = None
    password: str | None = dataclasses.field(default=None, repr=False)
    tls: bool = True
    client_id: str = "pymijia"
    keepalive: int = 30
    base_topic: str = DEFAULT_BASE_TOPIC
    connect_timeout: float = 10.0


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    """Complete bridge configuration.

    ``devices`` maps a logical device name (e.g. ``"kitchen"``) to the
    hardware address of the sensor.  The mapping is read-only once loaded.
    """

    broker: BrokerConfig
    devices: Mapping[str, str] = dataclasses.field(default_factory=dict)
    scan_duration: float = 60.0
    adapter: str | None = None

    def __post_init__(self) -> None:
        normalized = {name: address.strip().upper() for name, address in self.devices.items()}
        seen: dict[str, str] = {}
        for name, address in normalized.items():
            if not address:
                raise MijiaConfigError(f"Device {name!r} has no address")
            if address in seen:
                raise MijiaConfigError(f"Address {address} is bound to both {seen[address]!r} and {name!r}")
            seen[address] = name
        if self.scan_duration <= 0:
            raise MijiaConfigError("Scan duration must be positive")
        object.__setattr__(self, "devices", MappingProxyType(normalized))

    @property
    def identities(self) -> Mapping[str, str]:
        """Reverse mapping: device address to logical name."""
        return MappingProxyType({address: name for name, address in self.devices.items()})

    @classmethod
    def from_file(cls, path: str | os.PathLike[str], **overrides: Any) -> BridgeConfig:
        """Load configuration from an INI file.

        ``MIJIA_MQTT_USERNAME`` and ``MIJIA_MQTT_PASSWORD`` take precedence
        over the file's credentials; explicit keyword arguments take
        precedence over everything.

        Raises
        ------
        MijiaConfigError
            The file cannot be read, or the ``[MQTT]`` section, its
            ``broker`` key or the ``[Devices]`` section is missing.
        """
        parser = configparser.ConfigParser(delimiters=("=",), interpolation=None)
        parser.optionxform = str  # type: ignore[assignment,method-assign]
        try:
            with Path(path).open(encoding="utf-8") as fh:
                parser.read_file(fh)
        except (OSError, configparser.Error) as exc:
            raise MijiaConfigError(f"Failed to load configuration file {path}: {exc}") from exc

        if not parser.has_section("MQTT"):
            raise MijiaConfigError("Can't find MQTT configuration section")
        mqtt = parser["MQTT"]
        if not mqtt.get("broker", "").strip():
            raise MijiaConfigError("Must define MQTT broker host")

        if not parser.has_section("Devices"):
            raise MijiaConfigError("Can't find Devices configuration section")

        env = os.environ
        broker_kwargs: dict[str, Any] = {"host": mqtt["broker"].strip()}
        for key in ("username", "password", "client_id", "base_topic"):
            if key in mqtt:
                broker_kwargs[key] = mqtt[key]
        if "port" in mqtt:
            broker_kwargs["port"] = _ini_number(mqtt["port"], "MQTT.port", int)
        if "keepalive" in mqtt:
            broker_kwargs["keepalive"] = _ini_number(mqtt["keepalive"], "MQTT.keepalive", int)
        if "connect_timeout" in mqtt:
            broker_kwargs["connect_timeout"] = _ini_number(mqtt["connect_timeout"], "MQTT.connect_timeout", float)
        if "tls" in mqtt:
            broker_kwargs["tls"] = _ini_bool(mqtt["tls"], "MQTT.tls")

        _ENV_BROKER_MAP = {
            "MIJIA_MQTT_USERNAME": "username",
            "MIJIA_MQTT_PASSWORD": "password",
        }
        for env_key, field_name in _ENV_BROKER_MAP.items():
            val = env.get(env_key)
            if val is not None:
                broker_kwargs[field_name] = val

        config_kwargs: dict[str, Any] = {
            "broker": BrokerConfig(**broker_kwargs),
            "devices": {
                key: parser.get("Devices", key) for key in parser.options("Devices") if key not in parser.defaults()
            },
        }
        if parser.has_section("Scan"):
            scan = parser["Scan"]
            if "duration" in scan:
                config_kwargs["scan_duration"] = _ini_number(scan["duration"], "Scan.duration", float)
            if scan.get("adapter", "").strip():
                config_kwargs["adapter"] = scan["adapter"].strip()

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
