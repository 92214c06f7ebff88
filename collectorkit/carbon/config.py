"""Configuration of the Carbon receiver and the factory that builds it."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from collectorkit.carbon.protocol import (
    CONFIG_SECTION,
    PlaintextParser,
    ProtocolConfig,
    load_parser_config,
)
from collectorkit.carbon.receiver import CarbonReceiver, new_receiver
from collectorkit.carbon.transport import TCP_IDLE_TIMEOUT_DEFAULT
from collectorkit.component import DataTypeNotSupportedError
from collectorkit.metricdata import MetricsConsumer

TYPE_STR = "carbon"
PARSER_CONFIG_SECTION = "parser"
DEFAULT_ENDPOINT = "localhost:2003"

_TOP_LEVEL_KEYS = frozenset({"endpoint", "transport", "tcp_idle_timeout", PARSER_CONFIG_SECTION})
_PARSER_KEYS = frozenset({"type", CONFIG_SECTION})

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


@dataclass
class Config:
    """Settings of one Carbon receiver; ``tcp_idle_timeout`` is in seconds."""

    name: str = ""
    type: str = TYPE_STR
    endpoint: str = ""
    transport: str = ""
    tcp_idle_timeout: float = 0.0
    parser: ProtocolConfig | None = None


def _as_string(key: str, value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError(f"cannot use {value!r} as a string for key {key!r}")


def _parse_duration(key: str, value: Any) -> float:
    """Read a duration: a number of seconds or text such as ``"1m30s"``."""
    if isinstance(value, bool):
        raise ValueError(f"cannot use {value!r} as a duration for key {key!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"cannot use {value!r} as a duration for key {key!r}")

    text = value.strip()
    sign = 1.0
    if text[:1] in ("+", "-"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if text == "0":
        return 0.0
    if not text:
        raise ValueError(f"invalid duration {value!r}")

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return sign * total


class Factory:
    """Builds Carbon receiver configurations and receivers."""

    type = TYPE_STR

    def create_default_config(self) -> Config:
        return Config(
            name=TYPE_STR,
            type=TYPE_STR,
            endpoint=DEFAULT_ENDPOINT,
            transport="tcp",
            tcp_idle_timeout=TCP_IDLE_TIMEOUT_DEFAULT,
            parser=ProtocolConfig(type="plaintext", config=PlaintextParser()),
        )

    def unmarshal(self, section: Mapping[str, Any] | None, name: str = TYPE_STR) -> Config:
        """Build the configuration named ``name`` from a configuration section.

        Missing settings keep their defaults; unknown keys are an error.
        """
        cfg = self.create_default_config()
        cfg.name = name
        if section is None:
            return cfg
        if not isinstance(section, Mapping):
            raise ValueError(f"configuration of {name} must be a mapping")

        if "endpoint" in section:
            cfg.endpoint = _as_string("endpoint", section["endpoint"])
        if "transport" in section:
            cfg.transport = _as_string("transport", section["transport"])
        if "tcp_idle_timeout" in section:
            cfg.tcp_idle_timeout = _parse_duration(
                "tcp_idle_timeout", section["tcp_idle_timeout"]
            )

        parser_section = section.get(PARSER_CONFIG_SECTION)
        if parser_section is not None:
            if not isinstance(parser_section, Mapping):
                raise ValueError(
                    f"{PARSER_CONFIG_SECTION!r} section of {name} must be a mapping"
                )
            parser_config = cfg.parser or ProtocolConfig()
            cfg.parser = parser_config
            if "type" in parser_section:
                parser_config.type = _as_string("type", parser_section["type"])
            try:
                load_parser_config(parser_section, parser_config)
            except ValueError as err:
                raise ValueError(
                    f'error on "{PARSER_CONFIG_SECTION}" section for {name}: {err}'
                ) from err
            unknown_parser_keys = sorted(set(parser_section) - _PARSER_KEYS)
            if unknown_parser_keys:
                raise ValueError(f"invalid keys: {', '.join(unknown_parser_keys)}")

        unknown = sorted(set(section) - _TOP_LEVEL_KEYS)
        if unknown:
            raise ValueError(f"invalid keys: {', '.join(unknown)}")
        return cfg

    def create_trace_receiver(self, config: Config, consumer: Any) -> None:
        """Carbon carries no traces: always raises."""
        raise DataTypeNotSupportedError()

    def create_metrics_receiver(
        self, config: Config, consumer: MetricsConsumer
    ) -> CarbonReceiver:
        return new_receiver(config, consumer)