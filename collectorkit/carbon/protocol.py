"""Parsers for the Carbon line protocol and their configuration."""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from collectorkit.metricdata import (
    LabelKey,
    LabelValue,
    Metric,
    MetricType,
    Point,
    build_metric_for_single_point,
    convert_unix_sec,
)

CONFIG_SECTION = "config"

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class ParseError(ValueError):
    """Raised when a line or metric path cannot be parsed."""


class Parser(ABC):
    """Turns one Carbon line into a metric."""

    @abstractmethod
    def parse(self, line: str) -> Metric:
        """Parse ``"<metric_path> <metric_value> <metric_timestamp>"``."""


class ParserConfig(ABC):
    """Configuration of a parser, able to build that parser."""

    @abstractmethod
    def build_parser(self) -> Parser:
        """Build the parser this configuration describes."""


@dataclass
class ProtocolConfig:
    """Which parser to use and its configuration."""

    type: str = ""
    config: ParserConfig | None = None


def _parse_int64(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"invalid syntax: {text!r}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"value out of range: {text!r}")
    return value


def _parse_float(text: str) -> float:
    if not text or "_" in text or text != text.strip():
        raise ValueError(f"invalid syntax: {text!r}")
    try:
        value = float(text)
    except ValueError:
        if "p" not in text.lower():
            raise ValueError(f"invalid syntax: {text!r}") from None
        value = float.fromhex(text)
    if math.isinf(value) and "inf" not in text.lower():
        raise ValueError(f"value out of range: {text!r}")
    return value


@dataclass
class PlaintextParser(ParserConfig, Parser):
    """Parser for the plaintext protocol with Graphite-style tags."""

    def build_parser(self) -> Parser:
        return self

    def parse(self, line: str) -> Metric:
        parts = line.split(" ")
        if len(parts) != 3:
            raise ParseError(f"invalid carbon metric [{line}]")
        path, value_text, timestamp_text = parts

        try:
            name, keys, values = self.parse_path(path)
        except ParseError as err:
            raise ParseError(f"invalid carbon metric [{line}]: {err}") from err

        try:
            unix_time = _parse_int64(timestamp_text)
        except ValueError as err:
            raise ParseError(f"invalid carbon metric time [{line}]: {err}") from err

        value: int | float
        try:
            value = _parse_int64(value_text)
            metric_type = MetricType.GAUGE_INT64
        except ValueError:
            try:
                value = _parse_float(value_text)
            except ValueError as err:
                raise ParseError(
                    f"invalid carbon metric value [{line}]: {err}"
                ) from err
            metric_type = MetricType.GAUGE_DOUBLE

        point = Point(timestamp=convert_unix_sec(unix_time), value=value)
        return build_metric_for_single_point(name, metric_type, keys, values, point)

    def parse_path(self, path: str) -> tuple[str, list[LabelKey], list[LabelValue]]:
        """Split ``<metric_name>[;tag0;...;tagN]`` into name, label keys and values.

        A tag is ``key=value``; the key must not be empty, the value may be.
        """
        name, sep, tag_text = path.partition(";")
        if not name:
            raise ParseError(f"empty metric name extracted from path [{path}]")
        if not sep or not tag_text:
            return name, [], []

        keys: list[LabelKey] = []
        values: list[LabelValue] = []
        for tag in tag_text.split(";"):
            idx = tag.find("=")
            if idx < 1:
                raise ParseError(
                    f"cannot parse metric path [{path}]: "
                    f"incorrect key value separator for [{tag}]"
                )
            keys.append(LabelKey(key=tag[:idx]))
            values.append(LabelValue(value=tag[idx + 1:], has_value=True))
        return name, keys, values


@dataclass
class DelimiterParser(ParserConfig, Parser):
    """Parser that splits the metric path into labels at a delimiter."""

    or_delimiter: str = ""

    def build_parser(self) -> Parser:
        return self

    def parse(self, line: str) -> Metric:
        raise ParseError("the delimiter parser cannot parse lines yet")


_PARSERS: dict[str, type[ParserConfig]] = {
    "plaintext": PlaintextParser,
    "delimiter": DelimiterParser,
}

VALID_PARSERS: tuple[str, ...] = tuple(sorted(_PARSERS))


def _weak_string(key: str, value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError(f"cannot use {value!r} as a string for key {key!r}")


def _unmarshal_exact(section: Mapping[str, Any], target: ParserConfig) -> None:
    known = {f.name for f in fields(target)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"invalid keys: {', '.join(unknown)}")
    for key, value in section.items():
        setattr(target, key, _weak_string(key, value))


def load_parser_config(
    section: Mapping[str, Any], config: ProtocolConfig
) -> ParserConfig:
    """Load the parser configuration for ``config.type`` from ``section``.

    ``section`` is the mapping at the level of the protocol configuration; its
    ``config`` entry, if present, must only hold keys the parser knows. The
    loaded configuration is stored on ``config`` and returned.
    """
    parser_class = _PARSERS.get(config.type)
    if parser_class is None:
        raise ValueError(
            f"unknown parser type {config.type!r}, "
            f"valid parser types: {list(VALID_PARSERS)}"
        )

    parser_config = parser_class()
    parser_section = section.get(CONFIG_SECTION)
    if parser_section is not None:
        if not isinstance(parser_section, Mapping):
            raise ValueError(f"{CONFIG_SECTION!r} section must be a mapping")
        _unmarshal_exact(parser_section, parser_config)

    config.config = parser_config
    return parser_config