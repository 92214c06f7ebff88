"""Configuration of the processor that tags data with pod metadata."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

TYPE_STR = "k8s_tagger"

_T = TypeVar("_T")


@dataclass
class FieldExtractConfig:
    """Extract a value from exactly one label or annotation.

    ``tag_name`` defaults to ``k8s.<type>.<key>``; ``regex``, when given,
    must hold exactly one named group called ``value``.
    """

    tag_name: str = ""
    key: str = ""
    regex: str = ""


@dataclass
class ExtractConfig:
    """What metadata, annotations and labels to extract from pods."""

    metadata: list[str] = field(default_factory=list)
    annotations: list[FieldExtractConfig] = field(default_factory=list)
    labels: list[FieldExtractConfig] = field(default_factory=list)


@dataclass
class FieldFilterConfig:
    """One filter by a field or label; ``op`` defaults to equals."""

    key: str = ""
    value: str = ""
    op: str = ""


@dataclass
class FilterConfig:
    """Which pods to watch, by node, namespace, fields and labels."""

    node: str = ""
    node_from_env_var: str = ""
    namespace: str = ""
    fields: list[FieldFilterConfig] = field(default_factory=list)
    labels: list[FieldFilterConfig] = field(default_factory=list)


@dataclass
class Config:
    """Settings of one pod-tagging processor."""

    name: str = TYPE_STR
    type: str = TYPE_STR
    passthrough: bool = False
    extract: ExtractConfig = field(default_factory=ExtractConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)


def _section(value: Any, where: str, allowed: frozenset[str]) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{where} must be a mapping")
    unknown = sorted(set(value) - allowed)
    if unknown:
        raise ValueError(f"invalid keys in {where}: {', '.join(map(str, unknown))}")
    return value


def _string(value: Any, where: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError(f"cannot use {value!r} as a string for {where}")


def _boolean(value: Any, where: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"cannot use {value!r} as a boolean for {where}")


def _list(value: Any, where: str, build: Callable[[Any, str], _T]) -> list[_T]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{where} must be a list")
    return [build(item, f"{where}[{index}]") for index, item in enumerate(value)]


_EXTRACT_FIELD_KEYS = frozenset({"tag_name", "key", "regex"})
_FILTER_FIELD_KEYS = frozenset({"key", "value", "op"})
_EXTRACT_KEYS = frozenset({"metadata", "annotations", "labels"})
_FILTER_KEYS = frozenset({"node", "node_from_env_var", "namespace", "fields", "labels"})
_TOP_LEVEL_KEYS = frozenset({"passthrough", "extract", "filter"})


def _field_extract(value: Any, where: str) -> FieldExtractConfig:
    section = _section(value, where, _EXTRACT_FIELD_KEYS)
    return FieldExtractConfig(
        tag_name=_string(section.get("tag_name"), f"{where}.tag_name"),
        key=_string(section.get("key"), f"{where}.key"),
        regex=_string(section.get("regex"), f"{where}.regex"),
    )


def _field_filter(value: Any, where: str) -> FieldFilterConfig:
    section = _section(value, where, _FILTER_FIELD_KEYS)
    return FieldFilterConfig(
        key=_string(section.get("key"), f"{where}.key"),
        value=_string(section.get("value"), f"{where}.value"),
        op=_string(section.get("op"), f"{where}.op"),
    )


def _extract(value: Any, where: str) -> ExtractConfig:
    section = _section(value, where, _EXTRACT_KEYS)
    return ExtractConfig(
        metadata=_list(section.get("metadata"), f"{where}.metadata", _string),
        annotations=_list(section.get("annotations"), f"{where}.annotations", _field_extract),
        labels=_list(section.get("labels"), f"{where}.labels", _field_extract),
    )


def _filter(value: Any, where: str) -> FilterConfig:
    section = _section(value, where, _FILTER_KEYS)
    return FilterConfig(
        node=_string(section.get("node"), f"{where}.node"),
        node_from_env_var=_string(
            section.get("node_from_env_var"), f"{where}.node_from_env_var"
        ),
        namespace=_string(section.get("namespace"), f"{where}.namespace"),
        fields=_list(section.get("fields"), f"{where}.fields", _field_filter),
        labels=_list(section.get("labels"), f"{where}.labels", _field_filter),
    )


def config_from_mapping(data: Mapping[str, Any] | None, name: str = TYPE_STR) -> Config:
    """Build the configuration named ``name`` from a configuration section.

    Missing settings keep their defaults; unknown keys raise ValueError.
    """
    cfg = Config(name=name, type=TYPE_STR)
    if data is None:
        return cfg
    section = _section(data, name, _TOP_LEVEL_KEYS)
    if "passthrough" in section:
        cfg.passthrough = _boolean(section["passthrough"], f"{name}.passthrough")
    if section.get("extract") is not None:
        cfg.extract = _extract(section["extract"], f"{name}.extract")
    if section.get("filter") is not None:
        cfg.filter = _filter(section["filter"], f"{name}.filter")
    return cfg