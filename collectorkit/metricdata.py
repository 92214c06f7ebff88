"""Metric data model shared by receivers and the consumers they feed."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field


class MetricType(enum.IntEnum):
    """Kind of values a metric carries."""

    UNSPECIFIED = 0
    GAUGE_INT64 = 1
    GAUGE_DOUBLE = 2
    GAUGE_DISTRIBUTION = 3
    CUMULATIVE_INT64 = 4
    CUMULATIVE_DOUBLE = 5
    CUMULATIVE_DISTRIBUTION = 6
    SUMMARY = 7


@dataclass(frozen=True)
class Timestamp:
    """A point in time as seconds and nanoseconds since the Unix epoch."""

    seconds: int
    nanos: int = 0


@dataclass(frozen=True)
class LabelKey:
    """Name of a label (dimension) of a metric."""

    key: str
    description: str = ""


@dataclass(frozen=True)
class LabelValue:
    """Value of a label; ``has_value`` tells an empty value from a missing one."""

    value: str = ""
    has_value: bool = False


@dataclass
class Point:
    """A single measurement: an int for integer gauges, a float otherwise."""

    timestamp: Timestamp | None = None
    value: int | float = 0


@dataclass
class TimeSeries:
    """Points sharing the same label values."""

    label_values: list[LabelValue] = field(default_factory=list)
    points: list[Point] = field(default_factory=list)
    start_timestamp: Timestamp | None = None


@dataclass
class MetricDescriptor:
    """Name, type and label keys of a metric."""

    name: str
    type: MetricType = MetricType.UNSPECIFIED
    label_keys: list[LabelKey] = field(default_factory=list)
    description: str = ""
    unit: str = ""


@dataclass
class Metric:
    """A metric: its descriptor and its time series."""

    metric_descriptor: MetricDescriptor
    timeseries: list[TimeSeries] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.metric_descriptor.name


@dataclass
class MetricsData:
    """A batch of metrics handed from one pipeline stage to the next."""

    metrics: list[Metric] = field(default_factory=list)


class MetricsConsumer(ABC):
    """Receives batches of metrics; raising signals that the batch failed."""

    @abstractmethod
    def consume_metrics_data(self, md: MetricsData) -> None:
        """Accept one batch of metrics."""


def build_metric_for_single_point(
    metric_name: str,
    metric_type: MetricType,
    label_keys: Iterable[LabelKey] | None,
    label_values: Iterable[LabelValue] | None,
    point: Point,
) -> Metric:
    """Build a metric holding exactly one time series with one point."""
    return Metric(
        metric_descriptor=MetricDescriptor(
            name=metric_name,
            type=metric_type,
            label_keys=list(label_keys or ()),
        ),
        timeseries=[
            TimeSeries(label_values=list(label_values or ()), points=[point]),
        ],
    )


def convert_unix_sec(sec: int) -> Timestamp:
    """Turn whole Unix seconds into a timestamp."""
    return Timestamp(seconds=sec)