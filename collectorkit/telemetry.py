"""In-process telemetry: counters for pipeline events and simple tracing spans."""

from __future__ import annotations

import threading
from collections import Counter, defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field

POD_UPDATED = "otelsvc/k8s/pod_updated"
POD_ADDED = "otelsvc/k8s/pod_added"
POD_DELETED = "otelsvc/k8s/pod_deleted"
IP_LOOKUP_MISS = "otelsvc/k8s/ip_lookup_miss"
RECEIVER_RECEIVED_TIMESERIES = "receiver/received_timeseries"
RECEIVER_DROPPED_TIMESERIES = "receiver/dropped_timeseries"

DESCRIPTIONS: dict[str, str] = {
    POD_UPDATED: "Number of pod update events received",
    POD_ADDED: "Number of pod add events received",
    POD_DELETED: "Number of pod delete events received",
    IP_LOOKUP_MISS: "Number of times pod by IP lookup failed.",
    RECEIVER_RECEIVED_TIMESERIES: "Number of time series received by a receiver",
    RECEIVER_DROPPED_TIMESERIES: "Number of time series dropped by a receiver",
}

STATUS_OK = 0
STATUS_UNKNOWN = 2

_lock = threading.Lock()
_counters: defaultdict[str, Counter[str]] = defaultdict(Counter)


def _add(measure: str, value: int, tag: str = "") -> None:
    with _lock:
        _counters[measure][tag] += value


@dataclass
class Span:
    """A unit of traced work with a name, annotations and a status."""

    name: str = ""
    annotations: list[tuple[str, dict[str, str]]] = field(default_factory=list)
    status_code: int = STATUS_OK
    status_message: str = ""
    ended: bool = False

    def set_name(self, name: str) -> None:
        self.name = name

    def annotate(self, attributes: Mapping[str, str], message: str) -> None:
        """Attach a message with attributes to the span."""
        self.annotations.append((message, dict(attributes)))

    def set_status(self, code: int, message: str = "") -> None:
        self.status_code = code
        self.status_message = message

    def end(self) -> None:
        """Finish the span; ending it again has no effect."""
        self.ended = True


def record_pod_updated() -> None:
    """Count one pod update event."""
    _add(POD_UPDATED, 1)


def record_pod_added() -> None:
    """Count one pod add event."""
    _add(POD_ADDED, 1)


def record_pod_deleted() -> None:
    """Count one pod delete event."""
    _add(POD_DELETED, 1)


def record_ip_lookup_miss() -> None:
    """Count one failed lookup of a pod by IP."""
    _add(IP_LOOKUP_MISS, 1)


def record_receiver_metrics(receiver: str, received: int, dropped: int) -> None:
    """Count time series received and dropped by the named receiver."""
    _add(RECEIVER_RECEIVED_TIMESERIES, received, receiver)
    _add(RECEIVER_DROPPED_TIMESERIES, dropped, receiver)


def snapshot() -> dict[str, dict[str, int]]:
    """Current totals: measure name to a mapping of tag to value.

    Untagged measures use the empty string as their tag; receiver measures
    are tagged with the receiver name.
    """
    with _lock:
        return {measure: dict(values) for measure, values in _counters.items()}


def reset() -> None:
    """Forget every recorded value."""
    with _lock:
        _counters.clear()