"""A small Graphite plaintext client, meant for exercising the receiver."""

from __future__ import annotations

import enum
import math
import socket
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

DEFAULT_TIMEOUT = 5.0


class Transport(enum.IntEnum):
    """Transport used to reach the Graphite host."""

    TCP = 1
    UDP = 2


def _format_float(value: float) -> str:
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


@dataclass(frozen=True)
class Metric:
    """A metric as Graphite expects it."""

    name: str
    value: float
    timestamp: datetime

    def __str__(self) -> str:
        return (
            f"{self.name} {_format_float(self.value)} "
            f"{math.floor(self.timestamp.timestamp())}\n"
        )


@dataclass
class Graphite:
    """A connection to a Graphite host."""

    host: str
    port: int
    timeout: float = 0.0
    conn: socket.socket | None = field(default=None, repr=False)

    def connect(self, transport: Transport | int) -> None:
        """(Re)open the connection using ``transport``."""
        try:
            transport = Transport(transport)
        except ValueError:
            raise ValueError(f"unknown transport {transport}") from None

        if self.conn is not None:
            self.conn.close()
            self.conn = None
        if self.timeout == 0:
            self.timeout = DEFAULT_TIMEOUT

        if transport is Transport.TCP:
            conn = socket.create_connection((self.host, self.port), self.timeout)
            conn.settimeout(None)
        else:
            family, type_, proto, _, sockaddr = socket.getaddrinfo(
                self.host, self.port, socket.AF_UNSPEC, socket.SOCK_DGRAM
            )[0]
            conn = socket.socket(family, type_, proto)
            try:
                conn.connect(sockaddr)
            except OSError:
                conn.close()
                raise
        self.conn = conn

    def disconnect(self) -> None:
        """Close the connection."""
        conn, self.conn = self.conn, None
        if conn is not None:
            conn.close()

    def send_metric(self, metric: Metric) -> None:
        """Send one metric."""
        self._send(str(metric))

    def send_metrics(self, metrics: Iterable[Metric]) -> None:
        """Send several metrics in one write, separated by newlines."""
        self._send("\n".join(str(metric) for metric in metrics))

    def _send(self, text: str) -> None:
        if self.conn is None:
            raise ConnectionError("not connected")
        self.conn.sendall(text.encode("utf-8"))

    def __enter__(self) -> Graphite:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()


def new_graphite(transport: Transport | int, host: str, port: int) -> Graphite:
    """Create a client connected to ``host:port`` over ``transport``."""
    graphite = Graphite(host=host, port=port)
    graphite.connect(transport)
    return graphite