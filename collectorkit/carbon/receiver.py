"""Metrics receiver for the Carbon plaintext ("line") protocol."""

from __future__ import annotations

import dataclasses
import threading
from typing import TYPE_CHECKING

from collectorkit.carbon.protocol import Parser, PlaintextParser
from collectorkit.carbon.reporter import CarbonReporter
from collectorkit.carbon.transport import Reporter, Server, new_tcp_server, new_udp_server
from collectorkit.component import AlreadyStartedError, AlreadyStoppedError, Host
from collectorkit.metricdata import MetricsConsumer

if TYPE_CHECKING:
    from collectorkit.carbon.config import Config


class ReceiverConfigError(ValueError):
    """Raised when a receiver cannot be built from its configuration."""


class CarbonReceiver:
    """Receives Carbon lines over a transport and passes metrics on."""

    metrics_source = "Carbon"

    def __init__(
        self,
        config: Config,
        next_consumer: MetricsConsumer,
        server: Server,
        reporter: Reporter,
        parser: Parser,
    ) -> None:
        self.config = config
        self.next_consumer = next_consumer
        self.server = server
        self.reporter = reporter
        self.parser = parser
        self._lock = threading.Lock()
        self._started = False
        self._stopped = False
        self._thread: threading.Thread | None = None

    def start(self, host: Host) -> None:
        """Start serving in the background; fatal errors go to ``host``."""
        with self._lock:
            if self._started:
                raise AlreadyStartedError()
            self._started = True
            self._thread = threading.Thread(
                target=self._serve, args=(host,), daemon=True
            )
            self._thread.start()

    def _serve(self, host: Host) -> None:
        try:
            self.server.listen_and_serve(self.parser, self.next_consumer, self.reporter)
        except Exception as err:  # noqa: BLE001 - reported to the host
            host.report_fatal_error(err)

    def shutdown(self) -> None:
        """Stop receiving; data already received is still processed."""
        with self._lock:
            if self._stopped:
                raise AlreadyStoppedError()
            self._stopped = True
            thread = self._thread
            self.server.close()
        if thread is not None:
            thread.join()


def _build_transport_server(config: Config) -> Server:
    transport = config.transport.lower()
    if transport in ("", "tcp"):
        return new_tcp_server(config.endpoint, config.tcp_idle_timeout)
    if transport == "udp":
        return new_udp_server(config.endpoint)
    raise ReceiverConfigError(
        f'unsupported transport "{config.transport}" for receiver "{config.name}"'
    )


def new_receiver(config: Config, next_consumer: MetricsConsumer) -> CarbonReceiver:
    """Create a Carbon receiver; its socket is bound but not yet served."""
    if next_consumer is None:
        raise ReceiverConfigError("next consumer is None")
    if not config.endpoint:
        raise ReceiverConfigError("empty endpoint")
    if config.parser is None or config.parser.type != "plaintext":
        raise ReceiverConfigError("currently only plaintext parser is supported")

    config = dataclasses.replace(config)
    parser_config = config.parser.config or PlaintextParser()
    parser = parser_config.build_parser()

    # Built last: nothing may fail after the socket is bound.
    server = _build_transport_server(config)
    return CarbonReceiver(
        config=config,
        next_consumer=next_consumer,
        server=server,
        reporter=CarbonReporter(config.name),
        parser=parser,
    )