"""Network servers that receive Carbon lines and feed them to a consumer."""

from __future__ import annotations

import socket
import threading
from abc import ABC, abstractmethod
from typing import Any, Protocol

from collectorkit.carbon.protocol import Parser
from collectorkit.metricdata import Metric, MetricsConsumer, MetricsData

TCP_IDLE_TIMEOUT_DEFAULT = 30.0
"""Default timeout, in seconds, for idle TCP connections."""

MAX_UDP_PACKET_SIZE = 65527
"""Largest UDP packet body accepted (assuming IPv6)."""

_POLL_INTERVAL = 0.1
_MISSING_PARAMETERS = "no parameter of listen_and_serve can be None"


class SpanLike(Protocol):
    """The part of a tracing span the servers rely on."""

    def end(self) -> None:
        """Finish the span."""


class Reporter(ABC):
    """Reports what happens while a server receives and processes data."""

    @abstractmethod
    def on_data_received(self) -> SpanLike:
        """Called when a message arrives; the returned span is passed back
        to the other calls for that message and ended by the caller."""

    @abstractmethod
    def on_translation_error(self, span: Any, err: BaseException) -> None:
        """Called when a line cannot be turned into a metric."""

    @abstractmethod
    def on_metrics_processed(
        self,
        span: Any,
        num_received_timeseries: int,
        num_invalid_timeseries: int,
        err: BaseException | None,
    ) -> None:
        """Called after the data was handed to the next consumer; ``err`` is
        what the consumer raised, or None."""

    @abstractmethod
    def on_debugf(self, template: str, *args: Any) -> None:
        """Less structured reporting for debugging; ``template % args``."""


class Server(ABC):
    """A transport that listens for clients and serves their data."""

    address: tuple[str, int]

    @abstractmethod
    def listen_and_serve(
        self,
        parser: Parser,
        next_consumer: MetricsConsumer,
        reporter: Reporter,
    ) -> None:
        """Block serving clients until the server is closed.

        Returns once ``close`` was called; raises on any other failure.
        """

    @abstractmethod
    def close(self) -> None:
        """Stop serving, waiting for data already received to be processed."""

    def __enter__(self) -> Server:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class _WaitGroup:
    """Counts running workers and lets a caller wait for all of them."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._count = 0

    def add(self) -> None:
        with self._cond:
            self._count += 1

    def done(self) -> None:
        with self._cond:
            self._count -= 1
            if self._count == 0:
                self._cond.notify_all()

    def wait(self) -> None:
        with self._cond:
            self._cond.wait_for(lambda: self._count == 0)


def _split_host_port(addr: str) -> tuple[str, int]:
    host, sep, port_text = addr.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {addr!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port in address {addr!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"invalid port in address {addr!r}")
    return host, port


def _bind(addr: str, sock_type: int) -> socket.socket:
    host, port = _split_host_port(addr)
    infos = socket.getaddrinfo(
        host or None, port, socket.AF_UNSPEC, sock_type, 0, socket.AI_PASSIVE
    )
    last_err: OSError | None = None
    for family, type_, proto, _, sockaddr in infos:
        sock = socket.socket(family, type_, proto)
        try:
            if sock_type == socket.SOCK_STREAM:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
        except OSError as err:
            sock.close()
            last_err = err
            continue
        return sock
    raise last_err or OSError(f"cannot bind to {addr!r}")


def _format_duration(seconds: float) -> str:
    if seconds == int(seconds):
        return f"{int(seconds)}s"
    return f"{seconds:g}s"


def _check_parameters(*params: object) -> None:
    if any(param is None for param in params):
        raise ValueError(_MISSING_PARAMETERS)


class TCPServer(Server):
    """Serves Carbon lines over TCP, one thread per connection."""

    def __init__(self, addr: str, idle_timeout: float = 0.0) -> None:
        if idle_timeout < 0:
            raise ValueError(f"invalid idle timeout: {_format_duration(idle_timeout)}")
        self.idle_timeout = idle_timeout or TCP_IDLE_TIMEOUT_DEFAULT
        self._listener = _bind(addr, socket.SOCK_STREAM)
        self._listener.listen()
        self._listener.settimeout(_POLL_INTERVAL)
        self.address = self._listener.getsockname()[:2]
        self._reporter: Reporter | None = None
        self._handlers = _WaitGroup()
        self._closed = threading.Event()
        self._loop_done = threading.Event()
        self._state_lock = threading.Lock()
        self._serving = False

    def listen_and_serve(
        self,
        parser: Parser,
        next_consumer: MetricsConsumer,
        reporter: Reporter,
    ) -> None:
        _check_parameters(parser, next_consumer, reporter)
        with self._state_lock:
            if self._closed.is_set():
                return
            self._serving = True
        self._reporter = reporter

        connections: set[socket.socket] = set()
        connections_lock = threading.Lock()
        error: OSError | None = None
        try:
            while not self._closed.is_set():
                try:
                    conn, _ = self._listener.accept()
                except TimeoutError:
                    continue
                except OSError as err:
                    if self._closed.is_set():
                        break
                    error = err
                    break
                conn.settimeout(self.idle_timeout)
                with connections_lock:
                    connections.add(conn)
                self._handlers.add()
                threading.Thread(
                    target=self._serve_connection,
                    args=(parser, next_consumer, conn, connections, connections_lock),
                    daemon=True,
                ).start()
        finally:
            reporter.on_debugf(
                "TCP Transport (%s) exiting Accept loop error: %s",
                self.address,
                error,
            )
            with connections_lock:
                for conn in connections:
                    _shutdown(conn)
            self._listener.close()
            self._loop_done.set()
        if error is not None:
            raise error

    def close(self) -> None:
        self._closed.set()
        with self._state_lock:
            serving = self._serving
        if serving:
            self._loop_done.wait()
        self._listener.close()
        self._handlers.wait()

    def _serve_connection(
        self,
        parser: Parser,
        next_consumer: MetricsConsumer,
        conn: socket.socket,
        connections: set[socket.socket],
        connections_lock: threading.Lock,
    ) -> None:
        try:
            self._handle_connection(parser, next_consumer, conn)
        finally:
            with connections_lock:
                connections.discard(conn)
            self._handlers.done()

    def _handle_connection(
        self,
        parser: Parser,
        next_consumer: MetricsConsumer,
        conn: socket.socket,
    ) -> None:
        reporter = self._reporter
        assert reporter is not None
        with conn, conn.makefile("rb") as reader:
            while True:
                read_err: OSError | None = None
                try:
                    data = reader.readline()
                except (OSError, ValueError) as err:
                    data = b""
                    read_err = err if isinstance(err, OSError) else OSError(str(err))

                span = reporter.on_data_received()
                try:
                    line = data.decode("utf-8", errors="replace").strip()
                    if line and not self._process_line(
                        parser, next_consumer, reporter, span, line
                    ):
                        # The protocol has no way to return errors: closing
                        # the connection is how the client learns of them.
                        return
                    if read_err is not None:
                        reporter.on_debugf(
                            "TCP Transport (%s) - read error: %s",
                            self.address,
                            read_err,
                        )
                        return
                    if not data.endswith(b"\n"):
                        reporter.on_debugf(
                            "TCP Transport (%s) - error: %s", self.address, "EOF"
                        )
                        return
                finally:
                    span.end()

    @staticmethod
    def _process_line(
        parser: Parser,
        next_consumer: MetricsConsumer,
        reporter: Reporter,
        span: SpanLike,
        line: str,
    ) -> bool:
        try:
            metric = parser.parse(line)
        except Exception as err:  # noqa: BLE001 - any parser failure is reported
            reporter.on_translation_error(span, err)
            return True

        consume_err: Exception | None = None
        try:
            next_consumer.consume_metrics_data(MetricsData(metrics=[metric]))
        except Exception as err:  # noqa: BLE001 - passed on to the reporter
            consume_err = err
        reporter.on_metrics_processed(span, 1, 0, consume_err)
        return consume_err is None


def _shutdown(conn: socket.socket) -> None:
    try:
        conn.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    conn.close()


class UDPServer(Server):
    """Serves Carbon lines over UDP, one thread per packet."""

    def __init__(self, addr: str) -> None:
        self._sock = _bind(addr, socket.SOCK_DGRAM)
        self._sock.settimeout(_POLL_INTERVAL)
        self.address = self._sock.getsockname()[:2]
        self._reporter: Reporter | None = None
        self._handlers = _WaitGroup()
        self._closed = threading.Event()
        self._loop_done = threading.Event()
        self._state_lock = threading.Lock()
        self._serving = False

    def listen_and_serve(
        self,
        parser: Parser,
        next_consumer: MetricsConsumer,
        reporter: Reporter,
    ) -> None:
        _check_parameters(parser, next_consumer, reporter)
        with self._state_lock:
            if self._closed.is_set():
                return
            self._serving = True
        self._reporter = reporter

        try:
            while not self._closed.is_set():
                try:
                    data, _ = self._sock.recvfrom(MAX_UDP_PACKET_SIZE)
                except TimeoutError:
                    continue
                except OSError as err:
                    if self._closed.is_set():
                        break
                    reporter.on_debugf(
                        "UDP Transport (%s) - ReadFrom error: %s", self.address, err
                    )
                    raise
                if data:
                    self._handlers.add()
                    threading.Thread(
                        target=self._serve_packet,
                        args=(parser, next_consumer, data),
                        daemon=True,
                    ).start()
        finally:
            self._sock.close()
            self._loop_done.set()

    def close(self) -> None:
        self._closed.set()
        with self._state_lock:
            serving = self._serving
        if serving:
            self._loop_done.wait()
        self._sock.close()
        self._handlers.wait()

    def _serve_packet(
        self, parser: Parser, next_consumer: MetricsConsumer, data: bytes
    ) -> None:
        try:
            self._handle_packet(parser, next_consumer, data)
        finally:
            self._handlers.done()

    def _handle_packet(
        self, parser: Parser, next_consumer: MetricsConsumer, data: bytes
    ) -> None:
        reporter = self._reporter
        assert reporter is not None
        span = reporter.on_data_received()
        try:
            num_received = 0
            num_invalid = 0
            metrics: list[Metric] = []
            for raw in data.split(b"\n"):
                line = raw.decode("utf-8", errors="replace").strip()
                if not line:
                    continue
                num_received += 1
                try:
                    metrics.append(parser.parse(line))
                except Exception as err:  # noqa: BLE001 - reported per line
                    num_invalid += 1
                    reporter.on_translation_error(span, err)

            consume_err: Exception | None = None
            try:
                next_consumer.consume_metrics_data(MetricsData(metrics=metrics))
            except Exception as err:  # noqa: BLE001 - passed on to the reporter
                consume_err = err
            reporter.on_metrics_processed(span, num_received, num_invalid, consume_err)
        finally:
            span.end()


def new_tcp_server(addr: str, idle_timeout: float = 0.0) -> TCPServer:
    """Create a server listening on TCP ``addr``; a zero timeout means the default."""
    return TCPServer(addr, idle_timeout)


def new_udp_server(addr: str) -> UDPServer:
    """Create a server listening on UDP ``addr``."""
    return UDPServer(addr)