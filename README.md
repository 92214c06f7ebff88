# collectorkit

Building blocks for a telemetry collector pipeline. The package is plain
Python and has no third-party runtime dependencies.

It contains:

* `collectorkit.metricdata`: the metric data model (`Metric`,
  `MetricDescriptor`, `TimeSeries`, `Point`, `LabelKey`, `LabelValue`,
  `MetricsData`) and the `MetricsConsumer` interface.
* `collectorkit.component`: the `Host` interface, `RecordingHost`, and the
  errors `AlreadyStartedError`, `AlreadyStoppedError` and
  `DataTypeNotSupportedError`.
* `collectorkit.carbon`: a receiver for the Carbon (Graphite) plaintext
  protocol over TCP or UDP, together with its parsers, servers,
  configuration, reporter and a small test client.
* `collectorkit.telemetry`: in-process counters and simple tracing spans.
* `collectorkit.k8s.config`: the configuration model for a processor that
  tags trace data with Kubernetes pod metadata.

## Carbon plaintext protocol

Each line has the form

    <metric_path> <metric_value> <metric_timestamp>

The metric path may carry tags:

    <metric_name>[;key0=value0;...;keyN=valueN]

A tag key must not be empty, but a tag value may be. An integer value
becomes a `GAUGE_INT64` metric and any other number becomes a
`GAUGE_DOUBLE` metric. The timestamp is a whole number of Unix seconds.

```python
from collectorkit.carbon.protocol import ParseError, PlaintextParser

parser = PlaintextParser()
metric = parser.parse("cpu.load;host=web1;dc=east 0.75 1582230020")
print(metric.name)                                  # cpu.load
print([k.key for k in metric.metric_descriptor.label_keys])  # ['host', 'dc']

try:
    parser.parse("not a valid carbon line")
except ParseError as exc:
    print(exc)
```

`load_parser_config(section, config)` loads the settings for the parser that
`config.type` names. The known types are `plaintext` and `delimiter`.
Unknown types and unknown keys raise `ValueError`. A `DelimiterParser` can
be configured with `or_delimiter`, but its `parse` always raises
`ParseError`.

## Running a Carbon receiver

```python
from collectorkit.carbon.config import Factory
from collectorkit.component import RecordingHost
from collectorkit.metricdata import MetricsConsumer


class PrintingConsumer(MetricsConsumer):
    def consume_metrics_data(self, md):
        print(md)


factory = Factory()
config = factory.create_default_config()  # tcp on localhost:2003, plaintext parser
receiver = factory.create_metrics_receiver(config, PrintingConsumer())
receiver.start(RecordingHost())
...
receiver.shutdown()
```

`collectorkit.carbon.receiver.new_receiver(config, consumer)` builds the
same receiver directly. It raises `ReceiverConfigError` in these cases:

* the consumer is missing;
* the endpoint is empty;
* the parser is not `plaintext`;
* the transport is neither `tcp` nor `udp`.

A negative TCP idle timeout raises `ValueError`. A timeout of zero means the
default of 30 seconds.

Calling `start` a second time raises `AlreadyStartedError`, and calling
`shutdown` a second time raises `AlreadyStoppedError`. If serving fails,
the error is passed to the host's `report_fatal_error`. Carbon carries no
traces, so `Factory.create_trace_receiver` always raises
`DataTypeNotSupportedError`.

`Factory.unmarshal(section, name)` builds a `Config` from a mapping. The
mapping may hold these keys:

* `endpoint` and `transport`;
* `tcp_idle_timeout`, given as seconds or as a duration such as `"1m30s"`;
* `parser`, holding `type` and an optional `config`.

Settings that are left out keep their defaults, and unknown keys raise
`ValueError`.

```python
cfg = Factory().unmarshal(
    {
        "endpoint": "localhost:8080",
        "transport": "udp",
        "tcp_idle_timeout": "5s",
        "parser": {"type": "delimiter", "config": {"or_delimiter": "|"}},
    },
    name="carbon/allsettings",
)
```

### Servers and reporting

`collectorkit.carbon.transport` provides `TCPServer` and `UDPServer`, which
are built with `new_tcp_server(addr, idle_timeout)` and
`new_udp_server(addr)`. Their `listen_and_serve(parser, consumer, reporter)`
method blocks until `close()` is called.

* TCP closes a connection after the idle timeout, at end of input, or after
  the consumer raises.
* UDP hands all valid lines of a packet to the consumer as one batch.

The receiver uses `collectorkit.carbon.reporter.CarbonReporter`. It logs
through the `logging` module and annotates spans with translation errors. It
also counts the time series received and dropped for each receiver name.

### Sending test data

```python
from datetime import datetime, timezone

from collectorkit.carbon.client import Metric, Transport, new_graphite

with new_graphite(Transport.TCP, "localhost", 2003) as client:
    client.send_metric(Metric("test.metric", 1.5, datetime.now(timezone.utc)))
```

## Internal telemetry

`collectorkit.telemetry` keeps counters in the process. The following
functions record events:

* `record_pod_added()`, `record_pod_updated()` and `record_pod_deleted()`;
* `record_ip_lookup_miss()`;
* `record_receiver_metrics(receiver, received, dropped)`.

`snapshot()` returns the totals as a mapping from measure name to a mapping
from tag to value. `reset()` clears all counters. `Span` records a name,
annotations, a status and whether it has ended.

## Kubernetes pod-tagging configuration

`collectorkit.k8s.config.config_from_mapping(data, name)` turns a mapping
into a `Config`. The mapping may hold these keys:

* `passthrough`;
* `extract`, with `metadata`, `annotations` and `labels`. Each annotation
  and label entry holds `tag_name`, `key` and `regex`.
* `filter`, with `node`, `node_from_env_var`, `namespace`, `fields` and
  `labels`. Each field and label entry holds `key`, `value` and `op`.

Unknown keys and values of the wrong type raise `ValueError`.

## What the package does not do

The package has no pod-tagging processor itself. There is no client that
watches a Kubernetes cluster for pods, no pod cache, and nothing that reads
trace batches and adds pod metadata to them. Only the configuration model is
included.

There is also no command-line program or configuration-file loader.
Components are created and started from Python code.