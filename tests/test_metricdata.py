import pytest

from collectorkit.metricdata import (
    LabelKey,
    LabelValue,
    Metric,
    MetricsConsumer,
    MetricsData,
    MetricType,
    Point,
    Timestamp,
    build_metric_for_single_point,
    convert_unix_sec,
)


def test_convert_unix_sec_keeps_seconds():
    ts = convert_unix_sec(1582230020)
    assert ts == Timestamp(seconds=1582230020)
    assert ts.seconds == 1582230020


def test_convert_unix_sec_has_no_nanos():
    assert convert_unix_sec(7).nanos == Timestamp(seconds=7).nanos


def test_build_metric_for_single_point_structure():
    point = Point(timestamp=convert_unix_sec(1582230020), value=128)
    keys = [LabelKey("k0"), LabelKey("k1")]
    values = [LabelValue("v_0", True), LabelValue("v_1", True)]
    metric = build_metric_for_single_point(
        "tst.int", MetricType.GAUGE_INT64, keys, values, point
    )
    assert metric.metric_descriptor.name == "tst.int"
    assert metric.name == "tst.int"
    assert metric.metric_descriptor.type is MetricType.GAUGE_INT64
    assert metric.metric_descriptor.label_keys == keys
    assert len(metric.timeseries) == 1
    assert metric.timeseries[0].label_values == values
    assert metric.timeseries[0].points == [point]
    assert metric.timeseries[0].start_timestamp is None


def test_build_metric_without_labels_gives_empty_lists():
    point = Point(timestamp=convert_unix_sec(5), value=1.5)
    metric = build_metric_for_single_point(
        "tst.dbl", MetricType.GAUGE_DOUBLE, None, None, point
    )
    assert metric.metric_descriptor.label_keys == []
    assert metric.timeseries[0].label_values == []


def test_build_metric_does_not_share_input_lists():
    keys = [LabelKey("k0")]
    values = [LabelValue("v0", True)]
    metric = build_metric_for_single_point(
        "m", MetricType.GAUGE_INT64, keys, values, Point(value=1)
    )
    keys.append(LabelKey("extra"))
    values.append(LabelValue("extra", True))
    assert metric.metric_descriptor.label_keys == [LabelKey("k0")]
    assert metric.timeseries[0].label_values == [LabelValue("v0", True)]


def test_equal_metrics_compare_equal():
    def make(label_value):
        return build_metric_for_single_point(
            "m", MetricType.GAUGE_INT64, [LabelKey("a")], [LabelValue(label_value, True)],
            Point(timestamp=convert_unix_sec(3), value=3),
        )

    first = make("b")
    second = make("b")
    other = make("c")
    assert first == second
    assert (first == other) is False
    assert first.timeseries[0].label_values == [LabelValue("b", True)]
    assert first.timeseries[0].points[0].value == 3


def test_metric_type_distinguishes_metrics():
    point = Point(timestamp=convert_unix_sec(1), value=1)
    as_int = build_metric_for_single_point("m", MetricType.GAUGE_INT64, None, None, point)
    as_dbl = build_metric_for_single_point("m", MetricType.GAUGE_DOUBLE, None, None, point)
    assert (as_int == as_dbl) is False


def test_metrics_consumer_is_abstract():
    with pytest.raises(TypeError):
        MetricsConsumer()


def test_metrics_consumer_subclass_receives_batches():
    class Sink(MetricsConsumer):
        def __init__(self):
            self.batches = []

        def consume_metrics_data(self, md):
            self.batches.append(md)

    sink = Sink()
    metric = Metric(metric_descriptor=build_metric_for_single_point(
        "x", MetricType.GAUGE_INT64, None, None, Point(value=2)).metric_descriptor)
    batch = MetricsData(metrics=[metric])
    sink.consume_metrics_data(batch)
    assert sink.batches == [batch]
    assert sink.batches[0].metrics[0].name == "x"


def test_metrics_data_defaults_are_independent():
    first = MetricsData()
    second = MetricsData()
    first.metrics.append(Metric(metric_descriptor=build_metric_for_single_point(
        "y", MetricType.GAUGE_INT64, None, None, Point()).metric_descriptor))
    assert len(second.metrics) == 0
    assert len(first.metrics) == 1