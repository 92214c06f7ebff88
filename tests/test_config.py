import pytest

from collectorkit.carbon.config import Config, Factory
from collectorkit.carbon.protocol import DelimiterParser, PlaintextParser, ProtocolConfig
from collectorkit.carbon.receiver import CarbonReceiver
from collectorkit.carbon.transport import TCP_IDLE_TIMEOUT_DEFAULT
from collectorkit.component import DataTypeNotSupportedError
from collectorkit.metricdata import MetricsConsumer


class _NopConsumer(MetricsConsumer):
    def consume_metrics_data(self, md):
        pass


def test_create_default_config():
    cfg = Factory().create_default_config()
    assert cfg == Config(
        name="carbon",
        type="carbon",
        endpoint="localhost:2003",
        transport="tcp",
        tcp_idle_timeout=TCP_IDLE_TIMEOUT_DEFAULT,
        parser=ProtocolConfig(type="plaintext", config=PlaintextParser()),
    )


def test_default_configs_are_independent():
    factory = Factory()
    first = factory.create_default_config()
    first.parser.type = "delimiter"
    assert factory.create_default_config().parser.type == "plaintext"


def test_load_default_section():
    factory = Factory()
    assert factory.unmarshal(None, "carbon") == factory.create_default_config()


def test_load_all_settings():
    section = {
        "endpoint": "localhost:8080",
        "transport": "udp",
        "tcp_idle_timeout": "5s",
        "parser": {"type": "delimiter", "config": {"or_delimiter": "|"}},
    }
    cfg = Factory().unmarshal(section, "carbon/allsettings")
    assert cfg == Config(
        name="carbon/allsettings",
        type="carbon",
        endpoint="localhost:8080",
        transport="udp",
        tcp_idle_timeout=5.0,
        parser=ProtocolConfig(
            type="delimiter", config=DelimiterParser(or_delimiter="|")
        ),
    )


def test_parser_section_without_type_keeps_plaintext():
    cfg = Factory().unmarshal({"parser": {}}, "carbon/p")
    assert cfg.parser == ProtocolConfig(type="plaintext", config=PlaintextParser())


@pytest.mark.parametrize(
    ("text", "seconds"),
    [("1m30s", 90.0), ("250ms", 0.25), ("0", 0.0), ("1h", 3600.0)],
)
def test_durations_in_text(text, seconds):
    cfg = Factory().unmarshal({"tcp_idle_timeout": text}, "carbon")
    assert cfg.tcp_idle_timeout == pytest.approx(seconds)


def test_invalid_duration_is_rejected():
    with pytest.raises(ValueError, match="invalid duration"):
        Factory().unmarshal({"tcp_idle_timeout": "five"}, "carbon")


def test_unknown_key_is_rejected():
    with pytest.raises(ValueError, match="invalid keys: bogus"):
        Factory().unmarshal({"endpoint": "localhost:1", "bogus": 1}, "carbon")


def test_unknown_parser_type_is_rejected():
    with pytest.raises(ValueError, match='error on "parser" section for carbon/x'):
        Factory().unmarshal({"parser": {"type": "unknown"}}, "carbon/x")


def test_unknown_parser_config_key_is_rejected():
    with pytest.raises(ValueError, match='error on "parser" section'):
        Factory().unmarshal(
            {"parser": {"type": "delimiter", "config": {"nope": "x"}}}, "carbon"
        )


def test_create_receivers():
    factory = Factory()
    cfg = factory.create_default_config()
    cfg.endpoint = "localhost:0"

    for _ in range(2):
        receiver = factory.create_metrics_receiver(cfg, _NopConsumer())
        try:
            assert isinstance(receiver, CarbonReceiver)
            assert receiver.metrics_source == "Carbon"
        finally:
            receiver.shutdown()

    with pytest.raises(DataTypeNotSupportedError):
        factory.create_trace_receiver(cfg, None)