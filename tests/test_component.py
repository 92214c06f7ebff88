import threading

import pytest

from collectorkit.component import (
    AlreadyStartedError,
    AlreadyStoppedError,
    ComponentError,
    DataTypeNotSupportedError,
    Host,
    RecordingHost,
)


@pytest.mark.parametrize(
    "error_class",
    [AlreadyStartedError, AlreadyStoppedError, DataTypeNotSupportedError],
)
def test_errors_are_component_errors(error_class):
    err = error_class("detail")
    assert isinstance(err, ComponentError)
    assert str(err) == "detail"


@pytest.mark.parametrize(
    "error_class",
    [AlreadyStartedError, AlreadyStoppedError, DataTypeNotSupportedError],
)
def test_default_message_used_without_argument(error_class):
    assert str(error_class()) == error_class.default_message


def test_default_messages_differ():
    messages = {
        str(AlreadyStartedError()),
        str(AlreadyStoppedError()),
        str(DataTypeNotSupportedError()),
    }
    assert len(messages) == 3


def test_custom_message_passes_through():
    assert str(AlreadyStoppedError("receiver gone")) == "receiver gone"


def test_host_is_abstract():
    with pytest.raises(TypeError):
        Host()


def test_recording_host_keeps_errors_in_order():
    host = RecordingHost()
    first = RuntimeError("first")
    second = OSError("second")
    host.report_fatal_error(first)
    host.report_fatal_error(second)
    recorded = host.errors
    assert len(recorded) == 2
    assert recorded[0] is first
    assert recorded[1] is second


def test_recording_host_sets_event_on_report():
    host = RecordingHost()
    assert host.reported.is_set() is False
    host.report_fatal_error(ValueError("boom"))
    assert host.reported.wait(1.0) is True


def test_recording_host_errors_is_a_copy():
    host = RecordingHost()
    host.report_fatal_error(ValueError("boom"))
    snapshot = host.errors
    snapshot.clear()
    assert len(host.errors) == 1


def test_recording_host_is_thread_safe():
    host = RecordingHost()
    count = 50

    def report(i):
        host.report_fatal_error(RuntimeError(str(i)))

    threads = [threading.Thread(target=report, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert sorted(int(str(e)) for e in host.errors) == list(range(count))