"""Reporter giving the Carbon receiver consistent logs, spans and counters."""

from __future__ import annotations

import logging
from typing import Any

from collectorkit import telemetry
from collectorkit.carbon.transport import Reporter
from collectorkit.telemetry import STATUS_UNKNOWN, Span


class CarbonReporter(Reporter):
    """Reports receiver events to the log, to spans and to telemetry counters."""

    def __init__(self, receiver_name: str, logger: logging.Logger | None = None) -> None:
        self.name = receiver_name
        self.span_name = receiver_name + ".receiver"
        self.logger = logger or logging.getLogger(__name__)

    def on_data_received(self) -> Span:
        return Span(name=self.span_name)

    def on_translation_error(self, span: Span, err: BaseException | None) -> None:
        if err is None:
            return
        self.logger.debug(
            "Carbon translation error: receiver=%s error=%s", self.name, err
        )
        # Several translation errors can happen for one message, hence annotations.
        span.annotate({"error": str(err)}, "translation")

    def on_metrics_processed(
        self,
        span: Span,
        num_received_timeseries: int,
        num_invalid_timeseries: int,
        err: BaseException | None,
    ) -> None:
        num_dropped = num_invalid_timeseries
        if err is not None:
            self.logger.debug(
                "Carbon receiver failed to push metrics into pipeline: "
                "receiver=%s numReceivedTimeseries=%d numInvalidTimeseries=%d error=%s",
                self.name,
                num_received_timeseries,
                num_invalid_timeseries,
                err,
            )
            span.set_status(STATUS_UNKNOWN, str(err))
            # On error every time series is assumed dropped.
            num_dropped = num_received_timeseries

        telemetry.record_receiver_metrics(self.name, num_received_timeseries, num_dropped)

    def on_debugf(self, template: str, *args: Any) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(template, *args)