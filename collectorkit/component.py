"""Errors and host interface shared by pipeline components."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod


class ComponentError(Exception):
    """Base class for errors raised by pipeline components."""

    default_message = "component error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class AlreadyStartedError(ComponentError):
    """Raised when a component is started a second time."""

    default_message = "already started"


class AlreadyStoppedError(ComponentError):
    """Raised when a component is shut down a second time."""

    default_message = "already stopped"


class DataTypeNotSupportedError(ComponentError):
    """Raised when a factory cannot build a component for a telemetry type."""

    default_message = "telemetry type is not supported"


class Host(ABC):
    """What a running component can call back into."""

    @abstractmethod
    def report_fatal_error(self, err: BaseException) -> None:
        """Report an error that stops the component from working."""


class RecordingHost(Host):
    """A host that keeps every fatal error reported to it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._errors: list[BaseException] = []
        self.reported = threading.Event()

    def report_fatal_error(self, err: BaseException) -> None:
        with self._lock:
            self._errors.append(err)
        self.reported.set()

    @property
    def errors(self) -> list[BaseException]:
        """The reported errors, oldest first."""
        with self._lock:
            return list(self._errors)