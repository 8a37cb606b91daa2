"""In-process event dispatch for patient lifecycle events."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, ClassVar

logger = logging.getLogger(__name__)

# Priority the patient services subscribe and dispatch with
DEFAULT_PRIORITY = 10


@dataclass
class BeforePatientCreatedEvent:
    """Fired before insert. Listeners may rewrite patient_data."""
    EVENT_HANDLE: ClassVar[str] = "patient.before_created"
    patient_data: dict = field(default_factory=dict)


@dataclass
class PatientCreatedEvent:
    """Fired after a patient row has been inserted."""
    EVENT_HANDLE: ClassVar[str] = "patient.created"
    patient_data: dict = field(default_factory=dict)


@dataclass
class BeforePatientUpdatedEvent:
    """Fired before update. Listeners may rewrite patient_data."""
    EVENT_HANDLE: ClassVar[str] = "patient.before_updated"
    patient_data: dict = field(default_factory=dict)


@dataclass
class PatientUpdatedEvent:
    """Fired after a patient row has been updated."""
    EVENT_HANDLE: ClassVar[str] = "patient.updated"
    data_before_update: dict = field(default_factory=dict)
    new_patient_data: dict = field(default_factory=dict)


Listener = Callable[[object], None]


class EventDispatcher:
    """Synchronous publish/subscribe keyed by event handle.

    Listeners run highest priority first; equal priorities run in
    registration order. A listener exception propagates to the dispatcher.
    """

    def __init__(self):
        self._listeners: dict[str, list[tuple[int, int, Listener]]] = defaultdict(list)
        self._sequence = 0

    def subscribe(self, event_name: str, listener: Listener, priority: int = DEFAULT_PRIORITY) -> None:
        self._listeners[event_name].append((-priority, self._sequence, listener))
        self._listeners[event_name].sort(key=lambda entry: entry[:2])
        self._sequence += 1

    def listen(self, event_name: str, priority: int = DEFAULT_PRIORITY):
        """
        Decorator to register an event listener.
        Usage:
            @dispatcher.listen(PatientCreatedEvent.EVENT_HANDLE)
            def handler(event): ...
        """
        def _decorator(fn: Listener) -> Listener:
            self.subscribe(event_name, fn, priority)
            return fn
        return _decorator

    def unsubscribe(self, event_name: str, listener: Listener) -> None:
        self._listeners[event_name] = [
            entry for entry in self._listeners[event_name] if entry[2] != listener
        ]

    def get_listeners(self, event_name: str) -> list[Listener]:
        return [entry[2] for entry in self._listeners.get(event_name, [])]

    def dispatch(self, event, event_name: str | None = None):
        """Run every listener for the event and return the (possibly mutated) event."""
        name = event_name or event.EVENT_HANDLE
        listeners = self.get_listeners(name)
        logger.debug("Dispatching %s to %d listener(s)", name, len(listeners))
        for listener in listeners:
            listener(event)
        return event
