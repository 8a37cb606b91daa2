"""Tests for the in-process event dispatcher."""

import pytest

from emr_records.events import (
    BeforePatientCreatedEvent,
    EventDispatcher,
    PatientCreatedEvent,
    PatientUpdatedEvent,
)


class TestEventDispatcher:
    """Tests for listener registration and dispatch."""

    def test_registration_order(self, dispatcher):
        """Test that listeners with equal priority run in registration order."""
        calls = []
        dispatcher.subscribe(PatientCreatedEvent.EVENT_HANDLE, lambda e: calls.append("first"))
        dispatcher.subscribe(PatientCreatedEvent.EVENT_HANDLE, lambda e: calls.append("second"))
        dispatcher.dispatch(PatientCreatedEvent({"pid": 1}))
        assert calls == ["first", "second"]

    def test_higher_priority_runs_first(self, dispatcher):
        """Test that a higher priority listener runs before the default ones."""
        calls = []
        dispatcher.subscribe(PatientCreatedEvent.EVENT_HANDLE, lambda e: calls.append("default"))
        dispatcher.subscribe(PatientCreatedEvent.EVENT_HANDLE, lambda e: calls.append("urgent"), priority=50)
        dispatcher.dispatch(PatientCreatedEvent({}))
        assert calls == ["urgent", "default"]

    def test_listener_can_rewrite_payload(self, dispatcher):
        """Test that a listener can replace the event payload."""
        @dispatcher.listen(BeforePatientCreatedEvent.EVENT_HANDLE)
        def add_title(event):
            event.patient_data = {**event.patient_data, "title": "Dr."}

        event = dispatcher.dispatch(BeforePatientCreatedEvent({"fname": "Ann"}))
        assert event.patient_data == {"fname": "Ann", "title": "Dr."}

    def test_other_events_not_delivered(self, dispatcher):
        """Test that listeners only receive the event they subscribed to."""
        calls = []
        dispatcher.subscribe(PatientUpdatedEvent.EVENT_HANDLE, calls.append)
        dispatcher.dispatch(PatientCreatedEvent({}))
        assert calls == []

    def test_listener_exception_propagates(self, dispatcher):
        """Test that a listener exception reaches the dispatcher caller."""
        def explode(event):
            raise RuntimeError("listener failed")

        dispatcher.subscribe(PatientCreatedEvent.EVENT_HANDLE, explode)
        with pytest.raises(RuntimeError):
            dispatcher.dispatch(PatientCreatedEvent({}))

    def test_unsubscribe(self, dispatcher):
        """Test that an unsubscribed listener is no longer called."""
        calls = []
        dispatcher.subscribe(PatientCreatedEvent.EVENT_HANDLE, calls.append)
        dispatcher.unsubscribe(PatientCreatedEvent.EVENT_HANDLE, calls.append)
        dispatcher.dispatch(PatientCreatedEvent({}))
        assert calls == []

    def test_dispatchers_are_independent(self):
        """Test that separate dispatchers do not share listeners."""
        calls = []
        first, second = EventDispatcher(), EventDispatcher()
        first.subscribe(PatientCreatedEvent.EVENT_HANDLE, calls.append)
        second.dispatch(PatientCreatedEvent({}))
        assert calls == []
