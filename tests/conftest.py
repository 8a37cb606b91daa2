"""Shared pytest fixtures."""

from functools import partial

import pytest

from emr_records.events import EventDispatcher
from emr_records.patient_records.database.connection import get_connection, init_database
from emr_records.patient_service import PatientService


@pytest.fixture
def db_path(tmp_path):
    """Fresh database file per test."""
    path = tmp_path / "records.db"
    init_database(path)
    return path


@pytest.fixture
def connection_factory(db_path):
    """Connection factory bound to the test database."""
    return partial(get_connection, db_path)


@pytest.fixture
def db_connection(connection_factory):
    """A raw connection for direct assertions."""
    conn = connection_factory()
    yield conn
    conn.close()


@pytest.fixture
def dispatcher():
    """A fresh dispatcher with no listeners."""
    return EventDispatcher()


@pytest.fixture
def service(dispatcher, connection_factory):
    """Patient service wired to the test database."""
    return PatientService(dispatcher, connection_factory=connection_factory)


@pytest.fixture
def patient_data():
    """A payload that passes insert validation."""
    return {
        "fname": "Jane",
        "mname": "Q",
        "lname": "Smith",
        "dob": "1980-04-12",
        "sex": "Female",
        "street": "12 Elm St",
        "city": "Springfield",
        "state": "IL",
        "postal_code": "62701",
        "email": "jane.smith@email.com",
        "care_team_provider": "A",
        "care_team_facility": "F1",
    }


@pytest.fixture
def test_patient(service, patient_data):
    """Insert a patient and return its {"pid", "uuid"}."""
    result = service.insert(patient_data)
    assert result.is_valid(), result.validation_messages
    return result.first()
