from .connection import get_connection, init_database
from .patient_repository import Patient, PatientNameHistoryEntry, PatientRepository
from .query_utils import QueryExecutionError

__all__ = [
    "get_connection",
    "init_database",
    "Patient",
    "PatientNameHistoryEntry",
    "PatientRepository",
    "QueryExecutionError",
]
