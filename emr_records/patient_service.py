"""Patient service: validation, identifiers, events, and persistence for patients."""

import logging
import uuid

from emr_records.care_team_service import CareTeamService
from emr_records.events import (
    BeforePatientCreatedEvent,
    BeforePatientUpdatedEvent,
    EventDispatcher,
    PatientCreatedEvent,
    PatientUpdatedEvent,
)
from emr_records.patient_records.database.connection import get_connection
from emr_records.patient_records.database.patient_repository import (
    Patient,
    PatientNameHistoryEntry,
    PatientRepository,
    now_timestamp,
)
from emr_records.patient_records.database.uuid_registry import is_valid_uuid
from emr_records.patient_validator import PatientValidator, ProcessingResult
from emr_records.search import StringSearchField, SearchModifier, TokenSearchField, WhereClauseBuilder

logger = logging.getLogger(__name__)

# Keys get_all accepts as wildcard "contains" matches
WILDCARD_SEARCH_FIELDS = ["fname", "mname", "lname", "street", "city", "state", "postal_code", "title"]

CARE_TEAM_FIELDS = ["care_team_provider", "care_team_facility"]


class PatientService:
    """Create, update and look up patients.

    Listeners registered on the dispatcher see every create and update: the
    "before" events may rewrite the payload, the "after" events are
    notifications. Listener exceptions abort the operation.
    """

    def __init__(
        self,
        dispatcher: EventDispatcher,
        connection_factory=get_connection,
        validator: PatientValidator | None = None,
        care_team_service: CareTeamService | None = None,
    ):
        self.dispatcher = dispatcher
        self.connection_factory = connection_factory
        self.repository = PatientRepository(connection_factory)
        self.validator = validator or PatientValidator(connection_factory)
        self.care_team_service = care_team_service or CareTeamService(connection_factory)
        self.where_builder = WhereClauseBuilder()

    # Insert

    def insert(self, data: dict) -> ProcessingResult:
        """Insert a new patient.

        Returns a result whose data holds {"pid", "uuid"} for the new patient.
        """
        processing_result = self.validator.validate(data, PatientValidator.DATABASE_INSERT_CONTEXT)
        if not processing_result.is_valid():
            return processing_result

        created = self.database_insert(data)
        if created is None:
            processing_result.add_internal_error("error processing SQL Insert")
        else:
            processing_result.add_data({"pid": created["pid"], "uuid": created["uuid"]})
        return processing_result

    def database_insert(self, data: dict) -> dict | None:
        """Assign identifiers, fire the create events, and write the row.

        The pid read and the insert share one IMMEDIATE transaction, so
        concurrent writers cannot both claim the same max(pid) + 1.
        Returns the persisted payload, or None if no row was written.
        """
        conn = self.connection_factory()
        try:
            conn.execute("BEGIN IMMEDIATE")
            fresh_pid = self.repository.get_fresh_pid(conn)

            puuid = str(uuid.uuid4())

            data = dict(data)
            data["pid"] = fresh_pid
            data["uuid"] = puuid
            # "date" is the updated-date and "regdate" the created-date
            data["date"] = now_timestamp()
            data["regdate"] = data["date"]
            if not data.get("pubpid"):
                data["pubpid"] = str(fresh_pid)

            before_event = BeforePatientCreatedEvent(patient_data=data)
            self.dispatcher.dispatch(before_event)
            data = before_event.patient_data

            # identifiers are fixed once assigned
            data["pid"] = fresh_pid
            data["uuid"] = puuid

            pid = self.repository.insert(conn, fresh_pid, puuid, data)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        if pid is None:
            return None

        logger.info("Created patient pid=%s uuid=%s", pid, data["uuid"])
        self.dispatcher.dispatch(PatientCreatedEvent(patient_data=data))
        return data

    # Update

    def update(self, puuid_string: str, data: dict) -> ProcessingResult:
        """Update the patient identified by uuid.

        The after-update event carries the record as re-read from the database.
        """
        return self._update("uuid", puuid_string, data)

    def update_by_pid(self, pid: int, data: dict) -> ProcessingResult:
        """Update the patient identified by internal id.

        The after-update event carries the persisted payload and fires
        before the record is re-read.
        """
        return self._update("pid", pid, data)

    def _update(self, key_column: str, key_value, data: dict) -> ProcessingResult:
        data = dict(data)
        data[key_column] = key_value
        processing_result = self.validator.validate(data, PatientValidator.DATABASE_UPDATE_CONTEXT)
        if not processing_result.is_valid():
            return processing_result

        before_record = self._load(key_column, key_value)
        data_before_update = before_record.to_dict() if before_record else {}

        data["date"] = now_timestamp()
        before_event = BeforePatientUpdatedEvent(patient_data=data)
        self.dispatcher.dispatch(before_event)
        data = before_event.patient_data

        conn = self.connection_factory()
        try:
            updated_rows = self.repository.update(conn, data, key_column, key_value)
            conn.commit()
        finally:
            conn.close()

        if not updated_rows:
            processing_result.add_internal_error("error processing SQL Update")
            return processing_result

        logger.info("Updated patient %s=%s", key_column, key_value)

        if before_record and self._care_team_changed(before_record, data):
            self.care_team_service.create_care_team_history(
                before_record.pid,
                before_record.care_team_provider,
                before_record.care_team_facility,
            )

        if key_column == "uuid":
            processing_result = self.get_one(key_value)
            after = processing_result.first()
            self.dispatcher.dispatch(
                PatientUpdatedEvent(data_before_update, after.to_dict() if after else {})
            )
        else:
            self.dispatcher.dispatch(PatientUpdatedEvent(data_before_update, data))
            processing_result = self.search({"pid": TokenSearchField("pid", [key_value])})
        return processing_result

    def _load(self, key_column: str, key_value) -> Patient | None:
        if key_column == "uuid":
            return self.get_one(key_value).first()
        return self.repository.find_by_pid(key_value)

    def _care_team_changed(self, before_record: Patient, data: dict) -> bool:
        """Only care team keys present in the payload count as changes."""
        return any(
            f in data and data[f] != getattr(before_record, f)
            for f in CARE_TEAM_FIELDS
        )

    # Lookup

    def get_all(self, search: dict | None = None, is_and_condition: bool = True,
                puuid_bind: str | None = None) -> ProcessingResult:
        """
        Returns patients matching optional search criteria.
        A malformed uuid comes back as a validation message, not an error.

        Args:
            search: field -> value. "uuid" is an exact match, the
                WILDCARD_SEARCH_FIELDS are "contains" matches, other keys are ignored.
            is_and_condition: AND the criteria together (True) or OR them.
            puuid_bind: if set, only the patient with this uuid is visible,
                whatever uuid the search names.

        Returns:
            ProcessingResult with Patient aggregates as data
        """
        search = search or {}
        query_search = {}

        bound_uuid = puuid_bind if puuid_bind is not None else search.get("uuid")
        if bound_uuid is not None:
            uuid_values = bound_uuid if isinstance(bound_uuid, list) else [bound_uuid]
            invalid = [value for value in uuid_values if not is_valid_uuid(value)]
            if invalid:
                processing_result = ProcessingResult()
                processing_result.set_validation_messages(
                    {"uuid": [f"invalid or nonexisting value {value}" for value in invalid]}
                )
                return processing_result
            query_search["uuid"] = TokenSearchField("uuid", uuid_values, is_uuid=True)

        for field_name in WILDCARD_SEARCH_FIELDS:
            if search.get(field_name) is not None:
                query_search[field_name] = StringSearchField(
                    field_name, search[field_name], SearchModifier.CONTAINS, is_and_condition
                )

        return self.search(query_search, is_and_condition)

    def search(self, search: dict, is_and_condition: bool = True) -> ProcessingResult:
        """Run predicates through the where-clause builder and return aggregates.

        QueryExecutionError and ConfigurationError propagate.
        """
        where_clause = self.where_builder.build(search, is_and_condition)
        processing_result = ProcessingResult()
        for patient in self.repository.search(where_clause):
            processing_result.add_data(patient)
        return processing_result

    def get_one(self, puuid_string: str) -> ProcessingResult:
        """Returns a single patient by uuid, or a validation message if there is none."""
        if not self.validator.is_existing_uuid(puuid_string):
            processing_result = ProcessingResult()
            processing_result.set_validation_messages(
                {"uuid": [f"invalid or nonexisting value {puuid_string}"]}
            )
            return processing_result

        return self.search({"uuid": TokenSearchField("uuid", [puuid_string], is_uuid=True)})

    def find_by_pid(self, pid: int) -> Patient | None:
        return self.repository.find_by_pid(pid)

    def get_uuid(self, pid: int) -> str | None:
        return self.repository.get_uuid(pid)

    def get_fresh_pid(self) -> int:
        return self.repository.get_fresh_pid()

    # Name history

    def get_patient_name_history(self, pid: int) -> list[PatientNameHistoryEntry]:
        return self.repository.get_name_history(pid)

    def get_patient_name_history_by_id(self, pid: int, history_id: int) -> PatientNameHistoryEntry | None:
        return self.repository.get_name_history_by_id(pid, history_id)

    def create_patient_name_history(self, pid: int, record: dict) -> int | None:
        """Record a previous name. Entries are never updated.

        Returns the new id, or None when the same name and end date already exist.
        """
        history_id = self.repository.insert_name_history(pid, record)
        if history_id is None:
            logger.info("Previous name already recorded for patient %s", pid)
        return history_id

    def delete_patient_name_history_by_id(self, history_id: int) -> bool:
        return self.repository.delete_name_history_by_id(history_id) > 0
