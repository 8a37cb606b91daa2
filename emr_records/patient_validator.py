"""Patient payload validation using Pydantic models."""

import logging
import re
from dataclasses import dataclass, field
from datetime import date

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from emr_records.patient_records.database.connection import get_connection
from emr_records.patient_records.database.query_utils import fetch_single_value
from emr_records.patient_records.database.uuid_registry import is_valid_uuid, uuid_to_bytes

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class ProcessingResult:
    """Outcome of a service call: data, validation messages, and internal errors.

    When validation_messages is non-empty no mutation was performed.
    """
    data: list = field(default_factory=list)
    validation_messages: dict[str, list[str]] = field(default_factory=dict)
    internal_errors: list[str] = field(default_factory=list)

    def is_valid(self) -> bool:
        return not self.validation_messages

    def has_errors(self) -> bool:
        return bool(self.validation_messages or self.internal_errors)

    def has_data(self) -> bool:
        return bool(self.data)

    def add_data(self, item) -> None:
        self.data.append(item)

    def add_internal_error(self, message: str) -> None:
        self.internal_errors.append(message)

    def add_validation_message(self, field_name: str, message: str) -> None:
        self.validation_messages.setdefault(field_name, []).append(message)

    def set_validation_messages(self, messages: dict[str, list[str]]) -> None:
        self.validation_messages = dict(messages)

    def first(self):
        """Return the first data item, or None."""
        return self.data[0] if self.data else None


class _PatientFields(BaseModel):
    """Per-field rules shared by insert and update payloads."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    pubpid: str | None = Field(None, max_length=255)
    title: str | None = Field(None, max_length=255)
    mname: str | None = Field(None, max_length=255)
    street: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=255)
    state: str | None = Field(None, max_length=255)
    postal_code: str | None = Field(None, max_length=255)
    country_code: str | None = Field(None, max_length=255)
    phone_home: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=255)
    care_team_provider: str | None = Field(None, max_length=255)
    care_team_facility: str | None = Field(None, max_length=255)
    dob: date | None = None

    @field_validator("pubpid", mode="before")
    @classmethod
    def coerce_pubpid(cls, v):
        """Public ids may arrive as integers."""
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        if v and not EMAIL_PATTERN.match(v):
            raise ValueError("not a valid email address")
        return v

    @field_validator("dob")
    @classmethod
    def check_dob(cls, v):
        if v is not None and v > date.today():
            raise ValueError("date of birth cannot be in the future")
        return v


class PatientInsertData(_PatientFields):
    fname: str = Field(min_length=1, max_length=255)
    lname: str = Field(min_length=1, max_length=255)
    sex: str = Field(min_length=4, max_length=30)
    dob: date


class PatientUpdateData(_PatientFields):
    fname: str | None = Field(None, min_length=1, max_length=255)
    lname: str | None = Field(None, min_length=1, max_length=255)
    sex: str | None = Field(None, min_length=4, max_length=30)


class PatientValidator:
    """Validate patient payloads for insert and update."""

    DATABASE_INSERT_CONTEXT = "db-insert"
    DATABASE_UPDATE_CONTEXT = "db-update"

    CONTEXT_MODELS = {
        DATABASE_INSERT_CONTEXT: PatientInsertData,
        DATABASE_UPDATE_CONTEXT: PatientUpdateData,
    }

    def __init__(self, connection_factory=get_connection):
        self.connection_factory = connection_factory

    def validate(self, data: dict, context: str) -> ProcessingResult:
        """Check data against the rules for context ("db-insert" or "db-update")."""
        if context not in self.CONTEXT_MODELS:
            raise ValueError(f"Unknown validation context: {context}")

        result = ProcessingResult()
        try:
            self.CONTEXT_MODELS[context].model_validate(data)
        except ValidationError as e:
            for error in e.errors():
                field_name = ".".join(str(part) for part in error["loc"]) or "__root__"
                result.add_validation_message(field_name, error["msg"])

        if context == self.DATABASE_UPDATE_CONTEXT:
            if "uuid" in data and not self.is_existing_uuid(data["uuid"]):
                result.add_validation_message("uuid", f"invalid or nonexisting value {data['uuid']}")
            if "pid" in data and not self.is_existing_pid(data["pid"]):
                result.add_validation_message("pid", f"invalid or nonexisting value {data['pid']}")

        if not result.is_valid():
            logger.info("Patient payload rejected (%s): %s", context, sorted(result.validation_messages))
        return result

    def is_existing_uuid(self, puuid_string) -> bool:
        """Check that a uuid string is well formed and names a stored patient."""
        if not is_valid_uuid(puuid_string):
            return False
        conn = self.connection_factory()
        try:
            pid = fetch_single_value(
                conn,
                "SELECT pid FROM patient_data WHERE uuid = ?",
                "pid",
                (uuid_to_bytes(puuid_string),),
            )
        finally:
            conn.close()
        return pid is not None

    def is_existing_pid(self, pid) -> bool:
        try:
            pid = int(pid)
        except (TypeError, ValueError):
            return False
        conn = self.connection_factory()
        try:
            found = fetch_single_value(conn, "SELECT pid FROM patient_data WHERE pid = ?", "pid", (pid,))
        finally:
            conn.close()
        return found is not None
