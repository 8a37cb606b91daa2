"""Patient repository: SQL for patient_data and patient name history."""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime

from .connection import get_connection
from .patient_hydrator import format_previous_name, hydrate_search_results, parse_suffix
from .query_utils import (
    build_insert_columns,
    build_update_columns,
    fetch_single_value,
    sql_insert,
    sql_statement_throw_exception,
)
from .schema import NAME_HISTORY_TYPE, PATIENT_COLUMNS, PREVIOUS_NAME_COLUMNS
from .uuid_registry import create_uuid, uuid_to_bytes, uuid_to_string

logger = logging.getLogger(__name__)


@dataclass
class PatientNameHistoryEntry:
    id: int | None = None
    pid: int | None = None
    previous_name_prefix: str | None = None
    previous_name_first: str | None = None
    previous_name_middle: str | None = None
    previous_name_last: str | None = None
    previous_name_suffix: str | None = None
    previous_name_enddate: str | None = None
    formatted_name: str = ""


@dataclass
class Patient:
    pid: int | None = None
    uuid: str | None = None
    pubpid: str | None = None
    title: str | None = None
    fname: str | None = None
    mname: str | None = None
    lname: str | None = None
    suffix: str | None = None
    dob: str | None = None
    sex: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country_code: str | None = None
    phone_home: str | None = None
    email: str | None = None
    care_team_provider: str | None = None
    care_team_facility: str | None = None
    date: str | None = None
    regdate: str | None = None
    previous_names: list[PatientNameHistoryEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


# patient_data joined with its history rows; history columns are aliased so
# unqualified patient column names stay unambiguous in WHERE fragments.
SEARCH_SQL = """
    SELECT
        patient_data.*
        ,patient_history_id
        ,patient_history_type_key
        ,previous_name_prefix
        ,previous_name_first
        ,previous_name_middle
        ,previous_name_last
        ,previous_name_suffix
        ,previous_name_enddate
    FROM patient_data
    LEFT JOIN (
        SELECT
            id AS patient_history_id
            ,pid AS patient_history_pid
            ,history_type_key AS patient_history_type_key
            ,previous_name_prefix
            ,previous_name_first
            ,previous_name_middle
            ,previous_name_last
            ,previous_name_suffix
            ,previous_name_enddate
            ,"date" AS previous_creation_date
            ,uuid AS patient_history_uuid
        FROM patient_history
    ) patient_history ON patient_data.pid = patient_history.patient_history_pid
"""

SEARCH_ORDER_BY = " ORDER BY patient_data.pid, patient_history_id"

NAME_HISTORY_SELECT = """
    SELECT pid, id, previous_name_prefix, previous_name_first, previous_name_middle,
           previous_name_last, previous_name_suffix, previous_name_enddate
    FROM patient_history
"""


def now_timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _to_db_value(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


class PatientRepository:
    """SQL access for patients and their previous names."""

    def __init__(self, connection_factory=get_connection):
        self.connection_factory = connection_factory

    # Patient rows

    def get_fresh_pid(self, conn=None) -> int:
        """Next internal id: max(pid) + 1, or 1 for an empty table."""
        own_conn = conn is None
        conn = conn or self.connection_factory()
        try:
            pid = fetch_single_value(conn, "SELECT MAX(pid) + 1 AS pid FROM patient_data", "pid")
        finally:
            if own_conn:
                conn.close()
        return 1 if pid is None else int(pid)

    def insert(self, conn, pid: int, puuid: str, data: dict) -> int:
        """Insert a patient row on an open connection. Returns the new pid."""
        values = {"pid": pid, "uuid": uuid_to_bytes(puuid)}
        values.update({c: _to_db_value(data[c]) for c in PATIENT_COLUMNS if c in data})
        columns, binds = build_insert_columns(values)
        return sql_insert(conn, f"INSERT INTO patient_data {columns}", binds)

    def update(self, conn, data: dict, key_column: str, key_value) -> int:
        """Update a patient row on an open connection. Returns the affected row count."""
        if key_column not in ("pid", "uuid"):
            raise ValueError(f"Patients are keyed by pid or uuid, not {key_column}")
        values = {c: _to_db_value(data[c]) for c in PATIENT_COLUMNS if c in data and c != "regdate"}
        if not values:
            return 0
        set_clause, binds = build_update_columns(values)
        binds.append(uuid_to_bytes(key_value) if key_column == "uuid" else key_value)
        cursor = sql_statement_throw_exception(
            conn, f"UPDATE patient_data SET {set_clause} WHERE {key_column} = ?", binds
        )
        return cursor.rowcount

    def find_by_pid(self, pid: int) -> Patient | None:
        """Get a patient row by internal id."""
        conn = self.connection_factory()
        try:
            row = sql_statement_throw_exception(
                conn, "SELECT * FROM patient_data WHERE pid = ? LIMIT 1", (pid,)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        patient = self._row_to_patient(row)
        patient.suffix = parse_suffix(patient.lname)
        return patient

    def get_uuid(self, pid: int) -> str | None:
        """Get the canonical uuid for a pid."""
        conn = self.connection_factory()
        try:
            value = fetch_single_value(conn, "SELECT uuid FROM patient_data WHERE pid = ?", "uuid", (pid,))
        finally:
            conn.close()
        return uuid_to_string(value)

    def search(self, where_clause) -> list[Patient]:
        """Run the patient/history join with a WhereClause and fold the rows."""
        sql = SEARCH_SQL
        if where_clause.fragment:
            sql += " " + where_clause.fragment
        sql += SEARCH_ORDER_BY

        conn = self.connection_factory()
        try:
            cursor = sql_statement_throw_exception(conn, sql, where_clause.bound_values)
            return hydrate_search_results(
                cursor,
                self._row_to_patient,
                lambda row: self._row_to_name_history(row, id_column="patient_history_id",
                                                      pid=row["pid"]),
            )
        finally:
            conn.close()

    # Name history

    def get_name_history(self, pid: int) -> list[PatientNameHistoryEntry]:
        conn = self.connection_factory()
        try:
            rows = sql_statement_throw_exception(
                conn,
                NAME_HISTORY_SELECT + " WHERE pid = ? AND history_type_key = ? ORDER BY id",
                (pid, NAME_HISTORY_TYPE),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_name_history(row) for row in rows]

    def get_name_history_by_id(self, pid: int, history_id: int) -> PatientNameHistoryEntry | None:
        conn = self.connection_factory()
        try:
            row = sql_statement_throw_exception(
                conn,
                NAME_HISTORY_SELECT + " WHERE pid = ? AND id = ? AND history_type_key = ?",
                (pid, history_id, NAME_HISTORY_TYPE),
            ).fetchone()
        finally:
            conn.close()
        return self._row_to_name_history(row) if row else None

    def insert_name_history(self, pid: int, record: dict) -> int | None:
        """Insert a previous name unless an identical one exists.

        Returns the new history id, or None when the name is already recorded.
        """
        insert_data = {"pid": pid, "history_type_key": NAME_HISTORY_TYPE}
        insert_data.update({c: _to_db_value(record.get(c)) for c in PREVIOUS_NAME_COLUMNS})

        # IS rather than = so NULL name parts compare equal
        where = " AND ".join(f"{c} IS ?" for c in insert_data)
        conn = self.connection_factory()
        try:
            existing = fetch_single_value(
                conn,
                f"SELECT id FROM patient_history WHERE {where}",
                "id",
                list(insert_data.values()),
            )
            if existing is not None:
                return None

            insert_data["uuid"] = create_uuid()
            insert_data["date"] = now_timestamp()
            columns, binds = build_insert_columns(insert_data)
            history_id = sql_insert(conn, f"INSERT INTO patient_history {columns}", binds)
            conn.commit()
        finally:
            conn.close()
        return history_id

    def delete_name_history_by_id(self, history_id: int) -> int:
        """Delete one history row. Returns the number of rows removed."""
        conn = self.connection_factory()
        try:
            cursor = sql_statement_throw_exception(
                conn, "DELETE FROM patient_history WHERE id = ?", (history_id,)
            )
            conn.commit()
        finally:
            conn.close()
        return cursor.rowcount

    # Private helpers

    def _row_to_patient(self, row) -> Patient:
        """Convert a database row to a Patient object."""
        return Patient(
            pid=row["pid"],
            uuid=uuid_to_string(row["uuid"]),
            pubpid=row["pubpid"],
            title=row["title"],
            fname=row["fname"],
            mname=row["mname"],
            lname=row["lname"],
            dob=row["dob"],
            sex=row["sex"],
            street=row["street"],
            city=row["city"],
            state=row["state"],
            postal_code=row["postal_code"],
            country_code=row["country_code"],
            phone_home=row["phone_home"],
            email=row["email"],
            care_team_provider=row["care_team_provider"],
            care_team_facility=row["care_team_facility"],
            date=row["date"],
            regdate=row["regdate"],
        )

    def _row_to_name_history(self, row, id_column: str = "id", pid: int | None = None) -> PatientNameHistoryEntry:
        """Convert a database row to a PatientNameHistoryEntry."""
        entry = PatientNameHistoryEntry(
            id=row[id_column],
            pid=pid if pid is not None else row["pid"],
            previous_name_prefix=row["previous_name_prefix"],
            previous_name_first=row["previous_name_first"],
            previous_name_middle=row["previous_name_middle"],
            previous_name_last=row["previous_name_last"],
            previous_name_suffix=row["previous_name_suffix"],
            previous_name_enddate=row["previous_name_enddate"],
        )
        entry.formatted_name = format_previous_name(asdict(entry))
        return entry
