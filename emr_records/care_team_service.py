"""Care team history snapshots."""

import logging
from datetime import datetime

from emr_records.patient_records.database.connection import get_connection
from emr_records.patient_records.database.query_utils import (
    sql_insert,
    sql_statement_throw_exception,
)

logger = logging.getLogger(__name__)


class CareTeamService:
    """Records the care team values a patient had before they were replaced."""

    def __init__(self, connection_factory=get_connection):
        self.connection_factory = connection_factory

    def create_care_team_history(self, pid: int, old_provider: str | None, old_facility: str | None) -> int:
        """Store a snapshot of the previous care team and return its id."""
        conn = self.connection_factory()
        try:
            history_id = sql_insert(
                conn,
                """INSERT INTO care_team_history (pid, care_team_provider, care_team_facility, "date")
                   VALUES (?, ?, ?, ?)""",
                (pid, old_provider, old_facility, datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Saved care team history %s for patient %s", history_id, pid)
        return history_id

    def get_care_team_history(self, pid: int) -> list[dict]:
        """Get care team snapshots for a patient, oldest first."""
        conn = self.connection_factory()
        try:
            rows = sql_statement_throw_exception(
                conn,
                "SELECT * FROM care_team_history WHERE pid = ? ORDER BY id",
                (pid,),
            ).fetchall()
        finally:
            conn.close()
        return [dict(row) for row in rows]
