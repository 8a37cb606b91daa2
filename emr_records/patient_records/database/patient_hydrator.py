"""Fold patient + history join rows into patient aggregates."""

import re
from datetime import datetime
from typing import Iterable

from emr_records import settings

from .schema import NAME_HISTORY_TYPE
from .uuid_registry import uuid_to_string

# Matched against the last token of a last name, case-insensitively
PATIENT_SUFFIXES = ("jr", "sr", "ii", "iii", "iv")

ZERO_DATES = ("0000-00-00", "00/00/0000")


def parse_suffix(lname: str | None) -> str | None:
    """Return the name suffix ending a last name, or None.

    The last name itself is left as stored.
    """
    if not lname:
        return None
    parts = lname.split()
    if len(parts) < 2:
        return None
    token = parts[-1]
    if token.rstrip(".,").lower() not in PATIENT_SUFFIXES:
        return None
    return token


def format_short_date(value: str | None) -> str:
    """Render an ISO date with the configured display format."""
    if not value or value in ZERO_DATES:
        return ""
    try:
        parsed = datetime.strptime(value[:10], "%Y-%m-%d")
    except ValueError:
        return value
    return parsed.strftime(settings.DATE_DISPLAY_FORMAT)


def format_previous_name(item: dict) -> str:
    """Build the display string for a previous name.

    "[prefix ]first[ middle] last[ suffix][ enddate]"
    """
    enddate = format_short_date(item.get("previous_name_enddate"))
    prefix = item.get("previous_name_prefix")
    middle = item.get("previous_name_middle")
    suffix = item.get("previous_name_suffix")

    name = (f"{prefix} " if prefix else "")
    name += item.get("previous_name_first") or ""
    name += f" {middle} " if middle else " "
    name += item.get("previous_name_last") or ""
    name += f" {suffix}" if suffix else ""
    name += f" {enddate}" if enddate else ""
    return re.sub(r"\s+", " ", name).strip()


def hydrate_search_results(rows: Iterable, row_to_patient, row_to_name_history) -> list:
    """Fold joined rows into one aggregate per patient uuid.

    Output order is the order in which each uuid was first seen.
    """
    patients_by_uuid = {}
    ordered_uuids = []

    for row in rows:
        patient_uuid = uuid_to_string(row["uuid"])
        patient = patients_by_uuid.get(patient_uuid)
        if patient is None:
            patient = row_to_patient(row)
            patient.suffix = parse_suffix(patient.lname)
            patient.previous_names = []
            patients_by_uuid[patient_uuid] = patient
            ordered_uuids.append(patient_uuid)

        # LEFT JOIN rows without history carry a NULL type key
        if row["patient_history_type_key"] == NAME_HISTORY_TYPE:
            patient.previous_names.append(row_to_name_history(row))

    return [patients_by_uuid[u] for u in ordered_uuids]
