"""Seed the database with mock patients and previous names."""

from functools import partial

from emr_records.events import EventDispatcher
from emr_records.patient_records.database import get_connection, init_database
from emr_records.patient_service import PatientService


MOCK_PATIENTS = [
    {
        "title": "Mr.",
        "fname": "John",
        "lname": "Smith Jr.",
        "dob": "1985-03-15",
        "sex": "Male",
        "street": "123 Main St",
        "city": "San Francisco",
        "state": "CA",
        "postal_code": "94102",
        "phone_home": "555-0101",
        "email": "john.smith@email.com",
        "care_team_provider": "7",
        "care_team_facility": "3",
    },
    {
        "title": "Ms.",
        "fname": "Sarah",
        "mname": "Ann",
        "lname": "Johnson",
        "dob": "1992-07-22",
        "sex": "Female",
        "street": "456 Oak Ave",
        "city": "Oakland",
        "state": "CA",
        "postal_code": "94612",
        "phone_home": "555-0102",
        "email": "sarah.j@email.com",
    },
    {
        "fname": "Michael",
        "lname": "Chen",
        "dob": "1978-11-08",
        "sex": "Male",
        "street": "789 Pine Rd",
        "city": "Berkeley",
        "state": "CA",
        "postal_code": "94704",
        "phone_home": "555-0103",
    },
]

# (index into MOCK_PATIENTS, previous name)
MOCK_PREVIOUS_NAMES = [
    (1, {
        "previous_name_prefix": "Ms.",
        "previous_name_first": "Sarah",
        "previous_name_middle": "Ann",
        "previous_name_last": "Miller",
        "previous_name_enddate": "2018-06-30",
    }),
]


def seed_database(db_path=None) -> PatientService:
    """Initialize and seed the database with mock data."""
    print("Initializing database...")
    init_database(db_path)
    service = PatientService(EventDispatcher(), connection_factory=partial(get_connection, db_path))

    print("Creating mock patients...")
    pids = []
    for patient in MOCK_PATIENTS:
        existing = service.get_all({"fname": patient["fname"], "lname": patient["lname"]}).data
        if existing:
            print(f"  Skipping {patient['fname']} {patient['lname']} (already exists)")
            pids.append(existing[0].pid)
            continue
        result = service.insert(patient)
        if not result.is_valid():
            print(f"  Rejected {patient['fname']} {patient['lname']}: {result.validation_messages}")
            pids.append(None)
            continue
        pids.append(result.first()["pid"])
        print(f"  Created {patient['fname']} {patient['lname']}")

    print("Creating previous names...")
    for index, record in MOCK_PREVIOUS_NAMES:
        pid = pids[index]
        if pid is None:
            continue
        if service.create_patient_name_history(pid, record) is None:
            print(f"  Skipping {record['previous_name_last']} (already recorded)")
        else:
            print(f"  Recorded {record['previous_name_first']} {record['previous_name_last']}")

    print("\nDatabase seeded successfully!")
    print(f"  - {len(MOCK_PATIENTS)} patients")
    print(f"  - {len(MOCK_PREVIOUS_NAMES)} previous names")
    return service


if __name__ == "__main__":
    seed_database()
