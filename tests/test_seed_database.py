"""Tests for the seed script."""

from emr_records.patient_records.scripts.seed_database import MOCK_PATIENTS, seed_database


def test_seed_creates_patients(tmp_path):
    """Test that seeding creates every mock patient and previous name."""
    service = seed_database(tmp_path / "seed.db")
    patients = service.get_all().data
    assert len(patients) == len(MOCK_PATIENTS)
    assert patients[0].suffix == "Jr."
    assert [n.previous_name_last for n in patients[1].previous_names] == ["Miller"]


def test_seed_is_repeatable(tmp_path, capsys):
    """Test that seeding twice skips existing records."""
    db_path = tmp_path / "seed.db"
    seed_database(db_path)
    service = seed_database(db_path)
    assert len(service.get_all().data) == len(MOCK_PATIENTS)
    assert "already recorded" in capsys.readouterr().out
