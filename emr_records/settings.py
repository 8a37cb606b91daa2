"""Environment-driven settings for the patient records layer."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(override=True)

DEFAULT_DB_PATH = Path(__file__).parent / "patient_records" / "emr_records.db"

DB_PATH = Path(os.getenv("EMR_DB_PATH", str(DEFAULT_DB_PATH)))

# strftime format used when rendering previous-name end dates
DATE_DISPLAY_FORMAT = os.getenv("EMR_DATE_DISPLAY_FORMAT", "%Y-%m-%d")

LOG_LEVEL = os.getenv("EMR_LOG_LEVEL", "WARNING").upper()
