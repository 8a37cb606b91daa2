"""
Patient Records Database Schema
Supports patient demographics, previous-name history, and care team snapshots.
"""

SCHEMA = """
-- =============================================================================
-- 1. PATIENT_DATA - Core patient demographics
-- =============================================================================
CREATE TABLE IF NOT EXISTS patient_data (
    pid INTEGER PRIMARY KEY,
    uuid BLOB NOT NULL UNIQUE,
    pubpid TEXT,

    -- Name
    title TEXT,
    fname TEXT,
    mname TEXT,
    lname TEXT,

    -- Demographics
    dob TEXT,
    sex TEXT,

    -- Address
    street TEXT,
    city TEXT,
    state TEXT,
    postal_code TEXT,
    country_code TEXT,

    -- Contact
    phone_home TEXT,
    email TEXT,

    -- Care team
    care_team_provider TEXT,
    care_team_facility TEXT,

    -- Metadata: "date" is the last-updated time, "regdate" the creation time
    "date" TEXT,
    regdate TEXT
);

CREATE INDEX IF NOT EXISTS idx_patient_data_name ON patient_data(lname, fname);
CREATE INDEX IF NOT EXISTS idx_patient_data_pubpid ON patient_data(pubpid);


-- =============================================================================
-- 2. PATIENT_HISTORY - Append-only patient history (previous names)
-- =============================================================================
CREATE TABLE IF NOT EXISTS patient_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uuid BLOB UNIQUE,
    pid INTEGER NOT NULL,
    history_type_key TEXT NOT NULL,

    previous_name_prefix TEXT,
    previous_name_first TEXT,
    previous_name_middle TEXT,
    previous_name_last TEXT,
    previous_name_suffix TEXT,
    previous_name_enddate TEXT,

    "date" TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (pid) REFERENCES patient_data(pid)
);

CREATE INDEX IF NOT EXISTS idx_patient_history_pid ON patient_history(pid, history_type_key);


-- =============================================================================
-- 3. CARE_TEAM_HISTORY - Snapshots of replaced care team assignments
-- =============================================================================
CREATE TABLE IF NOT EXISTS care_team_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pid INTEGER NOT NULL,
    care_team_provider TEXT,
    care_team_facility TEXT,
    "date" TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (pid) REFERENCES patient_data(pid)
);

CREATE INDEX IF NOT EXISTS idx_care_team_history_pid ON care_team_history(pid);
"""

# Columns a caller may write on patient_data. pid and uuid are server-assigned.
PATIENT_COLUMNS = [
    "pubpid", "title", "fname", "mname", "lname", "dob", "sex",
    "street", "city", "state", "postal_code", "country_code",
    "phone_home", "email", "care_team_provider", "care_team_facility",
    "date", "regdate",
]

PREVIOUS_NAME_COLUMNS = [
    "previous_name_prefix", "previous_name_first", "previous_name_middle",
    "previous_name_last", "previous_name_suffix", "previous_name_enddate",
]

NAME_HISTORY_TYPE = "name_history"
