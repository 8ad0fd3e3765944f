from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from ..schemas import ListingRecord, ProfileData


class PersistenceError(Exception):
    """A profile could not be written to the database."""


DDL_STATEMENTS = [
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
    """
    CREATE TABLE IF NOT EXISTS resumes (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      name TEXT NOT NULL,
      job_title TEXT,
      location TEXT,
      experience TEXT,
      summary TEXT,
      profile_url TEXT NOT NULL UNIQUE,
      last_updated TEXT,
      search_query TEXT,
      scraped_at TEXT NOT NULL,
      age INTEGER,
      date_of_birth TEXT,
      gender TEXT,
      marital_status TEXT,
      address TEXT,
      neighborhood TEXT,
      city TEXT,
      state TEXT,
      zip_code TEXT,
      country TEXT,
      contact_email TEXT,
      contact_phone TEXT,
      career_objective TEXT,
      qualifications TEXT,
      salary_expectation TEXT,
      additional_info TEXT,
      full_profile_scraped INTEGER NOT NULL DEFAULT 0,
      profile_scrape_error TEXT,
      scrape_attempts INTEGER NOT NULL DEFAULT 0,
      scrape_status TEXT NOT NULL DEFAULT 'pending',
      last_scrape_attempt TEXT
    )
    """.strip(),
    """
    CREATE TABLE IF NOT EXISTS work_experiences (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      resume_id INTEGER NOT NULL REFERENCES resumes(id) ON DELETE CASCADE,
      company TEXT,
      position TEXT,
      start_date TEXT,
      end_date TEXT,
      duration TEXT,
      last_salary TEXT,
      activities TEXT,
      is_current INTEGER NOT NULL DEFAULT 0,
      display_order INTEGER NOT NULL DEFAULT 0
    )
    """.strip(),
    """
    CREATE TABLE IF NOT EXISTS education (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      resume_id INTEGER NOT NULL REFERENCES resumes(id) ON DELETE CASCADE,
      degree_type TEXT,
      course TEXT,
      institution TEXT,
      start_date TEXT,
      end_date TEXT,
      status TEXT,
      display_order INTEGER NOT NULL DEFAULT 0
    )
    """.strip(),
    """
    CREATE TABLE IF NOT EXISTS courses (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      resume_id INTEGER NOT NULL REFERENCES resumes(id) ON DELETE CASCADE,
      course_name TEXT,
      institution TEXT,
      duration TEXT,
      completion_year TEXT,
      display_order INTEGER NOT NULL DEFAULT 0
    )
    """.strip(),
    """
    CREATE TABLE IF NOT EXISTS languages (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      resume_id INTEGER NOT NULL REFERENCES resumes(id) ON DELETE CASCADE,
      language TEXT,
      proficiency TEXT
    )
    """.strip(),
    """
    CREATE TABLE IF NOT EXISTS skills (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      resume_id INTEGER NOT NULL REFERENCES resumes(id) ON DELETE CASCADE,
      skill_name TEXT,
      category TEXT
    )
    """.strip(),
    "CREATE INDEX IF NOT EXISTS idx_work_experiences_resume ON work_experiences (resume_id)",
    "CREATE INDEX IF NOT EXISTS idx_education_resume ON education (resume_id)",
    "CREATE INDEX IF NOT EXISTS idx_courses_resume ON courses (resume_id)",
    "CREATE INDEX IF NOT EXISTS idx_languages_resume ON languages (resume_id)",
    "CREATE INDEX IF NOT EXISTS idx_skills_resume ON skills (resume_id)",
]

RELATED_TABLES = ("work_experiences", "education", "courses", "languages", "skills")

PLACEHOLDER_NAME = "Nome não extraído"

SCRAPE_PENDING = "pending"
SCRAPE_COMPLETED = "completed"
SCRAPE_FAILED = "failed"

# Columns added after the first schema release; (name, definition)
RETRY_COLUMNS = (
    ("scrape_attempts", "INTEGER NOT NULL DEFAULT 0"),
    ("scrape_status", "TEXT NOT NULL DEFAULT 'pending'"),
    ("last_scrape_attempt", "TEXT"),
)

RECORD_ATTEMPT_SQL = (
    """
    INSERT INTO resumes (
      name, profile_url, search_query, scraped_at,
      scrape_attempts, scrape_status, last_scrape_attempt, profile_scrape_error
    ) VALUES (
      :name, :profile_url, :search_query, :scraped_at,
      1, :scrape_status, :last_scrape_attempt, :error
    )
    ON CONFLICT(profile_url)
    DO UPDATE SET
      scrape_attempts = scrape_attempts + 1,
      scrape_status = excluded.scrape_status,
      last_scrape_attempt = excluded.last_scrape_attempt,
      profile_scrape_error = excluded.profile_scrape_error
    """
).strip()

UPSERT_LISTING_SQL = (
    """
    INSERT INTO resumes (
      name, job_title, location, experience, summary, profile_url,
      last_updated, search_query, scraped_at
    ) VALUES (
      :name, :job_title, :location, :experience, :summary, :profile_url,
      :last_updated, :search_query, :scraped_at
    )
    ON CONFLICT(profile_url)
    DO UPDATE SET
      name = excluded.name,
      job_title = excluded.job_title,
      location = excluded.location,
      experience = excluded.experience,
      summary = excluded.summary,
      last_updated = excluded.last_updated,
      search_query = excluded.search_query
    """
).strip()

UPSERT_PROFILE_SQL = (
    """
    INSERT INTO resumes (
      name, profile_url, search_query, scraped_at,
      age, date_of_birth, gender, marital_status, address, neighborhood,
      city, state, zip_code, country, contact_email, contact_phone,
      career_objective, qualifications, salary_expectation, additional_info,
      full_profile_scraped, profile_scrape_error
    ) VALUES (
      :name, :profile_url, :search_query, :scraped_at,
      :age, :date_of_birth, :gender, :marital_status, :address, :neighborhood,
      :city, :state, :zip_code, :country, :contact_email, :contact_phone,
      :career_objective, :qualifications, :salary_expectation, :additional_info,
      1, NULL
    )
    ON CONFLICT(profile_url)
    DO UPDATE SET
      age = excluded.age,
      date_of_birth = excluded.date_of_birth,
      gender = excluded.gender,
      marital_status = excluded.marital_status,
      address = excluded.address,
      neighborhood = excluded.neighborhood,
      city = excluded.city,
      state = excluded.state,
      zip_code = excluded.zip_code,
      country = excluded.country,
      contact_email = excluded.contact_email,
      contact_phone = excluded.contact_phone,
      career_objective = excluded.career_objective,
      qualifications = excluded.qualifications,
      salary_expectation = excluded.salary_expectation,
      additional_info = excluded.additional_info,
      full_profile_scraped = 1,
      profile_scrape_error = NULL
    """
).strip()

INSERT_SQL = {
    "work_experiences": (
        "INSERT INTO work_experiences (resume_id, company, position, start_date, end_date, duration, "
        "last_salary, activities, is_current, display_order) VALUES (:resume_id, :company, :position, "
        ":start_date, :end_date, :duration, :last_salary, :activities, :is_current, :display_order)"
    ),
    "education": (
        "INSERT INTO education (resume_id, degree_type, course, institution, start_date, end_date, "
        "status, display_order) VALUES (:resume_id, :degree_type, :course, :institution, :start_date, "
        ":end_date, :status, :display_order)"
    ),
    "courses": (
        "INSERT INTO courses (resume_id, course_name, institution, duration, completion_year, display_order) "
        "VALUES (:resume_id, :course_name, :institution, :duration, :completion_year, :display_order)"
    ),
    "languages": "INSERT INTO languages (resume_id, language, proficiency) VALUES (:resume_id, :language, :proficiency)",
    "skills": "INSERT INTO skills (resume_id, skill_name, category) VALUES (:resume_id, :skill_name, :category)",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def ensure_schema(conn: sqlite3.Connection) -> None:
    for stmt in DDL_STATEMENTS:
        conn.execute(stmt)
    migrate_retry_columns(conn)


def migrate_retry_columns(conn: sqlite3.Connection) -> List[str]:
    """Add retry-tracking columns to databases created before they existed.

    Idempotent. Returns the names of the columns that were added.
    """
    existing = {row[1] for row in conn.execute("PRAGMA table_info(resumes)")}
    added = []
    for name, definition in RETRY_COLUMNS:
        if name not in existing:
            conn.execute(f"ALTER TABLE resumes ADD COLUMN {name} {definition}")
            added.append(name)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_resumes_scrape_status ON resumes (scrape_status, scrape_attempts)"
    )
    conn.commit()
    if added:
        print(f"🔧 Migrated resumes table: added {', '.join(added)}")
    return added


class ProfileRepository:
    """SQLite store for listings and full profiles.

    Usable as a context manager; the connection is opened lazily and kept
    for the lifetime of the repository.
    """

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            ensure_schema(self._conn)
        return self._conn

    def ensure_schema(self) -> None:
        ensure_schema(self.conn)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "ProfileRepository":
        self.ensure_schema()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def save_listings(self, records: Iterable[ListingRecord]) -> int:
        """Upsert search result cards. Returns the number of rows written."""
        rows = [{**r.model_dump(), "scraped_at": _now()} for r in records]
        if not rows:
            return 0
        try:
            with self.conn:
                self.conn.executemany(UPSERT_LISTING_SQL, rows)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save listings: {e}") from e
        return len(rows)

    def save_full_profile(self, profile_url: str, profile: ProfileData, search_query: str = "") -> int:
        """Upsert the resume row and replace its related rows in one transaction.

        On failure the transaction is rolled back, the error is recorded on the
        existing row (if any) and ``PersistenceError`` is raised.
        """
        personal = profile.personal_data
        career = profile.career_info
        params = {
            "name": PLACEHOLDER_NAME,
            "profile_url": profile_url,
            "search_query": search_query,
            "scraped_at": _now(),
            "age": personal.age,
            "date_of_birth": personal.date_of_birth,
            "gender": personal.gender,
            "marital_status": personal.marital_status,
            "address": personal.address,
            "neighborhood": personal.neighborhood,
            "city": personal.city,
            "state": personal.state,
            "zip_code": personal.zip_code,
            "country": personal.country,
            "contact_email": personal.email,
            "contact_phone": personal.phone,
            "career_objective": career.career_objective,
            "qualifications": career.qualifications,
            "salary_expectation": career.salary_expectation,
            "additional_info": profile.additional_info or None,
        }
        conn = self.conn
        try:
            with conn:  # transactional: commit on success, rollback on error
                conn.execute(UPSERT_PROFILE_SQL, params)
                resume_id = conn.execute(
                    "SELECT id FROM resumes WHERE profile_url = ?", (profile_url,)
                ).fetchone()["id"]
                for table in RELATED_TABLES:
                    conn.execute(f"DELETE FROM {table} WHERE resume_id = ?", (resume_id,))
                self._insert_related(conn, resume_id, profile)
            return int(resume_id)
        except sqlite3.Error as e:
            print(f"❌ Error saving full profile: {e}")
            self._record_error(profile_url, str(e))
            raise PersistenceError(f"Failed to save profile {profile_url}: {e}") from e

    def _insert_related(self, conn: sqlite3.Connection, resume_id: int, profile: ProfileData) -> None:
        sections = {
            "work_experiences": [
                {**e.model_dump(), "is_current": 1 if e.is_current else 0} for e in profile.work_experiences
            ],
            "education": [e.model_dump() for e in profile.education],
            "courses": [c.model_dump() for c in profile.courses],
            "languages": [lang.model_dump() for lang in profile.languages],
            "skills": [s.model_dump() for s in profile.skills],
        }
        for table, rows in sections.items():
            if rows:
                conn.executemany(INSERT_SQL[table], [{"resume_id": resume_id, **row} for row in rows])

    def _record_error(self, profile_url: str, message: str) -> None:
        try:
            with self.conn:
                self.conn.execute(
                    "UPDATE resumes SET profile_scrape_error = ? WHERE profile_url = ?", (message, profile_url)
                )
        except sqlite3.Error:
            # Error bookkeeping must not mask the original failure
            pass

    def get_full_profile(self, resume_id: int) -> Optional[Dict[str, Any]]:
        row = self.conn.execute("SELECT * FROM resumes WHERE id = ?", (resume_id,)).fetchone()
        if row is None:
            return None
        result: Dict[str, Any] = dict(row)
        order = {
            "work_experiences": "display_order, id",
            "education": "display_order, id",
            "courses": "display_order, id",
            "languages": "id",
            "skills": "id",
        }
        for table in RELATED_TABLES:
            rows = self.conn.execute(
                f"SELECT * FROM {table} WHERE resume_id = ? ORDER BY {order[table]}", (resume_id,)
            ).fetchall()
            result[table] = [dict(r) for r in rows]
        return result

    def list_profile_urls(self, *, only_pending: bool = False) -> List[str]:
        """All stored profile URLs, or only those never attempted and not yet scraped."""
        sql = "SELECT profile_url FROM resumes"
        if only_pending:
            sql += f" WHERE full_profile_scraped = 0 AND scrape_status = '{SCRAPE_PENDING}'"
        return [r["profile_url"] for r in self.conn.execute(sql + " ORDER BY id")]

    def record_scrape_attempt(
        self, profile_url: str, success: bool, error: Optional[str] = None, search_query: str = ""
    ) -> None:
        """Count one detail-page attempt and set its outcome.

        Creates a placeholder row when the URL was never listed, so failures
        from URL-list runs can be retried later.
        """
        now = _now()
        params = {
            "name": PLACEHOLDER_NAME,
            "profile_url": profile_url,
            "search_query": search_query,
            "scraped_at": now,
            "scrape_status": SCRAPE_COMPLETED if success else SCRAPE_FAILED,
            "last_scrape_attempt": now,
            "error": None if success else (error or "unknown error"),
        }
        try:
            with self.conn:
                self.conn.execute(RECORD_ATTEMPT_SQL, params)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to record scrape attempt for {profile_url}: {e}") from e

    def get_failed_profiles(self, max_attempts: int = 3, limit: int = 50) -> List[Dict[str, Any]]:
        """Failed profiles still under ``max_attempts``, least recently attempted first."""
        rows = self.conn.execute(
            f"""
            SELECT profile_url, name, scrape_attempts, profile_scrape_error, search_query
            FROM resumes
            WHERE scrape_status = '{SCRAPE_FAILED}' AND scrape_attempts < ?
            ORDER BY last_scrape_attempt, id
            LIMIT ?
            """,
            (max_attempts, limit),
        ).fetchall()
        return [dict(r) for r in rows]
