import sqlite3

import pytest

from resumescout.db.profile_repository import PLACEHOLDER_NAME, PersistenceError, ProfileRepository
from resumescout.pipeline.parsers import parse_profile
from resumescout.schemas import Language, ListingRecord, ProfileData, Skill

from fake_page import PROFILE_HTML

URL = "https://www.catho.com.br/curriculos/ana-souza/123456/"


@pytest.fixture
def repo(tmp_path):
    r = ProfileRepository(tmp_path / "db" / "resumescout.sqlite")
    yield r
    r.close()


@pytest.fixture
def profile():
    p = parse_profile(PROFILE_HTML)
    p.personal_data.phone = "(41) 99999-1234"
    return p


def test_save_and_read_full_profile(repo, profile):
    resume_id = repo.save_full_profile(URL, profile, "python")
    row = repo.get_full_profile(resume_id)

    assert row["profile_url"] == URL
    assert row["name"] == PLACEHOLDER_NAME
    assert row["search_query"] == "python"
    assert row["age"] == 32
    assert row["city"] == "Curitiba"
    assert row["contact_phone"] == "(41) 99999-1234"
    assert row["contact_email"] is None
    assert row["full_profile_scraped"] == 1
    assert row["profile_scrape_error"] is None
    assert [e["company"] for e in row["work_experiences"]] == ["Empresa Exemplo Ltda", "Outra Empresa SA"]
    assert row["work_experiences"][0]["is_current"] == 1
    assert len(row["education"]) == 2
    assert len(row["courses"]) == 1
    assert len(row["languages"]) == 2
    assert [s["skill_name"] for s in row["skills"]] == ["Python", "JavaScript", "Docker", "Git"]


def test_resave_replaces_related_rows(repo, profile):
    first_id = repo.save_full_profile(URL, profile)

    updated = ProfileData(
        languages=[Language(language="Francês", proficiency="Intermediário")],
        skills=[Skill(skill_name="Rust", category="Tecnologias")],
    )
    second_id = repo.save_full_profile(URL, updated)
    row = repo.get_full_profile(second_id)

    assert second_id == first_id
    assert repo.list_profile_urls() == [URL]
    assert row["work_experiences"] == []
    assert [(l["language"], l["proficiency"]) for l in row["languages"]] == [("Francês", "Intermediário")]
    assert [s["skill_name"] for s in row["skills"]] == ["Rust"]
    assert row["contact_phone"] is None


def test_listing_then_profile_keeps_card_name(repo, profile):
    card = ListingRecord(name="Ana Souza", job_title="Desenvolvedora Python", profile_url=URL, search_query="python")
    assert repo.save_listings([card]) == 1
    assert repo.list_profile_urls(only_pending=True) == [URL]

    resume_id = repo.save_full_profile(URL, profile, "python")
    row = repo.get_full_profile(resume_id)

    assert row["name"] == "Ana Souza"
    assert row["job_title"] == "Desenvolvedora Python"
    assert row["full_profile_scraped"] == 1
    assert repo.list_profile_urls(only_pending=True) == []


def test_save_listings_empty(repo):
    assert repo.save_listings([]) == 0


def test_failed_write_rolls_back_and_records_error(repo, profile, monkeypatch):
    resume_id = repo.save_full_profile(URL, profile)

    def broken_insert(conn, rid, p):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(repo, "_insert_related", broken_insert)
    with pytest.raises(PersistenceError, match="disk I/O error"):
        repo.save_full_profile(URL, ProfileData())

    row = repo.get_full_profile(resume_id)
    assert row["age"] == 32
    assert len(row["work_experiences"]) == 2
    assert "disk I/O error" in row["profile_scrape_error"]


def test_get_full_profile_missing(repo):
    assert repo.get_full_profile(999) is None


def test_context_manager_creates_schema(tmp_path):
    path = tmp_path / "ctx.sqlite"
    with ProfileRepository(path) as r:
        tables = {row["name"] for row in r.conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"resumes", "work_experiences", "education", "courses", "languages", "skills"} <= tables
    assert path.exists()


def test_scrape_attempts_are_counted_with_status(repo, profile):
    repo.save_listings([ListingRecord(name="Ana Souza", profile_url=URL)])
    repo.record_scrape_attempt(URL, False, "Timeout: page took too long")

    row = repo.conn.execute(
        "SELECT name, scrape_attempts, scrape_status, profile_scrape_error, last_scrape_attempt FROM resumes"
    ).fetchone()
    assert (row["name"], row["scrape_attempts"], row["scrape_status"]) == ("Ana Souza", 1, "failed")
    assert row["profile_scrape_error"] == "Timeout: page took too long"
    assert row["last_scrape_attempt"]

    repo.save_full_profile(URL, profile)
    repo.record_scrape_attempt(URL, True)

    row = repo.conn.execute("SELECT scrape_attempts, scrape_status, profile_scrape_error FROM resumes").fetchone()
    assert tuple(row) == (2, "completed", None)


def test_attempt_on_unknown_url_creates_placeholder_row(repo):
    repo.record_scrape_attempt(URL, False, "boom", search_query="python")

    row = repo.conn.execute("SELECT name, search_query, scrape_status FROM resumes").fetchone()
    assert tuple(row) == (PLACEHOLDER_NAME, "python", "failed")


def test_get_failed_profiles_filters_and_orders(repo):
    urls = [f"https://www.catho.com.br/curriculos/p/{i}/" for i in range(4)]
    repo.record_scrape_attempt(urls[0], False, "first")
    repo.record_scrape_attempt(urls[1], False, "second")
    repo.record_scrape_attempt(urls[2], True)
    for _ in range(3):
        repo.record_scrape_attempt(urls[3], False, "exhausted")

    failed = repo.get_failed_profiles(max_attempts=3)
    assert [f["profile_url"] for f in failed] == urls[:2]
    assert failed[0]["scrape_attempts"] == 1
    assert failed[0]["profile_scrape_error"] == "first"

    assert [f["profile_url"] for f in repo.get_failed_profiles(max_attempts=4)] == [urls[0], urls[1], urls[3]]
    assert len(repo.get_failed_profiles(limit=1)) == 1


def test_pending_list_skips_attempted_and_scraped(repo, profile):
    listed = [ListingRecord(name=n, profile_url=f"https://www.catho.com.br/curriculos/{n}/1/") for n in "abc"]
    repo.save_listings(listed)
    repo.save_full_profile(listed[0].profile_url, profile)
    repo.record_scrape_attempt(listed[0].profile_url, True)
    repo.record_scrape_attempt(listed[1].profile_url, False, "boom")

    assert repo.list_profile_urls(only_pending=True) == [listed[2].profile_url]
    assert len(repo.list_profile_urls()) == 3


def test_old_database_gains_retry_columns(tmp_path):
    path = tmp_path / "old.sqlite"
    conn = sqlite3.connect(path)
    conn.execute(
        "CREATE TABLE resumes (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, job_title TEXT, "
        "location TEXT, experience TEXT, summary TEXT, profile_url TEXT NOT NULL UNIQUE, last_updated TEXT, "
        "search_query TEXT, scraped_at TEXT NOT NULL, age INTEGER, date_of_birth TEXT, gender TEXT, "
        "marital_status TEXT, address TEXT, neighborhood TEXT, city TEXT, state TEXT, zip_code TEXT, "
        "country TEXT, contact_email TEXT, contact_phone TEXT, career_objective TEXT, qualifications TEXT, "
        "salary_expectation TEXT, additional_info TEXT, full_profile_scraped INTEGER NOT NULL DEFAULT 0, "
        "profile_scrape_error TEXT)"
    )
    conn.execute(
        "INSERT INTO resumes (name, profile_url, scraped_at) VALUES ('Ana', ?, '2024-01-01T00:00:00+00:00')", (URL,)
    )
    conn.commit()
    conn.close()

    with ProfileRepository(path) as r:
        columns = {row["name"] for row in r.conn.execute("PRAGMA table_info(resumes)")}
        assert {"scrape_attempts", "scrape_status", "last_scrape_attempt"} <= columns
        assert r.list_profile_urls(only_pending=True) == [URL]
        r.record_scrape_attempt(URL, False, "boom")
        assert r.get_failed_profiles()[0]["scrape_attempts"] == 1


def test_retry_migration_is_idempotent(repo):
    from resumescout.db.profile_repository import migrate_retry_columns

    assert migrate_retry_columns(repo.conn) == []
