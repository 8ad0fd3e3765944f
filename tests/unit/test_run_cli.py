import json
import sqlite3

import pytest

from resumescout.pipeline.search import SEARCH_URL
from rsc import run as cli

from fake_page import FakePage, PROFILE_HTML, listing_html


class FakeSession:
    """Stands in for BrowserSession: yields an in-memory page."""

    def __init__(self, page):
        self.page = page

    def __call__(self, **kwargs):
        return self

    def __enter__(self):
        return self.page

    def __exit__(self, exc_type, exc, tb):
        return None


def write_urls(tmp_path, *lines):
    path = tmp_path / "urls.txt"
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def test_missing_input_file_exits_2(tmp_path):
    with pytest.raises(SystemExit) as exc:
        cli.main(["--input", str(tmp_path / "missing.txt"), "--out", str(tmp_path / "out")])
    assert exc.value.code == 2


def test_no_source_returns_2(tmp_path):
    assert cli.main(["--out", str(tmp_path / "out")]) == 2


def test_bad_config_exits_1(tmp_path):
    urls = write_urls(tmp_path, "https://www.catho.com.br/curriculos/a/1/")
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("scraper: [unclosed", encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        cli.main(["--input", str(urls), "--config", str(cfg), "--out", str(tmp_path / "out")])
    assert exc.value.code == 1


def test_dry_run_returns_0(tmp_path, capsys):
    urls = write_urls(tmp_path, "# comment", "/curriculos/a/1/", "https://www.catho.com.br/curriculos/a/1/")

    assert cli.main(["--input", str(urls), "--out", str(tmp_path / "out"), "--dry-run"]) == 0
    assert "URLs to process: 1" in capsys.readouterr().out


def test_input_without_urls_returns_2(tmp_path):
    urls = write_urls(tmp_path, "# nothing here", "", "not a url")
    assert cli.main(["--input", str(urls), "--out", str(tmp_path / "out")]) == 2


def test_read_input_urls(tmp_path):
    path = write_urls(
        tmp_path,
        "https://www.catho.com.br/curriculos/a/1/",
        "  ",
        "/curriculos/b/2/",
        "ftp://example.com/x",
        "https://www.catho.com.br/curriculos/a/1/",
    )
    assert cli.read_input_urls(path) == [
        "https://www.catho.com.br/curriculos/a/1/",
        "https://www.catho.com.br/curriculos/b/2/",
    ]


def test_full_run_saves_profiles_and_writes_report(tmp_path, monkeypatch):
    page = FakePage(html=PROFILE_HTML, triggers={"phone": True}, reveal_after_ms={"phone": 300},
                    values={"phone": "(41) 99999-1234"})
    monkeypatch.setattr(cli, "BrowserSession", FakeSession(page))
    urls = write_urls(tmp_path, "https://www.catho.com.br/curriculos/a/1/", "https://www.catho.com.br/curriculos/b/2/")
    out = tmp_path / "out"

    code = cli.main(["--input", str(urls), "--out", str(out), "--profile-delay", "500"])

    assert code == 0
    (report_path,) = out.glob("run_report_*.json")
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["stats"] == {"processed": 2, "succeeded": 2, "failed": 0}
    assert report["settings"]["profile_delay_ms"] == 500
    assert [s["index"] for s in report["saved"]] == [1, 2]

    conn = sqlite3.connect(out / "resumescout.sqlite")
    rows = conn.execute("SELECT profile_url, contact_phone, city FROM resumes ORDER BY id").fetchall()
    conn.close()
    assert rows == [
        ("https://www.catho.com.br/curriculos/a/1/", "(41) 99999-1234", "Curitiba"),
        ("https://www.catho.com.br/curriculos/b/2/", "(41) 99999-1234", "Curitiba"),
    ]
    assert (out / "ops.log").exists()


def test_run_with_only_failures_returns_3(tmp_path, monkeypatch):
    target = "https://www.catho.com.br/curriculos/a/1/"
    page = FakePage(timeout_urls=[target])
    monkeypatch.setattr(cli, "BrowserSession", FakeSession(page))
    urls = write_urls(tmp_path, target)
    out = tmp_path / "out"

    assert cli.main(["--input", str(urls), "--out", str(out)]) == 3
    (report_path,) = out.glob("run_report_*.json")
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["errors"][0]["failure"] == "NavigationTimeout"


def test_browser_start_failure_returns_3(tmp_path, monkeypatch):
    class BrokenSession:
        def __init__(self, **kwargs):
            pass

        def __enter__(self):
            raise FileNotFoundError("storage state not found: auth.json")

        def __exit__(self, *exc):
            return None

    monkeypatch.setattr(cli, "BrowserSession", BrokenSession)
    urls = write_urls(tmp_path, "https://www.catho.com.br/curriculos/a/1/")

    assert cli.main(["--input", str(urls), "--out", str(tmp_path / "out")]) == 3


def test_query_mode_collects_then_scrapes(tmp_path, monkeypatch):
    profile_url = "https://www.catho.com.br/curriculos/ana-souza/123/"

    def render(url):
        if url.startswith(SEARCH_URL):
            if "page=1" in url:
                return listing_html({"href": "/curriculos/ana-souza/123/", "name": "Ana Souza"})
            return listing_html()
        return PROFILE_HTML

    page = FakePage(html=render)
    monkeypatch.setattr(cli, "BrowserSession", FakeSession(page))
    out = tmp_path / "out"

    code = cli.main(["--query", "python", "--out", str(out), "--max-pages", "3"])

    assert code == 0
    conn = sqlite3.connect(out / "resumescout.sqlite")
    rows = conn.execute("SELECT name, profile_url, search_query, full_profile_scraped FROM resumes").fetchall()
    conn.close()
    assert rows == [("Ana Souza", profile_url, "python", 1)]


def test_failed_profile_is_tracked_then_retried(tmp_path, monkeypatch):
    target = "https://www.catho.com.br/curriculos/a/1/"
    out = tmp_path / "out"
    urls = write_urls(tmp_path, target)

    monkeypatch.setattr(cli, "BrowserSession", FakeSession(FakePage(timeout_urls=[target])))
    assert cli.main(["--input", str(urls), "--out", str(out)]) == 3

    conn = sqlite3.connect(out / "resumescout.sqlite")
    row = conn.execute(
        "SELECT scrape_status, scrape_attempts, profile_scrape_error, full_profile_scraped FROM resumes"
    ).fetchone()
    conn.close()
    assert row[:2] == ("failed", 1)
    assert "Timeout" in row[2]
    assert row[3] == 0

    page = FakePage(html=PROFILE_HTML)
    monkeypatch.setattr(cli, "BrowserSession", FakeSession(page))
    assert cli.main(["--retry-failed", "--out", str(out)]) == 0

    assert page.navigations == [target]
    conn = sqlite3.connect(out / "resumescout.sqlite")
    row = conn.execute(
        "SELECT scrape_status, scrape_attempts, profile_scrape_error, full_profile_scraped, city FROM resumes"
    ).fetchone()
    conn.close()
    assert row == ("completed", 2, None, 1, "Curitiba")


def test_retry_failed_with_nothing_to_retry_returns_0(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(cli, "BrowserSession", FakeSession(FakePage()))

    assert cli.main(["--retry-failed", "--out", str(tmp_path / "out")]) == 0
    assert "No profiles to retry" in capsys.readouterr().out


def test_retry_failed_honours_max_retries(tmp_path, monkeypatch):
    from resumescout.db.profile_repository import ProfileRepository

    out = tmp_path / "out"
    out.mkdir()
    target = "https://www.catho.com.br/curriculos/a/1/"
    with ProfileRepository(out / "resumescout.sqlite") as repo:
        repo.record_scrape_attempt(target, False, "Timeout")
        repo.record_scrape_attempt(target, False, "Timeout")

    page = FakePage(html=PROFILE_HTML)
    monkeypatch.setattr(cli, "BrowserSession", FakeSession(page))

    assert cli.main(["--retry-failed", "--max-retries", "2", "--out", str(out)]) == 0
    assert page.navigations == []


def test_resume_pending_scrapes_listing_only_rows(tmp_path, monkeypatch):
    from resumescout.db.profile_repository import ProfileRepository
    from resumescout.schemas import ListingRecord

    out = tmp_path / "out"
    out.mkdir()
    pending = "https://www.catho.com.br/curriculos/ana-souza/123/"
    with ProfileRepository(out / "resumescout.sqlite") as repo:
        repo.save_listings([ListingRecord(name="Ana Souza", profile_url=pending, search_query="python")])

    page = FakePage(html=PROFILE_HTML)
    monkeypatch.setattr(cli, "BrowserSession", FakeSession(page))

    assert cli.main(["--resume-pending", "--out", str(out)]) == 0
    assert page.navigations == [pending]

    conn = sqlite3.connect(out / "resumescout.sqlite")
    row = conn.execute("SELECT name, search_query, scrape_status, full_profile_scraped FROM resumes").fetchone()
    conn.close()
    assert row == ("Ana Souza", "python", "completed", 1)


def test_dry_run_in_retry_mode_reports_count(tmp_path, capsys):
    from resumescout.db.profile_repository import ProfileRepository

    out = tmp_path / "out"
    out.mkdir()
    with ProfileRepository(out / "resumescout.sqlite") as repo:
        repo.record_scrape_attempt("https://www.catho.com.br/curriculos/a/1/", False, "boom")

    assert cli.main(["--retry-failed", "--out", str(out), "--dry-run"]) == 0
    captured = capsys.readouterr().out
    assert "retry-failed" in captured
    assert "URLs to process: 1" in captured
