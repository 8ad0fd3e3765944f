"""
ResumeScout - CLI Runner

Usage:
  python -m rsc.run \
    --input profile_urls.txt \
    --config config/example.yaml \
    --out ./out

Search mode (collect profile URLs from result pages first):
  python -m rsc.run --query "desenvolvedor python" --config config/example.yaml --out ./out

Retry profiles whose detail scrape failed (fewer than --max-retries attempts):
  python -m rsc.run --retry-failed --out ./out

Scrape listed profiles that were never attempted:
  python -m rsc.run --resume-pending --out ./out

Dry run (validate only):
  python -m rsc.run --input profile_urls.txt --out ./out --dry-run

Exit codes:
  0 - success
  1 - config error (file missing or invalid YAML)
  2 - input error (input file missing, or no source option given)
  3 - processing error (browser/runtime failures, or no profile saved)
"""
from __future__ import annotations

import argparse
import json
import sys
import time
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from resumescout.config import NUMERIC_LIMITS, ConfigError, ScraperSettings, clamp_number, load_settings, load_yaml
from resumescout.db.profile_repository import ProfileRepository
from resumescout.ops_logger import OpsLogger
from resumescout.pipeline.browser import BrowserSession
from resumescout.pipeline.extractors import ProfileExtractor
from resumescout.pipeline.results import ErrorEvent, ProfileEvent
from resumescout.pipeline.search import builder_from_config, collect_profile_urls
from resumescout.pipeline.strategy import ScrapeContext, SequentialStrategy


def validate_input(input_path: Path) -> None:
    if not input_path.exists() or not input_path.is_file():
        print(f"Input error: file not found: {input_path}", file=sys.stderr)
        sys.exit(2)


def validate_config(config_path: Optional[Path]) -> dict:
    if config_path is None:
        return {}
    try:
        return load_yaml(config_path)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        sys.exit(1)


def ensure_out_dir(out_dir: Path) -> None:
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        test_file = out_dir / ".write_test"
        test_file.write_text("ok", encoding="utf-8")
        test_file.unlink(missing_ok=True)
    except Exception as e:
        print(f"Output error: cannot write to {out_dir}: {e}", file=sys.stderr)
        sys.exit(3)


def read_input_urls(input_path: Path) -> List[str]:
    """Profile URLs, one per line; comments, blanks and duplicates dropped."""
    urls: List[str] = []
    seen = set()
    for line in input_path.read_text(encoding="utf-8").splitlines():
        s = line.strip()
        if not s or s.startswith("#"):
            continue
        if s.startswith("/"):
            s = f"https://www.catho.com.br{s}"
        elif not s.startswith(("http://", "https://")):
            print(f"  ⚠️ Skipping non-URL line: {s}")
            continue
        if s not in seen:
            seen.add(s)
            urls.append(s)
    return urls


def apply_cli_overrides(settings: ScraperSettings, args: argparse.Namespace) -> ScraperSettings:
    updates: Dict[str, Any] = {}
    if args.profile_delay is not None:
        _, lo, hi = NUMERIC_LIMITS["profile_delay_ms"]
        updates["profile_delay_ms"] = clamp_number(args.profile_delay, settings.profile_delay_ms, lo, hi)
    if args.max_pages is not None:
        _, lo, hi = NUMERIC_LIMITS["max_pages"]
        updates["max_pages"] = clamp_number(args.max_pages, settings.max_pages, lo, hi)
    if args.headed:
        updates["headless"] = False
    if args.storage_state:
        updates["storage_state"] = args.storage_state
    if args.db_path:
        updates["db_path"] = args.db_path
    return replace(settings, **updates)


def describe_source(args: argparse.Namespace) -> str:
    if args.input:
        return f"input: {args.input}"
    if args.query:
        return f"query: {args.query}"
    if args.retry_failed:
        return f"retry-failed (max {args.max_retries} attempts, limit {args.retry_limit})"
    return "resume-pending"


def load_stored_urls(repo: ProfileRepository, args: argparse.Namespace) -> List[str]:
    """Profile URLs for the database-driven modes."""
    if args.retry_failed:
        failed = repo.get_failed_profiles(max_attempts=args.max_retries, limit=args.retry_limit)
        print(f"🔁 Found {len(failed)} failed profiles to retry")
        for row in failed:
            print(f"  - {row['profile_url']} (attempts: {row['scrape_attempts']}, last error: {row['profile_scrape_error']})")
        return [row["profile_url"] for row in failed]
    pending = repo.list_profile_urls(only_pending=True)
    print(f"⏳ Found {len(pending)} pending profiles")
    return pending


def write_report(out_dir: Path, report: Dict[str, Any]) -> Path:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    path = out_dir / f"run_report_{ts}.json"
    path.write_text(json.dumps(report, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
    return path


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="rsc.run", description="ResumeScout profile scraper")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--input", "-i", default=None, help="Path to profile URLs file (one per line)")
    source.add_argument("--query", "-q", default=None, help="Search query; profile URLs are collected from result pages")
    source.add_argument("--retry-failed", action="store_true", help="Re-scrape profiles whose last attempt failed")
    source.add_argument("--resume-pending", action="store_true", help="Scrape stored profiles never attempted yet")
    parser.add_argument("--config", "-c", default=None, help="Path to YAML config file")
    parser.add_argument("--out", "-o", required=True, help="Output directory")
    parser.add_argument("--db-path", default=None, help="Path to SQLite DB file (default: <out>/resumescout.sqlite)")
    parser.add_argument("--storage-state", default=None, help="Playwright storage-state file with an authenticated session")
    parser.add_argument("--profile-delay", type=float, default=None, help="Base delay between profiles in ms (clamped 500-12000)")
    parser.add_argument("--max-pages", type=int, default=None, help="Search result pages to walk in --query mode (1-50)")
    parser.add_argument("--max-retries", type=int, default=3, help="--retry-failed: skip profiles with this many attempts (default 3)")
    parser.add_argument("--retry-limit", type=int, default=50, help="--retry-failed: profiles per run (default 50)")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--dry-run", action="store_true", help="Validate inputs/config and exit")
    parser.add_argument("--ops-log", default=None, help="Path to ops JSONL log file (default: <out>/ops.log)")
    parser.add_argument("--ops-stdout", action="store_true", help="Also mirror ops JSON to stdout")
    args = parser.parse_args(argv)

    if not (args.input or args.query or args.retry_failed or args.resume_pending):
        print(
            "Input error: one of --input, --query, --retry-failed or --resume-pending is required",
            file=sys.stderr,
        )
        return 2

    out_dir = Path(args.out)
    input_path = Path(args.input) if args.input else None
    config_path = Path(args.config) if args.config else None

    if input_path is not None:
        validate_input(input_path)
    cfg = validate_config(config_path)
    ensure_out_dir(out_dir)

    settings = apply_cli_overrides(load_settings(cfg), args)
    db_path = settings.db_path or str(out_dir / "resumescout.sqlite")
    urls = read_input_urls(input_path) if input_path is not None else []
    repo = ProfileRepository(db_path)
    from_db = args.retry_failed or args.resume_pending

    if from_db:
        try:
            urls = load_stored_urls(repo, args)
        except Exception as e:
            repo.close()
            print(f"Processing error: cannot read {db_path}: {e}", file=sys.stderr)
            return 3

    if args.dry_run:
        repo.close()
        print("✅ Dry-run validation passed")
        print(f" - Source: {describe_source(args)}")
        print(f" - Config: {config_path}")
        print(f" - Output dir: {out_dir}")
        print(f" - Settings: {settings.as_dict()}")
        if not args.query:
            print(f" - URLs to process: {len(urls)}")
        return 0

    if from_db and not urls:
        repo.close()
        print("✅ No profiles to retry" if args.retry_failed else "✅ No pending profiles")
        return 0

    if input_path is not None and not urls:
        print(f"Input error: no profile URLs in {input_path}", file=sys.stderr)
        return 2

    ops_log_path = Path(args.ops_log) if args.ops_log else (out_dir / "ops.log")
    ops_logger = OpsLogger(ops_log_path, also_stdout=bool(args.ops_stdout))

    search_query = args.query or ""
    saved: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []

    def on_profile(event: ProfileEvent) -> None:
        saved.append({"url": event.url, "index": event.index})
        print(f"  👤 [{event.index}/{event.total}] saved {event.url}")
        repo.record_scrape_attempt(event.url, True, search_query=search_query)

    def on_error(event: ErrorEvent) -> None:
        errors.append({
            "url": event.url,
            "index": event.index,
            "error": event.error,
            "failure": event.failure.value if event.failure else None,
        })
        repo.record_scrape_attempt(event.url, False, event.error, search_query=search_query)

    extractor = ProfileExtractor(navigation_timeout_ms=settings.navigation_timeout_ms)
    strategy = SequentialStrategy(settings.profile_delay_ms, ops_logger=ops_logger)

    proc_start = time.perf_counter()
    try:
        with BrowserSession(headless=settings.headless, storage_state=settings.storage_state) as page:
            if args.query:
                builder = builder_from_config(args.query, cfg.get("search", {}) if isinstance(cfg, dict) else {})
                urls = collect_profile_urls(
                    page,
                    builder,
                    max_pages=settings.max_pages,
                    page_delay_ms=settings.page_delay_ms,
                    navigation_timeout_ms=settings.navigation_timeout_ms,
                    on_records=repo.save_listings,
                )
                print(f"🔎 Collected {len(urls)} profile URLs for '{args.query}'")

            context = ScrapeContext(page=page, search_query=search_query, on_profile=on_profile, on_error=on_error)
            stats = strategy.process(urls, extractor.extract_profile, repo.save_full_profile, context)
    except Exception as e:
        print(f"Processing error: {e}", file=sys.stderr)
        return 3
    finally:
        repo.close()

    wall_s = max(0.0, time.perf_counter() - proc_start)
    report = {
        "mode": describe_source(args),
        "search_query": search_query or None,
        "settings": settings.as_dict(),
        "db_path": db_path,
        "stats": stats.as_dict(),
        "error_count": strategy.error_count,
        "saved": saved,
        "errors": errors,
        "diagnostics": [
            {"message": r.message, "context": r.context, "timestamp_ms": r.timestamp_ms}
            for r in (
                extractor.get_errors() + extractor.contact_extractor.get_errors() + strategy.get_errors()
            )
        ],
        "durations": {"wall_s": round(wall_s, 2)},
    }
    try:
        report_path = write_report(out_dir, report)
        print(f"💾 Report: {report_path}")
    except Exception as e:
        print(f"Report error: {e}", file=sys.stderr)
        return 3

    print(f"💽 SQLite: {db_path}")
    print("🏁 Done.")
    print(f"   Processed: {stats.processed}")
    print(f"   Succeeded: {stats.succeeded}")
    print(f"   Failed: {stats.failed}")

    if stats.processed == 0:
        print("No profiles to process.", file=sys.stderr)
        return 3
    if stats.succeeded == 0:
        print("No profile was saved.", file=sys.stderr)
        return 3
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
