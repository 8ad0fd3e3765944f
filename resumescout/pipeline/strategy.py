from __future__ import annotations

import math
import random
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence

from ..ops_logger import OpsLogger
from .base import MAX_ERRORS
from .humanize import adaptive_delay, humanized_wait, simulate_human_behavior
from .results import ErrorEvent, ErrorRecord, ExtractionResult, FailureKind, ProfileEvent, RunStats

DEFAULT_PROFILE_DELAY_MS = 2500
MIN_PROFILE_DELAY_MS = 250
DELAY_VARIANCE = 0.4
IDLE_BEHAVIOR_PROBABILITY = 0.3

ExtractFn = Callable[[Any, str], ExtractionResult]
SaveFn = Callable[[str, Any, str], Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class ScrapeContext:
    """Per-run collaborators handed to a strategy.

    ``should_stop`` is polled between items only; an item in progress always
    runs to completion. A ``should_stop`` that raises is treated as "keep going".
    """
    page: Any = None
    search_query: str = ""
    on_profile: Optional[Callable[[ProfileEvent], None]] = None
    on_error: Optional[Callable[[ErrorEvent], None]] = None
    should_stop: Optional[Callable[[], bool]] = None


class BaseStrategy:
    def __init__(self) -> None:
        self.stats = RunStats()
        self._errors: Deque[ErrorRecord] = deque(maxlen=MAX_ERRORS)

    def process(self, profile_urls: Sequence[str], extract_fn: ExtractFn, save_fn: SaveFn, context: ScrapeContext) -> RunStats:
        raise NotImplementedError("process() must be implemented by subclass")

    def get_stats(self) -> RunStats:
        return RunStats(**self.stats.as_dict())

    def reset_stats(self) -> None:
        self.stats = RunStats()

    def get_errors(self) -> List[ErrorRecord]:
        """Most recent item failures, oldest first."""
        return list(self._errors)


class SequentialStrategy(BaseStrategy):
    """Processes profile URLs one at a time with adaptive, jittered pacing.

    - Exactly one event per item, in input order; never both for one item
    - A failing item (failed result, extraction or persistence raising) is
      counted once and never aborts the batch
    - ``error_count`` is cumulative for the instance and drives the backoff
    """

    def __init__(
        self,
        profile_delay_ms: int = DEFAULT_PROFILE_DELAY_MS,
        *,
        rng: Optional[random.Random] = None,
        ops_logger: Optional[OpsLogger] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        super().__init__()
        self.profile_delay_ms = DEFAULT_PROFILE_DELAY_MS
        self.set_profile_delay(profile_delay_ms)
        self.rng = rng or random.Random()
        self.ops_logger = ops_logger
        self.clock = clock
        self.error_count = 0
        self.last_request_time_ms = 0

    def set_profile_delay(self, value: Any) -> None:
        """Accept finite non-negative numbers only; floor and clamp to the minimum."""
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return
        if not math.isfinite(value) or value < 0:
            return
        self.profile_delay_ms = max(MIN_PROFILE_DELAY_MS, int(math.floor(value)))

    def _emit_ops(self, record: Dict[str, Any]) -> None:
        if self.ops_logger is not None:
            self.ops_logger.emit(record)

    @staticmethod
    def _notify(callback: Optional[Callable[[Any], None]], event: Any) -> None:
        if callback is None:
            return
        try:
            callback(event)
        except Exception as e:
            print(f"  ⚠️ Event listener failed (ignored): {e}")

    def _fail_item(self, url: str, index: int, error: str, failure: Optional[FailureKind], context: ScrapeContext) -> None:
        self.stats.processed += 1
        self.stats.failed += 1
        self.error_count += 1
        self._errors.append(
            ErrorRecord(
                message=error,
                context={"url": url, "index": index, "failure": failure.value if failure else None},
                timestamp_ms=_now_ms(),
            )
        )
        self._notify(context.on_error, ErrorEvent(url=url, error=error, index=index, failure=failure))

    def _process_item(self, url: str, index: int, total: int, extract_fn: ExtractFn, save_fn: SaveFn, context: ScrapeContext) -> Dict[str, Any]:
        """Run one item; every outcome is counted exactly once, nothing raises."""
        record: Dict[str, Any] = {"url": url, "index": index, "status": "ok", "failure": None, "ts": _now_ms()}
        started = self.clock()
        extracted = False
        saving = False
        failure: Optional[FailureKind] = None
        error = ""
        try:
            result = extract_fn(context.page, url)
            self.last_request_time_ms = int((self.clock() - started) * 1000)
            extracted = True
            if not isinstance(result, ExtractionResult):
                raise TypeError(f"extract_fn returned {type(result).__name__}, expected ExtractionResult")
            if result.success:
                saving = True
                save_fn(url, result.data, context.search_query)
            else:
                failure = result.failure or FailureKind.UNEXPECTED_EXCEPTION
                error = result.error
                print(f"  ⚠️ Error scraping profile: {error}")
        except Exception as e:
            if not extracted:
                self.last_request_time_ms = int((self.clock() - started) * 1000)
            if saving:
                print(f"  ❌ Error saving profile {index}: {e}")
                failure, error = FailureKind.PERSISTENCE_FAILURE, f"Persistence failure: {e}"
            else:
                print(f"  ❌ Error processing profile {index}: {e}")
                failure, error = FailureKind.UNEXPECTED_EXCEPTION, str(e) or type(e).__name__

        if failure is not None:
            self._fail_item(url, index, error, failure, context)
            record.update(status="error", failure=failure.value)
            return record

        self.stats.processed += 1
        self.stats.succeeded += 1
        print("  ✅ Profile saved successfully")
        self._notify(context.on_profile, ProfileEvent(url=url, profile=result.data, index=index, total=total))
        record["request_time_ms"] = result.request_time_ms
        return record

    @staticmethod
    def _stop_requested(context: ScrapeContext) -> bool:
        if context.should_stop is None:
            return False
        try:
            return bool(context.should_stop())
        except Exception as e:
            print(f"  ⚠️ should_stop failed (ignored, continuing): {e}")
            return False

    def _pace(self, page: Any) -> None:
        delay = adaptive_delay(self.profile_delay_ms, self.error_count, self.last_request_time_ms)
        humanized_wait(page, delay, DELAY_VARIANCE, self.rng)
        if self.rng.random() < IDLE_BEHAVIOR_PROBABILITY:
            simulate_human_behavior(page, self.rng)

    def process(self, profile_urls: Sequence[str], extract_fn: ExtractFn, save_fn: SaveFn, context: Optional[ScrapeContext] = None) -> RunStats:
        context = context or ScrapeContext()
        self.reset_stats()
        urls = list(profile_urls or [])
        if not urls:
            return self.get_stats()

        total = len(urls)
        print(f"🔍 Starting sequential scraping of {total} profiles...")
        for i, url in enumerate(urls):
            index = i + 1
            if self._stop_requested(context):
                print(f"ℹ️ Stop requested, {total - i} profiles left unprocessed")
                break

            print(f"  📋 Profile {index}/{total}: {url[:60]}...")
            record = self._process_item(url, index, total, extract_fn, save_fn, context)
            record["duration_ms"] = self.last_request_time_ms
            self._emit_ops(record)

            if index < total:
                try:
                    self._pace(context.page)
                except Exception as e:
                    print(f"  ⚠️ Pacing step failed (ignored): {e}")

        stats = self.get_stats()
        print(f"🏁 Sequential scraping completed: {stats.succeeded}/{stats.processed} succeeded")
        self._emit_ops({"summary": True, **stats.as_dict(), "error_count": self.error_count, "ts": _now_ms()})
        return stats
