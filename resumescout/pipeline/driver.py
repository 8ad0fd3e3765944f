from __future__ import annotations

import time
from typing import Any, Protocol

from playwright.sync_api import Page, TimeoutError as PlaywrightTimeoutError


class NavigationTimeout(Exception):
    """Page did not finish loading within the navigation timeout."""

    def __init__(self, url: str, timeout_ms: int) -> None:
        super().__init__(f"Timeout: {url} took longer than {timeout_ms // 1000}s to load")
        self.url = url
        self.timeout_ms = timeout_ms


class PageDriver(Protocol):
    """Browser capabilities consumed by the extractors.

    Extractors depend only on this interface; ``PlaywrightPageDriver`` is the
    production adapter, tests use in-memory fakes.
    """

    def navigate(self, url: str, *, timeout_ms: int, wait_until: str = "networkidle") -> int:
        """Load ``url`` and return the round-trip latency in milliseconds."""
        ...

    def evaluate(self, script: str, arg: Any = None) -> Any:
        ...

    def click(self, selector: str) -> None:
        ...

    def wait_for_condition(self, script: str, *, timeout_ms: int, poll_interval_ms: int, arg: Any = None) -> bool:
        """Poll ``script`` until it is truthy; False when ``timeout_ms`` elapses first."""
        ...

    def pause(self, ms: float) -> None:
        ...

    def content(self) -> str:
        ...


class PlaywrightPageDriver:
    """``PageDriver`` over a Playwright sync ``Page``."""

    def __init__(self, page: Page, *, click_timeout_ms: int = 5000) -> None:
        self.page = page
        self.click_timeout_ms = click_timeout_ms

    def navigate(self, url: str, *, timeout_ms: int, wait_until: str = "networkidle") -> int:
        start = time.perf_counter()
        try:
            self.page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(url, timeout_ms) from e
        return int((time.perf_counter() - start) * 1000)

    def evaluate(self, script: str, arg: Any = None) -> Any:
        return self.page.evaluate(script, arg)

    def click(self, selector: str) -> None:
        self.page.click(selector, timeout=self.click_timeout_ms)

    def wait_for_condition(self, script: str, *, timeout_ms: int, poll_interval_ms: int, arg: Any = None) -> bool:
        handle = None
        try:
            handle = self.page.wait_for_function(script, arg=arg, timeout=timeout_ms, polling=poll_interval_ms)
            return True
        except PlaywrightTimeoutError:
            return False
        finally:
            if handle is not None:
                handle.dispose()

    def pause(self, ms: float) -> None:
        self.page.wait_for_timeout(ms)

    def content(self) -> str:
        return self.page.content()
