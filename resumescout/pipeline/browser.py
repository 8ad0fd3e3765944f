from __future__ import annotations

import random
from pathlib import Path
from typing import Optional

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright

from .driver import PlaywrightPageDriver
from .humanize import STEALTH_INIT_SCRIPT, BrowserFingerprint, generate_fingerprint

LAUNCH_ARGS = [
    '--disable-dev-shm-usage',     # Prevent /dev/shm issues in containers
    '--disable-blink-features=AutomationControlled',
    '--disable-extensions',
    '--disable-plugins',
    '--no-first-run',
    '--disable-default-apps',
]


class BrowserSession:
    """One Chromium browser/context/page for a whole scrape run.

    Usage:
        with BrowserSession(storage_state="state.json") as page:
            page.navigate(url, timeout_ms=30000)

    The context gets a randomized fingerprint and the ``navigator.webdriver``
    mask; ``storage_state`` should hold an already-authenticated Catho session.
    Sandbox stays enabled (no ``--no-sandbox``).
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        storage_state: Optional[str] = None,
        fingerprint: Optional[BrowserFingerprint] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.headless = headless
        self.storage_state = storage_state
        self.fingerprint = fingerprint or generate_fingerprint(rng)
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    def start(self) -> PlaywrightPageDriver:
        if self.storage_state and not Path(self.storage_state).is_file():
            raise FileNotFoundError(f"storage state not found: {self.storage_state}")

        fp = self.fingerprint
        self._playwright = sync_playwright().start()
        try:
            self._browser = self._playwright.chromium.launch(headless=self.headless, args=LAUNCH_ARGS)
            self._context = self._browser.new_context(
                user_agent=fp.user_agent,
                viewport=fp.viewport,
                locale=fp.locale,
                timezone_id=fp.timezone_id,
                extra_http_headers=fp.headers,
                storage_state=self.storage_state,
            )
            self._context.add_init_script(STEALTH_INIT_SCRIPT)
            self.page = self._context.new_page()
        except Exception:
            self.close()
            raise
        print(f"🌐 Browser ready ({'headless' if self.headless else 'headed'}, {fp.viewport['width']}x{fp.viewport['height']})")
        return PlaywrightPageDriver(self.page)

    def close(self) -> None:
        for closer in (self._context, self._browser):
            if closer is None:
                continue
            try:
                closer.close()
            except Exception as e:
                print(f"⚠️ Browser shutdown error (ignored): {e}")
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as e:
                print(f"⚠️ Playwright stop error (ignored): {e}")
        self._context = self._browser = self._playwright = None
        self.page = None

    def __enter__(self) -> PlaywrightPageDriver:
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
