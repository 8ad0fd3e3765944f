"""
Anti-detection helpers: humanized waits, behavior simulation, adaptive pacing
and randomized browser fingerprints.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

USER_AGENTS = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36",
    # Chrome on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36",
    # Edge
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36 Edg/140.0.0.0",
]

SCREEN_RESOLUTIONS = [
    {"width": 1920, "height": 1080},
    {"width": 1366, "height": 768},
    {"width": 1440, "height": 900},
    {"width": 1536, "height": 864},
    {"width": 1600, "height": 900},
    {"width": 1680, "height": 1050},
]

ACCEPT_LANGUAGES = [
    "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
    "pt-BR,pt;q=0.9",
    "pt-BR,pt;q=0.9,es;q=0.8,en;q=0.7",
]

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'languages', { get: () => ['pt-BR', 'pt', 'en-US', 'en'] });
window.chrome = window.chrome || { runtime: {} };
"""

RATE_LIMIT_ERROR_COUNT = 3
RATE_LIMIT_LATENCY_MS = 10000
MAX_BACKOFF_MULTIPLIER = 6.0

_rng = random.Random()


@dataclass(frozen=True)
class BrowserFingerprint:
    user_agent: str
    viewport: Dict[str, int]
    accept_language: str
    locale: str = "pt-BR"
    timezone_id: str = "America/Sao_Paulo"
    headers: Dict[str, str] = field(default_factory=dict)


def random_delay(min_ms: float, max_ms: float, rng: Optional[random.Random] = None) -> int:
    """Random integer delay in ``[min_ms, max_ms]`` milliseconds."""
    r = rng or _rng
    lo, hi = int(min_ms), int(max_ms)
    if hi < lo:
        lo, hi = hi, lo
    return r.randint(lo, hi)


def generate_fingerprint(rng: Optional[random.Random] = None) -> BrowserFingerprint:
    r = rng or _rng
    language = r.choice(ACCEPT_LANGUAGES)
    return BrowserFingerprint(
        user_agent=r.choice(USER_AGENTS),
        viewport=dict(r.choice(SCREEN_RESOLUTIONS)),
        accept_language=language,
        headers={
            "Accept-Language": language,
            "Upgrade-Insecure-Requests": "1",
        },
    )


def _pause(page, ms: float) -> None:
    if page is not None:
        page.pause(ms)
    else:
        time.sleep(ms / 1000.0)


def humanized_wait(page, base_ms: float, variance: float = 0.3, rng: Optional[random.Random] = None) -> int:
    """Wait ``base_ms`` ± ``variance`` (fraction) and return the delay actually used."""
    variance = min(max(variance, 0.0), 1.0)
    delay = random_delay(base_ms * (1 - variance), base_ms * (1 + variance), rng)
    print(f"⏳ Waiting {delay / 1000:.1f}s (humanized)...")
    _pause(page, delay)
    return delay


def simulate_human_behavior(page, rng: Optional[random.Random] = None) -> None:
    """Scroll a bit, pause as if reading, then dispatch a stray mouse move.

    Best-effort: a failing simulation never affects the extraction.
    """
    if page is None:
        return
    r = rng or _rng
    try:
        page.evaluate(
            "(amount) => window.scrollBy({ top: amount, left: 0, behavior: 'smooth' })",
            random_delay(100, 800, r),
        )
        page.pause(random_delay(500, 1500, r))
        page.evaluate(
            """() => document.dispatchEvent(new MouseEvent('mousemove', {
                clientX: Math.random() * window.innerWidth,
                clientY: Math.random() * window.innerHeight,
                bubbles: true,
            }))"""
        )
    except Exception as e:
        print(f"⚠️ Human behavior simulation failed (ignored): {e}")


def detect_rate_limiting(error_count: int, latency_ms: float) -> bool:
    return error_count > RATE_LIMIT_ERROR_COUNT or latency_ms > RATE_LIMIT_LATENCY_MS


def adaptive_delay(base_ms: float, error_count: int = 0, last_latency_ms: float = 0) -> float:
    """Inter-profile delay backing off under sustained errors or slow responses.

    Multiplier is 1 until rate limiting is suspected, then
    ``1.5 + 0.2 * error_count`` capped at ``MAX_BACKOFF_MULTIPLIER``.
    Non-decreasing in ``error_count`` for fixed base and latency.
    """
    multiplier = 1.0
    if detect_rate_limiting(error_count, last_latency_ms):
        multiplier = min(1.5 + error_count * 0.2, MAX_BACKOFF_MULTIPLIER)
        print(f"⚠️ Possible rate limiting detected. Increasing delay {multiplier:.1f}x")
    return base_ms * multiplier
