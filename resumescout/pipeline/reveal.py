from __future__ import annotations

from typing import Dict, Optional

from ..schemas import ContactKind
from .contact_options import ContactOptions, build_contact_options, first_candidate
from .contact_scripts import COLLECT_CONTACT_VALUES_JS, HAS_VISIBLE_CONTACT_JS, LOCATE_TRIGGER_JS
from .driver import PageDriver
from .results import ExtractionResult, FailureKind

SETTLE_DELAY_MS = 1500
REVEAL_TIMEOUT_MS = 6000
POLL_INTERVAL_MS = 200

_ICONS = {ContactKind.PHONE: "📞", ContactKind.EMAIL: "📧"}


class ContactRevealController:
    """Drives the reveal state machine for one contact kind at a time.

    visible? -> locate trigger -> click -> settle -> poll until visible -> extract

    Every failure branch is returned as ``success=False`` with a
    ``FailureKind``; nothing raises to the caller. Options are resolved
    lazily once per kind and reused for the lifetime of the controller.
    """

    def __init__(
        self,
        *,
        settle_delay_ms: int = SETTLE_DELAY_MS,
        reveal_timeout_ms: int = REVEAL_TIMEOUT_MS,
        poll_interval_ms: int = POLL_INTERVAL_MS,
    ) -> None:
        self.settle_delay_ms = settle_delay_ms
        self.reveal_timeout_ms = reveal_timeout_ms
        self.poll_interval_ms = poll_interval_ms
        self._options: Dict[ContactKind, ContactOptions] = {}

    def options_for(self, kind: ContactKind) -> ContactOptions:
        kind = ContactKind(kind)
        if kind not in self._options:
            self._options[kind] = build_contact_options(kind)
        return self._options[kind]

    def _is_visible(self, page: PageDriver, arg: dict) -> bool:
        try:
            return bool(page.evaluate(HAS_VISIBLE_CONTACT_JS, arg))
        except Exception:
            # Treated as "not yet visible": the reveal path decides the outcome
            return False

    def reveal(self, page: PageDriver, kind: ContactKind) -> ExtractionResult[str]:
        options = self.options_for(kind)
        arg = options.to_js_arg()
        label = options.kind.value

        if not self._is_visible(page, arg):
            print(f"  {_ICONS[options.kind]} Looking for '{label}' reveal control...")
            try:
                selector: Optional[str] = page.evaluate(LOCATE_TRIGGER_JS, arg)
            except Exception as e:
                selector = None
                print(f"  ⚠️ Trigger lookup failed for {label}: {e}")
            if not selector:
                print(f"  ⚠️ '{label}' reveal control not found")
                return ExtractionResult.fail(FailureKind.TRIGGER_NOT_FOUND, f"{label} reveal control not found")

            try:
                page.click(selector)
            except Exception as e:
                return ExtractionResult.fail(FailureKind.CLICK_FAILED, f"{label} reveal click failed: {e}")

            try:
                # Click starts a server round-trip; polling right away risks a false negative
                page.pause(self.settle_delay_ms)
                visible = page.wait_for_condition(
                    HAS_VISIBLE_CONTACT_JS,
                    timeout_ms=self.reveal_timeout_ms,
                    poll_interval_ms=self.poll_interval_ms,
                    arg=arg,
                )
            except Exception as e:
                print(f"  ⚠️ Polling {label} failed: {e}")
                visible = False
            if not visible:
                print(f"  ⚠️ {label} did not become visible in time")
                return ExtractionResult.fail(
                    FailureKind.REVEAL_TIMEOUT,
                    f"{label} not visible after {self.reveal_timeout_ms}ms",
                )

        try:
            raw = page.evaluate(COLLECT_CONTACT_VALUES_JS, arg)
        except Exception as e:
            return ExtractionResult.fail(FailureKind.EXTRACTION_FAILED, f"{label} extraction failed: {e}")

        value = first_candidate(raw if isinstance(raw, str) else None)
        if not value:
            return ExtractionResult.fail(FailureKind.EMPTY_VALUE, f"{label} visible but empty")

        print(f"  ✅ {label.capitalize()} found: {value}")
        return ExtractionResult.ok(value)
