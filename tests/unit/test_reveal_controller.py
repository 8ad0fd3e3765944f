import pytest

from resumescout.pipeline.reveal import (
    ContactRevealController,
    POLL_INTERVAL_MS,
    REVEAL_TIMEOUT_MS,
    SETTLE_DELAY_MS,
)
from resumescout.pipeline.results import FailureKind
from resumescout.schemas import ContactKind

from fake_page import FakePage


@pytest.mark.parametrize("kind,value", [
    (ContactKind.PHONE, "(41) 99999-1234"),
    (ContactKind.EMAIL, "ana.souza@example.com.br"),
])
def test_already_visible_value_is_returned_without_click(kind, value):
    page = FakePage(visible={kind.value: True}, triggers={kind.value: True}, values={kind.value: value})

    result = ContactRevealController().reveal(page, kind)

    assert result.success is True
    assert result.data == value
    assert page.clicks == []
    assert page.condition_waits == []
    assert page.now_ms == 0


def test_missing_trigger_fails_fast_without_polling():
    page = FakePage(triggers={})

    result = ContactRevealController().reveal(page, ContactKind.PHONE)

    assert result.success is False
    assert result.failure == FailureKind.TRIGGER_NOT_FOUND
    assert result.data is None
    assert result.error
    assert page.condition_waits == []
    assert page.now_ms < REVEAL_TIMEOUT_MS


def test_reveal_timeout_elapsed_is_bounded():
    page = FakePage(triggers={"phone": True}, reveal_after_ms={"phone": None})

    result = ContactRevealController().reveal(page, ContactKind.PHONE)

    assert result.success is False
    assert result.failure == FailureKind.REVEAL_TIMEOUT
    assert len(page.clicks) == 1
    assert REVEAL_TIMEOUT_MS <= page.now_ms
    assert page.now_ms <= REVEAL_TIMEOUT_MS + SETTLE_DELAY_MS + POLL_INTERVAL_MS


def test_click_then_value_appears_within_timeout():
    page = FakePage(
        triggers={"phone": True},
        reveal_after_ms={"phone": 2300},
        values={"phone": "(41) 99999-1234"},
    )

    result = ContactRevealController().reveal(page, ContactKind.PHONE)

    assert result.success is True
    assert result.data == "(41) 99999-1234"
    assert page.clicks == ['[data-rs-reveal="phone"]']
    # settle first, then polling on the configured interval
    assert page.pauses[0] == SETTLE_DELAY_MS
    assert page.now_ms >= 2300


def test_first_candidate_of_multi_value_is_returned():
    page = FakePage(visible={"phone": True}, values={"phone": "(41) 99999-1234, (41) 98888-0000"})

    result = ContactRevealController().reveal(page, ContactKind.PHONE)

    assert result.data == "(41) 99999-1234"


def test_visible_but_empty_value_is_empty_value_failure():
    page = FakePage(visible={"email": True}, values={"email": "  "})

    result = ContactRevealController().reveal(page, ContactKind.EMAIL)

    assert result.success is False
    assert result.failure == FailureKind.EMPTY_VALUE


def test_click_failure_is_reported():
    page = FakePage(triggers={"phone": True}, fail_click=True)

    result = ContactRevealController().reveal(page, ContactKind.PHONE)

    assert result.success is False
    assert result.failure == FailureKind.CLICK_FAILED
    assert page.condition_waits == []


def test_extraction_error_is_reported():
    class BrokenCollectPage(FakePage):
        def evaluate(self, script, arg=None):
            from resumescout.pipeline.contact_scripts import COLLECT_CONTACT_VALUES_JS
            if script == COLLECT_CONTACT_VALUES_JS:
                raise RuntimeError("Execution context was destroyed")
            return super().evaluate(script, arg)

    page = BrokenCollectPage(visible={"phone": True}, values={"phone": "(41) 99999-1234"})

    result = ContactRevealController().reveal(page, ContactKind.PHONE)

    assert result.success is False
    assert result.failure == FailureKind.EXTRACTION_FAILED
    assert "Execution context" in result.error


def test_options_resolved_once_per_kind():
    controller = ContactRevealController()
    first = controller.options_for(ContactKind.PHONE)
    assert controller.options_for("phone") is first
    assert controller.options_for(ContactKind.EMAIL) is not first


def test_custom_timing_is_honored():
    page = FakePage(triggers={"email": True}, reveal_after_ms={"email": None})
    controller = ContactRevealController(settle_delay_ms=100, reveal_timeout_ms=1000, poll_interval_ms=50)

    result = controller.reveal(page, ContactKind.EMAIL)

    assert result.failure == FailureKind.REVEAL_TIMEOUT
    assert page.condition_waits == [1000]
    assert 1000 <= page.now_ms <= 1150
