import random

import pytest
from unittest.mock import MagicMock, patch

from resumescout.pipeline.browser import LAUNCH_ARGS, BrowserSession
from resumescout.pipeline.driver import PlaywrightPageDriver
from resumescout.pipeline.humanize import STEALTH_INIT_SCRIPT, generate_fingerprint


def wire(mock_sync_playwright):
    mock_page = MagicMock()
    mock_context = MagicMock()
    mock_context.new_page.return_value = mock_page
    mock_browser = MagicMock()
    mock_browser.new_context.return_value = mock_context
    mock_playwright = MagicMock()
    mock_playwright.chromium.launch.return_value = mock_browser
    mock_sync_playwright.return_value.start.return_value = mock_playwright
    return mock_playwright, mock_browser, mock_context, mock_page


@patch('resumescout.pipeline.browser.sync_playwright')
def test_session_launches_with_fingerprint_and_stealth(mock_sync_playwright, tmp_path):
    pw, browser, context, page = wire(mock_sync_playwright)
    state = tmp_path / "state.json"
    state.write_text("{}", encoding="utf-8")
    fp = generate_fingerprint(random.Random(1))

    with BrowserSession(storage_state=str(state), fingerprint=fp) as driver:
        assert isinstance(driver, PlaywrightPageDriver)
        assert driver.page is page

    pw.chromium.launch.assert_called_once_with(headless=True, args=LAUNCH_ARGS)
    assert "--no-sandbox" not in LAUNCH_ARGS
    kwargs = browser.new_context.call_args.kwargs
    assert kwargs["user_agent"] == fp.user_agent
    assert kwargs["viewport"] == fp.viewport
    assert kwargs["locale"] == "pt-BR"
    assert kwargs["storage_state"] == str(state)
    context.add_init_script.assert_called_once_with(STEALTH_INIT_SCRIPT)
    context.close.assert_called_once()
    browser.close.assert_called_once()
    pw.stop.assert_called_once()


@patch('resumescout.pipeline.browser.sync_playwright')
def test_missing_storage_state_fails_before_launch(mock_sync_playwright, tmp_path):
    with pytest.raises(FileNotFoundError):
        BrowserSession(storage_state=str(tmp_path / "missing.json")).start()
    mock_sync_playwright.assert_not_called()


@patch('resumescout.pipeline.browser.sync_playwright')
def test_launch_failure_stops_playwright(mock_sync_playwright):
    pw, _, _, _ = wire(mock_sync_playwright)
    pw.chromium.launch.side_effect = RuntimeError("Executable doesn't exist")

    with pytest.raises(RuntimeError):
        BrowserSession().start()
    pw.stop.assert_called_once()


@patch('resumescout.pipeline.browser.sync_playwright')
def test_close_errors_are_ignored(mock_sync_playwright):
    pw, browser, context, _ = wire(mock_sync_playwright)
    context.close.side_effect = RuntimeError("already closed")

    session = BrowserSession(headless=False)
    session.start()
    session.close()

    browser.close.assert_called_once()
    pw.stop.assert_called_once()
    assert session.page is None
