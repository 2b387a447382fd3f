import pytest
from playwright.sync_api import Error as PlaywrightError

from chat_capture.errors import PageUnavailable
from chat_capture.page import COPY_CAPTURE_JS, PlaywrightPage, compact_playwright_error


class StubPage:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def query_selector_all(self, selector):
        if self.fail:
            raise PlaywrightError("Target page, context or browser has been closed\nCall log: ...")
        return [selector]

    def evaluate(self, script, arg=None):
        self.calls.append((script, arg))
        return "copied"

    def wait_for_selector(self, selector, timeout=None):
        self.calls.append((selector, timeout))
        return selector


def test_playwright_errors_become_page_unavailable():
    handle = PlaywrightPage(StubPage(fail=True))
    with pytest.raises(PageUnavailable) as info:
        handle.query_all(".markdown")
    assert "has been closed" in str(info.value)
    assert "Call log" not in str(info.value)


def test_capture_copy_runs_interception_script():
    stub = StubPage()
    handle = PlaywrightPage(stub)
    assert handle.capture_copy("container", "button.copy", 50) == "copied"
    script, arg = stub.calls[0]
    assert script == COPY_CAPTURE_JS
    assert arg == {"container": "container", "selector": "button.copy", "waitMs": 50}


def test_wait_timeout_is_passed_in_milliseconds():
    stub = StubPage()
    PlaywrightPage(stub).wait_for_selector("textarea", 2.5)
    assert stub.calls == [("textarea", 2500.0)]


def test_compact_error_uses_first_line():
    assert compact_playwright_error(ValueError("first\nsecond")) == "first"
    assert compact_playwright_error(ValueError("")) == "ValueError"


class StubElement:
    def __init__(self):
        self.clicked = False

    def get_attribute(self, name):
        return {"href": "https://example.com"}.get(name)

    def click(self):
        self.clicked = True


def test_element_calls_go_through_adapter():
    handle = PlaywrightPage(StubPage())
    el = StubElement()
    assert handle.get_attribute(el, "href") == "https://example.com"
    assert handle.get_attribute(el, "title") is None
    handle.click(el)
    assert el.clicked
