"""The page handle the capture engine inspects, and its Playwright adapter."""

from typing import Any, Optional

from playwright.sync_api import Error as PlaywrightError

from .errors import PageUnavailable
from .log import log_debug

# Clicks the reply's own copy button and records what it tries to put on the
# clipboard, whichever route the page uses (copy event, async clipboard API
# or execCommand). Originals are restored before resolving.
COPY_CAPTURE_JS = """
async ({ container, selector, waitMs }) => {
  const copyBtn = container ? container.querySelector(selector) : null;
  if (!copyBtn) return null;
  let captured = null;
  const onCopy = (e) => {
    try {
      const data = e.clipboardData && e.clipboardData.getData('text/plain');
      if (data) captured = data;
    } catch (err) {}
    e.preventDefault();
  };
  document.addEventListener('copy', onCopy);
  let originalWriteText = null;
  if (navigator.clipboard && navigator.clipboard.writeText) {
    originalWriteText = navigator.clipboard.writeText;
    navigator.clipboard.writeText = async (text) => { captured = text; };
  }
  const originalExecCommand = document.execCommand;
  document.execCommand = function (cmd) {
    if (String(cmd).toLowerCase() === 'copy' && captured === null) {
      const sel = window.getSelection();
      if (sel && String(sel)) captured = String(sel);
    }
    return true;
  };
  try {
    copyBtn.click();
    await new Promise((resolve) => setTimeout(resolve, waitMs));
  } finally {
    document.removeEventListener('copy', onCopy);
    if (originalWriteText) navigator.clipboard.writeText = originalWriteText;
    document.execCommand = originalExecCommand;
  }
  return captured;
}
"""

VISIBILITY_OVERRIDE_JS = """
() => {
  const define = (obj, prop, value) => {
    try {
      Object.defineProperty(obj, prop, { get: () => value, configurable: true });
    } catch (e) {}
  };
  define(document, 'hidden', false);
  define(document, 'visibilityState', 'visible');
  define(document, 'webkitHidden', false);
  define(document, 'webkitVisibilityState', 'visible');
}
"""


class PageHandle:
    """What the capture engine needs from a live browser page.

    Elements are opaque; only the page that produced them can read them.
    Implementations raise ``PageUnavailable`` when the browser cannot answer.
    """

    def query_all(self, selector: str) -> list:
        raise NotImplementedError

    def query_within(self, element, selector: str) -> list:
        raise NotImplementedError

    def closest(self, element, selector: str):
        raise NotImplementedError

    def inner_text(self, element) -> str:
        raise NotImplementedError

    def inner_html(self, element) -> str:
        raise NotImplementedError

    def get_attribute(self, element, name: str) -> Optional[str]:
        raise NotImplementedError

    def click(self, element) -> None:
        raise NotImplementedError

    def wait_for_selector(self, selector: str, timeout: float):
        raise NotImplementedError

    def evaluate(self, script: str, arg: Any = None) -> Any:
        raise NotImplementedError

    def capture_copy(self, container, copy_selector: str, wait_ms: int) -> Optional[str]:
        """Click the copy button inside ``container`` and return the clipboard payload."""
        return self.evaluate(
            COPY_CAPTURE_JS,
            {"container": container, "selector": copy_selector, "waitMs": int(wait_ms)},
        )


def compact_playwright_error(exc: Exception) -> str:
    text = str(exc).strip()
    if not text:
        return exc.__class__.__name__
    return text.splitlines()[0][:200]


class PlaywrightPage(PageHandle):
    """``PageHandle`` over a Playwright sync ``Page``."""

    def __init__(self, page):
        self.page = page

    def _call(self, what: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except PlaywrightError as exc:
            raise PageUnavailable(f"{what}: {compact_playwright_error(exc)}") from exc

    def query_all(self, selector):
        return self._call("query", self.page.query_selector_all, selector)

    def query_within(self, element, selector):
        if element is None:
            return []
        return self._call("query", element.query_selector_all, selector)

    def closest(self, element, selector):
        if element is None:
            return None
        handle = self._call("closest", element.evaluate_handle, "(el, sel) => el.closest(sel)", selector)
        return handle.as_element()

    def inner_text(self, element):
        return self._call("inner_text", element.inner_text) or ""

    def inner_html(self, element):
        return self._call("inner_html", element.inner_html) or ""

    def get_attribute(self, element, name):
        return self._call("get_attribute", element.get_attribute, name)

    def click(self, element):
        self._call("click", element.click)

    def wait_for_selector(self, selector, timeout):
        return self._call("wait_for_selector", self.page.wait_for_selector, selector, timeout=timeout * 1000)

    def evaluate(self, script, arg=None):
        return self._call("evaluate", self.page.evaluate, script, arg)

    def keep_visible(self):
        """Stop the tab from being throttled while it sits in the background."""
        try:
            self.page.add_init_script(f"({VISIBILITY_OVERRIDE_JS})()")
            self.page.evaluate(VISIBILITY_OVERRIDE_JS)
        except PlaywrightError as exc:
            log_debug(f"Visibility override failed: {compact_playwright_error(exc)}")
        try:
            client = self.page.context.new_cdp_session(self.page)
            client.send("Emulation.setIdleOverride", {"isUserActive": True, "isScreenUnlocked": True})
            client.send("Page.setWebLifecycleState", {"state": "active"})
        except PlaywrightError as exc:
            log_debug(f"Lifecycle override failed: {compact_playwright_error(exc)}")
