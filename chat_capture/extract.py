"""Choosing the authoritative text of a finished reply.

Order: the page's own copy action, then the rich-text walker, then the
candidate's plain rendered text. Whatever wins is normalized.
"""

from dataclasses import dataclass
from enum import Enum

from bs4 import BeautifulSoup

from .candidates import reply_container
from .config import CaptureSettings
from .errors import CaptureError, CopyInterceptFailure
from .log import log_debug
from .normalize import looks_like_markdown, normalize_markdown
from .page import PageHandle
from .walker import walk


class SourceKind(Enum):
    COPY_ACTION = "copy-action"
    DOM_WALK = "dom-walk"
    PLAIN_TEXT = "plain-text"


@dataclass
class ExtractionResult:
    text: str
    source_kind: SourceKind
    looks_like_markdown: bool

    @property
    def empty(self) -> bool:
        return not self.text.strip()


def copy_action_text(page: PageHandle, candidate, settings: CaptureSettings):
    """Payload of the reply's copy button, or None when interception fails."""
    try:
        container = reply_container(page, candidate, settings)
        if container is None:
            raise CopyInterceptFailure("candidate has no reply container")
        captured = page.capture_copy(container, settings.copy_selector, settings.copy_wait_ms)
        if not isinstance(captured, str) or not captured.strip():
            raise CopyInterceptFailure("clipboard shim never fired")
        return captured
    except CaptureError as e:
        # Expected while the UI is still wiring up its buttons.
        log_debug(f"Copy action unavailable: {e}")
        return None


def dom_walk_text(page: PageHandle, candidate, settings: CaptureSettings) -> str:
    try:
        html = page.inner_html(candidate)
    except CaptureError as e:
        log_debug(f"Walker could not read the reply: {e}")
        return ""
    soup = BeautifulSoup(html or "", "html.parser")
    return walk(soup, max_depth=settings.max_depth)


def plain_text(page: PageHandle, candidate) -> str:
    try:
        return page.inner_text(candidate) or ""
    except CaptureError as e:
        log_debug(f"Plain text unavailable: {e}")
        return ""


def extract_final(page: PageHandle, candidate, settings: CaptureSettings) -> ExtractionResult:
    if candidate is None:
        return ExtractionResult("", SourceKind.PLAIN_TEXT, False)

    text, kind = "", SourceKind.PLAIN_TEXT
    copied = copy_action_text(page, candidate, settings)
    if copied:
        text, kind = copied, SourceKind.COPY_ACTION
        if not looks_like_markdown(copied):
            walked = dom_walk_text(page, candidate, settings)
            if walked.strip():
                log_debug("Copy payload looks like plain text; using walker output")
                text, kind = walked, SourceKind.DOM_WALK
    else:
        walked = dom_walk_text(page, candidate, settings)
        if walked.strip():
            text, kind = walked, SourceKind.DOM_WALK
        else:
            text = plain_text(page, candidate)

    text = normalize_markdown(text)
    log_debug(f"Final text from {kind.value} ({len(text)} chars)")
    return ExtractionResult(text=text, source_kind=kind, looks_like_markdown=looks_like_markdown(text))
