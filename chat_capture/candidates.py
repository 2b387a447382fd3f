"""Locating reply candidates and their containers on the page.

Candidates are positional: the Nth element matching the reply selector.
Only matches inside a reply container count, unless there are none, in
which case every match does.
"""

from .config import CaptureSettings
from .page import PageHandle


def find_candidates(page: PageHandle, settings: CaptureSettings) -> list:
    matches = page.query_all(settings.reply_selector)
    scoped = [el for el in matches if page.closest(el, settings.container_selector) is not None]
    return scoped or matches


def count_candidates(page: PageHandle, settings: CaptureSettings) -> int:
    """Baseline for the next turn: how many replies are already on the page."""
    return len(find_candidates(page, settings))


def latest_candidate(page: PageHandle, settings: CaptureSettings, baseline: int):
    candidates = find_candidates(page, settings)
    if len(candidates) <= baseline:
        return None
    return candidates[-1]


def reply_container(page: PageHandle, candidate, settings: CaptureSettings):
    if candidate is None:
        return None
    return page.closest(candidate, settings.container_selector)


def has_completion_marker(page: PageHandle, candidate, settings: CaptureSettings) -> bool:
    """True once the reply's container shows a control the UI adds when done."""
    container = reply_container(page, candidate, settings)
    if container is None:
        return False
    return any(page.query_within(container, sel) for sel in settings.complete_markers)
